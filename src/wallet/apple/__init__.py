"""Apple Wallet pass generation components."""

from wallet.apple.credentials import SigningCredentials, load_apple_config
from wallet.apple.generator import ApplePassGenerator
from wallet.apple.signer import ApplePassSigner

__all__ = [
    "ApplePassGenerator",
    "ApplePassSigner",
    "SigningCredentials",
    "load_apple_config",
]
