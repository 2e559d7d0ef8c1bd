"""Google Wallet pass generation components."""

from wallet.google.generator import GoogleWalletGenerator, load_google_config

__all__ = [
    "GoogleWalletGenerator",
    "load_google_config",
]
