"""Exceptions raised inside the wallet pass core.

They never leave the generator boundary: generators convert them into a
``PassOutcome`` so ticket issuance is never interrupted by a wallet failure.
"""


class WalletPassError(Exception):
    """Base exception for wallet pass errors."""

    pass


class AppleCredentialsError(WalletPassError):
    """Raised when the signer bundle or intermediate certificate cannot be parsed."""

    pass


class ApplePassSignerError(WalletPassError):
    """Raised when pass signing fails."""

    pass


class ApplePassGeneratorError(WalletPassError):
    """Raised when pass generation fails."""

    pass


class GoogleWalletError(WalletPassError):
    """Raised when the service account key is malformed or token signing fails."""

    pass
