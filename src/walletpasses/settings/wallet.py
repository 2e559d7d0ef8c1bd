"""Wallet pass configuration (Apple Wallet and Google Wallet).

See: https://developer.apple.com/documentation/walletpasses
See: https://developers.google.com/wallet/tickets/events
"""

from decouple import Choices, config

# Apple Wallet
# Signer bundle: raw PEM text, or base64 of a PEM file or a .p12 export.
APPLE_PASS_CERTIFICATE: str = config("APPLE_PASS_CERTIFICATE", default="")
APPLE_PASS_CERTIFICATE_PASSWORD: str = config("APPLE_PASS_CERTIFICATE_PASSWORD", default="")
APPLE_PASS_CERTIFICATE_FORMAT: str = config(
    "APPLE_PASS_CERTIFICATE_FORMAT",
    default="auto",
    cast=Choices(["auto", "pkcs12", "pem"]),
)
APPLE_WWDR_CERTIFICATE: str = config("APPLE_WWDR_CERTIFICATE", default="")
APPLE_WWDR_CERTIFICATE_URL: str = config(
    "APPLE_WWDR_CERTIFICATE_URL",
    default="https://www.apple.com/certificateauthority/AppleWWDRCAG4.cer",
)
APPLE_WWDR_AUTO_FETCH: bool = config("APPLE_WWDR_AUTO_FETCH", default=True, cast=bool)
APPLE_PASS_TYPE_IDENTIFIER: str = config("APPLE_PASS_TYPE_IDENTIFIER", default="")
APPLE_PASS_TEAM_IDENTIFIER: str = config("APPLE_PASS_TEAM_IDENTIFIER", default="")

# Google Wallet
# Service account JSON, either raw or base64-encoded.
GOOGLE_WALLET_SERVICE_ACCOUNT_KEY: str = config("GOOGLE_WALLET_SERVICE_ACCOUNT_KEY", default="")
GOOGLE_WALLET_ISSUER_ID: str = config("GOOGLE_WALLET_ISSUER_ID", default="")

# Public origin used to make image URLs absolute for Google Wallet.
# Falls back to the platform deployment URLs when unset.
WALLET_SITE_URL: str = config("WALLET_SITE_URL", default="")
VERCEL_PROJECT_PRODUCTION_URL: str = config("VERCEL_PROJECT_PRODUCTION_URL", default="")
VERCEL_URL: str = config("VERCEL_URL", default="")

# Timeout (seconds) for intermediate certificate and image fetches
WALLET_HTTP_TIMEOUT: float = config("WALLET_HTTP_TIMEOUT", default=5.0, cast=float)
