"""Core Django settings."""

from decouple import config

VERSION = "1.0.0"

SECRET_KEY = config("SECRET_KEY", default="insecure-wallet-passes-development-key")
DEBUG = config("DEBUG", default=False, cast=bool)

INSTALLED_APPS = [
    "wallet",
]

# Pass generation keeps no persistent state.
DATABASES: dict[str, dict[str, str]] = {}

USE_TZ = True
TIME_ZONE = "UTC"
LANGUAGE_CODE = "en-gb"
