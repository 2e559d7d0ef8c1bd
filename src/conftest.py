"""
This conftest.py provides fixtures shared by every test in the project.
"""

import typing as t
from collections.abc import Iterator

import pytest

from wallet.apple.credentials import get_wwdr_cache


@pytest.fixture(autouse=True)
def wallet_settings_unconfigured(settings: t.Any) -> None:
    """Start every test from a blank wallet configuration.

    Values from the environment or a local .env must not leak into tests,
    and nothing may reach the network unless a test opts in.
    """
    settings.APPLE_PASS_CERTIFICATE = ""
    settings.APPLE_PASS_CERTIFICATE_PASSWORD = ""
    settings.APPLE_PASS_CERTIFICATE_FORMAT = "auto"
    settings.APPLE_WWDR_CERTIFICATE = ""
    settings.APPLE_WWDR_CERTIFICATE_URL = "https://certs.example.test/AppleWWDRCAG4.cer"
    settings.APPLE_WWDR_AUTO_FETCH = False
    settings.APPLE_PASS_TYPE_IDENTIFIER = ""
    settings.APPLE_PASS_TEAM_IDENTIFIER = ""
    settings.GOOGLE_WALLET_SERVICE_ACCOUNT_KEY = ""
    settings.GOOGLE_WALLET_ISSUER_ID = ""
    settings.WALLET_SITE_URL = ""
    settings.VERCEL_PROJECT_PRODUCTION_URL = ""
    settings.VERCEL_URL = ""
    settings.WALLET_HTTP_TIMEOUT = 1.0


@pytest.fixture(autouse=True)
def clear_wwdr_cache() -> Iterator[None]:
    """Forget any intermediate certificate fetched by a previous test."""
    get_wwdr_cache().clear()
    yield
    get_wwdr_cache().clear()
