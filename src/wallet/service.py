"""Wallet service for pass generation.

This module provides the entry points the order and email flows call.
Every function here returns an artifact or ``None``; wallet passes are an
addition to already-issued tickets and must never interrupt issuance.
"""

from collections.abc import Callable, Mapping, Sequence
from typing import Any, TypeVar

import httpx
import structlog
from django.conf import settings
from pydantic import ValidationError

from wallet.apple.credentials import resolve_pass_type_id, resolve_team_id
from wallet.apple.generator import ApplePassGenerator
from wallet.google.generator import GoogleWalletGenerator, resolve_issuer_id
from wallet.protocols import MediaStore, WalletPassGenerator
from wallet.results import ApplePassBundle, PassOutcome
from wallet.schemas import (
    AppleConfigStatus,
    GoogleConfigStatus,
    PassVisualSettings,
    TicketPassData,
    WalletConfigStatus,
)

logger = structlog.get_logger(__name__)


SettingsInput = PassVisualSettings | Mapping[str, Any] | None

T = TypeVar("T")


def _coerce_settings(pass_settings: SettingsInput) -> PassVisualSettings | None:
    """Resolve tenant settings, or None if the stored values do not validate."""
    if isinstance(pass_settings, PassVisualSettings):
        return pass_settings
    try:
        return PassVisualSettings.merged(pass_settings)
    except ValidationError as e:
        logger.error(
            "wallet_pass_settings_invalid",
            fields=sorted({str(error["loc"][0]) for error in e.errors() if error["loc"]}),
        )
        return None


class WalletService:
    """Service for generating wallet passes.

    This service provides a unified interface for:
    - Apple Wallet .pkpass files and multi-ticket .pkpasses bundles
    - Google Wallet "Save" links
    - Reporting which providers are configured
    """

    def __init__(
        self,
        media_store: MediaStore | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialize the wallet service.

        Args:
            media_store: Lookup for images referenced by media key.
            http_client: HTTP client for certificate and image fetches.
        """
        self.media_store = media_store
        self.http_client = http_client
        self._apple_generator: ApplePassGenerator | None = None
        self._google_generator: GoogleWalletGenerator | None = None

    @property
    def apple_generator(self) -> ApplePassGenerator:
        """Get the Apple pass generator, creating if needed."""
        if self._apple_generator is None:
            self._apple_generator = ApplePassGenerator(media_store=self.media_store, http_client=self.http_client)
        return self._apple_generator

    @property
    def google_generator(self) -> GoogleWalletGenerator:
        """Get the Google Wallet generator, creating if needed."""
        if self._google_generator is None:
            self._google_generator = GoogleWalletGenerator()
        return self._google_generator

    def generators(self) -> dict[str, WalletPassGenerator]:
        """The pass generators keyed by provider name."""
        return {"apple": self.apple_generator, "google": self.google_generator}

    # -------------------------------------------------------------------------
    # Pass Generation
    # -------------------------------------------------------------------------

    def generate_apple_pass(self, ticket: TicketPassData, pass_settings: SettingsInput = None) -> bytes | None:
        """Generate an Apple Wallet pass for one ticket.

        Args:
            ticket: The ticket to generate a pass for.
            pass_settings: Tenant settings (model or stored mapping).

        Returns:
            The .pkpass file as bytes, or None if unavailable.
        """
        resolved = _coerce_settings(pass_settings)
        if resolved is None:
            return None
        return self._run("apple", lambda: self.apple_generator.generate_pass(ticket, resolved))

    def generate_apple_pass_bundle(
        self,
        tickets: Sequence[TicketPassData],
        pass_settings: SettingsInput = None,
    ) -> ApplePassBundle | None:
        """Generate the Apple Wallet download for an order.

        Args:
            tickets: Tickets of a single order.
            pass_settings: Tenant settings (model or stored mapping).

        Returns:
            A .pkpass (one ticket) or .pkpasses bundle (several), or None.
        """
        resolved = _coerce_settings(pass_settings)
        if resolved is None:
            return None
        return self._run("apple", lambda: self.apple_generator.generate(tickets, resolved))

    def generate_google_wallet_url(
        self,
        tickets: Sequence[TicketPassData],
        pass_settings: SettingsInput = None,
    ) -> str | None:
        """Generate a "Save to Google Wallet" URL for an order.

        Args:
            tickets: Tickets of a single order.
            pass_settings: Tenant settings (model or stored mapping).

        Returns:
            The save URL, or None if unavailable.
        """
        resolved = _coerce_settings(pass_settings)
        if resolved is None:
            return None
        return self._run("google", lambda: self.google_generator.generate(tickets, resolved))

    def _run(self, provider: str, produce: Callable[[], PassOutcome[T]]) -> T | None:
        """Run a generator, reducing its outcome to the artifact or None.

        Unexpected errors are logged with their traceback and reported as no
        artifact, so a wallet bug never reaches the order flow.
        """
        try:
            outcome = produce()
        except Exception:
            logger.exception("wallet_pass_generation_crashed", provider=provider)
            return None

        if not outcome.is_ok:
            logger.info(
                "wallet_pass_not_generated",
                provider=provider,
                status=str(outcome.status),
                reason=outcome.reason,
            )
        return outcome.unwrap_or_none()

    # -------------------------------------------------------------------------
    # Configuration Status
    # -------------------------------------------------------------------------

    def get_config_status(self, pass_settings: SettingsInput = None) -> WalletConfigStatus:
        """Report which providers are configured, without any I/O.

        The WWDR certificate counts as available when an override is set
        or automatic download is allowed.

        Args:
            pass_settings: Tenant settings (model or stored mapping).

        Returns:
            Per-provider configuration flags.
        """
        # Invalid stored values report against the defaults
        resolved = _coerce_settings(pass_settings) or PassVisualSettings()

        has_certificate = bool(settings.APPLE_PASS_CERTIFICATE)
        has_service_account = bool(settings.GOOGLE_WALLET_SERVICE_ACCOUNT_KEY)
        has_issuer_id = bool(resolve_issuer_id(resolved))
        generators = self.generators()

        return WalletConfigStatus(
            apple=AppleConfigStatus(
                enabled=resolved.apple_wallet_enabled,
                configured=generators["apple"].is_configured(resolved),
                has_certificate=has_certificate,
                has_wwdr=bool(settings.APPLE_WWDR_CERTIFICATE or settings.APPLE_WWDR_AUTO_FETCH),
                has_pass_type_id=bool(resolve_pass_type_id(resolved)),
                has_team_id=bool(resolve_team_id(resolved)),
            ),
            google=GoogleConfigStatus(
                enabled=resolved.google_wallet_enabled,
                configured=generators["google"].is_configured(resolved),
                has_service_account=has_service_account,
                has_issuer_id=has_issuer_id,
            ),
        )


# Module-level singleton instance
_wallet_service: WalletService | None = None


def get_wallet_service() -> WalletService:
    """Get the wallet service singleton.

    Returns:
        The WalletService instance.
    """
    global _wallet_service
    if _wallet_service is None:
        _wallet_service = WalletService()
    return _wallet_service


def generate_apple_pass(ticket: TicketPassData, pass_settings: SettingsInput = None) -> bytes | None:
    return get_wallet_service().generate_apple_pass(ticket, pass_settings)


def generate_apple_pass_bundle(
    tickets: Sequence[TicketPassData],
    pass_settings: SettingsInput = None,
) -> ApplePassBundle | None:
    return get_wallet_service().generate_apple_pass_bundle(tickets, pass_settings)


def generate_google_wallet_url(
    tickets: Sequence[TicketPassData],
    pass_settings: SettingsInput = None,
) -> str | None:
    return get_wallet_service().generate_google_wallet_url(tickets, pass_settings)


def get_wallet_config_status(pass_settings: SettingsInput = None) -> WalletConfigStatus:
    return get_wallet_service().get_config_status(pass_settings)
