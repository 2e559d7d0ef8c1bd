"""Pydantic schemas for wallet pass inputs and the configuration report."""

import typing as t
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict

DEFAULT_TERMS_TEXT = (
    "This ticket admits one person. Valid ID may be required on entry. "
    "Tickets are non-refundable and may not be resold. "
    "The organiser reserves the right to refuse admission."
)


class TicketPassData(BaseModel):
    """Everything needed to render one ticket as a wallet pass.

    ``ticket_code`` is the exact barcode payload. It must match the value
    printed in the PDF and email QR codes for the same ticket.
    """

    model_config = ConfigDict(frozen=True)

    ticket_code: str
    event_name: str
    order_number: str
    ticket_type: str = "Ticket"
    venue_name: str = ""
    event_date: str = ""  # ISO 8601 date or datetime
    doors_time: str | None = None  # e.g. "21:00"
    holder_name: str | None = None
    merch_size: str | None = None
    merch_name: str | None = None
    includes_merch: bool = False
    currency: str | None = None

    @property
    def serial_number(self) -> str:
        """Pass serial number, unique per order and ticket."""
        return f"{self.order_number}-{self.ticket_code}"

    @property
    def merch_line(self) -> str | None:
        """Merch description, or None if the ticket carries no merch."""
        if not (self.includes_merch or self.merch_size):
            return None
        name = self.merch_name or "Merch"
        if self.merch_size:
            return f"Includes {name} ({self.merch_size})"
        return f"Includes {name}"


class PassVisualSettings(BaseModel):
    """Tenant-level customization shared by Apple and Google passes."""

    model_config = ConfigDict(frozen=True)

    apple_wallet_enabled: bool = False
    google_wallet_enabled: bool = False
    accent_color: str = "#8B5CF6"
    bg_color: str = "#0e0e0e"
    text_color: str = "#ffffff"
    label_color: str = "#8B5CF6"
    organization_name: str = "Entry"
    description: str = "Event Ticket"
    logo_url: str | None = None
    strip_url: str | None = None
    show_holder: bool = True
    show_order_number: bool = True
    show_terms: bool = True
    terms_text: str = DEFAULT_TERMS_TEXT
    apple_pass_type_id: str | None = None
    apple_team_id: str | None = None
    google_issuer_id: str | None = None
    google_class_suffix: str | None = None

    @classmethod
    def merged(cls, stored: Mapping[str, t.Any] | None = None) -> "PassVisualSettings":
        """Overlay stored tenant values on top of the defaults.

        The merge is shallow: unknown keys and ``None`` values are ignored.

        Args:
            stored: The tenant's saved settings, if any.

        Returns:
            Settings with every field populated.
        """
        if not stored:
            return cls()
        values = {key: value for key, value in stored.items() if key in cls.model_fields and value is not None}
        return cls(**values)


def wallet_settings_key(org_id: str) -> str:
    """Storage key for a tenant's wallet pass settings."""
    return f"{org_id}_wallet_passes"


class AppleConfigStatus(BaseModel):
    """Apple Wallet credential presence."""

    enabled: bool
    configured: bool
    has_certificate: bool
    has_wwdr: bool
    has_pass_type_id: bool
    has_team_id: bool


class GoogleConfigStatus(BaseModel):
    """Google Wallet credential presence."""

    enabled: bool
    configured: bool
    has_service_account: bool
    has_issuer_id: bool


class WalletConfigStatus(BaseModel):
    """Which wallet providers can issue passes with the current configuration."""

    apple: AppleConfigStatus
    google: GoogleConfigStatus
