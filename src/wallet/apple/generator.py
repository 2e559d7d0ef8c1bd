"""Apple Wallet pass generator.

This module generates .pkpass files for event tickets. A .pkpass file is
a ZIP archive containing:
- pass.json: The pass definition
- icon.png, icon@2x.png: Required icons
- logo.png, logo@2x.png, strip.png, strip@2x.png: Optional images
- manifest.json: SHA-1 hashes of all files
- signature: PKCS#7 signature of the manifest

Orders with several tickets are delivered as a .pkpasses bundle: a ZIP of
complete, individually signed .pkpass files.
"""

import json
import typing as t
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import httpx
import structlog

from wallet.apple.credentials import SigningCredentials, is_apple_configured, load_apple_config
from wallet.apple.signer import MANIFEST_FILENAME, SIGNATURE_FILENAME, ApplePassSigner
from wallet.archive import ContainerEntry, build_zip
from wallet.exceptions import AppleCredentialsError, ApplePassGeneratorError, ApplePassSignerError
from wallet.formatting import format_display_date, format_iso_date, hex_to_rgb_string, parse_event_date
from wallet.images import ICON_SIZES, fetch_image_buffer, generate_placeholder_png, parse_hex_color
from wallet.protocols import MediaStore
from wallet.results import (
    APPLE_BUNDLE_CONTENT_TYPE,
    APPLE_PASS_CONTENT_TYPE,
    ApplePassBundle,
    PassOutcome,
)
from wallet.schemas import PassVisualSettings, TicketPassData

logger = structlog.get_logger(__name__)


BARCODE_FORMAT_QR = "PKBarcodeFormatQR"
BARCODE_ENCODING = "iso-8859-1"


@dataclass(frozen=True)
class PassColors:
    """Colors for an Apple Wallet pass in RGB format."""

    background: str  # Format: "rgb(r, g, b)"
    foreground: str
    label: str


@dataclass(frozen=True)
class PassField:
    """A field to display on the pass."""

    key: str
    label: str
    value: str
    text_alignment: str | None = None  # PKTextAlignmentLeft, Right, Center, Natural

    def to_dict(self) -> dict[str, str]:
        data = {"key": self.key, "label": self.label, "value": self.value}
        if self.text_alignment:
            data["textAlignment"] = self.text_alignment
        return data


@dataclass(frozen=True)
class Barcode:
    """The QR code shown on the pass. ``message`` is the raw ticket code."""

    message: str
    format: str = BARCODE_FORMAT_QR
    message_encoding: str = BARCODE_ENCODING

    def to_dict(self) -> dict[str, str]:
        return {"format": self.format, "message": self.message, "messageEncoding": self.message_encoding}


@dataclass(frozen=True)
class ApplePassDefinition:
    """The content of pass.json for an event ticket."""

    pass_type_identifier: str
    team_identifier: str
    serial_number: str
    organization_name: str
    description: str
    colors: PassColors
    barcode: Barcode
    primary_fields: list[PassField]
    secondary_fields: list[PassField] = field(default_factory=list)
    auxiliary_fields: list[PassField] = field(default_factory=list)
    back_fields: list[PassField] = field(default_factory=list)
    relevant_date: str | None = None
    format_version: int = 1

    def to_dict(self) -> dict[str, t.Any]:
        """Serialize to Apple's pass.json structure."""
        pass_json: dict[str, t.Any] = {
            "formatVersion": self.format_version,
            "passTypeIdentifier": self.pass_type_identifier,
            "serialNumber": self.serial_number,
            "teamIdentifier": self.team_identifier,
            "organizationName": self.organization_name,
            "description": self.description,
            "foregroundColor": self.colors.foreground,
            "backgroundColor": self.colors.background,
            "labelColor": self.colors.label,
            "eventTicket": {
                "primaryFields": [f.to_dict() for f in self.primary_fields],
                "secondaryFields": [f.to_dict() for f in self.secondary_fields],
                "auxiliaryFields": [f.to_dict() for f in self.auxiliary_fields],
                "backFields": [f.to_dict() for f in self.back_fields],
            },
            # "barcode" for iOS < 9, "barcodes" for everything newer
            "barcode": self.barcode.to_dict(),
            "barcodes": [self.barcode.to_dict()],
        }

        # Lock screen relevance, only for a valid event date
        if self.relevant_date:
            pass_json["relevantDate"] = self.relevant_date

        return pass_json

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict(), ensure_ascii=False).encode("utf-8")


def build_apple_pass_definition(
    ticket: TicketPassData,
    pass_settings: PassVisualSettings,
    pass_type_id: str,
    team_id: str,
) -> ApplePassDefinition:
    """Map a ticket and the tenant settings to a pass definition.

    Args:
        ticket: The ticket to render.
        pass_settings: Tenant pass customization.
        pass_type_id: The Pass Type ID the certificate was issued for.
        team_id: The Apple Developer Team ID.

    Returns:
        The pass definition.
    """
    event_date = parse_event_date(ticket.event_date)

    # Layout:
    # EVENT
    # Name of the Event
    #
    # VENUE                        DATE
    # Venue Name       Thu 27 Mar 2026 · Doors 21:00
    #
    # TICKET                       MERCH
    # General Release  Includes Tee (L)
    secondary_fields: list[PassField] = []
    if ticket.venue_name:
        secondary_fields.append(PassField(key="venue", label="VENUE", value=ticket.venue_name))
    if event_date is not None:
        secondary_fields.append(
            PassField(key="date", label="DATE", value=format_display_date(event_date, ticket.doors_time))
        )

    auxiliary_fields = [PassField(key="ticketType", label="TICKET", value=ticket.ticket_type)]
    merch_line = ticket.merch_line
    if merch_line:
        auxiliary_fields.append(PassField(key="merch", label="MERCH", value=merch_line))

    back_fields: list[PassField] = []
    if pass_settings.show_holder and ticket.holder_name:
        back_fields.append(PassField(key="holder", label="TICKET HOLDER", value=ticket.holder_name))
    if pass_settings.show_order_number:
        back_fields.append(PassField(key="orderNumber", label="ORDER NUMBER", value=ticket.order_number))
    back_fields.append(PassField(key="ticketCode", label="TICKET CODE", value=ticket.ticket_code))
    if pass_settings.show_terms and pass_settings.terms_text:
        back_fields.append(PassField(key="terms", label="TERMS & CONDITIONS", value=pass_settings.terms_text))

    return ApplePassDefinition(
        pass_type_identifier=pass_type_id,
        team_identifier=team_id,
        serial_number=ticket.serial_number,
        organization_name=pass_settings.organization_name,
        description=pass_settings.description,
        colors=PassColors(
            background=hex_to_rgb_string(pass_settings.bg_color),
            foreground=hex_to_rgb_string(pass_settings.text_color),
            label=hex_to_rgb_string(pass_settings.label_color),
        ),
        barcode=Barcode(message=ticket.ticket_code),
        primary_fields=[PassField(key="event", label="EVENT", value=ticket.event_name)],
        secondary_fields=secondary_fields,
        auxiliary_fields=auxiliary_fields,
        back_fields=back_fields,
        relevant_date=format_iso_date(event_date) if event_date is not None else None,
    )


@dataclass(frozen=True)
class PassImages:
    """Resolved tenant images, shared by every pass of an order."""

    logo: bytes | None = None
    strip: bytes | None = None


CredentialsLoader = Callable[[PassVisualSettings], SigningCredentials | None]


class ApplePassGenerator:
    """Generates Apple Wallet .pkpass files and .pkpasses bundles."""

    CONTENT_TYPE = APPLE_PASS_CONTENT_TYPE
    BUNDLE_CONTENT_TYPE = APPLE_BUNDLE_CONTENT_TYPE
    FILE_EXTENSION = "pkpass"
    BUNDLE_FILE_EXTENSION = "pkpasses"

    def __init__(
        self,
        media_store: MediaStore | None = None,
        http_client: httpx.Client | None = None,
        credentials_loader: CredentialsLoader | None = None,
    ) -> None:
        """Initialize the generator.

        Args:
            media_store: Lookup for images referenced by media key.
            http_client: HTTP client for certificate and image fetches.
            credentials_loader: Override for credential loading (defaults to settings).
        """
        self.media_store = media_store
        self.http_client = http_client
        self._credentials_loader = credentials_loader or self._load_credentials

    def _load_credentials(self, pass_settings: PassVisualSettings) -> SigningCredentials | None:
        return load_apple_config(pass_settings, client=self.http_client)

    def is_configured(self, pass_settings: PassVisualSettings) -> bool:
        return is_apple_configured(pass_settings)

    def generate_pass(self, ticket: TicketPassData, pass_settings: PassVisualSettings) -> PassOutcome[bytes]:
        """Generate a .pkpass file for a single ticket.

        Args:
            ticket: The ticket to generate a pass for.
            pass_settings: Tenant pass customization.

        Returns:
            The outcome carrying the .pkpass bytes.
        """
        outcome = self._prepare(pass_settings)
        if not outcome.is_ok:
            return PassOutcome(status=outcome.status, reason=outcome.reason)
        credentials = t.cast(SigningCredentials, outcome.artifact)

        signer = ApplePassSigner(credentials)
        images = self._resolve_images(pass_settings)
        try:
            return PassOutcome.ok(self._build_archive(ticket, pass_settings, signer, images))
        except (ApplePassSignerError, ApplePassGeneratorError) as e:
            return PassOutcome.failed(str(e))

    def generate(
        self,
        tickets: Sequence[TicketPassData],
        pass_settings: PassVisualSettings,
    ) -> PassOutcome[ApplePassBundle]:
        """Generate the download for an order.

        One ticket yields a plain .pkpass; several yield a .pkpasses bundle.
        A ticket whose pass cannot be built is left out of the bundle.

        Args:
            tickets: Tickets of a single order.
            pass_settings: Tenant pass customization.

        Returns:
            The outcome carrying the downloadable file.
        """
        if not tickets:
            logger.warning("apple_pass_bundle_requested_without_tickets")
            return PassOutcome.failed("No tickets to generate passes for")

        outcome = self._prepare(pass_settings)
        if not outcome.is_ok:
            return PassOutcome(status=outcome.status, reason=outcome.reason)
        credentials = t.cast(SigningCredentials, outcome.artifact)

        signer = ApplePassSigner(credentials)
        images = self._resolve_images(pass_settings)

        if len(tickets) == 1:
            ticket = tickets[0]
            try:
                pkpass = self._build_archive(ticket, pass_settings, signer, images)
            except (ApplePassSignerError, ApplePassGeneratorError) as e:
                return PassOutcome.failed(str(e))
            return PassOutcome.ok(
                ApplePassBundle(
                    buffer=pkpass,
                    content_type=self.CONTENT_TYPE,
                    filename=f"{ticket.ticket_code}.{self.FILE_EXTENSION}",
                )
            )

        members: list[ContainerEntry] = []
        for ticket in tickets:
            try:
                pkpass = self._build_archive(ticket, pass_settings, signer, images)
            except (ApplePassSignerError, ApplePassGeneratorError) as e:
                logger.error(
                    "apple_pass_excluded_from_bundle",
                    ticket_code=ticket.ticket_code,
                    order_number=ticket.order_number,
                    error=str(e),
                )
                continue
            members.append(ContainerEntry(name=f"{ticket.ticket_code}.{self.FILE_EXTENSION}", data=pkpass))

        if not members:
            return PassOutcome.failed("No pass in the order could be generated")

        bundle = build_zip(members)
        logger.info(
            "apple_pass_bundle_generated",
            order_number=tickets[0].order_number,
            passes=len(members),
            requested=len(tickets),
            size=len(bundle),
        )
        return PassOutcome.ok(
            ApplePassBundle(
                buffer=bundle,
                content_type=self.BUNDLE_CONTENT_TYPE,
                filename=f"{tickets[0].order_number}-tickets.{self.BUNDLE_FILE_EXTENSION}",
            )
        )

    def _prepare(self, pass_settings: PassVisualSettings) -> PassOutcome[SigningCredentials]:
        """Resolve credentials, mapping configuration gaps and bad material to outcomes."""
        if not self.is_configured(pass_settings):
            logger.info("apple_wallet_not_configured")
            return PassOutcome.unavailable("Apple Wallet is not configured")

        try:
            credentials = self._credentials_loader(pass_settings)
        except AppleCredentialsError as e:
            logger.error("apple_wallet_credentials_invalid", error=str(e))
            return PassOutcome.failed(str(e))

        if credentials is None:
            return PassOutcome.unavailable("Apple Wallet signing credentials are unavailable")
        return PassOutcome.ok(credentials)

    def _resolve_images(self, pass_settings: PassVisualSettings) -> PassImages:
        client = self.http_client
        return PassImages(
            logo=fetch_image_buffer(pass_settings.logo_url, media_store=self.media_store, client=client),
            strip=fetch_image_buffer(pass_settings.strip_url, media_store=self.media_store, client=client),
        )

    def _build_files(
        self,
        definition: ApplePassDefinition,
        pass_settings: PassVisualSettings,
        images: PassImages,
    ) -> list[ContainerEntry]:
        """Build every file of the pass except manifest and signature.

        A custom logo fills both the icon and logo slots at every scale;
        without one, flat icons in the background color are generated.
        """
        files = [ContainerEntry(name="pass.json", data=definition.to_json())]

        icon_color = parse_hex_color(pass_settings.bg_color)
        for filename, size in ICON_SIZES.items():
            files.append(ContainerEntry(name=filename, data=images.logo or generate_placeholder_png(icon_color, size)))

        if images.logo:
            files.append(ContainerEntry(name="logo.png", data=images.logo))
            files.append(ContainerEntry(name="logo@2x.png", data=images.logo))

        if images.strip:
            files.append(ContainerEntry(name="strip.png", data=images.strip))
            files.append(ContainerEntry(name="strip@2x.png", data=images.strip))

        return files

    def _build_archive(
        self,
        ticket: TicketPassData,
        pass_settings: PassVisualSettings,
        signer: ApplePassSigner,
        images: PassImages,
    ) -> bytes:
        """Build, manifest, sign and archive one pass.

        Raises:
            ApplePassSignerError: If signing fails.
            ApplePassGeneratorError: If pass generation fails.
        """
        try:
            definition = build_apple_pass_definition(
                ticket,
                pass_settings,
                pass_type_id=signer.credentials.pass_type_id,
                team_id=signer.credentials.team_id,
            )
            files = self._build_files(definition, pass_settings, images)
        except Exception as e:
            logger.error("pass_generation_failed", ticket_code=ticket.ticket_code, error=str(e))
            raise ApplePassGeneratorError(f"Failed to generate pass: {e}")

        manifest = signer.create_manifest(files)
        signature = signer.sign_manifest(manifest)

        files.append(ContainerEntry(name=MANIFEST_FILENAME, data=manifest))
        files.append(ContainerEntry(name=SIGNATURE_FILENAME, data=signature))

        pkpass = build_zip(files)

        logger.info(
            "pass_generated",
            ticket_code=ticket.ticket_code,
            order_number=ticket.order_number,
            size=len(pkpass),
        )

        return pkpass
