"""Google Wallet "Save to Wallet" link generation.

Google Wallet passes are added through a signed JWT:
1. Each ticket becomes an event ticket object
2. The pass class (template) is embedded inline in every object, so no
   class has to be created through the API beforehand
3. The objects are signed into a JWT with the service account key
4. The customer opens https://pay.google.com/gp/v/save/<jwt>

Nothing is sent to Google here; the token is validated when the link is
opened.
"""

import base64
import binascii
import json
import typing as t
from collections.abc import Sequence
from dataclasses import dataclass, field

import jwt
import structlog
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from django.conf import settings
from django.utils import timezone

from wallet.exceptions import GoogleWalletError
from wallet.formatting import format_doors_open, format_iso_date, normalize_hex_color, parse_event_date
from wallet.results import PassOutcome
from wallet.schemas import PassVisualSettings, TicketPassData

logger = structlog.get_logger(__name__)


SAVE_URL_PREFIX = "https://pay.google.com/gp/v/save/"
DEFAULT_CLASS_SUFFIX = "event_ticket"
DEFAULT_LANGUAGE = "en"


@dataclass(frozen=True)
class GoogleWalletConfig:
    """Service account credentials for signing save links."""

    issuer_id: str
    service_account_email: str
    private_key: rsa.RSAPrivateKey


def _strip_none(data: dict[str, t.Any]) -> dict[str, t.Any]:
    return {key: value for key, value in data.items() if value is not None}


@dataclass(frozen=True)
class LocalizedString:
    value: str
    language: str = DEFAULT_LANGUAGE

    def to_dict(self) -> dict[str, t.Any]:
        return {"defaultValue": {"language": self.language, "value": self.value}}


@dataclass(frozen=True)
class ImageModule:
    """An image referenced by absolute URI."""

    uri: str
    description: str

    def to_dict(self) -> dict[str, t.Any]:
        return {
            "sourceUri": {"uri": self.uri},
            "contentDescription": LocalizedString(self.description).to_dict(),
        }


@dataclass(frozen=True)
class TextModule:
    id: str
    header: str
    body: str

    def to_dict(self) -> dict[str, str]:
        return {"header": self.header, "body": self.body, "id": self.id}


@dataclass(frozen=True)
class EventDateTime:
    start: str
    doors_open: str | None = None

    def to_dict(self) -> dict[str, t.Any]:
        return _strip_none({"start": self.start, "doorsOpen": self.doors_open})


@dataclass(frozen=True)
class EventTicketClass:
    """Inline class definition carried by each object."""

    id: str
    event_name: str
    issuer_name: str
    hex_background_color: str
    logo: ImageModule | None = None
    review_status: str = "UNDER_REVIEW"

    def to_dict(self) -> dict[str, t.Any]:
        return _strip_none(
            {
                "id": self.id,
                "eventName": LocalizedString(self.event_name).to_dict(),
                "issuerName": self.issuer_name,
                "reviewStatus": self.review_status,
                "hexBackgroundColor": self.hex_background_color,
                "logo": self.logo.to_dict() if self.logo else None,
            }
        )


@dataclass(frozen=True)
class EventTicketObject:
    """A Google Wallet event ticket for one ticket."""

    id: str
    class_id: str
    event_name: str
    barcode_value: str
    hex_background_color: str
    class_reference: EventTicketClass
    text_modules: list[TextModule] = field(default_factory=list)
    venue_name: str | None = None
    date_time: EventDateTime | None = None
    logo: ImageModule | None = None
    hero_image: ImageModule | None = None
    state: str = "ACTIVE"

    def to_dict(self) -> dict[str, t.Any]:
        """Serialize to the Wallet API eventTicketObject resource."""
        return _strip_none(
            {
                "id": self.id,
                "classId": self.class_id,
                "state": self.state,
                "heroImage": self.hero_image.to_dict() if self.hero_image else None,
                "textModulesData": [module.to_dict() for module in self.text_modules],
                "barcode": {"type": "QR_CODE", "value": self.barcode_value},
                "eventName": LocalizedString(self.event_name).to_dict(),
                "venue": {"name": LocalizedString(self.venue_name).to_dict()} if self.venue_name else None,
                "dateTime": self.date_time.to_dict() if self.date_time else None,
                "hexBackgroundColor": self.hex_background_color,
                "logo": self.logo.to_dict() if self.logo else None,
                "classReference": self.class_reference.to_dict(),
            }
        )


def get_site_url() -> str:
    """The public origin of the site, without trailing slash ("" if unknown)."""
    if settings.WALLET_SITE_URL:
        return settings.WALLET_SITE_URL.rstrip("/")
    if settings.VERCEL_PROJECT_PRODUCTION_URL:
        return f"https://{settings.VERCEL_PROJECT_PRODUCTION_URL}".rstrip("/")
    if settings.VERCEL_URL:
        return f"https://{settings.VERCEL_URL}".rstrip("/")
    return ""


def resolve_absolute_url(url: str) -> str:
    """Make an image reference absolute, as Google Wallet requires.

    Absolute URLs and data URIs are returned unchanged. Relative paths are
    joined to the site origin; without a known origin they stay relative.

    Args:
        url: The image reference.

    Returns:
        The absolute URL where possible.
    """
    if url.startswith(("http://", "https://", "data:")):
        return url
    site_url = get_site_url()
    if not site_url:
        logger.warning("google_wallet_relative_image_url", url=url)
        return url
    return f"{site_url}{'' if url.startswith('/') else '/'}{url}"


def _image(url: str | None, description: str) -> ImageModule | None:
    if not url:
        return None
    return ImageModule(uri=resolve_absolute_url(url), description=description)


def build_google_pass_object(
    ticket: TicketPassData,
    pass_settings: PassVisualSettings,
    issuer_id: str,
) -> EventTicketObject:
    """Map a ticket and the tenant settings to an event ticket object.

    Args:
        ticket: The ticket to render.
        pass_settings: Tenant pass customization.
        issuer_id: The Google Wallet issuer ID.

    Returns:
        The pass object, with its class embedded.
    """
    class_suffix = pass_settings.google_class_suffix or DEFAULT_CLASS_SUFFIX
    class_id = f"{issuer_id}.{class_suffix}"
    # Object ids allow only word characters and dots after the issuer prefix
    object_id = f"{issuer_id}.{ticket.ticket_code.replace('-', '_')}"

    text_modules = [TextModule(id="ticket_type", header="TICKET", body=ticket.ticket_type)]
    merch_line = ticket.merch_line
    if merch_line:
        text_modules.append(TextModule(id="merch", header="MERCH", body=merch_line))
    if pass_settings.show_holder and ticket.holder_name:
        text_modules.append(TextModule(id="holder", header="TICKET HOLDER", body=ticket.holder_name))
    if pass_settings.show_order_number:
        text_modules.append(TextModule(id="order", header="ORDER", body=ticket.order_number))

    event_date = parse_event_date(ticket.event_date)
    date_time = None
    if event_date is not None:
        date_time = EventDateTime(
            start=format_iso_date(event_date),
            doors_open=format_doors_open(event_date, ticket.doors_time),
        )

    logo = _image(pass_settings.logo_url, pass_settings.organization_name)
    background = normalize_hex_color(pass_settings.bg_color)

    return EventTicketObject(
        id=object_id,
        class_id=class_id,
        event_name=ticket.event_name,
        barcode_value=ticket.ticket_code,
        hex_background_color=background,
        text_modules=text_modules,
        venue_name=ticket.venue_name or None,
        date_time=date_time,
        logo=logo,
        hero_image=_image(pass_settings.strip_url, pass_settings.organization_name),
        class_reference=EventTicketClass(
            id=class_id,
            event_name=ticket.event_name,
            issuer_name=pass_settings.organization_name,
            hex_background_color=background,
            logo=logo,
        ),
    )


def resolve_issuer_id(pass_settings: PassVisualSettings) -> str:
    return pass_settings.google_issuer_id or settings.GOOGLE_WALLET_ISSUER_ID


def is_google_configured(pass_settings: PassVisualSettings) -> bool:
    """Check that the service account key and issuer ID are set (no I/O)."""
    return bool(settings.GOOGLE_WALLET_SERVICE_ACCOUNT_KEY and resolve_issuer_id(pass_settings))


def load_google_config(pass_settings: PassVisualSettings) -> GoogleWalletConfig | None:
    """Parse the configured service account key.

    The key is the JSON file downloaded from Google Cloud, either verbatim
    or base64-encoded.

    Args:
        pass_settings: Tenant settings, which may carry the issuer ID.

    Returns:
        The config, or None if Google Wallet is not configured.

    Raises:
        GoogleWalletError: If the key cannot be parsed.
    """
    if not is_google_configured(pass_settings):
        logger.info("google_wallet_not_configured")
        return None

    raw = settings.GOOGLE_WALLET_SERVICE_ACCOUNT_KEY
    try:
        decoded = raw if "{" in raw else base64.b64decode(raw.strip()).decode("utf-8")
        key_data = json.loads(decoded)
        client_email = key_data["client_email"]
        private_key_pem = key_data["private_key"]
    except (binascii.Error, UnicodeDecodeError, ValueError, KeyError, TypeError) as e:
        raise GoogleWalletError(f"Failed to parse service account key: {type(e).__name__}")

    try:
        private_key = serialization.load_pem_private_key(private_key_pem.encode("utf-8"), password=None)
    except (ValueError, TypeError) as e:
        raise GoogleWalletError(f"Failed to load service account private key: {e}")
    if not isinstance(private_key, rsa.RSAPrivateKey):
        raise GoogleWalletError("Service account private key is not an RSA key")

    return GoogleWalletConfig(
        issuer_id=resolve_issuer_id(pass_settings),
        service_account_email=client_email,
        private_key=private_key,
    )


def create_save_jwt(pass_objects: Sequence[EventTicketObject], config: GoogleWalletConfig) -> str:
    """Sign the pass objects into a "savetowallet" JWT (RS256).

    Args:
        pass_objects: The event ticket objects to save.
        config: Service account credentials.

    Returns:
        The compact JWT: three base64url segments joined by dots.
    """
    claims: dict[str, t.Any] = {
        "iss": config.service_account_email,
        "aud": "google",
        "typ": "savetowallet",
        "iat": int(timezone.now().timestamp()),
        "payload": {
            "eventTicketObjects": [obj.to_dict() for obj in pass_objects],
        },
    }
    site_url = get_site_url()
    if site_url:
        claims["origins"] = [site_url]

    return jwt.encode(claims, config.private_key, algorithm="RS256", headers={"typ": "JWT"})


class GoogleWalletGenerator:
    """Builds "Save to Google Wallet" links for the tickets of an order."""

    def is_configured(self, pass_settings: PassVisualSettings) -> bool:
        return is_google_configured(pass_settings)

    def generate(
        self,
        tickets: Sequence[TicketPassData],
        pass_settings: PassVisualSettings,
    ) -> PassOutcome[str]:
        """Build the save URL for all tickets in one link.

        Args:
            tickets: Tickets of a single order.
            pass_settings: Tenant pass customization.

        Returns:
            The outcome carrying the save URL.
        """
        if not tickets:
            logger.warning("google_wallet_requested_without_tickets")
            return PassOutcome.failed("No tickets to generate passes for")

        try:
            config = load_google_config(pass_settings)
        except GoogleWalletError as e:
            logger.error("google_wallet_credentials_invalid", error=str(e))
            return PassOutcome.failed(str(e))

        if config is None:
            return PassOutcome.unavailable("Google Wallet is not configured")

        pass_objects = [build_google_pass_object(ticket, pass_settings, config.issuer_id) for ticket in tickets]
        try:
            token = create_save_jwt(pass_objects, config)
        except (jwt.PyJWTError, ValueError, TypeError) as e:
            logger.error("google_wallet_signing_failed", error=str(e))
            return PassOutcome.failed(f"Failed to sign save link: {e}")

        logger.info(
            "google_wallet_link_generated",
            order_number=tickets[0].order_number,
            passes=len(pass_objects),
        )
        return PassOutcome.ok(f"{SAVE_URL_PREFIX}{token}")
