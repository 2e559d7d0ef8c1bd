"""Tests for wallet/service.py."""

import io
import json
import typing as t
import zipfile

import pytest

import wallet.service
from wallet.apple.generator import ApplePassGenerator
from wallet.google.generator import GoogleWalletGenerator
from wallet.protocols import WalletPassGenerator
from wallet.results import APPLE_BUNDLE_CONTENT_TYPE
from wallet.schemas import PassVisualSettings, TicketPassData
from wallet.service import (
    WalletService,
    generate_apple_pass,
    generate_apple_pass_bundle,
    generate_google_wallet_url,
    get_wallet_config_status,
    get_wallet_service,
)


@pytest.fixture(autouse=True)
def reset_service_singleton() -> t.Iterator[None]:
    wallet.service._wallet_service = None
    yield
    wallet.service._wallet_service = None


class TestConfigStatus:
    """Tests for the configuration report."""

    def test_nothing_configured(self) -> None:
        status = get_wallet_config_status()

        assert status.apple.model_dump() == {
            "enabled": False,
            "configured": False,
            "has_certificate": False,
            "has_wwdr": False,
            "has_pass_type_id": False,
            "has_team_id": False,
        }
        assert status.google.model_dump() == {
            "enabled": False,
            "configured": False,
            "has_service_account": False,
            "has_issuer_id": False,
        }

    @pytest.mark.usefixtures("apple_wallet_configured", "google_wallet_configured")
    def test_everything_configured(self) -> None:
        status = get_wallet_config_status({"apple_wallet_enabled": True, "google_wallet_enabled": True})

        assert status.apple.enabled and status.apple.configured
        assert status.apple.has_certificate and status.apple.has_wwdr
        assert status.apple.has_pass_type_id and status.apple.has_team_id
        assert status.google.enabled and status.google.configured
        assert status.google.has_service_account and status.google.has_issuer_id

    def test_wwdr_available_through_fetch(self, settings: t.Any) -> None:
        """Allowing the download counts as having the intermediate certificate."""
        settings.APPLE_WWDR_AUTO_FETCH = True

        assert get_wallet_config_status().apple.has_wwdr is True

    def test_tenant_identifiers(self, settings: t.Any) -> None:
        settings.APPLE_PASS_CERTIFICATE = "cert"
        settings.GOOGLE_WALLET_SERVICE_ACCOUNT_KEY = "{}"
        tenant = PassVisualSettings(apple_pass_type_id="pass.com.tenant", apple_team_id="T1", google_issuer_id="338")

        status = get_wallet_config_status(tenant)

        assert status.apple.configured is True
        assert status.google.configured is True

    @pytest.mark.usefixtures("apple_wallet_configured")
    def test_no_io(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """The report only looks at settings; it never decodes or downloads."""

        def explode(*args: t.Any, **kwargs: t.Any) -> t.Any:
            raise AssertionError("status report must not load credentials")

        monkeypatch.setattr("wallet.apple.credentials.load_signer_bundle", explode)
        monkeypatch.setattr("httpx.get", explode)

        assert get_wallet_config_status().apple.configured is True


class TestMissingCredentials:
    """Every public entry point returns None when a provider is not usable."""

    @pytest.mark.parametrize(
        "missing",
        [
            "APPLE_PASS_CERTIFICATE",
            "APPLE_PASS_TYPE_IDENTIFIER",
            "APPLE_PASS_TEAM_IDENTIFIER",
            "APPLE_WWDR_CERTIFICATE",
        ],
    )
    @pytest.mark.usefixtures("apple_wallet_configured")
    def test_apple(self, settings: t.Any, ticket: TicketPassData, missing: str) -> None:
        setattr(settings, missing, "")

        assert generate_apple_pass(ticket) is None
        assert generate_apple_pass_bundle([ticket]) is None

    @pytest.mark.parametrize("missing", ["GOOGLE_WALLET_SERVICE_ACCOUNT_KEY", "GOOGLE_WALLET_ISSUER_ID"])
    @pytest.mark.usefixtures("google_wallet_configured")
    def test_google(self, settings: t.Any, ticket: TicketPassData, missing: str) -> None:
        setattr(settings, missing, "")

        assert generate_google_wallet_url([ticket]) is None

    @pytest.mark.usefixtures("apple_wallet_configured")
    def test_malformed_apple_bundle(self, settings: t.Any, ticket: TicketPassData) -> None:
        settings.APPLE_PASS_CERTIFICATE = "-----BEGIN CERTIFICATE-----\nAAAA\n-----END CERTIFICATE-----\n"

        assert generate_apple_pass(ticket) is None

    @pytest.mark.usefixtures("google_wallet_configured")
    def test_malformed_google_key(self, settings: t.Any, ticket: TicketPassData) -> None:
        settings.GOOGLE_WALLET_SERVICE_ACCOUNT_KEY = "bm90IGpzb24="

        assert generate_google_wallet_url([ticket]) is None

    @pytest.mark.parametrize("stored", [{"show_holder": "maybe"}, {"bg_color": 123}])
    @pytest.mark.usefixtures("apple_wallet_configured", "google_wallet_configured")
    def test_invalid_stored_settings(self, ticket: TicketPassData, stored: dict[str, t.Any]) -> None:
        """Wrongly typed tenant values yield no pass instead of an exception."""
        assert generate_apple_pass(ticket, stored) is None
        assert generate_apple_pass_bundle([ticket], stored) is None
        assert generate_google_wallet_url([ticket], stored) is None

    @pytest.mark.usefixtures("apple_wallet_configured")
    def test_invalid_stored_settings_status_uses_defaults(self) -> None:
        status = get_wallet_config_status({"apple_wallet_enabled": "sometimes", "bg_color": 123})

        assert status.apple.enabled is False
        assert status.apple.configured is True

    def test_empty_orders(self) -> None:
        assert generate_apple_pass_bundle([]) is None
        assert generate_google_wallet_url([]) is None

    @pytest.mark.usefixtures("apple_wallet_configured")
    def test_unexpected_error_is_contained(self, ticket: TicketPassData, monkeypatch: pytest.MonkeyPatch) -> None:
        def explode(*args: t.Any, **kwargs: t.Any) -> t.Any:
            raise RuntimeError("bug")

        monkeypatch.setattr(ApplePassGenerator, "generate", explode)

        assert generate_apple_pass_bundle([ticket]) is None


@pytest.mark.usefixtures("apple_wallet_configured", "google_wallet_configured")
class TestGeneration:
    """Tests for successful generation through the service."""

    def test_apple_pass(self, ticket: TicketPassData) -> None:
        pkpass = generate_apple_pass(ticket)

        assert pkpass is not None
        with zipfile.ZipFile(io.BytesIO(pkpass)) as zf:
            assert json.loads(zf.read("pass.json"))["barcode"]["message"] == ticket.ticket_code

    def test_apple_bundle_with_stored_settings(self, order_tickets: list[TicketPassData]) -> None:
        """A stored settings mapping is merged over the defaults."""
        bundle = generate_apple_pass_bundle(order_tickets, {"organization_name": "Feral", "unknown": 1})

        assert bundle is not None
        assert bundle.content_type == APPLE_BUNDLE_CONTENT_TYPE
        with zipfile.ZipFile(io.BytesIO(bundle.buffer)) as zf:
            first = zf.read(zf.namelist()[0])
        with zipfile.ZipFile(io.BytesIO(first)) as zf:
            assert json.loads(zf.read("pass.json"))["organizationName"] == "Feral"

    def test_google_url(self, ticket: TicketPassData) -> None:
        url = generate_google_wallet_url([ticket])

        assert url is not None
        assert url.startswith("https://pay.google.com/gp/v/save/")

    def test_same_barcode_everywhere(self, ticket: TicketPassData, google_private_key: t.Any) -> None:
        """Apple and Google passes carry the identical ticket code."""
        import jwt

        pkpass = generate_apple_pass(ticket)
        url = generate_google_wallet_url([ticket])

        assert pkpass is not None and url is not None
        with zipfile.ZipFile(io.BytesIO(pkpass)) as zf:
            apple_code = json.loads(zf.read("pass.json"))["barcode"]["message"]
        claims = jwt.decode(
            url.rsplit("/", 1)[-1], google_private_key.public_key(), algorithms=["RS256"], audience="google"
        )
        google_code = claims["payload"]["eventTicketObjects"][0]["barcode"]["value"]
        assert apple_code == google_code == "FERAL-A1B2C3D4"


class TestWalletService:
    """Tests for the service object itself."""

    def test_singleton(self) -> None:
        assert get_wallet_service() is get_wallet_service()

    def test_generators_created_lazily(self) -> None:
        service = WalletService()

        assert service._apple_generator is None
        assert service.apple_generator is service.apple_generator
        assert service.google_generator is service.google_generator

    def test_passes_dependencies_to_apple_generator(self) -> None:
        store = object()
        service = WalletService(media_store=store)  # type: ignore[arg-type]

        assert service.apple_generator.media_store is store

    def test_generators_follow_protocol(self) -> None:
        generators = WalletService().generators()

        assert isinstance(generators["apple"], ApplePassGenerator)
        assert isinstance(generators["google"], GoogleWalletGenerator)
        assert all(isinstance(generator, WalletPassGenerator) for generator in generators.values())
