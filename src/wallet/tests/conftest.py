"""Test fixtures for wallet app tests.

This module provides fixtures for testing wallet pass generation: real
(self-signed) certificates and keys, the settings for configured and
unconfigured providers, HTTP clients backed by a mock transport, and
sample tickets.
"""

import base64
import io
import json
import os
import shutil
import subprocess
import typing as t
from collections.abc import Callable
from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from pathlib import Path

import httpx
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID
from PIL import Image

from wallet.schemas import PassVisualSettings, TicketPassData

PASS_TYPE_ID = "pass.com.example.tickets"
TEAM_ID = "TEAM123456"
ISSUER_ID = "3388000000012345678"
SERVICE_ACCOUNT_EMAIL = "wallet@example-project.iam.gserviceaccount.com"
P12_PASSWORD = "correct horse"


def make_certificate(
    key: rsa.RSAPrivateKey,
    common_name: str,
    organization: str = "Test Org",
) -> x509.Certificate:
    """Build a self-signed certificate valid for a year."""
    subject = issuer = x509.Name(
        [
            x509.NameAttribute(NameOID.COUNTRY_NAME, "US"),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization),
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        ]
    )
    now = datetime.now(dt_timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=5))
        .not_valid_after(now + timedelta(days=365))
        .sign(key, hashes.SHA256())
    )


def key_to_pem(key: rsa.RSAPrivateKey) -> bytes:
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )


def cert_to_pem(certificate: x509.Certificate) -> bytes:
    return certificate.public_bytes(serialization.Encoding.PEM)


# --- Certificate Fixtures ---
# RSA key generation is slow, so keys are shared across the session.


@pytest.fixture(scope="session")
def signer_private_key() -> rsa.RSAPrivateKey:
    """The Pass Type ID private key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def signer_certificate(signer_private_key: rsa.RSAPrivateKey) -> x509.Certificate:
    """A stand-in for the Pass Type ID certificate."""
    return make_certificate(signer_private_key, f"Pass Type ID: {PASS_TYPE_ID}")


@pytest.fixture(scope="session")
def wwdr_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def wwdr_certificate(wwdr_private_key: rsa.RSAPrivateKey) -> x509.Certificate:
    """A stand-in for the Apple WWDR intermediate certificate."""
    return make_certificate(
        wwdr_private_key,
        "Apple Worldwide Developer Relations Certification Authority",
        organization="Apple Inc.",
    )


@pytest.fixture(scope="session")
def wwdr_der(wwdr_certificate: x509.Certificate) -> bytes:
    return wwdr_certificate.public_bytes(serialization.Encoding.DER)


@pytest.fixture(scope="session")
def wwdr_pem(wwdr_certificate: x509.Certificate) -> str:
    return cert_to_pem(wwdr_certificate).decode("ascii")


@pytest.fixture(scope="session")
def pem_bundle(signer_certificate: x509.Certificate, signer_private_key: rsa.RSAPrivateKey) -> str:
    """Signer certificate followed by its key, as one PEM text."""
    return (cert_to_pem(signer_certificate) + key_to_pem(signer_private_key)).decode("ascii")


@pytest.fixture(scope="session")
def pkcs12_bundle(signer_certificate: x509.Certificate, signer_private_key: rsa.RSAPrivateKey) -> bytes:
    """Password-protected .p12 export of the signer certificate and key."""
    return pkcs12.serialize_key_and_certificates(
        b"pass-signer",
        signer_private_key,
        signer_certificate,
        None,
        serialization.BestAvailableEncryption(P12_PASSWORD.encode()),
    )


@pytest.fixture(scope="session")
def unprotected_pkcs12_bundle(
    signer_certificate: x509.Certificate, signer_private_key: rsa.RSAPrivateKey
) -> bytes:
    """.p12 export without a password."""
    return pkcs12.serialize_key_and_certificates(
        b"pass-signer",
        signer_private_key,
        signer_certificate,
        None,
        serialization.NoEncryption(),
    )


@pytest.fixture(scope="session")
def google_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def service_account_json(google_private_key: rsa.RSAPrivateKey) -> str:
    """A service account key file as downloaded from Google Cloud."""
    return json.dumps(
        {
            "type": "service_account",
            "project_id": "example-project",
            "private_key_id": "0123456789abcdef",
            "private_key": key_to_pem(google_private_key).decode("ascii"),
            "client_email": SERVICE_ACCOUNT_EMAIL,
            "client_id": "123456789012345678901",
        }
    )


# --- Settings Fixtures ---


@pytest.fixture
def apple_wallet_configured(settings: t.Any, pem_bundle: str, wwdr_pem: str) -> None:
    """Configure Apple Wallet with a PEM signer bundle and a WWDR override."""
    settings.APPLE_PASS_CERTIFICATE = pem_bundle
    settings.APPLE_WWDR_CERTIFICATE = wwdr_pem
    settings.APPLE_PASS_TYPE_IDENTIFIER = PASS_TYPE_ID
    settings.APPLE_PASS_TEAM_IDENTIFIER = TEAM_ID


@pytest.fixture
def google_wallet_configured(settings: t.Any, service_account_json: str) -> None:
    """Configure Google Wallet with a raw JSON service account key."""
    settings.GOOGLE_WALLET_SERVICE_ACCOUNT_KEY = service_account_json
    settings.GOOGLE_WALLET_ISSUER_ID = ISSUER_ID
    settings.WALLET_SITE_URL = "https://tickets.example.com"


# --- HTTP Fixtures ---

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def make_http_client() -> Callable[[Handler], httpx.Client]:
    """Build an httpx client whose requests are answered by ``handler``."""

    def _make(handler: Handler) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(handler))

    return _make


@pytest.fixture
def wwdr_http_client(wwdr_der: bytes) -> tuple[httpx.Client, list[httpx.Request]]:
    """A client serving the WWDR certificate, plus the list of requests it saw."""
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, content=wwdr_der)

    return httpx.Client(transport=httpx.MockTransport(handler)), requests


# --- Signature Verification ---


@pytest.fixture
def openssl_verify(tmp_path: Path) -> Callable[[bytes, bytes], subprocess.CompletedProcess[str]]:
    """Verify a detached DER signature over some content with the openssl CLI.

    The certificate chain is not checked (the test certificates are self-signed).
    """
    if shutil.which("openssl") is None:
        pytest.skip("openssl binary not available")

    def _verify(signature: bytes, content: bytes) -> subprocess.CompletedProcess[str]:
        signature_path = tmp_path / "signature"
        content_path = tmp_path / "manifest.json"
        signature_path.write_bytes(signature)
        content_path.write_bytes(content)
        return subprocess.run(
            [
                "openssl", "smime", "-verify", "-binary", "-noverify",
                "-in", str(signature_path),
                "-inform", "DER",
                "-content", str(content_path),
                "-out", os.devnull,
            ],
            capture_output=True,
            text=True,
            check=False,
        )

    return _verify


# --- Image Fixtures ---


@pytest.fixture
def sample_logo_bytes() -> bytes:
    """A 100x100 red PNG."""
    img = Image.new("RGB", (100, 100), (255, 0, 0))
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def sample_logo_data_uri(sample_logo_bytes: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(sample_logo_bytes).decode("ascii")


# --- Ticket Fixtures ---


@pytest.fixture
def ticket() -> TicketPassData:
    """A general release ticket with every optional field set."""
    return TicketPassData(
        ticket_code="FERAL-A1B2C3D4",
        event_name="Feral Fridays: Spring Rave",
        order_number="FERAL-00001",
        ticket_type="General Release",
        venue_name="The Warehouse",
        event_date="2026-03-27T22:00:00Z",
        doors_time="21:00",
        holder_name="Alex Doe",
        currency="GBP",
    )


@pytest.fixture
def order_tickets(ticket: TicketPassData) -> list[TicketPassData]:
    """Three tickets of the same order."""
    return [
        ticket,
        ticket.model_copy(update={"ticket_code": "FERAL-E5F6G7H8", "holder_name": "Sam Roe"}),
        ticket.model_copy(update={"ticket_code": "FERAL-J9K0L1M2", "holder_name": None}),
    ]


@pytest.fixture
def pass_settings() -> PassVisualSettings:
    return PassVisualSettings()
