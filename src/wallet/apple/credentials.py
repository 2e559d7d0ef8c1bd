"""Apple Wallet signing credentials.

A pass is signed with the Pass Type ID certificate and its private key,
and the signature must also carry Apple's WWDR (Worldwide Developer
Relations) intermediate certificate so devices can chain the signer to
Apple's root.

The WWDR certificate is public and identical for every pass signer, so
unless an override is configured it is downloaded once from Apple and kept
in memory for the lifetime of the process.
"""

import base64
import binascii
import re
import threading
from dataclasses import dataclass

import httpx
import structlog
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from django.conf import settings

from wallet.exceptions import AppleCredentialsError
from wallet.schemas import PassVisualSettings

logger = structlog.get_logger(__name__)


PEM_MARKER = "-----BEGIN"
PEM_LINE_LENGTH = 64

CERTIFICATE_FORMATS = ("auto", "pkcs12", "pem")

_PEM_BLOCK_RE = re.compile(
    rb"-----BEGIN (?P<label>[A-Z0-9 ]+)-----\s.*?-----END (?P=label)-----",
    re.DOTALL,
)

SignerKey = rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey


@dataclass(frozen=True)
class SigningCredentials:
    """Everything needed to sign an Apple Wallet pass."""

    certificate: x509.Certificate
    private_key: SignerKey
    wwdr_certificate: x509.Certificate
    pass_type_id: str
    team_id: str


def der_to_pem(der: bytes) -> str:
    """Wrap a DER certificate in PEM armor.

    Args:
        der: The binary certificate.

    Returns:
        PEM text with 64-character base64 lines.
    """
    encoded = base64.b64encode(der).decode("ascii")
    lines = [encoded[i : i + PEM_LINE_LENGTH] for i in range(0, len(encoded), PEM_LINE_LENGTH)]
    return "-----BEGIN CERTIFICATE-----\n" + "\n".join(lines) + "\n-----END CERTIFICATE-----\n"


def _decode_configured_pem(value: str) -> str:
    """Decode a configured certificate that is either PEM text or base64 of it."""
    if PEM_MARKER in value:
        return value
    try:
        decoded = base64.b64decode(value.strip(), validate=False)
    except (binascii.Error, ValueError) as e:
        raise AppleCredentialsError(f"Certificate override is neither PEM nor base64: {e}")
    if PEM_MARKER.encode() in decoded:
        return decoded.decode("utf-8")
    # base64 of a DER file
    return der_to_pem(decoded)


class IntermediateCertificateCache:
    """Process-wide holder for the WWDR intermediate certificate.

    Resolution order: configured override, cached value, network fetch.
    The first successful fetch is kept for the life of the process; a
    failed fetch caches nothing, so the next call tries again. Concurrent
    first calls may both fetch; the lock only keeps the first result.
    """

    def __init__(self) -> None:
        self._pem: str | None = None
        self._lock = threading.Lock()

    @property
    def cached(self) -> str | None:
        """The fetched certificate, if any."""
        return self._pem

    def clear(self) -> None:
        """Forget the fetched certificate."""
        with self._lock:
            self._pem = None

    def get(self, client: httpx.Client | None = None) -> str | None:
        """Return the intermediate certificate as PEM text.

        Args:
            client: HTTP client for the fetch (a short-lived one is used if omitted).

        Returns:
            PEM text, or None if it is not configured and cannot be fetched.

        Raises:
            AppleCredentialsError: If the configured override cannot be decoded.
        """
        override = settings.APPLE_WWDR_CERTIFICATE
        if override:
            return _decode_configured_pem(override)

        if self._pem is not None:
            return self._pem

        if not settings.APPLE_WWDR_AUTO_FETCH:
            logger.info("wwdr_certificate_not_configured")
            return None

        pem = self._fetch(client)
        if pem is None:
            return None

        with self._lock:
            if self._pem is None:
                self._pem = pem
            return self._pem

    def _fetch(self, client: httpx.Client | None) -> str | None:
        url = settings.APPLE_WWDR_CERTIFICATE_URL
        try:
            if client is not None:
                response = client.get(url)
            else:
                response = httpx.get(url, timeout=settings.WALLET_HTTP_TIMEOUT, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("wwdr_certificate_fetch_failed", url=url, error=str(e))
            return None

        der = response.content
        try:
            # Don't cache an error page or a truncated download
            x509.load_der_x509_certificate(der)
        except ValueError as e:
            logger.warning("wwdr_certificate_invalid", url=url, error=str(e))
            return None

        logger.info("wwdr_certificate_fetched", url=url, size=len(der))
        return der_to_pem(der)


_wwdr_cache = IntermediateCertificateCache()


def get_wwdr_cache() -> IntermediateCertificateCache:
    """Get the process-wide intermediate certificate cache."""
    return _wwdr_cache


def _decode_bundle(value: str) -> bytes:
    """Turn the configured signer bundle into bytes (PEM text or binary PKCS#12)."""
    if PEM_MARKER in value:
        return value.encode("utf-8")
    try:
        return base64.b64decode(value.strip(), validate=False)
    except (binascii.Error, ValueError) as e:
        raise AppleCredentialsError(f"Signer bundle is neither PEM nor base64: {e}")


def _check_key(key: object) -> SignerKey:
    if not isinstance(key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
        raise AppleCredentialsError(f"Unsupported signer key type: {type(key).__name__}")
    return key


def load_pkcs12_bundle(data: bytes, password: str = "") -> tuple[x509.Certificate, SignerKey]:
    """Extract the signer certificate and key from a PKCS#12 export.

    Args:
        data: The binary .p12 content.
        password: Export password; an empty password is allowed.

    Returns:
        Tuple of (certificate, private key).

    Raises:
        AppleCredentialsError: If the container cannot be opened or is incomplete.
    """
    candidates: list[bytes | None] = [password.encode()] if password else [None, b""]
    last_error: Exception | None = None
    for candidate in candidates:
        try:
            key, certificate, _ = pkcs12.load_key_and_certificates(data, candidate)
        except ValueError as e:
            last_error = e
            continue
        if key is None or certificate is None:
            raise AppleCredentialsError("Certificate or private key not found in PKCS#12 bundle")
        return certificate, _check_key(key)

    raise AppleCredentialsError(f"Failed to load PKCS#12 bundle: {last_error}")


def load_pem_bundle(data: bytes, password: str = "") -> tuple[x509.Certificate, SignerKey]:
    """Extract the signer certificate and key from concatenated PEM blocks.

    Args:
        data: PEM text holding a certificate and a private key, in any order.
        password: Password for an encrypted private key.

    Returns:
        Tuple of (certificate, private key).

    Raises:
        AppleCredentialsError: If either block is missing or malformed.
    """
    certificate_block: bytes | None = None
    key_block: bytes | None = None
    for match in _PEM_BLOCK_RE.finditer(data):
        label = match.group("label")
        if label == b"CERTIFICATE" and certificate_block is None:
            certificate_block = match.group(0)
        elif label.endswith(b"PRIVATE KEY") and key_block is None:
            key_block = match.group(0)

    if certificate_block is None:
        raise AppleCredentialsError("No certificate found in PEM bundle")
    if key_block is None:
        raise AppleCredentialsError("No private key found in PEM bundle")

    try:
        certificate = x509.load_pem_x509_certificate(certificate_block)
        key = serialization.load_pem_private_key(key_block, password=password.encode() if password else None)
    except (ValueError, TypeError) as e:
        raise AppleCredentialsError(f"Failed to load PEM bundle: {e}")

    return certificate, _check_key(key)


def load_signer_bundle(
    value: str,
    password: str = "",
    bundle_format: str = "auto",
) -> tuple[x509.Certificate, SignerKey]:
    """Decode the configured signer bundle.

    With ``bundle_format="auto"`` PEM text is recognised by its armor and
    anything else is tried as PKCS#12 first, then as PEM. Setting the
    format explicitly disables that fallback.

    Args:
        value: Raw PEM text, or base64 of a PEM file or a .p12 export.
        password: PKCS#12 or private key password.
        bundle_format: One of "auto", "pkcs12", "pem".

    Returns:
        Tuple of (certificate, private key).

    Raises:
        AppleCredentialsError: If the bundle cannot be decoded.
    """
    if bundle_format not in CERTIFICATE_FORMATS:
        raise AppleCredentialsError(f"Unknown certificate format: {bundle_format}")

    data = _decode_bundle(value)

    if bundle_format == "pem":
        return load_pem_bundle(data, password)
    if bundle_format == "pkcs12":
        return load_pkcs12_bundle(data, password)

    if PEM_MARKER.encode() in data:
        return load_pem_bundle(data, password)
    try:
        return load_pkcs12_bundle(data, password)
    except AppleCredentialsError as e:
        logger.warning("pkcs12_parse_failed_trying_pem", error=str(e))
        return load_pem_bundle(data, password)


def resolve_pass_type_id(pass_settings: PassVisualSettings) -> str:
    return pass_settings.apple_pass_type_id or settings.APPLE_PASS_TYPE_IDENTIFIER


def resolve_team_id(pass_settings: PassVisualSettings) -> str:
    return pass_settings.apple_team_id or settings.APPLE_PASS_TEAM_IDENTIFIER


def is_apple_configured(pass_settings: PassVisualSettings) -> bool:
    """Check that the signer bundle and identifiers are set (no I/O).

    Args:
        pass_settings: Tenant settings, which may carry the identifiers.

    Returns:
        True if certificate, pass type ID and team ID are all present.
    """
    return bool(
        settings.APPLE_PASS_CERTIFICATE and resolve_pass_type_id(pass_settings) and resolve_team_id(pass_settings)
    )


def load_apple_config(
    pass_settings: PassVisualSettings,
    client: httpx.Client | None = None,
    wwdr_cache: IntermediateCertificateCache | None = None,
) -> SigningCredentials | None:
    """Load the credentials needed to sign passes.

    Args:
        pass_settings: Tenant settings, which may carry the identifiers.
        client: HTTP client for the intermediate certificate fetch.
        wwdr_cache: Cache to read the intermediate certificate from.

    Returns:
        The credentials, or None if Apple Wallet is not configured or the
        intermediate certificate is unavailable.

    Raises:
        AppleCredentialsError: If configured material is malformed.
    """
    if not is_apple_configured(pass_settings):
        logger.info("apple_wallet_not_configured")
        return None

    cache = wwdr_cache or get_wwdr_cache()
    wwdr_pem = cache.get(client)
    if wwdr_pem is None:
        logger.warning("apple_wallet_wwdr_unavailable")
        return None

    try:
        wwdr_certificate = x509.load_pem_x509_certificate(wwdr_pem.encode("utf-8"))
    except ValueError as e:
        raise AppleCredentialsError(f"Failed to load WWDR certificate: {e}")

    certificate, private_key = load_signer_bundle(
        settings.APPLE_PASS_CERTIFICATE,
        settings.APPLE_PASS_CERTIFICATE_PASSWORD,
        settings.APPLE_PASS_CERTIFICATE_FORMAT,
    )

    return SigningCredentials(
        certificate=certificate,
        private_key=private_key,
        wwdr_certificate=wwdr_certificate,
        pass_type_id=resolve_pass_type_id(pass_settings),
        team_id=resolve_team_id(pass_settings),
    )
