"""Apple Wallet pass signing using PKCS#7.

This module handles the cryptographic signing of Apple Wallet passes.
A .pkpass file requires a PKCS#7 detached signature of the manifest.json
file, signed with the Pass Type ID certificate and including the Apple
WWDR (Worldwide Developer Relations) intermediate certificate.

The manifest itself lists a SHA-1 digest per file (that is what Wallet
checks the archive against); the signature over the manifest uses SHA-256.
"""

import hashlib
import json
from collections.abc import Iterable

import structlog
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.serialization import pkcs7

from wallet.apple.credentials import SigningCredentials
from wallet.archive import ContainerEntry
from wallet.exceptions import ApplePassSignerError

logger = structlog.get_logger(__name__)


MANIFEST_FILENAME = "manifest.json"
SIGNATURE_FILENAME = "signature"


def build_manifest(entries: Iterable[ContainerEntry]) -> dict[str, str]:
    """Map each file name to the hex SHA-1 digest of its content.

    Args:
        entries: The pass files (without manifest and signature).

    Returns:
        Dictionary of filename to 40-character hex digest, in entry order.
    """
    return {entry.name: hashlib.sha1(entry.data).hexdigest() for entry in entries}


class ApplePassSigner:
    """Signs Apple Wallet passes using PKCS#7.

    This class creates manifests and generates the detached signature
    required for .pkpass files from already-loaded credentials.
    """

    def __init__(self, credentials: SigningCredentials) -> None:
        """Initialize the signer.

        Args:
            credentials: Signer certificate, key and WWDR intermediate.
        """
        self.credentials = credentials

    def create_manifest(self, entries: Iterable[ContainerEntry]) -> bytes:
        """Create the manifest.json content for a pass.

        Args:
            entries: The pass files. Manifest and signature entries are skipped.

        Returns:
            The manifest.json content as bytes.
        """
        files = [entry for entry in entries if entry.name not in (MANIFEST_FILENAME, SIGNATURE_FILENAME)]
        return json.dumps(build_manifest(files), indent=2).encode("utf-8")

    def sign_manifest(self, manifest_data: bytes) -> bytes:
        """Create a PKCS#7 detached signature of the manifest.

        The SignedData carries the signer and WWDR certificates and the
        content-type, message-digest and signing-time attributes. The
        manifest itself is not embedded.

        Args:
            manifest_data: The manifest.json content to sign.

        Returns:
            The PKCS#7 signature in DER format.

        Raises:
            ApplePassSignerError: If signing fails.
        """
        try:
            signature = (
                pkcs7.PKCS7SignatureBuilder()
                .set_data(manifest_data)
                .add_signer(self.credentials.certificate, self.credentials.private_key, hashes.SHA256())
                .add_certificate(self.credentials.wwdr_certificate)
                .sign(
                    serialization.Encoding.DER,
                    [
                        pkcs7.PKCS7Options.DetachedSignature,
                        pkcs7.PKCS7Options.Binary,
                        pkcs7.PKCS7Options.NoCapabilities,
                    ],
                )
            )
        except Exception as e:
            logger.error("manifest_signing_failed", error=str(e))
            raise ApplePassSignerError(f"Failed to sign manifest: {e}")

        logger.debug(
            "manifest_signed",
            manifest_size=len(manifest_data),
            signature_size=len(signature),
        )

        return signature
