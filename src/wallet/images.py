"""Image utilities for wallet passes.

This module handles the images that go into a pass: a flat-color PNG
placeholder used when an organization has not uploaded a logo, and
resolution of logo/strip references (data URIs, media keys, URLs) into
raw bytes.
"""

import base64
import binascii
import re
import struct
import zlib

import httpx
import structlog
from django.conf import settings

from wallet.archive import crc32
from wallet.protocols import MediaStore

logger = structlog.get_logger(__name__)


PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

# Icon sizes (Apple requirements)
ICON_SIZES: dict[str, int] = {
    "icon.png": 29,
    "icon@2x.png": 58,
}

MEDIA_KEY_PREFIX = "/api/media/"

DEFAULT_ICON_COLOR = (14, 14, 14)

_DATA_URI_RE = re.compile(r"^data:[^;,]+;base64,(.+)$", re.DOTALL)
_HEX_COLOR_RE = re.compile(r"^#?([0-9a-fA-F]{6}|[0-9a-fA-F]{3})$")


def _png_chunk(chunk_type: bytes, payload: bytes) -> bytes:
    """Frame a PNG chunk: length, type, payload, CRC over type + payload."""
    return (
        struct.pack(">I", len(payload))
        + chunk_type
        + payload
        + struct.pack(">I", crc32(chunk_type + payload))
    )


def generate_placeholder_png(color: tuple[int, int, int], size: int = 29) -> bytes:
    """Generate a square, flat-color RGB PNG.

    Args:
        color: (r, g, b) tuple, each 0-255.
        size: Width and height in pixels.

    Returns:
        PNG image as bytes.
    """
    width = height = size
    header = struct.pack(
        ">IIBBBBB",
        width,
        height,
        8,  # bit depth
        2,  # color type: truecolor RGB
        0,  # compression: deflate
        0,  # filter method
        0,  # no interlace
    )

    # Every scanline starts with filter type 0 (None)
    row = b"\x00" + bytes(color) * width
    image_data = zlib.compress(row * height)

    return (
        PNG_SIGNATURE
        + _png_chunk(b"IHDR", header)
        + _png_chunk(b"IDAT", image_data)
        + _png_chunk(b"IEND", b"")
    )


def parse_hex_color(hex_color: str) -> tuple[int, int, int]:
    """Parse a ``#rrggbb`` or ``#rgb`` color into an (r, g, b) tuple.

    Args:
        hex_color: Color such as "#0e0e0e" or "#fff" (leading "#" optional).

    Returns:
        Tuple of (r, g, b) integers; the default icon color if unparseable.
    """
    match = _HEX_COLOR_RE.match(hex_color.strip())
    if not match:
        return DEFAULT_ICON_COLOR
    value = match.group(1)
    if len(value) == 3:
        value = "".join(digit * 2 for digit in value)
    return (int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16))


def _decode_data_uri(uri: str) -> bytes | None:
    match = _DATA_URI_RE.match(uri)
    if not match:
        return None
    try:
        return base64.b64decode(match.group(1), validate=False)
    except (binascii.Error, ValueError):
        return None


def fetch_image_buffer(
    ref: str | None,
    media_store: MediaStore | None = None,
    client: httpx.Client | None = None,
) -> bytes | None:
    """Resolve an image reference into raw bytes.

    Accepts a base64 data URI, an internal media path (``/api/media/<key>``,
    looked up through ``media_store``) or an absolute HTTP(S) URL. Any
    failure yields ``None``: an optional image never blocks pass generation.

    Args:
        ref: The image reference, or None.
        media_store: Lookup for internal media keys.
        client: HTTP client to use for URLs (a short-lived one is created if omitted).

    Returns:
        Image bytes, or None if the reference is empty or cannot be resolved.
    """
    if not ref:
        return None

    if ref.startswith("data:"):
        return _decode_data_uri(ref)

    if ref.startswith(MEDIA_KEY_PREFIX):
        if media_store is None:
            logger.debug("media_store_not_available", ref=ref)
            return None
        key = ref.removeprefix(MEDIA_KEY_PREFIX)
        try:
            stored = media_store.get_image(key)
        except Exception as e:
            logger.warning("media_lookup_failed", key=key, error=str(e))
            return None
        if stored is None:
            return None
        if isinstance(stored, str):
            return _decode_data_uri(stored)
        return stored

    if ref.startswith(("http://", "https://")):
        try:
            if client is not None:
                response = client.get(ref)
            else:
                response = httpx.get(ref, timeout=settings.WALLET_HTTP_TIMEOUT, follow_redirects=True)
        except httpx.HTTPError as e:
            logger.warning("image_fetch_failed", url=ref, error=str(e))
            return None
        if response.status_code != 200:
            logger.warning("image_fetch_failed", url=ref, status=response.status_code)
            return None
        return response.content

    logger.debug("image_reference_unsupported", ref=ref[:40])
    return None
