"""Stored (uncompressed) ZIP archive writer.

Wallet pass archives are small and Apple Wallet accepts the "stored"
method, so the writer emits every entry verbatim:

    [local header + name + data] * N
    [central directory record + name] * N
    end of central directory record

All multi-byte integers are little-endian. Sizes and offsets use the
32-bit fields of the classic format, so no entry (and no archive) may
exceed 4 GiB; ``struct`` raises if a value overflows.
"""

import struct
from collections.abc import Iterable
from dataclasses import dataclass

LOCAL_HEADER_SIGNATURE = 0x04034B50
CENTRAL_DIRECTORY_SIGNATURE = 0x02014B50
END_OF_CENTRAL_DIRECTORY_SIGNATURE = 0x06054B50

# Version 2.0: the minimum for stored entries written by any PKZIP-compatible tool
ZIP_VERSION = 20
STORED = 0

_LOCAL_HEADER = struct.Struct("<IHHHHHIIIHH")
_CENTRAL_DIRECTORY_HEADER = struct.Struct("<IHHHHHHIIIHHHHHII")
_END_OF_CENTRAL_DIRECTORY = struct.Struct("<IHHHHIIH")

CRC32_POLYNOMIAL = 0xEDB88320  # IEEE 802.3, reflected


def _build_crc32_table() -> tuple[int, ...]:
    table = []
    for n in range(256):
        crc = n
        for _ in range(8):
            crc = (crc >> 1) ^ CRC32_POLYNOMIAL if crc & 1 else crc >> 1
        table.append(crc)
    return tuple(table)


CRC32_TABLE = _build_crc32_table()


def crc32(data: bytes) -> int:
    """Compute the CRC-32 checksum used by ZIP and PNG.

    Args:
        data: The bytes to checksum.

    Returns:
        The unsigned 32-bit checksum. ``crc32(b"123456789") == 0xCBF43926``.
    """
    crc = 0xFFFFFFFF
    for byte in data:
        crc = (crc >> 8) ^ CRC32_TABLE[(crc ^ byte) & 0xFF]
    return crc ^ 0xFFFFFFFF


@dataclass(frozen=True)
class ContainerEntry:
    """A single file to be stored in an archive."""

    name: str  # archive-relative, no directories
    data: bytes


def build_zip(entries: Iterable[ContainerEntry]) -> bytes:
    """Build a ZIP archive storing every entry without compression.

    Entries are written in the given order. Timestamps are zeroed so the
    same input always yields the same bytes.

    Args:
        entries: Ordered files to store.

    Returns:
        The complete archive as bytes.
    """
    chunks: list[bytes] = []
    central_records: list[bytes] = []
    offset = 0

    for entry in entries:
        name = entry.name.encode("utf-8")
        checksum = crc32(entry.data)
        size = len(entry.data)

        local_header = _LOCAL_HEADER.pack(
            LOCAL_HEADER_SIGNATURE,
            ZIP_VERSION,  # version needed to extract
            0,  # general purpose flags
            STORED,
            0,  # last mod time
            0,  # last mod date
            checksum,
            size,  # compressed size
            size,  # uncompressed size
            len(name),
            0,  # extra field length
        )
        chunks += [local_header, name, entry.data]

        central_records.append(
            _CENTRAL_DIRECTORY_HEADER.pack(
                CENTRAL_DIRECTORY_SIGNATURE,
                ZIP_VERSION,  # version made by
                ZIP_VERSION,  # version needed to extract
                0,
                STORED,
                0,
                0,
                checksum,
                size,
                size,
                len(name),
                0,  # extra field length
                0,  # comment length
                0,  # disk number start
                0,  # internal attributes
                0,  # external attributes
                offset,  # local header offset
            )
            + name
        )
        offset += len(local_header) + len(name) + size

    central_directory = b"".join(central_records)
    end_record = _END_OF_CENTRAL_DIRECTORY.pack(
        END_OF_CENTRAL_DIRECTORY_SIGNATURE,
        0,  # this disk
        0,  # disk with central directory
        len(central_records),  # entries on this disk
        len(central_records),  # total entries
        len(central_directory),
        offset,  # central directory offset
        0,  # comment length
    )

    return b"".join(chunks) + central_directory + end_record
