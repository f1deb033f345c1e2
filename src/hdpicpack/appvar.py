"""TI-83 Premium CE / TI-84 Plus CE AppVar (``.8xv``) file framing."""
from __future__ import annotations

import struct
from typing import BinaryIO

SIGNATURE = b"**TI83F*" + bytes([0x1A, 0x0A, 0x00])
COMMENT = b"Created by hdpicpack"
COMMENT_SIZE = 42
NAME_SIZE = 8
APPVAR_TYPE = 0x15
ENTRY_HEADER_SIZE = 0x0D
# Largest appvar body the calculator OS accepts.
MAX_DATA_SIZE = 65505


class AppvarError(ValueError):
    """Raised when data cannot be stored in a single appvar."""


def _encode_name(name: str) -> bytes:
    try:
        encoded = name.upper().encode("ascii")
    except UnicodeEncodeError as exc:
        raise AppvarError(f"Appvar name must be ASCII: {name!r}") from exc
    if not encoded or len(encoded) > NAME_SIZE:
        raise AppvarError(f"Appvar name must be 1-{NAME_SIZE} characters: {name!r}")
    return encoded.ljust(NAME_SIZE, b"\x00")


def build_appvar(name: str, data: bytes, archived: bool = True) -> bytes:
    """Return the complete ``.8xv`` file for ``data`` stored under ``name``."""

    if len(data) > MAX_DATA_SIZE:
        raise AppvarError(
            f"Appvar {name} holds {len(data)} bytes; the limit is {MAX_DATA_SIZE}"
        )

    # Variable data carries its own 2-byte length prefix.
    var_data = struct.pack("<H", len(data)) + data

    entry = b""
    entry += struct.pack("<H", ENTRY_HEADER_SIZE)
    entry += struct.pack("<H", len(var_data))
    entry += bytes([APPVAR_TYPE])
    entry += _encode_name(name)
    entry += bytes([0x00])  # version
    entry += bytes([0x80 if archived else 0x00])
    entry += struct.pack("<H", len(var_data))
    entry += var_data

    checksum = sum(entry) & 0xFFFF
    return (
        SIGNATURE
        + COMMENT[:COMMENT_SIZE].ljust(COMMENT_SIZE, b"\x00")
        + struct.pack("<H", len(entry))
        + entry
        + struct.pack("<H", checksum)
    )


def write_appvar(stream: BinaryIO, name: str, data: bytes, archived: bool = True) -> int:
    return stream.write(build_appvar(name, data, archived=archived))


def read_appvar(blob: bytes) -> tuple[str, bytes]:
    """Parse a ``.8xv`` file and return ``(name, data)``."""

    header_size = len(SIGNATURE) + COMMENT_SIZE
    if not blob.startswith(SIGNATURE) or len(blob) < header_size + 2:
        raise AppvarError("Not an 8xv file")

    (section_len,) = struct.unpack_from("<H", blob, header_size)
    entry = blob[header_size + 2 : header_size + 2 + section_len]
    if len(entry) != section_len or len(blob) < header_size + 4 + section_len:
        raise AppvarError("Truncated 8xv file")

    (checksum,) = struct.unpack_from("<H", blob, header_size + 2 + section_len)
    if sum(entry) & 0xFFFF != checksum:
        raise AppvarError("8xv checksum mismatch")
    if entry[4] != APPVAR_TYPE:
        raise AppvarError(f"Variable type 0x{entry[4]:02X} is not an appvar")

    name = entry[5 : 5 + NAME_SIZE].rstrip(b"\x00").decode("ascii")
    (data_len,) = struct.unpack_from("<H", entry, ENTRY_HEADER_SIZE + 4)
    data = entry[ENTRY_HEADER_SIZE + 6 : ENTRY_HEADER_SIZE + 6 + data_len]
    return name, data
