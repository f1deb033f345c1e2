"""In-memory tar container holding one ``.8xv`` entry per appvar payload."""
from __future__ import annotations

import io
import tarfile
from dataclasses import dataclass
from typing import Iterable, List

APPVAR_SUFFIX = ".8xv"
ENTRY_MODE = 0o644
CONTAINER_FORMAT = tarfile.GNU_FORMAT


@dataclass(frozen=True)
class Payload:
    """A named appvar blob as produced by the image component."""

    name: str
    data: bytes


class ArchiveError(RuntimeError):
    """Raised when the container would be malformed."""


def entry_name_for(payload_name: str) -> str:
    return f"{payload_name}{APPVAR_SUFFIX}"


def append_entry(tar: tarfile.TarFile, name: str, data: bytes) -> tarfile.TarInfo:
    """Append one regular-file entry to an open tar stream.

    The header size is taken from ``data`` itself and the checksum is
    computed by ``tarfile`` when the header block is serialized, after every
    other field has been set. ``tarfile`` only records the member once the
    header and data have both been written.
    """

    info = tarfile.TarInfo(name)
    info.size = len(data)
    info.mode = ENTRY_MODE
    info.mtime = 0
    info.type = tarfile.REGTYPE
    tar.addfile(info, io.BytesIO(data))
    return info


class ContainerBuilder:
    """Collect appvar payloads into a single uncompressed tar buffer."""

    def __init__(self) -> None:
        self._buffer = io.BytesIO()
        self._tar = tarfile.open(fileobj=self._buffer, mode="w", format=CONTAINER_FORMAT)
        self._names: set[str] = set()
        self._finished = False

    @property
    def entry_names(self) -> List[str]:
        return [member.name for member in self._tar.getmembers()]

    def add_payload(self, payload: Payload) -> str:
        if self._finished:
            raise ArchiveError("Container is already finalized")

        name = entry_name_for(payload.name)
        if name in self._names:
            raise ArchiveError(f"Duplicate entry name in container: {name}")

        append_entry(self._tar, name, bytes(payload.data))
        self._names.add(name)
        return name

    def finish(self) -> bytes:
        """Write the end-of-archive trailer and return the container bytes."""

        if not self._finished:
            self._tar.close()
            self._finished = True
        return self._buffer.getvalue()


def assemble_container(tile_payloads: Iterable[Payload], palette_payload: Payload) -> bytes:
    """Build the container: tiles in the order given, then the palette last."""

    builder = ContainerBuilder()
    for payload in tile_payloads:
        builder.add_payload(payload)
    builder.add_payload(palette_payload)
    return builder.finish()


def read_container(buffer: bytes) -> List[Payload]:
    """Decode an assembled container back into its payloads, in stream order."""

    payloads: List[Payload] = []
    try:
        with tarfile.open(fileobj=io.BytesIO(buffer), mode="r:") as tar:
            for member in tar:
                if not member.isfile():
                    raise ArchiveError(f"Unexpected non-file entry: {member.name}")
                if not member.name.endswith(APPVAR_SUFFIX):
                    raise ArchiveError(f"Entry is not an appvar: {member.name}")
                extracted = tar.extractfile(member)
                data = extracted.read() if extracted is not None else b""
                if len(data) != member.size:
                    raise ArchiveError(
                        f"Entry {member.name} is truncated ({len(data)} of {member.size} bytes)"
                    )
                payloads.append(Payload(member.name[: -len(APPVAR_SUFFIX)], data))
    except tarfile.TarError as exc:
        raise ArchiveError(f"Malformed container: {exc}") from exc
    return payloads
