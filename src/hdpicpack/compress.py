"""gzip output of the assembled container."""
from __future__ import annotations

import gzip
import os
import tempfile
from pathlib import Path

DEFAULT_COMPRESSLEVEL = 6  # zlib's default level


def _current_umask() -> int:
    # os.umask can only be read by setting it
    umask = os.umask(0)
    os.umask(umask)
    return umask


def compress_to_file(
    buffer: bytes,
    destination: str | Path,
    compresslevel: int = DEFAULT_COMPRESSLEVEL,
) -> Path:
    """Write ``buffer`` as a single gzip stream to ``destination``.

    The stream goes to a temporary file next to the destination and is moved
    into place only after the gzip trailer has been flushed, so a failure
    never leaves a truncated file at ``destination``.
    """

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    tmp = tempfile.NamedTemporaryFile(
        dir=destination.parent,
        prefix=f".{destination.name}.",
        suffix=".tmp",
        delete=False,
    )
    tmp_path = Path(tmp.name)
    try:
        with tmp:
            with gzip.GzipFile(
                filename="",
                mode="wb",
                fileobj=tmp,
                compresslevel=compresslevel,
                mtime=0,
            ) as gz:
                gz.write(buffer)
        os.chmod(tmp_path, 0o666 & ~_current_umask())
        os.replace(tmp_path, destination)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    return destination


def decompress_file(path: str | Path) -> bytes:
    with gzip.open(path, "rb") as fh:
        return fh.read()
