"""Image to ``.8xg`` bundle pipeline.

validate prefix -> open image -> quantize -> render appvars into a tar
container -> gzip to ``{out_dir}/{stem}.8xg``. Every failure is re-raised as a
``PipelineError`` naming the stage it happened in.
"""
from __future__ import annotations

import io
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator, List, Optional

from .appvar import AppvarError
from .archive import ArchiveError, ContainerBuilder, Payload, entry_name_for, read_container
from .compress import compress_to_file, decompress_file
from .identifier import VarPrefixError, validate_var_prefix
from .image import (
    DEFAULT_QUANTIZER,
    HDPicture,
    ImageDecodeError,
    PictureFactory,
    PictureSource,
)

OUTPUT_EXTENSION = "8xg"
DEFAULT_STEM = "image"

Progress = Callable[[str], None]


class PipelineStage(Enum):
    VALIDATE = "validate"
    OUTPUT = "output"
    LOAD = "load"
    QUANTIZE = "quantize"
    ASSEMBLE = "assemble"
    COMPRESS = "compress"
    VERIFY = "verify"


class PipelineError(RuntimeError):
    """A failure in one pipeline stage; the cause is chained."""

    def __init__(self, stage: PipelineStage, cause: BaseException):
        super().__init__(f"{stage.value}: {cause}")
        self.stage = stage
        self.cause = cause


@dataclass
class PackageOptions:
    out_dir: Path = Path(".")
    quantizer: str = DEFAULT_QUANTIZER
    no_clobber: bool = False
    verify: bool = False


_STAGE_ERRORS = (
    VarPrefixError,
    ImageDecodeError,
    AppvarError,
    ArchiveError,
    OSError,
    ValueError,
)


@contextmanager
def _stage(stage: PipelineStage) -> Iterator[None]:
    try:
        yield
    except _STAGE_ERRORS as exc:
        raise PipelineError(stage, exc) from exc


def _no_progress(_message: str) -> None:
    pass


def output_path_for(image_file: str | Path, out_dir: str | Path) -> Path:
    stem = Path(image_file).stem or DEFAULT_STEM
    return Path(out_dir) / f"{stem}.{OUTPUT_EXTENSION}"


def default_picture_factory(quantizer: str = DEFAULT_QUANTIZER) -> PictureFactory:
    def factory(stream, display_name: str, var_prefix: str) -> PictureSource:
        return HDPicture.open(stream, display_name, var_prefix, quantizer=quantizer)

    return factory


def render_payload(name: str, write: Callable[[io.BytesIO], object]) -> Payload:
    buf = io.BytesIO()
    write(buf)
    return Payload(name, buf.getvalue())


def iter_tile_payloads(picture: PictureSource, progress: Progress = _no_progress) -> Iterator[Payload]:
    """Render each tile in the picture's own enumeration order."""

    for tile in picture.tiles():
        progress(tile.appvar_name)
        yield render_payload(tile.appvar_name, tile.write_appvar)


def render_palette_payload(picture: PictureSource, progress: Progress = _no_progress) -> Payload:
    progress("palette")
    return render_payload(picture.palette_appvar_name, picture.write_palette_appvar)


def build_container(picture: PictureSource, progress: Progress = _no_progress) -> tuple[bytes, List[str]]:
    """Fold every tile and then the palette into one tar buffer.

    Payloads are rendered one at a time and dropped once appended.
    """

    builder = ContainerBuilder()
    for payload in iter_tile_payloads(picture, progress):
        builder.add_payload(payload)
    builder.add_payload(render_palette_payload(picture, progress))
    names = builder.entry_names
    return builder.finish(), names


def verify_output(path: Path, entry_names: List[str]) -> List[Payload]:
    """Re-read a written bundle and check its entry names match ``entry_names`` in order.

    Entry lengths are only checked insofar as ``read_container`` rejects
    truncated entries.
    """

    payloads = read_container(decompress_file(path))
    found = [entry_name_for(p.name) for p in payloads]
    if found != entry_names:
        raise ArchiveError(f"Bundle entries {found} do not match {entry_names}")
    return payloads


def package_image(
    image_file: str | Path,
    var_prefix: str,
    options: Optional[PackageOptions] = None,
    progress: Optional[Progress] = None,
    picture_factory: Optional[PictureFactory] = None,
) -> Path:
    """Convert ``image_file`` into a single gzipped bundle of appvars.

    Returns the path of the written ``.8xg`` file.
    """

    options = options or PackageOptions()
    progress = progress or _no_progress
    image_file = Path(image_file)
    factory = picture_factory or default_picture_factory(options.quantizer)

    with _stage(PipelineStage.VALIDATE):
        var_prefix = validate_var_prefix(var_prefix)
        out_path = output_path_for(image_file, options.out_dir)

    if options.no_clobber:
        with _stage(PipelineStage.OUTPUT):
            if out_path.exists():
                raise FileExistsError(f"Output file already exists: {out_path}")

    with _stage(PipelineStage.LOAD):
        progress(f"Opening image file {image_file}")
        with open(image_file, "rb") as fh:
            picture = factory(fh, image_file.name, var_prefix)

    with _stage(PipelineStage.QUANTIZE):
        progress("Quantizing..")
        picture = picture.quantize()

    with _stage(PipelineStage.ASSEMBLE):
        progress(f"Packaging appvars into {out_path}..")
        buffer, entry_names = build_container(picture, progress)

    with _stage(PipelineStage.COMPRESS):
        compress_to_file(buffer, out_path)

    if options.verify:
        with _stage(PipelineStage.VERIFY):
            verify_output(out_path, entry_names)
            progress(f"Verified {len(entry_names)} entries")

    return out_path
