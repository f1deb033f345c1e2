"""HD picture appvar packager.

Splits an image into calculator appvars and bundles them into one gzipped tar
(``.8xg``). It can be invoked through the CLI (``python -m hdpicpack``) or
imported to package a single image.
"""
from pathlib import Path

from .archive import (
    APPVAR_SUFFIX,
    ArchiveError,
    ContainerBuilder,
    Payload,
    append_entry,
    assemble_container,
    read_container,
)
from .compress import compress_to_file, decompress_file
from .identifier import (
    NonAlphabeticCharacterError,
    VarPrefixError,
    WrongLengthError,
    validate_var_prefix,
)
from .image import HDPicture, ImageDecodeError, PictureSource, PictureTile
from .pipeline import (
    OUTPUT_EXTENSION,
    PackageOptions,
    PipelineError,
    PipelineStage,
    output_path_for,
    package_image,
)

__all__ = [
    "APPVAR_SUFFIX",
    "OUTPUT_EXTENSION",
    "ArchiveError",
    "ContainerBuilder",
    "HDPicture",
    "ImageDecodeError",
    "NonAlphabeticCharacterError",
    "PackageOptions",
    "Payload",
    "PictureSource",
    "PictureTile",
    "PipelineError",
    "PipelineStage",
    "VarPrefixError",
    "WrongLengthError",
    "append_entry",
    "assemble_container",
    "compress_to_file",
    "create_picture_bundle",
    "decompress_file",
    "output_path_for",
    "package_image",
    "read_container",
    "validate_var_prefix",
]


def create_picture_bundle(
    image_file: str | Path,
    var_prefix: str,
    out_dir: str | Path = ".",
    no_clobber: bool = False,
) -> Path:
    """Package ``image_file`` into ``{out_dir}/{stem}.8xg``.

    Args:
        image_file: Source image readable by Pillow.
        var_prefix: Two ASCII letters naming every generated appvar.
        out_dir: Directory that receives the bundle.
        no_clobber: Fail instead of overwriting an existing bundle.
    """

    options = PackageOptions(out_dir=Path(out_dir), no_clobber=no_clobber)
    return package_image(image_file, var_prefix, options)
