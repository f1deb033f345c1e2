"""Pillow-backed picture source that splits an image into HD Picture appvars.

The packaging pipeline only relies on the small surface described by
``PictureSource`` and ``PictureTile``; ``HDPicture`` is the implementation the
command line tool uses.
"""
from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import BinaryIO, Callable, Iterator, List, Protocol, Sequence, Tuple

from PIL import Image, UnidentifiedImageError

from .appvar import write_appvar

Color = Tuple[int, int, int]

TILE_SIZE = 80
PALETTE_SIZE = 256
PALETTE_PREFIX = "HP"

QUANTIZERS = {
    "mediancut": Image.Quantize.MEDIANCUT,
    "octree": Image.Quantize.FASTOCTREE,
    "libimagequant": Image.Quantize.LIBIMAGEQUANT,
}
DEFAULT_QUANTIZER = "mediancut"


class ImageDecodeError(Exception):
    """Raised when the input cannot be decoded as a picture."""


class PictureTile(Protocol):
    @property
    def appvar_name(self) -> str: ...

    def write_appvar(self, stream: BinaryIO) -> int: ...


class PictureSource(Protocol):
    @property
    def palette_appvar_name(self) -> str: ...

    def quantize(self) -> "PictureSource": ...

    def tiles(self) -> Iterator[PictureTile]: ...

    def write_palette_appvar(self, stream: BinaryIO) -> int: ...


# stream, display name, validated var prefix
PictureFactory = Callable[[BinaryIO, str, str], PictureSource]


def encode_color_1555(color: Color) -> int:
    r, g, b = color
    return ((r >> 3) << 10) | ((g >> 3) << 5) | (b >> 3)


def encode_palette(palette: Sequence[Color], display_name: str) -> bytes:
    colors = list(palette)[:PALETTE_SIZE]
    colors += [(0, 0, 0)] * (PALETTE_SIZE - len(colors))
    body = b"".join(struct.pack("<H", encode_color_1555(c)) for c in colors)
    return body + display_name.encode("ascii", errors="replace") + b"\x00"


@dataclass
class HDPictureTile:
    """One TILE_SIZE square (or smaller, at the right/bottom edge) of a picture."""

    appvar_name: str
    width: int
    height: int
    indices: bytes

    def appvar_data(self) -> bytes:
        return bytes([self.width, self.height]) + self.indices

    def write_appvar(self, stream: BinaryIO) -> int:
        return write_appvar(stream, self.appvar_name, self.appvar_data())


class HDPicture:
    def __init__(
        self,
        image: Image.Image,
        display_name: str,
        var_prefix: str,
        quantizer: str = DEFAULT_QUANTIZER,
    ):
        if quantizer not in QUANTIZERS:
            raise ValueError(f"Unknown quantizer: {quantizer}")
        self.image = image
        self.display_name = display_name
        self.var_prefix = var_prefix.upper()
        self.quantizer = quantizer

    @classmethod
    def open(
        cls,
        stream: BinaryIO,
        display_name: str,
        var_prefix: str,
        quantizer: str = DEFAULT_QUANTIZER,
    ) -> "HDPicture":
        try:
            image = Image.open(stream)
            image.load()
        except Image.DecompressionBombError as exc:
            raise ImageDecodeError(f"Image is too large to convert: {display_name}: {exc}") from exc
        except UnidentifiedImageError as exc:
            raise ImageDecodeError(f"Unsupported image format: {display_name}") from exc
        except OSError as exc:
            raise ImageDecodeError(f"Failed to decode {display_name}: {exc}") from exc
        return cls(image, display_name, var_prefix, quantizer=quantizer)

    @property
    def is_quantized(self) -> bool:
        return self.image.mode == "P"

    @property
    def palette_appvar_name(self) -> str:
        return f"{PALETTE_PREFIX}{self.var_prefix}"

    def tile_grid(self) -> Tuple[int, int]:
        """Return ``(rows, columns)`` of the tile layout."""

        width, height = self.image.size
        return (
            (height + TILE_SIZE - 1) // TILE_SIZE,
            (width + TILE_SIZE - 1) // TILE_SIZE,
        )

    def tile_name(self, row: int, column: int) -> str:
        return f"{self.var_prefix}{row:03d}{column:03d}"

    def quantize(self) -> "HDPicture":
        rgb = self.image.convert("RGB")
        quantized = rgb.quantize(colors=PALETTE_SIZE, method=QUANTIZERS[self.quantizer])
        return HDPicture(quantized, self.display_name, self.var_prefix, quantizer=self.quantizer)

    def palette(self) -> List[Color]:
        self._require_quantized()
        flat = self.image.getpalette() or []
        return [tuple(flat[i : i + 3]) for i in range(0, len(flat) - 2, 3)][:PALETTE_SIZE]

    def tiles(self) -> Iterator[HDPictureTile]:
        """Yield tiles row by row, left to right."""

        self._require_quantized()
        width, height = self.image.size
        rows, columns = self.tile_grid()
        for row in range(rows):
            for column in range(columns):
                left = column * TILE_SIZE
                top = row * TILE_SIZE
                right = min(left + TILE_SIZE, width)
                bottom = min(top + TILE_SIZE, height)
                crop = self.image.crop((left, top, right, bottom))
                yield HDPictureTile(
                    appvar_name=self.tile_name(row, column),
                    width=right - left,
                    height=bottom - top,
                    indices=crop.tobytes(),
                )

    def palette_appvar_data(self) -> bytes:
        return encode_palette(self.palette(), self.display_name)

    def write_palette_appvar(self, stream: BinaryIO) -> int:
        return write_appvar(stream, self.palette_appvar_name, self.palette_appvar_data())

    def _require_quantized(self) -> None:
        if not self.is_quantized:
            raise ValueError("Picture must be quantized before it can be split into appvars")
