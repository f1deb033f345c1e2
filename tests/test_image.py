from pathlib import Path
import io
import struct
import sys
import zlib

import pytest
from PIL import Image

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from hdpicpack.appvar import read_appvar
from hdpicpack.image import (
    PALETTE_SIZE,
    TILE_SIZE,
    HDPicture,
    ImageDecodeError,
    encode_color_1555,
    encode_palette,
)


def _png_stream(width: int, height: int) -> io.BytesIO:
    image = Image.new("RGB", (width, height))
    image.putdata([((x * 7) % 256, (y * 5) % 256, (x + y) % 256) for y in range(height) for x in range(width)])
    stream = io.BytesIO()
    image.save(stream, format="PNG")
    stream.seek(0)
    return stream


def test_open_rejects_non_image() -> None:
    with pytest.raises(ImageDecodeError):
        HDPicture.open(io.BytesIO(b"definitely not a picture"), "bad.png", "AB")


def test_unknown_quantizer_is_rejected() -> None:
    with pytest.raises(ValueError):
        HDPicture(Image.new("RGB", (1, 1)), "x.png", "AB", quantizer="bogus")


def test_tiles_require_quantized_picture() -> None:
    picture = HDPicture.open(_png_stream(10, 10), "x.png", "AB")
    with pytest.raises(ValueError):
        list(picture.tiles())


def test_tiles_are_row_major_with_cropped_edges() -> None:
    picture = HDPicture.open(_png_stream(TILE_SIZE * 2 + 10, TILE_SIZE + 1), "pic.png", "ab").quantize()

    tiles = list(picture.tiles())

    assert picture.tile_grid() == (2, 3)
    assert [t.appvar_name for t in tiles] == [
        "AB000000",
        "AB000001",
        "AB000002",
        "AB001000",
        "AB001001",
        "AB001002",
    ]
    assert [(t.width, t.height) for t in tiles] == [
        (80, 80),
        (80, 80),
        (10, 80),
        (80, 1),
        (80, 1),
        (10, 1),
    ]
    assert all(len(t.indices) == t.width * t.height for t in tiles)


def test_tile_appvar_holds_dimensions_and_indices() -> None:
    picture = HDPicture.open(_png_stream(5, 3), "pic.png", "CD").quantize()
    (tile,) = picture.tiles()
    stream = io.BytesIO()
    tile.write_appvar(stream)

    name, data = read_appvar(stream.getvalue())
    assert name == "CD000000"
    assert data[:2] == bytes([5, 3])
    assert data[2:] == tile.indices


def test_palette_appvar() -> None:
    picture = HDPicture.open(_png_stream(4, 4), "sunset.png", "Ef").quantize()
    assert picture.palette_appvar_name == "HPEF"

    stream = io.BytesIO()
    picture.write_palette_appvar(stream)
    name, data = read_appvar(stream.getvalue())

    assert name == "HPEF"
    assert len(data) == PALETTE_SIZE * 2 + len("sunset.png") + 1
    assert data.endswith(b"sunset.png\x00")
    first = struct.unpack_from("<H", data, 0)[0]
    assert first == encode_color_1555(picture.palette()[0])


def test_quantize_returns_new_picture() -> None:
    original = HDPicture.open(_png_stream(8, 8), "p.png", "AB")
    quantized = original.quantize()
    assert quantized is not original
    assert not original.is_quantized
    assert quantized.is_quantized
    assert len(quantized.palette()) <= PALETTE_SIZE


def test_encode_color_1555() -> None:
    assert encode_color_1555((0, 0, 0)) == 0
    assert encode_color_1555((255, 255, 255)) == 0x7FFF
    assert encode_color_1555((255, 0, 0)) == 0x7C00
    assert encode_color_1555((0, 0, 255)) == 0x001F


def test_encode_palette_pads_to_full_size() -> None:
    data = encode_palette([(255, 255, 255)], "a")
    assert len(data) == PALETTE_SIZE * 2 + 2
    assert data[:2] == b"\xff\x7f"
    assert data[2:4] == b"\x00\x00"


def test_open_rejects_decompression_bomb() -> None:
    def chunk(chunk_type: bytes, data: bytes) -> bytes:
        return (
            struct.pack(">I", len(data))
            + chunk_type
            + data
            + struct.pack(">I", zlib.crc32(chunk_type + data) & 0xFFFFFFFF)
        )

    header = chunk(b"IHDR", struct.pack(">IIBBBBB", 20000, 20000, 8, 2, 0, 0, 0))
    stream = io.BytesIO(b"\x89PNG\r\n\x1a\n" + header + chunk(b"IEND", b""))

    with pytest.raises(ImageDecodeError, match="too large"):
        HDPicture.open(stream, "huge.png", "AB")
