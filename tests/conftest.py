from __future__ import annotations

import io
import struct
import zlib

import numpy as np
import pytest
from PIL import Image

from pngshrink.raster import Raster


def png_bytes(arr: np.ndarray, mode: str | None = None) -> bytes:
    """Encode a numpy array with Pillow."""
    im = Image.fromarray(arr) if mode is None else Image.fromarray(arr).convert(mode)
    buf = io.BytesIO()
    im.save(buf, format="PNG")
    return buf.getvalue()


def _chunk(kind: bytes, payload: bytes) -> bytes:
    crc = zlib.crc32(payload, zlib.crc32(kind)) & 0xFFFFFFFF
    return struct.pack(">I", len(payload)) + kind + payload + struct.pack(">I", crc)


def header_only_png(width: int, height: int) -> bytes:
    """Well-formed 8-bit RGB signature, IHDR and IEND with no pixel data."""
    ihdr = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    return (
        b"\x89PNG\r\n\x1a\n" + _chunk(b"IHDR", ihdr) + _chunk(b"IEND", b"")
    )


def pillow_rgba(data: bytes) -> np.ndarray:
    with Image.open(io.BytesIO(data)) as im:
        return np.array(im.convert("RGBA"), dtype=np.uint8)


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


@pytest.fixture
def rgb_raster(rng) -> Raster:
    return Raster.from_array(rng.integers(0, 256, size=(6, 7, 3), dtype=np.uint8))


@pytest.fixture
def rgba_raster(rng) -> Raster:
    return Raster.from_array(rng.integers(0, 256, size=(5, 9, 4), dtype=np.uint8))


@pytest.fixture
def few_colour_image() -> np.ndarray:
    """16x16 RGB image made of six flat blocks."""
    colours = np.array(
        [
            [250, 10, 10],
            [240, 20, 15],
            [10, 200, 30],
            [20, 190, 40],
            [30, 30, 220],
            [250, 250, 250],
        ],
        dtype=np.uint8,
    )
    idx = (np.arange(16 * 16) // 43).reshape(16, 16)
    return colours[idx]
