# pngshrink/codec.py
from __future__ import annotations

"""
PNG decode/encode at the raster boundary.

  decode(data) -> Raster
      Pillow does the parsing. The IHDR bit depth is checked first so that
      anything other than 8 bits per channel fails with UnsupportedDepthError
      instead of being silently widened or narrowed. Palettes keep their
      indices; the tRNS table becomes per-entry alpha (255 when absent).

  encode(raster, params) -> bytes
      Writes IHDR / PLTE / tRNS / IDAT / IEND. Row filtering is done with numpy
      and the filtered scanlines are deflated with zlib, using the level,
      strategy and filter of one EncoderParameters tuple. Pure function of
      its inputs, so concurrent calls are safe.
"""

import io
import struct
import zlib
from dataclasses import dataclass

import numpy as np
from PIL import Image, UnidentifiedImageError

from .buffer import ByteBuffer
from .constants import (
    CHANNELS_INDEXED,
    CHANNELS_RGB,
    CHANNELS_RGBA,
    COMPRESSION_LEVELS,
    FILTER_ADAPTIVE,
    FILTER_AVERAGE,
    FILTER_NAMES,
    FILTER_NONE,
    FILTER_PAETH,
    FILTER_SUB,
    FILTER_UP,
    FILTERS,
    MAX_PALETTE_SIZE,
    OPAQUE,
    STRATEGIES,
    STRATEGY_NAMES,
    SUPPORTED_DEPTH,
)
from .core_types import U8Array
from .errors import ConfigurationError, DecodeError, EncodeError, UnsupportedDepthError
from .raster import Raster

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

# PNG colour types
COLOR_TYPE_GRAY = 0
COLOR_TYPE_RGB = 2
COLOR_TYPE_INDEXED = 3
COLOR_TYPE_GRAY_ALPHA = 4
COLOR_TYPE_RGBA = 6

_COLOR_TYPE_OF_CHANNELS = {
    CHANNELS_INDEXED: COLOR_TYPE_INDEXED,
    CHANNELS_RGB: COLOR_TYPE_RGB,
    CHANNELS_RGBA: COLOR_TYPE_RGBA,
}


@dataclass(frozen=True)
class EncoderParameters:
    """One (compression level, zlib strategy, row filter) tuple."""

    level: int
    strategy: int
    filter: int

    def __post_init__(self) -> None:
        if self.level not in COMPRESSION_LEVELS:
            raise ConfigurationError(f"compression level {self.level} not in 0..9")
        if self.strategy not in STRATEGIES:
            raise ConfigurationError(f"unknown zlib strategy {self.strategy}")
        if self.filter not in FILTERS:
            raise ConfigurationError(f"unknown PNG filter {self.filter}")

    def describe(self) -> str:
        return (
            f"level={self.level} strategy={STRATEGY_NAMES[self.strategy]} "
            f"filter={FILTER_NAMES[self.filter]}"
        )


#  Row filters


def _shift_left_neighbour(rows: np.ndarray, bpp: int) -> np.ndarray:
    out = np.zeros_like(rows)
    out[:, bpp:] = rows[:, :-bpp]
    return out


def _shift_up(rows: np.ndarray) -> np.ndarray:
    out = np.zeros_like(rows)
    out[1:] = rows[:-1]
    return out


def filter_rows(rows: U8Array, bpp: int, filter_type: int) -> U8Array:
    """
    Apply one PNG filter type to every row of a (H, rowbytes) uint8 array.

    Returns filtered residuals (H, rowbytes) uint8. Predictors use the raw
    (unfiltered) neighbours, so every row is computed independently.
    """
    raw = rows.astype(np.int16)
    if filter_type == FILTER_NONE:
        return rows.copy()
    left = _shift_left_neighbour(raw, bpp)
    if filter_type == FILTER_SUB:
        res = raw - left
    else:
        up = _shift_up(raw)
        if filter_type == FILTER_UP:
            res = raw - up
        elif filter_type == FILTER_AVERAGE:
            res = raw - ((left + up) >> 1)
        elif filter_type == FILTER_PAETH:
            upleft = _shift_left_neighbour(up, bpp)
            p = left + up - upleft
            pa = np.abs(p - left)
            pb = np.abs(p - up)
            pc = np.abs(p - upleft)
            pred = np.where((pa <= pb) & (pa <= pc), left, np.where(pb <= pc, up, upleft))
            res = raw - pred
        else:
            raise ConfigurationError(f"not a concrete PNG filter: {filter_type}")
    return (res & 0xFF).astype(np.uint8)


def filter_scanlines(rows: U8Array, bpp: int, filter_type: int) -> U8Array:
    """
    Filtered scanlines with their leading filter-type byte, (H, 1 + rowbytes).

    FILTER_ADAPTIVE picks, per row, the filter with the smallest sum of absolute
    signed residuals (lowest filter type wins ties).
    """
    height, rowbytes = rows.shape
    out = np.empty((height, rowbytes + 1), dtype=np.uint8)
    if filter_type != FILTER_ADAPTIVE:
        out[:, 0] = filter_type
        out[:, 1:] = filter_rows(rows, bpp, filter_type)
        return out

    concrete = (FILTER_NONE, FILTER_SUB, FILTER_UP, FILTER_AVERAGE, FILTER_PAETH)
    candidates = np.stack([filter_rows(rows, bpp, f) for f in concrete])
    cost = np.abs(candidates.view(np.int8).astype(np.int32)).sum(axis=2)
    choice = np.argmin(cost, axis=0)
    out[:, 0] = np.asarray(concrete, dtype=np.uint8)[choice]
    out[:, 1:] = candidates[choice, np.arange(height)]
    return out


#  Encode


def _write_chunk(buf: ByteBuffer, kind: bytes, payload: bytes) -> None:
    buf.append(struct.pack(">I", len(payload)))
    buf.append(kind)
    buf.append(payload)
    buf.append(struct.pack(">I", zlib.crc32(payload, zlib.crc32(kind)) & 0xFFFFFFFF))


def encode_to_buffer(raster: Raster, params: EncoderParameters) -> ByteBuffer:
    """Encode into a fresh ByteBuffer owned by the caller."""
    if raster.width == 0 or raster.height == 0:
        raise EncodeError("cannot encode an empty raster")
    color_type = _COLOR_TYPE_OF_CHANNELS[raster.channels]
    if raster.is_indexed:
        pal = raster.palette_array()
        if pal.shape[0] == 0 or pal.shape[0] > MAX_PALETTE_SIZE:
            raise EncodeError(f"palette of {pal.shape[0]} entries cannot be written")
        if int(raster.indices().max()) >= pal.shape[0]:
            raise EncodeError("pixel index beyond palette")

    rows = raster.pixels().reshape(raster.height, raster.width * raster.channels)
    try:
        scanlines = filter_scanlines(rows, raster.channels, params.filter)
        compressor = zlib.compressobj(
            params.level, zlib.DEFLATED, 15, 9, params.strategy
        )
        idat = compressor.compress(scanlines.tobytes()) + compressor.flush()
    except zlib.error as e:
        raise EncodeError(f"deflate failed ({params.describe()}): {e}") from e

    buf = ByteBuffer(len(idat) + 1024)
    buf.append(PNG_SIGNATURE)
    _write_chunk(
        buf,
        b"IHDR",
        struct.pack(
            ">IIBBBBB",
            raster.width,
            raster.height,
            SUPPORTED_DEPTH,
            color_type,
            0,
            0,
            0,
        ),
    )
    if raster.is_indexed:
        _write_chunk(buf, b"PLTE", pal[:, :3].tobytes())
        alpha = pal[:, 3]
        opaque_tail = np.flatnonzero(alpha != OPAQUE)
        if opaque_tail.size:
            _write_chunk(buf, b"tRNS", alpha[: int(opaque_tail[-1]) + 1].tobytes())
    _write_chunk(buf, b"IDAT", idat)
    _write_chunk(buf, b"IEND", b"")
    return buf


def encode(raster: Raster, params: EncoderParameters) -> bytes:
    """Encode a raster with one parameter tuple; returns a complete PNG stream."""
    return encode_to_buffer(raster, params).getvalue()


#  Decode


def read_ihdr(data: bytes) -> tuple:
    """(width, height, bit_depth, color_type) from the head of a PNG stream."""
    if not data.startswith(PNG_SIGNATURE):
        raise DecodeError("not a PNG stream (bad signature)")
    if len(data) < 33 or data[12:16] != b"IHDR":
        raise DecodeError("PNG stream is missing its IHDR chunk")
    width, height, depth, color_type = struct.unpack(">IIBB", data[16:26])
    return width, height, depth, color_type


def _palette_from_image(im: Image.Image, max_index: int) -> list:
    flat = im.getpalette() or []
    entries = [tuple(flat[i : i + 3]) for i in range(0, len(flat) - len(flat) % 3, 3)]
    entries = entries[:MAX_PALETTE_SIZE]
    while len(entries) <= max_index:
        entries.append((0, 0, 0))
    alpha = [OPAQUE] * len(entries)
    trns = im.info.get("transparency")
    if isinstance(trns, (bytes, bytearray)):
        for i, a in enumerate(trns[: len(entries)]):
            alpha[i] = int(a)
    elif isinstance(trns, int) and 0 <= trns < len(entries):
        alpha[trns] = 0
    return [(r, g, b, a) for (r, g, b), a in zip(entries, alpha)]


def decode(data: bytes) -> Raster:
    """Decode a PNG byte stream into an 8-bit Raster."""
    _w, _h, depth, _ct = read_ihdr(data)
    if depth != SUPPORTED_DEPTH:
        raise UnsupportedDepthError(depth)
    try:
        with Image.open(io.BytesIO(data)) as im:
            im.load()
            if im.mode == "P":
                indices = np.array(im, dtype=np.uint8)
                max_index = int(indices.max()) if indices.size else 0
                return Raster.from_array(indices, palette=_palette_from_image(im, max_index))
            if im.mode == "RGBA":
                rgba = im
            elif im.mode in ("LA", "PA") or "transparency" in im.info:
                rgba = im.convert("RGBA")
            else:
                rgba = im.convert("RGB")
            return Raster.from_array(np.array(rgba, dtype=np.uint8))
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        EOFError,
        SyntaxError,
        ValueError,
    ) as e:
        raise DecodeError(f"could not decode PNG: {e}") from e


__all__ = [
    "PNG_SIGNATURE",
    "EncoderParameters",
    "filter_rows",
    "filter_scanlines",
    "encode_to_buffer",
    "encode",
    "read_ihdr",
    "decode",
]
