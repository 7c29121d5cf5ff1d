# pngshrink/raster.py
from __future__ import annotations

"""
Fixed-stride raster model.

A Raster owns H rows of `stride` bytes each. Pixel bytes live in [0, width*channels)
of every row; anything beyond is padding and is ignored by equality and by every
pixel accessor. Channel layouts:
  1 : indexed (one palette index per pixel, palette required)
  3 : RGB
  4 : RGBA
Only 8-bit depth is supported.
"""

from typing import Iterator, Optional, Sequence

import numpy as np

from .constants import (
    CHANNELS_INDEXED,
    CHANNELS_RGB,
    CHANNELS_RGBA,
    OPAQUE,
    SUPPORTED_DEPTH,
    VALID_CHANNELS,
)
from .core_types import (
    Color,
    Palette,
    PaletteArray,
    U8Array,
    make_palette,
    palette_to_array,
)
from .errors import ConfigurationError
from .fixed_point import fixdiv_array, fixmul_array, premultiply_pixels, unpremultiply_pixels


class Raster:
    """Raw pixel store: width, height, depth, row stride, channel layout, optional palette."""

    __slots__ = (
        "width",
        "height",
        "depth",
        "stride",
        "channels",
        "data",
        "palette",
        "premultiplied",
    )

    def __init__(
        self,
        width: int,
        height: int,
        depth: int = SUPPORTED_DEPTH,
        stride: Optional[int] = None,
        channels: int = CHANNELS_RGBA,
        data: Optional[np.ndarray] = None,
        palette: Optional[Sequence[Sequence[int]]] = None,
        premultiplied: bool = False,
    ) -> None:
        if depth != SUPPORTED_DEPTH:
            raise ConfigurationError(
                f"unsupported bit depth {depth} (only {SUPPORTED_DEPTH} is supported)"
            )
        if width < 0 or height < 0:
            raise ConfigurationError(f"invalid dimensions {width}x{height}")
        if channels not in VALID_CHANNELS:
            raise ConfigurationError(f"unsupported channel count {channels}")
        row_bytes = width * channels
        if stride is None:
            stride = row_bytes
        if stride < row_bytes:
            raise ConfigurationError(
                f"stride {stride} is smaller than width*channels ({row_bytes})"
            )
        if channels == CHANNELS_INDEXED and palette is None:
            raise ConfigurationError("indexed raster requires a palette")

        if data is None:
            buf = np.zeros((height, stride), dtype=np.uint8)
        else:
            arr = np.asarray(data, dtype=np.uint8)
            if arr.size != height * stride:
                raise ConfigurationError(
                    f"pixel storage has {arr.size} bytes, expected {height * stride}"
                )
            buf = np.array(arr, dtype=np.uint8, copy=True).reshape(height, stride)

        self.width = int(width)
        self.height = int(height)
        self.depth = int(depth)
        self.stride = int(stride)
        self.channels = int(channels)
        self.data: U8Array = buf
        self.palette: Optional[Palette] = (
            None if palette is None else make_palette(palette)
        )
        self.premultiplied = bool(premultiplied)

    # constructors

    @classmethod
    def from_array(
        cls,
        pixels: np.ndarray,
        palette: Optional[Sequence[Sequence[int]]] = None,
        premultiplied: bool = False,
    ) -> "Raster":
        """
        Build from a (H, W) index array (palette required), or (H, W, 3|4) colour array.
        """
        arr = np.asarray(pixels)
        if arr.ndim == 2:
            channels = CHANNELS_INDEXED
            h, w = arr.shape
        elif arr.ndim == 3 and arr.shape[2] in (CHANNELS_RGB, CHANNELS_RGBA):
            h, w, channels = arr.shape
        else:
            raise ConfigurationError(f"cannot build raster from shape {arr.shape}")
        if arr.size and (arr.min() < 0 or arr.max() > 255):
            raise ConfigurationError("pixel values must fit in 8 bits")
        return cls(
            w,
            h,
            channels=channels,
            data=arr.astype(np.uint8).reshape(h, w * channels),
            palette=palette,
            premultiplied=premultiplied,
        )

    @classmethod
    def indexed(
        cls, width: int, height: int, indices: np.ndarray, palette: Sequence[Sequence[int]]
    ) -> "Raster":
        """Indexed raster from a flat (or (H, W)) index array."""
        idx = np.asarray(indices)
        if idx.size != width * height:
            raise ConfigurationError(
                f"index array has {idx.size} entries, expected {width * height}"
            )
        if idx.size and (idx.min() < 0 or idx.max() >= len(palette)):
            raise ConfigurationError("index out of palette range")
        return cls(
            width,
            height,
            channels=CHANNELS_INDEXED,
            data=idx.astype(np.uint8).reshape(height, width),
            palette=palette,
        )

    # layout

    @property
    def bpp(self) -> int:
        """Bytes per pixel."""
        return self.channels

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def is_indexed(self) -> bool:
        return self.channels == CHANNELS_INDEXED

    @property
    def has_alpha(self) -> bool:
        if self.channels == CHANNELS_RGBA:
            return True
        if self.is_indexed and self.palette is not None:
            return any(c.a != OPAQUE for c in self.palette)
        return False

    def pixels(self) -> U8Array:
        """(H, W, C) view of pixel bytes, padding excluded. Writes go through."""
        return self.data[:, : self.width * self.channels].reshape(
            self.height, self.width, self.channels
        )

    def row(self, y: int) -> U8Array:
        """View of the pixel bytes of row y."""
        if not 0 <= y < self.height:
            raise IndexError(f"row {y} out of range")
        return self.data[y, : self.width * self.channels]

    def rows(self) -> Iterator[U8Array]:
        for y in range(self.height):
            yield self.data[y, : self.width * self.channels]

    def indices(self) -> np.ndarray:
        """Flat (H*W,) index array; indexed rasters only."""
        if not self.is_indexed:
            raise ConfigurationError("raster is not indexed")
        return self.pixels().reshape(-1)

    def palette_array(self) -> PaletteArray:
        if self.palette is None:
            return np.zeros((0, 4), dtype=np.uint8)
        return palette_to_array(self.palette)

    # per-pixel access

    def pixel(self, index: int) -> Color:
        """Decode pixel at linear index; alpha is synthesised as 255 for RGB."""
        if not 0 <= index < self.area:
            raise IndexError(f"pixel {index} out of range")
        y, x = divmod(int(index), self.width)
        return self.pixel_at(x, y)

    def pixel_at(self, x: int, y: int) -> Color:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"pixel ({x}, {y}) out of range")
        off = x * self.channels
        raw = self.data[y, off : off + self.channels]
        if self.is_indexed:
            return self.palette[int(raw[0])]  # type: ignore[index]
        if self.channels == CHANNELS_RGB:
            return Color(int(raw[0]), int(raw[1]), int(raw[2]), OPAQUE)
        return Color(int(raw[0]), int(raw[1]), int(raw[2]), int(raw[3]))

    def set_pixel_at(self, x: int, y: int, value: Sequence[int]) -> None:
        off = x * self.channels
        self.data[y, off : off + self.channels] = np.asarray(
            value[: self.channels], dtype=np.uint8
        )

    def rgba(self) -> U8Array:
        """(H*W, 4) RGBA copy of every pixel; indexed rasters expand via the palette."""
        if self.is_indexed:
            return self.palette_array()[self.indices()]
        px = self.pixels().reshape(-1, self.channels)
        if self.channels == CHANNELS_RGBA:
            return px.copy()
        out = np.full((px.shape[0], 4), OPAQUE, dtype=np.uint8)
        out[:, :3] = px
        return out

    def to_rgba(self) -> "Raster":
        """RGBA raster with the same pixels (indexed rasters expanded)."""
        return Raster.from_array(
            self.rgba().reshape(self.height, self.width, 4),
            premultiplied=self.premultiplied,
        )

    # value semantics

    def copy(self) -> "Raster":
        return Raster(
            self.width,
            self.height,
            self.depth,
            self.stride,
            self.channels,
            self.data,
            self.palette,
            self.premultiplied,
        )

    __copy__ = copy

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Raster):
            return NotImplemented
        if (
            self.width,
            self.height,
            self.depth,
            self.stride,
            self.channels,
        ) != (other.width, other.height, other.depth, other.stride, other.channels):
            return False
        if self.palette != other.palette:
            return False
        return bool(np.array_equal(self.pixels(), other.pixels()))

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        pal = "-" if self.palette is None else str(len(self.palette))
        return (
            f"Raster({self.width}x{self.height}, channels={self.channels}, "
            f"stride={self.stride}, palette={pal})"
        )


def _with_mapped_alpha(raster: Raster, px_op, pal_op, flag: bool, workers) -> Raster:
    out = raster.copy()
    if out.channels == CHANNELS_RGBA:
        px = out.pixels().reshape(-1, 4).copy()
        px_op(px, workers)
        out.pixels()[...] = px.reshape(out.height, out.width, 4)
    elif out.is_indexed and out.palette is not None:
        pal = out.palette_array()
        mask = pal[:, 3] != OPAQUE
        a = pal[mask, 3][:, None]
        pal[mask, :3] = pal_op(pal[mask, :3], a)
        out.palette = make_palette(pal.tolist())
    out.premultiplied = flag
    return out


def premultiply(raster: Raster, workers: Optional[int] = None) -> Raster:
    """
    Scale R,G,B by alpha for every pixel (or palette entry) whose alpha != 255.
    Returns a new raster; a raster already flagged premultiplied is returned as a copy.
    """
    if raster.premultiplied:
        return raster.copy()
    return _with_mapped_alpha(raster, premultiply_pixels, fixmul_array, True, workers)


def unpremultiply(raster: Raster, workers: Optional[int] = None) -> Raster:
    """Inverse of premultiply. Rounding error grows as alpha shrinks."""
    if not raster.premultiplied:
        return raster.copy()
    return _with_mapped_alpha(raster, unpremultiply_pixels, fixdiv_array, False, workers)


def unpremultiply_palette(palette: Sequence[Color]) -> Palette:
    """Divide colour channels of each non-opaque entry by its alpha."""
    pal = palette_to_array(palette)
    mask = pal[:, 3] != OPAQUE
    pal[mask, :3] = fixdiv_array(pal[mask, :3], pal[mask, 3][:, None])
    return make_palette(pal.tolist())


__all__ = [
    "Raster",
    "premultiply",
    "unpremultiply",
    "unpremultiply_palette",
]
