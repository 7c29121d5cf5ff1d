# pngshrink/quantize.py
from __future__ import annotations

"""
Nearest-palette quantisation.

Exports:
  nearest_index(color, palette) -> (index, distance)
  nearest_indices(colors, palette_arr, workers) -> (indices int64 [N], errors uint8 [N])
  quantize(raster, palette, workers) -> Quantized(raster, errors)

Distance is squared Euclidean over R,G,B,A. Ties go to the lowest palette index.
The stored error is sqrt(min distance), rounded and clipped to 8 bits.
"""

import math
from typing import NamedTuple, Optional, Sequence, Tuple

import numpy as np

from .core_types import Palette, PaletteArray, gray_ramp, make_palette, palette_to_array
from .errors import ConfigurationError
from .raster import Raster
from .utils import run_spans

# Rows per vectorised block; bounds the (rows, K) distance matrix.
BLOCK_ROWS = 4096

GRAY_RAMP: Palette = gray_ramp()


class Quantized(NamedTuple):
    """Indexed raster plus its per-pixel error raster (gray-ramp palette)."""

    raster: Raster
    errors: Raster

    @property
    def total_error(self) -> int:
        return int(self.errors.indices().astype(np.int64).sum())


def nearest_index(color: Sequence[int], palette: Sequence[Sequence[int]]) -> Tuple[int, float]:
    """
    Linear scan for the closest palette entry.

    Strict '<' keeps the first (lowest) index on ties; an exact match ends the scan.
    Returns (index, sqrt(min squared distance)).
    """
    if len(palette) == 0:
        raise ConfigurationError("palette is empty")
    c = tuple(color) if len(color) == 4 else (*color, 255)
    best_i = 0
    best_d = None
    for i, entry in enumerate(palette):
        e = tuple(entry) if len(entry) == 4 else (*entry, 255)
        d = (
            (c[0] - e[0]) ** 2
            + (c[1] - e[1]) ** 2
            + (c[2] - e[2]) ** 2
            + (c[3] - e[3]) ** 2
        )
        if best_d is None or d < best_d:
            best_i, best_d = i, d
            if d == 0:
                break
    return best_i, math.sqrt(best_d or 0)


def clip_error(distance: np.ndarray) -> np.ndarray:
    """sqrt of squared distances, rounded and clipped to uint8."""
    return np.minimum(np.rint(np.sqrt(distance.astype(np.float64))), 255).astype(np.uint8)


def nearest_indices(
    colors: np.ndarray, palette_arr: PaletteArray, workers: Optional[int] = None
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Nearest palette index and clipped error for every (N, 4) colour row.

    Each span of rows is an independent task writing its own slice of the outputs.
    """
    pal = np.asarray(palette_arr, dtype=np.int32).reshape(-1, 4)
    if pal.shape[0] == 0:
        raise ConfigurationError("palette is empty")
    src = np.asarray(colors).reshape(-1, 4)
    num = int(src.shape[0])
    indices = np.empty((num,), dtype=np.int64)
    errors = np.empty((num,), dtype=np.uint8)

    def run(start: int, end: int) -> None:
        for lo in range(start, end, BLOCK_ROWS):
            hi = min(lo + BLOCK_ROWS, end)
            block = src[lo:hi].astype(np.int32)
            dist = np.zeros((hi - lo, pal.shape[0]), dtype=np.int32)
            for ch in range(4):
                delta = block[:, ch, None] - pal[None, :, ch]
                dist += delta * delta
            best = np.argmin(dist, axis=1)
            indices[lo:hi] = best
            errors[lo:hi] = clip_error(dist[np.arange(hi - lo), best])

    run_spans(run, num, workers, min_span=BLOCK_ROWS)
    return indices, errors


def build_rasters(
    width: int, height: int, indices: np.ndarray, errors: np.ndarray, palette: Palette
) -> Quantized:
    """Wrap flat index/error arrays as an indexed raster and a gray-ramp error raster."""
    return Quantized(
        Raster.indexed(width, height, indices, palette),
        Raster.indexed(width, height, errors, GRAY_RAMP),
    )


def quantize(
    raster: Raster, palette: Sequence[Sequence[int]], workers: Optional[int] = None
) -> Quantized:
    """Map every pixel of raster to its nearest palette entry."""
    pal = make_palette(palette)
    indices, errors = nearest_indices(raster.rgba(), palette_to_array(pal), workers)
    return build_rasters(raster.width, raster.height, indices, errors, pal)


__all__ = [
    "BLOCK_ROWS",
    "GRAY_RAMP",
    "Quantized",
    "nearest_index",
    "nearest_indices",
    "clip_error",
    "build_rasters",
    "quantize",
]
