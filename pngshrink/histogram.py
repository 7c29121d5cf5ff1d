# pngshrink/histogram.py
from __future__ import annotations

"""
Colour histogram and k-means++ palette seeding.

Exports:
  unique_colors_with_inverse(px) -> (colors, counts, inverse)
  build_histogram(raster) -> Histogram
  squared_distances(colors, centroid, workers) -> int64 [U]
  seed_palette(colors, n, rng=None, workers=None) -> Palette
"""

from typing import Optional, Tuple, Union

import numpy as np

from .core_types import Histogram, Palette, PaletteArray, array_to_palette
from .errors import ConfigurationError
from .constants import MAX_PALETTE_SIZE
from .raster import Raster
from .utils import run_spans


def _pack_rgba(px: np.ndarray) -> np.ndarray:
    """(N, 4) uint8 rows to (N,) uint32 keys, R in the high byte."""
    p = px.astype(np.uint32, copy=False)
    return (p[:, 0] << 24) | (p[:, 1] << 16) | (p[:, 2] << 8) | p[:, 3]


def _unpack_rgba(keys: np.ndarray) -> PaletteArray:
    out = np.empty((keys.shape[0], 4), dtype=np.uint8)
    out[:, 0] = (keys >> 24) & 0xFF
    out[:, 1] = (keys >> 16) & 0xFF
    out[:, 2] = (keys >> 8) & 0xFF
    out[:, 3] = keys & 0xFF
    return out


def unique_colors_with_inverse(
    px: np.ndarray,
) -> Tuple[PaletteArray, np.ndarray, np.ndarray]:
    """
    Distinct rows of a (N, 4) uint8 array.

    Returns:
      colors: uint8 [U,4]
      counts: int64 [U]
      inverse: int64 [N], where colors[inverse] reconstructs px
    """
    if px.shape[0] == 0:
        return (
            np.zeros((0, 4), dtype=np.uint8),
            np.zeros((0,), dtype=np.int64),
            np.zeros((0,), dtype=np.int64),
        )
    keys, inverse, counts = np.unique(
        _pack_rgba(px), return_inverse=True, return_counts=True
    )
    return (
        _unpack_rgba(keys),
        counts.astype(np.int64, copy=False),
        inverse.reshape(-1).astype(np.int64, copy=False),
    )


def build_histogram(raster: Raster) -> Histogram:
    """
    Count every distinct RGBA colour of a raster.

    RGB rasters get alpha 255; indexed rasters count the colours their indices resolve to.
    """
    colors, counts, _ = unique_colors_with_inverse(raster.rgba())
    return Histogram(colors, counts)


def squared_distances(
    colors: np.ndarray, centroid: np.ndarray, workers: Optional[int] = None
) -> np.ndarray:
    """Squared RGBA distance of every colour row to one centroid, computed in spans."""
    src = colors.astype(np.int64, copy=False)
    ref = np.asarray(centroid, dtype=np.int64).reshape(1, 4)
    out = np.empty((src.shape[0],), dtype=np.int64)

    def run(start: int, end: int) -> None:
        diff = src[start:end] - ref
        out[start:end] = np.einsum("ij,ij->i", diff, diff)

    run_spans(run, int(src.shape[0]), workers)
    return out


def seed_palette(
    colors: Union[Histogram, np.ndarray],
    n: int,
    rng: Optional[Union[np.random.Generator, int]] = None,
    workers: Optional[int] = None,
) -> Palette:
    """
    k-means++ seeding over distinct colours.

    First centroid is uniform over the colours. Each following one is drawn with
    probability proportional to the squared distance to its nearest chosen centroid.
    The nearest-distance vector is kept incrementally: after each pick only the
    distance to the new centroid is computed and folded in with a minimum, so
    colours already matching a centroid exactly stay at zero and are never drawn.

    With at most n distinct colours every colour becomes its own centroid.
    """
    table = colors.colors if isinstance(colors, Histogram) else np.asarray(colors)
    if table.ndim != 2 or table.shape[1] != 4:
        raise ConfigurationError(f"expected (U,4) colour table, got {table.shape}")
    if n < 1 or n > MAX_PALETTE_SIZE:
        raise ConfigurationError(f"palette size must be in [1, {MAX_PALETTE_SIZE}]")
    num = int(table.shape[0])
    if num == 0:
        raise ConfigurationError("cannot seed a palette from zero colours")
    if num <= n:
        return array_to_palette(table)

    gen = rng if isinstance(rng, np.random.Generator) else np.random.default_rng(rng)

    first = int(gen.integers(num))
    chosen = [first]
    nearest = squared_distances(table, table[first], workers)

    while len(chosen) < n:
        total = float(nearest.sum())
        if total <= 0.0:
            break
        pick = int(gen.choice(num, p=nearest / total))
        chosen.append(pick)
        np.minimum(nearest, squared_distances(table, table[pick], workers), out=nearest)

    return array_to_palette(table[chosen])


__all__ = [
    "unique_colors_with_inverse",
    "build_histogram",
    "squared_distances",
    "seed_palette",
]
