# pngshrink/palette_order.py
from __future__ import annotations

"""
Palette reindexing helpers.

Exports:
  grey_value(palette_arr) -> int64 [N]
  palette_sort_order(palette, order) -> int64 [N] permutation
  reorder_palette(raster, order="grey") -> Raster
  compact_palette(raster) -> Raster

Both orders are kept as named choices since neither wins on every image:
  "grey"          : integer luma (299 R + 587 G + 114 B) // 1000, then alpha,
                    then channel-lexicographic to break ties
  "lexicographic" : (R, G, B, A)
Reordering and compaction never change the colour any pixel decodes to.
"""

from typing import Sequence

import numpy as np

from .constants import DEFAULT_PALETTE_ORDER, ORDER_GREY, ORDER_LEXICOGRAPHIC, PALETTE_ORDERS
from .core_types import Color, PaletteArray, make_palette, palette_to_array
from .errors import ConfigurationError
from .raster import Raster


def grey_value(palette_arr: PaletteArray) -> np.ndarray:
    """Integer Rec.601 luma of each (N, 4) row."""
    p = palette_arr.astype(np.int64)
    return (299 * p[:, 0] + 587 * p[:, 1] + 114 * p[:, 2]) // 1000


def palette_sort_order(palette: Sequence[Color], order: str = DEFAULT_PALETTE_ORDER) -> np.ndarray:
    """Permutation that sorts palette entries under the named order (stable)."""
    if order not in PALETTE_ORDERS:
        raise ConfigurationError(
            f"unknown palette order {order!r} (expected one of {', '.join(PALETTE_ORDERS)})"
        )
    arr = palette_to_array(palette).astype(np.int64)
    # np.lexsort sorts by the last key first.
    lex_keys = (arr[:, 3], arr[:, 2], arr[:, 1], arr[:, 0])
    if order == ORDER_GREY:
        return np.lexsort(lex_keys + (arr[:, 3], grey_value(arr)))
    if order == ORDER_LEXICOGRAPHIC:
        return np.lexsort(lex_keys)
    raise AssertionError(order)


def _remap(raster: Raster, keep: np.ndarray) -> Raster:
    """New indexed raster whose palette is old_palette[keep]."""
    old_to_new = np.full((len(raster.palette),), -1, dtype=np.int64)  # type: ignore[arg-type]
    old_to_new[keep] = np.arange(keep.shape[0])
    new_idx = old_to_new[raster.indices()]
    pal = palette_to_array(raster.palette)[keep]  # type: ignore[arg-type]
    out = Raster.indexed(raster.width, raster.height, new_idx, make_palette(pal.tolist()))
    out.premultiplied = raster.premultiplied
    return out


def reorder_palette(raster: Raster, order: str = DEFAULT_PALETTE_ORDER) -> Raster:
    """Sort an indexed raster's palette and rewrite its indices to match."""
    if not raster.is_indexed:
        raise ConfigurationError("reorder_palette needs an indexed raster")
    return _remap(raster, palette_sort_order(raster.palette, order))  # type: ignore[arg-type]


def compact_palette(raster: Raster) -> Raster:
    """Drop palette entries no pixel refers to, keeping the order of the rest."""
    if not raster.is_indexed:
        raise ConfigurationError("compact_palette needs an indexed raster")
    used = np.zeros((len(raster.palette),), dtype=bool)  # type: ignore[arg-type]
    used[np.unique(raster.indices())] = True
    if used.all():
        return raster.copy()
    return _remap(raster, np.flatnonzero(used))


__all__ = [
    "ORDER_GREY",
    "ORDER_LEXICOGRAPHIC",
    "grey_value",
    "palette_sort_order",
    "reorder_palette",
    "compact_palette",
]
