# pngshrink/core_types.py
from __future__ import annotations

"""
Core type aliases, small value objects, and lightweight helpers.
"""

from dataclasses import dataclass
from typing import Iterable, NamedTuple, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

from .constants import GRAY_RAMP_SIZE, MAX_PALETTE_SIZE, OPAQUE
from .errors import ConfigurationError

# Basic aliases

U8Array = NDArray[np.uint8]
I64Array = NDArray[np.int64]
PaletteArray = NDArray[np.uint8]  # (N, 4) RGBA rows
IndexArray = NDArray[np.int64]  # (H*W,) palette indices


# Value objects


class Color(NamedTuple):
    """8-bit RGBA colour; each channel is a [0,1) fixed-point value."""

    r: int
    g: int
    b: int
    a: int = OPAQUE


TRANSPARENT_BLACK = Color(0, 0, 0, 0)

Palette = Tuple[Color, ...]


@dataclass(frozen=True)
class Histogram:
    """Distinct colours of a raster with their occurrence counts."""

    colors: PaletteArray  # (U, 4) uint8
    counts: I64Array  # (U,)

    def __len__(self) -> int:
        return int(self.colors.shape[0])

    @property
    def total(self) -> int:
        return int(self.counts.sum())

    def as_dict(self) -> dict[Color, int]:
        return {
            Color(*map(int, row)): int(n)
            for row, n in zip(self.colors.tolist(), self.counts.tolist())
        }


# Small helpers


def make_palette(colors: Iterable[Sequence[int]]) -> Palette:
    """Build a Palette from any iterable of 3- or 4-channel rows."""
    out = []
    for c in colors:
        if len(c) == 3:
            out.append(Color(int(c[0]), int(c[1]), int(c[2]), OPAQUE))
        elif len(c) == 4:
            out.append(Color(int(c[0]), int(c[1]), int(c[2]), int(c[3])))
        else:
            raise ConfigurationError(f"palette entry must have 3 or 4 channels: {c!r}")
    pal = tuple(out)
    validate_palette(pal)
    return pal


def validate_palette(palette: Sequence[Color]) -> None:
    """Raise ConfigurationError for empty/oversized palettes or out-of-range channels."""
    if len(palette) == 0:
        raise ConfigurationError("palette is empty")
    if len(palette) > MAX_PALETTE_SIZE:
        raise ConfigurationError(
            f"palette has {len(palette)} entries (limit {MAX_PALETTE_SIZE})"
        )
    for c in palette:
        if any(v < 0 or v > 255 for v in c):
            raise ConfigurationError(f"palette entry out of 8-bit range: {c!r}")


def palette_to_array(palette: Sequence[Color]) -> PaletteArray:
    """Palette as a (N, 4) uint8 array."""
    if len(palette) == 0:
        return np.zeros((0, 4), dtype=np.uint8)
    return np.array([tuple(c) for c in palette], dtype=np.uint8).reshape(-1, 4)


def array_to_palette(arr: np.ndarray) -> Palette:
    """(N, 3|4) integer array to a Palette of Colors."""
    rows = np.asarray(arr)
    if rows.ndim != 2 or rows.shape[1] not in (3, 4):
        raise ConfigurationError(f"expected (N,3|4) palette array, got {rows.shape}")
    return make_palette(rows.tolist())


def gray_ramp(size: int = GRAY_RAMP_SIZE) -> Palette:
    """Opaque gray ramp; entry i is (i, i, i, 255) for a 256-entry ramp."""
    if size <= 1:
        return (Color(0, 0, 0, OPAQUE),)
    return tuple(
        Color(v, v, v, OPAQUE)
        for v in (round(i * 255 / (size - 1)) for i in range(size))
    )


__all__ = [
    # aliases
    "U8Array",
    "I64Array",
    "PaletteArray",
    "IndexArray",
    "Palette",
    # value objects
    "Color",
    "Histogram",
    "TRANSPARENT_BLACK",
    # helpers
    "make_palette",
    "validate_palette",
    "palette_to_array",
    "array_to_palette",
    "gray_ramp",
]
