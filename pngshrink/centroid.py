# pngshrink/centroid.py
from __future__ import annotations

"""
Centroid cache: per palette index, a running RGBA sum and a member count.

Invariant: for every index i with count[i] > 0, sums[i] / count[i] is the mean
colour of the pixels currently attributed to i. Empty slots read as transparent black.

Mutation is single-writer. Each call holds the instance lock for its whole
update, so a move is never observed half-applied.
"""

import threading
from typing import Sequence

import numpy as np

from .core_types import (
    I64Array,
    Palette,
    PaletteArray,
    TRANSPARENT_BLACK,
    Color,
    array_to_palette,
)
from .errors import ConfigurationError
from .constants import MAX_PALETTE_SIZE


def _widen(color: Sequence[int]) -> I64Array:
    c = np.asarray(color, dtype=np.int64).reshape(-1)
    if c.shape[0] == 3:
        c = np.append(c, 255)
    return c


class CentroidCache:
    """Parallel arrays of int64 accumulators (K, 4) and member counts (K,)."""

    def __init__(self, size: int) -> None:
        if size < 1 or size > MAX_PALETTE_SIZE:
            raise ConfigurationError(f"cache size must be in [1, {MAX_PALETTE_SIZE}]")
        self.sums: I64Array = np.zeros((size, 4), dtype=np.int64)
        self.counts: I64Array = np.zeros((size,), dtype=np.int64)
        self._lock = threading.Lock()

    @classmethod
    def from_assignment(
        cls, size: int, indices: np.ndarray, colors: np.ndarray
    ) -> "CentroidCache":
        """Build from scratch: every pixel i added to slot indices[i] with colour colors[i]."""
        cache = cls(size)
        cache.add_members(indices, colors)
        return cache

    def __len__(self) -> int:
        return int(self.counts.shape[0])

    def _check(self, i: int) -> int:
        i = int(i)
        if not 0 <= i < self.counts.shape[0]:
            raise IndexError(f"palette index {i} out of range")
        return i

    # single-pixel updates

    def add_member(self, index: int, color: Sequence[int]) -> None:
        i = self._check(index)
        with self._lock:
            self.counts[i] += 1
            self.sums[i] += _widen(color)

    def remove_member(self, index: int, color: Sequence[int]) -> None:
        i = self._check(index)
        with self._lock:
            if self.counts[i] <= 0:
                raise ValueError(f"palette index {i} has no members to remove")
            self.counts[i] -= 1
            self.sums[i] -= _widen(color)

    def move_member(self, src: int, dst: int, color: Sequence[int]) -> None:
        """Reassign one pixel from src to dst; no-op when src == dst."""
        s, d = self._check(src), self._check(dst)
        if s == d:
            return
        c = _widen(color)
        with self._lock:
            if self.counts[s] <= 0:
                raise ValueError(f"palette index {s} has no members to move")
            self.counts[s] -= 1
            self.sums[s] -= c
            self.counts[d] += 1
            self.sums[d] += c

    # batched updates, applied in order by the calling thread

    def add_members(self, indices: np.ndarray, colors: np.ndarray) -> None:
        idx = np.asarray(indices, dtype=np.int64).reshape(-1)
        col = np.asarray(colors, dtype=np.int64).reshape(-1, 4)
        if idx.shape[0] != col.shape[0]:
            raise ValueError("indices and colors differ in length")
        if idx.size and (idx.min() < 0 or idx.max() >= len(self)):
            raise IndexError("palette index out of range")
        with self._lock:
            np.add.at(self.counts, idx, 1)
            np.add.at(self.sums, idx, col)

    def move_members(
        self, src: np.ndarray, dst: np.ndarray, colors: np.ndarray
    ) -> int:
        """
        Apply many moves at once (src[i] -> dst[i] with colour colors[i]).
        Entries with src == dst are skipped. Returns the number of moves applied.
        """
        s = np.asarray(src, dtype=np.int64).reshape(-1)
        d = np.asarray(dst, dtype=np.int64).reshape(-1)
        col = np.asarray(colors, dtype=np.int64).reshape(-1, 4)
        moved = s != d
        if not np.any(moved):
            return 0
        s, d, col = s[moved], d[moved], col[moved]
        k = len(self)
        if min(s.min(), d.min()) < 0 or max(s.max(), d.max()) >= k:
            raise IndexError("palette index out of range")
        with self._lock:
            np.subtract.at(self.counts, s, 1)
            np.subtract.at(self.sums, s, col)
            np.add.at(self.counts, d, 1)
            np.add.at(self.sums, d, col)
        return int(s.shape[0])

    # derived colours

    def mean_color(self, index: int) -> Color:
        """Mean of slot members, rounded half up; transparent black when empty."""
        i = self._check(index)
        n = int(self.counts[i])
        if n == 0:
            return TRANSPARENT_BLACK
        row = (2 * self.sums[i] + n) // (2 * n)
        r, g, b, a = (int(v) for v in np.clip(row, 0, 255))
        return Color(r, g, b, a)

    def means(self) -> PaletteArray:
        """All slot means as a (K, 4) uint8 array."""
        n = self.counts[:, None]
        safe = np.maximum(n, 1)
        rows = np.where(n > 0, (2 * self.sums + safe) // (2 * safe), 0)
        return np.clip(rows, 0, 255).astype(np.uint8)

    def as_palette(self) -> Palette:
        return array_to_palette(self.means())

    def copy(self) -> "CentroidCache":
        out = CentroidCache(len(self))
        out.sums = self.sums.copy()
        out.counts = self.counts.copy()
        return out

    def __repr__(self) -> str:
        used = int(np.count_nonzero(self.counts))
        return f"CentroidCache(size={len(self)}, used={used}, members={int(self.counts.sum())})"


__all__ = ["CentroidCache"]
