# pngshrink/fixed_point.py
from __future__ import annotations

"""
8-bit fixed-point arithmetic over [0,1).

A byte x stands for x/255. Multiplication rounds to nearest:
  t = x*y + 128;  fixmul = (t + (t >> 8)) >> 8
Division is its inverse, clamped to 255 whenever y <= x (ratio would reach 1).

Both operations are served from 256x256 lookup tables built once at import and
never written afterwards, so they are safe to share across threads.

Exports:
  fixmul(x, y), fixdiv(x, y)           scalar
  fixmul_array(x, y), fixdiv_array(x, y)  vectorised over uint8 arrays
  itof(x), ftoi(v)                     byte <-> float helpers
  premultiply_pixels(px, workers), unpremultiply_pixels(px, workers)
"""

from typing import Optional

import numpy as np

from .core_types import U8Array
from .utils import run_spans


def _build_fixmul_table() -> U8Array:
    x = np.arange(256, dtype=np.int32)[None, :]
    y = np.arange(256, dtype=np.int32)[:, None]
    t = x * y + 128
    table = ((t + (t >> 8)) >> 8).astype(np.uint8)
    table.setflags(write=False)
    return table


def _build_fixdiv_table() -> U8Array:
    x = np.arange(256, dtype=np.int64)[None, :]
    y = np.arange(256, dtype=np.int64)[:, None]
    safe_y = np.maximum(y, 1)
    # round(x * 255 / y), integer form
    quotient = (2 * x * 255 + safe_y) // (2 * safe_y)
    table = np.where(y <= x, 255, np.minimum(quotient, 255)).astype(np.uint8)
    table.setflags(write=False)
    return table


# Indexed [y, x] to mirror the operand order of fixmul(x, y).
FIXMUL_TABLE: U8Array = _build_fixmul_table()
FIXDIV_TABLE: U8Array = _build_fixdiv_table()


def itof(x: int) -> float:
    """Byte to float in [0,1]."""
    return int(x) / 255.0


def ftoi(value: float) -> int:
    """Float to byte, clamped, round-to-nearest."""
    if value >= 1.0:
        return 255
    if value <= 0.0:
        return 0
    return int(round(value * 255.0))


def fixmul(x: int, y: int) -> int:
    """Closed multiplication of two [0,1) bytes."""
    return int(FIXMUL_TABLE[int(y), int(x)])


def fixdiv(x: int, y: int) -> int:
    """Closed division of two [0,1) bytes; 255 when y <= x."""
    return int(FIXDIV_TABLE[int(y), int(x)])


def fixmul_array(x: np.ndarray, y: np.ndarray) -> U8Array:
    """Elementwise fixmul over broadcastable uint8 arrays."""
    return FIXMUL_TABLE[np.asarray(y, dtype=np.uint8), np.asarray(x, dtype=np.uint8)]


def fixdiv_array(x: np.ndarray, y: np.ndarray) -> U8Array:
    """Elementwise fixdiv over broadcastable uint8 arrays."""
    return FIXDIV_TABLE[np.asarray(y, dtype=np.uint8), np.asarray(x, dtype=np.uint8)]


def _alpha_map(px: U8Array, table: U8Array, workers: Optional[int]) -> None:
    """Apply table to RGB of every (N, 4) row whose alpha != 255, in place."""

    def run(start: int, end: int) -> None:
        block = px[start:end]
        alpha = block[:, 3]
        mask = alpha != 255
        if not np.any(mask):
            return
        a = alpha[mask][:, None]
        block[mask, :3] = table[a, block[mask, :3]]

    run_spans(run, int(px.shape[0]), workers)


def premultiply_pixels(px: U8Array, workers: Optional[int] = None) -> U8Array:
    """Premultiply a (N, 4) RGBA pixel array in place; alpha==255 rows untouched."""
    _alpha_map(px, FIXMUL_TABLE, workers)
    return px


def unpremultiply_pixels(px: U8Array, workers: Optional[int] = None) -> U8Array:
    """Inverse of premultiply_pixels, in place. Lossy where alpha is small."""
    _alpha_map(px, FIXDIV_TABLE, workers)
    return px


__all__ = [
    "FIXMUL_TABLE",
    "FIXDIV_TABLE",
    "itof",
    "ftoi",
    "fixmul",
    "fixdiv",
    "fixmul_array",
    "fixdiv_array",
    "premultiply_pixels",
    "unpremultiply_pixels",
]
