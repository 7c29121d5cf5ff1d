# pngshrink/constants.py
"""
Global limits and tunables used across the project.

- Raster / palette limits
- ByteBuffer growth
- zlib strategies and PNG row filters (encoder parameter space)
- Write modes (candidate-set cardinality)
- Palette orders and diagnostic swatch size
"""
from __future__ import annotations

import zlib
from typing import Dict, Tuple

# =========================
# Raster / palette limits
# =========================
SUPPORTED_DEPTH = 8
MAX_PALETTE_SIZE = 256  # PNG PLTE limit
DEFAULT_COLOURS = 256
GRAY_RAMP_SIZE = 256
OPAQUE = 255

# Channel counts: 1 = indexed, 3 = RGB, 4 = RGBA
CHANNELS_INDEXED = 1
CHANNELS_RGB = 3
CHANNELS_RGBA = 4
VALID_CHANNELS = (CHANNELS_INDEXED, CHANNELS_RGB, CHANNELS_RGBA)

# =========================
# ByteBuffer
# =========================
BUFFER_GROWTH_FACTOR = 1.4

# =========================
# Encoder parameter space
# =========================
COMPRESSION_LEVELS: Tuple[int, ...] = tuple(range(0, 10))

STRATEGY_DEFAULT = zlib.Z_DEFAULT_STRATEGY
STRATEGY_FILTERED = zlib.Z_FILTERED
STRATEGY_HUFFMAN_ONLY = zlib.Z_HUFFMAN_ONLY
STRATEGY_RLE = zlib.Z_RLE
STRATEGY_FIXED = zlib.Z_FIXED
STRATEGIES: Tuple[int, ...] = (
    STRATEGY_DEFAULT,
    STRATEGY_FILTERED,
    STRATEGY_HUFFMAN_ONLY,
    STRATEGY_RLE,
    STRATEGY_FIXED,
)
STRATEGY_NAMES: Dict[int, str] = {
    STRATEGY_DEFAULT: "default",
    STRATEGY_FILTERED: "filtered",
    STRATEGY_HUFFMAN_ONLY: "huffman",
    STRATEGY_RLE: "rle",
    STRATEGY_FIXED: "fixed",
}

# PNG row filter types; FILTER_ADAPTIVE picks one per row.
FILTER_NONE = 0
FILTER_SUB = 1
FILTER_UP = 2
FILTER_AVERAGE = 3
FILTER_PAETH = 4
FILTER_ADAPTIVE = 5
FILTERS: Tuple[int, ...] = (
    FILTER_NONE,
    FILTER_SUB,
    FILTER_UP,
    FILTER_AVERAGE,
    FILTER_PAETH,
    FILTER_ADAPTIVE,
)
FILTER_NAMES: Dict[int, str] = {
    FILTER_NONE: "none",
    FILTER_SUB: "sub",
    FILTER_UP: "up",
    FILTER_AVERAGE: "average",
    FILTER_PAETH: "paeth",
    FILTER_ADAPTIVE: "adaptive",
}

# =========================
# Write modes
# =========================
WRITE_MODE_ONE = "one"
WRITE_MODE_MID = "mid"
WRITE_MODE_MAX = "max"
WRITE_MODES: Tuple[str, ...] = (WRITE_MODE_ONE, WRITE_MODE_MID, WRITE_MODE_MAX)

# "one": single tuple
ONE_LEVEL = 9
ONE_STRATEGY = STRATEGY_FILTERED
ONE_FILTER = FILTER_ADAPTIVE

# "mid": curated cross product
MID_LEVELS: Tuple[int, ...] = (6, 9)
MID_STRATEGIES: Tuple[int, ...] = (STRATEGY_DEFAULT, STRATEGY_FILTERED, STRATEGY_RLE)
MID_FILTERS: Tuple[int, ...] = (FILTER_NONE, FILTER_ADAPTIVE)

# "max": full cross product (level 0 stores only, never wins)
MAX_LEVELS: Tuple[int, ...] = tuple(range(1, 10))

# =========================
# Palette ordering
# =========================
ORDER_GREY = "grey"
ORDER_LEXICOGRAPHIC = "lexicographic"
PALETTE_ORDERS: Tuple[str, ...] = (ORDER_GREY, ORDER_LEXICOGRAPHIC)
DEFAULT_PALETTE_ORDER = ORDER_GREY

# =========================
# Diagnostics
# =========================
SWATCH_SIZE = 32
TABLE_LEAF = "table"
