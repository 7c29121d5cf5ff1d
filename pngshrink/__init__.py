# pngshrink/__init__.py
"""
pngshrink package.

Purpose:
  Reduce a true-colour or indexed PNG to a small palette (k-means++ seeded
  Lloyd clustering with an incremental centroid cache), then search encoder
  parameters in parallel for the smallest output. See pngshrink.cli for the CLI.

Public API:
  shrink_bytes / shrink_file / shrink_raster : end-to-end entry points
  ShrinkConfig, ShrinkResult                 : run configuration and outcome
  Raster, Color                              : pixel model
  cluster                                    : clustering loop
  quantize, nearest_index                    : nearest-palette mapping
  search_best_encoding, candidates_for_mode  : compression-parameter search
  decode, encode, EncoderParameters          : PNG boundary
  ByteBuffer                                 : growable output buffer
  errors                                     : exception taxonomy

Quick start:
  from pngshrink import ShrinkConfig, shrink_file
  shrink_file("in.png", "out.png", ShrinkConfig(colours=64, write_mode="mid"))
"""

__version__ = "0.1.0"

# Re-export namespaces for convenience.
from . import constants
from . import core_types
from . import errors
from . import utils

from .buffer import ByteBuffer  # noqa: E402,F401
from .core_types import Color, Palette  # noqa: E402,F401
from .raster import Raster, premultiply, unpremultiply  # noqa: E402,F401
from .fixed_point import fixmul, fixdiv  # noqa: E402,F401
from .histogram import build_histogram, seed_palette  # noqa: E402,F401
from .centroid import CentroidCache  # noqa: E402,F401
from .quantize import nearest_index, quantize  # noqa: E402,F401
from .cluster import ClusterResult, cluster  # noqa: E402,F401
from .codec import EncoderParameters, decode, encode  # noqa: E402,F401
from .search import SearchResult, candidates_for_mode, search_best_encoding  # noqa: E402,F401
from .palette_order import compact_palette, reorder_palette  # noqa: E402,F401
from .pipeline import ShrinkConfig, ShrinkResult, shrink_bytes, shrink_file, shrink_raster  # noqa: E402,F401

__all__ = [
    "__version__",
    "constants",
    "core_types",
    "errors",
    "utils",
    "ByteBuffer",
    "Color",
    "Palette",
    "Raster",
    "premultiply",
    "unpremultiply",
    "fixmul",
    "fixdiv",
    "build_histogram",
    "seed_palette",
    "CentroidCache",
    "nearest_index",
    "quantize",
    "ClusterResult",
    "cluster",
    "EncoderParameters",
    "decode",
    "encode",
    "SearchResult",
    "candidates_for_mode",
    "search_best_encoding",
    "compact_palette",
    "reorder_palette",
    "ShrinkConfig",
    "ShrinkResult",
    "shrink_bytes",
    "shrink_file",
    "shrink_raster",
]
