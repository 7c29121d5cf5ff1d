# pngshrink/pipeline.py
from __future__ import annotations

"""
End-to-end shrink: decode -> cluster -> reindex -> parameter search -> bytes.

  shrink_raster(raster, config) -> ShrinkResult
  shrink_bytes(data, config)    -> ShrinkResult
  shrink_file(src, dst, config) -> (ShrinkResult, Path)
"""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple, Union

from .cluster import cluster
from .codec import EncoderParameters, decode
from .constants import (
    DEFAULT_COLOURS,
    DEFAULT_PALETTE_ORDER,
    MAX_PALETTE_SIZE,
    PALETTE_ORDERS,
    WRITE_MODE_ONE,
    WRITE_MODES,
)
from .errors import ConfigurationError
from .image_io import read_bytes, write_bytes
from .palette_order import compact_palette, reorder_palette
from .raster import Raster, premultiply, unpremultiply_palette
from .search import search_mode
from .utils import debug_log, format_seconds_compact, key_value_pairs_to_string

PathLike = Union[str, Path]


@dataclass(frozen=True)
class ShrinkConfig:
    """Knobs for one shrink run. max_rounds=None keeps the clustering loop unbounded."""

    colours: int = DEFAULT_COLOURS
    write_mode: str = WRITE_MODE_ONE
    max_rounds: Optional[int] = None
    seed: Optional[int] = None
    premultiply: bool = True
    palette_order: str = DEFAULT_PALETTE_ORDER
    compact: bool = True
    workers: Optional[int] = None
    debug: bool = False

    def __post_init__(self) -> None:
        if not 1 <= self.colours <= MAX_PALETTE_SIZE:
            raise ConfigurationError(
                f"colours must be in [1, {MAX_PALETTE_SIZE}], got {self.colours}"
            )
        if self.write_mode not in WRITE_MODES:
            raise ConfigurationError(
                f"unknown write mode {self.write_mode!r} (expected one of {', '.join(WRITE_MODES)})"
            )
        if self.palette_order not in PALETTE_ORDERS:
            raise ConfigurationError(
                f"unknown palette order {self.palette_order!r} (expected one of {', '.join(PALETTE_ORDERS)})"
            )
        if self.max_rounds is not None and self.max_rounds < 0:
            raise ConfigurationError("max_rounds must be >= 0")
        if self.workers is not None and self.workers < 1:
            raise ConfigurationError("workers must be >= 1")


@dataclass(frozen=True)
class ShrinkResult:
    data: bytes
    params: EncoderParameters
    raster: Raster = field(repr=False)
    palette_size: int
    rounds: int
    best_round: int
    total_error: int
    converged: bool
    stop_reason: str

    @property
    def size(self) -> int:
        return len(self.data)


def shrink_raster(raster: Raster, config: ShrinkConfig = ShrinkConfig()) -> ShrinkResult:
    """Quantise a raster to at most config.colours entries and encode it as small as found."""
    t0 = time.perf_counter()
    source = raster.to_rgba() if raster.is_indexed else raster
    pre = config.premultiply and source.has_alpha and not source.premultiplied
    if pre:
        source = premultiply(source, config.workers)

    clustered = cluster(
        source,
        config.colours,
        seed=config.seed,
        max_rounds=config.max_rounds,
        workers=config.workers,
        debug=config.debug,
    )
    out = clustered.raster
    if source.premultiplied:
        out.palette = unpremultiply_palette(out.palette)  # type: ignore[arg-type]
    if config.compact:
        out = compact_palette(out)
    out = reorder_palette(out, config.palette_order)
    t_cluster = time.perf_counter()

    found = search_mode(out, config.write_mode, workers=config.workers, debug=config.debug)
    t_search = time.perf_counter()

    if config.debug:
        debug_log(
            key_value_pairs_to_string(
                [
                    ("Premultiplied", pre),
                    ("Palette", len(out.palette)),  # type: ignore[arg-type]
                    ("Cluster", format_seconds_compact(t_cluster - t0)),
                    ("Search", format_seconds_compact(t_search - t_cluster)),
                ]
            )
        )

    return ShrinkResult(
        data=found.data,
        params=found.params,
        raster=out,
        palette_size=len(out.palette),  # type: ignore[arg-type]
        rounds=clustered.rounds,
        best_round=clustered.best_round,
        total_error=clustered.total_error,
        converged=clustered.converged,
        stop_reason=clustered.stop_reason,
    )


def shrink_bytes(data: bytes, config: ShrinkConfig = ShrinkConfig()) -> ShrinkResult:
    """Decode a PNG stream and shrink it."""
    return shrink_raster(decode(data), config)


def resolve_destination(src: PathLike, dst: PathLike) -> Path:
    """A destination directory receives `<src stem>.png`; a file path is used as is."""
    d = Path(dst)
    if d.is_dir():
        return d / f"{Path(src).stem}.png"
    return d


def shrink_file(
    src: PathLike, dst: PathLike, config: ShrinkConfig = ShrinkConfig()
) -> Tuple[ShrinkResult, Path]:
    """Shrink the PNG at src and write it to dst (file or directory)."""
    result = shrink_bytes(read_bytes(src), config)
    out_path = write_bytes(resolve_destination(src, dst), result.data)
    return result, out_path


__all__ = [
    "ShrinkConfig",
    "ShrinkResult",
    "shrink_raster",
    "shrink_bytes",
    "resolve_destination",
    "shrink_file",
]
