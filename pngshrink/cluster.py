# pngshrink/cluster.py
from __future__ import annotations

"""
Lloyd-style clustering with an incrementally maintained centroid cache.

States: init -> round r -> (round r+1 | converged).

  init : seed palette, quantise the source, build the cache from every pixel.
  step : palette = cache means; re-quantise the original source; for every pixel
         whose index changed since the previous round, move its true colour
         between cache slots. Unchanged pixels cost nothing.
  stop : the new indexed raster equals the previous one (indices and palette),
         or the best total error reaches 0, or the optional round cap is hit.

The result is the palette with the lowest total error seen over all rounds,
which is not necessarily the last one.
"""

import time
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np

from .centroid import CentroidCache
from .core_types import Palette, make_palette, palette_to_array
from .errors import ConfigurationError
from .histogram import seed_palette, unique_colors_with_inverse
from .quantize import Quantized, build_rasters, nearest_indices
from .raster import Raster
from .utils import debug_log, format_seconds_compact, key_value_pairs_to_string

STOP_CONVERGED = "converged"
STOP_EXACT = "exact"
STOP_ROUND_CAP = "round-cap"


@dataclass
class RoundState:
    """One clustering round: the source quantised under that round's palette."""

    round: int
    palette: Palette
    quantized: Quantized
    indices: np.ndarray  # flat per-pixel palette indices
    total_error: int
    moved: int = 0

    @property
    def raster(self) -> Raster:
        return self.quantized.raster


@dataclass(frozen=True)
class ClusterResult:
    palette: Palette
    raster: Raster  # source quantised against `palette`
    errors: Raster
    total_error: int
    best_round: int
    rounds: int
    converged: bool
    stop_reason: str


class _Source:
    """Source pixels plus their distinct colours, computed once per clustering run."""

    def __init__(self, raster: Raster) -> None:
        self.width = raster.width
        self.height = raster.height
        self.pixels = raster.rgba()
        self.colors, self.counts, self.inverse = unique_colors_with_inverse(self.pixels)

    def quantize(self, palette: Palette, workers: Optional[int]) -> tuple:
        # Distinct colours map identically wherever they occur, so quantise the
        # colour table once and expand through the inverse index.
        uidx, uerr = nearest_indices(self.colors, palette_to_array(palette), workers)
        indices = uidx[self.inverse]
        errors = uerr[self.inverse]
        q = build_rasters(self.width, self.height, indices, errors, palette)
        return q, indices, int(errors.astype(np.int64).sum())


class Clusterer:
    """Runs the clustering state machine over one source raster."""

    def __init__(
        self,
        source: Raster,
        colours: int,
        *,
        seed: Optional[Union[int, np.random.Generator]] = None,
        initial_palette: Optional[Sequence[Sequence[int]]] = None,
        workers: Optional[int] = None,
        debug: bool = False,
    ) -> None:
        if source.area == 0:
            raise ConfigurationError("cannot cluster an empty raster")
        self.source = _Source(source)
        self.colours = int(colours)
        self.seed = seed
        self.initial_palette = (
            None if initial_palette is None else make_palette(initial_palette)
        )
        self.workers = workers
        self.debug = debug
        self.cache: Optional[CentroidCache] = None

    def init(self) -> RoundState:
        """Seed, quantise, and build the cache from scratch. Produces round 0."""
        if self.initial_palette is not None:
            palette = self.initial_palette
        else:
            palette = seed_palette(
                self.source.colors, self.colours, rng=self.seed, workers=self.workers
            )
        q, indices, total = self.source.quantize(palette, self.workers)
        self.cache = CentroidCache.from_assignment(
            len(palette), indices, self.source.pixels
        )
        return RoundState(0, palette, q, indices, total)

    def step(self, prev: RoundState) -> RoundState:
        """Advance one round, applying only the reassignment delta to the cache."""
        if self.cache is None:
            raise RuntimeError("init() must run before step()")
        palette = self.cache.as_palette()
        q, indices, total = self.source.quantize(palette, self.workers)
        changed = np.flatnonzero(indices != prev.indices)
        moved = 0
        if changed.size:
            moved = self.cache.move_members(
                prev.indices[changed], indices[changed], self.source.pixels[changed]
            )
        return RoundState(prev.round + 1, palette, q, indices, total, moved)

    def run(self, max_rounds: Optional[int] = None) -> ClusterResult:
        """
        Iterate until converged or exact. max_rounds=None leaves the loop unbounded.
        """
        if max_rounds is not None and max_rounds < 0:
            raise ConfigurationError("max_rounds must be >= 0")
        t0 = time.perf_counter()
        prev = self.init()
        best = last = prev
        self._trace(prev, t0)

        converged = False
        stop_reason = STOP_ROUND_CAP
        while True:
            if best.total_error == 0:
                stop_reason = STOP_EXACT
                break
            if max_rounds is not None and prev.round >= max_rounds:
                stop_reason = STOP_ROUND_CAP
                break
            cur = last = self.step(prev)
            self._trace(cur, t0)
            if cur.total_error < best.total_error:
                best = cur
            if cur.raster == prev.raster:
                converged = True
                stop_reason = STOP_CONVERGED
                break
            prev = cur

        if self.debug:
            debug_log(
                key_value_pairs_to_string(
                    [
                        ("Stop", stop_reason),
                        ("Best round", best.round),
                        ("Best error", best.total_error),
                        ("Time", format_seconds_compact(time.perf_counter() - t0)),
                    ]
                )
            )
        return ClusterResult(
            palette=best.palette,
            raster=best.quantized.raster,
            errors=best.quantized.errors,
            total_error=best.total_error,
            best_round=best.round,
            rounds=last.round,
            converged=converged,
            stop_reason=stop_reason,
        )

    def _trace(self, state: RoundState, t0: float) -> None:
        if not self.debug:
            return
        used = 0 if self.cache is None else int(np.count_nonzero(self.cache.counts))
        debug_log(
            key_value_pairs_to_string(
                [
                    ("Round", state.round),
                    ("Error", state.total_error),
                    ("Moved", state.moved),
                    ("Used", used),
                    ("Elapsed", format_seconds_compact(time.perf_counter() - t0)),
                ]
            )
        )


def cluster(
    source: Raster,
    colours: int,
    *,
    seed: Optional[Union[int, np.random.Generator]] = None,
    max_rounds: Optional[int] = None,
    initial_palette: Optional[Sequence[Sequence[int]]] = None,
    workers: Optional[int] = None,
    debug: bool = False,
) -> ClusterResult:
    """Cluster source down to at most `colours` palette entries."""
    return Clusterer(
        source,
        colours,
        seed=seed,
        initial_palette=initial_palette,
        workers=workers,
        debug=debug,
    ).run(max_rounds)


__all__ = [
    "STOP_CONVERGED",
    "STOP_EXACT",
    "STOP_ROUND_CAP",
    "RoundState",
    "ClusterResult",
    "Clusterer",
    "cluster",
]
