# pngshrink/search.py
from __future__ import annotations

"""
Compression-parameter search.

Every candidate EncoderParameters tuple is encoded independently on the shared
worker pool, each into its own buffer. The results are reduced to the smallest stream
through one shared best record:

  - a worker reads the current best size without the lock and drops its
    result straight away if it is already larger;
  - otherwise it takes the lock, compares again (the best may have improved
    while it waited), and only then replaces the record.

Records are ordered by (size, candidate index), so equal sizes resolve to the
lowest-index candidate no matter which worker finishes first. A failing
encode only removes its own candidate; if nothing produced a stream the
search raises EmptyResultError.
"""

import itertools
import threading
import time
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from .codec import EncoderParameters, encode
from .constants import (
    FILTERS,
    MAX_LEVELS,
    MID_FILTERS,
    MID_LEVELS,
    MID_STRATEGIES,
    ONE_FILTER,
    ONE_LEVEL,
    ONE_STRATEGY,
    STRATEGIES,
    WRITE_MODE_MAX,
    WRITE_MODE_MID,
    WRITE_MODE_ONE,
    WRITE_MODES,
)
from .errors import ConfigurationError, EmptyResultError, ShrinkError
from .raster import Raster
from .utils import (
    debug_log,
    format_bytes_compact,
    format_seconds_compact,
    key_value_pairs_to_string,
    run_spans,
)

Encoder = Callable[[Raster, EncoderParameters], bytes]


def cross_product(
    levels: Iterable[int], strategies: Iterable[int], filters: Iterable[int]
) -> Tuple[EncoderParameters, ...]:
    """Every (level, strategy, filter) combination, level-major."""
    return tuple(
        EncoderParameters(level, strategy, filt)
        for level, strategy, filt in itertools.product(levels, strategies, filters)
    )


# Built once at import; never mutated.
CANDIDATES_ONE: Tuple[EncoderParameters, ...] = (
    EncoderParameters(ONE_LEVEL, ONE_STRATEGY, ONE_FILTER),
)
CANDIDATES_MID: Tuple[EncoderParameters, ...] = cross_product(
    MID_LEVELS, MID_STRATEGIES, MID_FILTERS
)
CANDIDATES_MAX: Tuple[EncoderParameters, ...] = cross_product(
    MAX_LEVELS, STRATEGIES, FILTERS
)

_CANDIDATES_BY_MODE = {
    WRITE_MODE_ONE: CANDIDATES_ONE,
    WRITE_MODE_MID: CANDIDATES_MID,
    WRITE_MODE_MAX: CANDIDATES_MAX,
}


def candidates_for_mode(mode: str) -> Tuple[EncoderParameters, ...]:
    """Candidate tuple set for a write mode ("one", "mid", "max")."""
    try:
        return _CANDIDATES_BY_MODE[mode]
    except KeyError:
        raise ConfigurationError(
            f"unknown write mode {mode!r} (expected one of {', '.join(WRITE_MODES)})"
        ) from None


@dataclass(frozen=True)
class SearchResult:
    data: bytes
    params: EncoderParameters
    index: int  # position of params in the candidate sequence
    tried: int
    failed: int

    @property
    def size(self) -> int:
        return len(self.data)


class _BestRecord:
    """Shared (size, index, data) record with a lock-free pre-check."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.size: Optional[int] = None
        self.index = -1
        self.data: Optional[bytes] = None

    def might_win(self, size: int) -> bool:
        # Unlocked read; a stale value only lets extra candidates through to the locked check.
        current = self.size
        return current is None or size <= current

    def offer(self, index: int, data: bytes) -> bool:
        size = len(data)
        if not self.might_win(size):
            return False
        with self._lock:
            if self.size is not None and (size, index) >= (self.size, self.index):
                return False
            self.data = data
            self.index = index
            self.size = size
            return True


def search_best_encoding(
    raster: Raster,
    candidates: Sequence[EncoderParameters],
    *,
    workers: Optional[int] = None,
    encoder: Encoder = encode,
    debug: bool = False,
) -> SearchResult:
    """
    Encode raster once per candidate, in parallel, and return the smallest stream.

    Ties keep the lowest-index candidate. Raises EmptyResultError when the
    candidate set is empty or every encode failed.
    """
    cands = list(candidates)
    if not cands:
        raise EmptyResultError("no encoder candidates to try")

    t0 = time.perf_counter()
    best = _BestRecord()
    failures: List[Tuple[int, ShrinkError]] = []
    fail_lock = threading.Lock()

    def run_one(index: int) -> None:
        params = cands[index]
        try:
            data = encoder(raster, params)
        except ShrinkError as e:
            with fail_lock:
                failures.append((index, e))
            return
        best.offer(index, data)

    def run_span(start: int, end: int) -> None:
        for i in range(start, end):
            run_one(i)

    run_spans(run_span, len(cands), workers, min_span=1)

    if debug:
        for index, e in sorted(failures, key=lambda f: f[0]):
            debug_log(f"candidate {index} ({cands[index].describe()}) failed: {e}")

    if best.data is None:
        raise EmptyResultError(
            f"all {len(cands)} encoder candidates failed"
            + (f"; first error: {failures[0][1]}" if failures else "")
        )

    result = SearchResult(
        data=best.data,
        params=cands[best.index],
        index=best.index,
        tried=len(cands),
        failed=len(failures),
    )
    if debug:
        debug_log(
            key_value_pairs_to_string(
                [
                    ("Candidates", result.tried),
                    ("Failed", result.failed),
                    ("Best", result.params.describe()),
                    ("Size", format_bytes_compact(result.size)),
                    ("Time", format_seconds_compact(time.perf_counter() - t0)),
                ]
            )
        )
    return result


def search_mode(
    raster: Raster,
    mode: str,
    *,
    workers: Optional[int] = None,
    debug: bool = False,
) -> SearchResult:
    """search_best_encoding over the candidate set of a named write mode."""
    return search_best_encoding(
        raster, candidates_for_mode(mode), workers=workers, debug=debug
    )


__all__ = [
    "CANDIDATES_ONE",
    "CANDIDATES_MID",
    "CANDIDATES_MAX",
    "SearchResult",
    "cross_product",
    "candidates_for_mode",
    "search_best_encoding",
    "search_mode",
]
