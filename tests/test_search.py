from __future__ import annotations

import threading
import time

import numpy as np
import pytest

from pngshrink.codec import EncoderParameters, decode, encode
from pngshrink.constants import (
    FILTER_ADAPTIVE,
    FILTER_NONE,
    STRATEGY_FILTERED,
    WRITE_MODE_MAX,
    WRITE_MODE_MID,
    WRITE_MODE_ONE,
)
from pngshrink.errors import ConfigurationError, EmptyResultError, EncodeError
from pngshrink.raster import Raster
from pngshrink.search import (
    CANDIDATES_MAX,
    CANDIDATES_MID,
    CANDIDATES_ONE,
    candidates_for_mode,
    cross_product,
    search_best_encoding,
    search_mode,
)


@pytest.fixture
def tiny() -> Raster:
    return Raster.indexed(4, 4, np.arange(16) % 3, [(0, 0, 0), (128, 0, 0), (255, 255, 0)])


class _SizedEncoder:
    """Returns `sizes[i]` bytes for candidate i; None entries raise EncodeError."""

    def __init__(self, candidates, sizes, delay=False):
        self.lookup = {p: i for i, p in enumerate(candidates)}
        self.sizes = sizes
        self.delay = delay
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self, raster, params):
        i = self.lookup[params]
        with self._lock:
            self.calls += 1
        if self.delay:
            time.sleep(0.001 * ((7 * i) % 5))
        if self.sizes[i] is None:
            raise EncodeError(f"candidate {i} fails")
        return bytes([i % 256]) * self.sizes[i]


def test_write_mode_candidate_counts():
    assert len(candidates_for_mode(WRITE_MODE_ONE)) == 1
    assert len(candidates_for_mode(WRITE_MODE_MID)) == 12
    assert len(candidates_for_mode(WRITE_MODE_MAX)) == 270
    assert CANDIDATES_ONE[0] == EncoderParameters(9, STRATEGY_FILTERED, FILTER_ADAPTIVE)
    assert len(set(CANDIDATES_MAX)) == len(CANDIDATES_MAX)
    assert set(CANDIDATES_MID) <= set(CANDIDATES_MAX)
    with pytest.raises(ConfigurationError):
        candidates_for_mode("fastest")


def test_cross_product_is_level_major():
    cands = cross_product([1, 2], [0], [FILTER_NONE, FILTER_ADAPTIVE])
    assert [(c.level, c.filter) for c in cands] == [
        (1, FILTER_NONE),
        (1, FILTER_ADAPTIVE),
        (2, FILTER_NONE),
        (2, FILTER_ADAPTIVE),
    ]


@pytest.mark.parametrize("workers", [1, 4, 16])
def test_smallest_output_wins(tiny, rng, workers):
    sizes = [int(s) for s in rng.integers(50, 500, size=len(CANDIDATES_MAX))]
    enc = _SizedEncoder(CANDIDATES_MAX, sizes, delay=True)
    result = search_best_encoding(tiny, CANDIDATES_MAX, workers=workers, encoder=enc)
    assert result.size == min(sizes)
    assert result.index == sizes.index(min(sizes))
    assert result.params == CANDIDATES_MAX[result.index]
    assert result.tried == len(CANDIDATES_MAX)
    assert result.failed == 0
    assert enc.calls == len(CANDIDATES_MAX)


@pytest.mark.parametrize("workers", [1, 8])
def test_equal_sizes_resolve_to_lowest_index(tiny, workers):
    sizes = [100] * 40
    for i in (7, 13, 29):
        sizes[i] = 10
    cands = CANDIDATES_MAX[:40]
    for _ in range(5):
        result = search_best_encoding(
            tiny, cands, workers=workers, encoder=_SizedEncoder(cands, sizes, delay=True)
        )
        assert result.index == 7
        assert result.data == bytes([7]) * 10


def test_failed_candidates_are_skipped(tiny):
    cands = CANDIDATES_MID
    sizes = [None, 5, None, 30, 40, 5, None, 80, 90, 100, 110, 120]
    result = search_best_encoding(
        tiny, cands, workers=4, encoder=_SizedEncoder(cands, sizes), debug=True
    )
    assert result.index == 1
    assert result.failed == 3


def test_every_candidate_failing_is_an_empty_result(tiny):
    cands = CANDIDATES_MID
    enc = _SizedEncoder(cands, [None] * len(cands))
    with pytest.raises(EmptyResultError) as info:
        search_best_encoding(tiny, cands, workers=4, encoder=enc)
    assert isinstance(info.value, EncodeError)


def test_empty_candidate_set(tiny):
    with pytest.raises(EmptyResultError):
        search_best_encoding(tiny, [])


def test_real_search_matches_exhaustive_minimum(tiny):
    result = search_mode(tiny, WRITE_MODE_MID, workers=4)
    sizes = [len(encode(tiny, p)) for p in CANDIDATES_MID]
    assert result.size == min(sizes)
    assert result.index == sizes.index(min(sizes))
    assert decode(result.data).rgba().tolist() == tiny.rgba().tolist()


def test_single_mode_uses_the_fixed_tuple(tiny):
    result = search_mode(tiny, WRITE_MODE_ONE)
    assert result.params == CANDIDATES_ONE[0]
    assert result.data == encode(tiny, CANDIDATES_ONE[0])
