from __future__ import annotations

import numpy as np
import pytest

from pngshrink.cluster import (
    STOP_CONVERGED,
    STOP_EXACT,
    STOP_ROUND_CAP,
    Clusterer,
    cluster,
)
from pngshrink.core_types import Color, palette_to_array
from pngshrink.errors import ConfigurationError
from pngshrink.quantize import quantize
from pngshrink.raster import Raster

A = (0, 0, 0)
B = (20, 0, 0)
C = (60, 0, 0)


@pytest.fixture
def three_colour_raster() -> Raster:
    return Raster.from_array(np.array([[A, B], [C, C]], dtype=np.uint8))


def _squared_error(source: Raster, result) -> int:
    src = source.rgba().astype(np.int64)
    out = result.raster.rgba().astype(np.int64)
    return int(((src - out) ** 2).sum())


def test_exact_fit_stops_at_round_zero(three_colour_raster):
    result = cluster(three_colour_raster, 4, seed=0)
    assert result.total_error == 0
    assert result.best_round == 0
    assert result.rounds == 0
    assert result.stop_reason == STOP_EXACT
    assert set(result.palette) == {Color(*A), Color(*B), Color(*C)}
    assert result.raster.rgba().tolist() == three_colour_raster.rgba().tolist()


def test_two_colours_merge_the_closest_pair(three_colour_raster):
    result = cluster(three_colour_raster, 2, initial_palette=[A, B])
    assert result.converged
    assert result.stop_reason == STOP_CONVERGED
    assert result.palette == (Color(10, 0, 0), Color(60, 0, 0))
    idx = result.raster.indices().tolist()
    assert idx[0] == idx[1]
    assert idx[2] == idx[3] != idx[0]
    # {A, B} | {C, C} is the cheapest two-way split: 10^2 + 10^2
    assert _squared_error(three_colour_raster, result) == 200
    assert result.total_error == 20
    assert result.best_round == 2
    assert result.rounds == 3


def test_round_cap_returns_best_seen(three_colour_raster):
    result = cluster(three_colour_raster, 2, initial_palette=[A, B], max_rounds=1)
    assert result.stop_reason == STOP_ROUND_CAP
    assert not result.converged
    assert result.rounds == 1
    assert result.best_round == 1
    assert result.total_error == 46
    assert result.palette == (Color(0, 0, 0), Color(47, 0, 0))


def test_zero_rounds_keeps_seed_palette(three_colour_raster):
    result = cluster(three_colour_raster, 2, initial_palette=[A, B], max_rounds=0)
    assert result.rounds == 0
    assert result.palette == (Color(*A), Color(*B))
    assert result.total_error == 80


def test_seeded_two_colour_run_has_two_entries(three_colour_raster):
    result = cluster(three_colour_raster, 2, seed=5, max_rounds=50)
    assert len(result.palette) == 2
    assert result.stop_reason in (STOP_CONVERGED, STOP_EXACT)


def test_incremental_cache_matches_rebuilt_cache(rng):
    src = Raster.from_array(rng.integers(0, 256, size=(16, 16, 3), dtype=np.uint8))
    clusterer = Clusterer(src, 8, seed=11)
    state = clusterer.init()
    pixels = src.rgba()
    for _ in range(6):
        state = clusterer.step(state)
        rebuilt = np.zeros((8, 4), dtype=np.int64)
        np.add.at(rebuilt, state.indices, pixels.astype(np.int64))
        assert np.array_equal(clusterer.cache.sums, rebuilt)
        assert np.array_equal(
            clusterer.cache.counts, np.bincount(state.indices, minlength=8)
        )


def test_result_error_matches_requantisation(rng):
    src = Raster.from_array(rng.integers(0, 256, size=(10, 10, 4), dtype=np.uint8))
    result = cluster(src, 6, seed=2, max_rounds=500)
    assert result.stop_reason in (STOP_CONVERGED, STOP_EXACT)
    assert len(result.palette) == 6
    q = quantize(src, result.palette)
    assert q.total_error == result.total_error
    assert q.raster == result.raster
    assert palette_to_array(result.palette).shape == (6, 4)


def test_best_error_never_exceeds_round_zero(rng):
    src = Raster.from_array(rng.integers(0, 256, size=(8, 8, 3), dtype=np.uint8))
    start = cluster(src, 4, seed=9, max_rounds=0)
    full = cluster(src, 4, seed=9, max_rounds=100)
    assert full.total_error <= start.total_error


def test_empty_raster_and_negative_cap_rejected(three_colour_raster):
    with pytest.raises(ConfigurationError):
        cluster(Raster(0, 0), 2)
    with pytest.raises(ConfigurationError):
        cluster(three_colour_raster, 2, max_rounds=-1)


def test_step_before_init_fails(three_colour_raster):
    clusterer = Clusterer(three_colour_raster, 2)
    with pytest.raises(RuntimeError):
        clusterer.step(None)
