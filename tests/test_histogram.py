from __future__ import annotations

import numpy as np
import pytest

from pngshrink.core_types import Color
from pngshrink.errors import ConfigurationError
from pngshrink.histogram import (
    build_histogram,
    seed_palette,
    squared_distances,
    unique_colors_with_inverse,
)
from pngshrink.raster import Raster


def test_histogram_counts_distinct_colours():
    arr = np.array(
        [[[1, 2, 3], [1, 2, 3]], [[4, 5, 6], [255, 0, 0]]], dtype=np.uint8
    )
    hist = build_histogram(Raster.from_array(arr))
    assert len(hist) == 3
    assert hist.total == 4
    assert hist.as_dict() == {
        Color(1, 2, 3): 2,
        Color(4, 5, 6): 1,
        Color(255, 0, 0): 1,
    }


def test_histogram_keeps_alpha_apart():
    arr = np.array([[[9, 9, 9, 0], [9, 9, 9, 255]]], dtype=np.uint8)
    assert len(build_histogram(Raster.from_array(arr))) == 2


def test_inverse_reconstructs_pixels(rng):
    px = rng.integers(0, 4, size=(500, 4), dtype=np.uint8)
    colors, counts, inverse = unique_colors_with_inverse(px)
    assert np.array_equal(colors[inverse], px)
    assert counts.sum() == 500
    assert len({tuple(c) for c in colors.tolist()}) == colors.shape[0]


def test_squared_distances_parallel_matches_direct(rng):
    colors = rng.integers(0, 256, size=(20000, 4), dtype=np.uint8)
    ref = np.array([10, 200, 30, 255])
    expected = ((colors.astype(np.int64) - ref) ** 2).sum(axis=1)
    assert np.array_equal(squared_distances(colors, ref, workers=4), expected)


def test_few_colours_are_returned_verbatim():
    colors = np.array([[1, 1, 1, 255], [2, 2, 2, 255]], dtype=np.uint8)
    pal = seed_palette(colors, 5, rng=0)
    assert pal == (Color(1, 1, 1, 255), Color(2, 2, 2, 255))


def test_seeding_picks_distinct_existing_colours(rng):
    colors = np.unique(rng.integers(0, 256, size=(300, 4), dtype=np.uint8), axis=0)
    pal = seed_palette(colors, 16, rng=7)
    assert len(pal) == 16
    assert len(set(pal)) == 16
    table = {tuple(c) for c in colors.tolist()}
    assert all(tuple(c) in table for c in pal)


def test_seeding_is_deterministic_for_a_seed(rng):
    colors = np.unique(rng.integers(0, 256, size=(300, 4), dtype=np.uint8), axis=0)
    assert seed_palette(colors, 8, rng=3) == seed_palette(colors, 8, rng=3)


def test_seeding_accepts_a_histogram():
    arr = np.arange(10 * 3, dtype=np.uint8).reshape(1, 10, 3) * 8
    hist = build_histogram(Raster.from_array(arr))
    pal = seed_palette(hist, 4, rng=np.random.default_rng(1))
    assert len(pal) == 4


def test_single_seed_is_an_existing_colour():
    colors = np.array([[0, 0, 0, 255], [255, 255, 255, 0]], dtype=np.uint8)
    pal = seed_palette(colors, 1, rng=1)
    assert len(pal) == 1
    assert pal[0] in (Color(0, 0, 0, 255), Color(255, 255, 255, 0))


@pytest.mark.parametrize("n", [0, 257])
def test_seeding_rejects_bad_size(n):
    with pytest.raises(ConfigurationError):
        seed_palette(np.zeros((3, 4), dtype=np.uint8), n)


def test_seeding_rejects_empty_table():
    with pytest.raises(ConfigurationError):
        seed_palette(np.zeros((0, 4), dtype=np.uint8), 4)
