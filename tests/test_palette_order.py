from __future__ import annotations

import numpy as np
import pytest

from pngshrink.constants import ORDER_GREY, ORDER_LEXICOGRAPHIC
from pngshrink.core_types import Color, make_palette
from pngshrink.errors import ConfigurationError
from pngshrink.palette_order import (
    compact_palette,
    grey_value,
    palette_sort_order,
    reorder_palette,
)
from pngshrink.raster import Raster


@pytest.fixture
def indexed() -> Raster:
    palette = [
        (255, 255, 255),
        (0, 0, 255),
        (255, 0, 0),
        (0, 255, 0),
        (0, 0, 0, 0),
        (0, 0, 0),
    ]
    return Raster.indexed(3, 2, np.array([0, 1, 2, 3, 4, 0]), palette)


def test_grey_value_is_integer_luma():
    arr = np.array([[255, 255, 255, 255], [255, 0, 0, 255], [0, 255, 0, 255]], dtype=np.uint8)
    assert grey_value(arr).tolist() == [255, 76, 149]


def test_grey_order_sorts_by_luma_then_alpha(indexed):
    out = reorder_palette(indexed, ORDER_GREY)
    assert out.palette == (
        Color(0, 0, 0, 0),
        Color(0, 0, 0, 255),
        Color(0, 0, 255),
        Color(255, 0, 0),
        Color(0, 255, 0),
        Color(255, 255, 255),
    )


def test_lexicographic_order(indexed):
    out = reorder_palette(indexed, ORDER_LEXICOGRAPHIC)
    assert out.palette == (
        Color(0, 0, 0, 0),
        Color(0, 0, 0, 255),
        Color(0, 0, 255),
        Color(0, 255, 0),
        Color(255, 0, 0),
        Color(255, 255, 255),
    )


@pytest.mark.parametrize("order", [ORDER_GREY, ORDER_LEXICOGRAPHIC])
def test_reordering_keeps_every_pixel_colour(indexed, order):
    out = reorder_palette(indexed, order)
    assert out.rgba().tolist() == indexed.rgba().tolist()
    assert sorted(out.palette) == sorted(indexed.palette)


def test_unknown_order_rejected(indexed):
    with pytest.raises(ConfigurationError):
        palette_sort_order(indexed.palette, "hue")


def test_compaction_drops_unused_entries(indexed):
    out = compact_palette(indexed)
    assert len(out.palette) == 5
    assert Color(0, 0, 0) not in out.palette
    assert out.rgba().tolist() == indexed.rgba().tolist()
    assert out.indices().max() < len(out.palette)


def test_compaction_of_fully_used_palette_is_a_copy():
    r = Raster.indexed(2, 1, np.array([1, 0]), make_palette([(1, 1, 1), (2, 2, 2)]))
    out = compact_palette(r)
    assert out == r
    assert out is not r


def test_requires_indexed_raster(rgb_raster):
    with pytest.raises(ConfigurationError):
        reorder_palette(rgb_raster)
    with pytest.raises(ConfigurationError):
        compact_palette(rgb_raster)
