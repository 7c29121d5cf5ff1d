from __future__ import annotations

import threading

import numpy as np
import pytest

from pngshrink.centroid import CentroidCache
from pngshrink.core_types import TRANSPARENT_BLACK, Color
from pngshrink.errors import ConfigurationError


class _NaiveCache:
    """Member lists per slot; sums and counts recomputed on demand."""

    def __init__(self, size):
        self.members = [[] for _ in range(size)]

    def sums(self):
        return np.array(
            [np.sum(m, axis=0) if m else [0, 0, 0, 0] for m in self.members],
            dtype=np.int64,
        )

    def counts(self):
        return np.array([len(m) for m in self.members], dtype=np.int64)


def _assert_same(cache, naive):
    assert np.array_equal(cache.sums, naive.sums())
    assert np.array_equal(cache.counts, naive.counts())


def test_size_limits():
    with pytest.raises(ConfigurationError):
        CentroidCache(0)
    with pytest.raises(ConfigurationError):
        CentroidCache(257)
    assert len(CentroidCache(256)) == 256


def test_random_operation_sequences_match_naive_model(rng):
    for _ in range(20):
        size = int(rng.integers(1, 9))
        cache = CentroidCache(size)
        naive = _NaiveCache(size)
        for _ in range(200):
            op = int(rng.integers(3))
            populated = [i for i, m in enumerate(naive.members) if m]
            if op == 0 or not populated:
                i = int(rng.integers(size))
                c = rng.integers(0, 256, size=4).tolist()
                cache.add_member(i, c)
                naive.members[i].append(c)
            elif op == 1:
                i = populated[int(rng.integers(len(populated)))]
                c = naive.members[i].pop(int(rng.integers(len(naive.members[i]))))
                cache.remove_member(i, c)
            else:
                s = populated[int(rng.integers(len(populated)))]
                d = int(rng.integers(size))
                c = naive.members[s].pop(int(rng.integers(len(naive.members[s]))))
                naive.members[d].append(c)
                cache.move_member(s, d, c)
            _assert_same(cache, naive)


def test_from_assignment_equals_individual_adds(rng):
    idx = rng.integers(0, 5, size=300)
    colors = rng.integers(0, 256, size=(300, 4), dtype=np.uint8)
    built = CentroidCache.from_assignment(5, idx, colors)
    single = CentroidCache(5)
    for i, c in zip(idx, colors):
        single.add_member(int(i), c)
    assert np.array_equal(built.sums, single.sums)
    assert np.array_equal(built.counts, single.counts)


def test_batched_moves_equal_sequential_moves(rng):
    size = 6
    idx = rng.integers(0, size, size=400)
    colors = rng.integers(0, 256, size=(400, 4), dtype=np.uint8)
    new_idx = idx.copy()
    flip = rng.random(400) < 0.3
    new_idx[flip] = rng.integers(0, size, size=int(flip.sum()))

    batched = CentroidCache.from_assignment(size, idx, colors)
    sequential = batched.copy()
    moved = batched.move_members(idx, new_idx, colors)
    for s, d, c in zip(idx, new_idx, colors):
        sequential.move_member(int(s), int(d), c)

    assert moved == int(np.count_nonzero(idx != new_idx))
    assert np.array_equal(batched.sums, sequential.sums)
    assert np.array_equal(batched.counts, sequential.counts)
    assert np.array_equal(batched.sums, CentroidCache.from_assignment(size, new_idx, colors).sums)


def test_move_to_same_slot_is_noop():
    cache = CentroidCache(2)
    cache.add_member(0, (1, 2, 3, 4))
    cache.move_member(0, 0, (1, 2, 3, 4))
    assert cache.counts.tolist() == [1, 0]
    assert cache.move_members(np.array([0]), np.array([0]), np.array([[1, 2, 3, 4]])) == 0


def test_removing_from_empty_slot_fails():
    cache = CentroidCache(2)
    with pytest.raises(ValueError):
        cache.remove_member(1, (0, 0, 0, 0))
    with pytest.raises(ValueError):
        cache.move_member(1, 0, (0, 0, 0, 0))
    with pytest.raises(IndexError):
        cache.add_member(2, (0, 0, 0, 0))


def test_mean_rounds_half_up_and_empty_is_transparent_black():
    cache = CentroidCache(3)
    cache.add_member(0, (0, 0, 0, 255))
    cache.add_member(0, (1, 3, 5, 255))
    cache.add_member(1, (10, 20, 30))
    assert cache.mean_color(0) == Color(1, 2, 3, 255)
    assert cache.mean_color(1) == Color(10, 20, 30, 255)
    assert cache.mean_color(2) == TRANSPARENT_BLACK
    assert cache.as_palette() == (
        Color(1, 2, 3, 255),
        Color(10, 20, 30, 255),
        TRANSPARENT_BLACK,
    )


def test_means_match_mean_color(rng):
    idx = rng.integers(0, 7, size=100)
    colors = rng.integers(0, 256, size=(100, 4), dtype=np.uint8)
    cache = CentroidCache.from_assignment(8, idx, colors)
    means = cache.means()
    for i in range(8):
        assert tuple(means[i].tolist()) == tuple(cache.mean_color(i))


def test_concurrent_moves_are_atomic(rng):
    size = 4
    colors = rng.integers(0, 256, size=(4000, 4), dtype=np.uint8)
    idx = rng.integers(0, size, size=4000)
    cache = CentroidCache.from_assignment(size, idx, colors)
    target = (idx + 1) % size
    expected = CentroidCache.from_assignment(size, target, colors)

    def worker(lo, hi):
        for k in range(lo, hi):
            cache.move_member(int(idx[k]), int(target[k]), colors[k])

    threads = [threading.Thread(target=worker, args=(k * 1000, (k + 1) * 1000)) for k in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert np.array_equal(cache.sums, expected.sums)
    assert np.array_equal(cache.counts, expected.counts)
