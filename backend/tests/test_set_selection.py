"""Tests for the comparison set selection helpers."""
import random

import pytest

from models.ranking import Rating
from utils.set_selection import (
    InsufficientCandidatesError,
    order_for_exploration,
    select_comparison_set,
)


def _stats(**overrides):
    stats = {i: Rating(item_id=i) for i in range(1, 6)}
    for item_id, (battles, sigma) in overrides.items():
        stats[int(item_id[1:])] = Rating(item_id=int(item_id[1:]), sigma=sigma, battle_count=battles)
    return stats


def test_least_compared_items_come_first():
    stats = _stats(i1=(3, 5.0), i2=(0, 8.0), i3=(1, 8.0), i4=(0, 6.0), i5=(2, 8.0))

    assert order_for_exploration([1, 2, 3, 4, 5], stats, random.Random(1)) == [2, 4, 3, 5, 1]


def test_anchor_is_always_first():
    stats = _stats()

    ids = select_comparison_set([1, 2, 3, 4, 5], stats, 3, random.Random(1), anchor_id=4)

    assert ids[0] == 4
    assert len(set(ids)) == 3


def test_anchor_prefers_close_opponents():
    stats = _stats()
    stats[2] = Rating(item_id=2, mu=60.0)
    stats[3] = Rating(item_id=3, mu=26.0)

    ids = select_comparison_set([1, 2, 3], stats, 2, random.Random(1), anchor_id=1)

    assert ids == [1, 3]


def test_exclusion_is_honoured_when_possible():
    ids = select_comparison_set([1, 2, 3, 4], _stats(), 2, random.Random(3), excluded={1, 2})

    assert set(ids) == {3, 4}


def test_exclusion_falls_back_to_full_set():
    ids = select_comparison_set([1, 2, 3], _stats(), 2, random.Random(3), excluded={1, 2})

    assert len(ids) == 2


def test_too_few_items_raises():
    with pytest.raises(InsufficientCandidatesError):
        select_comparison_set([1], _stats(), 2, random.Random(1))
