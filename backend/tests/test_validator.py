"""Tests for comparison set validation and repair."""
import pytest

from models.ranking import ComparisonSet
from services.exceptions import BattleTypeMismatch, InsufficientCandidatesError
from services.validator import ComparisonValidator


@pytest.fixture
def validator():
    return ComparisonValidator(known_ids=[1, 2, 3, 4])


def test_valid_set_passes_unchanged(validator):
    comparison_set = ComparisonSet(ids=(2, 1))

    outcome = validator.validate(comparison_set, 2)

    assert outcome.comparison_set is comparison_set
    assert outcome.warning is None


def test_duplicate_is_replaced_from_pool(validator):
    outcome = validator.validate(ComparisonSet(ids=(1, 1)), 2, candidate_pool=[1, 3])

    assert outcome.comparison_set.ids == (1, 3)
    assert isinstance(outcome.warning, BattleTypeMismatch)


def test_unknown_id_is_dropped(validator):
    outcome = validator.validate(ComparisonSet(ids=(1, 99, 2)), 3, candidate_pool=[4])

    assert outcome.comparison_set.ids == (1, 2, 4)
    assert "dropped" in str(outcome.warning)


def test_oversized_set_is_truncated(validator):
    outcome = validator.validate(ComparisonSet(ids=(1, 2, 3)), 2)

    assert outcome.comparison_set.ids == (1, 2)
    assert outcome.warning is not None


def test_padding_impossible_raises(validator):
    with pytest.raises(InsufficientCandidatesError):
        validator.validate(ComparisonSet(ids=(1,)), 3, candidate_pool=[1, 2])
