"""Tests for the debounce guard, deferred actions and rating helpers."""
import pytest
from pydantic import ValidationError

from config import Settings
from utils.debounce import SubmissionGuard, is_duplicate_submission
from utils.deferred import DeferredAction
from utils.rating import calculate_confidence, calculate_convergence


def test_duplicate_inside_window():
    assert is_duplicate_submission(10.2, 10.0, "a", "a", 0.3)
    assert not is_duplicate_submission(10.3, 10.0, "a", "a", 0.3)
    assert not is_duplicate_submission(10.1, 10.0, "a", "b", 0.3)
    assert not is_duplicate_submission(10.1, None, None, "a", 0.3)


def test_guard_records_and_resets():
    guard = SubmissionGuard(window_seconds=0.3)
    guard.record(5.0, frozenset({1}))

    assert guard.is_duplicate(5.1, frozenset({1}))
    guard.reset()
    assert not guard.is_duplicate(5.1, frozenset({1}))


def test_deferred_action_fires_once():
    calls = []
    action = DeferredAction(due_at=1.0, callback=lambda: calls.append(1))

    assert not action.fire_if_due(0.9)
    assert action.fire_if_due(1.0)
    assert not action.fire_if_due(2.0)
    assert calls == [1]
    assert action.done and not action.pending


def test_cancelled_action_never_fires():
    calls = []
    action = DeferredAction(due_at=1.0, callback=lambda: calls.append(1))

    assert action.cancel()
    assert not action.cancel()
    assert not action.fire_if_due(5.0)
    assert calls == []


def test_confidence_is_clamped():
    assert calculate_confidence(25 / 3, 25 / 3) == 0
    assert calculate_confidence(0.0, 25 / 3) == 100
    assert calculate_confidence(20.0, 25 / 3) == 0
    assert calculate_confidence(25 / 6, 25 / 3) == pytest.approx(50)


def test_convergence():
    assert calculate_convergence(2.0, 25 / 3, 2.0) == 100
    assert calculate_convergence(25 / 3, 25 / 3, 2.0) == 0


def test_settings_validation():
    assert Settings().milestones[:4] == [10, 25, 50, 100]
    with pytest.raises(ValidationError):
        Settings(milestones=[25, 10])
    with pytest.raises(ValidationError):
        Settings(default_arity=4)
