"""Tests for choice handling, de-duplication and undo."""
import pytest

from models.ranking import SchedulerPhase
from services.events import ComparisonCompleted
from services.exceptions import InvalidChoiceError, NoActiveComparisonError


def test_choice_updates_ratings_and_counter(session):
    comparison_set = session.get_next_comparison_set()
    winner, loser = comparison_set.ids

    result = session.submit_choice([winner])

    assert result.winner_ids == (winner,)
    assert result.loser_ids == (loser,)
    assert session.battle_counter == 1
    assert session.history == (result,)
    assert session.store.get_rating(winner).ordinal_score > session.store.get_rating(loser).ordinal_score
    assert session.scheduler.phase == SchedulerPhase.IDLE


def test_rapid_duplicate_click_is_ignored(session, clock):
    comparison_set = session.get_next_comparison_set()
    winner = comparison_set.ids[0]
    assert session.submit_choice([winner]) is not None
    ratings = session.store.get_all_ratings()

    clock.advance_ms(100)
    assert session.submit_choice([winner]) is None

    assert session.battle_counter == 1
    assert session.store.get_all_ratings() == ratings


def test_late_click_without_presented_set_raises(session, clock):
    comparison_set = session.get_next_comparison_set()
    session.submit_choice([comparison_set.ids[0]])

    clock.advance_ms(301)
    with pytest.raises(NoActiveComparisonError):
        session.submit_choice([comparison_set.ids[0]])


def test_different_choice_inside_window_is_accepted(session, clock):
    first = session.get_next_comparison_set()
    session.submit_choice([first.ids[0]])

    clock.advance_ms(50)
    second = session.get_next_comparison_set()
    winner = next(item_id for item_id in second.ids if item_id != first.ids[0])

    assert session.submit_choice([winner]) is not None
    assert session.battle_counter == 2


def test_invalid_choices_change_nothing(session):
    comparison_set = session.get_next_comparison_set()
    outsider = next(item_id for item_id in session.catalog if item_id not in comparison_set.ids)

    with pytest.raises(InvalidChoiceError):
        session.submit_choice([outsider])
    with pytest.raises(InvalidChoiceError):
        session.submit_choice(list(comparison_set.ids))
    with pytest.raises(InvalidChoiceError):
        session.submit_choice([])

    assert session.battle_counter == 0
    assert session.scheduler.current is comparison_set


def test_choice_while_processing_is_dropped(session):
    comparison_set = session.get_next_comparison_set()
    session.completion.processing = True

    assert session.submit_choice([comparison_set.ids[0]]) is None
    assert session.battle_counter == 0


def test_triplet_with_two_winners(session):
    session.set_arity(3)
    comparison_set = session.get_next_comparison_set()
    winners = list(comparison_set.ids[:2])
    loser = comparison_set.ids[2]

    result = session.submit_choice(winners)

    assert result.loser_ids == (loser,)
    assert set(result.pairs()) == {(winners[0], loser), (winners[1], loser)}
    for item_id in comparison_set.ids:
        assert session.store.get_rating(item_id).battle_count == 1


def test_triplet_requires_a_loser(session):
    session.set_arity(3)
    comparison_set = session.get_next_comparison_set()

    with pytest.raises(InvalidChoiceError):
        session.submit_choice(list(comparison_set.ids))


def test_flagged_item_appears_until_satisfied(session, play):
    session.flag_item(3, battles=2)

    results = play(2)

    assert all(3 in result.set_ids for result in results)
    assert session.refinement_queue.is_empty()


def test_completion_is_announced(session):
    events = []
    session.subscribe(ComparisonCompleted, events.append)
    comparison_set = session.get_next_comparison_set()

    session.submit_choice([comparison_set.ids[1]])

    assert len(events) == 1
    assert events[0].battle_counter == 1


def test_undo_restores_previous_state(session, play):
    play(2)
    comparison_set = session.get_next_comparison_set()
    for item_id in comparison_set.ids:
        session.store.get_rating(item_id)
    ratings_before = session.store.get_all_ratings()

    result = session.submit_choice([comparison_set.ids[0]])
    undone = session.undo_last_choice()

    assert undone == result
    assert session.battle_counter == 2
    assert len(session.history) == 2
    assert session.store.get_all_ratings() == ratings_before


def test_undo_restores_refinement_progress(session):
    session.flag_item(5, battles=1)
    comparison_set = session.get_next_comparison_set()
    assert 5 in comparison_set.ids

    session.submit_choice([comparison_set.ids[0]])
    assert 5 not in session.refinement_queue

    session.undo_last_choice()
    assert session.refinement_queue.get(5).remaining_required == 1


def test_undo_with_empty_history(session):
    assert session.undo_last_choice() is None


def test_undo_keeps_battles_and_refinement_from_later_moves(session):
    comparison_set = session.get_next_comparison_set()
    winner, loser = comparison_set.ids
    session.submit_choice([winner])

    outcome = session.move_item(loser, 1, 0)
    assert outcome.implied_results
    assert session.refinement_queue.get(loser).reason == "manual-reorder"

    session.undo_last_choice()

    for item_id in (winner, loser):
        implied = sum(item_id in r.set_ids for r in session.implied_history)
        assert session.store.get_rating(item_id).battle_count == implied
    entry = session.refinement_queue.get(loser)
    assert entry is not None
    assert entry.reason == "manual-reorder"
    assert session.battle_counter == 0


def test_undo_first_comparison_leaves_no_rating_behind(session):
    comparison_set = session.get_next_comparison_set()

    session.submit_choice([comparison_set.ids[0]])
    session.undo_last_choice()

    assert len(session.store) == 0
    assert session.get_ranked_view() == []
