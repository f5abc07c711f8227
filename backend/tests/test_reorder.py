"""Tests for manual reordering and insertion."""
import random

import pytest

from models.ranking import CatalogItem, RankedItem
from services.exceptions import InvalidMoveError, UnknownItemError
from services.reorder_translator import interpolate_score
from services.session import RankingSession


@pytest.fixture
def ranked(session):
    """Items 1..5 ranked in id order."""
    for item_id, score in zip(range(1, 6), (50.0, 40.0, 30.0, 20.0, 10.0)):
        session.store.set_ordinal_score(item_id, score)
    assert [item.id for item in session.get_ranked_view()] == [1, 2, 3, 4, 5]
    return session


def _row(item_id, score):
    return RankedItem(id=item_id, name=None, score=score, confidence=0.0, rank=1, mu=0.0, sigma=1.0, battle_count=0)


def test_moving_fifth_to_first_implies_four_wins(ranked):
    outcome = ranked.move_item(5, 4, 0)

    assert len(outcome.implied_results) == 4
    assert all(result.winner_ids == (5,) and result.implied for result in outcome.implied_results)
    assert sorted(result.loser_ids[0] for result in outcome.implied_results) == [1, 2, 3, 4]

    view = ranked.get_ranked_view()
    assert view[0].id == 5
    assert view[0].score == pytest.approx(view[1].score + 100)
    assert ranked.store.get_rating(5).battle_count == 4


def test_implied_results_are_not_user_comparisons(ranked):
    ranked.move_item(5, 4, 0)

    assert ranked.battle_counter == 0
    assert ranked.history == ()
    assert ranked.get_milestone_state().crossed_count == 0
    assert len(ranked.implied_history) == 4


def test_moved_item_is_queued_for_refinement(ranked):
    ranked.move_item(5, 4, 0)

    entry = ranked.refinement_queue.get(5)
    assert entry.reason == "manual-reorder"
    assert entry.remaining_required == 5


def test_moving_down_implies_losses_and_lands_between_neighbours(ranked):
    outcome = ranked.move_item(1, 0, 2)

    assert [result.winner_ids for result in outcome.implied_results] == [(2,), (3,)]
    assert [item.id for item in ranked.get_ranked_view()] == [2, 3, 1, 4, 5]


def test_move_to_bottom(ranked):
    ranked.move_item(2, 1, 4)

    view = ranked.get_ranked_view()
    assert view[-1].id == 2
    assert view[-1].score == pytest.approx(view[-2].score - 100)


def test_move_to_same_position_is_noop(ranked):
    before = ranked.store.get_all_ratings()

    outcome = ranked.move_item(3, 2, 2)

    assert outcome.implied_results == ()
    assert outcome.score is None
    assert ranked.store.get_all_ratings() == before
    assert ranked.refinement_queue.is_empty()


def test_stale_from_index_uses_actual_position(ranked):
    outcome = ranked.move_item(4, 0, 1)

    assert outcome.from_index == 3
    assert len(outcome.implied_results) == 2


def test_invalid_moves(ranked):
    with pytest.raises(InvalidMoveError):
        ranked.move_item(1, 0, 5)
    with pytest.raises(UnknownItemError):
        ranked.move_item(99, 0, 1)
    with pytest.raises(UnknownItemError):
        ranked.move_item(8, 0, 1)


def test_insert_unranked_item(ranked):
    outcome = ranked.insert_item(6, 2)

    assert outcome.implied_results == ()
    assert outcome.score == pytest.approx(35.0)
    assert [item.id for item in ranked.get_ranked_view()][:4] == [1, 2, 6, 3]
    assert ranked.refinement_queue.get(6).reason == "manual-insert"


def test_insert_out_of_range(ranked):
    with pytest.raises(InvalidMoveError):
        ranked.insert_item(6, 6)


def test_implied_history_is_bounded(ranked):
    ranked.move_item(5, 4, 0)
    ranked.move_item(5, 0, 4)
    ranked.move_item(5, 4, 0)

    assert len(ranked.implied_history) == 10


def test_interpolate_score():
    neighbours = [_row(1, 30.0), _row(2, 20.0), _row(3, 10.0)]

    assert interpolate_score([], 0, 100) is None
    assert interpolate_score(neighbours, 0, 100) == 130.0
    assert interpolate_score(neighbours, 3, 100) == -90.0
    assert interpolate_score(neighbours, 1, 100) == 25.0


def test_fifth_to_first_in_ten_item_view(clock):
    session = RankingSession(
        [CatalogItem(id=i, name=f"Item {i}") for i in range(1, 11)], rng=random.Random(5), clock=clock
    )
    for item_id in range(1, 11):
        session.store.set_ordinal_score(item_id, 100.0 - 10 * item_id)

    outcome = session.move_item(5, 4, 0)

    assert len(outcome.implied_results) == 4
    assert {result.loser_ids for result in outcome.implied_results} == {(1,), (2,), (3,), (4,)}
    assert all(result.winner_ids == (5,) for result in outcome.implied_results)


@pytest.mark.parametrize("from_index, to_index", [(0, 4), (4, 0), (1, 3), (3, 1), (2, 1)])
def test_moved_item_lands_at_target_index(ranked, from_index, to_index):
    item_id = ranked.get_ranked_view()[from_index].id

    outcome = ranked.move_item(item_id, from_index, to_index)

    view = ranked.get_ranked_view()
    assert [item.id for item in view].index(item_id) == to_index
    if 0 < to_index < len(view) - 1:
        assert view[to_index - 1].score > outcome.score > view[to_index + 1].score
