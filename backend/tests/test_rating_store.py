"""Tests for the rating store and its update law."""
import pytest

from config import get_settings
from models.ranking import ComparisonResult, Rating
from services.events import EventBus, RatingsUpdated
from services.rating_store import RatingStore

settings = get_settings()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def store(bus):
    return RatingStore(bus=bus)


def test_get_rating_creates_default(store):
    assert store.peek(1) is None

    rating = store.get_rating(1)

    assert rating.mu == settings.initial_mu
    assert rating.sigma == settings.initial_sigma
    assert rating.battle_count == 0
    assert 1 in store


def test_pair_result_moves_winner_up_and_loser_down(store):
    store.update_from_result(ComparisonResult(set_ids=(1, 2), winner_ids=(1,)))

    winner, loser = store.get_rating(1), store.get_rating(2)
    assert winner.mu > settings.initial_mu
    assert loser.mu < settings.initial_mu
    assert winner.sigma < settings.initial_sigma
    assert loser.sigma < settings.initial_sigma
    assert winner.battle_count == 1
    assert loser.battle_count == 1


def test_triplet_with_two_winners_counts_one_battle_each(store):
    store.update_from_result(ComparisonResult(set_ids=(1, 2, 3), winner_ids=(1, 2)))

    ratings = store.get_all_ratings()
    assert [ratings[i].battle_count for i in (1, 2, 3)] == [1, 1, 1]
    assert ratings[1].mu > settings.initial_mu
    assert ratings[2].mu > settings.initial_mu
    assert ratings[3].mu < ratings[1].mu
    assert ratings[3].mu < ratings[2].mu


def test_triplet_single_winner_beats_both(store):
    store.update_from_result(ComparisonResult(set_ids=(1, 2, 3), winner_ids=(3,)))

    ratings = store.get_all_ratings()
    assert ratings[3].ordinal_score > ratings[1].ordinal_score
    assert ratings[3].ordinal_score > ratings[2].ordinal_score


def test_sigma_never_drops_below_floor(store):
    for _ in range(200):
        store.update_from_result(ComparisonResult(set_ids=(1, 2), winner_ids=(1,)))

    assert store.get_rating(1).sigma >= store.min_sigma
    assert store.get_rating(2).sigma >= store.min_sigma
    assert store.get_rating(1).battle_count == 200


def test_set_ordinal_score_keeps_sigma(store):
    before = store.get_rating(4).sigma

    rating = store.set_ordinal_score(4, 42.0)

    assert rating.ordinal_score == pytest.approx(42.0)
    assert rating.sigma == before


def test_get_all_ratings_returns_copies(store):
    store.get_rating(1)
    copies = store.get_all_ratings()
    copies[1].mu = -100

    assert store.get_rating(1).mu == settings.initial_mu


def test_restore_overwrites_and_validates(store):
    store.restore([Rating(item_id=7, mu=30.0, sigma=2.0, battle_count=5)])
    assert store.get_rating(7).battle_count == 5

    with pytest.raises(ValueError):
        store.restore([Rating(item_id=8, mu=30.0, sigma=0.0)])


def test_invalid_initial_sigma_rejected():
    with pytest.raises(ValueError):
        RatingStore(initial_sigma=0)


def test_updates_are_announced(store, bus):
    events = []
    bus.subscribe(RatingsUpdated, events.append)

    store.update_from_result(ComparisonResult(set_ids=(1, 2), winner_ids=(2,)))
    store.update_from_result(ComparisonResult(set_ids=(1, 2), winner_ids=(1,), implied=True))
    store.clear()

    assert [e.source for e in events] == ["comparison", "implied", "clear"]
    assert events[0].item_ids == (1, 2)
    assert len(store) == 0


def test_revert_result_counts_one_battle_less(store):
    store.restore([Rating(item_id=1, mu=30.0, sigma=4.0, battle_count=3)])
    previous = [store.get_rating(1).copy(), store.get_rating(2).copy()]
    store.update_from_result(ComparisonResult(set_ids=(1, 2), winner_ids=(2,)))
    store.get_rating(1).battle_count += 1

    store.revert_result(previous, created_ids={2})

    rating = store.get_rating(1)
    assert (rating.mu, rating.sigma, rating.battle_count) == (30.0, 4.0, 4)
    assert 2 not in store
