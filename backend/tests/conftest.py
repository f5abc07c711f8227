"""Pytest configuration and fixtures.

Engine tests run in-process against a RankingSession driven by a fake
clock, so debounce windows and milestone grace delays are exercised
without sleeping. API tests use FastAPI's TestClient with the session
installed on app.state and persistence disabled.
"""
import random

import pytest
from fastapi.testclient import TestClient

from models.ranking import CatalogItem
from services.session import RankingSession


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def advance_ms(self, ms: float) -> None:
        self.advance(ms / 1000)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def catalog():
    """Eight starter-region items."""
    names = ["Bulbasaur", "Charmander", "Squirtle", "Pikachu", "Eevee", "Snorlax", "Gengar", "Mew"]
    return [CatalogItem(id=i + 1, name=name) for i, name in enumerate(names)]


@pytest.fixture
def session(catalog, clock):
    return RankingSession(catalog, arity=2, milestones=(10, 25), rng=random.Random(42), clock=clock)


@pytest.fixture
def play(session, clock):
    """Play a number of comparisons, stepping past the debounce window each time."""
    def _play(rounds, pick=lambda ids: [ids[0]]):
        results = []
        for _ in range(rounds):
            comparison_set = session.get_next_comparison_set()
            assert comparison_set is not None
            results.append(session.submit_choice(pick(list(comparison_set.ids))))
            clock.advance(1)
        return results
    return _play


@pytest.fixture
def client(session):
    """HTTP client for API requests."""
    from main import app

    app.state.ranking_session = session
    app.state.session_store = None
    test_client = TestClient(app)
    yield test_client
    app.state.ranking_session = None
