"""Ranking models - skill beliefs, comparison sets and results."""
import time
from dataclasses import dataclass, field
from enum import Enum as PyEnum
from typing import Any, Dict, Iterator, Optional, Tuple

from config import get_settings

settings = get_settings()


class SchedulerPhase(str, PyEnum):
    """Scheduler states."""
    IDLE = "idle"
    GENERATING = "generating"
    AWAITING_RESULT = "awaiting_result"
    BLOCKED = "blocked"


class MilestonePhase(str, PyEnum):
    """Milestone coordinator states."""
    WATCHING = "watching"
    SNAPSHOTTING = "snapshotting"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class CatalogItem:
    """A comparable item supplied by the catalog provider."""
    id: int
    name: str
    display_meta: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Rating:
    """Gaussian skill belief for one item (TrueSkill-style)."""

    item_id: int
    mu: float = settings.initial_mu
    sigma: float = settings.initial_sigma
    battle_count: int = 0

    @property
    def ordinal_score(self) -> float:
        """Conservative score (lower bound of confidence interval)."""
        return self.mu - settings.conservative_k * self.sigma

    def copy(self) -> "Rating":
        return Rating(self.item_id, self.mu, self.sigma, self.battle_count)

    def __repr__(self) -> str:
        return (
            f"<Rating(item={self.item_id}, mu={self.mu:.2f}, "
            f"sigma={self.sigma:.2f}, battles={self.battle_count})>"
        )


@dataclass(frozen=True)
class ComparisonSet:
    """Items presented together for one choice."""

    ids: Tuple[int, ...]
    created_at: float = field(default_factory=time.monotonic)

    @property
    def arity(self) -> int:
        return len(self.ids)

    @property
    def key(self) -> Tuple[int, ...]:
        """Order-independent identity (sorted id multiset)."""
        return tuple(sorted(self.ids))


@dataclass(frozen=True)
class ComparisonResult:
    """Outcome of one comparison.

    Every id in ``winner_ids`` beats every other member of ``set_ids``.
    Implied results come from manual reordering rather than a user pick.
    """

    set_ids: Tuple[int, ...]
    winner_ids: Tuple[int, ...]
    timestamp: float = field(default_factory=time.time)
    implied: bool = False

    @property
    def winner_id(self) -> int:
        return self.winner_ids[0]

    @property
    def loser_ids(self) -> Tuple[int, ...]:
        return tuple(i for i in self.set_ids if i not in self.winner_ids)

    def pairs(self) -> Iterator[Tuple[int, int]]:
        """Yield the induced (winner, loser) pairs."""
        for winner in self.winner_ids:
            for loser in self.loser_ids:
                yield winner, loser


@dataclass
class RefinementEntry:
    """Item that must appear in a number of upcoming comparisons."""
    item_id: int
    remaining_required: int
    reason: str


@dataclass(frozen=True)
class RankedItem:
    """Single leaderboard row, derived from the rating store."""
    id: int
    name: Optional[str]
    score: float
    confidence: float
    rank: int
    mu: float
    sigma: float
    battle_count: int


@dataclass(frozen=True)
class MilestoneSnapshot:
    """Frozen copy of the leaderboard and history at a milestone."""
    threshold: int
    battle_counter: int
    ranking: Tuple[RankedItem, ...]
    results: Tuple[ComparisonResult, ...]
    taken_at: float


@dataclass(frozen=True)
class MilestoneState:
    """Read-only view of the milestone coordinator."""
    thresholds: Tuple[int, ...]
    crossed_count: int
    blocked: bool
    phase: MilestonePhase
    pending_unblock: bool
    next_threshold: Optional[int]
    latest_snapshot: Optional[MilestoneSnapshot]
