"""Per-item skill beliefs and the update law applied to comparison results."""
import logging
from typing import Dict, Iterable, Optional

from config import get_settings
from models.ranking import ComparisonResult, Rating
from services.events import EventBus, RatingsUpdated
from utils.rating import update_ratings

logger = logging.getLogger(__name__)
settings = get_settings()


class RatingStore:
    """
    Holds one Gaussian belief (mu, sigma) per item.

    Ratings are created lazily with the initial values on first reference
    and are only mutated through this class. The store knows nothing about
    scheduling and performs no I/O; it announces changes on the event bus.
    """

    def __init__(
        self,
        initial_mu: float = settings.initial_mu,
        initial_sigma: float = settings.initial_sigma,
        min_sigma: float = settings.min_sigma,
        bus: Optional[EventBus] = None,
    ) -> None:
        if initial_sigma <= 0 or min_sigma <= 0:
            raise ValueError("sigma values must be positive")
        self.initial_mu = initial_mu
        self.initial_sigma = initial_sigma
        self.min_sigma = min_sigma
        self._bus = bus or EventBus()
        self._ratings: Dict[int, Rating] = {}

    def __len__(self) -> int:
        return len(self._ratings)

    def __contains__(self, item_id: int) -> bool:
        return item_id in self._ratings

    def default_rating(self, item_id: int) -> Rating:
        return Rating(item_id=item_id, mu=self.initial_mu, sigma=self.initial_sigma)

    def get_rating(self, item_id: int) -> Rating:
        """Get existing rating or create new one with initial values."""
        rating = self._ratings.get(item_id)
        if rating is None:
            rating = self.default_rating(item_id)
            self._ratings[item_id] = rating
            logger.debug(f"Created default rating for item {item_id}")
        return rating

    def peek(self, item_id: int) -> Optional[Rating]:
        """Get rating without creating one."""
        return self._ratings.get(item_id)

    def get_all_ratings(self) -> Dict[int, Rating]:
        """Copies of all ratings keyed by item id."""
        return {item_id: rating.copy() for item_id, rating in self._ratings.items()}

    def update_from_result(self, result: ComparisonResult) -> None:
        """
        Apply a comparison result.

        Each induced (winner, loser) pair gets a Plackett-Luce update, then
        every participant's battle count grows by exactly one.
        """
        for winner_id, loser_id in result.pairs():
            winner = self.get_rating(winner_id)
            loser = self.get_rating(loser_id)

            (winner.mu, winner.sigma), (loser.mu, loser.sigma) = update_ratings(
                winner.mu, winner.sigma,
                loser.mu, loser.sigma,
                min_sigma=self.min_sigma,
            )

        for item_id in result.set_ids:
            self.get_rating(item_id).battle_count += 1

        logger.debug(
            f"Applied {'implied ' if result.implied else ''}result "
            f"winners={list(result.winner_ids)} losers={list(result.loser_ids)}"
        )
        self._bus.publish(RatingsUpdated(
            item_ids=tuple(result.set_ids),
            source="implied" if result.implied else "comparison",
        ))

    def set_ordinal_score(self, item_id: int, score: float) -> Rating:
        """Move an item's mean so its conservative score equals ``score``."""
        rating = self.get_rating(item_id)
        rating.mu = score + settings.conservative_k * rating.sigma
        logger.debug(f"Assigned score {score:.3f} to item {item_id} (mu={rating.mu:.3f})")
        self._bus.publish(RatingsUpdated(item_ids=(item_id,), source="score-assignment"))
        return rating

    def restore(self, ratings: Iterable[Rating], source: str = "restore") -> None:
        """Overwrite stored ratings with the given copies."""
        restored = []
        for rating in ratings:
            if rating.sigma <= 0 or rating.battle_count < 0:
                raise ValueError(f"Invalid rating for item {rating.item_id}: {rating!r}")
            self._ratings[rating.item_id] = rating.copy()
            restored.append(rating.item_id)
        if restored:
            self._bus.publish(RatingsUpdated(item_ids=tuple(restored), source=source))

    def revert_result(
        self,
        previous: Iterable[Rating],
        created_ids: Iterable[int] = (),
    ) -> None:
        """
        Take back one result: restore mu/sigma from ``previous`` and count
        one battle less for each participant.

        Participants in ``created_ids`` had no rating before the result; they
        are dropped again once no battle is left on them.
        """
        created_ids = set(created_ids)
        reverted = []
        for prev in previous:
            rating = self._ratings.get(prev.item_id)
            if rating is None:
                continue
            rating.mu = prev.mu
            rating.sigma = prev.sigma
            rating.battle_count = max(rating.battle_count - 1, 0)
            if prev.item_id in created_ids and rating.battle_count == 0:
                del self._ratings[prev.item_id]
                logger.debug(f"Dropped rating for item {prev.item_id}, no battles left")
            reverted.append(prev.item_id)

        if reverted:
            self._bus.publish(RatingsUpdated(item_ids=tuple(reverted), source="undo"))

    def clear(self) -> None:
        count = len(self._ratings)
        self._ratings.clear()
        logger.info(f"Cleared {count} ratings")
        self._bus.publish(RatingsUpdated(item_ids=(), source="clear"))
