"""Translates manual leaderboard edits into ratings."""
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional, Sequence, Tuple

from config import get_settings
from models.ranking import ComparisonResult, RankedItem
from services.exceptions import InvalidMoveError, UnknownItemError
from services.ranking_view import RankingViewBuilder
from services.rating_store import RatingStore
from services.refinement_queue import RefinementQueue

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass(frozen=True)
class ReorderOutcome:
    item_id: int
    from_index: Optional[int]
    to_index: int
    implied_results: Tuple[ComparisonResult, ...]
    score: Optional[float]


def interpolate_score(neighbours: Sequence[RankedItem], to_index: int, boost: float) -> Optional[float]:
    """
    Score that places an item at ``to_index`` among ``neighbours``.

    Above the top item by ``boost``, below the bottom item by ``boost``,
    otherwise the midpoint of the two items around the slot. None if there
    is nothing to place against.
    """
    if not neighbours:
        return None
    if to_index <= 0:
        return neighbours[0].score + boost
    if to_index >= len(neighbours):
        return neighbours[-1].score - boost

    above = neighbours[to_index - 1].score
    below = neighbours[to_index].score
    if above == below:
        logger.warning(
            f"Neighbours {neighbours[to_index - 1].id} and {neighbours[to_index].id} "
            f"share score {above:.3f}, placement at {to_index} cannot be strict"
        )
    return (above + below) / 2


class ReorderTranslator:
    """
    Converts drag-and-drop moves into implied results and a direct score.

    Implied results update beliefs and battle counts but never count as
    user comparisons: they do not advance the battle counter, feed
    milestones or progress refinement entries.
    """

    def __init__(
        self,
        store: RatingStore,
        refinement_queue: RefinementQueue,
        view_builder: RankingViewBuilder,
        boost: float = settings.reorder_score_boost,
        refinement_battles: int = settings.reorder_refinement_battles,
        implied_history_size: int = settings.implied_history_size,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._queue = refinement_queue
        self._view_builder = view_builder
        self.boost = boost
        self.refinement_battles = refinement_battles
        self._clock = clock
        self._implied_log: Deque[ComparisonResult] = deque(maxlen=implied_history_size)

    @property
    def implied_history(self) -> List[ComparisonResult]:
        """Most recent implied results, oldest first."""
        return list(self._implied_log)

    def on_manual_move(
        self,
        item_id: int,
        from_index: int,
        to_index: int,
        current_order: Sequence[int],
    ) -> ReorderOutcome:
        """
        Apply a manual move of ``item_id`` within ``current_order``.

        Moving up yields one implied win over every item passed; moving down
        one implied loss to every item passed. The item then gets a score
        interpolated between its new neighbours in the re-sorted view and is
        queued for refinement.

        Raises:
            InvalidMoveError: If an index is outside ``current_order``
            UnknownItemError: If ``item_id`` is not in ``current_order``
        """
        order = list(current_order)
        for name, index in (("from_index", from_index), ("to_index", to_index)):
            if not 0 <= index < len(order):
                raise InvalidMoveError(f"{name} {index} out of range for {len(order)} items")

        if order[from_index] != item_id:
            if item_id not in order:
                raise UnknownItemError(f"Item {item_id} is not in the current order")
            actual = order.index(item_id)
            logger.warning(f"Item {item_id} expected at {from_index} but found at {actual}")
            from_index = actual

        if from_index == to_index:
            logger.debug(f"Move of item {item_id} to its own position ignored")
            return ReorderOutcome(item_id, from_index, to_index, (), None)

        if to_index < from_index:
            passed = order[to_index:from_index]
            implied = [self._implied(item_id, other) for other in passed]
        else:
            passed = order[from_index + 1:to_index + 1]
            implied = [self._implied(other, item_id) for other in passed]

        for result in implied:
            self._store.update_from_result(result)
            self._implied_log.append(result)

        score = self._assign_score(item_id, to_index)
        self._queue.enqueue(item_id, self.refinement_battles, "manual-reorder")

        logger.info(
            f"Moved item {item_id} from {from_index} to {to_index}: "
            f"{len(implied)} implied results, score {score}"
        )
        return ReorderOutcome(item_id, from_index, to_index, tuple(implied), score)

    def on_manual_insert(
        self,
        item_id: int,
        to_index: int,
        current_order: Sequence[int],
    ) -> ReorderOutcome:
        """
        Place an item at ``to_index`` by score alone.

        Used for items that are not on the leaderboard yet; an item that is
        already in ``current_order`` is moved instead.

        Raises:
            InvalidMoveError: If ``to_index`` is outside ``0..len(current_order)``
        """
        order = list(current_order)
        if item_id in order:
            return self.on_manual_move(item_id, order.index(item_id), min(to_index, len(order) - 1), order)
        if not 0 <= to_index <= len(order):
            raise InvalidMoveError(f"to_index {to_index} out of range for {len(order)} items")

        score = self._assign_score(item_id, to_index)
        self._queue.enqueue(item_id, self.refinement_battles, "manual-insert")
        logger.info(f"Inserted item {item_id} at {to_index} with score {score}")
        return ReorderOutcome(item_id, None, to_index, (), score)

    def _implied(self, winner_id: int, loser_id: int) -> ComparisonResult:
        return ComparisonResult(
            set_ids=(winner_id, loser_id),
            winner_ids=(winner_id,),
            timestamp=self._clock(),
            implied=True,
        )

    def _assign_score(self, item_id: int, to_index: int) -> Optional[float]:
        neighbours = self._view_builder.build(exclude_id=item_id)
        score = interpolate_score(neighbours, to_index, self.boost)
        if score is None:
            self._store.get_rating(item_id)
            return None
        self._store.set_ordinal_score(item_id, score)
        return score

    def clear(self) -> None:
        self._implied_log.clear()
