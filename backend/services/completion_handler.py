"""Turns user choices into comparison results."""
import logging
import time
from dataclasses import dataclass
from typing import Callable, FrozenSet, Iterable, List, Optional, Tuple

from config import get_settings
from models.ranking import ComparisonResult, ComparisonSet, Rating, RefinementEntry
from services.events import ComparisonCompleted, EventBus
from services.exceptions import InvalidChoiceError, NoActiveComparisonError
from services.milestone_coordinator import MilestoneCoordinator
from services.rating_store import RatingStore
from services.refinement_queue import RefinementQueue
from services.scheduler import Scheduler
from utils.debounce import SubmissionGuard

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass(frozen=True)
class _UndoRecord:
    """State of the participants before a result was applied."""
    result: ComparisonResult
    ratings: Tuple[Rating, ...]
    created_ids: FrozenSet[int]
    refinement: Tuple[RefinementEntry, ...]


class CompletionHandler:
    """
    Consumes user choices.

    Owns the battle counter and the result history. Rapid duplicate input
    (a repeat of the same choice inside the debounce window, or a choice
    arriving while the previous one is still being processed) is dropped
    without touching any state.
    """

    def __init__(
        self,
        store: RatingStore,
        refinement_queue: RefinementQueue,
        milestones: MilestoneCoordinator,
        scheduler: Optional[Scheduler] = None,
        duplicate_window_ms: int = settings.duplicate_window_ms,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
        bus: Optional[EventBus] = None,
    ) -> None:
        self._store = store
        self._queue = refinement_queue
        self._milestones = milestones
        self._scheduler = scheduler
        self._clock = clock
        self._wall_clock = wall_clock
        self._bus = bus or EventBus()
        self._guard = SubmissionGuard(window_seconds=duplicate_window_ms / 1000)

        self.battle_counter = 0
        self.processing = False
        self._history: List[ComparisonResult] = []
        self._undo: List[_UndoRecord] = []

    @property
    def history(self) -> Tuple[ComparisonResult, ...]:
        return tuple(self._history)

    def on_user_choice(
        self,
        chosen_ids: Iterable[int],
        presented_set: Optional[ComparisonSet],
    ) -> Optional[ComparisonResult]:
        """
        Process the user's pick for the presented set.

        Args:
            chosen_ids: Ids the user picked (one for pairs, one or two for triplets)
            presented_set: The set that was on screen

        Returns:
            The accepted result, or None when the input was a duplicate

        Raises:
            NoActiveComparisonError: If nothing was presented
            InvalidChoiceError: If the pick does not fit the presented set
        """
        chosen = tuple(dict.fromkeys(chosen_ids))
        key = frozenset(chosen)
        now = self._clock()

        if self.processing:
            logger.debug(f"Choice {list(chosen)} ignored, previous choice still processing")
            return None
        if self._guard.is_duplicate(now, key):
            return None
        if presented_set is None:
            raise NoActiveComparisonError("No comparison is awaiting a choice")

        self._check_choice(chosen, presented_set)

        self.processing = True
        try:
            result = ComparisonResult(
                set_ids=presented_set.ids,
                winner_ids=chosen,
                timestamp=self._wall_clock(),
            )
            self._guard.record(now, key)
            created_ids = frozenset(item_id for item_id in result.set_ids if item_id not in self._store)
            self._undo.append(_UndoRecord(
                result=result,
                ratings=tuple(self._store.get_rating(item_id).copy() for item_id in result.set_ids),
                created_ids=created_ids,
                refinement=tuple(
                    entry for entry in (self._copy_entry(item_id) for item_id in result.set_ids)
                    if entry is not None
                ),
            ))

            self._store.update_from_result(result)
            if self._scheduler is not None:
                self._scheduler.mark_completed()
            self._queue.on_battle_observed(result.set_ids)

            self.battle_counter += 1
            self._history.append(result)
            logger.info(
                f"Comparison #{self.battle_counter}: {list(result.winner_ids)} "
                f"beat {list(result.loser_ids)}"
            )
            self._bus.publish(ComparisonCompleted(result=result, battle_counter=self.battle_counter))
            self._milestones.check(self.battle_counter, self._history)
            return result
        finally:
            self.processing = False

    @staticmethod
    def _check_choice(chosen: Tuple[int, ...], presented_set: ComparisonSet) -> None:
        if not chosen:
            raise InvalidChoiceError("At least one item must be chosen")
        outside = [item_id for item_id in chosen if item_id not in presented_set.ids]
        if outside:
            raise InvalidChoiceError(f"Chosen items {outside} are not part of the comparison")
        if len(chosen) >= presented_set.arity:
            raise InvalidChoiceError("At least one item must lose the comparison")
        if presented_set.arity == 2 and len(chosen) != 1:
            raise InvalidChoiceError("Pairs take exactly one winner")

    def _copy_entry(self, item_id: int) -> Optional[RefinementEntry]:
        entry = self._queue.get(item_id)
        if entry is None:
            return None
        return RefinementEntry(entry.item_id, entry.remaining_required, entry.reason)

    def undo_last(self) -> Optional[ComparisonResult]:
        """
        Revert the most recent result.

        Restores the participants' previous mu/sigma, takes one battle off
        each of them and gives back the refinement progress the result used
        up. Entries queued after the result are kept; milestones already
        crossed stay crossed.

        Returns:
            The reverted result, or None if there is nothing to undo
        """
        if self.processing or not self._undo:
            return None

        record = self._undo.pop()
        self._history.pop()
        self.battle_counter -= 1
        self._store.revert_result(record.ratings, created_ids=record.created_ids)
        for entry in record.refinement:
            # enqueue keeps the larger requirement
            self._queue.enqueue(entry.item_id, entry.remaining_required, entry.reason)
        self._guard.reset()

        logger.info(
            f"Undo successful: comparison #{self.battle_counter + 1} "
            f"({list(record.result.winner_ids)} beat {list(record.result.loser_ids)}) reverted"
        )
        return record.result

    def load(self, battle_counter: int) -> None:
        """Adopt an imported counter. History from before the import is not available."""
        if battle_counter < 0:
            raise ValueError(f"battle_counter must be >= 0, got {battle_counter}")
        self.battle_counter = battle_counter
        self._history.clear()
        self._undo.clear()
        self._guard.reset()

    def reset(self) -> None:
        self.load(0)
        self.processing = False
