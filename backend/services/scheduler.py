"""Comparison scheduler - decides what the user compares next."""
import logging
import random
import time
from collections import deque
from typing import Callable, Deque, Dict, Iterable, List, Optional, Sequence

from config import get_settings
from models.ranking import ComparisonSet, Rating, SchedulerPhase
from services.events import ComparisonSetPublished, EventBus
from services.exceptions import BattleTypeMismatch, InsufficientCandidatesError
from services.rating_store import RatingStore
from services.refinement_queue import RefinementQueue
from services.validator import ComparisonValidator
from utils.set_selection import candidate_pool, select_comparison_set

logger = logging.getLogger(__name__)
settings = get_settings()


class Scheduler:
    """
    Chooses the next comparison set.

    States: IDLE -> GENERATING -> AWAITING_RESULT -> IDLE, plus BLOCKED,
    entered from any state while a milestone is being reviewed and left only
    through ``unblock()``.
    """

    def __init__(
        self,
        catalog_ids: Sequence[int],
        store: RatingStore,
        refinement_queue: RefinementQueue,
        validator: Optional[ComparisonValidator] = None,
        arity: int = settings.default_arity,
        recent_memory_size: int = settings.recent_memory_size,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
        bus: Optional[EventBus] = None,
    ) -> None:
        self.catalog_ids = list(dict.fromkeys(catalog_ids))
        self.eligible_ids = list(self.catalog_ids)
        self._store = store
        self._queue = refinement_queue
        self._validator = validator or ComparisonValidator(self.catalog_ids)
        self._rng = rng or random.Random()
        self._clock = clock
        self._bus = bus or EventBus()
        self._recent_memory_size = recent_memory_size
        self.arity = self._check_arity(arity)

        self._phase = SchedulerPhase.IDLE
        self._busy = False
        self._current: Optional[ComparisonSet] = None
        self._last_set: Optional[ComparisonSet] = None
        self._recent_ids: Deque[int] = deque(maxlen=max(recent_memory_size, 1))
        self.consecutive_repeats = 0
        self.last_warning: Optional[BattleTypeMismatch] = None

    @staticmethod
    def _check_arity(arity: int) -> int:
        if arity not in (2, 3):
            raise ValueError(f"arity must be 2 (pairs) or 3 (triplets), got {arity}")
        return arity

    @property
    def phase(self) -> SchedulerPhase:
        return self._phase

    @property
    def current(self) -> Optional[ComparisonSet]:
        """The set awaiting a choice, if any."""
        return self._current

    @property
    def last_set(self) -> Optional[ComparisonSet]:
        return self._last_set

    def get_next_comparison_set(self) -> Optional[ComparisonSet]:
        """
        Return the set the user should compare now.

        While a set is awaiting a result it is returned again rather than
        generating an overlapping one. Returns None while BLOCKED or when
        called re-entrantly during generation.

        Raises:
            InsufficientCandidatesError: If fewer than ``arity`` items are
                eligible (the scheduler stays IDLE)
        """
        if self._phase == SchedulerPhase.BLOCKED:
            logger.info("Scheduler blocked by milestone review, not generating")
            return None
        if self._busy:
            logger.warning("Re-entrant comparison generation ignored")
            return None
        if self._phase == SchedulerPhase.AWAITING_RESULT and self._current is not None:
            return self._current

        self._busy = True
        self._phase = SchedulerPhase.GENERATING
        try:
            comparison_set = self._generate()
        except InsufficientCandidatesError:
            self._phase = SchedulerPhase.IDLE
            raise
        finally:
            self._busy = False

        # A subscriber may have blocked us while generating
        if self._phase == SchedulerPhase.BLOCKED:
            return None

        self._current = comparison_set
        self._last_set = comparison_set
        self._recent_ids.extend(comparison_set.ids)
        self._phase = SchedulerPhase.AWAITING_RESULT
        self._bus.publish(ComparisonSetPublished(
            comparison_set=comparison_set,
            warning=str(self.last_warning) if self.last_warning else None,
        ))
        return comparison_set

    def _stats(self) -> Dict[int, Rating]:
        stats = {}
        for item_id in self.eligible_ids:
            rating = self._store.peek(item_id)
            stats[item_id] = rating if rating is not None else self._store.default_rating(item_id)
        return stats

    def _pick_anchor(self, excluded: Sequence[int] = ()) -> Optional[int]:
        eligible = set(self.eligible_ids)
        for entry in self._queue.ordered():
            if entry.item_id in eligible and entry.item_id not in excluded:
                return entry.item_id
        return None

    def _repeat_exclusion(self, anchor_id: Optional[int]) -> List[int]:
        """Most recently used ids to avoid, widening with each consecutive repeat."""
        radius = self.consecutive_repeats
        room = len(self.eligible_ids) - self.arity
        recent = [item_id for item_id in reversed(self._recent_ids) if item_id != anchor_id]
        excluded: List[int] = []
        for item_id in recent:
            if len(excluded) >= min(radius, room):
                break
            if item_id not in excluded:
                excluded.append(item_id)
        return excluded

    def _generate(self) -> ComparisonSet:
        eligible = self.eligible_ids
        if len(eligible) < self.arity:
            raise InsufficientCandidatesError(
                f"At least {self.arity} eligible items required for a comparison set, got {len(eligible)}"
            )

        stats = self._stats()
        anchor_id = self._pick_anchor()
        ids = select_comparison_set(eligible, stats, self.arity, self._rng, anchor_id=anchor_id)

        if self._last_set is not None and tuple(sorted(ids)) == self._last_set.key:
            self.consecutive_repeats += 1
            logger.debug(
                f"Selection {ids} repeats the previous set "
                f"({self.consecutive_repeats} consecutive), resampling"
            )
            excluded = self._repeat_exclusion(anchor_id)
            ids = select_comparison_set(
                eligible, stats, self.arity, self._rng, anchor_id=anchor_id, excluded=excluded
            )
            if tuple(sorted(ids)) == self._last_set.key:
                logger.warning(f"Could not avoid repeating set {ids} with {len(eligible)} eligible items")
        else:
            self.consecutive_repeats = 0

        # Randomize order to avoid position bias
        self._rng.shuffle(ids)

        outcome = self._validator.validate(
            ComparisonSet(ids=tuple(ids), created_at=self._clock()),
            self.arity,
            candidate_pool=candidate_pool(eligible, stats, self._rng, exclude=ids),
        )
        self.last_warning = outcome.warning
        return outcome.comparison_set

    def mark_completed(self) -> None:
        """The in-flight set received its result."""
        self._current = None
        if self._phase != SchedulerPhase.BLOCKED:
            self._phase = SchedulerPhase.IDLE

    def discard_current(self) -> None:
        """Drop the in-flight set without a result."""
        if self._current is not None:
            logger.info(f"Discarding in-flight set {list(self._current.ids)}")
        self.mark_completed()

    def block(self) -> None:
        if self._phase != SchedulerPhase.BLOCKED:
            logger.info("Scheduler blocked")
        self._current = None
        self._phase = SchedulerPhase.BLOCKED

    def unblock(self) -> None:
        if self._phase == SchedulerPhase.BLOCKED:
            logger.info("Scheduler unblocked")
            self._phase = SchedulerPhase.IDLE

    def set_arity(self, arity: int) -> None:
        arity = self._check_arity(arity)
        if arity != self.arity:
            logger.info(f"Switching comparison size {self.arity} -> {arity}")
            self.arity = arity
            self.discard_current()
            self._last_set = None
            self.consecutive_repeats = 0

    def set_eligible(self, item_ids: Optional[Iterable[int]] = None) -> None:
        """
        Restrict future sets to ``item_ids`` (None restores the whole catalog).

        Ids outside the catalog are ignored. The in-flight set is discarded.
        """
        if item_ids is None:
            eligible = list(self.catalog_ids)
        else:
            wanted = set(item_ids)
            eligible = [item_id for item_id in self.catalog_ids if item_id in wanted]
        if eligible == self.eligible_ids:
            return
        logger.info(f"Eligible items {len(self.eligible_ids)} -> {len(eligible)}")
        self.eligible_ids = eligible
        self.discard_current()
        self._last_set = None
        self.consecutive_repeats = 0

    def reset(self) -> None:
        self._phase = SchedulerPhase.IDLE
        self._busy = False
        self._current = None
        self._last_set = None
        self._recent_ids.clear()
        self.consecutive_repeats = 0
        self.last_warning = None
