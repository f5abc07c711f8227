"""Milestone checkpoints that pause comparisons for review."""
import logging
import time
from typing import Callable, List, Optional, Sequence

from config import get_settings
from models.ranking import (
    ComparisonResult,
    MilestonePhase,
    MilestoneSnapshot,
    MilestoneState,
    RankedItem,
)
from services.events import EventBus, MilestoneChanged
from utils.deferred import DeferredAction

logger = logging.getLogger(__name__)
settings = get_settings()


class MilestoneCoordinator:
    """
    Gates the scheduler at fixed battle-count thresholds.

    WATCHING -> SNAPSHOTTING -> BLOCKED on a threshold crossing, and
    BLOCKED -> WATCHING once a dismissal's grace delay has elapsed.
    Thresholds are consumed strictly in ascending order, each at most once.
    """

    def __init__(
        self,
        thresholds: Sequence[int] = tuple(settings.milestones),
        grace_ms: int = settings.milestone_grace_ms,
        view_provider: Callable[[], List[RankedItem]] = list,
        clock: Callable[[], float] = time.monotonic,
        bus: Optional[EventBus] = None,
    ) -> None:
        thresholds = tuple(thresholds)
        if any(b <= a for a, b in zip(thresholds, thresholds[1:])):
            raise ValueError(f"Milestone thresholds must be strictly ascending: {thresholds}")
        self.thresholds = thresholds
        self.grace_seconds = grace_ms / 1000
        self._view_provider = view_provider
        self._clock = clock
        self._bus = bus or EventBus()

        self.crossed_count = 0
        self._phase = MilestonePhase.WATCHING
        self._pending_unblock: Optional[DeferredAction] = None
        self.snapshots: List[MilestoneSnapshot] = []

    @property
    def phase(self) -> MilestonePhase:
        return self._phase

    @property
    def blocked(self) -> bool:
        return self._phase != MilestonePhase.WATCHING

    @property
    def next_threshold(self) -> Optional[int]:
        if self.crossed_count < len(self.thresholds):
            return self.thresholds[self.crossed_count]
        return None

    @property
    def latest_snapshot(self) -> Optional[MilestoneSnapshot]:
        return self.snapshots[-1] if self.snapshots else None

    @property
    def state(self) -> MilestoneState:
        return MilestoneState(
            thresholds=self.thresholds,
            crossed_count=self.crossed_count,
            blocked=self.blocked,
            phase=self._phase,
            pending_unblock=self._pending_unblock is not None and self._pending_unblock.pending,
            next_threshold=self.next_threshold,
            latest_snapshot=self.latest_snapshot,
        )

    def check(self, battle_counter: int, history: Sequence[ComparisonResult]) -> Optional[MilestoneSnapshot]:
        """
        Check the new battle counter against the unconsumed thresholds.

        Every threshold at or below the counter is consumed; one snapshot is
        taken for the most recent of them and the coordinator blocks.

        Returns:
            The snapshot taken, or None if no threshold was reached
        """
        crossed = []
        while self.next_threshold is not None and battle_counter >= self.next_threshold:
            crossed.append(self.next_threshold)
            self.crossed_count += 1

        if not crossed:
            return None

        if len(crossed) > 1:
            logger.warning(f"Counter jumped to {battle_counter}, consumed milestones {crossed} at once")

        threshold = crossed[-1]
        self._phase = MilestonePhase.SNAPSHOTTING
        snapshot = MilestoneSnapshot(
            threshold=threshold,
            battle_counter=battle_counter,
            ranking=tuple(self._view_provider()),
            results=tuple(history),
            taken_at=self._clock(),
        )
        self.snapshots.append(snapshot)

        if self._pending_unblock is not None:
            self._pending_unblock.cancel()
            self._pending_unblock = None

        self._phase = MilestonePhase.BLOCKED
        logger.info(
            f"Milestone {threshold} reached at {battle_counter} battles, "
            f"snapshot of {len(snapshot.ranking)} items, comparisons paused"
        )
        self._bus.publish(MilestoneChanged(state=self.state))
        return snapshot

    def dismiss(self) -> bool:
        """
        Schedule the return to WATCHING after the grace delay.

        Returns:
            False if there is nothing to dismiss or a dismissal is already pending
        """
        if self._phase != MilestonePhase.BLOCKED:
            logger.debug("Dismiss ignored, no milestone is being shown")
            return False
        if self._pending_unblock is not None and self._pending_unblock.pending:
            return False

        self._pending_unblock = DeferredAction(
            due_at=self._clock() + self.grace_seconds,
            callback=self._unblock,
            label="milestone unblock",
        )
        logger.info(f"Milestone dismissed, resuming in {self.grace_seconds * 1000:.0f}ms")
        self._bus.publish(MilestoneChanged(state=self.state))
        return True

    def poll(self) -> bool:
        """Run the pending unblock if its grace delay has elapsed."""
        if self._pending_unblock is None:
            return False
        return self._pending_unblock.fire_if_due(self._clock())

    def _unblock(self) -> None:
        self._pending_unblock = None
        self._phase = MilestonePhase.WATCHING
        logger.info("Milestone review finished, comparisons resumed")
        self._bus.publish(MilestoneChanged(state=self.state))

    def sync(self, battle_counter: int) -> None:
        """Mark thresholds already passed by an imported counter as consumed, without blocking."""
        self.crossed_count = sum(1 for threshold in self.thresholds if threshold <= battle_counter)

    def reset(self) -> None:
        if self._pending_unblock is not None:
            self._pending_unblock.cancel()
            self._pending_unblock = None
        was_blocked = self.blocked
        self.crossed_count = 0
        self._phase = MilestonePhase.WATCHING
        self.snapshots.clear()
        if was_blocked:
            self._bus.publish(MilestoneChanged(state=self.state))
