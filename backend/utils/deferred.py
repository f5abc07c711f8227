"""Cancellable deferred actions driven by an injected clock."""
import logging
from typing import Callable

logger = logging.getLogger(__name__)


class DeferredAction:
    """
    A callback scheduled to run once at or after ``due_at``.

    Nothing runs on its own: the owner calls ``fire_if_due(now)`` from its
    event loop. ``cancel()`` voids the action for good.
    """

    def __init__(self, due_at: float, callback: Callable[[], None], label: str = "deferred") -> None:
        self.due_at = due_at
        self.label = label
        self._callback = callback
        self._cancelled = False
        self._done = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        return self._done

    @property
    def pending(self) -> bool:
        return not (self._cancelled or self._done)

    def cancel(self) -> bool:
        """Cancel the action. Returns False if it already ran or was cancelled."""
        if not self.pending:
            return False
        self._cancelled = True
        logger.debug(f"Cancelled {self.label} (due at {self.due_at:.3f})")
        return True

    def fire_if_due(self, now: float) -> bool:
        """Run the callback if the due time has passed. Returns True if it ran."""
        if not self.pending or now < self.due_at:
            return False
        self._done = True
        logger.debug(f"Firing {self.label}")
        self._callback()
        return True

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "done" if self._done else "pending"
        return f"<DeferredAction({self.label}, due_at={self.due_at:.3f}, {state})>"
