"""Time-windowed guards against duplicate input.

Pure functions of explicit timestamps so they can be exercised without
wall-clock waits. Timestamps are seconds from any monotonic clock.
"""
import logging
from dataclasses import dataclass
from typing import Hashable, Optional

logger = logging.getLogger(__name__)


def is_duplicate_submission(
    now: float,
    last_event_time: Optional[float],
    last_event_key: Optional[Hashable],
    event_key: Hashable,
    window_seconds: float,
) -> bool:
    """
    Check whether an event repeats the previous one inside the window.

    Args:
        now: Timestamp of the incoming event
        last_event_time: Timestamp of the previously accepted event (None if none)
        last_event_key: Key of the previously accepted event
        event_key: Key of the incoming event
        window_seconds: Length of the suppression window

    Returns:
        True if the event has the same key and arrived less than
        ``window_seconds`` after the previous one
    """
    if last_event_time is None or last_event_key != event_key:
        return False
    return now - last_event_time < window_seconds


@dataclass
class SubmissionGuard:
    """Remembers the last accepted submission for duplicate suppression."""

    window_seconds: float
    last_event_time: Optional[float] = None
    last_event_key: Optional[Hashable] = None

    def is_duplicate(self, now: float, event_key: Hashable) -> bool:
        duplicate = is_duplicate_submission(
            now, self.last_event_time, self.last_event_key, event_key, self.window_seconds
        )
        if duplicate:
            logger.debug(
                f"Suppressing duplicate submission {event_key!r} "
                f"({(now - self.last_event_time) * 1000:.0f}ms after previous)"
            )
        return duplicate

    def record(self, now: float, event_key: Hashable) -> None:
        self.last_event_time = now
        self.last_event_key = event_key

    def reset(self) -> None:
        self.last_event_time = None
        self.last_event_key = None
