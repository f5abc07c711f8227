"""
In-process publish/subscribe channel for ranking engine notifications.

Subscribers register per payload type, so every consumer of an event is
visible at the ``subscribe`` call site. Delivery is synchronous and in
subscription order.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, DefaultDict, List, Optional, Tuple, Type, TypeVar

from models.ranking import ComparisonResult, ComparisonSet, MilestoneState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RatingsUpdated:
    """Ratings of ``item_ids`` changed."""
    item_ids: Tuple[int, ...]
    source: str


@dataclass(frozen=True)
class ComparisonSetPublished:
    comparison_set: ComparisonSet
    warning: Optional[str] = None


@dataclass(frozen=True)
class ComparisonCompleted:
    result: ComparisonResult
    battle_counter: int


@dataclass(frozen=True)
class MilestoneChanged:
    state: MilestoneState


@dataclass(frozen=True)
class RefinementQueueChanged:
    item_ids: Tuple[int, ...]


@dataclass(frozen=True)
class SessionReset:
    pass


E = TypeVar("E")


class EventBus:
    """Synchronous typed event channel."""

    def __init__(self) -> None:
        self._handlers: DefaultDict[type, List[Callable]] = defaultdict(list)

    def subscribe(self, event_type: Type[E], handler: Callable[[E], None]) -> Callable[[], None]:
        """Register ``handler`` for ``event_type``. Returns an unsubscribe callable."""
        self._handlers[event_type].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers[event_type]:
                self._handlers[event_type].remove(handler)

        return unsubscribe

    def publish(self, event: object) -> None:
        """
        Deliver ``event`` to the handlers of its exact type.

        A failing subscriber is logged and does not stop delivery to the
        remaining subscribers or the publishing operation.
        """
        for handler in list(self._handlers[type(event)]):
            try:
                handler(event)
            except Exception:
                logger.exception(
                    f"Subscriber {getattr(handler, '__qualname__', handler)!r} "
                    f"failed handling {type(event).__name__}"
                )
