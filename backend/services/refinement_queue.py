"""Priority re-comparison queue."""
import logging
from typing import Callable, Dict, Iterable, List, Optional

from models.ranking import RefinementEntry
from services.events import EventBus, RefinementQueueChanged

logger = logging.getLogger(__name__)


def _no_battles(item_id: int) -> int:
    return 0


class RefinementQueue:
    """
    Tracks items that must appear in a minimum number of upcoming comparisons.

    One entry per item; an entry disappears as soon as its remaining count
    reaches zero.
    """

    def __init__(
        self,
        battle_count_of: Callable[[int], int] = _no_battles,
        bus: Optional[EventBus] = None,
    ) -> None:
        self._battle_count_of = battle_count_of
        self._bus = bus or EventBus()
        self._entries: Dict[int, RefinementEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, item_id: int) -> bool:
        return item_id in self._entries

    def enqueue(self, item_id: int, required_battles: int, reason: str) -> RefinementEntry:
        """
        Require ``item_id`` to appear in ``required_battles`` more comparisons.

        If the item is already queued, the larger requirement wins; progress
        is never reset downward.
        """
        if required_battles <= 0:
            raise ValueError(f"required_battles must be positive, got {required_battles}")

        entry = self._entries.get(item_id)
        if entry is None:
            entry = RefinementEntry(item_id=item_id, remaining_required=required_battles, reason=reason)
            self._entries[item_id] = entry
            logger.info(f"Queued item {item_id} for {required_battles} refinement battles ({reason})")
        elif required_battles > entry.remaining_required:
            logger.info(
                f"Raised refinement requirement for item {item_id}: "
                f"{entry.remaining_required} -> {required_battles} ({reason})"
            )
            entry.remaining_required = required_battles
            entry.reason = reason
        else:
            logger.debug(
                f"Item {item_id} already queued with {entry.remaining_required} "
                f">= {required_battles} battles"
            )
            return entry

        self._publish((item_id,))
        return entry

    def on_battle_observed(self, participant_ids: Iterable[int]) -> List[int]:
        """
        Count one comparison for every queued participant.

        Returns:
            Ids whose requirement was satisfied by this comparison
        """
        touched = []
        completed = []
        for item_id in set(participant_ids):
            entry = self._entries.get(item_id)
            if entry is None:
                continue
            entry.remaining_required -= 1
            touched.append(item_id)
            if entry.remaining_required <= 0:
                del self._entries[item_id]
                completed.append(item_id)
                logger.info(f"Refinement complete for item {item_id} ({entry.reason})")

        if touched:
            self._publish(tuple(sorted(touched)))
        return completed

    def is_empty(self) -> bool:
        return not self._entries

    def ordered(self) -> List[RefinementEntry]:
        """Entries by priority: most remaining battles first, then fewest battles played."""
        return sorted(
            self._entries.values(),
            key=lambda entry: (-entry.remaining_required, self._battle_count_of(entry.item_id), entry.item_id)
        )

    def peek_next(self) -> Optional[RefinementEntry]:
        ordered = self.ordered()
        return ordered[0] if ordered else None

    def get(self, item_id: int) -> Optional[RefinementEntry]:
        return self._entries.get(item_id)

    def entries(self) -> List[RefinementEntry]:
        """Copies of the current entries in priority order."""
        return [
            RefinementEntry(entry.item_id, entry.remaining_required, entry.reason)
            for entry in self.ordered()
        ]

    def remove(self, item_id: int) -> bool:
        if self._entries.pop(item_id, None) is None:
            return False
        self._publish((item_id,))
        return True

    def clear(self) -> None:
        if not self._entries:
            return
        logger.info(f"Clearing all {len(self._entries)} refinement entries")
        self._entries.clear()
        self._publish(())

    def _publish(self, item_ids) -> None:
        self._bus.publish(RefinementQueueChanged(item_ids=tuple(item_ids)))
