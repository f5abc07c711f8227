"""
Ranking session - wires the engine components behind one facade.

Everything runs on the caller's thread. Time only advances through the
injected clocks, and the pending milestone unblock is polled at the start
of every public operation.
"""
import logging
import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Type, TypeVar

from config import get_settings
from models.ranking import (
    CatalogItem,
    ComparisonResult,
    ComparisonSet,
    MilestoneState,
    RankedItem,
    Rating,
    RefinementEntry,
)
from schemas.ranking import RatingSnapshot, RefinementEntrySnapshot, SessionSnapshot
from services.completion_handler import CompletionHandler
from services.events import EventBus, MilestoneChanged, SessionReset
from services.catalog import filter_by_generation
from services.exceptions import UnknownItemError
from services.milestone_coordinator import MilestoneCoordinator
from services.ranking_view import RankingViewBuilder
from services.rating_store import RatingStore
from services.refinement_queue import RefinementQueue
from services.reorder_translator import ReorderOutcome, ReorderTranslator
from services.scheduler import Scheduler
from services.validator import ComparisonValidator
from utils.rating import calculate_convergence, estimate_remaining_comparisons

logger = logging.getLogger(__name__)
settings = get_settings()

E = TypeVar("E")


@dataclass(frozen=True)
class SessionProgress:
    total_comparisons: int
    convergence_percent: float
    estimated_remaining: int
    average_sigma: float
    target_sigma: float
    rated_items: int
    catalog_size: int
    refinement_pending: int
    next_milestone: Optional[int]


class RankingSession:
    """One rater's ranking session over a closed catalog."""

    def __init__(
        self,
        catalog: Sequence[CatalogItem],
        arity: int = settings.default_arity,
        milestones: Sequence[int] = tuple(settings.milestones),
        generation: int = settings.default_generation,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self.catalog: Dict[int, CatalogItem] = {item.id: item for item in catalog}
        self._clock = clock
        self.bus = EventBus()

        self.store = RatingStore(bus=self.bus)
        self.refinement_queue = RefinementQueue(battle_count_of=self._battle_count_of, bus=self.bus)
        self.view_builder = RankingViewBuilder(
            self.store, names={item.id: item.name for item in catalog}
        )
        self.scheduler = Scheduler(
            list(self.catalog),
            self.store,
            self.refinement_queue,
            validator=ComparisonValidator(self.catalog),
            arity=arity,
            rng=rng,
            clock=clock,
            bus=self.bus,
        )
        self.milestones = MilestoneCoordinator(
            thresholds=milestones,
            view_provider=self.view_builder.build,
            clock=clock,
            bus=self.bus,
        )
        self.completion = CompletionHandler(
            self.store,
            self.refinement_queue,
            self.milestones,
            scheduler=self.scheduler,
            clock=clock,
            wall_clock=wall_clock,
            bus=self.bus,
        )
        self.reorder = ReorderTranslator(
            self.store,
            self.refinement_queue,
            self.view_builder,
            clock=wall_clock,
        )

        self.generation = 0
        self.set_generation(generation)

        self.bus.subscribe(MilestoneChanged, self._on_milestone_changed)
        logger.info(f"Ranking session ready with {len(self.catalog)} items, arity {arity}")

    def _battle_count_of(self, item_id: int) -> int:
        rating = self.store.peek(item_id)
        return rating.battle_count if rating is not None else 0

    def _on_milestone_changed(self, event: MilestoneChanged) -> None:
        if event.state.blocked:
            self.scheduler.block()
        else:
            self.scheduler.unblock()

    def _poll(self) -> None:
        self.milestones.poll()

    def _require_item(self, item_id: int) -> CatalogItem:
        item = self.catalog.get(item_id)
        if item is None:
            raise UnknownItemError(f"Item {item_id} is not in the catalog")
        return item

    def subscribe(self, event_type: Type[E], handler: Callable[[E], None]) -> Callable[[], None]:
        return self.bus.subscribe(event_type, handler)

    @property
    def battle_counter(self) -> int:
        return self.completion.battle_counter

    @property
    def history(self) -> Sequence[ComparisonResult]:
        return self.completion.history

    # Comparisons

    def get_next_comparison_set(self) -> Optional[ComparisonSet]:
        self._poll()
        return self.scheduler.get_next_comparison_set()

    def submit_choice(self, chosen_ids: Iterable[int]) -> Optional[ComparisonResult]:
        """Apply the user's pick for the set currently on screen."""
        self._poll()
        return self.completion.on_user_choice(chosen_ids, self.scheduler.current)

    def undo_last_choice(self) -> Optional[ComparisonResult]:
        self._poll()
        result = self.completion.undo_last()
        if result is not None:
            self.scheduler.discard_current()
        return result

    def set_arity(self, arity: int) -> None:
        self._poll()
        self.scheduler.set_arity(arity)

    def set_generation(self, generation: int) -> List[int]:
        """
        Compare only items introduced up to ``generation`` (0 = all).

        Ratings of filtered-out items are kept and still listed on the
        leaderboard. Returns the eligible ids.

        Raises:
            ValueError: If the generation is unknown
        """
        self._poll()
        eligible = filter_by_generation(self.catalog, generation)
        self.scheduler.set_eligible(eligible)
        self.generation = generation
        logger.info(f"Generation filter {generation or 'off'}: {len(eligible)} eligible items")
        return eligible

    # Leaderboard

    def get_ranked_view(self, min_battles: int = 0) -> List[RankedItem]:
        self._poll()
        view = self.view_builder.build()
        if min_battles > 0:
            view = [item for item in view if item.battle_count >= min_battles]
        return view

    def move_item(
        self,
        item_id: int,
        from_index: int,
        to_index: int,
        current_order: Optional[Sequence[int]] = None,
    ) -> ReorderOutcome:
        """Apply a manual drag of ``item_id`` on the leaderboard."""
        self._poll()
        self._require_item(item_id)
        if current_order is None:
            current_order = [item.id for item in self.view_builder.build()]
        return self.reorder.on_manual_move(item_id, from_index, to_index, current_order)

    def insert_item(self, item_id: int, to_index: int) -> ReorderOutcome:
        self._poll()
        self._require_item(item_id)
        current_order = [item.id for item in self.view_builder.build()]
        return self.reorder.on_manual_insert(item_id, to_index, current_order)

    @property
    def implied_history(self) -> List[ComparisonResult]:
        return self.reorder.implied_history

    # Refinement

    def flag_item(self, item_id: int, battles: int = settings.flag_refinement_battles) -> RefinementEntry:
        """Ask for ``battles`` more comparisons involving ``item_id``."""
        self._poll()
        self._require_item(item_id)
        return self.refinement_queue.enqueue(item_id, battles, "user-flag")

    def get_refinement_queue(self) -> List[RefinementEntry]:
        self._poll()
        return self.refinement_queue.entries()

    # Milestones

    def get_milestone_state(self) -> MilestoneState:
        self._poll()
        return self.milestones.state

    def dismiss_milestone(self) -> bool:
        self._poll()
        return self.milestones.dismiss()

    # Progress

    def get_progress(self) -> SessionProgress:
        self._poll()
        sigmas = []
        for item_id in self.catalog:
            rating = self.store.peek(item_id)
            sigmas.append(rating.sigma if rating is not None else self.store.initial_sigma)
        avg_sigma = sum(sigmas) / len(sigmas) if sigmas else self.store.initial_sigma

        convergence = calculate_convergence(avg_sigma, self.store.initial_sigma, settings.target_sigma)
        estimated_remaining = estimate_remaining_comparisons(
            avg_sigma,
            self.store.initial_sigma,
            settings.target_sigma,
            full_convergence_estimate=max(len(self.catalog) * 10, 1),
        )
        return SessionProgress(
            total_comparisons=self.battle_counter,
            convergence_percent=round(convergence, 1),
            estimated_remaining=estimated_remaining,
            average_sigma=round(avg_sigma, 3),
            target_sigma=settings.target_sigma,
            rated_items=len(self.store),
            catalog_size=len(self.catalog),
            refinement_pending=len(self.refinement_queue),
            next_milestone=self.milestones.next_threshold,
        )

    # Persistence

    def export_state(self) -> SessionSnapshot:
        self._poll()
        return SessionSnapshot(
            ratings=[
                RatingSnapshot.model_validate(rating)
                for rating in self.store.get_all_ratings().values()
            ],
            battle_counter=self.battle_counter,
            refinement_queue=[
                RefinementEntrySnapshot.model_validate(entry)
                for entry in self.refinement_queue.entries()
            ],
            arity=self.scheduler.arity,
            generation=self.generation,
            saved_at=datetime.now(timezone.utc),
        )

    def import_state(self, snapshot: SessionSnapshot) -> None:
        """
        Replace the session state with ``snapshot``.

        Items outside the catalog are skipped. Milestones already passed by
        the imported counter are marked consumed without blocking.
        """
        ratings = []
        for rating in snapshot.ratings:
            if rating.item_id not in self.catalog:
                logger.warning(f"Skipping imported rating for unknown item {rating.item_id}")
                continue
            ratings.append(Rating(rating.item_id, rating.mu, rating.sigma, rating.battle_count))
        entries = [entry for entry in snapshot.refinement_queue if entry.item_id in self.catalog]

        self.reset_session()
        self.store.restore(ratings, source="import")
        for entry in entries:
            self.refinement_queue.enqueue(entry.item_id, entry.remaining_required, entry.reason)
        self.completion.load(snapshot.battle_counter)
        self.milestones.sync(snapshot.battle_counter)
        self.scheduler.set_arity(snapshot.arity)
        self.set_generation(snapshot.generation)
        logger.info(
            f"Imported session: {len(ratings)} ratings, {len(entries)} refinement entries, "
            f"{snapshot.battle_counter} battles"
        )

    def reset_session(self) -> None:
        """Clear all state and cancel the pending unblock in one call."""
        self.milestones.reset()
        self.scheduler.reset()
        self.store.clear()
        self.refinement_queue.clear()
        self.completion.reset()
        self.reorder.clear()
        logger.info("Ranking session reset")
        self.bus.publish(SessionReset())
