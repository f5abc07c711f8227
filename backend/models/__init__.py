"""Domain models."""
from .ranking import (
    SchedulerPhase,
    MilestonePhase,
    CatalogItem,
    Rating,
    ComparisonSet,
    ComparisonResult,
    RefinementEntry,
    RankedItem,
    MilestoneSnapshot,
    MilestoneState,
)

__all__ = [
    "SchedulerPhase",
    "MilestonePhase",
    "CatalogItem",
    "Rating",
    "ComparisonSet",
    "ComparisonResult",
    "RefinementEntry",
    "RankedItem",
    "MilestoneSnapshot",
    "MilestoneState",
]
