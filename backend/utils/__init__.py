"""Utility functions."""
from .rating import (
    update_ratings,
    calculate_confidence,
    calculate_convergence,
    estimate_remaining_comparisons,
)
from .debounce import (
    is_duplicate_submission,
    SubmissionGuard,
)
from .deferred import DeferredAction
from .set_selection import (
    select_comparison_set,
    InsufficientCandidatesError,
)

__all__ = [
    "update_ratings",
    "calculate_confidence",
    "calculate_convergence",
    "estimate_remaining_comparisons",
    "is_duplicate_submission",
    "SubmissionGuard",
    "DeferredAction",
    "select_comparison_set",
    "InsufficientCandidatesError",
]
