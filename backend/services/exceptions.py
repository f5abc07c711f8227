"""Ranking engine exceptions and warnings."""
from utils.set_selection import InsufficientCandidatesError


class RankingError(Exception):
    """Base class for recoverable ranking engine errors."""
    pass


class InvalidChoiceError(RankingError, ValueError):
    """Raised when a submitted choice does not fit the presented set."""
    pass


class NoActiveComparisonError(RankingError):
    """Raised when a choice arrives while no comparison set is in flight."""
    pass


class UnknownItemError(RankingError, KeyError):
    """Raised when an operation names an item outside the catalog or view."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Unknown item"


class InvalidMoveError(RankingError, ValueError):
    """Raised when a manual move has out-of-range indices."""
    pass


class PersistenceFailure(RankingError):
    """Raised by the snapshot store when saving or loading keeps failing."""
    pass


class BattleTypeMismatch(UserWarning):
    """A comparison set had the wrong size or duplicates and was repaired."""
    pass


__all__ = [
    "RankingError",
    "InsufficientCandidatesError",
    "InvalidChoiceError",
    "NoActiveComparisonError",
    "UnknownItemError",
    "InvalidMoveError",
    "PersistenceFailure",
    "BattleTypeMismatch",
]
