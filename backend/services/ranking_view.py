"""Leaderboard projection of the rating store."""
from typing import List, Mapping, Optional

from config import get_settings
from models.ranking import RankedItem, Rating
from services.rating_store import RatingStore
from utils.rating import calculate_confidence

settings = get_settings()


def build_ranked_view(
    ratings: Mapping[int, Rating],
    sigma_max: float = settings.initial_sigma,
    names: Optional[Mapping[int, str]] = None,
    exclude_id: Optional[int] = None,
) -> List[RankedItem]:
    """
    Sort ratings by conservative score and assign ranks.

    Args:
        ratings: Mapping of item id to rating
        sigma_max: Sigma that corresponds to zero confidence
        names: Optional display names by item id
        exclude_id: Item to leave out of the projection

    Returns:
        RankedItem list, best first, ranks starting at 1
    """
    names = names or {}
    ordered = sorted(
        (rating for item_id, rating in ratings.items() if item_id != exclude_id),
        key=lambda rating: (-rating.ordinal_score, rating.item_id)
    )
    return [
        RankedItem(
            id=rating.item_id,
            name=names.get(rating.item_id),
            score=rating.ordinal_score,
            confidence=calculate_confidence(rating.sigma, sigma_max),
            rank=position + 1,
            mu=rating.mu,
            sigma=rating.sigma,
            battle_count=rating.battle_count,
        )
        for position, rating in enumerate(ordered)
    ]


class RankingViewBuilder:
    """Derives the displayable leaderboard from a rating store."""

    def __init__(self, store: RatingStore, names: Optional[Mapping[int, str]] = None) -> None:
        self._store = store
        self._names = dict(names or {})

    def build(self, exclude_id: Optional[int] = None) -> List[RankedItem]:
        return build_ranked_view(
            self._store.get_all_ratings(),
            sigma_max=self._store.initial_sigma,
            names=self._names,
            exclude_id=exclude_id,
        )
