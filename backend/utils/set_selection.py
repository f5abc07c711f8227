"""Comparison set selection algorithms."""
import logging
import random
from typing import Collection, Dict, List, Mapping, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)


class HasBelief(Protocol):
    """Protocol for objects with a skill belief and a battle count."""
    mu: float
    sigma: float
    battle_count: int


class InsufficientCandidatesError(ValueError):
    """Raised when there are not enough items to fill a comparison set."""
    pass


def order_for_exploration(
    item_ids: Sequence[int],
    stats: Mapping[int, HasBelief],
    rng: random.Random
) -> List[int]:
    """
    Order items for exploration.

    Least compared items come first, ties broken by highest uncertainty
    (sigma), remaining ties broken randomly.
    """
    return sorted(
        item_ids,
        key=lambda item_id: (
            stats[item_id].battle_count,
            -stats[item_id].sigma,
            rng.random(),
        )
    )


def order_opponents(
    anchor_id: int,
    item_ids: Sequence[int],
    stats: Mapping[int, HasBelief],
    rng: random.Random
) -> List[int]:
    """
    Order candidate opponents for a priority item.

    Prefers opponents with high combined uncertainty and a similar skill
    estimate, i.e. the anchor's most informative neighbours.
    """
    anchor = stats[anchor_id]
    scores: Dict[int, float] = {}
    for item_id in item_ids:
        other = stats[item_id]
        combined_sigma = anchor.sigma + other.sigma
        mu_diff = abs(anchor.mu - other.mu)
        scores[item_id] = combined_sigma - mu_diff

    return sorted(
        (item_id for item_id in item_ids if item_id != anchor_id),
        key=lambda item_id: (-scores[item_id], stats[item_id].battle_count, rng.random())
    )


def select_comparison_set(
    eligible_ids: Sequence[int],
    stats: Mapping[int, HasBelief],
    arity: int,
    rng: random.Random,
    anchor_id: Optional[int] = None,
    excluded: Collection[int] = frozenset(),
) -> List[int]:
    """
    Select the members of the next comparison set.

    Args:
        eligible_ids: Catalog ids that may be scheduled
        stats: Mapping of item id to belief (every eligible id must be present)
        arity: Number of members (2 for pairs, 3 for triplets)
        rng: Random source for tie breaking
        anchor_id: Item that must be included (refinement priority)
        excluded: Ids to avoid (recently used); ignored if honouring it
                  would leave too few candidates

    Returns:
        List of ``arity`` distinct ids, anchor first when given

    Raises:
        InsufficientCandidatesError: If fewer than ``arity`` items are eligible
    """
    if len(eligible_ids) < arity:
        raise InsufficientCandidatesError(
            f"At least {arity} items required for a comparison set, got {len(eligible_ids)}"
        )

    needed = arity - 1 if anchor_id is not None else arity
    candidates = [
        item_id for item_id in eligible_ids
        if item_id != anchor_id and item_id not in excluded
    ]

    if len(candidates) < needed:
        logger.debug(
            f"Only {len(candidates)} candidates left after excluding "
            f"{len(excluded)} recent items, selecting from full set"
        )
        candidates = [item_id for item_id in eligible_ids if item_id != anchor_id]

    if anchor_id is None:
        return order_for_exploration(candidates, stats, rng)[:arity]

    opponents = order_opponents(anchor_id, candidates, stats, rng)
    return [anchor_id] + opponents[:needed]


def candidate_pool(
    eligible_ids: Sequence[int],
    stats: Mapping[int, HasBelief],
    rng: random.Random,
    exclude: Collection[int] = frozenset(),
) -> List[int]:
    """Exploration-ordered ids not in ``exclude``, used to pad repaired sets."""
    return order_for_exploration(
        [item_id for item_id in eligible_ids if item_id not in exclude], stats, rng
    )
