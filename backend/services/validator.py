"""Comparison set validation and repair."""
import logging
from dataclasses import dataclass
from typing import Collection, List, Optional, Sequence

from models.ranking import ComparisonSet
from services.exceptions import BattleTypeMismatch, InsufficientCandidatesError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationOutcome:
    comparison_set: ComparisonSet
    warning: Optional[BattleTypeMismatch] = None


class ComparisonValidator:
    """Guarantees a comparison set has the expected arity and distinct catalog ids."""

    def __init__(self, known_ids: Collection[int]) -> None:
        self.known_ids = frozenset(known_ids)

    def validate(
        self,
        comparison_set: ComparisonSet,
        expected_arity: int,
        candidate_pool: Sequence[int] = (),
    ) -> ValidationOutcome:
        """
        Validate a comparison set, repairing it when needed.

        Unknown ids and duplicates are dropped (first occurrence kept), short
        sets are padded from ``candidate_pool`` in order and long sets are
        truncated. A repair is reported through ``ValidationOutcome.warning``
        and never fails the round.

        Raises:
            InsufficientCandidatesError: If the set cannot be padded to
                ``expected_arity`` distinct known ids
        """
        ids: List[int] = []
        for item_id in comparison_set.ids:
            if item_id in self.known_ids and item_id not in ids:
                ids.append(item_id)

        problems = []
        dropped = len(comparison_set.ids) - len(ids)
        if dropped:
            problems.append(f"dropped {dropped} duplicate or unknown id(s)")

        if len(ids) < expected_arity:
            for item_id in candidate_pool:
                if len(ids) >= expected_arity:
                    break
                if item_id in self.known_ids and item_id not in ids:
                    ids.append(item_id)
            if len(ids) < expected_arity:
                raise InsufficientCandidatesError(
                    f"Cannot fill a set of {expected_arity} items, only {len(ids)} available"
                )
            problems.append(f"padded to {expected_arity}")
        elif len(ids) > expected_arity:
            problems.append(f"truncated {len(ids) - expected_arity} extra id(s)")
            ids = ids[:expected_arity]

        if not problems:
            return ValidationOutcome(comparison_set=comparison_set)

        message = (
            f"Expected {expected_arity} items, got {len(comparison_set.ids)} "
            f"{list(comparison_set.ids)}: {', '.join(problems)}"
        )
        logger.warning(f"Battle type mismatch: {message}")
        return ValidationOutcome(
            comparison_set=ComparisonSet(ids=tuple(ids), created_at=comparison_set.created_at),
            warning=BattleTypeMismatch(message),
        )
