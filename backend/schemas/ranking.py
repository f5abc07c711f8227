"""Ranking schemas."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class CatalogItemResponse(BaseModel):
    """Catalog item info for the comparison UI."""
    id: int
    name: str
    display_meta: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        from_attributes = True


class NextComparisonResponse(BaseModel):
    """Response with the next set to compare."""
    items: List[CatalogItemResponse]
    arity: int
    comparison_number: int
    total_comparisons: int
    warning: Optional[str] = None


class ChoiceRequest(BaseModel):
    """Schema for submitting a choice; triplets accept one or two winners."""
    winner_ids: List[int] = Field(..., min_length=1, max_length=2)


class ComparisonResultResponse(BaseModel):
    """Schema for an applied comparison result."""
    set_ids: List[int]
    winner_ids: List[int]
    loser_ids: List[int]
    timestamp: datetime
    implied: bool = False

    @classmethod
    def from_result(cls, result) -> "ComparisonResultResponse":
        return cls(
            set_ids=list(result.set_ids),
            winner_ids=list(result.winner_ids),
            loser_ids=list(result.loser_ids),
            timestamp=datetime.fromtimestamp(result.timestamp),
            implied=result.implied,
        )


class ChoiceResponse(BaseModel):
    """Outcome of a submitted choice."""
    accepted: bool
    result: Optional[ComparisonResultResponse] = None
    battle_counter: int
    milestone_reached: Optional[int] = None


class RankingItem(BaseModel):
    """Single item in the ranking."""
    rank: int
    id: int
    name: Optional[str] = None
    score: float
    confidence: float = Field(..., ge=0, le=100)
    mu: float
    sigma: float
    battle_count: int

    class Config:
        from_attributes = True


class RankingResponse(BaseModel):
    """Full ranking response."""
    items: List[RankingItem]
    total: int
    page: int
    per_page: int


class ProgressResponse(BaseModel):
    """Ranking progress/convergence info."""
    total_comparisons: int
    convergence_percent: float = Field(..., ge=0, le=100)
    estimated_remaining: int
    average_sigma: float
    target_sigma: float
    rated_items: int
    catalog_size: int
    refinement_pending: int
    next_milestone: Optional[int] = None


class MilestoneSnapshotResponse(BaseModel):
    threshold: int
    battle_counter: int
    ranking: List[RankingItem]


class MilestoneStateResponse(BaseModel):
    """Milestone coordinator state."""
    thresholds: List[int]
    crossed_count: int
    blocked: bool
    phase: str
    pending_unblock: bool
    next_threshold: Optional[int] = None
    latest_snapshot: Optional[MilestoneSnapshotResponse] = None


class MoveRequest(BaseModel):
    """Manual leaderboard move."""
    item_id: int
    from_index: int = Field(..., ge=0)
    to_index: int = Field(..., ge=0)


class InsertRequest(BaseModel):
    """Place an unranked item at a leaderboard position."""
    item_id: int
    to_index: int = Field(..., ge=0)


class MoveResponse(BaseModel):
    item_id: int
    from_index: Optional[int] = None
    to_index: int
    score: Optional[float] = None
    implied_results: List[ComparisonResultResponse]


class RefinementRequest(BaseModel):
    """Flag an item for extra comparisons."""
    item_id: int
    battles: Optional[int] = Field(None, ge=1)


class RefinementEntryResponse(BaseModel):
    item_id: int
    remaining_required: int
    reason: str

    class Config:
        from_attributes = True


class BattleTypeRequest(BaseModel):
    """Switch between pairs and triplets."""
    arity: int

    @field_validator("arity")
    @classmethod
    def _supported(cls, value: int) -> int:
        if value not in (2, 3):
            raise ValueError("arity must be 2 or 3")
        return value


class GenerationRequest(BaseModel):
    """Limit comparisons to items up to a generation (0 = all)."""
    generation: int = Field(..., ge=0, le=9)


class GenerationResponse(BaseModel):
    generation: int
    eligible: int


# Persistence schemas

class RatingSnapshot(BaseModel):
    item_id: int
    mu: float
    sigma: float = Field(..., gt=0)
    battle_count: int = Field(0, ge=0)

    class Config:
        from_attributes = True


class RefinementEntrySnapshot(BaseModel):
    item_id: int
    remaining_required: int = Field(..., gt=0)
    reason: str

    class Config:
        from_attributes = True


class SessionSnapshot(BaseModel):
    """Serializable ranking session state."""
    ratings: List[RatingSnapshot] = Field(default_factory=list)
    battle_counter: int = Field(0, ge=0)
    refinement_queue: List[RefinementEntrySnapshot] = Field(default_factory=list)
    arity: int = 2
    generation: int = Field(0, ge=0, le=9)
    saved_at: Optional[datetime] = None

    @field_validator("arity")
    @classmethod
    def _supported(cls, value: int) -> int:
        if value not in (2, 3):
            raise ValueError("arity must be 2 or 3")
        return value
