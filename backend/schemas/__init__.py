"""Pydantic schemas for API validation."""
from .ranking import (
    CatalogItemResponse,
    NextComparisonResponse,
    ChoiceRequest,
    ChoiceResponse,
    ComparisonResultResponse,
    RankingItem,
    RankingResponse,
    ProgressResponse,
    MilestoneStateResponse,
    MoveRequest,
    InsertRequest,
    MoveResponse,
    RefinementRequest,
    RefinementEntryResponse,
    BattleTypeRequest,
    SessionSnapshot,
)

__all__ = [
    "CatalogItemResponse",
    "NextComparisonResponse",
    "ChoiceRequest",
    "ChoiceResponse",
    "ComparisonResultResponse",
    "RankingItem",
    "RankingResponse",
    "ProgressResponse",
    "MilestoneStateResponse",
    "MoveRequest",
    "InsertRequest",
    "MoveResponse",
    "RefinementRequest",
    "RefinementEntryResponse",
    "BattleTypeRequest",
    "SessionSnapshot",
]
