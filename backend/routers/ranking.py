"""Ranking routes - pairwise/triplet comparison session."""
import logging
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status

from config import get_settings
from models.ranking import MilestoneState, RankedItem
from schemas.ranking import (
    BattleTypeRequest,
    CatalogItemResponse,
    ChoiceRequest,
    ChoiceResponse,
    ComparisonResultResponse,
    GenerationRequest,
    GenerationResponse,
    InsertRequest,
    MilestoneSnapshotResponse,
    MilestoneStateResponse,
    MoveRequest,
    MoveResponse,
    NextComparisonResponse,
    ProgressResponse,
    RankingItem,
    RankingResponse,
    RefinementEntryResponse,
    RefinementRequest,
    SessionSnapshot,
)
from services.exceptions import (
    InsufficientCandidatesError,
    InvalidChoiceError,
    InvalidMoveError,
    NoActiveComparisonError,
    PersistenceFailure,
    UnknownItemError,
)
from services.reorder_translator import ReorderOutcome
from services.session import RankingSession
from services.session_store import SessionStore

logger = logging.getLogger(__name__)

router = APIRouter()
settings = get_settings()


def get_ranking_session(request: Request) -> RankingSession:
    """Ranking session created at startup."""
    session = getattr(request.app.state, "ranking_session", None)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Ranking session not initialized"
        )
    return session


def get_session_store(request: Request) -> Optional[SessionStore]:
    return getattr(request.app.state, "session_store", None)


async def persist_session(session: RankingSession, store: Optional[SessionStore]) -> None:
    """Save the session snapshot; failures are logged and never reach the client."""
    if store is None:
        return
    try:
        await store.save(settings.session_id, session.export_state())
    except PersistenceFailure as e:
        logger.error(f"Could not persist ranking session {settings.session_id}: {e}")


def _ranking_item(item: RankedItem) -> RankingItem:
    return RankingItem.model_validate(item)


def _milestone_response(state: MilestoneState) -> MilestoneStateResponse:
    snapshot = None
    if state.latest_snapshot is not None:
        snapshot = MilestoneSnapshotResponse(
            threshold=state.latest_snapshot.threshold,
            battle_counter=state.latest_snapshot.battle_counter,
            ranking=[_ranking_item(item) for item in state.latest_snapshot.ranking],
        )
    return MilestoneStateResponse(
        thresholds=list(state.thresholds),
        crossed_count=state.crossed_count,
        blocked=state.blocked,
        phase=state.phase.value,
        pending_unblock=state.pending_unblock,
        next_threshold=state.next_threshold,
        latest_snapshot=snapshot,
    )


def _move_response(outcome: ReorderOutcome) -> MoveResponse:
    return MoveResponse(
        item_id=outcome.item_id,
        from_index=outcome.from_index,
        to_index=outcome.to_index,
        score=outcome.score,
        implied_results=[ComparisonResultResponse.from_result(r) for r in outcome.implied_results],
    )


@router.get("/next", response_model=NextComparisonResponse)
async def get_next_comparison(session: RankingSession = Depends(get_ranking_session)):
    """Get the set of items to compare next."""
    try:
        comparison_set = session.get_next_comparison_set()
    except InsufficientCandidatesError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    if comparison_set is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Comparisons are paused for milestone review"
        )

    warning = session.scheduler.last_warning
    return NextComparisonResponse(
        items=[CatalogItemResponse.model_validate(session.catalog[item_id]) for item_id in comparison_set.ids],
        arity=comparison_set.arity,
        comparison_number=session.battle_counter + 1,
        total_comparisons=session.battle_counter,
        warning=str(warning) if warning else None,
    )


@router.post("/choice", response_model=ChoiceResponse)
async def submit_choice(
    data: ChoiceRequest,
    background_tasks: BackgroundTasks,
    session: RankingSession = Depends(get_ranking_session),
    store: Optional[SessionStore] = Depends(get_session_store),
):
    """Submit the winner(s) of the current comparison."""
    crossed_before = session.milestones.crossed_count
    try:
        result = session.submit_choice(data.winner_ids)
    except NoActiveComparisonError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e)
        )
    except InvalidChoiceError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    if result is None:
        return ChoiceResponse(accepted=False, battle_counter=session.battle_counter)

    milestone_reached = None
    if session.milestones.crossed_count > crossed_before and session.milestones.latest_snapshot:
        milestone_reached = session.milestones.latest_snapshot.threshold

    background_tasks.add_task(persist_session, session, store)
    return ChoiceResponse(
        accepted=True,
        result=ComparisonResultResponse.from_result(result),
        battle_counter=session.battle_counter,
        milestone_reached=milestone_reached,
    )


@router.post("/undo", response_model=ComparisonResultResponse)
async def undo_last_choice(
    background_tasks: BackgroundTasks,
    session: RankingSession = Depends(get_ranking_session),
    store: Optional[SessionStore] = Depends(get_session_store),
):
    """Undo the last comparison and restore previous rating values."""
    result = session.undo_last_choice()
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No comparison to undo"
        )
    background_tasks.add_task(persist_session, session, store)
    return ComparisonResultResponse.from_result(result)


@router.get("/leaderboard", response_model=RankingResponse)
async def get_leaderboard(
    page: int = Query(1, ge=1),
    per_page: int = Query(500, ge=1, le=1000),
    min_battles: int = Query(0, ge=0),
    session: RankingSession = Depends(get_ranking_session),
):
    """Get ranking leaderboard ordered by conservative score."""
    view = session.get_ranked_view(min_battles=min_battles)
    start = (page - 1) * per_page
    return RankingResponse(
        items=[_ranking_item(item) for item in view[start:start + per_page]],
        total=len(view),
        page=page,
        per_page=per_page,
    )


@router.get("/progress", response_model=ProgressResponse)
async def get_progress(session: RankingSession = Depends(get_ranking_session)):
    """Get ranking progress and convergence info."""
    progress = session.get_progress()
    return ProgressResponse(
        total_comparisons=progress.total_comparisons,
        convergence_percent=progress.convergence_percent,
        estimated_remaining=progress.estimated_remaining,
        average_sigma=progress.average_sigma,
        target_sigma=progress.target_sigma,
        rated_items=progress.rated_items,
        catalog_size=progress.catalog_size,
        refinement_pending=progress.refinement_pending,
        next_milestone=progress.next_milestone,
    )


@router.get("/milestone", response_model=MilestoneStateResponse)
async def get_milestone_state(session: RankingSession = Depends(get_ranking_session)):
    return _milestone_response(session.get_milestone_state())


@router.post("/milestone/dismiss", response_model=MilestoneStateResponse)
async def dismiss_milestone(session: RankingSession = Depends(get_ranking_session)):
    """Close the milestone review; comparisons resume after a short grace delay."""
    if not session.dismiss_milestone():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="No milestone review to dismiss"
        )
    return _milestone_response(session.get_milestone_state())


@router.post("/move", response_model=MoveResponse)
async def move_item(
    data: MoveRequest,
    background_tasks: BackgroundTasks,
    session: RankingSession = Depends(get_ranking_session),
    store: Optional[SessionStore] = Depends(get_session_store),
):
    """Apply a manual leaderboard move as implied comparisons."""
    try:
        outcome = session.move_item(data.item_id, data.from_index, data.to_index)
    except UnknownItemError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except InvalidMoveError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    background_tasks.add_task(persist_session, session, store)
    return _move_response(outcome)


@router.post("/insert", response_model=MoveResponse)
async def insert_item(
    data: InsertRequest,
    background_tasks: BackgroundTasks,
    session: RankingSession = Depends(get_ranking_session),
    store: Optional[SessionStore] = Depends(get_session_store),
):
    """Place an unranked item at a leaderboard position."""
    try:
        outcome = session.insert_item(data.item_id, data.to_index)
    except UnknownItemError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except InvalidMoveError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    background_tasks.add_task(persist_session, session, store)
    return _move_response(outcome)


@router.get("/implied", response_model=List[ComparisonResultResponse])
async def list_implied_results(session: RankingSession = Depends(get_ranking_session)):
    """Most recent implied results from manual moves."""
    return [ComparisonResultResponse.from_result(r) for r in session.implied_history]


@router.get("/refinement", response_model=List[RefinementEntryResponse])
async def list_refinement_queue(session: RankingSession = Depends(get_ranking_session)):
    return [RefinementEntryResponse.model_validate(e) for e in session.get_refinement_queue()]


@router.post("/refinement", response_model=RefinementEntryResponse)
async def flag_item(
    data: RefinementRequest,
    background_tasks: BackgroundTasks,
    session: RankingSession = Depends(get_ranking_session),
    store: Optional[SessionStore] = Depends(get_session_store),
):
    """Flag an item for extra comparisons."""
    battles = data.battles or settings.flag_refinement_battles
    try:
        entry = session.flag_item(data.item_id, battles)
    except UnknownItemError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    background_tasks.add_task(persist_session, session, store)
    return RefinementEntryResponse.model_validate(entry)


@router.put("/battle-type")
async def set_battle_type(
    data: BattleTypeRequest,
    background_tasks: BackgroundTasks,
    session: RankingSession = Depends(get_ranking_session),
    store: Optional[SessionStore] = Depends(get_session_store),
):
    """Switch between pairs and triplets."""
    session.set_arity(data.arity)
    background_tasks.add_task(persist_session, session, store)
    return {"arity": session.scheduler.arity}


@router.put("/generation", response_model=GenerationResponse)
async def set_generation(
    data: GenerationRequest,
    background_tasks: BackgroundTasks,
    session: RankingSession = Depends(get_ranking_session),
    store: Optional[SessionStore] = Depends(get_session_store),
):
    """Limit comparisons to items up to a generation (0 = all)."""
    eligible = session.set_generation(data.generation)
    background_tasks.add_task(persist_session, session, store)
    return GenerationResponse(generation=session.generation, eligible=len(eligible))


@router.get("/state", response_model=SessionSnapshot)
async def export_state(session: RankingSession = Depends(get_ranking_session)):
    return session.export_state()


@router.put("/state", response_model=ProgressResponse)
async def import_state(
    data: SessionSnapshot,
    background_tasks: BackgroundTasks,
    session: RankingSession = Depends(get_ranking_session),
    store: Optional[SessionStore] = Depends(get_session_store),
):
    """Replace the session with an exported snapshot."""
    session.import_state(data)
    background_tasks.add_task(persist_session, session, store)
    return await get_progress(session)


@router.get("/catalog", response_model=List[CatalogItemResponse])
async def list_catalog(session: RankingSession = Depends(get_ranking_session)):
    return [CatalogItemResponse.model_validate(item) for item in session.catalog.values()]


@router.post("/reset", status_code=status.HTTP_204_NO_CONTENT)
async def reset_session(
    background_tasks: BackgroundTasks,
    session: RankingSession = Depends(get_ranking_session),
    store: Optional[SessionStore] = Depends(get_session_store),
):
    """Clear all ratings, progress and pending milestone timers."""
    session.reset_session()
    background_tasks.add_task(persist_session, session, store)
