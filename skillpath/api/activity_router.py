"""API routes for activity selection and attempts."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from skillpath.api.review_router import get_service
from skillpath.api.schemas import (
    ActivityStateResponse,
    AttemptRequest,
    AttemptResponse,
    CandidateResponse,
    NextActivityResponse,
    SchedulingResponse,
    SkillSummaryResponse,
    UpcomingActivitiesResponse,
)
from skillpath.database import get_session
from skillpath.srs.selection import Candidate
from skillpath.srs.service import SpacedRepetitionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/activities", tags=["activities"])


def _candidate_response(candidate: Candidate) -> CandidateResponse:
    return CandidateResponse(
        activity_id=candidate.activity_id,
        activity_name=candidate.activity_name,
        activity_order=candidate.activity_order,
        unit_id=candidate.unit_id,
        unit_name=candidate.unit_name,
        unit_order=candidate.unit_order,
        skill_id=candidate.skill_id,
        skill_name=candidate.skill_name,
        scheduling=SchedulingResponse(
            level=int(candidate.level),
            next_review_at=candidate.next_review_at,
            last_attempt_at=candidate.last_attempt_at,
            is_due=candidate.is_due,
            reason="due" if candidate.is_due else "upcoming",
        ),
    )


@router.get("/next", response_model=NextActivityResponse)
async def next_activity(
    learner_id: str,
    db: AsyncSession = Depends(get_session),
    service: SpacedRepetitionService = Depends(get_service),
) -> NextActivityResponse:
    """Pick the activity to present next."""
    selection = await service.next_activity(db, learner_id)
    if selection is None:
        return NextActivityResponse(reason="no-activities")

    candidate = selection.candidate
    return NextActivityResponse(
        activity=_candidate_response(candidate),
        skill_state=SkillSummaryResponse.model_validate(selection.skill_state),
        reason="due" if candidate.is_due else "upcoming",
    )


@router.get("/upcoming", response_model=UpcomingActivitiesResponse)
async def upcoming_activities(
    learner_id: str,
    limit: int | None = Query(default=None, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
    service: SpacedRepetitionService = Depends(get_service),
) -> UpcomingActivitiesResponse:
    """List activities in the order they would be presented."""
    candidates = await service.upcoming_activities(db, learner_id, limit=limit)
    return UpcomingActivitiesResponse(
        activities=[_candidate_response(c) for c in candidates],
        count=len(candidates),
    )


@router.post("/attempt", response_model=AttemptResponse, status_code=201)
async def submit_attempt(
    request: AttemptRequest,
    db: AsyncSession = Depends(get_session),
    service: SpacedRepetitionService = Depends(get_service),
) -> AttemptResponse:
    """Record an attempt and update the activity's level."""
    try:
        outcome = await service.record_attempt(
            db,
            learner_id=request.learner_id,
            activity_id=request.activity_id,
            success=request.success,
            score=request.score,
            max_score=request.max_score,
            status=request.status,
            now=request.attempted_at,
        )
    except StaleDataError:
        raise HTTPException(status_code=409, detail="Skill state changed concurrently, retry") from None

    if outcome is None:
        raise HTTPException(status_code=404, detail="Activity not found")

    state = outcome.activity_state
    return AttemptResponse(
        attempt_id=outcome.attempt.id,
        success=outcome.success,
        srs=ActivityStateResponse(
            level=int(state.level),
            next_review_at=state.next_review_at,
            last_attempt_at=state.last_attempt_at,
            consecutive_correct=state.consecutive_correct,
        ),
        skill_state=SkillSummaryResponse.model_validate(outcome.skill_state),
    )
