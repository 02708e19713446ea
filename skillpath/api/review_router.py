"""API routes for graded skill reviews and study planning."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from skillpath.api.schemas import (
    ReviewRequest,
    SkillStateListResponse,
    SkillStateResponse,
    StudyPlanResponse,
)
from skillpath.database import get_session
from skillpath.srs.service import SpacedRepetitionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/review", tags=["review"])


def get_service() -> SpacedRepetitionService:
    return SpacedRepetitionService()


@router.post("", response_model=SkillStateResponse)
async def review_skill(
    request: ReviewRequest,
    db: AsyncSession = Depends(get_session),
    service: SpacedRepetitionService = Depends(get_service),
) -> SkillStateResponse:
    """Apply a graded review to a skill."""
    try:
        row = await service.update_skill_after_review(
            db,
            learner_id=request.learner_id,
            skill_id=request.skill_id,
            grade=request.grade,
            score=request.score,
            now=request.reviewed_at,
        )
    except StaleDataError:
        raise HTTPException(status_code=409, detail="Skill state changed concurrently, retry") from None

    if row is None:
        raise HTTPException(status_code=404, detail="Skill not found")
    return SkillStateResponse.model_validate(row)


@router.post("/start", response_model=SkillStateResponse)
async def start_skill(
    learner_id: str,
    skill_id: str,
    db: AsyncSession = Depends(get_session),
    service: SpacedRepetitionService = Depends(get_service),
) -> SkillStateResponse:
    """Start tracking a skill for a learner (no-op if already tracked)."""
    row = await service.initialize_skill_state(db, learner_id, skill_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Skill not found")
    await db.commit()
    return SkillStateResponse.model_validate(row)


@router.get("/due", response_model=SkillStateListResponse)
async def due_skills(
    learner_id: str,
    db: AsyncSession = Depends(get_session),
    service: SpacedRepetitionService = Depends(get_service),
) -> SkillStateListResponse:
    """List skills due for review now."""
    rows = await service.get_due_skills(db, learner_id)
    return SkillStateListResponse(
        skill_states=[SkillStateResponse.model_validate(row) for row in rows],
        count=len(rows),
    )


@router.get("/queue", response_model=SkillStateListResponse)
async def study_queue(
    learner_id: str,
    limit: int | None = Query(default=None, ge=1, le=50),
    db: AsyncSession = Depends(get_session),
    service: SpacedRepetitionService = Depends(get_service),
) -> SkillStateListResponse:
    """List skills to study: due first, then new."""
    rows = await service.get_study_queue(db, learner_id, limit=limit)
    return SkillStateListResponse(
        skill_states=[SkillStateResponse.model_validate(row) for row in rows],
        count=len(rows),
    )


@router.get("/plan", response_model=StudyPlanResponse)
async def study_plan(
    learner_id: str,
    db: AsyncSession = Depends(get_session),
    service: SpacedRepetitionService = Depends(get_service),
) -> StudyPlanResponse:
    """Suggest a session length and per-skill priorities."""
    plan = await service.get_study_plan(db, learner_id)
    return StudyPlanResponse.model_validate(plan)
