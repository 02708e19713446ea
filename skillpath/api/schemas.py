"""Pydantic schemas for API request/response models."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from skillpath.config import to_naive_utc
from skillpath.srs.fsrs import ReviewGrade
from skillpath.srs.progress import SkillStatus, StudyPriority

# --- Review ---


class ReviewRequest(BaseModel):
    """Request to grade a review of a skill."""

    learner_id: str = Field(min_length=1)
    skill_id: str = Field(min_length=1)
    grade: ReviewGrade
    score: float | None = Field(default=None, ge=0, le=1)
    reviewed_at: datetime | None = None  # Defaults to server time

    @field_validator("reviewed_at")
    @classmethod
    def _naive_utc(cls, value: datetime | None) -> datetime | None:
        return to_naive_utc(value) if value is not None else None


class SkillStateResponse(BaseModel):
    """A learner's state for one skill."""

    id: str
    learner_id: str
    skill_id: str
    status: SkillStatus
    progress: float
    mastery_score: float | None
    stability: float
    difficulty: float
    retrievability: float
    lapses: int
    reps: int
    last_reviewed_at: datetime | None
    next_review_at: datetime | None

    model_config = {"from_attributes": True}


class SkillStateListResponse(BaseModel):
    skill_states: list[SkillStateResponse]
    count: int


class StudyPlanItemResponse(BaseModel):
    skill_id: str
    estimated_minutes: int
    priority: StudyPriority

    model_config = {"from_attributes": True}


class StudyPlanResponse(BaseModel):
    """Suggested session length and skill priorities."""

    recommended_minutes: int
    priority_skill_ids: list[str]
    items: list[StudyPlanItemResponse]

    model_config = {"from_attributes": True}


# --- Activities ---


class SchedulingResponse(BaseModel):
    """Level-scheduler state of a presented activity."""

    level: int
    next_review_at: datetime
    last_attempt_at: datetime
    is_due: bool
    reason: Literal["due", "upcoming"]


class CandidateResponse(BaseModel):
    """An activity with the context needed to present it."""

    activity_id: str
    activity_name: str
    activity_order: int
    unit_id: str
    unit_name: str
    unit_order: int
    skill_id: str
    skill_name: str
    scheduling: SchedulingResponse


class SkillSummaryResponse(BaseModel):
    id: str
    status: SkillStatus
    progress: float
    mastery_score: float | None

    model_config = {"from_attributes": True}


class NextActivityResponse(BaseModel):
    """The next activity, or null with reason "no-activities"."""

    activity: CandidateResponse | None = None
    skill_state: SkillSummaryResponse | None = None
    reason: Literal["due", "upcoming", "no-activities"]


class UpcomingActivitiesResponse(BaseModel):
    activities: list[CandidateResponse]
    count: int


class AttemptRequest(BaseModel):
    """Request to record an attempt on an activity."""

    learner_id: str = Field(min_length=1)
    activity_id: str = Field(min_length=1)
    status: Literal["in_progress", "completed", "abandoned"] = "completed"
    score: float | None = None
    max_score: float | None = Field(default=None, gt=0)
    success: bool | None = None  # Overrides score-based success
    attempted_at: datetime | None = None

    @field_validator("attempted_at")
    @classmethod
    def _naive_utc(cls, value: datetime | None) -> datetime | None:
        return to_naive_utc(value) if value is not None else None


class ActivityStateResponse(BaseModel):
    level: int
    next_review_at: datetime
    last_attempt_at: datetime
    consecutive_correct: int


class AttemptResponse(BaseModel):
    """Result of an attempt: success, new level state, new skill state."""

    attempt_id: str
    success: bool
    srs: ActivityStateResponse
    skill_state: SkillSummaryResponse
