"""Storage boundary for scheduling state.

Rows hold the FSRS card as plain columns and the activity level states as a
JSON mapping. Everything crossing into the scheduling core is validated here
and converted to the typed structures of ``skillpath.srs``.
"""

import logging
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from skillpath.config import to_naive_utc
from skillpath.models.catalog import Activity, Skill, Unit
from skillpath.models.learner import Learner
from skillpath.models.skill_state import SkillState
from skillpath.srs.fsrs import CardState
from skillpath.srs.levels import ActivitySRSState, SRSLevel
from skillpath.srs.selection import CatalogActivity, CatalogUnit, SkillCatalogEntry

logger = logging.getLogger(__name__)


class CardStateRecord(BaseModel):
    """Validated FSRS columns of a skill state row."""

    stability: float = Field(gt=0)
    difficulty: float = Field(ge=0, le=10)
    retrievability: float = Field(ge=0, le=1)
    lapses: int = Field(ge=0)
    reps: int = Field(ge=0)
    last_reviewed_at: datetime | None = None
    next_review_at: datetime | None = None

    @field_validator("last_reviewed_at", "next_review_at")
    @classmethod
    def _naive_utc(cls, value: datetime | None) -> datetime | None:
        return to_naive_utc(value) if value is not None else None

    def to_card(self) -> CardState:
        return CardState(**self.model_dump())


class ActivityStateRecord(BaseModel):
    """Validated JSON entry for one activity's level state."""

    level: int = Field(ge=0, le=3)
    next_review_at: datetime
    last_attempt_at: datetime
    consecutive_correct: int = Field(default=0, ge=0)

    @field_validator("next_review_at", "last_attempt_at")
    @classmethod
    def _naive_utc(cls, value: datetime) -> datetime:
        return to_naive_utc(value)

    def to_state(self) -> ActivitySRSState:
        return ActivitySRSState(
            level=SRSLevel(self.level),
            next_review_at=self.next_review_at,
            last_attempt_at=self.last_attempt_at,
            consecutive_correct=self.consecutive_correct,
        )

    @classmethod
    def from_state(cls, state: ActivitySRSState) -> "ActivityStateRecord":
        return cls(
            level=int(state.level),
            next_review_at=state.next_review_at,
            last_attempt_at=state.last_attempt_at,
            consecutive_correct=state.consecutive_correct,
        )


def card_from_row(row: SkillState) -> CardState:
    """Read the FSRS card of a row, rejecting out-of-range values."""
    record = CardStateRecord(
        stability=row.stability,
        difficulty=row.difficulty,
        retrievability=row.retrievability,
        lapses=row.lapses,
        reps=row.reps,
        last_reviewed_at=row.last_reviewed_at,
        next_review_at=row.next_review_at,
    )
    return record.to_card()


def apply_card(row: SkillState, card: CardState) -> None:
    """Write a card back onto its row."""
    row.stability = card.stability
    row.difficulty = card.difficulty
    row.retrievability = card.retrievability
    row.lapses = card.lapses
    row.reps = card.reps
    row.last_reviewed_at = card.last_reviewed_at
    row.next_review_at = card.next_review_at


def activity_states_from_json(data: dict[str, Any] | None) -> dict[str, ActivitySRSState]:
    """Parse the stored activity-state mapping."""
    return {
        activity_id: ActivityStateRecord.model_validate(entry).to_state()
        for activity_id, entry in (data or {}).items()
    }


def activity_states_to_json(states: dict[str, ActivitySRSState]) -> dict[str, Any]:
    return {
        activity_id: ActivityStateRecord.from_state(state).model_dump(mode="json")
        for activity_id, state in states.items()
    }


def catalog_entry(row: SkillState) -> SkillCatalogEntry:
    """Build a selection input from a skill state row with its catalog loaded."""
    skill = row.skill
    units = tuple(
        CatalogUnit(
            id=unit.id,
            name=unit.name,
            order=unit.order or 0,
            activities=tuple(
                CatalogActivity(id=activity.id, name=activity.name, order=activity.order or 0)
                for activity in unit.activities
            ),
        )
        for unit in skill.units
    )
    return SkillCatalogEntry(
        skill_id=skill.id,
        skill_name=skill.name,
        units=units,
        activity_states=activity_states_from_json(row.activity_states),
    )


async def get_or_create_learner(session: AsyncSession, learner_id: str) -> Learner:
    learner = await session.get(Learner, learner_id)
    if learner is None:
        learner = Learner(id=learner_id)
        session.add(learner)
        await session.flush()
        logger.info("Created learner %s", learner_id)
    return learner


async def get_skill_state(
    session: AsyncSession,
    learner_id: str,
    skill_id: str,
) -> SkillState | None:
    """Fetch the current state row of a learner-skill pair (fresh from the database)."""
    stmt = (
        select(SkillState)
        .where(
            and_(
                SkillState.learner_id == learner_id,
                SkillState.skill_id == skill_id,
            )
        )
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_skill_states(session: AsyncSession, learner_id: str) -> list[SkillState]:
    stmt = (
        select(SkillState)
        .where(SkillState.learner_id == learner_id)
        .order_by(SkillState.updated_at.asc(), SkillState.id.asc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def load_catalog(session: AsyncSession, learner_id: str) -> list[tuple[SkillState, SkillCatalogEntry]]:
    """Load every skill the learner has state for, with units and activities.

    Args:
        session: Database session.
        learner_id: The learner to load.

    Returns:
        (row, catalog entry) pairs, least recently updated first.
    """
    stmt = (
        select(SkillState)
        .where(SkillState.learner_id == learner_id)
        .order_by(SkillState.updated_at.asc(), SkillState.id.asc())
        .options(
            selectinload(SkillState.skill)
            .selectinload(Skill.units)
            .selectinload(Unit.activities)
        )
    )
    result = await session.execute(stmt)
    rows = list(result.scalars().all())
    return [(row, catalog_entry(row)) for row in rows if row.skill is not None]


async def get_activity_with_skill(session: AsyncSession, activity_id: str) -> Activity | None:
    """Fetch an activity together with its skill's full catalog."""
    stmt = (
        select(Activity)
        .where(Activity.id == activity_id)
        .options(
            selectinload(Activity.unit)
            .selectinload(Unit.skill)
            .selectinload(Skill.units)
            .selectinload(Unit.activities)
        )
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()
