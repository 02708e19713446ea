"""Spaced repetition service.

Coordinates the memory model, the level scheduler, progress evaluation and
candidate selection with the database. Each write is a read-modify-write
of one learner-skill row; a concurrent writer is detected through the row
version and the whole computation is re-run on fresh state.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TypeVar

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from skillpath.config import settings, to_naive_utc, utcnow
from skillpath.models.attempt import Attempt
from skillpath.models.catalog import Skill
from skillpath.models.skill_state import SkillState
from skillpath.srs import repository
from skillpath.srs.fsrs import FSRS, FSRSParameters, ReviewGrade
from skillpath.srs.levels import (
    ActivitySRSState,
    get_activity_state,
    is_attempt_successful,
    update_activity_state,
    update_activity_states,
)
from skillpath.srs.progress import (
    REVIEW_RETRIEVABILITY,
    SkillStatus,
    StudyPriority,
    activity_progress,
    attempt_status,
    calculate_progress,
    determine_status,
    estimate_study_minutes,
    study_priority,
)
from skillpath.srs.selection import Candidate, rank_candidates, select_next

logger = logging.getLogger(__name__)

T = TypeVar("T")

STUDY_PLAN_QUEUE_SIZE = 15
MIN_SESSION_MINUTES = 15
MAX_SESSION_MINUTES = 60


@dataclass
class AttemptOutcome:
    """What an attempt changed."""

    attempt: Attempt
    skill_state: SkillState
    activity_state: ActivitySRSState
    success: bool


@dataclass
class Selection:
    """The chosen activity and the state of the skill it belongs to."""

    candidate: Candidate
    skill_state: SkillState


@dataclass
class StudyPlanItem:
    skill_id: str
    estimated_minutes: int
    priority: StudyPriority


@dataclass
class StudyPlan:
    recommended_minutes: int
    priority_skill_ids: list[str] = field(default_factory=list)
    items: list[StudyPlanItem] = field(default_factory=list)


def determine_success(
    success: bool | None,
    score: float | None,
    max_score: float | None,
    status: str,
) -> bool:
    """Decide whether an attempt counts as correct.

    An explicit flag wins, then score against max_score, then completion.
    """
    if success is not None:
        return success
    if score is not None and max_score is not None:
        return is_attempt_successful(score, max_score)
    return status == "completed"


class SpacedRepetitionService:
    """Scheduling operations for one learner at a time."""

    def __init__(self, fsrs: FSRS | None = None, max_retries: int | None = None) -> None:
        self.fsrs = fsrs or FSRS(
            FSRSParameters(
                request_retention=settings.request_retention,
                maximum_interval=settings.maximum_interval,
            )
        )
        self.max_retries = max_retries if max_retries is not None else settings.max_write_retries

    async def _with_retry(
        self,
        db: AsyncSession,
        operation: Callable[[], Awaitable[T]],
        description: str,
    ) -> T:
        """Run a read-modify-write, re-running it when the row changed underneath."""

        async def attempt() -> T:
            try:
                result = await operation()
                await db.commit()
            except StaleDataError:
                await db.rollback()
                raise
            return result

        retrying = AsyncRetrying(
            retry=retry_if_exception_type(StaleDataError),
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=0.01, max=0.2),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            return await retrying(attempt)
        except StaleDataError:
            logger.error("Giving up on %s after %d conflicting writes", description, self.max_retries)
            raise

    async def initialize_skill_state(
        self,
        db: AsyncSession,
        learner_id: str,
        skill_id: str,
    ) -> SkillState | None:
        """Create the state row for a learner's first contact with a skill.

        Returns the existing row unchanged if there already is one, or None
        if the skill is not in the catalog.
        """
        existing = await repository.get_skill_state(db, learner_id, skill_id)
        if existing is not None:
            return existing
        if await db.get(Skill, skill_id) is None:
            logger.warning("Skill %s not found for learner %s", skill_id, learner_id)
            return None

        await repository.get_or_create_learner(db, learner_id)
        card = self.fsrs.create_initial_card()
        row = SkillState(
            learner_id=learner_id,
            skill_id=skill_id,
            status=SkillStatus.NOT_STARTED.value,
            progress=0.0,
            activity_states={},
        )
        repository.apply_card(row, card)
        db.add(row)
        await db.flush()
        logger.info("Initialized skill %s for learner %s", skill_id, learner_id)
        return row

    async def update_skill_after_review(
        self,
        db: AsyncSession,
        learner_id: str,
        skill_id: str,
        grade: ReviewGrade,
        score: float | None = None,
        now: datetime | None = None,
    ) -> SkillState | None:
        """Apply a graded review to a skill's card and refresh its status.

        Args:
            db: Database session.
            learner_id: The reviewing learner.
            skill_id: The reviewed skill; state is created if missing.
            grade: Review outcome.
            score: Optional 0-1 score of the attempt behind the grade.
            now: Review time (defaults to utcnow).

        Returns:
            The updated SkillState row, or None if the skill does not exist.
        """
        now = to_naive_utc(now) if now is not None else utcnow()

        async def apply() -> SkillState | None:
            row = await self.initialize_skill_state(db, learner_id, skill_id)
            if row is None:
                return None
            card = self.fsrs.review(repository.card_from_row(row), grade, now)
            repository.apply_card(row, card)
            row.status = determine_status(card, score).value
            row.progress = calculate_progress(card, score)
            row.mastery_score = score
            row.updated_at = now
            await db.flush()
            logger.info(
                "Review %s for learner %s skill %s: stability=%.2f next=%s status=%s",
                ReviewGrade(grade).value,
                learner_id,
                skill_id,
                card.stability,
                card.next_review_at,
                row.status,
            )
            return row

        return await self._with_retry(db, apply, f"review of skill {skill_id}")

    async def record_attempt(
        self,
        db: AsyncSession,
        learner_id: str,
        activity_id: str,
        success: bool | None = None,
        score: float | None = None,
        max_score: float | None = None,
        status: str = "completed",
        now: datetime | None = None,
    ) -> AttemptOutcome | None:
        """Record an attempt on an activity and move its level.

        Returns None if the activity does not exist.
        """
        now = to_naive_utc(now) if now is not None else utcnow()
        activity = await repository.get_activity_with_skill(db, activity_id)
        if activity is None or activity.unit is None or activity.unit.skill is None:
            logger.warning("Attempt on unknown activity %s", activity_id)
            return None

        # Plain values only: a rollback expires the loaded catalog objects
        skill_id = activity.unit.skill.id
        total_activities = sum(len(unit.activities) for unit in activity.unit.skill.units)
        succeeded = determine_success(success, score, max_score, status)

        async def apply() -> AttemptOutcome:
            await repository.get_or_create_learner(db, learner_id)
            row = await repository.get_skill_state(db, learner_id, skill_id)
            previous_status = SkillStatus(row.status) if row is not None else None
            if row is None:
                row = await self.initialize_skill_state(db, learner_id, skill_id)

            states = repository.activity_states_from_json(row.activity_states)
            new_state = update_activity_state(
                get_activity_state(states, activity_id, now), succeeded, now
            )
            states = update_activity_states(states, activity_id, new_state)
            progress = activity_progress(states, total_activities)

            row.activity_states = repository.activity_states_to_json(states)
            row.progress = progress
            row.mastery_score = progress
            row.status = attempt_status(previous_status, progress, succeeded).value
            row.updated_at = now

            attempt = Attempt(
                learner_id=learner_id,
                activity_id=activity_id,
                status=status,
                score=score,
                max_score=max_score,
                success=succeeded,
                started_at=now,
                completed_at=now if status == "completed" else None,
            )
            db.add(attempt)
            await db.flush()
            logger.info(
                "Attempt on activity %s by learner %s: success=%s level=%d streak=%d",
                activity_id,
                learner_id,
                succeeded,
                new_state.level,
                new_state.consecutive_correct,
            )
            return AttemptOutcome(
                attempt=attempt,
                skill_state=row,
                activity_state=new_state,
                success=succeeded,
            )

        return await self._with_retry(db, apply, f"attempt on activity {activity_id}")

    async def next_activity(
        self,
        db: AsyncSession,
        learner_id: str,
        now: datetime | None = None,
    ) -> Selection | None:
        """Pick the next activity to present, or None when nothing is available."""
        now = to_naive_utc(now) if now is not None else utcnow()
        loaded = await repository.load_catalog(db, learner_id)
        candidate = select_next((entry for _, entry in loaded), now)
        if candidate is None:
            logger.info("No activities available for learner %s", learner_id)
            return None

        rows = {row.skill_id: row for row, _ in loaded}
        return Selection(candidate=candidate, skill_state=rows[candidate.skill_id])

    async def upcoming_activities(
        self,
        db: AsyncSession,
        learner_id: str,
        now: datetime | None = None,
        limit: int | None = None,
    ) -> list[Candidate]:
        """Return candidates in presentation order."""
        now = to_naive_utc(now) if now is not None else utcnow()
        limit = limit if limit is not None else settings.upcoming_activities_limit
        loaded = await repository.load_catalog(db, learner_id)
        return rank_candidates((entry for _, entry in loaded), now, limit=limit)

    async def get_due_skills(
        self,
        db: AsyncSession,
        learner_id: str,
        now: datetime | None = None,
    ) -> list[SkillState]:
        """Skills whose card is scheduled at or before ``now``."""
        now = to_naive_utc(now) if now is not None else utcnow()
        stmt = (
            select(SkillState)
            .where(
                and_(
                    SkillState.learner_id == learner_id,
                    SkillState.next_review_at <= now,
                )
            )
            .order_by(SkillState.next_review_at.asc())
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def get_study_queue(
        self,
        db: AsyncSession,
        learner_id: str,
        now: datetime | None = None,
        limit: int | None = None,
    ) -> list[SkillState]:
        """Skills to study, due first, then never reviewed."""
        now = to_naive_utc(now) if now is not None else utcnow()
        limit = limit if limit is not None else settings.study_queue_limit
        rows = await repository.list_skill_states(db, learner_id)
        cards = [repository.card_from_row(row) for row in rows]
        by_card = {id(card): row for card, row in zip(cards, rows, strict=True)}
        queue = self.fsrs.get_study_queue(cards, now, limit=limit)
        return [by_card[id(card)] for card in queue]

    async def get_study_plan(
        self,
        db: AsyncSession,
        learner_id: str,
        now: datetime | None = None,
    ) -> StudyPlan:
        """Estimate a session length and prioritize the queued skills."""
        now = to_naive_utc(now) if now is not None else utcnow()
        queue = await self.get_study_queue(db, learner_id, now, limit=STUDY_PLAN_QUEUE_SIZE)

        items: list[StudyPlanItem] = []
        for row in queue:
            card = repository.card_from_row(row)
            items.append(
                StudyPlanItem(
                    skill_id=row.skill_id,
                    estimated_minutes=estimate_study_minutes(card),
                    priority=study_priority(card, now),
                )
            )

        due = await self.get_due_skills(db, learner_id, now)
        priority_skill_ids = [
            row.skill_id for row in due if row.retrievability < REVIEW_RETRIEVABILITY
        ]

        total = sum(item.estimated_minutes for item in items)
        return StudyPlan(
            recommended_minutes=min(MAX_SESSION_MINUTES, max(MIN_SESSION_MINUTES, total)),
            priority_skill_ids=priority_skill_ids,
            items=items,
        )
