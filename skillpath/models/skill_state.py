"""Per learner-skill scheduling state."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from skillpath.models.base import Base, TimestampMixin, new_id


class SkillState(Base, TimestampMixin):
    """FSRS card columns plus the per-activity level states of one skill.

    ``version`` is bumped on every flush; a concurrent writer that read an
    older version fails with StaleDataError instead of overwriting.
    """

    __tablename__ = "skill_states"
    __table_args__ = (UniqueConstraint("learner_id", "skill_id", name="uq_skill_state_learner_skill"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    learner_id: Mapped[str] = mapped_column(ForeignKey("learners.id"), nullable=False)
    skill_id: Mapped[str] = mapped_column(ForeignKey("skills.id"), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="not_started"
    )  # not_started, in_progress, mastered, review_needed, forgotten, strengthening
    progress: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    mastery_score: Mapped[float | None] = mapped_column(Float, nullable=True)

    stability: Mapped[float] = mapped_column(Float, nullable=False, default=2.5)
    difficulty: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    retrievability: Mapped[float] = mapped_column(Float, nullable=False, default=0.9)
    lapses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_reviewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    next_review_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # {activity_id: {"level", "next_review_at", "last_attempt_at", "consecutive_correct"}}
    activity_states: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    learner: Mapped["Learner"] = relationship(back_populates="skill_states")  # type: ignore[name-defined] # noqa: F821
    skill: Mapped["Skill"] = relationship()  # type: ignore[name-defined] # noqa: F821
