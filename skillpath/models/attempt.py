from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from skillpath.config import utcnow
from skillpath.models.base import Base, new_id


class Attempt(Base):
    __tablename__ = "attempts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    learner_id: Mapped[str] = mapped_column(ForeignKey("learners.id"), nullable=False)
    activity_id: Mapped[str] = mapped_column(ForeignKey("activities.id"), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="completed"
    )  # in_progress, completed, abandoned
    score: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    learner: Mapped["Learner"] = relationship(back_populates="attempts")  # type: ignore[name-defined] # noqa: F821
