from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from skillpath.models.base import Base, TimestampMixin, new_id


class Learner(Base, TimestampMixin):
    __tablename__ = "learners"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    display_name: Mapped[str | None] = mapped_column(String(128), nullable=True)

    skill_states: Mapped[list["SkillState"]] = relationship(back_populates="learner")  # type: ignore[name-defined] # noqa: F821
    attempts: Mapped[list["Attempt"]] = relationship(back_populates="learner")  # type: ignore[name-defined] # noqa: F821
