"""Course catalog: skills contain ordered units, units contain ordered activities."""

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from skillpath.models.base import Base, TimestampMixin, new_id


class Skill(Base, TimestampMixin):
    __tablename__ = "skills"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)  # Catalog difficulty tier

    units: Mapped[list["Unit"]] = relationship(back_populates="skill", order_by="Unit.order")


class Unit(Base, TimestampMixin):
    __tablename__ = "units"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    skill_id: Mapped[str] = mapped_column(ForeignKey("skills.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    skill: Mapped[Skill] = relationship(back_populates="units")
    activities: Mapped[list["Activity"]] = relationship(
        back_populates="unit", order_by="Activity.order"
    )


class Activity(Base, TimestampMixin):
    __tablename__ = "activities"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    unit_id: Mapped[str] = mapped_column(ForeignKey("units.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    activity_type: Mapped[str] = mapped_column(
        String(50), nullable=False, default="lesson"
    )  # lesson, quiz, exercise
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    unit: Mapped[Unit] = relationship(back_populates="activities")
