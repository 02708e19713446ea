"""SQLAlchemy ORM models for the SkillPath database."""

from skillpath.models.attempt import Attempt
from skillpath.models.base import Base
from skillpath.models.catalog import Activity, Skill, Unit
from skillpath.models.learner import Learner
from skillpath.models.skill_state import SkillState

__all__ = ["Activity", "Attempt", "Base", "Learner", "Skill", "SkillState", "Unit"]
