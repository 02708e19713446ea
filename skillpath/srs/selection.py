"""Next-activity selection across all of a learner's skills.

Every (skill, unit, activity) triple becomes a candidate carrying its level
state. Candidates are ranked by a lexicographic key:

1. Due before not due.
2. Due only: lower level first (weaker items get practice).
3. Earlier next review first (longest waiting).
4. Lower unit order, then lower activity order.
5. Activity name, then activity id.

The ranking is a pure sort with no randomness, so repeated calls on
unchanged state pick the same activity.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime

from skillpath.srs.levels import ActivitySRSState, SRSLevel, get_activity_state, is_due_for_review


@dataclass(frozen=True)
class CatalogActivity:
    id: str
    name: str
    order: int = 0


@dataclass(frozen=True)
class CatalogUnit:
    id: str
    name: str
    order: int = 0
    activities: tuple[CatalogActivity, ...] = ()


@dataclass(frozen=True)
class SkillCatalogEntry:
    """A learner's skill: its catalog and the level state of each activity."""

    skill_id: str
    skill_name: str
    units: tuple[CatalogUnit, ...] = ()
    activity_states: Mapping[str, ActivitySRSState] = field(default_factory=dict)


@dataclass(frozen=True)
class Candidate:
    """An activity considered during one selection pass."""

    skill_id: str
    skill_name: str
    unit_id: str
    unit_name: str
    activity_id: str
    activity_name: str
    level: SRSLevel
    next_review_at: datetime
    last_attempt_at: datetime
    is_due: bool
    unit_order: int
    activity_order: int


def candidate_sort_key(candidate: Candidate) -> tuple:
    """Return the ordering key of a candidate; smaller sorts first."""
    # Level only separates due candidates
    level = int(candidate.level) if candidate.is_due else 0
    return (
        not candidate.is_due,
        level,
        candidate.next_review_at,
        candidate.unit_order,
        candidate.activity_order,
        candidate.activity_name,
        candidate.activity_id,
    )


def build_candidates(skills: Iterable[SkillCatalogEntry], now: datetime) -> list[Candidate]:
    """Expand skills into one candidate per activity, resolving level state.

    Activities with no recorded state get the never-attempted default, which
    is due at ``now``.
    """
    candidates: list[Candidate] = []
    for skill in skills:
        for unit in skill.units:
            for activity in unit.activities:
                state = get_activity_state(skill.activity_states, activity.id, now)
                candidates.append(
                    Candidate(
                        skill_id=skill.skill_id,
                        skill_name=skill.skill_name,
                        unit_id=unit.id,
                        unit_name=unit.name,
                        activity_id=activity.id,
                        activity_name=activity.name,
                        level=state.level,
                        next_review_at=state.next_review_at,
                        last_attempt_at=state.last_attempt_at,
                        is_due=is_due_for_review(state.next_review_at, now),
                        unit_order=unit.order,
                        activity_order=activity.order,
                    )
                )
    return candidates


def rank_candidates(
    skills: Iterable[SkillCatalogEntry],
    now: datetime,
    limit: int | None = None,
) -> list[Candidate]:
    """Return candidates best-first, optionally truncated to ``limit``."""
    ranked = sorted(build_candidates(skills, now), key=candidate_sort_key)
    if limit is not None:
        return ranked[:limit]
    return ranked


def select_next(skills: Iterable[SkillCatalogEntry], now: datetime) -> Candidate | None:
    """Pick the single next activity, or None when no activities exist."""
    candidates = build_candidates(skills, now)
    if not candidates:
        return None
    return min(candidates, key=candidate_sort_key)
