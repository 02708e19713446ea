"""Tests for next-activity selection."""

from datetime import datetime, timedelta
from itertools import combinations

from skillpath.srs.levels import ActivitySRSState, SRSLevel
from skillpath.srs.selection import (
    Candidate,
    CatalogActivity,
    CatalogUnit,
    SkillCatalogEntry,
    build_candidates,
    candidate_sort_key,
    rank_candidates,
    select_next,
)

T0 = datetime(2024, 3, 1, 9, 0, 0)


def _state(level: int, next_review_at: datetime) -> ActivitySRSState:
    return ActivitySRSState(
        level=SRSLevel(level),
        next_review_at=next_review_at,
        last_attempt_at=next_review_at - timedelta(hours=1),
        consecutive_correct=0,
    )


def _skill(
    activities: list[tuple[str, int]],
    states: dict[str, ActivitySRSState] | None = None,
    skill_id: str = "skill-1",
    unit_order: int = 0,
    id_prefix: str = "",
) -> SkillCatalogEntry:
    unit = CatalogUnit(
        id=f"{skill_id}-unit",
        name="Unit",
        order=unit_order,
        activities=tuple(
            CatalogActivity(id=f"{id_prefix}{name}", name=name, order=order)
            for name, order in activities
        ),
    )
    return SkillCatalogEntry(
        skill_id=skill_id,
        skill_name=skill_id.title(),
        units=(unit,),
        activity_states=states or {},
    )


class TestSelectNext:
    def test_lower_level_beats_longer_wait(self) -> None:
        skill = _skill(
            [("A", 0), ("B", 1)],
            {"A": _state(0, T0 - timedelta(hours=1)), "B": _state(1, T0 - timedelta(hours=2))},
        )
        chosen = select_next([skill], T0)
        assert chosen is not None
        assert chosen.activity_id == "A"
        assert chosen.is_due

    def test_longest_waiting_among_same_level(self) -> None:
        skill = _skill(
            [("A", 0), ("B", 1)],
            {"A": _state(2, T0 - timedelta(hours=1)), "B": _state(2, T0 - timedelta(days=1))},
        )
        assert select_next([skill], T0).activity_id == "B"

    def test_due_beats_not_due(self) -> None:
        skill = _skill(
            [("A", 0), ("B", 1)],
            {"A": _state(0, T0 + timedelta(minutes=1)), "B": _state(3, T0)},
        )
        chosen = select_next([skill], T0)
        assert chosen.activity_id == "B"
        assert chosen.is_due

    def test_not_due_ordered_by_time_not_level(self) -> None:
        skill = _skill(
            [("A", 0), ("B", 1)],
            {"A": _state(0, T0 + timedelta(days=2)), "B": _state(3, T0 + timedelta(days=1))},
        )
        chosen = select_next([skill], T0)
        assert chosen.activity_id == "B"
        assert not chosen.is_due

    def test_missing_state_is_new_and_due(self) -> None:
        skill = _skill([("A", 0)])
        chosen = select_next([skill], T0)
        assert chosen.level == SRSLevel.NEW
        assert chosen.next_review_at == T0
        assert chosen.is_due

    def test_catalog_order_breaks_ties(self) -> None:
        early_unit = _skill([("Zeta", 5)], skill_id="s1", unit_order=0)
        late_unit = _skill([("Alpha", 0)], skill_id="s2", unit_order=1)
        assert select_next([late_unit, early_unit], T0).activity_id == "Zeta"

        same_unit = _skill([("Zeta", 0), ("Alpha", 1)])
        assert select_next([same_unit], T0).activity_id == "Zeta"

    def test_name_breaks_remaining_ties(self) -> None:
        skill = _skill([("Beta", 0), ("Alpha", 0)])
        assert select_next([skill], T0).activity_name == "Alpha"

    def test_empty(self) -> None:
        assert select_next([], T0) is None
        empty_skill = SkillCatalogEntry(skill_id="s", skill_name="S")
        empty_unit = SkillCatalogEntry(
            skill_id="s", skill_name="S", units=(CatalogUnit(id="u", name="U"),)
        )
        assert select_next([empty_skill, empty_unit], T0) is None

    def test_deterministic(self) -> None:
        skills = [
            _skill([("A", 0), ("B", 0), ("C", 1)], skill_id="s1"),
            _skill([("A2", 0), ("B2", 0)], skill_id="s2"),
        ]
        first = select_next(skills, T0)
        assert all(select_next(skills, T0) == first for _ in range(5))
        assert select_next(list(reversed(skills)), T0) == first


class TestOrdering:
    def test_strict_total_order(self) -> None:
        times = [T0 - timedelta(hours=2), T0, T0 + timedelta(hours=2)]
        activities = [(f"act-{i}", i % 2) for i in range(6)]
        skills = []
        for skill_id in ("s1", "s2"):
            # Same names in both skills; only the activity ids differ
            states = {
                f"{skill_id}-{name}": _state(i % 4, times[i % 3])
                for i, (name, _) in enumerate(activities)
            }
            skills.append(_skill(activities, states, skill_id=skill_id, id_prefix=f"{skill_id}-"))
        candidates = build_candidates(skills, T0)
        for a, b in combinations(candidates, 2):
            assert candidate_sort_key(a) != candidate_sort_key(b)

    def test_rank_candidates(self) -> None:
        skill = _skill(
            [("A", 0), ("B", 1), ("C", 2)],
            {
                "A": _state(1, T0 + timedelta(hours=1)),
                "B": _state(2, T0 - timedelta(hours=1)),
                "C": _state(0, T0 - timedelta(minutes=5)),
            },
        )
        ranked = rank_candidates([skill], T0)
        assert [c.activity_id for c in ranked] == ["C", "B", "A"]
        assert [c.activity_id for c in rank_candidates([skill], T0, limit=2)] == ["C", "B"]

    def test_sort_key_ignores_level_when_not_due(self) -> None:
        base = dict(
            skill_id="s",
            skill_name="S",
            unit_id="u",
            unit_name="U",
            activity_id="a",
            activity_name="a",
            next_review_at=T0 + timedelta(hours=1),
            last_attempt_at=T0,
            is_due=False,
            unit_order=0,
            activity_order=0,
        )
        low = Candidate(level=SRSLevel.NEW, **base)
        high = Candidate(level=SRSLevel.MASTERED, **base)
        assert candidate_sort_key(low) == candidate_sort_key(high)
