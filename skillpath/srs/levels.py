"""Quantized level scheduler for individual activities.

Each activity inside a skill moves through four levels with fixed cooldowns:
- Level 0: New/Failed - no cooldown, immediately due
- Level 1: Learning - 1 hour
- Level 2: Practiced - 1 day
- Level 3: Mastered - 7 days

This runs alongside the skill's FSRS card; one card per skill, one level
state per activity.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import IntEnum


class SRSLevel(IntEnum):
    NEW = 0
    LEARNING = 1
    PRACTICED = 2
    MASTERED = 3


COOLDOWNS: dict[SRSLevel, timedelta] = {
    SRSLevel.NEW: timedelta(0),
    SRSLevel.LEARNING: timedelta(hours=1),
    SRSLevel.PRACTICED: timedelta(days=1),
    SRSLevel.MASTERED: timedelta(days=7),
}

# Correct answers in a row needed to leave level 0
PROMOTION_STREAK_FROM_NEW = 2

# Fraction of max_score an attempt needs to count as correct
SUCCESS_RATIO = 0.7

# "Never attempted" marker for last_attempt_at
NEVER_ATTEMPTED = datetime(1970, 1, 1)


@dataclass(frozen=True)
class ActivitySRSState:
    """Level-scheduler state of one activity for one learner."""

    level: SRSLevel
    next_review_at: datetime
    last_attempt_at: datetime
    consecutive_correct: int = 0


def calculate_next_review(level: SRSLevel, from_time: datetime) -> datetime:
    """Return when an activity at ``level`` is due again after ``from_time``."""
    return from_time + COOLDOWNS[SRSLevel(level)]


def is_due_for_review(next_review_at: datetime, now: datetime) -> bool:
    """An activity is due at or after its scheduled instant."""
    return next_review_at <= now


def increment_level(level: SRSLevel) -> SRSLevel:
    return SRSLevel(min(SRSLevel.MASTERED, level + 1))


def demote_level(level: SRSLevel) -> SRSLevel:
    return SRSLevel(max(SRSLevel.NEW, level - 1))


def default_activity_state(now: datetime) -> ActivitySRSState:
    """State of an activity the learner has never attempted: level 0, due now."""
    return ActivitySRSState(
        level=SRSLevel.NEW,
        next_review_at=now,
        last_attempt_at=NEVER_ATTEMPTED,
        consecutive_correct=0,
    )


def update_activity_state(
    prior: ActivitySRSState | None,
    is_correct: bool,
    now: datetime,
) -> ActivitySRSState:
    """Apply one attempt to an activity's level state.

    Correct answers promote one level, except that leaving level 0 takes
    two correct answers in a row. Incorrect answers demote one level and
    reset the streak.

    Args:
        prior: Current state, or None if the activity was never attempted.
        is_correct: Whether the attempt succeeded.
        now: When the attempt happened.

    Returns:
        The new ActivitySRSState.
    """
    level = prior.level if prior is not None else SRSLevel.NEW
    streak = prior.consecutive_correct if prior is not None else 0

    if is_correct:
        streak += 1
        if level == SRSLevel.NEW and streak < PROMOTION_STREAK_FROM_NEW:
            new_level = SRSLevel.NEW
        else:
            new_level = increment_level(level)
    else:
        streak = 0
        new_level = demote_level(level)

    return ActivitySRSState(
        level=new_level,
        next_review_at=calculate_next_review(new_level, now),
        last_attempt_at=now,
        consecutive_correct=streak,
    )


def get_activity_state(
    states: Mapping[str, ActivitySRSState] | None,
    activity_id: str,
    now: datetime,
) -> ActivitySRSState:
    """Look up an activity's state, falling back to the never-attempted default."""
    if states and activity_id in states:
        return states[activity_id]
    return default_activity_state(now)


def update_activity_states(
    states: Mapping[str, ActivitySRSState] | None,
    activity_id: str,
    new_state: ActivitySRSState,
) -> dict[str, ActivitySRSState]:
    """Return a copy of ``states`` with one activity replaced."""
    updated = dict(states or {})
    updated[activity_id] = new_state
    return updated


def success_threshold(max_score: float) -> float:
    """Minimum score that counts as a successful attempt."""
    return max_score * SUCCESS_RATIO


def is_attempt_successful(score: float, max_score: float) -> bool:
    if max_score <= 0:
        return False
    return score >= success_threshold(max_score)
