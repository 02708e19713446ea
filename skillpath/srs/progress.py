"""Skill progress evaluation.

Derives a coarse status and a progress fraction for a skill, either from
its FSRS card (after a graded review) or from its activity levels (after
an attempt).
"""

from collections.abc import Mapping
from datetime import datetime
from enum import Enum

from skillpath.srs.fsrs import CardState
from skillpath.srs.levels import ActivitySRSState, SRSLevel

# Status thresholds (checked in order, first match wins)
MASTERY_SCORE = 0.9
MASTERY_RETRIEVABILITY = 0.8
MASTERY_MIN_REPS = 3
FAILING_SCORE = 0.5
FORGOTTEN_RETRIEVABILITY = 0.4
FORGOTTEN_LAPSES = 2
REVIEW_RETRIEVABILITY = 0.7
REVIEW_MIN_REPS = 2
STRENGTHENING_RETRIEVABILITY = 0.6

# Progress weighting
PROGRESS_CAP = 0.9
RETRIEVABILITY_WEIGHT = 0.7
REPS_WEIGHT = 0.3
REPS_FOR_FULL_CREDIT = 10
SCORE_BLEND = 0.3
LAPSE_PENALTY = 0.1
MIN_LAPSE_FACTOR = 0.5

# Attempt-driven status
ACTIVITY_MASTERY_PROGRESS = 0.95

# Study plan estimates
BASE_STUDY_MINUTES = 5
MAX_LAPSE_MULTIPLIER = 2.0


class SkillStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    MASTERED = "mastered"
    REVIEW_NEEDED = "review_needed"
    FORGOTTEN = "forgotten"
    STRENGTHENING = "strengthening"


class StudyPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def determine_status(card: CardState, score: float | None = None) -> SkillStatus:
    """Classify a skill from its card state and the latest score.

    Rules overlap for borderline cards; their order decides the outcome
    and must not be rearranged.
    """
    if card.reps == 0:
        return SkillStatus.NOT_STARTED

    if score is not None:
        if (
            score >= MASTERY_SCORE
            and card.retrievability >= MASTERY_RETRIEVABILITY
            and card.reps >= MASTERY_MIN_REPS
        ):
            return SkillStatus.MASTERED
        if score < FAILING_SCORE or card.retrievability < FORGOTTEN_RETRIEVABILITY:
            if card.lapses > FORGOTTEN_LAPSES:
                return SkillStatus.FORGOTTEN
            return SkillStatus.REVIEW_NEEDED

    if card.retrievability < REVIEW_RETRIEVABILITY and card.reps >= REVIEW_MIN_REPS:
        return SkillStatus.REVIEW_NEEDED

    if card.lapses > 0 and card.retrievability > STRENGTHENING_RETRIEVABILITY:
        return SkillStatus.STRENGTHENING

    return SkillStatus.IN_PROGRESS


def calculate_progress(card: CardState, score: float | None = None) -> float:
    """Return a 0-1 progress fraction for a skill.

    Retrievability and repetition count form the base (capped at 0.9),
    the latest score is blended in, and lapses scale the result down.
    """
    reps_credit = min(1.0, card.reps / REPS_FOR_FULL_CREDIT)
    progress = min(
        PROGRESS_CAP,
        card.retrievability * RETRIEVABILITY_WEIGHT + reps_credit * REPS_WEIGHT,
    )

    if score is not None:
        progress = progress * (1 - SCORE_BLEND) + score * SCORE_BLEND

    if card.lapses > 0:
        progress *= max(MIN_LAPSE_FACTOR, 1 - card.lapses * LAPSE_PENALTY)

    return max(0.0, min(1.0, progress))


def activity_progress(states: Mapping[str, ActivitySRSState], total_activities: int) -> float:
    """Progress of a skill as the share of activity levels earned."""
    if total_activities <= 0:
        return 0.0
    earned = sum(int(state.level) for state in states.values())
    return min(1.0, earned / (total_activities * int(SRSLevel.MASTERED)))


def attempt_status(
    previous: SkillStatus | None,
    progress: float,
    success: bool,
) -> SkillStatus:
    """Status of a skill after an attempt on one of its activities."""
    if progress >= ACTIVITY_MASTERY_PROGRESS:
        return SkillStatus.MASTERED

    if previous is None or previous is SkillStatus.NOT_STARTED:
        return SkillStatus.IN_PROGRESS if success else SkillStatus.REVIEW_NEEDED

    if not success:
        return SkillStatus.REVIEW_NEEDED

    if previous is SkillStatus.MASTERED:
        return SkillStatus.IN_PROGRESS
    return previous


def estimate_study_minutes(card: CardState) -> int:
    """Rough minutes needed to review a skill."""
    difficulty_factor = card.difficulty / 10 + 1
    retrievability_factor = 1 - card.retrievability + 0.5 if card.retrievability else 1.0
    lapse_factor = min(MAX_LAPSE_MULTIPLIER, 1 + card.lapses * 0.2)
    return round(BASE_STUDY_MINUTES * difficulty_factor * retrievability_factor * lapse_factor)


def study_priority(card: CardState, now: datetime) -> StudyPriority:
    is_due = card.next_review_at is not None and card.next_review_at <= now
    if is_due and card.retrievability < REVIEW_RETRIEVABILITY:
        return StudyPriority.HIGH
    if card.next_review_at is not None and card.next_review_at < now:
        return StudyPriority.HIGH
    if card.retrievability > MASTERY_RETRIEVABILITY:
        return StudyPriority.LOW
    return StudyPriority.MEDIUM
