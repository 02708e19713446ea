"""FSRS (Free Spaced Repetition Scheduler) memory model.

Tracks one card per learner-skill pair and applies the four-outcome review
transition of FSRS-4.5.
Reference: https://github.com/open-spaced-repetition/fsrs4anki

Key concepts:
- Stability (S): Days until retrievability decays to 90%.
- Difficulty (D): 1-10, how fast stability grows on success and shrinks on failure.
  A fresh card carries 0 until its first review.
- Retrievability (R): The probability of recall at a given instant.
- Grade: again, hard, good, easy
"""

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum

# FSRS-4.5 default parameters (a fixed set, never fitted here)
# w[0..1]: first-review stability for Good (base, difficulty factor)
# w[2..3]: first-review stability for Easy (base, difficulty factor)
# w[6]: difficulty step on Again / Good / Easy
# w[7]: difficulty step on Hard
# w[8..10]: stability growth after Good (and Easy, scaled by w[18])
# w[11..14]: stability after a lapse
# w[15..17]: stability growth after Hard
DEFAULT_WEIGHTS: tuple[float, ...] = (
    0.4072,
    1.1829,
    3.1262,
    15.4722,
    7.2102,
    0.5316,
    1.0651,
    0.0234,
    1.616,
    0.1544,
    1.0824,
    1.9813,
    0.0953,
    0.2975,
    2.2042,
    0.2407,
    2.9466,
    0.5034,
    0.6567,
)
WEIGHT_COUNT = 19

DEFAULT_REQUEST_RETENTION = 0.9
DEFAULT_MAXIMUM_INTERVAL = 36500.0  # days

# Decay anchor: exactly S days after a review, R == 0.9
DECAY_BASE = 0.9

# Bounds
MIN_DIFFICULTY = 1.0
MAX_DIFFICULTY = 10.0
MIN_STABILITY = 0.1

# Fresh card defaults
INITIAL_STABILITY = 2.5
INITIAL_DIFFICULTY = 0.0
INITIAL_RETRIEVABILITY = 0.9

SECONDS_PER_DAY = 86400


class ReviewGrade(str, Enum):
    """How well the learner recalled the item."""

    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"


@dataclass(frozen=True)
class FSRSParameters:
    """Immutable parameter set injected into an FSRS instance."""

    request_retention: float = DEFAULT_REQUEST_RETENTION
    maximum_interval: float = DEFAULT_MAXIMUM_INTERVAL
    w: tuple[float, ...] = field(default=DEFAULT_WEIGHTS)

    def __post_init__(self) -> None:
        if len(self.w) != WEIGHT_COUNT:
            raise ValueError(f"FSRS needs exactly {WEIGHT_COUNT} weights, got {len(self.w)}")
        if not 0 < self.request_retention < 1:
            raise ValueError(f"request_retention must be in (0, 1), got {self.request_retention}")
        if self.maximum_interval < 1:
            raise ValueError(f"maximum_interval must be at least 1 day, got {self.maximum_interval}")
        # Accept lists from callers but keep the stored vector immutable
        object.__setattr__(self, "w", tuple(float(x) for x in self.w))


@dataclass(frozen=True)
class CardState:
    """The memory-model state of one learner-skill pair."""

    stability: float  # Days until retrievability = 0.9
    difficulty: float  # 1-10 once reviewed, 0 on a fresh card
    retrievability: float  # 0-1, as of the last review
    lapses: int  # Reviews graded Again
    reps: int  # Total reviews
    last_reviewed_at: datetime | None = None
    next_review_at: datetime | None = None


def _clamp_difficulty(value: float) -> float:
    return min(MAX_DIFFICULTY, max(MIN_DIFFICULTY, value))


class FSRS:
    """Free Spaced Repetition Scheduler."""

    def __init__(self, params: FSRSParameters | None = None) -> None:
        """Initialize FSRS with an optional custom parameter set."""
        self.params = params or FSRSParameters()
        self.w = self.params.w

    def create_initial_card(self) -> CardState:
        """Return the state of a card the learner has never reviewed."""
        return CardState(
            stability=INITIAL_STABILITY,
            difficulty=INITIAL_DIFFICULTY,
            retrievability=INITIAL_RETRIEVABILITY,
            lapses=0,
            reps=0,
        )

    def review(self, card: CardState, grade: ReviewGrade, now: datetime) -> CardState:
        """Apply a review grade to a card.

        Args:
            card: Current card state.
            grade: Review outcome.
            now: When the review happened (naive UTC).

        Returns:
            The new CardState. The input card is left untouched.
        """
        grade = ReviewGrade(grade)
        first_review = card.reps == 0

        # Every branch below reads the pre-update D and S with the refreshed R
        retrievability = self.retrievability_at(card, now)
        difficulty = card.difficulty
        stability = card.stability
        lapses = card.lapses

        if grade is ReviewGrade.AGAIN:
            new_stability = self._stability_after_lapse(stability, difficulty, retrievability)
            new_difficulty = _clamp_difficulty(difficulty + self.w[6])
            lapses += 1
        elif grade is ReviewGrade.HARD:
            new_stability = self._stability_after_hard(stability, difficulty, retrievability)
            new_difficulty = _clamp_difficulty(difficulty + self.w[7])
        elif grade is ReviewGrade.GOOD:
            if first_review:
                new_stability = self.w[0] + self.w[1] * difficulty
            else:
                new_stability = self._stability_after_success(stability, difficulty, retrievability)
            step = self.w[6] if first_review else self.w[6] * 0.5
            new_difficulty = _clamp_difficulty(difficulty - step)
        else:
            if first_review:
                new_stability = self.w[2] + self.w[3] * difficulty
            else:
                new_stability = self._stability_after_success(
                    stability, difficulty, retrievability, bonus=self.w[18]
                )
            new_difficulty = _clamp_difficulty(difficulty - self.w[6])

        new_stability = max(MIN_STABILITY, new_stability)
        interval = self.next_interval(new_stability)

        return replace(
            card,
            stability=new_stability,
            difficulty=new_difficulty,
            retrievability=retrievability,
            lapses=lapses,
            reps=card.reps + 1,
            last_reviewed_at=now,
            next_review_at=now + timedelta(days=interval),
        )

    def retrievability_at(self, card: CardState, now: datetime) -> float:
        """Return the modeled recall probability of a card at ``now``.

        Exponential decay anchored at 0.9 after ``stability`` days. A card
        that was never reviewed keeps its stored retrievability.
        """
        if card.last_reviewed_at is None:
            return card.retrievability
        elapsed_days = max(0.0, (now - card.last_reviewed_at).total_seconds() / SECONDS_PER_DAY)
        return DECAY_BASE ** (elapsed_days / card.stability)

    def next_interval(self, stability: float) -> float:
        """Convert stability to an interval in days for the requested retention.

        interval = S * ln(request_retention) / ln(0.9), capped at maximum_interval.
        """
        interval = stability * math.log(self.params.request_retention) / math.log(DECAY_BASE)
        return min(self.params.maximum_interval, interval)

    def get_due_cards(self, cards: list[CardState], now: datetime) -> list[CardState]:
        """Return cards that were never scheduled or are due at ``now``."""
        return [card for card in cards if card.next_review_at is None or card.next_review_at <= now]

    def get_study_queue(
        self,
        cards: list[CardState],
        now: datetime,
        limit: int = 20,
    ) -> list[CardState]:
        """Build a study queue: due cards first, then never-reviewed cards.

        Due cards are ordered by next review time with unscheduled cards first.
        Never-reviewed cards fill the remaining slots; cards already queued as
        due are not repeated.

        Args:
            cards: All cards to consider.
            now: Current time.
            limit: Maximum queue length.

        Returns:
            At most ``limit`` cards.
        """
        due = sorted(
            self.get_due_cards(cards, now),
            key=lambda c: (c.next_review_at is not None, c.next_review_at or now),
        )
        queued = {id(card) for card in due}
        fresh = [card for card in cards if card.reps == 0 and id(card) not in queued]
        slots = max(0, limit - len(due))
        return (due + fresh[:slots])[:limit]

    def _stability_after_lapse(
        self,
        stability: float,
        difficulty: float,
        retrievability: float,
    ) -> float:
        """Calculate new stability after a lapse (grade = again).

        S' = w11 * D^(-w12) * ((S+1)^w13 - 1) * e^((1-R)*w14)
        """
        # A fresh card has D = 0, which has no negative power
        difficulty = max(MIN_DIFFICULTY, difficulty)
        return (
            self.w[11]
            * difficulty ** (-self.w[12])
            * ((stability + 1) ** self.w[13] - 1)
            * math.exp((1 - retrievability) * self.w[14])
        )

    def _stability_after_hard(
        self,
        stability: float,
        difficulty: float,
        retrievability: float,
    ) -> float:
        """S' = S * (1 + e^(w15) * (11 - D) * S^(-w16) * (e^((1-R)*w17) - 1))"""
        factor = (
            math.exp(self.w[15])
            * (11 - difficulty)
            * stability ** (-self.w[16])
            * (math.exp((1 - retrievability) * self.w[17]) - 1)
        )
        return stability * (1 + factor)

    def _stability_after_success(
        self,
        stability: float,
        difficulty: float,
        retrievability: float,
        bonus: float = 1.0,
    ) -> float:
        """Calculate new stability after a good or easy review.

        S' = S * (1 + e^(w8) * (11 - D) * S^(-w9) * (e^((1-R)*w10) - 1) * bonus)
        """
        factor = (
            math.exp(self.w[8])
            * (11 - difficulty)
            * stability ** (-self.w[9])
            * (math.exp((1 - retrievability) * self.w[10]) - 1)
            * bonus
        )
        return stability * (1 + factor)
