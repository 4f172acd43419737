"""
Domain models for the review gate.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, replace
from datetime import datetime, tzinfo
from enum import Enum

from .constants import (
    DAY_KEY_FORMAT,
    DEFAULT_NEW_PER_DAY,
    DEFAULT_OVERLAY_INTERVAL,
    DEFAULT_REVIEW_PER_DAY,
)


class MixMode(str, Enum):
    """How new and review items are interleaved."""

    MIX = "MIX"
    REVIEWS_FIRST = "REVIEWS_FIRST"
    NEW_FIRST = "NEW_FIRST"


class UnlockPolicy(str, Enum):
    """How `overlay_interval` bounds an unlock window."""

    ELAPSED_MINUTES = "ELAPSED_MINUTES"
    LAUNCH_COUNT = "LAUNCH_COUNT"


class EscapeValve(str, Enum):
    """What the gate does when there is nothing left to study today."""

    ALLOW = "ALLOW"
    DENY = "DENY"


class CardKind(str, Enum):
    NEW = "new"
    REVIEW = "review"


class Outcome(str, Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"

    @classmethod
    def from_bool(cls, correct: bool) -> "Outcome":
        return cls.CORRECT if correct else cls.INCORRECT


@dataclass(frozen=True)
class SchedulingState:
    """
    Opaque scheduling payload owned by the card scheduler.

    Passed verbatim between the store and the scheduler; nothing else parses
    `payload`.
    """

    version: int
    payload: str


@dataclass(frozen=True)
class VocabularyCard:
    """
    A word/translation pair with its learning statistics.

    Attributes:
        id: Stable unique id.
        word: Unique under case-insensitive comparison.
        scheduling_state: Opaque state for the card scheduler.
        due_at: Denormalised copy of the due time implied by scheduling_state.
        last_shown_at: None until the card's first completed review.
    """

    id: str
    word: str
    translation: str
    created_at: datetime
    scheduling_state: SchedulingState
    due_at: datetime
    last_shown_at: datetime | None = None
    correct_count: int = 0
    incorrect_count: int = 0

    @property
    def kind(self) -> CardKind:
        return CardKind.NEW if self.last_shown_at is None else CardKind.REVIEW

    @property
    def word_key(self) -> str:
        return normalize_word(self.word)

    def sort_key(self) -> tuple[datetime, str]:
        return (self.due_at, self.id)


def normalize_word(word: str) -> str:
    """Key used for the case-insensitive uniqueness of words."""
    return word.strip().casefold()


@dataclass(frozen=True)
class LearningPreferencesConfig:
    """User policy, read-only to the engine."""

    new_per_day: int = DEFAULT_NEW_PER_DAY
    review_per_day: int = DEFAULT_REVIEW_PER_DAY
    mix_mode: MixMode = MixMode.MIX
    bury_immediate_repeat: bool = True
    overlay_interval: int = DEFAULT_OVERLAY_INTERVAL
    unlock_policy: UnlockPolicy = UnlockPolicy.ELAPSED_MINUTES
    escape_valve: EscapeValve = EscapeValve.ALLOW

    def __post_init__(self):
        if self.new_per_day < 1 or self.review_per_day < 1:
            raise ValueError("Daily caps must be positive")
        if self.overlay_interval < 1:
            raise ValueError("overlay_interval must be positive")

    def cap_for(self, kind: CardKind) -> int:
        return self.new_per_day if kind is CardKind.NEW else self.review_per_day


def day_key_for(now: datetime, tz: tzinfo | None = None) -> int:
    """Local calendar day of `now` as an integer like 20250824."""
    local = now.astimezone(tz) if tz is not None else now.astimezone()
    return int(local.strftime(DAY_KEY_FORMAT))


@dataclass(frozen=True)
class DayCounters:
    """Usage ledger for one local calendar day."""

    day_key: int
    new_shown: int = 0
    review_shown: int = 0
    reviews_since_last_new: int = 0

    @classmethod
    def fresh(cls, day_key: int) -> "DayCounters":
        return cls(day_key=day_key)

    def new_remaining(self, prefs: LearningPreferencesConfig) -> int:
        return max(0, prefs.new_per_day - self.new_shown)

    def review_remaining(self, prefs: LearningPreferencesConfig) -> int:
        return max(0, prefs.review_per_day - self.review_shown)

    def recorded(self, kind: CardKind, cap: int) -> "DayCounters":
        """
        Return the ledger after one more item of `kind` was shown.

        The counter for `kind` saturates at `cap`, so the quota invariant
        holds even when two apps presented the last slot concurrently.
        """
        if kind is CardKind.NEW:
            return replace(
                self,
                new_shown=min(cap, self.new_shown + 1),
                reviews_since_last_new=0,
            )
        return replace(
            self,
            review_shown=min(cap, self.review_shown + 1),
            reviews_since_last_new=self.reviews_since_last_new + 1,
        )


@dataclass(frozen=True)
class GateSession:
    """Unlock window for one application."""

    app_id: str
    unlocked_at: datetime
    is_active: bool = True
    launches: int = 0  # launch attempts admitted through this window

    def deactivated(self) -> "GateSession":
        return replace(self, is_active=False)
