"""Gate states and the decisions returned to a launch interceptor."""

from dataclasses import dataclass
from enum import Enum

from .models import VocabularyCard


class GateState(str, Enum):
    LOCKED = "LOCKED"
    UNLOCKED = "UNLOCKED"
    AWAITING_REVIEW = "AWAITING_REVIEW"


class AllowReason(str, Enum):
    NOT_BLOCKED = "not_blocked"
    GATE_DISABLED = "gate_disabled"
    SESSION_ACTIVE = "session_active"
    REVIEW_COMPLETED = "review_completed"
    NOTHING_TO_STUDY = "nothing_to_study"  # escape valve


class DenyReason(str, Enum):
    STORAGE_UNAVAILABLE = "storage_unavailable"
    NOTHING_TO_STUDY = "nothing_to_study"
    ABANDONED = "abandoned"
    NO_PENDING_REVIEW = "no_pending_review"


@dataclass(frozen=True)
class Allow:
    reason: AllowReason


@dataclass(frozen=True)
class PresentReview:
    card: VocabularyCard


@dataclass(frozen=True)
class Deny:
    reason: DenyReason
    detail: str | None = None


GateDecision = Allow | PresentReview | Deny
