# Domain Package
from .decisions import Allow, AllowReason, Deny, DenyReason, GateDecision, GateState, PresentReview
from .errors import (
    CardNotFound,
    DuplicateWordError,
    InvalidVocabularyError,
    ReviewGateError,
    SchedulingStateCorrupt,
    StorageUnavailable,
)
from .models import (
    CardKind,
    DayCounters,
    EscapeValve,
    GateSession,
    LearningPreferencesConfig,
    MixMode,
    Outcome,
    SchedulingState,
    UnlockPolicy,
    VocabularyCard,
)

__all__ = [
    "Allow",
    "AllowReason",
    "CardKind",
    "CardNotFound",
    "DayCounters",
    "Deny",
    "DenyReason",
    "DuplicateWordError",
    "EscapeValve",
    "GateDecision",
    "GateSession",
    "GateState",
    "InvalidVocabularyError",
    "LearningPreferencesConfig",
    "MixMode",
    "Outcome",
    "PresentReview",
    "ReviewGateError",
    "SchedulingState",
    "SchedulingStateCorrupt",
    "StorageUnavailable",
    "UnlockPolicy",
    "VocabularyCard",
]
