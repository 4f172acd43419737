"""
Ports (interfaces) for the review gate engine.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from .models import (
    DayCounters,
    GateSession,
    LearningPreferencesConfig,
    Outcome,
    SchedulingState,
    VocabularyCard,
)


class CardStore(ABC):
    """
    Port for persisting cards, day counters and gate sessions.

    Every method raises StorageUnavailable when the backing store fails.

    Implementations:
        - InMemoryCardStore: Process-local dictionaries.
        - SqlCardStore: SQLAlchemy-backed database.
    """

    @abstractmethod
    async def load_due_cards(self, now: datetime) -> list[VocabularyCard]:
        """
        Fetch every card with `due_at <= now`.

        New cards are created due immediately, so they are included.
        """

    @abstractmethod
    async def load_card(self, card_id: str) -> VocabularyCard | None:
        pass

    @abstractmethod
    async def find_card_by_word(self, word: str) -> VocabularyCard | None:
        """Case-insensitive lookup by word."""

    @abstractmethod
    async def list_cards(self) -> list[VocabularyCard]:
        pass

    @abstractmethod
    async def save_card(self, card: VocabularyCard) -> None:
        """Insert or replace a card. Raises DuplicateWordError on a word clash."""

    @abstractmethod
    async def load_current_day_counters(self) -> DayCounters | None:
        """Return the most recent day's ledger, or None before the first day."""

    @abstractmethod
    async def load_day_counters(self, day_key: int) -> DayCounters | None:
        pass

    @abstractmethod
    async def save_day_counters(self, counters: DayCounters) -> None:
        pass

    @abstractmethod
    async def save_review(self, card: VocabularyCard, counters: DayCounters) -> None:
        """Persist a reviewed card and the updated ledger as one unit."""

    @abstractmethod
    async def load_session(self, app_id: str) -> GateSession | None:
        pass

    @abstractmethod
    async def save_session(self, session: GateSession) -> None:
        pass


class CardScheduler(ABC):
    """
    Port for the spaced-repetition algorithm.

    Implementations raise SchedulingStateCorrupt when a state cannot be read.
    """

    @abstractmethod
    def initial_state(self, now: datetime) -> SchedulingState:
        """State for a card that has never been reviewed."""

    @abstractmethod
    def schedule(
        self, state: SchedulingState, outcome: Outcome, now: datetime
    ) -> tuple[SchedulingState, datetime]:
        """Apply an answer and return the new state and its due time."""

    @abstractmethod
    def validate(self, state: SchedulingState) -> None:
        """Raise SchedulingStateCorrupt if `state` cannot be interpreted."""


class ConfigProvider(ABC):
    """Port for the externally owned, read-only policy."""

    @abstractmethod
    async def learning_preferences(self) -> LearningPreferencesConfig:
        pass

    @abstractmethod
    async def blocked_apps(self) -> frozenset[str]:
        pass

    @abstractmethod
    async def gate_enabled(self) -> bool:
        pass
