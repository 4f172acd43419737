"""
Process-local CardStore.

Useful for tests and for the `memory` storage mode. Records are frozen
dataclasses, so handing them out never aliases mutable state.
"""

from datetime import datetime

from reviewgate.domain.errors import DuplicateWordError
from reviewgate.domain.models import DayCounters, GateSession, VocabularyCard, normalize_word
from reviewgate.domain.ports import CardStore


class InMemoryCardStore(CardStore):
    def __init__(self):
        self.cards: dict[str, VocabularyCard] = {}
        self.day_counters: dict[int, DayCounters] = {}
        self.sessions: dict[str, GateSession] = {}

    async def load_due_cards(self, now: datetime) -> list[VocabularyCard]:
        due = [c for c in self.cards.values() if c.due_at <= now]
        return sorted(due, key=VocabularyCard.sort_key)

    async def load_card(self, card_id: str) -> VocabularyCard | None:
        return self.cards.get(card_id)

    async def find_card_by_word(self, word: str) -> VocabularyCard | None:
        key = normalize_word(word)
        for card in self.cards.values():
            if card.word_key == key:
                return card
        return None

    async def list_cards(self) -> list[VocabularyCard]:
        return sorted(self.cards.values(), key=lambda c: (c.created_at, c.id))

    async def save_card(self, card: VocabularyCard) -> None:
        existing = await self.find_card_by_word(card.word)
        if existing is not None and existing.id != card.id:
            raise DuplicateWordError(card.word)
        self.cards[card.id] = card

    async def load_current_day_counters(self) -> DayCounters | None:
        if not self.day_counters:
            return None
        return self.day_counters[max(self.day_counters)]

    async def load_day_counters(self, day_key: int) -> DayCounters | None:
        return self.day_counters.get(day_key)

    async def save_day_counters(self, counters: DayCounters) -> None:
        self.day_counters[counters.day_key] = counters

    async def save_review(self, card: VocabularyCard, counters: DayCounters) -> None:
        await self.save_card(card)
        self.day_counters[counters.day_key] = counters

    async def load_session(self, app_id: str) -> GateSession | None:
        return self.sessions.get(app_id)

    async def save_session(self, session: GateSession) -> None:
        self.sessions[session.app_id] = session
