"""
Applies an answer to a card.

The correctness counters, `last_shown_at`, the new scheduling state and the
day counter increment are committed as one unit or not at all.
"""

import asyncio
import logging
import weakref
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime

from reviewgate.domain.errors import CardNotFound, SchedulingStateCorrupt
from reviewgate.domain.models import Outcome, SchedulingState, VocabularyCard
from reviewgate.domain.ports import CardScheduler, CardStore, ConfigProvider

from .day_counters import DayCounterManager

logger = logging.getLogger(__name__)


class ReviewOutcomeProcessor:
    """
    Application service for recording review answers.

    Also keeps the set of cards whose scheduling state could not be read, so
    selection can skip them until they are repaired.
    """

    def __init__(
        self,
        store: CardStore,
        scheduler: CardScheduler,
        counters: DayCounterManager,
        config: ConfigProvider,
    ):
        self._store = store
        self._scheduler = scheduler
        self._counters = counters
        self._config = config
        # Entries vanish once no task holds or waits on the lock
        self._card_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        # card id -> the scheduling state that was rejected
        self._flagged: dict[str, SchedulingState] = {}

    def _lock_for(self, card_id: str) -> asyncio.Lock:
        lock = self._card_locks.get(card_id)
        if lock is None:
            lock = self._card_locks[card_id] = asyncio.Lock()
        return lock

    async def apply(self, card_id: str, correct: bool, now: datetime) -> VocabularyCard:
        """
        Record an answer for `card_id`.

        Raises:
            CardNotFound: The card no longer exists.
            SchedulingStateCorrupt: The scheduler rejected the card's state;
                nothing was written.
            StorageUnavailable: The commit failed; nothing was written.
        """
        async with self._lock_for(card_id):
            card = await self._store.load_card(card_id)
            if card is None:
                raise CardNotFound(card_id)

            kind = card.kind
            outcome = Outcome.from_bool(correct)
            try:
                new_state, due_at = self._scheduler.schedule(
                    card.scheduling_state, outcome, now
                )
            except SchedulingStateCorrupt as e:
                self.flag(card)
                raise SchedulingStateCorrupt(card_id, e.reason) from e

            updated = replace(
                card,
                correct_count=card.correct_count + (1 if correct else 0),
                incorrect_count=card.incorrect_count + (0 if correct else 1),
                last_shown_at=now,
                scheduling_state=new_state,
                due_at=due_at,
            )
            prefs = await self._config.learning_preferences()
            await self._counters.record_shown(kind, now, prefs, card=updated)

        logger.info(
            f"Reviewed {card.word!r} ({kind.value}) as {outcome.value}; "
            f"next due {due_at.isoformat()}"
        )
        return updated

    def screen(self, cards: Iterable[VocabularyCard]) -> list[VocabularyCard]:
        """Drop flagged cards and flag any whose state the scheduler rejects."""
        usable: list[VocabularyCard] = []
        for card in cards:
            if self._flagged.get(card.id) == card.scheduling_state:
                continue
            self._flagged.pop(card.id, None)
            try:
                self._scheduler.validate(card.scheduling_state)
            except SchedulingStateCorrupt as e:
                logger.warning(f"Skipping card {card.id} ({card.word!r}): {e.reason}")
                self.flag(card)
                continue
            usable.append(card)
        return usable

    def flag(self, card: VocabularyCard) -> None:
        """Skip `card` until its scheduling state is rewritten."""
        self._flagged[card.id] = card.scheduling_state

    def flagged(self) -> list[str]:
        return sorted(self._flagged)

    async def reset_scheduling_state(self, card_id: str, now: datetime) -> VocabularyCard:
        """
        Recovery for a corrupt card: give it fresh scheduling state, due now.

        Correctness counters and `last_shown_at` are kept.
        """
        async with self._lock_for(card_id):
            card = await self._store.load_card(card_id)
            if card is None:
                raise CardNotFound(card_id)
            reset = replace(
                card,
                scheduling_state=self._scheduler.initial_state(now),
                due_at=now,
            )
            await self._store.save_card(reset)
        self._flagged.pop(card_id, None)
        logger.info(f"Reset scheduling state of card {card_id}")
        return reset
