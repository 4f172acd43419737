"""
Per-day usage ledger.

Owns the single current DayCounters record. Rollover is lazy: the first access
after the local date changes replaces the current record with a zeroed one,
leaving the previous day's record untouched in the store.
"""

import asyncio
import logging
from datetime import datetime, tzinfo

from reviewgate.domain.models import (
    CardKind,
    DayCounters,
    LearningPreferencesConfig,
    VocabularyCard,
    day_key_for,
)
from reviewgate.domain.ports import CardStore

logger = logging.getLogger(__name__)


class DayCounterManager:
    """
    Single-writer container for the day counters.

    One lock guards every read-modify-write, process wide.
    """

    def __init__(self, store: CardStore, tz: tzinfo | None = None):
        """
        Args:
            store: Where ledgers are persisted.
            tz: Timezone that defines the calendar day; system local if None.
        """
        self._store = store
        self._tz = tz
        self._lock = asyncio.Lock()

    def day_key(self, now: datetime) -> int:
        return day_key_for(now, self._tz)

    async def current_counters(self, now: datetime) -> DayCounters:
        async with self._lock:
            return await self._current_locked(now)

    async def _current_locked(self, now: datetime) -> DayCounters:
        today = self.day_key(now)
        current = await self._store.load_current_day_counters()
        if current is not None and current.day_key == today:
            return current
        if current is not None and today < current.day_key:
            # Clock or timezone moved backwards; past ledgers are never rewritten
            logger.warning(
                f"Day {today} is before the current ledger {current.day_key}; "
                f"keeping {current.day_key}"
            )
            return current

        fresh = DayCounters.fresh(today)
        await self._store.save_day_counters(fresh)
        if current is not None:
            logger.info(
                f"Day rolled over {current.day_key} -> {today} "
                f"(new={current.new_shown}, review={current.review_shown})"
            )
        return fresh

    async def record_shown(
        self,
        kind: CardKind,
        now: datetime,
        prefs: LearningPreferencesConfig,
        card: VocabularyCard | None = None,
    ) -> DayCounters:
        """
        Count one completed review of `kind` on today's ledger.

        When `card` is given the card and the ledger are committed together
        through CardStore.save_review; nothing is written if that call fails.
        """
        async with self._lock:
            current = await self._current_locked(now)
            cap = prefs.cap_for(kind)
            updated = current.recorded(kind, cap)
            if kind is CardKind.NEW and current.new_shown >= cap:
                logger.warning(f"New quota {cap} already reached; counter saturated")
            elif kind is CardKind.REVIEW and current.review_shown >= cap:
                logger.warning(f"Review quota {cap} already reached; counter saturated")

            if card is not None:
                await self._store.save_review(card, updated)
            else:
                await self._store.save_day_counters(updated)
            return updated

    async def history(self, day_key: int) -> DayCounters | None:
        """Archived ledger for a past day."""
        return await self._store.load_day_counters(day_key)
