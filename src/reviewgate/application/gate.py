"""
Launch Interception Gate — the per-application state machine.

    LOCKED --launch--> UNLOCKED           (not blocked / active session / escape valve)
    LOCKED --launch--> AWAITING_REVIEW    (card presented)
    AWAITING_REVIEW --answer--> UNLOCKED  (review recorded, session opened)
    AWAITING_REVIEW --abandon--> LOCKED   (nothing recorded)
    UNLOCKED --window expires--> LOCKED   (detected on the next launch)

Every transition for one app runs under that app's lock. A launch arriving
while the app awaits a review joins the pending decision instead of starting
a second review.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import assert_never

from reviewgate.domain.decisions import (
    Allow,
    AllowReason,
    Deny,
    DenyReason,
    GateDecision,
    GateState,
    PresentReview,
)
from reviewgate.domain.errors import CardNotFound, SchedulingStateCorrupt, StorageUnavailable
from reviewgate.domain.models import EscapeValve, LearningPreferencesConfig, VocabularyCard
from reviewgate.domain.ports import CardStore, ConfigProvider

from .day_counters import DayCounterManager
from .review_processor import ReviewOutcomeProcessor
from .selection import select_next_card
from .sessions import GateSessionManager

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _AppSlot:
    lock: asyncio.Lock
    state: GateState = GateState.LOCKED
    pending: PresentReview | None = None
    # Answer recorded but its unlock window could not be saved
    owed_since: datetime | None = None


class LaunchGate:
    """
    Decides ALLOW, CHALLENGE (present a review) or DENY for launch attempts.

    Storage failures fail closed: a launch that cannot be decided is denied.
    """

    def __init__(
        self,
        store: CardStore,
        config: ConfigProvider,
        counters: DayCounterManager,
        sessions: GateSessionManager,
        processor: ReviewOutcomeProcessor,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._config = config
        self._counters = counters
        self._sessions = sessions
        self._processor = processor
        self._clock = clock
        self._slots: dict[str, _AppSlot] = {}
        self._last_shown_id: str | None = None

    def _slot(self, app_id: str) -> _AppSlot:
        # No await between lookup and insert, so two tasks cannot create two slots.
        slot = self._slots.get(app_id)
        if slot is None:
            slot = self._slots[app_id] = _AppSlot(lock=asyncio.Lock())
        return slot

    def state_of(self, app_id: str) -> GateState:
        slot = self._slots.get(app_id)
        return slot.state if slot else GateState.LOCKED

    async def on_launch_attempt(self, app_id: str, now: datetime | None = None) -> GateDecision:
        now = now or self._clock()

        if not await self._config.gate_enabled():
            return Allow(AllowReason.GATE_DISABLED)
        if app_id not in await self._config.blocked_apps():
            return Allow(AllowReason.NOT_BLOCKED)

        slot = self._slot(app_id)
        async with slot.lock:
            if slot.state is GateState.AWAITING_REVIEW and slot.pending is not None:
                logger.debug(f"Launch of {app_id} joined the pending review")
                return slot.pending

            try:
                if slot.owed_since is not None:
                    await self._sessions.open_session(app_id, slot.owed_since)
                    slot.owed_since = None
                if await self._sessions.admit(app_id, now):
                    slot.state = GateState.UNLOCKED
                    return Allow(AllowReason.SESSION_ACTIVE)
                slot.state = GateState.LOCKED
                card = await self._next_card(now)
            except StorageUnavailable as e:
                logger.error(f"Storage unavailable while gating {app_id}: {e}")
                return Deny(DenyReason.STORAGE_UNAVAILABLE, str(e))

            if card is None:
                return self._escape_valve(app_id, await self._config.learning_preferences())

            slot.state = GateState.AWAITING_REVIEW
            slot.pending = PresentReview(card)
            logger.info(f"Challenging {app_id} with {card.word!r} ({card.kind.value})")
            return slot.pending

    def _escape_valve(self, app_id: str, prefs: LearningPreferencesConfig) -> GateDecision:
        match prefs.escape_valve:
            case EscapeValve.ALLOW:
                logger.warning(f"Nothing left to study; letting {app_id} through")
                return Allow(AllowReason.NOTHING_TO_STUDY)
            case EscapeValve.DENY:
                logger.warning(f"Nothing left to study; denying {app_id}")
                return Deny(DenyReason.NOTHING_TO_STUDY)
            case _:
                assert_never(prefs.escape_valve)

    async def _next_card(self, now: datetime) -> VocabularyCard | None:
        prefs = await self._config.learning_preferences()
        counters = await self._counters.current_counters(now)
        cards = self._processor.screen(await self._store.load_due_cards(now))
        return select_next_card(cards, counters, prefs, self._last_shown_id, now)

    async def on_answer(
        self, app_id: str, correct: bool, now: datetime | None = None
    ) -> GateDecision:
        """
        Record the answer to the pending review and unlock the app.

        If the answer is recorded but the unlock window cannot be saved, the
        app is still allowed and the window is saved on its next launch.

        Raises:
            SchedulingStateCorrupt, CardNotFound: The app is locked again (a corrupt
                card is flagged for repair); the caller must tell the user.
            StorageUnavailable: The answer could not be recorded; the review
                stays pending.
        """
        now = now or self._clock()
        slot = self._slots.get(app_id)
        if slot is None:
            logger.warning(f"Answer for {app_id} without a pending review")
            return Deny(DenyReason.NO_PENDING_REVIEW)

        async with slot.lock:
            if slot.state is not GateState.AWAITING_REVIEW or slot.pending is None:
                logger.warning(f"Answer for {app_id} without a pending review")
                return Deny(DenyReason.NO_PENDING_REVIEW)

            card = slot.pending.card
            try:
                await self._processor.apply(card.id, correct, now)
            except (SchedulingStateCorrupt, CardNotFound):
                slot.state = GateState.LOCKED
                slot.pending = None
                raise

            self._last_shown_id = card.id
            slot.pending = None
            try:
                await self._sessions.open_session(app_id, now)
            except StorageUnavailable as e:
                logger.error(f"Could not save unlock window for {app_id}: {e}")
                slot.owed_since = now
            slot.state = GateState.UNLOCKED
            return Allow(AllowReason.REVIEW_COMPLETED)

    async def on_abandon(self, app_id: str) -> GateDecision:
        slot = self._slots.get(app_id)
        if slot is not None:
            async with slot.lock:
                if slot.state is GateState.AWAITING_REVIEW:
                    logger.info(f"Review for {app_id} abandoned")
                    slot.state = GateState.LOCKED
                    slot.pending = None
        return Deny(DenyReason.ABANDONED)

    async def force_lock(self, app_id: str) -> None:
        slot = self._slots.get(app_id)
        if slot is None:
            await self._sessions.force_lock(app_id)
            return
        async with slot.lock:
            await self._sessions.force_lock(app_id)
            slot.state = GateState.LOCKED
            slot.pending = None
            slot.owed_since = None

    async def has_available_items(self, now: datetime | None = None) -> bool:
        """True if a launch right now would be challenged with a card."""
        now = now or self._clock()
        return await self._next_card(now) is not None
