"""
Per-application unlock windows.

Expiry is lazy: a window is closed by the first read that finds it expired.
"""

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import assert_never

from reviewgate.domain.models import GateSession, LearningPreferencesConfig, UnlockPolicy
from reviewgate.domain.ports import CardStore, ConfigProvider

logger = logging.getLogger(__name__)


def session_expired(
    session: GateSession, now: datetime, prefs: LearningPreferencesConfig
) -> bool:
    match prefs.unlock_policy:
        case UnlockPolicy.ELAPSED_MINUTES:
            return now - session.unlocked_at > timedelta(minutes=prefs.overlay_interval)
        case UnlockPolicy.LAUNCH_COUNT:
            return session.launches >= prefs.overlay_interval
        case _:
            assert_never(prefs.unlock_policy)


class GateSessionManager:
    def __init__(self, store: CardStore, config: ConfigProvider):
        self._store = store
        self._config = config

    async def open_session(self, app_id: str, now: datetime) -> GateSession:
        """Start a fresh window, replacing whatever session the app had."""
        session = GateSession(app_id=app_id, unlocked_at=now)
        await self._store.save_session(session)
        logger.info(f"Unlocked {app_id} at {now.isoformat()}")
        return session

    async def is_unlocked(self, app_id: str, now: datetime) -> bool:
        return await self._active_session(app_id, now) is not None

    async def admit(self, app_id: str, now: datetime) -> bool:
        """
        Let one launch through an active window.

        Under the launch-count policy this consumes one launch of the budget.
        """
        session = await self._active_session(app_id, now)
        if session is None:
            return False
        await self._store.save_session(replace(session, launches=session.launches + 1))
        return True

    async def force_lock(self, app_id: str) -> None:
        session = await self._store.load_session(app_id)
        if session is not None and session.is_active:
            await self._store.save_session(session.deactivated())
            logger.info(f"Re-locked {app_id}")

    async def _active_session(self, app_id: str, now: datetime) -> GateSession | None:
        session = await self._store.load_session(app_id)
        if session is None or not session.is_active:
            return None

        prefs = await self._config.learning_preferences()
        if session_expired(session, now, prefs):
            await self._store.save_session(session.deactivated())
            logger.info(f"Unlock window for {app_id} expired")
            return None
        return session
