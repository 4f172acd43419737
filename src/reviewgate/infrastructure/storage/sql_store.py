"""
SQL Card Store — Infrastructure adapter backed by SQLAlchemy.

Implements CardStore on any SQLAlchemy database (SQLite by default). Blocking
database work runs in a worker thread so the event loop keeps serving other
applications.
"""

import asyncio
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import create_engine, event, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from reviewgate.domain.errors import DuplicateWordError, StorageUnavailable
from reviewgate.domain.models import (
    DayCounters,
    GateSession,
    SchedulingState,
    VocabularyCard,
    normalize_word,
)
from reviewgate.domain.ports import CardStore

from .sql_models import Base, CardRow, DayCountersRow, GateSessionRow

logger = logging.getLogger(__name__)


def _to_utc(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _card_from_row(row: CardRow) -> VocabularyCard:
    return VocabularyCard(
        id=row.id,
        word=row.word,
        translation=row.translation,
        created_at=_to_utc(row.created_at),
        last_shown_at=_to_utc(row.last_shown_at),
        correct_count=row.correct_count,
        incorrect_count=row.incorrect_count,
        scheduling_state=SchedulingState(row.scheduling_version, row.scheduling_payload),
        due_at=_to_utc(row.due_at),
    )


def _fill_card_row(row: CardRow, card: VocabularyCard) -> CardRow:
    row.word = card.word
    row.word_key = card.word_key
    row.translation = card.translation
    row.created_at = _to_utc(card.created_at)
    row.last_shown_at = _to_utc(card.last_shown_at)
    row.correct_count = card.correct_count
    row.incorrect_count = card.incorrect_count
    row.scheduling_version = card.scheduling_state.version
    row.scheduling_payload = card.scheduling_state.payload
    row.due_at = _to_utc(card.due_at)
    return row


def _counters_from_row(row: DayCountersRow) -> DayCounters:
    return DayCounters(
        day_key=row.day_key,
        new_shown=row.new_shown,
        review_shown=row.review_shown,
        reviews_since_last_new=row.reviews_since_last_new,
    )


class SqlCardStore(CardStore):
    def __init__(self, database_url: str):
        self.database_url = database_url
        kwargs: dict = {"echo": False}
        if database_url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                # One shared connection, otherwise every thread sees an empty DB
                kwargs["poolclass"] = StaticPool
        self.engine = create_engine(database_url, **kwargs)

        if database_url.startswith("sqlite"):

            @event.listens_for(self.engine, "connect")
            def _set_sqlite_pragma(dbapi_conn, connection_record):
                cursor = dbapi_conn.cursor()
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.close()

        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def init_db(self) -> None:
        """Create all tables if they do not exist yet."""
        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Could not initialise database: {e}") from e

    @contextmanager
    def _session_scope(self, duplicate_word: str | None = None) -> Iterator[Session]:
        """
        Transaction scope. Database errors surface as StorageUnavailable,
        except a uniqueness violation while saving `duplicate_word`.
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except IntegrityError as e:
            session.rollback()
            if duplicate_word is not None:
                raise DuplicateWordError(duplicate_word) from e
            logger.error(f"Database integrity error: {e}")
            raise StorageUnavailable(str(e)) from e
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error: {e}")
            raise StorageUnavailable(str(e)) from e
        finally:
            session.close()

    # --- cards ---

    async def load_due_cards(self, now: datetime) -> list[VocabularyCard]:
        def run():
            with self._session_scope() as s:
                rows = s.scalars(
                    select(CardRow)
                    .where(CardRow.due_at <= _to_utc(now))
                    .order_by(CardRow.due_at.asc(), CardRow.id.asc())
                ).all()
                return [_card_from_row(r) for r in rows]

        return await asyncio.to_thread(run)

    async def load_card(self, card_id: str) -> VocabularyCard | None:
        def run():
            with self._session_scope() as s:
                row = s.get(CardRow, card_id)
                return _card_from_row(row) if row else None

        return await asyncio.to_thread(run)

    async def find_card_by_word(self, word: str) -> VocabularyCard | None:
        def run():
            with self._session_scope() as s:
                row = s.scalars(
                    select(CardRow).where(CardRow.word_key == normalize_word(word))
                ).first()
                return _card_from_row(row) if row else None

        return await asyncio.to_thread(run)

    async def list_cards(self) -> list[VocabularyCard]:
        def run():
            with self._session_scope() as s:
                rows = s.scalars(
                    select(CardRow).order_by(CardRow.created_at.asc(), CardRow.id.asc())
                ).all()
                return [_card_from_row(r) for r in rows]

        return await asyncio.to_thread(run)

    def _upsert_card(self, s: Session, card: VocabularyCard) -> None:
        row = s.get(CardRow, card.id)
        if row is None:
            row = CardRow(id=card.id)
            s.add(row)
        _fill_card_row(row, card)

    async def save_card(self, card: VocabularyCard) -> None:
        def run():
            with self._session_scope(duplicate_word=card.word) as s:
                self._upsert_card(s, card)

        await asyncio.to_thread(run)

    # --- day counters ---

    async def load_current_day_counters(self) -> DayCounters | None:
        def run():
            with self._session_scope() as s:
                row = s.scalars(
                    select(DayCountersRow).order_by(DayCountersRow.day_key.desc())
                ).first()
                return _counters_from_row(row) if row else None

        return await asyncio.to_thread(run)

    async def load_day_counters(self, day_key: int) -> DayCounters | None:
        def run():
            with self._session_scope() as s:
                row = s.get(DayCountersRow, day_key)
                return _counters_from_row(row) if row else None

        return await asyncio.to_thread(run)

    def _upsert_counters(self, s: Session, counters: DayCounters) -> None:
        s.merge(
            DayCountersRow(
                day_key=counters.day_key,
                new_shown=counters.new_shown,
                review_shown=counters.review_shown,
                reviews_since_last_new=counters.reviews_since_last_new,
            )
        )

    async def save_day_counters(self, counters: DayCounters) -> None:
        def run():
            with self._session_scope() as s:
                self._upsert_counters(s, counters)

        await asyncio.to_thread(run)

    async def save_review(self, card: VocabularyCard, counters: DayCounters) -> None:
        def run():
            # Single transaction: both rows commit or neither does
            with self._session_scope() as s:
                self._upsert_card(s, card)
                self._upsert_counters(s, counters)

        await asyncio.to_thread(run)

    # --- sessions ---

    async def load_session(self, app_id: str) -> GateSession | None:
        def run():
            with self._session_scope() as s:
                row = s.get(GateSessionRow, app_id)
                if row is None:
                    return None
                return GateSession(
                    app_id=row.app_id,
                    unlocked_at=_to_utc(row.unlocked_at),
                    is_active=row.is_active,
                    launches=row.launches,
                )

        return await asyncio.to_thread(run)

    async def save_session(self, session: GateSession) -> None:
        def run():
            with self._session_scope() as s:
                s.merge(
                    GateSessionRow(
                        app_id=session.app_id,
                        unlocked_at=_to_utc(session.unlocked_at),
                        is_active=session.is_active,
                        launches=session.launches,
                    )
                )

        await asyncio.to_thread(run)
