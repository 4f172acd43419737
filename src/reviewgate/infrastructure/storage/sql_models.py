"""
SQLAlchemy ORM models for the SQL card store.

Timestamps are stored as UTC; SQLite drops tzinfo, so the store re-attaches
it when mapping rows back to domain objects.
"""

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


# ---------------------------------------------------------------------------
# Card – a vocabulary item with opaque scheduling state
# ---------------------------------------------------------------------------
class CardRow(Base):
    __tablename__ = "cards"

    id = Column(String(64), primary_key=True)
    word = Column(Text, nullable=False)
    word_key = Column(String(255), nullable=False, unique=True)  # casefolded word
    translation = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    last_shown_at = Column(DateTime(timezone=True), nullable=True)
    correct_count = Column(Integer, nullable=False, default=0)
    incorrect_count = Column(Integer, nullable=False, default=0)

    # Scheduler-owned
    scheduling_version = Column(Integer, nullable=False)
    scheduling_payload = Column(Text, nullable=False)
    due_at = Column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<CardRow id={self.id} word={self.word!r} due_at={self.due_at}>"


# ---------------------------------------------------------------------------
# DayCounters – one row per local calendar day
# ---------------------------------------------------------------------------
class DayCountersRow(Base):
    __tablename__ = "day_counters"

    day_key = Column(Integer, primary_key=True, autoincrement=False)  # 20250824
    new_shown = Column(Integer, nullable=False, default=0)
    review_shown = Column(Integer, nullable=False, default=0)
    reviews_since_last_new = Column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<DayCountersRow day={self.day_key} new={self.new_shown} "
            f"review={self.review_shown}>"
        )


# ---------------------------------------------------------------------------
# GateSession – at most one per application
# ---------------------------------------------------------------------------
class GateSessionRow(Base):
    __tablename__ = "gate_sessions"

    app_id = Column(String(255), primary_key=True)
    unlocked_at = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    launches = Column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<GateSessionRow app_id={self.app_id!r} active={self.is_active}>"
