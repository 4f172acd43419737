"""Behaviour shared by every CardStore adapter, plus SQL specifics."""

from dataclasses import replace
from datetime import timedelta

import pytest

from reviewgate.domain.errors import DuplicateWordError, StorageUnavailable
from reviewgate.domain.models import DayCounters, GateSession
from reviewgate.infrastructure.storage import InMemoryCardStore, SqlCardStore
from tests.conftest import T0, as_review, make_card


def sql_store(path):
    store = SqlCardStore(f"sqlite:///{path}")
    store.init_db()
    return store


@pytest.fixture(params=["memory", "sql"])
def card_store(request, tmp_path):
    if request.param == "memory":
        return InMemoryCardStore()
    return sql_store(tmp_path / "cards.db")


@pytest.mark.asyncio
async def test_card_roundtrip(card_store):
    card = as_review(make_card("Haus", "House"))
    await card_store.save_card(card)
    assert await card_store.load_card(card.id) == card
    assert await card_store.load_card("card_missing") is None


@pytest.mark.asyncio
async def test_save_card_updates_existing(card_store):
    card = make_card("Haus", "House")
    await card_store.save_card(card)
    updated = replace(card, correct_count=3, due_at=T0 + timedelta(days=2))
    await card_store.save_card(updated)

    assert await card_store.load_card(card.id) == updated
    assert len(await card_store.list_cards()) == 1


@pytest.mark.asyncio
async def test_due_cards_are_ordered_and_filtered(card_store):
    later = make_card("Maus", "Mouse", due_at=T0 + timedelta(hours=1))
    b = make_card("Birne", "Pear", due_at=T0 - timedelta(minutes=5))
    a = make_card("Apfel", "Apple", due_at=T0 - timedelta(minutes=5))
    first = make_card("Katze", "Cat", due_at=T0 - timedelta(days=1))
    for card in (later, b, a, first):
        await card_store.save_card(card)

    due = await card_store.load_due_cards(T0)

    assert [c.id for c in due] == [first.id, a.id, b.id]


@pytest.mark.asyncio
async def test_word_lookup_and_uniqueness(card_store):
    card = make_card("Haus", "House")
    await card_store.save_card(card)

    assert await card_store.find_card_by_word(" haus ") == card
    assert await card_store.find_card_by_word("Maus") is None
    with pytest.raises(DuplicateWordError):
        await card_store.save_card(make_card("HAUS", "Home", card_id="card_other"))


@pytest.mark.asyncio
async def test_day_counters(card_store):
    assert await card_store.load_current_day_counters() is None

    await card_store.save_day_counters(DayCounters(20250824, new_shown=3))
    await card_store.save_day_counters(DayCounters(20250825, review_shown=1))

    assert await card_store.load_current_day_counters() == DayCounters(20250825, review_shown=1)
    assert await card_store.load_day_counters(20250824) == DayCounters(20250824, new_shown=3)
    assert await card_store.load_day_counters(20250101) is None


@pytest.mark.asyncio
async def test_save_review_writes_card_and_counters(card_store):
    card = make_card("Haus", "House")
    await card_store.save_card(card)
    reviewed = replace(card, last_shown_at=T0, correct_count=1)
    counters = DayCounters(20250824, new_shown=1)

    await card_store.save_review(reviewed, counters)

    assert await card_store.load_card(card.id) == reviewed
    assert await card_store.load_current_day_counters() == counters


@pytest.mark.asyncio
async def test_sessions(card_store):
    assert await card_store.load_session("x.app") is None

    session = GateSession("x.app", unlocked_at=T0, launches=2)
    await card_store.save_session(session)
    assert await card_store.load_session("x.app") == session

    await card_store.save_session(session.deactivated())
    assert (await card_store.load_session("x.app")).is_active is False


# ---------------------------------------------------------------------------
# SQL specifics
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_sql_data_survives_reopen(tmp_path):
    path = tmp_path / "cards.db"
    card = make_card("Haus", "House")
    await sql_store(path).save_card(card)

    reopened = sql_store(path)
    assert await reopened.load_card(card.id) == card


@pytest.mark.asyncio
async def test_sql_save_review_is_atomic(tmp_path):
    store = sql_store(tmp_path / "cards.db")
    await store.save_card(make_card("Haus", "House"))
    await store.save_day_counters(DayCounters(20250824))
    clash = make_card("HAUS", "Home", card_id="card_other")

    with pytest.raises(StorageUnavailable):
        await store.save_review(clash, DayCounters(20250824, new_shown=1))

    assert await store.load_card("card_other") is None
    assert await store.load_current_day_counters() == DayCounters(20250824)


def test_sql_unreachable_database(tmp_path):
    store = SqlCardStore(f"sqlite:///{tmp_path / 'missing' / 'dir' / 'cards.db'}")
    with pytest.raises(StorageUnavailable):
        store.init_db()


@pytest.mark.asyncio
async def test_sql_in_memory_url():
    store = SqlCardStore("sqlite://")
    store.init_db()
    card = make_card("Haus", "House")
    await store.save_card(card)
    assert await store.load_card(card.id) == card
