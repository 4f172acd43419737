"""Tests for the day counter manager: lazy rollover, recording and quotas."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from reviewgate.domain.models import CardKind, DayCounters, LearningPreferencesConfig
from tests.conftest import T0, make_card

NEXT_DAY = datetime(2025, 8, 25, 8, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_first_access_creates_zeroed_record(counters, store):
    current = await counters.current_counters(T0)

    assert current == DayCounters(20250824)
    assert store.day_counters[20250824] == current


@pytest.mark.asyncio
async def test_rollover_creates_fresh_record_and_archives_old(counters, store):
    yesterday = DayCounters(20250824, new_shown=5, review_shown=7, reviews_since_last_new=2)
    await store.save_day_counters(yesterday)

    current = await counters.current_counters(NEXT_DAY)

    assert current == DayCounters(20250825)
    assert await counters.history(20250824) == yesterday


@pytest.mark.asyncio
async def test_same_day_returns_stored_record(counters, store):
    await store.save_day_counters(DayCounters(20250824, new_shown=2))
    current = await counters.current_counters(T0 + timedelta(hours=3))
    assert current.new_shown == 2


@pytest.mark.asyncio
async def test_record_shown_updates_current_day(counters):
    prefs = LearningPreferencesConfig()
    await counters.record_shown(CardKind.REVIEW, T0, prefs)
    await counters.record_shown(CardKind.REVIEW, T0, prefs)
    after = await counters.record_shown(CardKind.NEW, T0, prefs)

    assert after.review_shown == 2
    assert after.new_shown == 1
    assert after.reviews_since_last_new == 0


@pytest.mark.asyncio
async def test_record_shown_after_midnight_counts_on_new_day(counters, store):
    prefs = LearningPreferencesConfig()
    await counters.record_shown(CardKind.NEW, T0, prefs)
    await counters.record_shown(CardKind.NEW, NEXT_DAY, prefs)

    assert store.day_counters[20250824].new_shown == 1
    assert store.day_counters[20250825].new_shown == 1


@pytest.mark.asyncio
async def test_record_shown_with_card_commits_both(counters, store):
    card = make_card("Haus", "House")
    after = await counters.record_shown(
        CardKind.NEW, T0, LearningPreferencesConfig(), card=card
    )
    assert store.cards[card.id] == card
    assert store.day_counters[20250824] == after


@pytest.mark.asyncio
async def test_concurrent_increments_are_not_lost(counters, store):
    prefs = LearningPreferencesConfig(review_per_day=100)
    await asyncio.gather(
        *(counters.record_shown(CardKind.REVIEW, T0, prefs) for _ in range(25))
    )
    assert store.day_counters[20250824].review_shown == 25


@pytest.mark.asyncio
async def test_quota_invariant_holds_for_any_sequence(counters):
    prefs = LearningPreferencesConfig(new_per_day=2, review_per_day=3)
    kinds = [CardKind.NEW, CardKind.REVIEW] * 6
    for kind in kinds:
        current = await counters.record_shown(kind, T0, prefs)
        assert current.new_shown <= prefs.new_per_day
        assert current.review_shown <= prefs.review_per_day
    assert current.new_shown == 2
    assert current.review_shown == 3


@pytest.mark.asyncio
async def test_quota_read_does_not_mutate(counters, store):
    await store.save_day_counters(DayCounters(20250824, new_shown=1))
    for _ in range(3):
        await counters.current_counters(T0)
    assert store.day_counters[20250824] == DayCounters(20250824, new_shown=1)


@pytest.mark.asyncio
async def test_earlier_day_never_overwrites_archived_ledger(counters, store):
    await store.save_day_counters(DayCounters(20250824, new_shown=5))
    await store.save_day_counters(DayCounters(20250825, new_shown=2))
    late_on_24th = datetime(2025, 8, 24, 23, 0, tzinfo=timezone.utc)

    current = await counters.current_counters(late_on_24th)

    assert current == DayCounters(20250825, new_shown=2)
    assert await counters.history(20250824) == DayCounters(20250824, new_shown=5)


@pytest.mark.asyncio
async def test_recording_on_earlier_day_counts_on_current_ledger(counters, store):
    prefs = LearningPreferencesConfig(new_per_day=3)
    await store.save_day_counters(DayCounters(20250824, new_shown=3))
    await store.save_day_counters(DayCounters(20250825, new_shown=1))

    await counters.record_shown(CardKind.NEW, T0, prefs)

    assert store.day_counters[20250824] == DayCounters(20250824, new_shown=3)
    assert store.day_counters[20250825].new_shown == 2
