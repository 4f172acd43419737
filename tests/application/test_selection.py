"""Tests for item selection: pools, quotas, mix modes and anti-repeat."""

import random
from datetime import timedelta

import pytest

from reviewgate.application.selection import build_pools, mix_threshold, select_next_card
from reviewgate.domain.models import DayCounters, LearningPreferencesConfig, MixMode

from tests.conftest import T0, as_review, make_card

TODAY = 20250824


def prefs(**kw):
    return LearningPreferencesConfig(**kw)


@pytest.fixture
def new_card():
    return make_card("Haus", "House")


@pytest.fixture
def review_card():
    return as_review(make_card("Katze", "Cat", due_at=T0 - timedelta(hours=1)))


class TestPools:
    def test_review_not_yet_due_is_excluded(self):
        later = as_review(make_card("Hund", due_at=T0 + timedelta(minutes=1)))
        pools = build_pools([later], DayCounters(TODAY), prefs(), T0)
        assert pools.review == []
        assert pools.empty

    def test_exhausted_quota_empties_pool(self, new_card, review_card):
        counters = DayCounters(TODAY, new_shown=3, review_shown=1)
        pools = build_pools(
            [new_card, review_card], counters, prefs(new_per_day=3, review_per_day=5), T0
        )
        assert pools.new == []
        assert pools.review == [review_card]

    def test_pools_sorted_by_due_then_id(self):
        b = as_review(make_card("b", card_id="card_b", due_at=T0 - timedelta(hours=1)))
        a = as_review(make_card("a", card_id="card_a", due_at=T0 - timedelta(hours=1)))
        older = as_review(make_card("c", card_id="card_c", due_at=T0 - timedelta(days=2)))
        pools = build_pools([b, a, older], DayCounters(TODAY), prefs(), T0)
        assert [c.id for c in pools.review] == ["card_c", "card_a", "card_b"]


class TestMixModes:
    def test_new_first_prefers_new(self, new_card, review_card):
        chosen = select_next_card(
            [review_card, new_card], DayCounters(TODAY), prefs(mix_mode=MixMode.NEW_FIRST), None, T0
        )
        assert chosen == new_card

    def test_reviews_first_prefers_review(self, new_card, review_card):
        chosen = select_next_card(
            [new_card, review_card],
            DayCounters(TODAY),
            prefs(mix_mode=MixMode.REVIEWS_FIRST),
            None,
            T0,
        )
        assert chosen == review_card

    def test_new_first_falls_back_to_review_when_new_quota_used(self, new_card, review_card):
        counters = DayCounters(TODAY, new_shown=1)
        chosen = select_next_card(
            [new_card, review_card],
            counters,
            prefs(new_per_day=1, mix_mode=MixMode.NEW_FIRST),
            None,
            T0,
        )
        assert chosen == review_card

    def test_reviews_first_falls_back_to_new(self, new_card):
        chosen = select_next_card(
            [new_card], DayCounters(TODAY), prefs(mix_mode=MixMode.REVIEWS_FIRST), None, T0
        )
        assert chosen == new_card

    def test_mix_serves_review_until_threshold(self, new_card, review_card):
        # 10 reviews left / 5 new left -> one new after every 2 reviews
        p = prefs(new_per_day=5, review_per_day=10, mix_mode=MixMode.MIX)
        cards = [new_card, review_card]

        assert select_next_card(cards, DayCounters(TODAY, reviews_since_last_new=0), p, None, T0) == review_card
        assert select_next_card(cards, DayCounters(TODAY, reviews_since_last_new=1), p, None, T0) == review_card
        assert select_next_card(cards, DayCounters(TODAY, reviews_since_last_new=2), p, None, T0) == new_card

    def test_mix_serves_new_when_no_review_due(self, new_card):
        p = prefs(mix_mode=MixMode.MIX)
        assert select_next_card([new_card], DayCounters(TODAY), p, None, T0) == new_card

    def test_mix_threshold(self):
        assert mix_threshold(new_remaining=5, review_remaining=10) == 2
        assert mix_threshold(new_remaining=3, review_remaining=10) == 4
        assert mix_threshold(new_remaining=20, review_remaining=5) == 1
        assert mix_threshold(new_remaining=0, review_remaining=5) == 5


class TestExhaustion:
    def test_no_cards_returns_none(self):
        assert select_next_card([], DayCounters(TODAY), prefs(), None, T0) is None

    def test_both_quotas_exhausted_returns_none(self, new_card, review_card):
        counters = DayCounters(TODAY, new_shown=1, review_shown=1)
        p = prefs(new_per_day=1, review_per_day=1)
        assert select_next_card([new_card, review_card], counters, p, None, T0) is None


class TestAntiRepeat:
    def test_single_candidate_is_repeated(self, review_card):
        p = prefs(bury_immediate_repeat=True)
        first = select_next_card([review_card], DayCounters(TODAY), p, None, T0)
        second = select_next_card([review_card], DayCounters(TODAY), p, first.id, T0)
        assert first == second == review_card

    def test_two_candidates_never_repeat(self):
        a = as_review(make_card("a", card_id="card_a", due_at=T0 - timedelta(hours=2)))
        b = as_review(make_card("b", card_id="card_b", due_at=T0 - timedelta(hours=1)))
        p = prefs(bury_immediate_repeat=True, mix_mode=MixMode.REVIEWS_FIRST)

        last = None
        picks = []
        for _ in range(4):
            chosen = select_next_card([a, b], DayCounters(TODAY), p, last, T0)
            assert chosen.id != last
            picks.append(chosen.id)
            last = chosen.id
        assert picks == ["card_a", "card_b", "card_a", "card_b"]

    def test_repeat_allowed_when_burying_disabled(self):
        a = as_review(make_card("a", card_id="card_a", due_at=T0 - timedelta(hours=2)))
        b = as_review(make_card("b", card_id="card_b", due_at=T0 - timedelta(hours=1)))
        p = prefs(bury_immediate_repeat=False)
        assert select_next_card([a, b], DayCounters(TODAY), p, "card_a", T0) == a

    def test_skip_can_fall_through_to_other_pool(self, new_card, review_card):
        p = prefs(bury_immediate_repeat=True, mix_mode=MixMode.REVIEWS_FIRST)
        chosen = select_next_card(
            [new_card, review_card], DayCounters(TODAY), p, review_card.id, T0
        )
        assert chosen == new_card


def test_selection_is_deterministic():
    cards = [
        as_review(make_card(f"w{i}", card_id=f"card_{i:02d}", due_at=T0 - timedelta(hours=i % 3)))
        for i in range(10)
    ] + [make_card(f"n{i}", card_id=f"card_n{i}") for i in range(5)]
    p = prefs(mix_mode=MixMode.MIX)
    counters = DayCounters(TODAY, reviews_since_last_new=1)

    expected = select_next_card(cards, counters, p, None, T0)
    rng = random.Random(7)
    for _ in range(5):
        shuffled = cards[:]
        rng.shuffle(shuffled)
        assert select_next_card(shuffled, counters, p, None, T0) == expected
