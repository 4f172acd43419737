"""
Item selection for the review gate.

Chooses the next card to present by:
1. Splitting candidates into due reviews and never-shown new cards
2. Emptying a pool whose daily quota is used up
3. Ordering the pools according to the mix mode
4. Skipping an immediate repeat of the last shown card when possible
"""

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import assert_never

from reviewgate.domain.models import (
    CardKind,
    DayCounters,
    LearningPreferencesConfig,
    MixMode,
    VocabularyCard,
)

logger = logging.getLogger(__name__)


@dataclass
class CandidatePools:
    """Quota-eligible candidates, each sorted by (due_at, id)."""

    review: list[VocabularyCard]
    new: list[VocabularyCard]

    @property
    def empty(self) -> bool:
        return not self.review and not self.new


def build_pools(
    cards: Sequence[VocabularyCard],
    counters: DayCounters,
    prefs: LearningPreferencesConfig,
    now: datetime,
) -> CandidatePools:
    due_review = sorted(
        (c for c in cards if c.kind is CardKind.REVIEW and c.due_at <= now),
        key=VocabularyCard.sort_key,
    )
    available_new = sorted(
        (c for c in cards if c.kind is CardKind.NEW),
        key=VocabularyCard.sort_key,
    )

    if counters.review_shown >= prefs.review_per_day:
        due_review = []
    if counters.new_shown >= prefs.new_per_day:
        available_new = []

    return CandidatePools(review=due_review, new=available_new)


def mix_threshold(new_remaining: int, review_remaining: int) -> int:
    """Number of reviews to show between two new items in MIX mode."""
    return max(1, math.ceil(review_remaining / max(1, new_remaining)))


def _serve_new_in_mix(
    pools: CandidatePools,
    counters: DayCounters,
    prefs: LearningPreferencesConfig,
) -> bool:
    if not pools.new:
        return False
    if not pools.review:
        return True
    threshold = mix_threshold(
        counters.new_remaining(prefs), counters.review_remaining(prefs)
    )
    return counters.reviews_since_last_new >= threshold


def order_candidates(
    pools: CandidatePools,
    counters: DayCounters,
    prefs: LearningPreferencesConfig,
) -> list[VocabularyCard]:
    """Preferred pool first, the other pool as fallback."""
    match prefs.mix_mode:
        case MixMode.NEW_FIRST:
            new_first = True
        case MixMode.REVIEWS_FIRST:
            new_first = False
        case MixMode.MIX:
            new_first = _serve_new_in_mix(pools, counters, prefs)
        case _:
            assert_never(prefs.mix_mode)

    if new_first:
        return pools.new + pools.review
    return pools.review + pools.new


def select_next_card(
    cards: Sequence[VocabularyCard],
    counters: DayCounters,
    prefs: LearningPreferencesConfig,
    last_shown_id: str | None,
    now: datetime,
) -> VocabularyCard | None:
    """
    Pick the next card to present, or None when both pools are exhausted.

    Args:
        cards: Candidate cards (typically the store's due cards).
        counters: Today's ledger.
        prefs: Quotas, mix mode and anti-repeat policy.
        last_shown_id: Card most recently reviewed, for anti-repeat.
        now: Reference time for due checks.

    Returns:
        The chosen card. Identical inputs always give the same card.
    """
    pools = build_pools(cards, counters, prefs, now)
    if pools.empty:
        logger.debug("No eligible card: both pools empty")
        return None

    ordered = order_candidates(pools, counters, prefs)
    chosen = ordered[0]

    if prefs.bury_immediate_repeat and chosen.id == last_shown_id:
        if len(ordered) > 1:
            chosen = ordered[1]
        else:
            logger.debug(f"Only {chosen.id} is eligible; repeating it")

    return chosen
