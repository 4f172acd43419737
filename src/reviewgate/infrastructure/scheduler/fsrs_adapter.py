"""
FSRS Card Scheduler — Infrastructure adapter for the `fsrs` package.

Implements CardScheduler. The opaque state payload is the JSON form of an
`fsrs.Card`; only this module ever reads it.
"""

import json
import logging
from datetime import datetime, timezone

from fsrs import Card, Rating, Scheduler

from reviewgate.domain.constants import DEFAULT_DESIRED_RETENTION, FSRS_STATE_VERSION
from reviewgate.domain.errors import SchedulingStateCorrupt
from reviewgate.domain.models import Outcome, SchedulingState
from reviewgate.domain.ports import CardScheduler

logger = logging.getLogger(__name__)

_RATINGS = {
    Outcome.CORRECT: Rating.Good,
    Outcome.INCORRECT: Rating.Again,
}


class FsrsCardScheduler(CardScheduler):
    """
    Schedules cards with FSRS.

    Fuzzing is off by default so the same answer at the same time always
    yields the same due date.
    """

    def __init__(
        self,
        desired_retention: float = DEFAULT_DESIRED_RETENTION,
        enable_fuzzing: bool = False,
    ):
        self._scheduler = Scheduler(
            desired_retention=desired_retention,
            enable_fuzzing=enable_fuzzing,
        )

    def initial_state(self, now: datetime) -> SchedulingState:
        return self._dump(Card(due=now.astimezone(timezone.utc)))

    def schedule(
        self, state: SchedulingState, outcome: Outcome, now: datetime
    ) -> tuple[SchedulingState, datetime]:
        card = self._load(state)
        try:
            updated, _ = self._scheduler.review_card(
                card, _RATINGS[outcome], review_datetime=now.astimezone(timezone.utc)
            )
        except (ValueError, TypeError) as e:
            raise SchedulingStateCorrupt(None, f"review failed: {e}") from e
        return self._dump(updated), updated.due

    def validate(self, state: SchedulingState) -> None:
        self._load(state)

    def _dump(self, card: Card) -> SchedulingState:
        return SchedulingState(
            version=FSRS_STATE_VERSION,
            payload=json.dumps(card.to_dict(), sort_keys=True),
        )

    def _load(self, state: SchedulingState) -> Card:
        if state.version != FSRS_STATE_VERSION:
            raise SchedulingStateCorrupt(None, f"unsupported state version {state.version}")
        try:
            return Card.from_dict(json.loads(state.payload))
        except (KeyError, ValueError, TypeError) as e:
            raise SchedulingStateCorrupt(None, f"unreadable FSRS card: {e}") from e
