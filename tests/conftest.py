import json
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from reviewgate.application.day_counters import DayCounterManager
from reviewgate.application.factory import assemble
from reviewgate.domain.errors import SchedulingStateCorrupt
from reviewgate.domain.models import (
    LearningPreferencesConfig,
    Outcome,
    SchedulingState,
    VocabularyCard,
)
from reviewgate.domain.ports import CardScheduler, ConfigProvider
from reviewgate.infrastructure.storage.memory_store import InMemoryCardStore

T0 = datetime(2025, 8, 24, 9, 0, tzinfo=timezone.utc)
BLOCKED = "blocked.app"


class FakeScheduler(CardScheduler):
    """
    Deterministic stand-in for FSRS.

    Correct answers push the card out by (reviews + 1) days; incorrect ones by
    ten minutes. With `stay_due=True` every card stays due immediately.
    """

    def __init__(self, stay_due: bool = False):
        self.stay_due = stay_due
        self.calls = 0
        self.fail_next = False

    def initial_state(self, now):
        return SchedulingState(1, json.dumps({"reviews": 0}))

    def schedule(self, state, outcome, now):
        self.calls += 1
        if self.fail_next:
            self.fail_next = False
            raise SchedulingStateCorrupt(None, "simulated failure")
        reviews = self._load(state)["reviews"] + 1
        if self.stay_due:
            due = now
        elif outcome is Outcome.CORRECT:
            due = now + timedelta(days=reviews)
        else:
            due = now + timedelta(minutes=10)
        return SchedulingState(1, json.dumps({"reviews": reviews})), due

    def validate(self, state):
        self._load(state)

    def _load(self, state):
        try:
            return json.loads(state.payload)
        except ValueError as e:
            raise SchedulingStateCorrupt(None, str(e)) from e


class StaticConfigProvider(ConfigProvider):
    def __init__(self, prefs=None, blocked=(BLOCKED,), enabled=True):
        self.prefs = prefs or LearningPreferencesConfig()
        self.blocked = frozenset(blocked)
        self.enabled = enabled

    async def learning_preferences(self):
        return self.prefs

    async def blocked_apps(self):
        return self.blocked

    async def gate_enabled(self):
        return self.enabled


def make_card(
    word,
    translation="x",
    *,
    card_id=None,
    due_at=T0,
    last_shown_at=None,
    payload=None,
):
    return VocabularyCard(
        id=card_id or f"card_{word.lower()}",
        word=word,
        translation=translation,
        created_at=T0 - timedelta(days=30),
        scheduling_state=SchedulingState(1, payload or json.dumps({"reviews": 0})),
        due_at=due_at,
        last_shown_at=last_shown_at,
    )


def as_review(card, shown_at=T0 - timedelta(days=1)):
    return replace(card, last_shown_at=shown_at)


@pytest.fixture
def store():
    return InMemoryCardStore()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def config():
    return StaticConfigProvider()


@pytest.fixture
def counters(store):
    return DayCounterManager(store, tz=timezone.utc)


@pytest.fixture
def services(store, scheduler, config, counters):
    return assemble(store, scheduler, config, counters)


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Isolate config files and the default database from the real home
    monkeypatch.setenv("HOME", str(home))
    for var in ("REVIEWGATE_STORAGE", "REVIEWGATE_BLOCKED_APPS", "REVIEWGATE_DATABASE_URL"):
        monkeypatch.delenv(var, raising=False)
    return home
