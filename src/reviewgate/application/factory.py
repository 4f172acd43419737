"""
Service Factory
Centralizes the logic for selecting adapters and wiring the gate.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from reviewgate.application.config import AppConfig, SettingsConfigProvider
from reviewgate.application.day_counters import DayCounterManager
from reviewgate.application.gate import LaunchGate
from reviewgate.application.review_processor import ReviewOutcomeProcessor
from reviewgate.application.sessions import GateSessionManager
from reviewgate.application.vocabulary_service import VocabularyService
from reviewgate.domain.ports import CardScheduler, CardStore, ConfigProvider
from reviewgate.infrastructure.scheduler.fsrs_adapter import FsrsCardScheduler
from reviewgate.infrastructure.storage.memory_store import InMemoryCardStore
from reviewgate.infrastructure.storage.sql_store import SqlCardStore

logger = logging.getLogger(__name__)


@dataclass
class GateServices:
    """Everything an interface layer needs, wired once per process."""

    store: CardStore
    scheduler: CardScheduler
    config: ConfigProvider
    counters: DayCounterManager
    sessions: GateSessionManager
    processor: ReviewOutcomeProcessor
    gate: LaunchGate
    vocabulary: VocabularyService


def get_card_store(config: AppConfig) -> CardStore:
    """
    Returns the CardStore implementation selected by config.
    """
    if config.storage == "memory":
        return InMemoryCardStore()

    if config.database_url.startswith("sqlite:///"):
        db_path = Path(config.database_url.removeprefix("sqlite:///"))
        if str(db_path) != ":memory:":
            db_path.parent.mkdir(parents=True, exist_ok=True)

    store = SqlCardStore(config.database_url)
    store.init_db()
    logger.debug(f"Storage: {config.database_url}")
    return store


def assemble(
    store: CardStore,
    scheduler: CardScheduler,
    config: ConfigProvider,
    counters: DayCounterManager,
) -> GateServices:
    """Wire the application services around already-built adapters."""
    sessions = GateSessionManager(store, config)
    processor = ReviewOutcomeProcessor(store, scheduler, counters, config)
    gate = LaunchGate(store, config, counters, sessions, processor)
    return GateServices(
        store=store,
        scheduler=scheduler,
        config=config,
        counters=counters,
        sessions=sessions,
        processor=processor,
        gate=gate,
        vocabulary=VocabularyService(store, scheduler),
    )


def build_services(config: AppConfig) -> GateServices:
    store = get_card_store(config)
    scheduler = FsrsCardScheduler(
        desired_retention=config.desired_retention,
        enable_fuzzing=config.enable_fuzzing,
    )
    counters = DayCounterManager(store, tz=config.resolve_tz())
    return assemble(store, scheduler, SettingsConfigProvider(config), counters)
