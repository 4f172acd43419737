"""Service for adding and looking up vocabulary cards."""

import logging
from dataclasses import replace
from datetime import datetime
from enum import Enum

from ulid import ULID

from reviewgate.domain.errors import CardNotFound, DuplicateWordError, InvalidVocabularyError
from reviewgate.domain.models import VocabularyCard
from reviewgate.domain.ports import CardScheduler, CardStore

logger = logging.getLogger(__name__)


def generate_card_id() -> str:
    """Generate a stable card ID using ULID."""
    return f"card_{ULID()}"


class TranslationCheck(str, Enum):
    CORRECT = "correct"
    CLOSE = "close"
    INCORRECT = "incorrect"
    EMPTY = "empty"


def check_translation(given: str, expected: str) -> TranslationCheck:
    """
    Compare a typed answer with the expected translation.

    Comparison ignores case and surrounding whitespace. An answer that is a
    substring of the expected text and at most one character shorter counts
    as close (a typo), which callers still record as incorrect.
    """
    answer = given.strip().casefold()
    target = expected.strip().casefold()
    if not answer:
        return TranslationCheck.EMPTY
    if answer == target:
        return TranslationCheck.CORRECT
    if len(answer) >= len(target) - 1 and answer in target:
        return TranslationCheck.CLOSE
    return TranslationCheck.INCORRECT


def _clean(word: str, translation: str) -> tuple[str, str]:
    word = word.strip()
    translation = translation.strip()
    if not word or not translation:
        raise InvalidVocabularyError("Word and translation cannot be empty")
    return word, translation


class VocabularyService:
    def __init__(self, store: CardStore, scheduler: CardScheduler):
        self.store = store
        self.scheduler = scheduler

    async def add_card(self, word: str, translation: str, now: datetime) -> VocabularyCard:
        """
        Create a card that is immediately due as a new item.

        Raises:
            InvalidVocabularyError: word or translation is blank.
            DuplicateWordError: a card with the same word (ignoring case) exists.
        """
        word, translation = _clean(word, translation)
        if await self.store.find_card_by_word(word) is not None:
            raise DuplicateWordError(word)

        card = VocabularyCard(
            id=generate_card_id(),
            word=word,
            translation=translation,
            created_at=now,
            scheduling_state=self.scheduler.initial_state(now),
            due_at=now,
        )
        await self.store.save_card(card)
        logger.info(f"Added {word!r} -> {translation!r} as {card.id}")
        return card

    async def override_card(
        self, card_id: str, word: str, translation: str, now: datetime
    ) -> VocabularyCard:
        """
        Replace the word and translation of a card and start it over as new.

        Correctness counters, `last_shown_at` and scheduling state are reset;
        the card is due immediately.

        Raises:
            CardNotFound: no card with `card_id`.
            InvalidVocabularyError: word or translation is blank.
            DuplicateWordError: another card already has the word.
        """
        word, translation = _clean(word, translation)
        card = await self.store.load_card(card_id)
        if card is None:
            raise CardNotFound(card_id)

        existing = await self.store.find_card_by_word(word)
        if existing is not None and existing.id != card_id:
            raise DuplicateWordError(word)

        updated = replace(
            card,
            word=word,
            translation=translation,
            last_shown_at=None,
            correct_count=0,
            incorrect_count=0,
            scheduling_state=self.scheduler.initial_state(now),
            due_at=now,
        )
        await self.store.save_card(updated)
        logger.info(f"Overrode {card_id}: {card.word!r} -> {word!r}; progress reset")
        return updated

    async def find_by_word(self, word: str) -> VocabularyCard | None:
        return await self.store.find_card_by_word(word)

    async def list_cards(self) -> list[VocabularyCard]:
        return await self.store.list_cards()
