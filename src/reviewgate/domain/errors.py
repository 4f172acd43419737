"""Domain exceptions raised by the review gate engine."""


class ReviewGateError(Exception):
    """Base class for every error the engine raises on purpose."""


class StorageUnavailable(ReviewGateError):
    """A persistence read or write failed. The gate fails closed on this."""


class SchedulingStateCorrupt(ReviewGateError):
    """A card's opaque scheduling state could not be interpreted."""

    def __init__(self, card_id: str | None, reason: str):
        self.card_id = card_id
        self.reason = reason
        super().__init__(f"Scheduling state of card {card_id} is corrupt: {reason}")


class CardNotFound(ReviewGateError):
    def __init__(self, card_id: str):
        self.card_id = card_id
        super().__init__(f"Card {card_id} not found")


class DuplicateWordError(ReviewGateError):
    def __init__(self, word: str):
        self.word = word
        super().__init__(f"A card for '{word}' already exists")


class InvalidVocabularyError(ReviewGateError):
    """Word or translation is blank."""
