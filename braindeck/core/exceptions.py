"""
Exception hierarchy for BrainDeck.

The scheduler core only ever raises PreconditionError; the remaining
classes belong to the delivery layer (store, card source, deck service).
"""


class BraindeckError(Exception):
    """Base class for all BrainDeck errors."""
    pass


class PreconditionError(BraindeckError, ValueError):
    """Raised when a caller passes a value outside an operation's domain."""
    pass


class CardNotFoundError(BraindeckError, KeyError):
    """Raised when a card id is not present in the collection."""

    def __init__(self, card_id: str):
        super().__init__(card_id)
        self.card_id = card_id

    def __str__(self) -> str:
        return f"No card with id {self.card_id!r}"


class CardSourceError(BraindeckError):
    """Raised when fresh card content cannot be fetched."""
    pass


class StoreError(BraindeckError):
    """Raised when the persistence store fails to read or write."""
    pass
