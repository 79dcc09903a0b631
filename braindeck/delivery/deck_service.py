"""
Deck Service: the calling layer around the Leitner core.

Owns the in-memory card collection and keeps it in step with the store:
- Looks cards up by id and substitutes reviewed/reset copies
- Serializes read-modify-write cycles behind a lock
- Falls back from the card source to cache, stored, or seed content
- Publishes deck events for the presentation layer
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from loguru import logger

from braindeck.core import (
    BraindeckError,
    Card,
    CardNotFoundError,
    Confidence,
    DeckEvent,
    DeckStats,
    EventBus,
    EventKind,
    PreconditionError,
    ReviewResult,
    compute_deck_stats,
    create_card,
    reset_deck,
    review_card,
    select_due_cards,
)

from .card_source import OpenTriviaSource, seed_cards
from .deck_store import DeckStore


@dataclass
class RefreshResult:
    """Outcome of refresh_from_source."""

    added: int = 0
    from_cache: bool = False
    is_offline: bool = False
    message: str | None = None


class DeckService:
    """
    Manages a deck on behalf of the presentation layer.

    Usage:
        service = DeckService(DeckStore(path), source=OpenTriviaSource(store))
        service.load()
        result = service.review(card_id, "know")
    """

    def __init__(
        self,
        store: DeckStore,
        source: OpenTriviaSource | None = None,
        bus: EventBus | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize the service.

        Args:
            store: DeckStore holding the collection
            source: Card source for fresh content (seed deck only if None)
            bus: EventBus for deck events (private bus if None)
            clock: Source of "now"; override for tests
        """
        self.store = store
        self.source = source
        self.bus = bus or EventBus()
        self.clock = clock

        self._cards: list[Card] = []
        self._lock = threading.RLock()

    # =========================================================================
    # Views
    # =========================================================================

    @property
    def cards(self) -> list[Card]:
        with self._lock:
            return list(self._cards)

    @property
    def due_cards(self) -> list[Card]:
        return select_due_cards(self.cards, self.clock())

    @property
    def stats(self) -> DeckStats:
        return compute_deck_stats(self.cards, self.clock())

    def get_card(self, card_id: str) -> Card:
        with self._lock:
            return self._cards[self._index_of(card_id)]

    def _index_of(self, card_id: str) -> int:
        for index, card in enumerate(self._cards):
            if card.id == card_id:
                return index
        raise CardNotFoundError(card_id)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def load(self) -> int:
        """
        Load the collection from the store.

        Returns:
            Number of cards loaded
        """
        with self._lock:
            self._cards = self.store.load_cards()
            count = len(self._cards)

        logger.info(f"Deck loaded: {count} cards")
        self.bus.publish(DeckEvent(EventKind.DECK_LOADED, {"count": count}))
        return count

    def _persist(self, cards: list[Card]) -> None:
        # Store before memory: a failed save leaves both unchanged
        self.store.save_cards(cards)
        self._cards = cards

    # =========================================================================
    # Card Operations
    # =========================================================================

    def add_card(self, question: str, answer: str) -> Card:
        """
        Add a new card, due immediately.

        Raises:
            PreconditionError: If question or answer is blank
        """
        question, answer = question.strip(), answer.strip()
        if not question or not answer:
            raise PreconditionError("Question and answer must both be non-empty")

        card = create_card(question, answer, self.clock())
        with self._lock:
            self._persist([*self._cards, card])

        logger.debug(f"Added card {card.id}")
        self.bus.publish(DeckEvent(EventKind.CARD_ADDED, {"card_id": card.id}))
        return card

    def review(self, card_id: str, confidence: Confidence | str) -> ReviewResult:
        """
        Review a card and substitute the updated copy.

        Args:
            card_id: Id of a card in the collection
            confidence: "forgot" or "know"

        Returns:
            ReviewResult from the Leitner core

        Raises:
            CardNotFoundError: If the id is not in the collection
        """
        with self._lock:
            index = self._index_of(card_id)
            result = review_card(self._cards[index], confidence, self.clock())
            updated = list(self._cards)
            updated[index] = result.card
            self._persist(updated)

        logger.debug(
            f"Reviewed {card_id}: level {result.previous_level} -> {result.new_level}, "
            f"next_review={result.next_review_date.date()}"
        )
        self.bus.publish(DeckEvent(
            EventKind.CARD_REVIEWED,
            {
                "card_id": card_id,
                "previous_level": result.previous_level,
                "new_level": result.new_level,
                "next_review_date": result.next_review_date.isoformat(),
            },
        ))
        return result

    def delete_card(self, card_id: str) -> Card:
        """Remove a card from the collection and return it."""
        with self._lock:
            index = self._index_of(card_id)
            removed = self._cards[index]
            self._persist(self._cards[:index] + self._cards[index + 1:])

        self.bus.publish(DeckEvent(EventKind.CARD_DELETED, {"card_id": card_id}))
        return removed

    def reset_deck(self) -> int:
        """
        Restart every card's schedule, keeping content.

        Returns:
            Number of cards reset
        """
        with self._lock:
            reset = reset_deck(self._cards, self.clock())
            self._persist(reset)

        logger.info(f"Deck reset: {len(reset)} cards back to level 0")
        self.bus.publish(DeckEvent(EventKind.DECK_RESET, {"count": len(reset)}))
        return len(reset)

    # =========================================================================
    # Fresh Content
    # =========================================================================

    def refresh_from_source(self) -> RefreshResult:
        """
        Populate an empty deck from the card source.

        An existing collection is never overwritten. When the source
        yields nothing while online, or raises, the seed deck is used.
        """
        with self._lock:
            if self._cards:
                logger.debug("Deck already has cards; skipping source refresh")
                return RefreshResult(message="Deck already populated")

            if self.source is None:
                return self._fill_with_seed("No card source configured. Using demo data.")

            try:
                fetched = self.source.fetch()
            except BraindeckError as e:
                logger.error(f"Failed to update cards from source: {e}")
                return self._fill_with_seed("Failed to fetch flashcards. Using demo data.")

            if fetched.cards:
                self._persist(list(fetched.cards))
                message = (
                    "Using cached flashcards - refresh when online for new cards"
                    if fetched.from_cache else None
                )
                result = RefreshResult(
                    added=len(fetched.cards),
                    from_cache=fetched.from_cache,
                    is_offline=fetched.is_offline,
                    message=message,
                )
            elif not fetched.is_offline:
                return self._fill_with_seed("Failed to fetch flashcards. Using demo data.")
            else:
                result = RefreshResult(is_offline=True, message="Offline and no cached flashcards")

        if result.message:
            self.bus.publish(DeckEvent.notice("Flashcards", result.message, "warning"))
        return result

    def _fill_with_seed(self, message: str) -> RefreshResult:
        cards = seed_cards(self.clock())
        self._persist(cards)
        logger.warning(message)
        self.bus.publish(DeckEvent.notice("Flashcards", message, "warning"))
        return RefreshResult(added=len(cards), message=message)

    def clear_cache(self) -> None:
        if self.source is not None:
            self.source.clear_cache()

    # =========================================================================
    # Export / Import
    # =========================================================================

    def export_deck(self, path: Path) -> int:
        return self.store.export_json(path, self.cards)

    def import_deck(self, path: Path, replace: bool = False) -> int:
        """
        Import cards from a JSON file.

        Args:
            path: File in the card wire format
            replace: Replace the collection instead of appending

        Returns:
            Number of cards added
        """
        imported = self.store.import_json(path)

        with self._lock:
            if replace:
                merged = imported
            else:
                known = {card.id for card in self._cards}
                fresh = [card for card in imported if card.id not in known]
                skipped = len(imported) - len(fresh)
                if skipped:
                    logger.info(f"Skipped {skipped} cards already in the deck")
                merged = [*self._cards, *fresh]
            added = len(merged) - (0 if replace else len(self._cards))
            self._persist(merged)

        self.bus.publish(DeckEvent(EventKind.DECK_LOADED, {"count": len(merged)}))
        return added
