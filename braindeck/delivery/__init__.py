"""
BrainDeck delivery layer.

Collaborators around the Leitner core:
- DeckStore: SQLite persistence and JSON export/import
- OpenTriviaSource: Fresh card content with offline cache
- DeckService: Collection owner and review workflow
- ReminderService: Daily reminder with durable next-fire record
- cli: Rich terminal interface
"""

from .card_source import FetchResult, OpenTriviaSource, seed_cards
from .deck_service import DeckService, RefreshResult
from .deck_store import DeckStore
from .reminders import (
    EventBusNotifier,
    Notifier,
    ReminderRecord,
    ReminderService,
    compute_next_fire,
)

__all__ = [
    # Persistence
    "DeckStore",
    # Card source
    "OpenTriviaSource",
    "FetchResult",
    "seed_cards",
    # Deck workflow
    "DeckService",
    "RefreshResult",
    # Reminders
    "ReminderService",
    "ReminderRecord",
    "EventBusNotifier",
    "Notifier",
    "compute_next_fire",
]
