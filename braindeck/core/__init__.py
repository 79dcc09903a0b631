"""
BrainDeck scheduler core.

Pure Leitner scheduling over immutable cards, plus the exception
hierarchy and the deck event bus shared with the delivery layer.
"""

from .events import DeckEvent, EventBus, EventKind, Subscription
from .exceptions import (
    BraindeckError,
    CardNotFoundError,
    CardSourceError,
    PreconditionError,
    StoreError,
)
from .leitner import (
    LEITNER_INTERVALS,
    MAX_LEVEL,
    MIN_LEVEL,
    Card,
    Confidence,
    DeckStats,
    ReviewResult,
    compute_deck_stats,
    compute_new_level,
    compute_next_review_date,
    create_card,
    interval_days,
    is_due,
    reset_card,
    reset_deck,
    review_card,
    select_due_cards,
    start_of_day,
)

__all__ = [
    # Data
    "Card",
    "Confidence",
    "DeckStats",
    "ReviewResult",
    "LEITNER_INTERVALS",
    "MIN_LEVEL",
    "MAX_LEVEL",
    # Scheduling
    "compute_new_level",
    "compute_next_review_date",
    "interval_days",
    "start_of_day",
    "review_card",
    "is_due",
    "select_due_cards",
    "compute_deck_stats",
    # Lifecycle
    "create_card",
    "reset_card",
    "reset_deck",
    # Events
    "DeckEvent",
    "EventBus",
    "EventKind",
    "Subscription",
    # Errors
    "BraindeckError",
    "PreconditionError",
    "CardNotFoundError",
    "CardSourceError",
    "StoreError",
]
