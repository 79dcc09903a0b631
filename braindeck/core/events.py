"""
Deck Event Bus.

An explicit observer registry for deck activity. Subscribers receive a
Subscription handle and remove themselves with it; there is no global
listener list. Dispatch is synchronous, in subscription order.
"""

from __future__ import annotations

import itertools
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from loguru import logger


class EventKind(str, Enum):
    """Kinds of deck events."""

    CARD_ADDED = "card_added"
    CARD_REVIEWED = "card_reviewed"
    CARD_DELETED = "card_deleted"
    DECK_RESET = "deck_reset"
    DECK_LOADED = "deck_loaded"
    NOTICE = "notice"  # Toast-style message for the presentation layer


@dataclass(frozen=True)
class DeckEvent:
    """A single published event."""

    kind: EventKind
    payload: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def notice(cls, title: str, body: str, level: str = "info") -> DeckEvent:
        return cls(EventKind.NOTICE, {"title": title, "body": body, "level": level})


Handler = Callable[[DeckEvent], None]


class Subscription:
    """Handle returned by EventBus.subscribe."""

    def __init__(self, bus: EventBus, token: int):
        self._bus = bus
        self._token = token

    @property
    def active(self) -> bool:
        return self._bus._has(self._token)

    def unsubscribe(self) -> None:
        """Stop receiving events. Safe to call more than once."""
        self._bus._remove(self._token)


class EventBus:
    """
    Registry of subscribers with explicit subscribe/unsubscribe.

    A failing handler is logged and skipped; it never prevents delivery
    to the remaining subscribers.
    """

    def __init__(self):
        self._counter = itertools.count(1)
        self._handlers: dict[int, tuple[Handler, frozenset[EventKind] | None]] = {}

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    def subscribe(
        self,
        handler: Handler,
        kinds: Iterable[EventKind] | None = None,
    ) -> Subscription:
        """
        Register a handler.

        Args:
            handler: Callable invoked with each matching DeckEvent
            kinds: Restrict delivery to these kinds (all kinds if None)

        Returns:
            Subscription handle
        """
        token = next(self._counter)
        self._handlers[token] = (handler, frozenset(kinds) if kinds is not None else None)
        return Subscription(self, token)

    def publish(self, event: DeckEvent) -> int:
        """
        Dispatch an event to all matching subscribers.

        Returns:
            Number of handlers that received the event
        """
        delivered = 0
        # Snapshot so handlers may unsubscribe during dispatch
        for token, (handler, kinds) in list(self._handlers.items()):
            if kinds is not None and event.kind not in kinds:
                continue
            if token not in self._handlers:
                continue
            try:
                handler(event)
                delivered += 1
            except Exception as e:
                logger.error(f"Event handler failed for {event.kind.value}: {e}")
        return delivered

    def _has(self, token: int) -> bool:
        return token in self._handlers

    def _remove(self, token: int) -> None:
        self._handlers.pop(token, None)
