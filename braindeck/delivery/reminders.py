"""
Daily study reminders for BrainDeck.

The reminder schedule lives in a durable record (hour, minute and the
next fire time) in the deck store, so any loop can pick it up from a
cold start:
- init() recovers the record, fires a missed reminder, starts the loop
- tick() checks the record once and fires when due
- shutdown() stops the loop

Runs in a background thread with a configurable poll interval.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Protocol

from loguru import logger

from braindeck.core import BraindeckError, DeckEvent, EventBus, PreconditionError

from .deck_store import DeckStore

REMINDER_KEY = "reminder"
REMINDER_TITLE = "Time to study!"
REMINDER_BODY = "Your flashcards are waiting. Keep your streak alive!"


@dataclass(frozen=True)
class ReminderRecord:
    """Durable reminder settings and the next time to fire."""

    hour: int
    minute: int
    next_fire_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "hour": self.hour,
            "minute": self.minute,
            "next_fire_at": self.next_fire_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReminderRecord:
        return cls(
            hour=int(data["hour"]),
            minute=int(data["minute"]),
            next_fire_at=datetime.fromisoformat(data["next_fire_at"]),
        )


def compute_next_fire(hour: int, minute: int, now: datetime) -> datetime:
    """
    Next occurrence of hour:minute strictly after ``now``.

    Raises:
        PreconditionError: If hour or minute is out of range
    """
    if not 0 <= hour <= 23 or not 0 <= minute <= 59:
        raise PreconditionError(f"Invalid reminder time {hour:02d}:{minute:02d}")

    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


class Notifier(Protocol):
    def notify(self, title: str, body: str) -> None: ...


class EventBusNotifier:
    """Delivers reminders as NOTICE events on a bus."""

    def __init__(self, bus: EventBus):
        self.bus = bus

    def notify(self, title: str, body: str) -> None:
        self.bus.publish(DeckEvent.notice(title, body, "info"))


class ReminderService:
    """
    Daily reminder with an explicit lifecycle.

    Usage:
        reminders = ReminderService(store, EventBusNotifier(bus))
        reminders.schedule_daily(9, 0)
        reminders.init()
        # ... app runs ...
        reminders.shutdown()
    """

    def __init__(
        self,
        store: DeckStore,
        notifier: Notifier,
        poll_seconds: float = 30.0,
        clock: Callable[[], datetime] = datetime.now,
        due_counter: Callable[[], int] | None = None,
    ):
        """
        Initialize the reminder service.

        Args:
            store: DeckStore holding the durable record
            notifier: Where reminders are delivered
            poll_seconds: Interval between checks in the background loop
            clock: Source of "now"; override for tests
            due_counter: Optional callable returning the number of due cards
        """
        self.store = store
        self.notifier = notifier
        self.poll_seconds = poll_seconds
        self.clock = clock
        self.due_counter = due_counter

        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def init(self) -> None:
        """Recover the persisted schedule and start the background loop."""
        if self.is_running:
            logger.warning("Reminder loop already running")
            return

        # Catch up on a reminder missed while nothing was running
        self.tick()

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop,
            name="braindeck-reminders",
            daemon=True,
        )
        self._thread.start()
        logger.info("Reminder loop started (poll: {}s)", self.poll_seconds)

    def shutdown(self) -> None:
        """Stop the background loop gracefully."""
        if not self.is_running:
            return

        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5.0)
        self._thread = None
        logger.info("Reminder loop stopped")

    def _loop(self) -> None:
        while not self._stop_event.wait(self.poll_seconds):
            try:
                self.tick()
            except BraindeckError as e:
                logger.error(f"Reminder check failed: {e}")
            except Exception as e:
                # Keep the loop alive; the next poll retries
                logger.exception(f"Unexpected error in reminder loop: {e}")

    # =========================================================================
    # Schedule
    # =========================================================================

    def schedule_daily(self, hour: int, minute: int = 0) -> ReminderRecord:
        """Persist a daily reminder at hour:minute (local time)."""
        record = ReminderRecord(hour, minute, compute_next_fire(hour, minute, self.clock()))
        with self._lock:
            self.store.set_value(REMINDER_KEY, record.to_dict())

        logger.info(f"Daily reminder set for {hour:02d}:{minute:02d}, next at {record.next_fire_at}")
        return record

    def cancel(self) -> None:
        with self._lock:
            self.store.delete_value(REMINDER_KEY)
        logger.info("Daily reminder cancelled")

    def is_enabled(self) -> bool:
        return self.load_record() is not None

    def get_settings(self) -> tuple[int, int] | None:
        record = self.load_record()
        return (record.hour, record.minute) if record else None

    def load_record(self) -> ReminderRecord | None:
        data = self.store.get_value(REMINDER_KEY)
        if not data:
            return None
        try:
            return ReminderRecord.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable reminder record: {e}")
            return None

    # =========================================================================
    # Firing
    # =========================================================================

    def tick(self) -> bool:
        """
        Fire the reminder if its time has come, then reschedule.

        Returns:
            True if a reminder was delivered
        """
        with self._lock:
            record = self.load_record()
            if record is None:
                return False

            now = self.clock()
            if now < record.next_fire_at:
                return False

            self._fire()

            next_record = ReminderRecord(
                record.hour,
                record.minute,
                compute_next_fire(record.hour, record.minute, now),
            )
            self.store.set_value(REMINDER_KEY, next_record.to_dict())

        logger.debug(f"Reminder fired; next at {next_record.next_fire_at}")
        return True

    def _fire(self) -> None:
        body = REMINDER_BODY
        if self.due_counter is not None:
            try:
                due = self.due_counter()
            except Exception as e:
                logger.warning(f"Could not count due cards for reminder: {e}")
                due = 0
            if due:
                body = f"{due} card{'s' if due != 1 else ''} due. {REMINDER_BODY}"

        try:
            self.notifier.notify(REMINDER_TITLE, body)
        except Exception as e:
            # Delivery failures must not stop the schedule from advancing
            logger.error(f"Failed to deliver reminder: {e}")
