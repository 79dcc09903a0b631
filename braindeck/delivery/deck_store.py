"""
SQLite Deck Store for BrainDeck.

Provides portable persistence for:
- The card collection (loaded and saved as a whole)
- A small JSON key-value table (source cache, reminder record)
- JSON export/import of a deck

Database location: ~/.braindeck/deck.db
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger

from braindeck.core import Card, PreconditionError, StoreError


class DeckStore:
    """
    SQLite-backed persistence for a single deck.

    Handles:
    - Whole-collection load/save, preserving card order
    - JSON values keyed by name
    - Export/import in the card wire format
    """

    DEFAULT_DB_PATH = Path.home() / ".braindeck" / "deck.db"

    def __init__(self, db_path: Path | None = None):
        """
        Initialize the deck store.

        Args:
            db_path: Custom database path (defaults to ~/.braindeck/deck.db)
        """
        self.db_path = Path(db_path) if db_path else self.DEFAULT_DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn: sqlite3.Connection | None = None
        self._init_schema()

        logger.debug(f"DeckStore initialized at {self.db_path}")

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            # Reminder loop runs in its own thread; callers serialize writes
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_schema(self) -> None:
        """Initialize database schema."""
        try:
            cursor = self.conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS cards (
                    id TEXT PRIMARY KEY,
                    position INTEGER NOT NULL,
                    question TEXT NOT NULL,
                    answer TEXT NOT NULL,
                    level INTEGER NOT NULL DEFAULT 0,
                    next_review_date TEXT NOT NULL,
                    last_review_date TEXT,
                    created_at TEXT NOT NULL,
                    review_count INTEGER NOT NULL DEFAULT 0
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_cards_position
                ON cards(position)
            """)

            self.conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to initialize {self.db_path}: {e}") from e

    # =========================================================================
    # Card Collection
    # =========================================================================

    def load_cards(self) -> list[Card]:
        """
        Load the whole collection in its stored order.

        Returns:
            List of cards (empty if none saved yet)
        """
        try:
            cursor = self.conn.cursor()
            cursor.execute("SELECT * FROM cards ORDER BY position ASC")
            rows = cursor.fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to load cards: {e}") from e

        cards = []
        for row in rows:
            try:
                cards.append(Card(
                    id=row["id"],
                    question=row["question"],
                    answer=row["answer"],
                    level=row["level"],
                    next_review_date=datetime.fromisoformat(row["next_review_date"]),
                    last_review_date=(
                        datetime.fromisoformat(row["last_review_date"])
                        if row["last_review_date"] else None
                    ),
                    created_at=datetime.fromisoformat(row["created_at"]),
                    review_count=row["review_count"],
                ))
            except (PreconditionError, ValueError) as e:
                logger.warning(
                    f"Skipping invalid card {row['id']}: {e} (it will be dropped on the next save)"
                )

        logger.debug(f"Loaded {len(cards)} cards from {self.db_path.name}")
        return cards

    def save_cards(self, cards: Iterable[Card]) -> int:
        """
        Replace the stored collection with ``cards``.

        Runs in a single transaction, so a failed save leaves the previous
        collection intact.

        Returns:
            Number of cards saved
        """
        rows = [
            (
                card.id,
                position,
                card.question,
                card.answer,
                card.level,
                card.next_review_date.isoformat(),
                card.last_review_date.isoformat() if card.last_review_date else None,
                card.created_at.isoformat(),
                card.review_count,
            )
            for position, card in enumerate(cards)
        ]

        try:
            with self.conn:
                self.conn.execute("DELETE FROM cards")
                self.conn.executemany(
                    """
                    INSERT INTO cards (
                        id, position, question, answer, level,
                        next_review_date, last_review_date, created_at, review_count
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                    rows,
                )
        except sqlite3.Error as e:
            logger.error(f"Failed to persist cards: {e}")
            raise StoreError(f"Failed to save cards: {e}") from e

        return len(rows)

    def count_cards(self) -> int:
        cursor = self.conn.cursor()
        cursor.execute("SELECT COUNT(*) AS cnt FROM cards")
        return cursor.fetchone()["cnt"]

    # =========================================================================
    # Key-Value Operations
    # =========================================================================

    def get_value(self, key: str, default: Any = None) -> Any:
        """Get a JSON value by key, or ``default`` if absent or unreadable."""
        try:
            cursor = self.conn.cursor()
            cursor.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
            row = cursor.fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read {key!r}: {e}") from e

        if row is None:
            return default

        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            logger.warning(f"Discarding unreadable value for {key!r}")
            self.delete_value(key)
            return default

    def set_value(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value under ``key``."""
        try:
            with self.conn:
                self.conn.execute(
                    """
                    INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                """,
                    (key, json.dumps(value), datetime.now().isoformat()),
                )
        except sqlite3.Error as e:
            raise StoreError(f"Failed to write {key!r}: {e}") from e

    def delete_value(self, key: str) -> None:
        try:
            with self.conn:
                self.conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        except sqlite3.Error as e:
            raise StoreError(f"Failed to delete {key!r}: {e}") from e

    # =========================================================================
    # Export / Import
    # =========================================================================

    @staticmethod
    def export_json(path: Path, cards: Iterable[Card]) -> int:
        """
        Write cards to a JSON file.

        Args:
            path: Destination file
            cards: Cards to export

        Returns:
            Number of cards written
        """
        records = [card.to_dict() for card in cards]
        payload = {"exported_at": datetime.now().isoformat(), "cards": records}

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise StoreError(f"Failed to export to {path}: {e}") from e

        logger.info(f"Exported {len(records)} cards to {path}")
        return len(records)

    @staticmethod
    def import_json(path: Path) -> list[Card]:
        """
        Read cards from a JSON file.

        Accepts either a bare list of card records or ``{"cards": [...]}``.
        Invalid records are skipped with a warning.
        """
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Failed to load {path}: {e}") from e

        if isinstance(data, list):
            records = data
        elif isinstance(data, dict):
            records = data.get("cards", [])
        else:
            raise StoreError(f"Unexpected JSON layout in {path}")

        cards = []
        seen: set[str] = set()

        for record in records:
            try:
                card = Card.from_dict(record)
            except PreconditionError as e:
                logger.warning(f"Invalid card in {path}: {e}")
                continue
            if card.id in seen:
                logger.warning(f"Duplicate card id {card.id} in {path}; keeping the first")
                continue
            seen.add(card.id)
            cards.append(card)

        logger.info(f"Imported {len(cards)} cards from {path.name}")
        return cards

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
