"""
Leitner Review Engine.

Pure scheduling functions over immutable Card values:
- Level transition (forgot -> 0, know -> saturating +1)
- Next-review date from a fixed level -> interval table
- Due filtering and deck statistics
- Card creation and schedule reset

Level Intervals (days):
0 - New or forgotten, due again the same day
1 - 1 day
2 - 3 days
3 - 7 days
4 - 14 days
5 - 30 days (mastered)

Nothing here performs I/O or keeps state between calls. Every
time-dependent function takes an optional explicit "now" so callers and
tests can pin the clock.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

from .exceptions import PreconditionError

# =============================================================================
# Level Table
# =============================================================================

MIN_LEVEL = 0
MAX_LEVEL = 5

LEITNER_INTERVALS: dict[int, int] = {
    0: 0,  # Failed/New - review today
    1: 1,
    2: 3,
    3: 7,
    4: 14,
    5: 30,  # Mastered
}


class Confidence(str, Enum):
    """Self-rated recall after the answer is revealed."""

    FORGOT = "forgot"
    KNOW = "know"

    @classmethod
    def parse(cls, value: Confidence | str) -> Confidence:
        """Coerce a raw value into a Confidence, failing fast on anything else."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise PreconditionError(
                f"Unknown confidence {value!r}; expected 'forgot' or 'know'"
            ) from None


def _require_level(level: Any) -> int:
    if isinstance(level, bool) or not isinstance(level, int):
        raise PreconditionError(f"Level must be an integer, got {level!r}")
    if not MIN_LEVEL <= level <= MAX_LEVEL:
        raise PreconditionError(
            f"Level must be within [{MIN_LEVEL}, {MAX_LEVEL}], got {level}"
        )
    return level


def _to_local(moment: datetime) -> datetime:
    """Convert an aware datetime to naive local time; naive values pass through."""
    if moment.tzinfo is not None:
        return moment.astimezone().replace(tzinfo=None)
    return moment


def _now(now: datetime | None) -> datetime:
    return _to_local(now) if now is not None else datetime.now()


def interval_days(level: int) -> int:
    """Days between a review at ``level`` and the next one."""
    return LEITNER_INTERVALS[_require_level(level)]


def start_of_day(moment: datetime | date) -> datetime:
    """Truncate a moment to midnight of its local calendar day."""
    if isinstance(moment, datetime):
        return _to_local(moment).replace(hour=0, minute=0, second=0, microsecond=0)
    return datetime.combine(moment, time.min)


# =============================================================================
# Card
# =============================================================================


def _parse_timestamp(value: Any, field_name: str) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise PreconditionError(f"Invalid {field_name}: {value!r}") from None
    else:
        raise PreconditionError(f"Invalid {field_name}: {value!r}")

    # Exports from the browser app are UTC; scheduling works in local time
    return _to_local(parsed)


@dataclass(frozen=True)
class Card:
    """
    A single flashcard with its Leitner scheduling state.

    Cards are immutable: review and reset return new instances, so a
    caller's collection is only changed by substituting the returned card.
    """

    id: str
    question: str
    answer: str
    level: int
    next_review_date: datetime
    created_at: datetime
    last_review_date: datetime | None = None
    review_count: int = 0

    def __post_init__(self) -> None:
        _require_level(self.level)
        if isinstance(self.review_count, bool) or not isinstance(self.review_count, int):
            raise PreconditionError(f"review_count must be an integer, got {self.review_count!r}")
        if self.review_count < 0:
            raise PreconditionError(f"review_count must be non-negative, got {self.review_count}")
        if not isinstance(self.next_review_date, datetime):
            raise PreconditionError("next_review_date must always be set")
        if self.next_review_date != start_of_day(self.next_review_date):
            raise PreconditionError(
                f"next_review_date must be a naive local midnight, got {self.next_review_date!r}"
            )

    @property
    def is_mastered(self) -> bool:
        return self.level == MAX_LEVEL

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON-compatible record shape used on disk."""
        return {
            "id": self.id,
            "question": self.question,
            "answer": self.answer,
            "level": self.level,
            "nextReviewDate": self.next_review_date.isoformat(),
            "lastReviewDate": (
                self.last_review_date.isoformat() if self.last_review_date else None
            ),
            "createdAt": self.created_at.isoformat(),
            "reviewCount": self.review_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Card:
        """
        Create a Card from a serialized record.

        Args:
            data: Record with camelCase keys and ISO-8601 timestamps

        Returns:
            Card instance (next_review_date normalized to start of day)

        Raises:
            PreconditionError: If a field is missing or malformed
        """
        try:
            last_review = data.get("lastReviewDate")
            return cls(
                id=str(data["id"]),
                question=data["question"],
                answer=data["answer"],
                level=data["level"],
                next_review_date=start_of_day(
                    _parse_timestamp(data["nextReviewDate"], "nextReviewDate")
                ),
                created_at=_parse_timestamp(data["createdAt"], "createdAt"),
                last_review_date=(
                    _parse_timestamp(last_review, "lastReviewDate") if last_review else None
                ),
                review_count=data.get("reviewCount", 0),
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise PreconditionError(f"Malformed card record: {e!r}") from e


@dataclass(frozen=True)
class ReviewResult:
    """Outcome of a single review."""

    card: Card
    previous_level: int
    new_level: int
    next_review_date: datetime

    @property
    def promoted(self) -> bool:
        return self.new_level > self.previous_level


@dataclass(frozen=True)
class DeckStats:
    """Derived view over a deck; never stored."""

    total_cards: int
    due_count: int
    mastered_count: int
    average_level: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_cards": self.total_cards,
            "due_count": self.due_count,
            "mastered_count": self.mastered_count,
            "average_level": self.average_level,
        }


# =============================================================================
# Scheduling
# =============================================================================


def compute_next_review_date(level: int, from_date: datetime | None = None) -> datetime:
    """
    Calculate the next review date for a level.

    Args:
        level: Leitner level (0-5)
        from_date: Reference moment (defaults to now)

    Returns:
        Start of the calendar day ``interval_days(level)`` days after from_date
    """
    days = interval_days(level)
    return start_of_day(_now(from_date)) + timedelta(days=days)


def compute_new_level(current_level: int, confidence: Confidence | str) -> int:
    """
    Determine the new level from the user's confidence.

    Forgot: back to level 0, whatever the current level.
    Know: one level up, saturating at the mastered ceiling.
    """
    current_level = _require_level(current_level)
    if Confidence.parse(confidence) is Confidence.FORGOT:
        return MIN_LEVEL
    return min(current_level + 1, MAX_LEVEL)


def review_card(
    card: Card,
    confidence: Confidence | str,
    now: datetime | None = None,
) -> ReviewResult:
    """
    Process a card review.

    The schedule is anchored at the moment of review, not at the date
    the card was due, so early or late reviews shift the anchor.

    Args:
        card: Card being reviewed (left unchanged)
        confidence: "forgot" or "know"
        now: Review moment (defaults to now)

    Returns:
        ReviewResult holding the updated card copy
    """
    moment = _now(now)
    previous_level = card.level
    new_level = compute_new_level(previous_level, confidence)
    next_review_date = compute_next_review_date(new_level, moment)

    updated = replace(
        card,
        level=new_level,
        next_review_date=next_review_date,
        last_review_date=moment,
        review_count=card.review_count + 1,
    )

    return ReviewResult(
        card=updated,
        previous_level=previous_level,
        new_level=new_level,
        next_review_date=next_review_date,
    )


def is_due(card: Card, as_of: datetime | None = None) -> bool:
    """A card is due if its next review date is today or in the past."""
    return card.next_review_date <= start_of_day(_now(as_of))


def select_due_cards(cards: Iterable[Card], as_of: datetime | None = None) -> list[Card]:
    """Filter the cards that are due, preserving their original order."""
    moment = _now(as_of)
    return [card for card in cards if is_due(card, moment)]


def compute_deck_stats(cards: Iterable[Card], as_of: datetime | None = None) -> DeckStats:
    """
    Calculate statistics for a deck.

    average_level is the mean level rounded half-up to one decimal,
    or 0 for an empty deck.
    """
    cards = list(cards)
    total = len(cards)

    if total:
        mean = Decimal(sum(card.level for card in cards)) / Decimal(total)
        average_level = float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))
    else:
        average_level = 0.0

    return DeckStats(
        total_cards=total,
        due_count=len(select_due_cards(cards, as_of)),
        mastered_count=sum(1 for card in cards if card.level == MAX_LEVEL),
        average_level=average_level,
    )


# =============================================================================
# Card Lifecycle
# =============================================================================


def create_card(question: str, answer: str, now: datetime | None = None) -> Card:
    """Create a new card at level 0, due immediately."""
    moment = _now(now)
    return Card(
        id=str(uuid.uuid4()),
        question=question,
        answer=answer,
        level=MIN_LEVEL,
        next_review_date=start_of_day(moment),
        created_at=moment,
        last_review_date=None,
        review_count=0,
    )


def reset_card(card: Card, now: datetime | None = None) -> Card:
    """Restart a card's schedule while keeping its content and identity."""
    return replace(
        card,
        level=MIN_LEVEL,
        next_review_date=start_of_day(_now(now)),
        last_review_date=None,
        review_count=0,
    )


def reset_deck(cards: Iterable[Card], now: datetime | None = None) -> list[Card]:
    """Reset every card against one shared "now" so they land on the same day."""
    moment = _now(now)
    return [reset_card(card, moment) for card in cards]
