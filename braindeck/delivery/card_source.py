"""
Open Trivia card source for BrainDeck.

Supplies fresh card content independent of scheduling:
- Fetches multiple-choice questions from the Open Trivia Database
- Caches fetched cards in the deck store for offline use
- Provides a built-in seed deck as the last-resort fallback

Hardening:
- Configurable timeout with retry logic on 5xx and connection errors
- Response validated with pydantic before any card is built
- Expired or unreadable cache entries are discarded
"""

from __future__ import annotations

import html
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

import requests
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from braindeck.core import Card, CardSourceError, PreconditionError, create_card
from config import get_settings

if TYPE_CHECKING:
    from .deck_store import DeckStore

CACHE_KEY = "source_cache"
RETRY_STATUS_CODES = [500, 502, 503, 504]

SAMPLE_CARDS: list[tuple[str, str]] = [
    (
        "What is the time complexity of binary search?",
        "O(log n) - the search space is halved on every comparison.",
    ),
    (
        "What is a closure?",
        "A function that keeps access to variables from its enclosing scope "
        "after that scope has returned.",
    ),
    (
        "What does REST stand for?",
        "Representational State Transfer - an architectural style for networked applications.",
    ),
    (
        "What is the difference between a list and a tuple in Python?",
        "Lists are mutable; tuples are immutable and can be used as dict keys.",
    ),
    (
        "What does a Python generator do?",
        "Produces values lazily with yield, suspending its state between calls.",
    ),
    (
        "Explain SQL JOIN types",
        "INNER: matching rows only; LEFT: all left + matches; RIGHT: all right + matches; "
        "FULL OUTER: all rows from both tables.",
    ),
    (
        "What is Big O notation?",
        "Notation describing how an algorithm's time or space grows with input size.",
    ),
    (
        "What is the Leitner system?",
        "A spaced-repetition method that moves cards between boxes with growing review "
        "intervals; a forgotten card goes back to the first box.",
    ),
]


# =============================================================================
# Response Models
# =============================================================================


class TriviaQuestion(BaseModel):
    """A single Open Trivia result."""

    model_config = ConfigDict(extra="ignore")

    question: str
    correct_answer: str
    incorrect_answers: list[str] = Field(default_factory=list)
    category: str | None = None
    difficulty: str | None = None

    def to_card(self, now: datetime | None = None) -> Card:
        """Convert to a new card, decoding HTML entities."""
        options = "\n".join(f"- {html.unescape(a)}" for a in self.incorrect_answers)
        answer = f"Correct: {html.unescape(self.correct_answer)}\n\nOther options:\n{options}"
        return create_card(html.unescape(self.question), answer, now)


class TriviaResponse(BaseModel):
    """Envelope returned by api.php."""

    model_config = ConfigDict(extra="ignore")

    response_code: int
    results: list[TriviaQuestion] = Field(default_factory=list)


@dataclass
class FetchResult:
    """Cards from a fetch plus where they came from."""

    cards: list[Card] = field(default_factory=list)
    is_offline: bool = False
    from_cache: bool = False


def seed_cards(now: datetime | None = None) -> list[Card]:
    """Build the built-in sample deck."""
    return [create_card(question, answer, now) for question, answer in SAMPLE_CARDS]


# =============================================================================
# Open Trivia Source
# =============================================================================


class OpenTriviaSource:
    """
    Card provider backed by https://opentdb.com.

    Fetched cards are cached in the deck store's key-value table so a
    later offline run can still hand out fresh content.
    """

    def __init__(
        self,
        store: DeckStore,
        base_url: str | None = None,
        amount: int | None = None,
        timeout: float | None = None,
        retries: int | None = None,
        cache_hours: int | None = None,
    ) -> None:
        """
        Initialize the trivia source with retry logic.

        Args:
            store: DeckStore used for the offline cache
            base_url: API endpoint (default from config)
            amount: Questions per fetch (default from config)
            timeout: Request timeout in seconds (default from config)
            retries: Retry attempts for failed requests (default from config)
            cache_hours: Cache lifetime in hours (default from config)
        """
        settings = get_settings()
        self.store = store
        self.base_url = base_url or settings.trivia_api_url
        self.amount = amount or settings.trivia_fetch_amount
        self.timeout = timeout or settings.trivia_timeout_seconds
        self.cache_hours = cache_hours if cache_hours is not None else settings.source_cache_hours
        retries = retries if retries is not None else settings.trivia_retries

        self.session = requests.Session()
        retry_strategy = Retry(
            total=retries,
            backoff_factor=0.5,
            status_forcelist=RETRY_STATUS_CODES,
            allowed_methods=["GET"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        logger.debug(
            "Initialized trivia source: url={}, amount={}, timeout={}s, retries={}",
            self.base_url,
            self.amount,
            self.timeout,
            retries,
        )

    def fetch_remote(self, amount: int | None = None) -> list[Card]:
        """
        Fetch questions from the API and convert them to cards.

        Raises:
            CardSourceError: On HTTP failure, bad payload, or non-zero response_code
        """
        params = {"amount": amount or self.amount, "type": "multiple"}
        logger.debug("Trivia request: params={}", params)

        try:
            response = self.session.get(self.base_url, params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = TriviaResponse.model_validate(response.json())
        except requests.RequestException as e:
            raise CardSourceError(f"Trivia request failed: {e}") from e
        except (ValueError, ValidationError) as e:
            raise CardSourceError(f"Unexpected trivia payload: {e}") from e

        if payload.response_code != 0:
            raise CardSourceError(f"Trivia API returned response_code={payload.response_code}")

        now = datetime.now()
        return [item.to_card(now) for item in payload.results]

    def fetch(self, amount: int | None = None) -> FetchResult:
        """
        Fetch cards with offline fallback.

        Order: remote API (and refresh cache) -> valid cache -> nothing.
        """
        try:
            logger.info("Fetching flashcards from trivia API...")
            cards = self.fetch_remote(amount)
            self.cache_cards(cards)
            return FetchResult(cards=cards, is_offline=False, from_cache=False)
        except CardSourceError as e:
            offline = isinstance(e.__cause__, (requests.ConnectionError, requests.Timeout))
            logger.warning(f"Failed to fetch from trivia API, checking cache... ({e})")

        cached = self.get_cached()
        if cached:
            logger.info("Using cached flashcards")
            return FetchResult(cards=cached, is_offline=offline, from_cache=True)

        logger.warning("No flashcards available from source or cache")
        return FetchResult(cards=[], is_offline=True, from_cache=False)

    # =========================================================================
    # Cache
    # =========================================================================

    def cache_cards(self, cards: list[Card], now: datetime | None = None) -> None:
        expires_at = (now or datetime.now()) + timedelta(hours=self.cache_hours)
        self.store.set_value(
            CACHE_KEY,
            {
                "expires_at": expires_at.isoformat(),
                "cards": [card.to_dict() for card in cards],
            },
        )

    def get_cached(self, now: datetime | None = None) -> list[Card] | None:
        """Return cached cards, or None when missing, expired, or unreadable."""
        entry = self.store.get_value(CACHE_KEY)
        if not entry:
            return None

        try:
            expires_at = datetime.fromisoformat(entry["expires_at"])
            if (now or datetime.now()) >= expires_at:
                logger.debug("Trivia cache expired")
                self.clear_cache()
                return None
            return [Card.from_dict(record) for record in entry["cards"]]
        except (KeyError, TypeError, ValueError, PreconditionError) as e:
            logger.warning(f"Discarding unreadable trivia cache: {e}")
            self.clear_cache()
            return None

    def clear_cache(self) -> None:
        self.store.delete_value(CACHE_KEY)
        logger.debug("Flashcard cache cleared")

    def close(self) -> None:
        self.session.close()
