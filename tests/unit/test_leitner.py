"""
Unit tests for the Leitner review engine.

Tests:
- Level transitions (saturation, forgot-resets)
- Interval table and next-review date arithmetic
- Due checks, due filtering and deck statistics
- Card creation, review, and reset lifecycle
"""

from datetime import datetime, timedelta, timezone

import pytest

from braindeck.core import (
    LEITNER_INTERVALS,
    Card,
    Confidence,
    PreconditionError,
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


class TestLevelTransition:
    """Tests for compute_new_level."""

    @pytest.mark.parametrize("level", range(6))
    def test_know_is_saturating_increment(self, level):
        assert compute_new_level(level, "know") == min(level + 1, 5)

    def test_know_at_ceiling_stays_mastered(self):
        assert compute_new_level(5, Confidence.KNOW) == 5

    @pytest.mark.parametrize("level", range(6))
    def test_forgot_resets_to_zero(self, level):
        assert compute_new_level(level, "forgot") == 0

    @pytest.mark.parametrize("level", [-1, 6, 2.0, True, None])
    def test_invalid_level_fails_fast(self, level):
        with pytest.raises(PreconditionError):
            compute_new_level(level, "know")

    @pytest.mark.parametrize("confidence", ["maybe", "KNOW", "", None, 1])
    def test_unknown_confidence_fails_fast(self, confidence):
        with pytest.raises(PreconditionError):
            compute_new_level(2, confidence)


class TestIntervals:
    """Tests for the level -> interval table and date arithmetic."""

    def test_interval_table(self):
        assert [interval_days(level) for level in range(6)] == [0, 1, 3, 7, 14, 30]

    def test_intervals_non_decreasing(self):
        values = [LEITNER_INTERVALS[level] for level in range(6)]
        assert values == sorted(values)

    def test_out_of_range_level_rejected(self):
        with pytest.raises(PreconditionError):
            interval_days(6)

    @pytest.mark.parametrize("hour,minute", [(0, 0), (9, 15), (23, 59)])
    def test_next_review_ignores_time_of_day(self, hour, minute):
        moment = datetime(2024, 3, 15, hour, minute)
        assert compute_next_review_date(3, moment) == datetime(2024, 3, 22)

    def test_level_zero_is_same_day_midnight(self, now):
        assert compute_next_review_date(0, now) == datetime(2024, 3, 15)

    def test_crosses_month_boundary(self):
        assert compute_next_review_date(5, datetime(2024, 1, 25, 10)) == datetime(2024, 2, 24)

    def test_deterministic(self, now):
        assert compute_next_review_date(4, now) == compute_next_review_date(4, now)

    def test_start_of_day_truncates(self):
        assert start_of_day(datetime(2024, 3, 15, 23, 59, 59, 999)) == datetime(2024, 3, 15)


class TestReviewCard:
    """Tests for review_card."""

    def test_updates_schedule_fields(self, make_card, now):
        card = make_card(level=2, review_count=4)

        result = review_card(card, "know", now)

        assert result.previous_level == 2
        assert result.new_level == 3
        assert result.next_review_date == datetime(2024, 3, 22)
        assert result.card.level == 3
        assert result.card.next_review_date == result.next_review_date
        assert result.card.last_review_date == now
        assert result.card.review_count == 5
        assert result.promoted

    def test_carries_identity_and_content(self, make_card, now):
        card = make_card(level=1)

        updated = review_card(card, "forgot", now).card

        assert updated.id == card.id
        assert updated.question == card.question
        assert updated.answer == card.answer
        assert updated.created_at == card.created_at

    def test_input_card_left_unchanged(self, make_card, now):
        card = make_card(level=3, review_count=2)
        snapshot = card.to_dict()

        result = review_card(card, "know", now)

        assert result.card is not card
        assert card.to_dict() == snapshot

    def test_anchors_on_review_moment_not_due_date(self, make_card):
        # Due on the 10th, reviewed late on the 15th
        card = make_card(level=1, next_review_date=datetime(2024, 3, 10))

        result = review_card(card, "know", datetime(2024, 3, 15, 20))

        assert result.next_review_date == datetime(2024, 3, 18)

    def test_round_trip_scenario(self, now):
        card = create_card("Q", "A", now)
        assert card.level == 0
        assert is_due(card, now)

        for expected_level, expected_interval in [(1, 1), (2, 3), (3, 7), (4, 14)]:
            review_time = card.next_review_date + timedelta(hours=9)
            result = review_card(card, "know", review_time)
            card = result.card

            assert card.level == expected_level
            assert result.next_review_date - start_of_day(review_time) == timedelta(
                days=expected_interval
            )

        assert card.review_count == 4

        review_time = card.next_review_date + timedelta(hours=9)
        result = review_card(card, "forgot", review_time)

        assert result.card.level == 0
        assert result.next_review_date == start_of_day(review_time)
        assert result.card.review_count == 5


class TestDue:
    """Tests for is_due and select_due_cards."""

    def test_due_all_day_once_due(self, make_card):
        card = make_card(next_review_date=datetime(2024, 3, 15))

        assert is_due(card, datetime(2024, 3, 15, 0, 0))
        assert is_due(card, datetime(2024, 3, 15, 23, 59, 59))

    def test_not_due_before_its_day(self, make_card):
        card = make_card(next_review_date=datetime(2024, 3, 16))

        assert not is_due(card, datetime(2024, 3, 15, 23, 59, 59))
        assert is_due(card, datetime(2024, 3, 16, 0, 0, 1))

    def test_overdue_is_due(self, make_card, now):
        assert is_due(make_card(next_review_date=datetime(2024, 1, 1)), now)

    def test_select_preserves_order(self, make_card, now):
        a = make_card(level=4, next_review_date=datetime(2024, 3, 1))
        b = make_card(level=0, next_review_date=datetime(2024, 4, 1))
        c = make_card(level=1, next_review_date=datetime(2024, 3, 15))

        assert select_due_cards([a, b, c], now) == [a, c]

    def test_select_empty(self, now):
        assert select_due_cards([], now) == []


class TestDeckStats:
    """Tests for compute_deck_stats."""

    def test_empty_deck(self, now):
        stats = compute_deck_stats([], now)

        assert stats.to_dict() == {
            "total_cards": 0,
            "due_count": 0,
            "mastered_count": 0,
            "average_level": 0,
        }

    def test_average_exact_half(self, make_card, now):
        cards = [make_card(level=1), make_card(level=2)]
        assert compute_deck_stats(cards, now).average_level == 1.5

    def test_average_rounded_to_one_decimal(self, make_card, now):
        cards = [make_card(level=1), make_card(level=1), make_card(level=2)]
        assert compute_deck_stats(cards, now).average_level == 1.3

    def test_average_rounds_half_up(self, make_card, now):
        # 1/4 = 0.25 -> 0.3 (banker's rounding would give 0.2)
        cards = [make_card(level=0), make_card(level=0), make_card(level=0), make_card(level=1)]
        assert compute_deck_stats(cards, now).average_level == 0.3

    def test_counts(self, make_card, now):
        cards = [
            make_card(level=5, next_review_date=datetime(2024, 4, 10)),
            make_card(level=5, next_review_date=datetime(2024, 3, 15)),
            make_card(level=2, next_review_date=datetime(2024, 3, 20)),
            make_card(level=0),
        ]

        stats = compute_deck_stats(cards, now)

        assert stats.total_cards == 4
        assert stats.due_count == 2
        assert stats.mastered_count == 2
        assert stats.average_level == 3.0


class TestCardLifecycle:
    """Tests for create_card, reset_card and Card validation."""

    def test_create_card_is_due_immediately(self, now):
        card = create_card("What is 2+2?", "4", now)

        assert card.level == 0
        assert card.next_review_date == datetime(2024, 3, 15)
        assert card.last_review_date is None
        assert card.created_at == now
        assert card.review_count == 0
        assert is_due(card, now)

    def test_create_card_ids_unique(self, now):
        assert create_card("Q", "A", now).id != create_card("Q", "A", now).id

    def test_reset_card(self, make_card, now):
        card = make_card(
            level=4,
            next_review_date=datetime(2024, 3, 29),
            review_count=7,
            last_review_date=datetime(2024, 3, 15, 8),
        )

        reset = reset_card(card, now)

        assert reset.level == 0
        assert reset.next_review_date == datetime(2024, 3, 15)
        assert reset.last_review_date is None
        assert reset.review_count == 0
        assert (reset.id, reset.question, reset.answer, reset.created_at) == (
            card.id, card.question, card.answer, card.created_at
        )

    def test_reset_deck_shares_one_day(self, make_card, now):
        cards = [make_card(level=level) for level in range(6)]

        reset = reset_deck(cards, now)

        assert {card.next_review_date for card in reset} == {datetime(2024, 3, 15)}
        assert [card.id for card in reset] == [card.id for card in cards]

    @pytest.mark.parametrize("level", [-1, 6])
    def test_card_rejects_out_of_range_level(self, make_card, level):
        with pytest.raises(PreconditionError):
            make_card(level=level)

    def test_card_rejects_negative_review_count(self, make_card):
        with pytest.raises(PreconditionError):
            make_card(review_count=-1)


class TestCardSerialization:
    """Tests for Card.to_dict / Card.from_dict."""

    def test_round_trip(self, make_card):
        card = make_card(level=3, last_review_date=datetime(2024, 3, 14, 7, 5), review_count=3)
        assert Card.from_dict(card.to_dict()) == card

    def test_record_shape(self, make_card):
        record = make_card().to_dict()
        assert set(record) == {
            "id", "question", "answer", "level",
            "nextReviewDate", "lastReviewDate", "createdAt", "reviewCount",
        }
        assert record["lastReviewDate"] is None

    def test_utc_timestamps_become_local_midnight(self):
        card = Card.from_dict({
            "id": "abc",
            "question": "Q",
            "answer": "A",
            "level": 1,
            "nextReviewDate": "2024-03-15T05:00:00.000Z",
            "lastReviewDate": None,
            "createdAt": "2024-03-01T10:00:00.000Z",
            "reviewCount": 1,
        })

        assert card.next_review_date.tzinfo is None
        assert card.next_review_date == start_of_day(card.next_review_date)
        assert card.created_at.tzinfo is None

    def test_missing_field_rejected(self):
        with pytest.raises(PreconditionError):
            Card.from_dict({"id": "x", "question": "Q"})

    def test_bad_level_rejected(self, make_card):
        record = make_card().to_dict()
        record["level"] = 9
        with pytest.raises(PreconditionError):
            Card.from_dict(record)


class TestTimezoneHandling:
    """Aware datetimes are converted to naive local time at the boundary."""

    AWARE = datetime(2024, 3, 15, 14, 0, tzinfo=timezone.utc)

    def test_create_card_with_aware_now(self):
        card = create_card("Q", "A", self.AWARE)
        local = self.AWARE.astimezone().replace(tzinfo=None)

        assert card.next_review_date.tzinfo is None
        assert card.created_at.tzinfo is None
        assert card.next_review_date == start_of_day(local)

    def test_aware_card_is_comparable_with_default_now(self):
        card = create_card("Q", "A", self.AWARE)

        assert select_due_cards([card]) == [card]
        assert compute_deck_stats([card]).due_count == 1

    def test_aware_as_of(self, make_card):
        card = make_card(next_review_date=datetime(2024, 1, 1))

        assert is_due(card, self.AWARE)

    def test_review_with_aware_now(self, make_card):
        result = review_card(make_card(level=1), "know", self.AWARE)

        assert result.card.last_review_date.tzinfo is None
        assert result.next_review_date.tzinfo is None


class TestNextReviewDateInvariant:
    """Card refuses a next_review_date that is not a naive local midnight."""

    def test_rejects_time_of_day(self, make_card):
        with pytest.raises(PreconditionError):
            make_card(next_review_date=datetime(2024, 3, 15, 14, 30))

    def test_rejects_aware_midnight(self, make_card):
        with pytest.raises(PreconditionError):
            make_card(next_review_date=datetime(2024, 3, 15, tzinfo=timezone.utc))
