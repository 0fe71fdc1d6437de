"""Tests for the customer processor (age filter + balance bonus)."""

from datetime import date, datetime, timezone

import pytest

from etl_kernel.domain.clock import DeterministicClock
from etl_kernel.exceptions import InvalidDateError

from etl_ingestion.domain.types import Customer
from etl_ingestion.processors.customer import CustomerProcessor, age_on, parse_dob


def _customer(dob: str, balance: float = 100.0, customer_id: int = 1) -> Customer:
    return Customer(customer_id=customer_id, first_name="Ana", dob=dob, balance=balance)


class TestParseDob:

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("15-6-1990", date(1990, 6, 15)),
            ("1-1-2000", date(2000, 1, 1)),
            ("05-09-1985", date(1985, 9, 5)),
            (" 31-12-1999 ", date(1999, 12, 31)),
        ],
    )
    def test_accepts_one_or_two_digit_day_and_month(self, raw, expected):
        assert parse_dob(raw) == expected

    @pytest.mark.parametrize(
        "raw", ["1990-06-15", "15/6/1990", "15-6-90", "", "abc", "115-6-1990"],
    )
    def test_rejects_other_shapes(self, raw):
        with pytest.raises(InvalidDateError) as exc_info:
            parse_dob(raw, customer_id=7)
        assert exc_info.value.code == "invalid-date"
        assert exc_info.value.customer_id == 7

    def test_rejects_impossible_calendar_date(self):
        with pytest.raises(InvalidDateError):
            parse_dob("31-2-1990")


class TestAgeOn:

    def test_birthday_not_yet_reached(self):
        assert age_on(date(2007, 6, 15), date(2025, 1, 1)) == 17

    def test_birthday_today(self):
        assert age_on(date(2007, 1, 1), date(2025, 1, 1)) == 18

    def test_day_before_birthday(self):
        assert age_on(date(2007, 1, 2), date(2025, 1, 1)) == 17


class TestCustomerProcessor:

    def test_adult_accepted_with_bonus(self, clock):
        """1,Ana,Ruiz,...,15-6-1990 on 2025-01-01: balance 100.0 -> 110.0."""
        result = CustomerProcessor(clock=clock).process(_customer("15-6-1990"))

        assert result is not None
        assert result.balance == pytest.approx(110.0)
        assert result.date_of_birth == date(1990, 6, 15)

    def test_minor_dropped(self, clock):
        """2,Leo,Kim,...,15-6-2015 on 2025-01-01 is 9 years old."""
        assert CustomerProcessor(clock=clock).process(_customer("15-6-2015")) is None

    def test_eighteenth_birthday_is_accepted(self, clock):
        assert CustomerProcessor(clock=clock).process(_customer("1-1-2007")) is not None

    def test_one_day_short_of_eighteen_is_dropped(self, clock):
        assert CustomerProcessor(clock=clock).process(_customer("2-1-2007")) is None

    def test_input_record_not_mutated(self, clock):
        original = _customer("15-6-1990")
        CustomerProcessor(clock=clock).process(original)
        assert original.balance == 100.0
        assert original.date_of_birth is None

    def test_reprocessing_does_not_compound_bonus(self, clock):
        processor = CustomerProcessor(clock=clock)
        original = _customer("15-6-1990")
        first = processor.process(original)
        second = processor.process(original)
        assert first == second

    def test_future_date_rejected(self, clock):
        with pytest.raises(InvalidDateError):
            CustomerProcessor(clock=clock).process(_customer("2-1-2025"))

    def test_unparseable_date_surfaces(self, clock):
        with pytest.raises(InvalidDateError):
            CustomerProcessor(clock=clock).process(_customer("not-a-date"))

    def test_age_follows_clock(self):
        clock = DeterministicClock(datetime(2040, 1, 1, tzinfo=timezone.utc))
        assert CustomerProcessor(clock=clock).process(_customer("15-6-2015")) is not None

    def test_zero_balance_stays_zero(self, clock):
        result = CustomerProcessor(clock=clock).process(_customer("15-6-1990", balance=0.0))
        assert result.balance == 0.0

    def test_accepted_record_logged_at_debug(self, clock, captured_logs):
        CustomerProcessor(clock=clock).process(_customer("15-6-1990", customer_id=42))
        logs = captured_logs()
        accepted = [r for r in logs if r["message"] == "customer_accepted"]
        assert accepted and accepted[0]["customer_id"] == 42
        assert accepted[0]["level"] == "DEBUG"
