"""
Customer processor: age filter and balance bonus.

Contract:
    ``process(customer)`` parses ``dob`` (``d-M-yyyy``), drops customers
    younger than 18 on the clock's current civil date (returns ``None``),
    and returns an enriched copy of everyone else with
    ``balance * BONUS_RATE`` and ``date_of_birth`` set.

Architecture: etl_ingestion/processors.  Pure apart from DEBUG logging;
    no counters (the chunk engine counts filtered records).

Failure modes:
    - InvalidDateError: ``dob`` does not match ``d-M-yyyy``, names an
      impossible calendar date, or lies in the future.
"""

from __future__ import annotations

import re
from dataclasses import replace
from datetime import date

from etl_kernel.domain.clock import Clock, SystemClock
from etl_kernel.exceptions import InvalidDateError
from etl_kernel.logging_config import get_logger

from etl_ingestion.domain.types import Customer

logger = get_logger("ingestion.processor")

BONUS_RATE = 1.10
MINIMUM_AGE = 18

_DOB_PATTERN = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$")


def parse_dob(value: str, customer_id: int | None = None) -> date:
    """Parse ``d-M-yyyy`` (1- or 2-digit day and month, 4-digit year)."""
    match = _DOB_PATTERN.match(value.strip())
    if match is None:
        raise InvalidDateError(value, customer_id, "expected d-M-yyyy")
    day, month, year = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError as exc:
        raise InvalidDateError(value, customer_id, str(exc)) from exc


def age_on(born: date, today: date) -> int:
    """Whole years between ``born`` and ``today``."""
    years = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        years -= 1
    return years


class CustomerProcessor:
    """Filter out minors and apply the balance bonus."""

    def __init__(
        self,
        clock: Clock | None = None,
        minimum_age: int = MINIMUM_AGE,
        bonus_rate: float = BONUS_RATE,
    ):
        self._clock = clock or SystemClock()
        self._minimum_age = minimum_age
        self._bonus_rate = bonus_rate

    def process(self, customer: Customer) -> Customer | None:
        today = self._clock.today()
        born = parse_dob(customer.dob, customer.customer_id)
        if born > today:
            raise InvalidDateError(
                customer.dob, customer.customer_id, "date of birth is in the future",
            )

        age = age_on(born, today)
        if age < self._minimum_age:
            logger.debug(
                "customer_filtered",
                extra={"customer_id": customer.customer_id, "age": age},
            )
            return None

        enriched = replace(
            customer,
            balance=customer.balance * self._bonus_rate,
            date_of_birth=born,
        )
        logger.debug(
            "customer_accepted",
            extra={
                "customer_id": enriched.customer_id,
                "age": age,
                "balance": enriched.balance,
            },
        )
        return enriched
