"""Per-record transformers."""

from etl_ingestion.processors.customer import (
    BONUS_RATE,
    MINIMUM_AGE,
    CustomerProcessor,
    age_on,
    parse_dob,
)

__all__ = [
    "BONUS_RATE",
    "MINIMUM_AGE",
    "CustomerProcessor",
    "age_on",
    "parse_dob",
]
