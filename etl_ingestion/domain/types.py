"""
etl_ingestion.domain.types -- The Customer record.

ZERO I/O.  A frozen dataclass: the processor returns an enriched copy
rather than mutating its input, so a retried chunk can re-process the
same raw records without compounding the balance bonus.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class Customer:
    """One customer as read from the flat file (and, after processing, enriched)."""

    customer_id: int
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    gender: str = ""
    contact_no: str = ""
    country: str = ""
    dob: str = ""  # Raw d-M-yyyy text as read
    balance: float = 0.0
    date_of_birth: date | None = None  # Set by the processor
