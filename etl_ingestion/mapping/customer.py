"""
Customer binding glue.

Maps tokenized file fields to ``Customer`` attributes (coercing ``id`` to
int and ``balance`` to float) and ``Customer`` to customer-table column
values.  ``dob`` is bound as raw text; parsing it is the processor's job.
"""

from __future__ import annotations

import math
from typing import Any

from etl_kernel.exceptions import MalformedRecordError

from etl_ingestion.domain.types import Customer

# File field name -> Customer attribute
FIELD_BINDINGS: dict[str, str] = {
    "id": "customer_id",
    "firstName": "first_name",
    "lastName": "last_name",
    "email": "email",
    "gender": "gender",
    "contactNo": "contact_no",
    "country": "country",
    "dob": "dob",
    "balance": "balance",
}


class CustomerFieldSetMapper:
    """Bind a tokenized line to a ``Customer``."""

    def map_field_set(
        self, fields: dict[str, str], line_number: int, line: str,
    ) -> Customer:
        values: dict[str, Any] = {}
        for name, token in fields.items():
            attribute = FIELD_BINDINGS.get(name)
            if attribute is None:
                continue
            values[attribute] = token.strip()

        raw_id = values.get("customer_id", "")
        try:
            values["customer_id"] = int(raw_id)
        except ValueError:
            raise MalformedRecordError(
                line_number, line, f"id {raw_id!r} is not an integer",
            ) from None

        values["balance"] = self._parse_balance(
            values.get("balance", ""), line_number, line,
        )
        return Customer(**values)

    @staticmethod
    def _parse_balance(raw: str, line_number: int, line: str) -> float:
        if raw == "":
            return 0.0
        try:
            balance = float(raw)
        except ValueError:
            raise MalformedRecordError(
                line_number, line, f"balance {raw!r} is not a number",
            ) from None
        if not math.isfinite(balance) or balance < 0:
            raise MalformedRecordError(
                line_number, line, f"balance {raw!r} must be a non-negative number",
            )
        return balance


def customer_to_row(customer: Customer) -> dict[str, Any]:
    """Column values for the customer table (primary key included)."""
    return {
        "id": customer.customer_id,
        "first_name": customer.first_name,
        "last_name": customer.last_name,
        "email": customer.email,
        "gender": customer.gender,
        "contact_no": customer.contact_no,
        "country": customer.country,
        "dob": customer.dob,
        "balance": customer.balance,
    }
