"""Binding between file tokens, Customer records and customer rows."""

from etl_ingestion.mapping.customer import (
    FIELD_BINDINGS,
    CustomerFieldSetMapper,
    customer_to_row,
)

__all__ = [
    "FIELD_BINDINGS",
    "CustomerFieldSetMapper",
    "customer_to_row",
]
