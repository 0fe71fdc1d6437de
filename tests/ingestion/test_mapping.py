"""Tests for the field-set binding in etl_ingestion.mapping.customer."""

import pytest

from etl_kernel.exceptions import MalformedRecordError
from etl_ingestion.domain.types import Customer
from etl_ingestion.mapping.customer import CustomerFieldSetMapper, customer_to_row

FIELDS = {
    "id": " 12 ",
    "firstName": "Ana",
    "lastName": "Ruiz",
    "email": "a@x",
    "gender": "F",
    "contactNo": "555",
    "country": "ES",
    "dob": "15-6-1990",
    "balance": "100.5",
}


def _map(**changes) -> Customer:
    return CustomerFieldSetMapper().map_field_set({**FIELDS, **changes}, 3, "raw")


def test_binds_and_coerces():
    customer = _map()
    assert customer.customer_id == 12
    assert customer.first_name == "Ana"
    assert customer.contact_no == "555"
    assert customer.dob == "15-6-1990"
    assert customer.balance == 100.5
    assert customer.date_of_birth is None


def test_unknown_fields_ignored():
    assert _map(extra="x").customer_id == 12


def test_empty_balance_defaults_to_zero():
    assert _map(balance="").balance == 0.0


@pytest.mark.parametrize(
    "changes",
    [{"id": ""}, {"id": "abc"}, {"balance": "ten"}, {"balance": "-1"}, {"balance": "nan"}],
)
def test_bad_values_are_malformed(changes):
    with pytest.raises(MalformedRecordError) as exc_info:
        _map(**changes)
    assert exc_info.value.line_number == 3


def test_customer_to_row():
    row = customer_to_row(_map())
    assert row["id"] == 12
    assert row["contact_no"] == "555"
    assert row["balance"] == 100.5
    assert "date_of_birth" not in row
