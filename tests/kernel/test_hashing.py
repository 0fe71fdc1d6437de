"""Tests for etl_kernel.utils.hashing."""

from datetime import date

import pytest

from etl_kernel.utils.hashing import canonicalize_json, job_key


class TestCanonicalizeJson:

    def test_sorted_compact(self):
        assert canonicalize_json({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'

    def test_dates_serialized_iso(self):
        assert canonicalize_json({"d": date(2025, 1, 1)}) == '{"d":"2025-01-01"}'

    def test_unsupported_type_raises(self):
        with pytest.raises(TypeError):
            canonicalize_json({"x": object()})


class TestJobKey:

    def test_key_order_irrelevant(self):
        assert job_key("importCustomers", {"a": 1, "startAt": 2}) == job_key(
            "importCustomers", {"startAt": 2, "a": 1},
        )

    def test_parameters_distinguish(self):
        assert job_key("importCustomers", {"startAt": 1}) != job_key(
            "importCustomers", {"startAt": 2},
        )

    def test_job_name_distinguishes(self):
        assert job_key("a", {}) != job_key("b", {})

    def test_hex_sha256(self):
        key = job_key("importCustomers", {"startAt": 1})
        assert len(key) == 64
        int(key, 16)
