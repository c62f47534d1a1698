from decimal import Decimal

import pytest

from biobox.utils.normalize import (
    normalize_status, sanitize_for_store, to_iso_string, to_money, to_number,
)


class _LegacyNumber:
    def toNumber(self):
        return "12.5"


class _LegacyDate:
    def toDate(self):
        return "2025-01-02T03:04:05Z"


@pytest.mark.parametrize("value, expected", [
    (10, 10),
    (2.5, 2.5),
    ("42", 42),
    (" 3.75 ", 3.75),
    (Decimal("9.90"), 9.9),
    (_LegacyNumber(), 12.5),
    (None, 0),
    ("", 0),
    ("abc", 0),
    (float("nan"), 0),
    (float("inf"), 0),
    (True, 0),
])
def test_to_number(value, expected):
    assert to_number(value) == expected


def test_to_number_fallback():
    assert to_number(None, 7) == 7
    assert to_number("x", -1) == -1


def test_to_money_rounds_to_cents():
    assert to_money("10.005") == Decimal("10.01")
    assert to_money(None) == Decimal("0.00")


def test_to_iso_string_accepts_store_wrappers():
    assert to_iso_string({"seconds": 1735689600, "nanoseconds": 0}) == "2025-01-01T00:00:00.000Z"
    assert to_iso_string({"_seconds": 1735689600, "_nanoseconds": 500000000}) == "2025-01-01T00:00:00.500Z"


def test_to_iso_string_other_inputs():
    assert to_iso_string("2025-03-10") == "2025-03-10T00:00:00.000Z"
    assert to_iso_string("2025-03-10T12:30:00Z") == "2025-03-10T12:30:00.000Z"
    assert to_iso_string(_LegacyDate()) == "2025-01-02T03:04:05.000Z"
    assert to_iso_string(1735689600000) == "2025-01-01T00:00:00.000Z"
    assert to_iso_string("not a date", "fallback") == "fallback"
    assert to_iso_string(None) is None


@pytest.mark.parametrize("value, expected", [
    ("Pendente", "pending"),
    ("em_producao", "in_production"),
    ("Entregue", "delivered"),
    ("canceled", "cancelled"),
    ("quality_check", "quality_check"),
    (None, "pending"),
    ("", "pending"),
])
def test_normalize_status(value, expected):
    assert normalize_status(value) == expected


def test_sanitize_for_store_replaces_none_recursively():
    data = {"a": None, "b": [1, None, {"c": None}], "d": {"e": None, "f": 0}}
    assert sanitize_for_store(data) == {"a": "", "b": [1, "", {"c": ""}], "d": {"e": "", "f": 0}}
