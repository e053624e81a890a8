from __future__ import annotations

from decimal import Decimal

import pytest

from ledger.errors import ValidationError
from ledger.services.currency import (
    MAX_AMOUNT,
    format_currency,
    parse_currency,
    validate_amount,
)


def test_parse_currency_comma_is_decimal_separator() -> None:
    assert parse_currency("1.234,56") == Decimal("1234.56")
    assert float(parse_currency("1.234,56")) == 1234.56


@pytest.mark.parametrize(
    "text, expected",
    [
        ("abc", Decimal("0")),
        ("12abc", Decimal("0")),
        ("", Decimal("0")),
        (None, Decimal("0")),
        ("€ 12,50", Decimal("12.50")),
        ("40.00", Decimal("40.00")),
        ("-5", Decimal("0")),
        ("2.000.000.000,00", Decimal(MAX_AMOUNT)),
        ("0,005", Decimal("0.01")),
    ],
)
def test_parse_currency_cleans_and_clamps(text, expected: Decimal) -> None:
    assert parse_currency(text) == expected


def test_format_currency_italian_style() -> None:
    assert format_currency(Decimal("1234.56")) == "1.234,56\u00a0€"
    assert format_currency(0) == "0,00\u00a0€"
    assert format_currency(Decimal("-60")) == "-60,00\u00a0€"


@pytest.mark.parametrize("value", ["0.00", "0.01", "40.00", "1234.56", "999999999.00"])
def test_format_then_parse_gives_back_the_amount(value: str) -> None:
    amount = Decimal(value)
    assert parse_currency(format_currency(amount)) == amount


def test_validate_amount_bounds() -> None:
    with pytest.raises(ValidationError):
        validate_amount(-1)
    with pytest.raises(ValidationError):
        validate_amount(1_000_000_000)

    assert validate_amount(999_999_999) == Decimal("999999999.00")
    assert validate_amount(0) == Decimal("0.00")


@pytest.mark.parametrize("value", ["abc", float("nan"), float("inf"), None, True])
def test_validate_amount_rejects_non_numbers(value) -> None:
    with pytest.raises(ValidationError):
        validate_amount(value)


def test_validate_amount_rounds_to_cents() -> None:
    assert validate_amount(12.345) == Decimal("12.35")
    assert validate_amount("40") == Decimal("40.00")
