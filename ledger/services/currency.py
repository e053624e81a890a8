# ledger/services/currency.py
#
# Amount Helpers
# Parsing of user-typed euro amounts, Italian-style formatting, and the
# bounds every voice amount must respect.

import re
import unicodedata
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from ledger.errors import ValidationError

# Largest amount a single voice may carry
MAX_AMOUNT = 999_999_999

_CENTS = Decimal("0.01")
_ZERO = Decimal("0.00")
_MAX = Decimal(MAX_AMOUNT).quantize(_CENTS)

_WHITESPACE_RE = re.compile(r"\s+")


def _strip_symbols(text: str) -> str:
    # Drop whitespace (incl. NBSP) and currency symbols such as € or $
    text = _WHITESPACE_RE.sub("", text)
    return "".join(ch for ch in text if unicodedata.category(ch) != "Sc")


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # go through str() so 0.1 stays 0.1 and not 0.1000000000000000055...
        return Decimal(str(value))
    return Decimal(value)


def quantize(value: Decimal) -> Decimal:
    return value.quantize(_CENTS, rounding=ROUND_HALF_UP)


# ---- Parsing ----

def parse_currency(text: str | None) -> Decimal:
    """
    Convert a typed amount like '1.234,56 €' into Decimal('1234.56').

    - Whitespace and currency symbols are removed
    - ',' is the decimal separator; when one is present, '.' is a
      thousands separator ('1.234,56' -> 1234.56)
    - Without a comma the text is read as a plain number ('40.00' -> 40.00)
    - Anything unparseable gives 0, trailing junk included ('12abc' -> 0)
    - The result is clamped to [0, MAX_AMOUNT] and rounded to cents
    """
    if text is None:
        return _ZERO

    s = _strip_symbols(str(text))

    # Replace Unicode minus with normal minus
    s = s.replace("−", "-")

    if "," in s:
        s = s.replace(".", "").replace(",", ".")

    try:
        value = Decimal(s)
    except InvalidOperation:
        return _ZERO

    if not value.is_finite():
        return _ZERO

    if value < 0:
        return _ZERO
    if value > _MAX:
        return _MAX
    return quantize(value)


# ---- Formatting ----

def format_currency(amount: Any) -> str:
    """
    Render an amount the way it-IT renders euros: '1.234,56 €'.

    The symbol is separated by a non-breaking space. Negative values (a net
    total can be negative) keep a leading '-'.
    """
    value = quantize(_to_decimal(amount))
    sign = "-" if value < 0 else ""

    # 1,234.56 -> 1.234,56
    body = f"{abs(value):,.2f}".translate(str.maketrans({",": ".", ".": ","}))
    return f"{sign}{body}\u00a0€"


# ---- Validation ----

def validate_amount(value: Any) -> Decimal:
    """
    Check a voice amount and return it rounded to cents.

    Raises ValidationError for non-numeric input, NaN/Infinity, negative
    values, and anything above MAX_AMOUNT.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError("amount is required")

    try:
        amount = _to_decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"amount {value!r} is not a number")

    if not amount.is_finite():
        raise ValidationError(f"amount {value!r} is not a number")

    if amount < 0:
        raise ValidationError("amount must not be negative")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"amount must not exceed {MAX_AMOUNT:,}")

    return quantize(amount)
