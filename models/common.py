from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, Field, validator

# Explicit placeholder for any field a provider leaves out
NOT_AVAILABLE = "N/A"

CENTS = Decimal("0.01")

_DECIMAL_COMMA = re.compile(r"^[+-]?\d+,\d{1,2}$")
_GROUPED_COMMA = re.compile(r"^[+-]?\d{1,3}(,\d{3}){2,}(\.\d+)?$|^[+-]?\d{1,3},\d{3}\.\d+$")


def _normalize_separators(text: str) -> str:
    """
    Rewrite a numeric string with ``.`` as the only decimal mark.

    Accepts pt_BR ("1.234,56", "300,50") and en_US ("1,234.56") grouping.
    A lone comma followed by three digits ("1,234") could be either, so it
    is rejected.
    """
    if "," not in text:
        return text
    if "." in text and text.rfind(",") > text.rfind("."):
        return text.replace(".", "").replace(",", ".")
    if _DECIMAL_COMMA.match(text):
        return text.replace(",", ".")
    if _GROUPED_COMMA.match(text):
        return text.replace(",", "")
    raise ValueError(f"ambiguous number: {text!r}")


def to_decimal(value: Any) -> Decimal:
    """
    Coerce a provider number (int, float, numeric string, Decimal) to Decimal.

    Floats go through ``repr`` so 450.1 stays 450.1 rather than its binary
    expansion. Strings may use either comma or dot as the decimal mark.
    Raises ValueError when the value is not numeric or is ambiguous.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or value is None:
        raise ValueError(f"not a number: {value!r}")
    else:
        if isinstance(value, float):
            value = repr(value)
        try:
            result = Decimal(_normalize_separators(str(value).strip()))
        except InvalidOperation as exc:
            raise ValueError(f"not a number: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"not a number: {value!r}")
    return result


def parse_amount(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    """Like to_decimal, but falls back to ``default`` instead of raising."""
    try:
        return to_decimal(value)
    except ValueError:
        return default


class Money(BaseModel):
    amount: Decimal
    currency: str

    @validator("amount", pre=True)
    def coerce_amount(cls, v: Any) -> Decimal:
        return to_decimal(v)

    @validator("amount")
    def non_negative_cents(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("amount must be non-negative")
        return v.quantize(CENTS, rounding=ROUND_HALF_UP)

    @classmethod
    def zero(cls, currency: str) -> "Money":
        return cls(amount=Decimal("0"), currency=currency)


class PartySize(BaseModel):
    adults: int = Field(default=1, ge=1)
    children: int = Field(default=0, ge=0)

    @property
    def total(self) -> int:
        return self.adults + self.children
