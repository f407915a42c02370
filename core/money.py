"""
Money primitive over integer minor units.

Every scaling operation goes through Decimal and rounds half away from zero
(Excel ROUND semantics) to the currency's minor unit. Floats never hold a
stored amount.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Union

from .errors import CurrencyMismatchError, ValidationError

Number = Union[int, float, Decimal, str]

# ISO 4217 exponents that differ from the default of 2
_EXPONENTS = {
    "JPY": 0,
    "KRW": 0,
    "VND": 0,
    "CLP": 0,
    "ISK": 0,
    "BHD": 3,
    "KWD": 3,
    "JOD": 3,
    "OMR": 3,
    "TND": 3,
}
_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


def currency_exponent(currency: str) -> int:
    return _EXPONENTS.get(currency, 2)


def to_decimal(value: Number) -> Decimal:
    """Exact Decimal for ints/strings; floats go through their shortest repr."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValidationError("Booleans are not numeric amounts")
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class MoneyValue:
    """An amount of ``currency`` stored as an integer count of minor units."""

    minor: int
    currency: str = "PHP"

    def __post_init__(self):
        if isinstance(self.minor, bool) or not isinstance(self.minor, int):
            raise ValidationError(f"Minor amount must be an int, got {self.minor!r}")
        if not isinstance(self.currency, str) or not _CURRENCY_RE.match(self.currency):
            raise ValidationError(f"Invalid currency code {self.currency!r}")

    # ------------------------------------------------------------------
    # construction

    @classmethod
    def zero(cls, currency: str = "PHP") -> "MoneyValue":
        return cls(0, currency)

    @classmethod
    def from_minor(cls, minor: int, currency: str = "PHP") -> "MoneyValue":
        return cls(int(minor), currency)

    @classmethod
    def from_major(cls, amount: Number, currency: str = "PHP") -> "MoneyValue":
        scaled = to_decimal(amount).scaleb(currency_exponent(currency))
        return cls(_round_half_up(scaled), currency)

    @classmethod
    def total(cls, values: Iterable["MoneyValue"], currency: str = "PHP") -> "MoneyValue":
        result = cls.zero(currency)
        for v in values:
            result = result.add(v)
        return result

    # ------------------------------------------------------------------
    # arithmetic

    @property
    def exponent(self) -> int:
        return currency_exponent(self.currency)

    def _require_same(self, other: "MoneyValue") -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(
                f"Currency mismatch: {self.currency} vs {other.currency}"
            )

    def add(self, other: "MoneyValue") -> "MoneyValue":
        self._require_same(other)
        return MoneyValue(self.minor + other.minor, self.currency)

    def subtract(self, other: "MoneyValue") -> "MoneyValue":
        self._require_same(other)
        return MoneyValue(self.minor - other.minor, self.currency)

    def negate(self) -> "MoneyValue":
        return MoneyValue(-self.minor, self.currency)

    def abs(self) -> "MoneyValue":
        return MoneyValue(abs(self.minor), self.currency)

    def multiply(self, factor: Number) -> "MoneyValue":
        return MoneyValue(_round_half_up(self.minor * to_decimal(factor)), self.currency)

    def divide(self, divisor: Number) -> "MoneyValue":
        d = to_decimal(divisor)
        if d == 0:
            raise ZeroDivisionError("Cannot divide money by zero")
        return MoneyValue(_round_half_up(Decimal(self.minor) / d), self.currency)

    def compound(self, rate: Number, periods: Number) -> "MoneyValue":
        """``self * (1 + rate) ** periods``; fractional periods are allowed."""
        growth = (Decimal(1) + to_decimal(rate)) ** to_decimal(periods)
        return self.multiply(growth)

    def ratio(self, other: "MoneyValue") -> float:
        self._require_same(other)
        if other.minor == 0:
            raise ZeroDivisionError("Ratio against a zero amount")
        return float(Decimal(self.minor) / Decimal(other.minor))

    def max_zero(self) -> "MoneyValue":
        return self if self.minor > 0 else MoneyValue(0, self.currency)

    # ------------------------------------------------------------------
    # predicates

    def is_zero(self) -> bool:
        return self.minor == 0

    def is_positive(self) -> bool:
        return self.minor > 0

    def is_negative(self) -> bool:
        return self.minor < 0

    def less_than(self, other: "MoneyValue") -> bool:
        self._require_same(other)
        return self.minor < other.minor

    def greater_than(self, other: "MoneyValue") -> bool:
        self._require_same(other)
        return self.minor > other.minor

    def less_than_or_equal(self, other: "MoneyValue") -> bool:
        self._require_same(other)
        return self.minor <= other.minor

    def greater_than_or_equal(self, other: "MoneyValue") -> bool:
        self._require_same(other)
        return self.minor >= other.minor

    # ------------------------------------------------------------------
    # conversion

    def to_major_decimal(self) -> Decimal:
        return Decimal(self.minor).scaleb(-self.exponent)

    def to_major(self) -> float:
        return float(self.to_major_decimal())

    def format(self) -> str:
        return f"{self.currency} {self.to_major_decimal():,.{self.exponent}f}"

    def __str__(self) -> str:
        return self.format()

    def to_json(self) -> dict:
        return {"amount": self.minor, "currency": self.currency}

    @classmethod
    def from_json(cls, data: dict) -> "MoneyValue":
        try:
            return cls(int(data["amount"]), data["currency"])
        except (KeyError, TypeError) as exc:
            raise ValidationError(f"Malformed money value: {data!r}") from exc
