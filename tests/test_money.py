from decimal import Decimal

import pytest

from core.errors import CurrencyMismatchError, ValidationError
from core.money import MoneyValue


def test_from_major_rounds_half_away_from_zero():
    assert MoneyValue.from_major(10.005, "PHP").minor == 1001
    assert MoneyValue.from_major(-10.005, "PHP").minor == -1001
    assert MoneyValue.from_major("0.004", "PHP").minor == 0


def test_zero_decimal_currency_uses_whole_units():
    assert MoneyValue.from_major(1234.5, "JPY").minor == 1235
    assert MoneyValue.from_major(1234.5, "JPY").format() == "JPY 1,235"


def test_add_and_subtract():
    a = MoneyValue.from_major(100, "PHP")
    b = MoneyValue.from_major(40.25, "PHP")
    assert a.add(b).minor == 14025
    assert a.subtract(b).minor == 5975
    assert b.subtract(a).is_negative()


def test_mixing_currencies_raises():
    with pytest.raises(CurrencyMismatchError):
        MoneyValue.from_major(1, "PHP").add(MoneyValue.from_major(1, "USD"))
    # still a ValueError for callers that only know the builtin
    with pytest.raises(ValueError):
        MoneyValue.from_major(1, "PHP").less_than(MoneyValue.from_major(1, "USD"))


def test_multiply_and_divide_round_to_minor_unit():
    hundred = MoneyValue.from_major(100, "PHP")
    assert hundred.multiply(0.125).minor == 1250
    assert hundred.multiply(Decimal("0.0001")).minor == 1
    assert MoneyValue.from_major(10, "PHP").divide(3).minor == 333
    with pytest.raises(ZeroDivisionError):
        hundred.divide(0)


def test_compound_and_ratio():
    grown = MoneyValue.from_major(100, "PHP").compound(0.1, 2)
    assert grown == MoneyValue.from_major(121, "PHP")
    assert MoneyValue.from_major(50, "PHP").ratio(MoneyValue.from_major(200, "PHP")) == pytest.approx(0.25)


def test_predicates_and_comparisons():
    zero = MoneyValue.zero("PHP")
    one = MoneyValue.from_major(1, "PHP")
    assert zero.is_zero() and not zero.is_positive()
    assert one.greater_than(zero)
    assert zero.less_than_or_equal(zero)
    assert one.greater_than_or_equal(one)
    assert one.negate().max_zero().is_zero()


def test_total_and_format():
    values = [MoneyValue.from_major(v, "PHP") for v in (1000, 200, 34.5)]
    assert MoneyValue.total(values, "PHP").format() == "PHP 1,234.50"
    assert MoneyValue.total([], "PHP").is_zero()


def test_json_round_trip():
    value = MoneyValue.from_major(1234.56, "USD")
    assert value.to_json() == {"amount": 123456, "currency": "USD"}
    assert MoneyValue.from_json(value.to_json()) == value


def test_invalid_construction():
    with pytest.raises(ValidationError):
        MoneyValue(100, "php")
    with pytest.raises(ValidationError):
        MoneyValue(1.5, "PHP")
    with pytest.raises(ValidationError):
        MoneyValue.from_json({"currency": "PHP"})
