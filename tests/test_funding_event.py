import pytest

from core.errors import ValidationError
from core.money import MoneyValue
from core.schema import CompoundingFrequency, FundingType
from funding.events import FundingEvent, compute_monthly_payment, monthly_period_rate


def _loan(amount, rate, maturity="2026-01", **kwargs):
    return FundingEvent.debt_facility(
        "Bank loan", MoneyValue.from_major(amount, "PHP"), "2025-01", maturity,
        interest_rate=rate, **kwargs,
    )


def test_fully_amortized_level_payment():
    loan = _loan(120000, 0.12)
    schedule = loan.generate_amortization_schedule(fully_amortized=True)

    assert len(schedule) == 12
    assert schedule[0].month == "2025-01"
    assert schedule[-1].month == "2025-12"
    assert schedule[0].interest == MoneyValue.from_major(1200, "PHP")
    assert schedule[0].cash_paid.to_major() == pytest.approx(10661.85, abs=0.02)
    assert schedule[5].cash_paid.to_major() == pytest.approx(10661.85, abs=0.02)
    assert schedule[-1].total.is_zero()
    principal = MoneyValue.total((e.principal for e in schedule), "PHP")
    assert principal == loan.amount


def test_zero_rate_amortizes_straight_line_in_both_modes():
    loan = FundingEvent.debt_facility(
        "Friends loan", MoneyValue.from_major(12000, "PHP"), "2025-01", "2025-04",
    )
    for fully in (True, False):
        schedule = loan.generate_amortization_schedule(fully_amortized=fully)
        assert [e.principal.to_major() for e in schedule] == [4000.0, 4000.0, 4000.0]
        assert all(e.interest.is_zero() for e in schedule)


def test_last_month_absorbs_rounding():
    loan = FundingEvent.debt_facility(
        "Odd loan", MoneyValue.from_major(10000, "PHP"), "2025-01", "2025-04",
    )
    schedule = loan.generate_amortization_schedule()
    assert [e.principal.to_major() for e in schedule] == [3333.33, 3333.33, 3333.34]
    assert schedule[-1].total.is_zero()


def test_initial_payment_then_level_paydown():
    loan = FundingEvent.debt_facility(
        "Loan with downpayment", MoneyValue.from_major(12000, "PHP"), "2025-01", "2025-04",
        initial_payment=MoneyValue.from_major(3000, "PHP"),
    )
    schedule = loan.generate_amortization_schedule(fully_amortized=True)
    assert [e.principal.to_major() for e in schedule] == [3000.0, 4500.0, 4500.0]
    assert schedule[0].interest.is_zero()


def test_grace_months_pay_interest_only():
    loan = _loan(12000, 0.12, maturity="2025-07", grace_period_months=2)
    schedule = loan.generate_amortization_schedule(fully_amortized=True)

    assert schedule[0].principal.is_zero()
    assert schedule[0].interest == MoneyValue.from_major(120, "PHP")
    assert not schedule[0].capitalized
    assert schedule[1].total == loan.amount
    assert schedule[-1].total.is_zero()


def test_standard_schedule_capitalizes_interest():
    loan = _loan(10000, 0.12, maturity="2025-04")
    schedule = loan.generate_amortization_schedule(fully_amortized=False)

    assert [e.interest.to_major() for e in schedule] == [100.0, 101.0, 102.01]
    assert [e.total.to_major() for e in schedule] == [10100.0, 10201.0, 10303.01]
    assert all(e.capitalized for e in schedule)
    assert all(e.cash_paid.is_zero() for e in schedule)


def test_simple_and_compound_interest():
    loan = _loan(12000, 0.12, compounding=CompoundingFrequency.MONTHLY)
    assert loan.compute_interest() == MoneyValue.from_major(1440, "PHP")
    assert loan.compute_compound_interest().to_major() == pytest.approx(1521.90, abs=0.01)
    assert loan.total_with_interest().to_major() == pytest.approx(13440.0)


def test_quarterly_compounding_uses_effective_monthly_rate():
    rate = monthly_period_rate(0.12, CompoundingFrequency.QUARTERLY)
    assert float(rate) == pytest.approx(1.03 ** (1 / 3) - 1)
    assert float(monthly_period_rate(0.12, CompoundingFrequency.QUARTERLY, False)) == pytest.approx(0.01)


def test_payment_helper_zero_rate():
    principal = MoneyValue.from_major(900, "PHP")
    assert compute_monthly_payment(principal, 0, 3) == MoneyValue.from_major(300, "PHP")


def test_installment_drawdown():
    loan = FundingEvent.debt_facility(
        "Staged loan", MoneyValue.from_major(9000, "PHP"), "2025-01", "2025-04", installments=True,
    )
    drawn = [loan.cash_in_for_month(m).to_major() for m in ("2025-01", "2025-02", "2025-03", "2025-04")]
    assert drawn == [3000.0, 3000.0, 3000.0, 0.0]


def test_equity_cash_arrives_once():
    seed = FundingEvent.equity("Seed", MoneyValue.from_major(50000, "PHP"), "2025-03")
    assert seed.cash_in_for_month("2025-03").to_major() == 50000.0
    assert seed.cash_in_for_month("2025-04").is_zero()
    assert seed.generate_amortization_schedule() == []
    assert not seed.is_repayable


@pytest.mark.parametrize("kwargs", [
    {"maturity": "2024-12"},
    {"maturity": "2025-01"},
    {"rate": -0.01},
    {"grace_period_months": -1},
])
def test_invalid_debt_terms(kwargs):
    kwargs = dict(kwargs)
    maturity = kwargs.pop("maturity", "2026-01")
    rate = kwargs.pop("rate", 0.1)
    with pytest.raises(ValidationError):
        _loan(1000, rate, maturity=maturity, **kwargs)


def test_debt_requires_maturity():
    with pytest.raises(ValidationError):
        FundingEvent.create("Loan", FundingType.DEBT, MoneyValue.from_major(1000, "PHP"), "2025-01")


def test_non_positive_amount_rejected():
    with pytest.raises(ValidationError):
        FundingEvent.grant("Grant", MoneyValue.zero("PHP"), "2025-01")


def test_updates_return_new_events():
    seed = FundingEvent.equity("Seed", MoneyValue.from_major(50000, "PHP"), "2025-03")
    moved = seed.reschedule("2025-05").rename("Seed round")
    assert moved.month == "2025-05" and moved.name == "Seed round"
    assert seed.month == "2025-03"
    with pytest.raises(ValidationError):
        seed.reschedule("2025-5")


def test_json_round_trip_keeps_terms():
    loan = _loan(120000, 0.12, grace_period_months=1, compounding=CompoundingFrequency.QUARTERLY)
    restored = FundingEvent.from_json(loan.to_json())
    assert restored == loan
    assert restored.debt.compounding == CompoundingFrequency.QUARTERLY
