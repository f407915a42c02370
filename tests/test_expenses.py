import pytest

from core.errors import CurrencyMismatchError, ValidationError
from core.money import MoneyValue
from core.period import Period
from core.schema import ExpenseType, Recurrence
from expenses.breakdown import ExpenseBreakdown
from expenses.expense import ExpenseRecord


@pytest.fixture
def breakdown(year_2025, php):
    eb = ExpenseBreakdown("PHP", period=year_2025)
    eb.add_recurring("Rent", php(5000), id="rent")
    eb.add_recurring("Insurance", php(1200), Recurrence.QUARTERLY, id="insurance")
    eb.add_recurring("Audit", php(8000), Recurrence.YEARLY, is_tax_deductible=False, id="audit")
    eb.add_one_time("Launch event", php(3000), "2025-03", id="launch")
    eb.add_capital("Laptops", php(12000), "2025-01", 12, id="laptops")
    return eb


def test_recurrence_cadence(breakdown):
    insurance = breakdown.get_by_id("insurance")
    assert [a.month for a in insurance.schedule] == ["2025-01", "2025-04", "2025-07", "2025-10"]
    audit = breakdown.get_by_id("audit")
    assert [a.month for a in audit.schedule] == ["2025-01"]
    assert len(breakdown.get_by_id("rent").schedule) == 12


def test_monthly_cash_out(breakdown, php):
    # rent + insurance + audit + laptop depreciation
    assert breakdown.get_monthly_cash_out("2025-01") == php(15200)
    # rent + launch + depreciation
    assert breakdown.get_monthly_cash_out("2025-03") == php(9000)
    assert breakdown.get_monthly_cash_out("2025-02") == php(6000)
    assert breakdown.get_monthly_deductible_expense("2025-01") == php(7200)
    assert breakdown.get_monthly_depreciation("2025-05") == php(1000)


def test_capital_depreciation_and_book_value(php):
    laptops = ExpenseRecord.capital_purchase("Laptops", php(12000), "2025-01", 12)
    assert laptops.cash_out_for_month("2025-01") == php(1000)
    assert laptops.cash_out_for_month("2025-12") == php(1000)
    assert laptops.cash_out_for_month("2026-01").is_zero()
    assert laptops.net_book_value("2024-12").is_zero()
    assert laptops.net_book_value("2025-06") == php(6000)
    assert laptops.net_book_value("2026-06").is_zero()


def test_residual_value_is_not_depreciated(php):
    van = ExpenseRecord.capital_purchase("Van", php(10000), "2025-01", 3, residual_value=php(1000))
    assert [van.depreciation_for_month(m).to_major() for m in ("2025-01", "2025-02", "2025-03")] == [
        3000.0, 3000.0, 3000.0,
    ]
    assert van.net_book_value("2025-12") == php(1000)


def test_depreciation_remainder_lands_in_last_month(php):
    desk = ExpenseRecord.capital_purchase("Desk", php(100), "2025-01", 3)
    parts = [desk.depreciation_for_month(m).to_major() for m in ("2025-01", "2025-02", "2025-03")]
    assert parts == [33.33, 33.33, 33.34]


@pytest.mark.parametrize("depreciation_months,residual", [(0, 0), (12, -1), (12, 20000)])
def test_invalid_capital_terms(php, depreciation_months, residual):
    with pytest.raises(ValidationError):
        ExpenseRecord.capital_purchase("Bad", php(12000), "2025-01", depreciation_months, php(residual))


def test_non_positive_amount_rejected(year_2025, php):
    with pytest.raises(ValidationError):
        ExpenseRecord.recurring("Free", MoneyValue.zero("PHP"), year_2025)


def test_scaled_records(php, year_2025):
    rent = ExpenseRecord.recurring("Rent", php(5000), year_2025)
    assert rent.scaled(1.1).cash_out_for_month("2025-06") == php(5500)
    with pytest.raises(ValidationError):
        rent.scaled(0)


def test_filters_and_summary(breakdown, php):
    assert [e.id for e in breakdown.get_by_type(ExpenseType.CAPITAL)] == ["laptops"]
    assert [e.id for e in breakdown.get_by_recurrence(Recurrence.QUARTERLY)] == ["insurance"]
    assert [e.id for e in breakdown.get_one_time_for_month("2025-03")] == ["launch"]
    assert [e.id for e in breakdown.get_top_expenses(2)] == ["laptops", "audit"]
    assert breakdown.total_cash_out() == php(60000 + 4800 + 8000 + 3000 + 12000)
    snapshot = breakdown.get_snapshot()
    assert snapshot.net_assets.is_zero()
    assert snapshot.by_type[ExpenseType.VARIABLE] == php(3000)


def test_set_period_archives_and_restores(breakdown, php):
    breakdown.set_period(Period("2025-04", "2025-12"))
    assert {e.id for e in breakdown.archived} == {"launch", "laptops"}
    assert breakdown.get_by_id("rent").schedule[0].month == "2025-04"
    assert breakdown.get_monthly_cash_out("2025-04") == php(14200)

    breakdown.set_period(Period("2025-01", "2025-12"))
    assert breakdown.archived == []
    assert breakdown.does_exist("launch")


def test_currency_mismatch_rejected(breakdown):
    with pytest.raises(CurrencyMismatchError):
        breakdown.add_one_time("Conference", MoneyValue.from_major(500, "USD"), "2025-05")
    assert len(breakdown) == 5


def test_monthly_summary_frame(breakdown):
    frame = breakdown.monthly_summary()
    assert list(frame.columns) == ["month", "Operating", "Variable", "Capital", "total"]
    assert len(frame) == 12
    assert frame["total"].iloc[0] == pytest.approx(15200.0)


def test_json_round_trip(breakdown):
    restored = ExpenseBreakdown.from_json(breakdown.to_json())
    assert restored.get_all() == breakdown.get_all()
    assert restored.total_cash_out() == breakdown.total_cash_out()


def test_json_is_stable_across_round_trips(breakdown):
    breakdown.set_period(Period("2025-04", "2025-12"))
    payload = breakdown.to_json()
    assert ExpenseBreakdown.from_json(payload).to_json() == payload


def test_add_then_remove_restores_totals(breakdown, php):
    before = breakdown.summary
    breakdown.add_one_time("Trade show", php(2500), "2025-06", id="show")
    assert breakdown.total_cash_out() == before.total_cash_out_across_period.add(php(2500))
    breakdown.remove("show")
    assert breakdown.summary == before
