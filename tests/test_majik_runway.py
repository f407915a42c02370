import json

import pytest

from core.errors import CurrencyMismatchError, NotFoundError, ValidationError
from core.money import MoneyValue
from core.period import Period
from core.schema import BusinessModelType, HealthStatus, RevenueKind, VATMode
from engine.scenario import ScenarioOverride
from funding.events import FundingEvent
from funding.manager import FundingManager
from runway import MajikRunway


@pytest.fixture
def runway(year_2025):
    return (
        MajikRunway.initialize("PHP", 50000, year_2025, id="acme")
        .add_product("Widget", 100, 100, unit_cost=40, id="widget")
        .add_recurring_expense("Rent", 8000, id="rent")
        .add_capital_expense("Laptop", 12000, "2025-01", 12, id="laptop")
        .add_equity("Seed", 100000, "2025-01", id="seed")
        .add_debt("Bank loan", 120000, "2025-01", "2026-01", interest_rate=0.12, id="loan")
    )


def test_initialize_defaults():
    rw = MajikRunway.initialize(opening_cash=MoneyValue.from_major(10, "USD"))
    assert rw.currency == "USD"
    assert rw.period.month_count == 24
    assert not rw.is_tax_enabled
    assert rw.business_model_type == BusinessModelType.HYBRID


def test_accessors_return_copies(runway):
    stream = runway.revenue_stream()
    stream.clear()
    runway.funding().remove("seed")
    assert len(runway.revenue_stream()) == 1
    assert runway.funding().does_exist("seed")


def test_projection_and_runway(runway):
    run = runway.project_cashflows()
    assert len(run) == 12
    assert run[0].funding_in == MoneyValue.from_major(220000, "PHP")
    assert runway.calculate_runway() == 12
    assert runway.get_cash_on_hand() == MoneyValue.from_major(50000, "PHP")
    assert runway.get_cash_on_hand_at("2025-12") == run[-1].ending_cash
    with pytest.raises(NotFoundError):
        runway.get_cash_on_hand_at("2027-01")


def test_dashboard_matches_individual_getters(runway):
    snap = runway.get_dashboard_snapshot(as_of="2025-06")
    assert snap.runway_months == runway.get_runway_remaining_months()
    assert snap.average_net_burn == runway.get_average_net_monthly_burn()
    assert snap.break_even_month == runway.get_break_even_month()
    assert snap.burn_efficiency == runway.get_burn_efficiency()
    assert snap.cash_out_month == runway.get_cash_out_date()
    assert snap.health == runway.get_runway_health()
    assert snap.ebitda == runway.get_ebitda_across_period()
    assert snap.net_income == runway.get_net_income_across_period()
    assert snap.next_month_revenue == runway.get_projected_revenue_next_month("2025-06")
    assert snap.funding.total_funding == MoneyValue.from_major(220000, "PHP")


def test_set_period_moves_every_collection(runway):
    runway.set_period(Period("2025-01", "2025-06"))
    assert runway.period.month_count == 6
    assert runway.revenue_stream().period == runway.period
    assert runway.expense_breakdown().period == runway.period
    assert runway.funding().period == runway.period
    assert len(runway.project_cashflows()) == 6


def test_set_period_is_all_or_nothing(runway, monkeypatch):
    before = runway.to_json()

    def boom(self, period):
        raise ValidationError("refused")

    monkeypatch.setattr(FundingManager, "set_period", boom)
    with pytest.raises(ValidationError):
        runway.set_period(Period("2025-03", "2025-06"))
    assert runway.to_json() == before


def test_set_period_rejects_non_periods(runway):
    with pytest.raises(ValidationError):
        runway.set_period(("2025-01", "2025-06"))


def test_foreign_currency_funding_is_rejected(runway):
    total = runway.get_total_funding()
    with pytest.raises(CurrencyMismatchError):
        runway.add_funding(FundingEvent.equity("Dollar round", MoneyValue.from_major(1000, "USD"), "2025-03"))
    assert runway.get_total_funding() == total
    runway.validate_currency_consistency()


def test_taxes_follow_config(runway):
    assert runway.get_total_taxes().is_zero()
    runway.update_tax_config(enabled=True, vat_mode=VATMode.VAT)
    assert runway.is_tax_enabled
    assert runway.tax_config.is_vat
    assert runway.get_taxes_for_month("2025-01").vat == MoneyValue.from_major(1200, "PHP")
    assert runway.project_cashflows()[0].taxes is not None
    with pytest.raises(ValueError):
        runway.update_tax_config(vat_rate=2)


def test_scenarios(runway):
    cut = ScenarioOverride(name="cut", revenue_multiplier=0.0)
    runs = runway.run_scenarios([cut])
    assert runs["cut"][0].revenue.is_zero()
    assert runway.project_cashflows()[0].revenue == MoneyValue.from_major(10000, "PHP")

    table = runway.compare_scenarios([cut])
    assert list(table["by_scenario"]["scenario"]) == ["baseline", "cut"]


def test_project_runway_with_planned_funding(year_2025):
    rw = MajikRunway.initialize("PHP", 20000, year_2025).add_recurring_expense("Rent", 5000)
    assert rw.calculate_runway() == 4
    grant = FundingEvent.grant("Grant", MoneyValue.from_major(10000, "PHP"), "2025-02")
    assert rw.project_runway([grant]) == 6
    assert rw.calculate_runway() == 4


def test_revenue_helpers(runway):
    runway.add_service("Consulting", 1500, 10, id="consulting")
    runway.add_subscription("Pro", 300, 5, id="pro")
    assert [i.id for i in runway.get_revenue_by_type(RevenueKind.SERVICE)] == ["consulting"]
    runway.remove_revenue("consulting")
    with pytest.raises(NotFoundError):
        runway.remove_revenue("consulting")


def test_balance_snapshot(runway):
    snap = runway.get_balance_snapshot("2025-06")
    assert snap.assets_net == MoneyValue.from_major(6000, "PHP")
    assert snap.equity == snap.assets_net.add(snap.cash).subtract(snap.liabilities)


def test_validate_model_reports_warnings(year_2025):
    rw = MajikRunway.initialize("PHP", -100, year_2025).add_recurring_expense("Rent", 5000)
    result = rw.validate_model()
    assert result.is_valid
    assert any("negative" in w for w in result.warnings)
    assert any("no revenue" in w for w in result.warnings)


def test_json_round_trip(runway):
    runway.update_tax_config(enabled=True)
    payload = json.dumps(runway.to_json())
    restored = MajikRunway.from_json(payload)
    assert restored.id == "acme"
    assert restored.to_json() == runway.to_json()
    assert restored.get_dashboard_snapshot("2025-06").ending_cash == \
        runway.get_dashboard_snapshot("2025-06").ending_cash


def test_update_initial_cash(runway):
    runway.update_initial_cash(75000)
    assert runway.get_cash_on_hand() == MoneyValue.from_major(75000, "PHP")
    with pytest.raises(CurrencyMismatchError):
        runway.update_initial_cash(MoneyValue.from_major(1, "USD"))


def test_health_of_a_burning_business(year_2025):
    rw = MajikRunway.initialize("PHP", 50000, year_2025).add_recurring_expense("Rent", 5000)
    assert rw.get_runway_health().status == HealthStatus.CRITICAL


def test_runway_counts_the_month_cash_hits_zero(two_years):
    rw = MajikRunway.initialize("PHP", 50000, two_years).add_recurring_expense("Rent", 5000)
    assert rw.get_runway_remaining_months() == 10
    assert rw.get_cash_out_date() == "2025-10"
    assert rw.get_cash_on_hand_at("2025-10").is_zero()

    rw.update_initial_cash(500000)
    assert rw.get_runway_remaining_months() == 24
    assert rw.get_cash_out_date() is None
