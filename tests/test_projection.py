import pytest

from core.config import TaxConfig
from core.errors import NotFoundError, ValidationError
from core.money import MoneyValue
from core.schema import VATMode
from engine.model import BusinessModel
from engine.projection import (
    calculate_runway,
    calculate_taxes,
    generate_balance_snapshot,
    generate_monthly_cashflow,
    get_ebitda_across_period,
    get_net_income_across_period,
    get_taxes_for_month,
    get_total_taxes_across_period,
    project_funding,
    run_scenarios,
    simulate_scenario,
)
from engine.scenario import ScenarioOverride, apply_overrides
from funding.events import FundingEvent
from revenue.items import Product


def test_fold_links_each_month_to_the_next(profitable_model):
    run = generate_monthly_cashflow(profitable_model, 12)
    assert run[0].opening_cash == profitable_model.money
    for prev, cur in zip(run, run[1:]):
        assert cur.opening_cash == prev.ending_cash
    for cf in run:
        assert cf.ending_cash == cf.opening_cash.add(cf.cash_in).subtract(cf.cash_out).subtract(cf.tax_total)


def test_runway_counts_to_first_non_positive_month(burning_model):
    run = generate_monthly_cashflow(burning_model, 24)
    assert calculate_runway(run) == 10
    assert run[9].ending_cash.is_zero()

    burning_model.money = MoneyValue.from_major(52000, "PHP")
    assert calculate_runway(generate_monthly_cashflow(burning_model, 24)) == 11


def test_runway_is_full_length_when_cash_lasts(profitable_model):
    run = generate_monthly_cashflow(profitable_model, 12)
    assert calculate_runway(run) == 12
    assert calculate_runway([]) == 0


def test_projection_length_must_be_positive(profitable_model):
    with pytest.raises(ValidationError):
        generate_monthly_cashflow(profitable_model, 0)


def test_projection_can_start_later(profitable_model):
    run = generate_monthly_cashflow(profitable_model, 3, start_month="2025-06")
    assert [cf.month for cf in run] == ["2025-06", "2025-07", "2025-08"]
    assert run[0].opening_cash == profitable_model.money


def _taxed_model(year_2025, vat_mode):
    model = BusinessModel.create(
        "PHP", MoneyValue.from_major(0, "PHP"), year_2025,
        tax_config=TaxConfig(vat_mode=vat_mode, enabled=True),
    )
    model.revenues.add_product(Product.constant("Widget", MoneyValue.from_major(100, "PHP"), 100, year_2025))
    model.expenses.add_recurring("Rent", MoneyValue.from_major(5000, "PHP"))
    return model


def test_vat_taxes(year_2025, php):
    taxes = calculate_taxes(_taxed_model(year_2025, VATMode.VAT), "2025-01")
    assert taxes.vat == php(1200)
    assert taxes.percentage_tax.is_zero()
    assert taxes.income_tax == php(950)


def test_percentage_taxes(year_2025, php):
    taxes = calculate_taxes(_taxed_model(year_2025, VATMode.NON_VAT), "2025-01")
    assert taxes.vat.is_zero()
    assert taxes.percentage_tax == php(300)
    assert taxes.income_tax == php(1175)
    assert taxes.total == php(1475)


def test_loss_pays_no_income_tax(year_2025):
    model = _taxed_model(year_2025, VATMode.NON_VAT)
    model.expenses.add_recurring("Payroll", MoneyValue.from_major(20000, "PHP"))
    assert calculate_taxes(model, "2025-01").income_tax.is_zero()


def test_disabled_taxes_are_zero(profitable_model):
    assert calculate_taxes(profitable_model, "2025-01").total.is_zero()


def test_taxes_reduce_ending_cash(year_2025, php):
    model = _taxed_model(year_2025, VATMode.NON_VAT)
    untaxed = generate_monthly_cashflow(model, 12)
    taxed = generate_monthly_cashflow(model, 12, include_taxes=True)
    assert untaxed[0].taxes is None
    assert taxed[0].ending_cash == untaxed[0].ending_cash.subtract(php(1475))
    assert get_total_taxes_across_period(taxed).total == php(1475 * 12)
    assert get_taxes_for_month(taxed, "2025-03").income_tax == php(1175)
    assert get_taxes_for_month(untaxed, "2025-03").total.is_zero()
    with pytest.raises(NotFoundError):
        get_taxes_for_month(taxed, "2026-01")


def test_ebitda_and_net_income(profitable_model, php):
    run = generate_monthly_cashflow(profitable_model, 12)
    assert get_ebitda_across_period(run) == php(60000)
    assert get_net_income_across_period(run) == php(48000)
    with pytest.raises(ValidationError):
        get_ebitda_across_period([])


def test_debt_service_flows_through(year_2025, php):
    model = BusinessModel.create("PHP", php(0), year_2025)
    model.funding.add_debt("Bank loan", php(120000), "2025-01", "2026-01", interest_rate=0.12)
    run = generate_monthly_cashflow(model, 12)
    assert run[0].funding_in == php(120000)
    assert run[0].debt_interest == php(1200)
    assert run[0].cash_out.to_major() == pytest.approx(10661.85, abs=0.02)
    assert run[-1].ending_cash.is_positive() is False


def test_balance_snapshot_identity(profitable_model, php):
    profitable_model.funding.add_debt("Friends loan", php(12000), "2025-01", "2025-04")
    run = generate_monthly_cashflow(profitable_model, 12)
    snap = generate_balance_snapshot(profitable_model, "2025-02", run)
    assert snap.debt_outstanding == php(4000)
    assert snap.assets_net == php(10000)
    assert snap.equity == snap.assets_net.add(snap.cash).subtract(snap.liabilities)
    assert snap.retained_earnings == php(8000)
    with pytest.raises(NotFoundError):
        generate_balance_snapshot(profitable_model, "2030-01", run)


def test_scenarios_run_on_clones(burning_model, php):
    before = burning_model.to_json()
    cut = ScenarioOverride(name="cut", expense_multiplier=0.5)
    raise_ = ScenarioOverride(
        name="raise",
        planned_funding=[FundingEvent.equity("Bridge", php(30000), "2025-06")],
    )
    runs = run_scenarios(burning_model, [cut, raise_])

    assert set(runs) == {"cut", "raise"}
    assert calculate_runway(runs["cut"]) == 20
    assert calculate_runway(runs["raise"]) == 16
    assert burning_model.to_json() == before


def test_overrides_compose(burning_model, php):
    overrides = [
        ScenarioOverride(name="extra", expense_offset=5000),
        ScenarioOverride(name="cash", opening_cash_delta=-10000),
    ]
    scenario = apply_overrides(burning_model, overrides)
    assert scenario.money == php(40000)
    assert scenario.expenses.get_monthly_cash_out("2025-01") == php(10000)
    assert burning_model.expenses.get_monthly_cash_out("2025-01") == php(5000)
    assert calculate_runway(simulate_scenario(burning_model, overrides, months=12)) == 4


def test_revenue_multiplier(profitable_model, php):
    run = simulate_scenario(profitable_model, [ScenarioOverride(revenue_multiplier=1.5)], months=1)
    assert run[0].revenue == php(15000)


@pytest.mark.parametrize("field,value", [("expense_multiplier", 0), ("expense_offset", -1)])
def test_invalid_overrides(field, value):
    with pytest.raises(ValueError):
        ScenarioOverride(**{field: value})


def test_project_funding_returns_a_new_run(burning_model, php):
    run = generate_monthly_cashflow(burning_model, 24)
    planned = [FundingEvent.grant("Grant", php(25000), "2025-03")]
    projected = project_funding(run, planned)

    assert calculate_runway(run) == 10
    assert calculate_runway(projected) == 15
    assert projected[2].funding_in == php(25000)
    for prev, cur in zip(projected, projected[1:]):
        assert cur.opening_cash == prev.ending_cash
    assert project_funding([], planned) == []
