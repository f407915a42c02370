"""
Projection engine: folds a BusinessModel into a month-by-month cashflow run.

Stateless: every function takes the model (or a run) explicitly and returns
new values. For month i of the run:

  cash_in   = revenue + funding cash-in
  cash_out  = expense cash-out + debt principal + paid debt interest
  taxes     = VAT or percentage tax on revenue, plus income tax on
              max(0, revenue - deductible expenses - VAT - percentage tax)
  ending    = previous ending (opening cash for i = 0) + cash_in - cash_out - taxes

Runway, EBITDA, net income and the balance snapshot are pure reductions over
one run.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from core.errors import NotFoundError, ValidationError
from core.money import MoneyValue
from core.utils import offset_month, require_month
from funding.events import FundingEvent

from .cashflow import Cashflow, CashflowTaxes
from .model import BalanceSnapshot, BusinessModel
from .scenario import ScenarioOverride, apply_overrides

logger = logging.getLogger(__name__)


def calculate_taxes(model: BusinessModel, month: str) -> CashflowTaxes:
    tax = model.tax_config
    currency = model.currency
    if not tax.is_enabled:
        return CashflowTaxes.zero(currency)

    revenue = model.revenues.get_monthly_revenue(month)
    zero = MoneyValue.zero(currency)
    vat = revenue.multiply(tax.vat_rate) if tax.is_vat else zero
    percentage_tax = zero if tax.is_vat else revenue.multiply(tax.percentage_tax_rate)

    deductible = model.expenses.get_monthly_deductible_expense(month)
    taxable = revenue.subtract(deductible).subtract(vat).subtract(percentage_tax)
    income_tax = taxable.max_zero().multiply(tax.income_tax_rate)
    return CashflowTaxes(vat, percentage_tax, income_tax)


def generate_monthly_cashflow(
    model: BusinessModel,
    months: int,
    start_month: Optional[str] = None,
    include_taxes: bool = False,
) -> List[Cashflow]:
    if months <= 0:
        raise ValidationError(f"Projection length must be positive, got {months}")
    start = require_month(start_month or model.period.start_month, "start month")

    flows: List[Cashflow] = []
    cash = model.money
    for i in range(months):
        month = offset_month(start, i)
        service = model.funding.get_monthly_debt_service(month)
        cf = Cashflow(
            month=month,
            opening_cash=cash,
            revenue=model.revenues.get_monthly_revenue(month),
            funding_in=model.funding.get_monthly_cash_in(month),
            expenses=model.expenses.get_monthly_cash_out(month),
            depreciation=model.expenses.get_monthly_depreciation(month),
            debt_principal=service.principal,
            debt_interest=service.interest,
            taxes=calculate_taxes(model, month) if include_taxes else None,
        )
        flows.append(cf)
        cash = cf.ending_cash

    logger.debug("Projected %d months from %s for model %s, ending cash %s",
                 months, start, model.id, cash)
    return flows


def calculate_runway(cashflows: Sequence[Cashflow]) -> int:
    """
    Month count until cash runs out: the 1-based position of the first month
    whose ending cash is <= 0, or the length of the run if cash never runs out.
    """
    for i, cf in enumerate(cashflows):
        if not cf.ending_cash.is_positive():
            return i + 1
    return len(cashflows)


def simulate_scenario(
    model: BusinessModel,
    overrides: Sequence[ScenarioOverride],
    months: Optional[int] = None,
    start_month: Optional[str] = None,
    include_taxes: bool = False,
) -> List[Cashflow]:
    scenario = apply_overrides(model, overrides)
    n = months if months is not None else model.period.month_count
    return generate_monthly_cashflow(scenario, n, start_month, include_taxes)


def run_scenarios(
    model: BusinessModel,
    scenarios: Iterable[ScenarioOverride],
    months: Optional[int] = None,
    include_taxes: bool = False,
) -> Dict[str, List[Cashflow]]:
    """Evaluate each override independently, each on its own clone."""
    return {
        s.name: simulate_scenario(model, [s], months=months, include_taxes=include_taxes)
        for s in scenarios
    }


def project_funding(cashflows: Sequence[Cashflow], planned_funding: Iterable[FundingEvent]) -> List[Cashflow]:
    """New run with planned funding merged into cash-in; the ending-cash chain is rebuilt."""
    planned = list(planned_funding)
    if not cashflows:
        return []
    out: List[Cashflow] = []
    cash = cashflows[0].opening_cash
    for cf in cashflows:
        extra = MoneyValue.total((e.cash_in_for_month(cf.month) for e in planned), cf.currency)
        updated = cf.with_funding(extra).with_opening_cash(cash)
        out.append(updated)
        cash = updated.ending_cash
    return out


def _index_of(cashflows: Sequence[Cashflow], month: str) -> int:
    for i, cf in enumerate(cashflows):
        if cf.month == month:
            return i
    raise NotFoundError(f"No cashflow for month {month}")


def generate_balance_snapshot(model: BusinessModel, month: str, cashflows: Sequence[Cashflow]) -> BalanceSnapshot:
    idx = _index_of(cashflows, month)
    currency = model.currency
    cash = cashflows[idx].ending_cash
    assets_net = model.expenses.get_net_assets_up_to(month)
    debt = model.funding.get_outstanding_debt_up_to(month)
    retained = MoneyValue.total((cf.net_income for cf in cashflows[: idx + 1]), currency)
    return BalanceSnapshot(
        month=month,
        cash=cash,
        assets_net=assets_net,
        liabilities=debt,
        equity=assets_net.add(cash).subtract(debt),
        debt_outstanding=debt,
        retained_earnings=retained,
    )


def _require_run(cashflows: Sequence[Cashflow]) -> str:
    if not cashflows:
        raise ValidationError("Cashflow run is empty")
    return cashflows[0].currency


def get_total_taxes_across_period(cashflows: Sequence[Cashflow]) -> CashflowTaxes:
    currency = _require_run(cashflows)
    total = CashflowTaxes.zero(currency)
    for cf in cashflows:
        if cf.taxes is not None:
            total = total.add(cf.taxes)
    return total


def get_taxes_for_month(cashflows: Sequence[Cashflow], month: str) -> CashflowTaxes:
    cf = cashflows[_index_of(cashflows, month)]
    return cf.taxes if cf.taxes is not None else CashflowTaxes.zero(cf.currency)


def get_ebitda_across_period(cashflows: Sequence[Cashflow]) -> MoneyValue:
    currency = _require_run(cashflows)
    return MoneyValue.total((cf.ebitda for cf in cashflows), currency)


def get_net_income_across_period(cashflows: Sequence[Cashflow]) -> MoneyValue:
    currency = _require_run(cashflows)
    return MoneyValue.total((cf.net_income for cf in cashflows), currency)
