"""
Derived runway metrics: pure reductions over one cashflow run.

Burn is operating burn: outflows and taxes less revenue. Funding inflows are
excluded so a raise does not read as a profitable month.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from core.errors import ValidationError
from core.money import MoneyValue
from engine.cashflow import Cashflow
from engine.projection import calculate_runway


def monthly_net_burn(cf: Cashflow) -> MoneyValue:
    return cf.operating_net.negate()


def average_net_burn(cashflows: Sequence[Cashflow]) -> MoneyValue:
    if not cashflows:
        raise ValidationError("Cashflow run is empty")
    total = MoneyValue.total((monthly_net_burn(cf) for cf in cashflows), cashflows[0].currency)
    return total.divide(len(cashflows))


def break_even_month(cashflows: Sequence[Cashflow]) -> Optional[str]:
    """First month with revenue that covers every outflow and tax."""
    for cf in cashflows:
        if cf.revenue.is_positive() and not cf.operating_net.is_negative():
            return cf.month
    return None


def burn_efficiency(cashflows: Sequence[Cashflow]) -> Optional[float]:
    """Total revenue per unit of cash burned in burning months; None when nothing burns."""
    if not cashflows:
        return None
    currency = cashflows[0].currency
    burned = MoneyValue.total(
        (monthly_net_burn(cf).max_zero() for cf in cashflows), currency
    )
    if burned.is_zero():
        return None
    revenue = MoneyValue.total((cf.revenue for cf in cashflows), currency)
    return revenue.ratio(burned)


def cash_out_month(cashflows: Sequence[Cashflow]) -> Optional[str]:
    for cf in cashflows:
        if not cf.ending_cash.is_positive():
            return cf.month
    return None


@dataclass(frozen=True)
class RunwayMetrics:
    runway_months: int
    cash_runs_out: bool
    average_net_burn: MoneyValue
    average_revenue: MoneyValue
    average_cash_out: MoneyValue
    break_even_month: Optional[str]
    burn_efficiency: Optional[float]
    cash_out_month: Optional[str]
    total_revenue: MoneyValue
    total_taxes: MoneyValue
    ebitda: MoneyValue
    net_income: MoneyValue
    ending_cash: MoneyValue


def compute_runway_metrics(cashflows: Sequence[Cashflow]) -> RunwayMetrics:
    if not cashflows:
        raise ValidationError("Cashflow run is empty")
    currency = cashflows[0].currency
    n = len(cashflows)

    def total(attr: str) -> MoneyValue:
        return MoneyValue.total((getattr(cf, attr) for cf in cashflows), currency)

    revenue = total("revenue")
    out_month = cash_out_month(cashflows)
    return RunwayMetrics(
        runway_months=calculate_runway(cashflows),
        cash_runs_out=out_month is not None,
        average_net_burn=average_net_burn(cashflows),
        average_revenue=revenue.divide(n),
        average_cash_out=total("cash_out").divide(n),
        break_even_month=break_even_month(cashflows),
        burn_efficiency=burn_efficiency(cashflows),
        cash_out_month=out_month,
        total_revenue=revenue,
        total_taxes=total("tax_total"),
        ebitda=total("ebitda"),
        net_income=total("net_income"),
        ending_cash=cashflows[-1].ending_cash,
    )
