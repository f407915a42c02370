"""
MajikRunway: the facade a caller holds for one business model.

The facade owns its BusinessModel outright. Accessors hand out copies, so
nothing outside can mutate the model except through these methods; every
mutator returns ``self`` for chaining. A re-entrant lock serializes mutation
and projection when one facade is shared between threads.

Dashboard figures come from a single projection run so that runway, burn,
break-even and health always agree with each other.
"""

from __future__ import annotations

import functools
import json
import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

import pandas as pd

from core.config import DEFAULT_CONFIG, RunwayConfig, TaxConfig
from core.errors import CurrencyMismatchError, NotFoundError, ValidationError
from core.money import MoneyValue, Number
from core.period import Period
from core.schema import (
    BusinessModelType,
    CapacityResizeMode,
    CompoundingFrequency,
    Recurrence,
    RevenueKind,
)
from core.utils import current_month, offset_month
from core.validators import ValidationResult, validate_model
from engine import projection
from engine.cashflow import Cashflow, CashflowTaxes
from engine.model import BalanceSnapshot, BusinessModel
from engine.scenario import ScenarioOverride
from expenses.breakdown import ExpenseBreakdown, ExpenseBreakdownSnapshot
from expenses.expense import ExpenseRecord
from funding.events import FundingEvent
from funding.manager import FundingManager, FundingSnapshot
from reporting import aggregator, charts
from reporting.health import HealthInputs, RunwayHealth, assess_runway_health
from reporting.metrics import RunwayMetrics, compute_runway_metrics
from revenue.base import RevenueItem
from revenue.items import Product, Service, Subscription
from revenue.stream import RevenueStream

logger = logging.getLogger(__name__)

Amount = Union[MoneyValue, Number]


@dataclass(frozen=True)
class DashboardSnapshot:
    model_id: str
    currency: str
    period: Period
    as_of: str
    cash_on_hand: MoneyValue
    runway_months: int
    cash_out_month: Optional[str]
    average_net_burn: MoneyValue
    break_even_month: Optional[str]
    burn_efficiency: Optional[float]
    revenue_growth_mom: Optional[float]
    revenue_growth_cmgr: Optional[float]
    next_month_revenue: MoneyValue
    total_revenue: MoneyValue
    total_expenses: MoneyValue
    total_taxes: CashflowTaxes
    ebitda: MoneyValue
    net_income: MoneyValue
    ending_cash: MoneyValue
    health: RunwayHealth
    funding: FundingSnapshot
    expenses: ExpenseBreakdownSnapshot


def _synchronized(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


class MajikRunway:
    def __init__(self, model: BusinessModel, config: RunwayConfig = DEFAULT_CONFIG):
        self._model = model
        self.config = config
        self._lock = threading.RLock()

    @classmethod
    def initialize(
        cls,
        currency: Optional[str] = None,
        opening_cash: Optional[Amount] = None,
        period: Optional[Period] = None,
        tax_config: Optional[TaxConfig] = None,
        type: BusinessModelType = BusinessModelType.HYBRID,
        id: Optional[str] = None,
        config: RunwayConfig = DEFAULT_CONFIG,
    ) -> "MajikRunway":
        currency = currency or (opening_cash.currency if isinstance(opening_cash, MoneyValue)
                                else config.default_currency)
        cash = opening_cash if isinstance(opening_cash, MoneyValue) else \
            MoneyValue.from_major(opening_cash or 0, currency)
        model = BusinessModel.create(
            currency=currency,
            opening_cash=cash,
            period=period,
            tax_config=tax_config,
            type=type,
            id=id,
            config=config,
        )
        logger.info("Initialized runway model %s (%s, %s..%s)", model.id, currency,
                    model.period.start_month, model.period.end_month)
        return cls(model, config)

    def _money(self, value: Amount) -> MoneyValue:
        if isinstance(value, MoneyValue):
            return value
        return MoneyValue.from_major(value, self.currency)

    # ------------------------------------------------------------------
    # model access

    @property
    def id(self) -> str:
        return self._model.id

    @property
    def currency(self) -> str:
        return self._model.currency

    @property
    def period(self) -> Period:
        return self._model.period

    @property
    def is_tax_enabled(self) -> bool:
        return self._model.tax_config.is_enabled

    @property
    def tax_config(self) -> TaxConfig:
        return self._model.tax_config

    @property
    def business_model_type(self) -> BusinessModelType:
        return self._model.type

    @_synchronized
    def get_model(self) -> BusinessModel:
        return self._model.clone()

    @_synchronized
    def revenue_stream(self) -> RevenueStream:
        return self._model.revenues.clone()

    @_synchronized
    def expense_breakdown(self) -> ExpenseBreakdown:
        return self._model.expenses.clone()

    @_synchronized
    def funding(self) -> FundingManager:
        return self._model.funding.clone()

    @_synchronized
    def update_model(self, model: BusinessModel) -> "MajikRunway":
        if model.currency != self.currency:
            raise CurrencyMismatchError(f"Model currency {model.currency} differs from {self.currency}")
        self._model = model.clone()
        return self

    @_synchronized
    def set_business_model_type(self, type: Union[BusinessModelType, str]) -> "MajikRunway":
        self._model.type = BusinessModelType(type)
        return self

    @_synchronized
    def update_initial_cash(self, amount: Amount) -> "MajikRunway":
        cash = self._money(amount)
        if cash.currency != self.currency:
            raise CurrencyMismatchError(f"Opening cash is {cash.currency}, model uses {self.currency}")
        self._model.money = cash
        return self

    @_synchronized
    def validate_currency_consistency(self) -> "MajikRunway":
        model = self._model
        for manager in (model.expenses, model.revenues, model.funding):
            if manager.currency != self.currency:
                raise CurrencyMismatchError(
                    f"{type(manager).__name__} uses {manager.currency}, model uses {self.currency}"
                )
            manager.validate_currency_consistency()
        return self

    @_synchronized
    def validate_model(self) -> ValidationResult:
        return validate_model(self._model)

    @_synchronized
    def set_period(self, period: Period, mode: CapacityResizeMode = CapacityResizeMode.DEFAULT) -> "MajikRunway":
        """Move all three collections to ``period`` together, or none of them on failure."""
        if not isinstance(period, Period):
            raise ValidationError(f"Expected a Period, got {period!r}")
        expenses = self._model.expenses.clone().set_period(period)
        revenues = self._model.revenues.clone().set_period(period, mode)
        funding = self._model.funding.clone().set_period(period)
        self._model.expenses = expenses
        self._model.revenues = revenues
        self._model.funding = funding
        self._model.period = period
        return self

    def update_period(self, start_month: Optional[str] = None, end_month: Optional[str] = None,
                      mode: CapacityResizeMode = CapacityResizeMode.DEFAULT) -> "MajikRunway":
        return self.set_period(self.period.with_bounds(start_month, end_month), mode)

    # ------------------------------------------------------------------
    # expenses

    @_synchronized
    def add_expense(self, expense: ExpenseRecord) -> "MajikRunway":
        self._model.expenses.add(expense.for_period(self.period))
        return self

    @_synchronized
    def update_expense(self, expense_id: str, expense: ExpenseRecord) -> "MajikRunway":
        self._model.expenses.update(expense_id, expense.for_period(self.period))
        return self

    @_synchronized
    def add_recurring_expense(self, name: str, amount: Amount, recurrence: Recurrence = Recurrence.MONTHLY,
                              is_tax_deductible: bool = True, id: Optional[str] = None) -> "MajikRunway":
        self._model.expenses.add_recurring(name, self._money(amount), recurrence, is_tax_deductible, id)
        return self

    @_synchronized
    def add_one_time_expense(self, name: str, amount: Amount, month: str,
                             is_tax_deductible: bool = True, id: Optional[str] = None) -> "MajikRunway":
        self._model.expenses.add_one_time(name, self._money(amount), month, is_tax_deductible, id)
        return self

    @_synchronized
    def add_capital_expense(self, name: str, amount: Amount, month: str, depreciation_months: int,
                            residual_value: Optional[Amount] = None, is_tax_deductible: bool = True,
                            id: Optional[str] = None) -> "MajikRunway":
        residual = self._money(residual_value) if residual_value is not None else None
        self._model.expenses.add_capital(
            name, self._money(amount), month, depreciation_months, residual, is_tax_deductible, id
        )
        return self

    @_synchronized
    def remove_expense(self, expense_id: str) -> "MajikRunway":
        self._model.expenses.remove(expense_id)
        return self

    # ------------------------------------------------------------------
    # revenue

    @_synchronized
    def add_revenue(self, item: RevenueItem) -> "MajikRunway":
        item.validate_self(True)
        self._model.revenues.add_item(item)
        return self

    @_synchronized
    def update_revenue(self, item_id: str, item: RevenueItem) -> "MajikRunway":
        self._model.revenues.update_item(item_id, item)
        return self

    @_synchronized
    def add_product(self, name: str, unit_price: Amount, units: float,
                    unit_cost: Optional[Amount] = None, id: Optional[str] = None) -> "MajikRunway":
        cost = self._money(unit_cost) if unit_cost is not None else None
        self._model.revenues.add_product(
            Product.constant(name, self._money(unit_price), units, self.period, unit_cost=cost, id=id)
        )
        return self

    @_synchronized
    def add_service(self, name: str, rate: Amount, units: float, unit_cost: Optional[Amount] = None,
                    unit_label: str = "hour", id: Optional[str] = None) -> "MajikRunway":
        cost = self._money(unit_cost) if unit_cost is not None else None
        self._model.revenues.add_service(
            Service.constant(name, self._money(rate), units, self.period, unit_cost=cost, id=id,
                             unit_label=unit_label)
        )
        return self

    @_synchronized
    def add_subscription(self, name: str, price: Amount, subscribers: float,
                         billing_cycle: Recurrence = Recurrence.MONTHLY,
                         unit_cost: Optional[Amount] = None, id: Optional[str] = None) -> "MajikRunway":
        cost = self._money(unit_cost) if unit_cost is not None else None
        self._model.revenues.add_subscription(
            Subscription.constant(name, self._money(price), subscribers, self.period, unit_cost=cost, id=id,
                                  billing_cycle=billing_cycle)
        )
        return self

    @_synchronized
    def get_revenue_by_type(self, kind: Union[RevenueKind, str]) -> List[RevenueItem]:
        return [i.clone() for i in self._model.revenues.get_by_type(kind)]

    @_synchronized
    def remove_revenue(self, item_id: str) -> "MajikRunway":
        self._model.revenues.remove(item_id)
        return self

    # ------------------------------------------------------------------
    # funding

    @_synchronized
    def add_funding(self, event: FundingEvent) -> "MajikRunway":
        self._model.funding.add(event)
        return self

    @_synchronized
    def update_funding(self, event_id: str, event: FundingEvent) -> "MajikRunway":
        self._model.funding.update(event_id, event)
        return self

    @_synchronized
    def add_equity(self, name: str, amount: Amount, month: str, id: Optional[str] = None) -> "MajikRunway":
        self._model.funding.add_equity(name, self._money(amount), month, id=id)
        return self

    @_synchronized
    def add_grant(self, name: str, amount: Amount, month: str, id: Optional[str] = None) -> "MajikRunway":
        self._model.funding.add_grant(name, self._money(amount), month, id=id)
        return self

    @_synchronized
    def add_debt(
        self,
        name: str,
        amount: Amount,
        month: str,
        maturity_date: str,
        interest_rate: float = 0.0,
        initial_payment: Optional[Amount] = None,
        compounding: CompoundingFrequency = CompoundingFrequency.NONE,
        grace_period_months: int = 0,
        installments: bool = False,
        id: Optional[str] = None,
    ) -> "MajikRunway":
        self._model.funding.add_debt(
            name, self._money(amount), month, maturity_date,
            interest_rate=interest_rate,
            initial_payment=self._money(initial_payment) if initial_payment is not None else None,
            id=id,
            compounding=compounding,
            grace_period_months=grace_period_months,
            installments=installments,
        )
        return self

    @_synchronized
    def remove_funding(self, event_id: str) -> "MajikRunway":
        self._model.funding.remove(event_id)
        return self

    @_synchronized
    def update_tax_config(self, tax_config: Optional[TaxConfig] = None, **changes) -> "MajikRunway":
        base = tax_config or self._model.tax_config
        self._model.tax_config = TaxConfig.model_validate({**base.model_dump(), **changes})
        return self

    # ------------------------------------------------------------------
    # projections

    def _taxes_flag(self, include_taxes: Optional[bool]) -> bool:
        return self.is_tax_enabled if include_taxes is None else include_taxes

    @_synchronized
    def generate_monthly_cashflow(self, months: Optional[int] = None, start_month: Optional[str] = None,
                                  include_taxes: Optional[bool] = None) -> List[Cashflow]:
        n = months if months is not None else self.period.month_count
        return projection.generate_monthly_cashflow(self._model, n, start_month, self._taxes_flag(include_taxes))

    def project_cashflows(self, include_taxes: Optional[bool] = None) -> List[Cashflow]:
        """One run over the model period."""
        return self.generate_monthly_cashflow(include_taxes=include_taxes)

    def calculate_runway(self, cashflows: Optional[Sequence[Cashflow]] = None) -> int:
        return projection.calculate_runway(cashflows if cashflows is not None else self.project_cashflows())

    @_synchronized
    def simulate_scenario(self, overrides: Union[ScenarioOverride, Sequence[ScenarioOverride]],
                          months: Optional[int] = None, include_taxes: Optional[bool] = None) -> List[Cashflow]:
        if isinstance(overrides, ScenarioOverride):
            overrides = [overrides]
        return projection.simulate_scenario(
            self._model, overrides, months=months, include_taxes=self._taxes_flag(include_taxes)
        )

    @_synchronized
    def run_scenarios(self, scenarios: Sequence[ScenarioOverride],
                      include_taxes: Optional[bool] = None) -> Dict[str, List[Cashflow]]:
        return projection.run_scenarios(self._model, scenarios, include_taxes=self._taxes_flag(include_taxes))

    def compare_scenarios(self, scenarios: Sequence[ScenarioOverride]) -> Dict[str, pd.DataFrame]:
        runs = {"baseline": self.project_cashflows()}
        runs.update(self.run_scenarios(scenarios))
        return aggregator.compare_scenarios(runs)

    def project_runway(self, planned_funding: Sequence[FundingEvent]) -> int:
        """Runway of the current projection with hypothetical funding merged in."""
        return projection.calculate_runway(projection.project_funding(self.project_cashflows(), planned_funding))

    def get_monthly_ending_cash(self) -> Dict[str, MoneyValue]:
        return {cf.month: cf.ending_cash for cf in self.project_cashflows()}

    def get_monthly_net_profit(self) -> Dict[str, MoneyValue]:
        return {cf.month: cf.net_income for cf in self.project_cashflows()}

    def get_total_revenue(self) -> MoneyValue:
        return self._model.revenues.get_total_revenue()

    def get_total_expenses(self) -> MoneyValue:
        return self._model.expenses.total_cash_out()

    def get_total_funding(self) -> MoneyValue:
        return self._model.funding.total_funding()

    def get_monthly_revenue_series(self) -> Dict[str, MoneyValue]:
        return self._model.revenues.get_monthly_revenue_series()

    def get_monthly_expense_series(self) -> Dict[str, MoneyValue]:
        return self._model.expenses.monthly_cashflow()

    def get_monthly_funding_series(self) -> Dict[str, MoneyValue]:
        return {m: self._model.funding.get_monthly_cash_in(m) for m in self.period.months()}

    def get_total_taxes(self) -> MoneyValue:
        return self.get_total_taxes_across_period().total

    def get_total_taxes_across_period(self) -> CashflowTaxes:
        return projection.get_total_taxes_across_period(self.project_cashflows(include_taxes=True))

    def get_taxes_for_month(self, month: str) -> CashflowTaxes:
        return projection.get_taxes_for_month(self.project_cashflows(include_taxes=True), month)

    def get_ebitda_across_period(self) -> MoneyValue:
        return projection.get_ebitda_across_period(self.project_cashflows())

    def get_net_income_across_period(self) -> MoneyValue:
        return projection.get_net_income_across_period(self.project_cashflows())

    @_synchronized
    def get_balance_snapshot(self, month: str) -> BalanceSnapshot:
        return projection.generate_balance_snapshot(self._model, month, self.project_cashflows())

    # ------------------------------------------------------------------
    # derived metrics

    def _metrics(self, cashflows: Optional[Sequence[Cashflow]] = None) -> RunwayMetrics:
        return compute_runway_metrics(cashflows if cashflows is not None else self.project_cashflows())

    def get_runway_remaining_months(self) -> int:
        return self.calculate_runway()

    def get_cash_on_hand(self) -> MoneyValue:
        return self._model.money

    def get_cash_on_hand_at(self, month: str) -> MoneyValue:
        for cf in self.project_cashflows():
            if cf.month == month:
                return cf.ending_cash
        raise NotFoundError(f"Month {month} is outside the projection {self.period.start_month}..{self.period.end_month}")

    def get_average_net_monthly_burn(self) -> MoneyValue:
        return self._metrics().average_net_burn

    def get_projected_revenue_for_month(self, month: str) -> MoneyValue:
        return self._model.revenues.get_monthly_revenue(month)

    def get_projected_revenue_next_month(self, as_of: Optional[str] = None) -> MoneyValue:
        return self.get_projected_revenue_for_month(offset_month(as_of or current_month(), 1))

    def get_break_even_month(self) -> Optional[str]:
        return self._metrics().break_even_month

    def get_last_revenue_growth_mom(self) -> Optional[float]:
        return self._model.revenues.get_last_revenue_growth_mom()

    def get_revenue_growth_rate_cmgr(self) -> Optional[float]:
        return self._model.revenues.get_revenue_growth_rate_cmgr()

    def get_burn_efficiency(self) -> Optional[float]:
        return self._metrics().burn_efficiency

    def get_cash_out_date(self) -> Optional[str]:
        return self._metrics().cash_out_month

    def _health(self, metrics: RunwayMetrics) -> RunwayHealth:
        inputs = HealthInputs(metrics, self.get_last_revenue_growth_mom(), self.config)
        return assess_runway_health(inputs)

    @_synchronized
    def get_runway_health(self) -> RunwayHealth:
        return self._health(self._metrics())

    @_synchronized
    def get_dashboard_snapshot(self, as_of: Optional[str] = None) -> DashboardSnapshot:
        run = self.project_cashflows()
        metrics = self._metrics(run)
        as_of = as_of or current_month()
        return DashboardSnapshot(
            model_id=self.id,
            currency=self.currency,
            period=self.period,
            as_of=as_of,
            cash_on_hand=self._model.money,
            runway_months=metrics.runway_months,
            cash_out_month=metrics.cash_out_month,
            average_net_burn=metrics.average_net_burn,
            break_even_month=metrics.break_even_month,
            burn_efficiency=metrics.burn_efficiency,
            revenue_growth_mom=self.get_last_revenue_growth_mom(),
            revenue_growth_cmgr=self.get_revenue_growth_rate_cmgr(),
            next_month_revenue=self.get_projected_revenue_next_month(as_of),
            total_revenue=metrics.total_revenue,
            total_expenses=MoneyValue.total((cf.expenses for cf in run), self.currency),
            total_taxes=projection.get_total_taxes_across_period(run),
            ebitda=metrics.ebitda,
            net_income=metrics.net_income,
            ending_cash=metrics.ending_cash,
            health=self._health(metrics),
            funding=self._model.funding.get_dashboard_snapshot(as_of),
            expenses=self._model.expenses.get_snapshot(),
        )

    @_synchronized
    def get_funding_snapshot(self, as_of: Optional[str] = None) -> FundingSnapshot:
        return self._model.funding.get_dashboard_snapshot(as_of)

    @_synchronized
    def get_expense_breakdown(self) -> ExpenseBreakdownSnapshot:
        return self._model.expenses.get_snapshot()

    def get_cashflow_bar_traces(self, include_taxes: Optional[bool] = None) -> list:
        flag = self._taxes_flag(include_taxes)
        return charts.cashflow_bar_traces(self.project_cashflows(include_taxes=flag), include_taxes=flag)

    def cashflow_table(self, include_taxes: Optional[bool] = None) -> pd.DataFrame:
        return aggregator.cashflows_to_dataframe(self.project_cashflows(include_taxes))

    # ------------------------------------------------------------------
    # serialization

    @_synchronized
    def to_json(self) -> dict:
        return self._model.to_json()

    @classmethod
    def from_json(cls, data: Union[str, dict], config: RunwayConfig = DEFAULT_CONFIG) -> "MajikRunway":
        if isinstance(data, str):
            data = json.loads(data)
        return cls(BusinessModel.from_json(data), config)
