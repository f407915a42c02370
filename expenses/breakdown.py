"""
ExpenseBreakdown: owns the expense records of a model and keeps cached totals.

Same shape as FundingManager: CRUD ends in ``_commit()``; a period change
regenerates recurring schedules and archives one-time / capital records that
fall outside the new window.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Union

import pandas as pd

from core.config import DEFAULT_CONFIG
from core.errors import CurrencyMismatchError, NotFoundError, ValidationError
from core.money import MoneyValue
from core.period import Period
from core.schema import ExpenseType, Recurrence
from core.utils import month_year

from .expense import ExpenseRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExpenseSummary:
    total_expenses: MoneyValue
    average_monthly_expense: MoneyValue
    total_cash_out_across_period: MoneyValue
    total_recurring: MoneyValue
    total_one_time: MoneyValue
    total_capital: MoneyValue
    total_tax_deductible: MoneyValue
    record_count: int


@dataclass(frozen=True)
class ExpenseBreakdownSnapshot:
    currency: str
    period: Period
    summary: ExpenseSummary
    by_type: Dict[ExpenseType, MoneyValue]
    top_expenses: List[ExpenseRecord]
    net_assets: MoneyValue


class ExpenseBreakdown:
    def __init__(
        self,
        currency: str = DEFAULT_CONFIG.default_currency,
        expenses: Optional[Iterable[ExpenseRecord]] = None,
        period: Optional[Period] = None,
        *,
        archived: Optional[Iterable[ExpenseRecord]] = None,
    ):
        self.currency = currency
        self.period = period or Period.default(DEFAULT_CONFIG.default_horizon_months)
        self._archived: List[ExpenseRecord] = list(archived or [])
        self._expenses: List[ExpenseRecord] = []
        self._summary: Optional[ExpenseSummary] = None
        self._commit(list(expenses or []))

    # ------------------------------------------------------------------
    # cache funnel

    def _commit(self, expenses: List[ExpenseRecord]) -> None:
        ids = [e.id for e in expenses]
        if len(ids) != len(set(ids)):
            raise ValidationError("Duplicate expense ids")
        previous = self._expenses
        self._expenses = expenses
        try:
            self.recalculate_cache()
        except Exception:
            self._expenses = previous
            self.recalculate_cache()
            raise

    def recalculate_cache(self) -> None:
        def total(records) -> MoneyValue:
            return MoneyValue.total((e.amount for e in records), self.currency)

        months = self.period.months()
        cash_out = MoneyValue.total((self.get_monthly_cash_out(m) for m in months), self.currency)
        self._summary = ExpenseSummary(
            total_expenses=total(self._expenses),
            average_monthly_expense=cash_out.divide(len(months)) if months else MoneyValue.zero(self.currency),
            total_cash_out_across_period=cash_out,
            total_recurring=total(self.get_recurring()),
            total_one_time=total(e for e in self._expenses if e.is_one_time),
            total_capital=total(self.get_capital()),
            total_tax_deductible=total(self.get_tax_deductible()),
            record_count=len(self._expenses),
        )
        logger.debug("Expense cache recalculated: %d records, cash out %s", len(self._expenses), cash_out)

    @property
    def summary(self) -> ExpenseSummary:
        return self._summary

    @property
    def archived(self) -> List[ExpenseRecord]:
        return list(self._archived)

    # ------------------------------------------------------------------
    # CRUD

    def add(self, expense: ExpenseRecord) -> "ExpenseBreakdown":
        if self.does_exist(expense.id):
            raise ValidationError(f"Expense {expense.id} already exists")
        self._commit(self._expenses + [expense])
        return self

    def remove(self, expense_id: str) -> "ExpenseBreakdown":
        if not self.does_exist(expense_id):
            raise NotFoundError(f"Expense {expense_id} not found")
        self._commit([e for e in self._expenses if e.id != expense_id])
        return self

    def update(self, expense_id: str, updated: ExpenseRecord) -> "ExpenseBreakdown":
        if not self.does_exist(expense_id):
            raise NotFoundError(f"Expense {expense_id} not found")
        self._commit([updated if e.id == expense_id else e for e in self._expenses])
        return self

    def clear(self) -> "ExpenseBreakdown":
        self._archived = []
        self._commit([])
        return self

    def get_by_id(self, expense_id: str) -> Optional[ExpenseRecord]:
        return next((e for e in self._expenses if e.id == expense_id), None)

    def does_exist(self, expense_id: str) -> bool:
        return any(e.id == expense_id for e in self._expenses)

    def get_all(self) -> List[ExpenseRecord]:
        return list(self._expenses)

    def __len__(self) -> int:
        return len(self._expenses)

    def add_recurring(
        self,
        name: str,
        amount: MoneyValue,
        recurrence: Recurrence = Recurrence.MONTHLY,
        is_tax_deductible: bool = True,
        id: Optional[str] = None,
    ) -> "ExpenseBreakdown":
        return self.add(ExpenseRecord.recurring(name, amount, self.period, recurrence, is_tax_deductible, id))

    def add_one_time(
        self,
        name: str,
        amount: MoneyValue,
        month: str,
        is_tax_deductible: bool = True,
        id: Optional[str] = None,
    ) -> "ExpenseBreakdown":
        return self.add(ExpenseRecord.one_time(name, amount, month, is_tax_deductible, id))

    def add_capital(
        self,
        name: str,
        amount: MoneyValue,
        month: str,
        depreciation_months: int,
        residual_value: Optional[MoneyValue] = None,
        is_tax_deductible: bool = True,
        id: Optional[str] = None,
    ) -> "ExpenseBreakdown":
        return self.add(ExpenseRecord.capital_purchase(
            name, amount, month, depreciation_months, residual_value, is_tax_deductible, id
        ))

    # ------------------------------------------------------------------
    # filters

    def get_by_type(self, type: Union[ExpenseType, str]) -> List[ExpenseRecord]:
        t = ExpenseType(type)
        return [e for e in self._expenses if e.type == t]

    def get_by_recurrence(self, recurrence: Union[Recurrence, str]) -> List[ExpenseRecord]:
        r = Recurrence(recurrence)
        return [e for e in self._expenses if e.is_recurring and e.recurrence == r]

    def get_by_amount_range(self, low: MoneyValue, high: MoneyValue) -> List[ExpenseRecord]:
        return [
            e for e in self._expenses
            if e.amount.greater_than_or_equal(low) and e.amount.less_than_or_equal(high)
        ]

    def get_recurring(self) -> List[ExpenseRecord]:
        return [e for e in self._expenses if e.is_recurring]

    def get_one_time_for_month(self, month: str) -> List[ExpenseRecord]:
        return [e for e in self._expenses if e.is_one_time and e.purchase_month == month]

    def get_capital(self) -> List[ExpenseRecord]:
        return [e for e in self._expenses if e.is_capital]

    def get_tax_deductible(self) -> List[ExpenseRecord]:
        return [e for e in self._expenses if e.is_tax_deductible]

    def get_expenses_for_year(self, year: int) -> List[ExpenseRecord]:
        return [
            e for e in self._expenses
            if any(month_year(a.month) == year for a in e.schedule)
        ]

    def get_top_expenses(self, n: int = 5) -> List[ExpenseRecord]:
        return self.sort("amount", descending=True)[:n]

    def sort(self, by: str = "amount", descending: bool = True) -> List[ExpenseRecord]:
        keys = {
            "amount": lambda e: e.amount.minor,
            "name": lambda e: e.name.lower(),
            "type": lambda e: e.type.value,
        }
        if by not in keys:
            raise ValidationError(f"Unknown sort key {by!r}")
        return sorted(self._expenses, key=keys[by], reverse=descending)

    def group_by_type(self) -> Dict[ExpenseType, List[ExpenseRecord]]:
        return {t: self.get_by_type(t) for t in ExpenseType}

    # ------------------------------------------------------------------
    # per-month amounts

    def get_monthly_cash_out(self, month: str) -> MoneyValue:
        return MoneyValue.total((e.cash_out_for_month(month) for e in self._expenses), self.currency)

    def get_monthly_depreciation(self, month: str) -> MoneyValue:
        return MoneyValue.total((e.depreciation_for_month(month) for e in self._expenses), self.currency)

    def get_monthly_deductible_expense(self, month: str) -> MoneyValue:
        return MoneyValue.total(
            (e.cash_out_for_month(month) for e in self._expenses if e.is_tax_deductible), self.currency
        )

    def get_monthly_cash_out_by_type(self, month: str) -> Dict[ExpenseType, MoneyValue]:
        return {
            t: MoneyValue.total((e.cash_out_for_month(month) for e in self.get_by_type(t)), self.currency)
            for t in ExpenseType
        }

    def get_net_assets_up_to(self, month: str) -> MoneyValue:
        """Net book value of capital records purchased on or before ``month``."""
        return MoneyValue.total((e.net_book_value(month) for e in self.get_capital()), self.currency)

    def monthly_cashflow(self) -> Dict[str, MoneyValue]:
        return {m: self.get_monthly_cash_out(m) for m in self.period.months()}

    def total_expenses(self) -> MoneyValue:
        return self._summary.total_expenses

    def total_cash_out(self) -> MoneyValue:
        return self._summary.total_cash_out_across_period

    def average_monthly_expense(self) -> MoneyValue:
        return self._summary.average_monthly_expense

    # ------------------------------------------------------------------
    # period

    def set_period(self, period: Period) -> "ExpenseBreakdown":
        pool = self._expenses + self._archived
        active = [e.for_period(period) for e in pool if e.occurs_in(period)]
        archived = [e for e in pool if not e.occurs_in(period)]
        newly = [e.id for e in self._expenses if not e.occurs_in(period)]
        if newly:
            logger.warning("Archiving %d expenses outside %s..%s: %s",
                           len(newly), period.start_month, period.end_month, newly)
        logger.info("Expense period set to %s..%s", period.start_month, period.end_month)
        self.period = period
        self._archived = archived
        self._commit(active)
        return self

    def update_period(self, start_month: Optional[str] = None, end_month: Optional[str] = None) -> "ExpenseBreakdown":
        return self.set_period(self.period.with_bounds(start_month, end_month))

    # ------------------------------------------------------------------
    # whole-collection operations

    def validate_currency_consistency(self) -> None:
        for e in self._expenses + self._archived:
            if e.currency != self.currency:
                raise CurrencyMismatchError(
                    f"Expense {e.id} uses {e.currency}, breakdown uses {self.currency}"
                )

    def merge(self, other: "ExpenseBreakdown") -> "ExpenseBreakdown":
        if other.currency != self.currency:
            raise CurrencyMismatchError(f"Cannot merge {other.currency} expenses into {self.currency}")
        existing = {e.id for e in self._expenses}
        incoming = [e.for_period(self.period) for e in other.get_all() if e.id not in existing]
        self._commit(self._expenses + incoming)
        return self

    def clone(self) -> "ExpenseBreakdown":
        return ExpenseBreakdown(self.currency, self._expenses, self.period, archived=self._archived)

    def get_snapshot(self, top_n: int = 5) -> ExpenseBreakdownSnapshot:
        return ExpenseBreakdownSnapshot(
            currency=self.currency,
            period=self.period,
            summary=self._summary,
            by_type={
                t: MoneyValue.total((e.amount for e in records), self.currency)
                for t, records in self.group_by_type().items()
            },
            top_expenses=self.get_top_expenses(top_n),
            net_assets=self.get_net_assets_up_to(self.period.end_month),
        )

    def monthly_summary(self) -> pd.DataFrame:
        """One row per month of the period with cash out split by expense type."""
        rows = []
        for m in self.period.months():
            split = self.get_monthly_cash_out_by_type(m)
            row = {"month": m}
            row.update({t.value: v.to_major() for t, v in split.items()})
            row["total"] = self.get_monthly_cash_out(m).to_major()
            rows.append(row)
        return pd.DataFrame(rows, columns=["month"] + [t.value for t in ExpenseType] + ["total"])

    def to_json(self) -> dict:
        return {
            "currency": self.currency,
            "period": self.period.to_json(),
            "expenses": [e.to_json() for e in self._expenses],
            "archived": [e.to_json() for e in self._archived],
        }

    @classmethod
    def from_json(cls, data: Union[str, dict]) -> "ExpenseBreakdown":
        if isinstance(data, str):
            data = json.loads(data)
        return cls(
            data["currency"],
            [ExpenseRecord.from_json(e) for e in data.get("expenses", [])],
            Period.from_json(data["period"]),
            archived=[ExpenseRecord.from_json(e) for e in data.get("archived", [])],
        )
