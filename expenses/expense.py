"""
Expense records.

Three shapes share one immutable record:
  - recurring  (Operating + recurrence): amount on every qualifying month of a period
  - one-time   (Variable): amount in a single month
  - capital    (Capital): purchase in one month, straight-line depreciation of
               (amount - residual) over ``depreciation_months``
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from typing import Optional, Tuple, Union

from core.errors import ValidationError
from core.money import MoneyValue
from core.period import Period
from core.schema import RECURRENCE_STEP, ExpenseType, Recurrence
from core.utils import generate_id, months_between, offset_month, require_month


@dataclass(frozen=True)
class MonthlyAllocation:
    month: str
    amount: MoneyValue

    def to_json(self) -> dict:
        return {"month": self.month, "amount": self.amount.to_json()}

    @classmethod
    def from_json(cls, data: dict) -> "MonthlyAllocation":
        return cls(data["month"], MoneyValue.from_json(data["amount"]))


@dataclass(frozen=True)
class CapitalMeta:
    depreciation_months: int
    residual_value: MoneyValue

    def to_json(self) -> dict:
        return {
            "depreciation_months": self.depreciation_months,
            "residual_value": self.residual_value.to_json(),
        }

    @classmethod
    def from_json(cls, data: dict) -> "CapitalMeta":
        return cls(data["depreciation_months"], MoneyValue.from_json(data["residual_value"]))


def recurring_schedule(amount: MoneyValue, recurrence: Recurrence, period: Period) -> Tuple[MonthlyAllocation, ...]:
    step = RECURRENCE_STEP[Recurrence(recurrence)]
    return tuple(
        MonthlyAllocation(m, amount)
        for i, m in enumerate(period.months())
        if i % step == 0
    )


@dataclass(frozen=True)
class ExpenseRecord:
    id: str
    name: str
    type: ExpenseType
    amount: MoneyValue
    schedule: Tuple[MonthlyAllocation, ...] = ()
    recurrence: Optional[Recurrence] = None
    is_tax_deductible: bool = True
    capital: Optional[CapitalMeta] = None

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValidationError("Expense name must not be empty")
        object.__setattr__(self, "type", ExpenseType(self.type))
        if self.recurrence is not None:
            object.__setattr__(self, "recurrence", Recurrence(self.recurrence))
        object.__setattr__(self, "schedule", tuple(self.schedule))
        if not self.amount.is_positive():
            raise ValidationError(f"Expense '{self.name}' amount must be positive, got {self.amount}")
        for alloc in self.schedule:
            require_month(alloc.month, "expense month")
            if alloc.amount.currency != self.amount.currency:
                raise ValidationError(f"Expense '{self.name}' mixes currencies in its schedule")
        if self.type == ExpenseType.CAPITAL:
            self._validate_capital()
        elif self.recurrence is None and len(self.schedule) != 1:
            raise ValidationError(f"One-time expense '{self.name}' needs exactly one scheduled month")

    def _validate_capital(self) -> None:
        meta = self.capital
        if meta is None:
            raise ValidationError(f"Capital expense '{self.name}' needs depreciation terms")
        if meta.depreciation_months < 1:
            raise ValidationError(f"Depreciation months must be >= 1, got {meta.depreciation_months}")
        if meta.residual_value.is_negative() or meta.residual_value.greater_than(self.amount):
            raise ValidationError("Residual value must be between zero and the purchase amount")
        if len(self.schedule) != 1:
            raise ValidationError(f"Capital expense '{self.name}' needs exactly one purchase month")

    # ------------------------------------------------------------------
    # factories

    @classmethod
    def recurring(
        cls,
        name: str,
        amount: MoneyValue,
        period: Period,
        recurrence: Recurrence = Recurrence.MONTHLY,
        is_tax_deductible: bool = True,
        id: Optional[str] = None,
    ) -> "ExpenseRecord":
        return cls(
            id=id or generate_id("exp"),
            name=name,
            type=ExpenseType.OPERATING,
            amount=amount,
            schedule=recurring_schedule(amount, recurrence, period),
            recurrence=recurrence,
            is_tax_deductible=is_tax_deductible,
        )

    @classmethod
    def one_time(
        cls,
        name: str,
        amount: MoneyValue,
        month: str,
        is_tax_deductible: bool = True,
        id: Optional[str] = None,
    ) -> "ExpenseRecord":
        return cls(
            id=id or generate_id("exp"),
            name=name,
            type=ExpenseType.VARIABLE,
            amount=amount,
            schedule=(MonthlyAllocation(month, amount),),
            is_tax_deductible=is_tax_deductible,
        )

    @classmethod
    def capital_purchase(
        cls,
        name: str,
        amount: MoneyValue,
        month: str,
        depreciation_months: int,
        residual_value: Optional[MoneyValue] = None,
        is_tax_deductible: bool = True,
        id: Optional[str] = None,
    ) -> "ExpenseRecord":
        return cls(
            id=id or generate_id("exp"),
            name=name,
            type=ExpenseType.CAPITAL,
            amount=amount,
            schedule=(MonthlyAllocation(month, amount),),
            is_tax_deductible=is_tax_deductible,
            capital=CapitalMeta(depreciation_months, residual_value or MoneyValue.zero(amount.currency)),
        )

    # ------------------------------------------------------------------
    # shape

    @property
    def currency(self) -> str:
        return self.amount.currency

    @property
    def is_capital(self) -> bool:
        return self.type == ExpenseType.CAPITAL

    @property
    def is_recurring(self) -> bool:
        return not self.is_capital and self.recurrence is not None

    @property
    def is_one_time(self) -> bool:
        return not self.is_capital and self.recurrence is None

    @property
    def purchase_month(self) -> Optional[str]:
        """Month of a one-time or capital expense; None for recurring ones."""
        if self.is_recurring:
            return None
        return self.schedule[0].month

    # ------------------------------------------------------------------
    # per-month amounts

    def depreciation_for_month(self, month: str) -> MoneyValue:
        zero = MoneyValue.zero(self.currency)
        if not self.is_capital:
            return zero
        n = self.capital.depreciation_months
        idx = months_between(self.purchase_month, month)
        if idx < 0 or idx >= n:
            return zero
        base = self.amount.subtract(self.capital.residual_value)
        each = base.divide(n)
        if idx == n - 1:
            return base.subtract(each.multiply(n - 1))
        return each

    def cash_out_for_month(self, month: str) -> MoneyValue:
        if self.is_capital:
            return self.depreciation_for_month(month)
        return MoneyValue.total((a.amount for a in self.schedule if a.month == month), self.currency)

    def accumulated_depreciation(self, month: str) -> MoneyValue:
        if not self.is_capital:
            return MoneyValue.zero(self.currency)
        n = self.capital.depreciation_months
        elapsed = min(months_between(self.purchase_month, month) + 1, n)
        return MoneyValue.total(
            (self.depreciation_for_month(offset_month(self.purchase_month, i)) for i in range(max(elapsed, 0))),
            self.currency,
        )

    def net_book_value(self, month: str) -> MoneyValue:
        """Carrying value of a capital asset at the end of ``month``; zero before purchase."""
        if not self.is_capital or month < self.purchase_month:
            return MoneyValue.zero(self.currency)
        return self.amount.subtract(self.accumulated_depreciation(month))

    def occurs_in(self, period: Period) -> bool:
        if self.is_recurring:
            return True
        return period.contains(self.purchase_month)

    # ------------------------------------------------------------------
    # updates

    def for_period(self, period: Period) -> "ExpenseRecord":
        """Recurring records regenerate their schedule; others are returned unchanged."""
        if not self.is_recurring:
            return self
        return replace(self, schedule=recurring_schedule(self.amount, self.recurrence, period))

    def with_amount(self, amount: MoneyValue, period: Optional[Period] = None) -> "ExpenseRecord":
        if self.is_recurring:
            months = [a.month for a in self.schedule]
            schedule = tuple(MonthlyAllocation(m, amount) for m in months)
        else:
            schedule = (MonthlyAllocation(self.purchase_month, amount),)
        updated = replace(self, amount=amount, schedule=schedule)
        return updated.for_period(period) if period is not None else updated

    def scaled(self, factor: float) -> "ExpenseRecord":
        if factor <= 0:
            raise ValidationError(f"Expense scale factor must be positive, got {factor}")
        scaled = self.amount.multiply(factor)
        if self.is_capital:
            meta = CapitalMeta(self.capital.depreciation_months, self.capital.residual_value.multiply(factor))
            return replace(self, amount=scaled, schedule=(MonthlyAllocation(self.purchase_month, scaled),),
                           capital=meta)
        return self.with_amount(scaled)

    def rename(self, name: str) -> "ExpenseRecord":
        return replace(self, name=name)

    # ------------------------------------------------------------------
    # serialization

    def to_json(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "amount": self.amount.to_json(),
            "schedule": [a.to_json() for a in self.schedule],
            "recurrence": self.recurrence.value if self.recurrence else None,
            "is_tax_deductible": self.is_tax_deductible,
            "capital": self.capital.to_json() if self.capital else None,
        }

    @classmethod
    def from_json(cls, data: Union[str, dict]) -> "ExpenseRecord":
        if isinstance(data, str):
            data = json.loads(data)
        try:
            return cls(
                id=data["id"],
                name=data["name"],
                type=ExpenseType(data["type"]),
                amount=MoneyValue.from_json(data["amount"]),
                schedule=tuple(MonthlyAllocation.from_json(a) for a in data.get("schedule", [])),
                recurrence=Recurrence(data["recurrence"]) if data.get("recurrence") else None,
                is_tax_deductible=data.get("is_tax_deductible", True),
                capital=CapitalMeta.from_json(data["capital"]) if data.get("capital") else None,
            )
        except KeyError as exc:
            raise ValidationError(f"Expense JSON missing field {exc}") from exc
