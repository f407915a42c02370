"""
Funding events: equity rounds, grants and debt facilities.

Events are immutable: every update returns a new, re-validated instance.
Debt events carry the terms needed to build an amortization schedule:

  1. Month 0 with an initial payment → principal paydown, no interest
  2. Grace months → interest paid, principal untouched
  3. Fully amortized (or zero-rate) → level payment (PMT) over the remaining
     amortizing months, last month pays off the exact remaining principal
  4. Standard → interest capitalized onto the balance, nothing paid

All money steps round half away from zero to the currency's minor unit.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import List, Optional, Tuple, Union

from core.errors import ValidationError
from core.money import MoneyValue, to_decimal
from core.schema import CompoundingFrequency, FundingType
from core.utils import generate_id, months_between, offset_month, require_month, to_month

_PERIODS_PER_YEAR = {
    CompoundingFrequency.MONTHLY: 12,
    CompoundingFrequency.QUARTERLY: 4,
    CompoundingFrequency.ANNUALLY: 1,
}


def monthly_period_rate(
    annual_rate: float,
    compounding: CompoundingFrequency = CompoundingFrequency.NONE,
    use_compound_interest: bool = True,
) -> Decimal:
    """
    Effective monthly rate for an annual nominal rate.

    Simple (rate/12) when compounding is off or NONE; otherwise the monthly
    rate equivalent to compounding ``periods_per_year`` times a year.
    """
    rate = to_decimal(annual_rate)
    if not use_compound_interest or compounding == CompoundingFrequency.NONE:
        return rate / 12
    n = _PERIODS_PER_YEAR[compounding]
    if n == 12:
        return rate / 12
    return (Decimal(1) + rate / n) ** (Decimal(n) / Decimal(12)) - Decimal(1)


def compute_monthly_payment(principal: MoneyValue, monthly_rate: Decimal, n_months: int) -> MoneyValue:
    """Fully-amortizing level payment (PMT); zero rate degenerates to straight-line."""
    if n_months <= 0:
        return principal
    if monthly_rate == 0:
        return principal.divide(n_months)
    r = to_decimal(monthly_rate)
    factor = r / (Decimal(1) - (Decimal(1) + r) ** -n_months)
    return principal.multiply(factor)


@dataclass(frozen=True)
class InstallmentEntry:
    month: str
    amount: MoneyValue

    def to_json(self) -> dict:
        return {"month": self.month, "amount": self.amount.to_json()}

    @classmethod
    def from_json(cls, data: dict) -> "InstallmentEntry":
        return cls(data["month"], MoneyValue.from_json(data["amount"]))


@dataclass(frozen=True)
class AmortizationEntry:
    """
    One schedule month. ``total`` is the remaining principal after the entry.
    ``capitalized`` marks interest that was added to the balance, not paid.
    """

    month: str
    principal: MoneyValue
    interest: MoneyValue
    total: MoneyValue
    capitalized: bool = False

    @property
    def cash_paid(self) -> MoneyValue:
        if self.capitalized:
            return self.principal
        return self.principal.add(self.interest)

    @property
    def interest_paid(self) -> MoneyValue:
        return MoneyValue.zero(self.interest.currency) if self.capitalized else self.interest


@dataclass(frozen=True)
class DebtMetadata:
    interest_rate: float = 0.0
    maturity_date: Optional[str] = None  # ISO date or YYYY-MM
    initial_payment: Optional[MoneyValue] = None
    installment_plan: Tuple[InstallmentEntry, ...] = ()
    compounding: CompoundingFrequency = CompoundingFrequency.NONE
    grace_period_months: int = 0

    @property
    def maturity_month(self) -> Optional[str]:
        return to_month(self.maturity_date) if self.maturity_date else None

    def to_json(self) -> dict:
        return {
            "interest_rate": self.interest_rate,
            "maturity_date": self.maturity_date,
            "initial_payment": self.initial_payment.to_json() if self.initial_payment else None,
            "installment_plan": [e.to_json() for e in self.installment_plan],
            "compounding": self.compounding.value,
            "grace_period_months": self.grace_period_months,
        }

    @classmethod
    def from_json(cls, data: dict) -> "DebtMetadata":
        initial = data.get("initial_payment")
        return cls(
            interest_rate=data.get("interest_rate", 0.0),
            maturity_date=data.get("maturity_date"),
            initial_payment=MoneyValue.from_json(initial) if initial else None,
            installment_plan=tuple(InstallmentEntry.from_json(e) for e in data.get("installment_plan", [])),
            compounding=CompoundingFrequency(data.get("compounding", CompoundingFrequency.NONE.value)),
            grace_period_months=data.get("grace_period_months", 0),
        )


@dataclass(frozen=True)
class ConvertibleMeta:
    """SAFE / convertible note terms. Informational; not used by projections."""

    valuation_cap: Optional[MoneyValue] = None
    discount_rate: Optional[float] = None
    maturity_month: Optional[str] = None

    def to_json(self) -> dict:
        return {
            "valuation_cap": self.valuation_cap.to_json() if self.valuation_cap else None,
            "discount_rate": self.discount_rate,
            "maturity_month": self.maturity_month,
        }

    @classmethod
    def from_json(cls, data: dict) -> "ConvertibleMeta":
        cap = data.get("valuation_cap")
        return cls(
            valuation_cap=MoneyValue.from_json(cap) if cap else None,
            discount_rate=data.get("discount_rate"),
            maturity_month=data.get("maturity_month"),
        )


@dataclass(frozen=True)
class FundingEvent:
    id: str
    name: str
    type: FundingType
    month: str
    amount: MoneyValue
    debt: Optional[DebtMetadata] = None
    meta: Optional[ConvertibleMeta] = None

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValidationError("Funding event name must not be empty")
        if not isinstance(self.type, FundingType):
            object.__setattr__(self, "type", FundingType(self.type))
        require_month(self.month, "funding month")
        if not self.amount.is_positive():
            raise ValidationError(f"Funding amount must be positive, got {self.amount}")
        if self.meta is not None and self.meta.maturity_month is not None:
            require_month(self.meta.maturity_month, "convertible maturity month")
        if self.type == FundingType.DEBT:
            self._validate_debt()

    def _validate_debt(self) -> None:
        debt = self.debt
        if debt is None or not debt.maturity_date:
            raise ValidationError(f"Debt '{self.name}' requires a maturity date")
        if debt.interest_rate < 0:
            raise ValidationError(f"Interest rate must be >= 0, got {debt.interest_rate}")
        if debt.grace_period_months < 0:
            raise ValidationError(f"Grace period must be >= 0, got {debt.grace_period_months}")
        if months_between(self.month, debt.maturity_month) < 1:
            raise ValidationError(
                f"Maturity {debt.maturity_month} must be after funding month {self.month}"
            )
        if debt.initial_payment is not None:
            if debt.initial_payment.currency != self.amount.currency:
                raise ValidationError("Initial payment currency must match the loan currency")
            if debt.initial_payment.is_negative() or not debt.initial_payment.less_than(self.amount):
                raise ValidationError("Initial payment must be >= 0 and below the loan amount")
        for entry in debt.installment_plan:
            require_month(entry.month, "installment month")
            if not entry.amount.is_positive():
                raise ValidationError(f"Installment for {entry.month} must be positive")

    # ------------------------------------------------------------------
    # factories

    @classmethod
    def equity(cls, name: str, amount: MoneyValue, month: str, id: Optional[str] = None,
               meta: Optional[ConvertibleMeta] = None) -> "FundingEvent":
        return cls(id or generate_id("fund"), name, FundingType.EQUITY, month, amount, meta=meta)

    @classmethod
    def grant(cls, name: str, amount: MoneyValue, month: str, id: Optional[str] = None) -> "FundingEvent":
        return cls(id or generate_id("fund"), name, FundingType.GRANT, month, amount)

    @classmethod
    def debt_facility(
        cls,
        name: str,
        amount: MoneyValue,
        month: str,
        maturity_date: str,
        interest_rate: float = 0.0,
        initial_payment: Optional[MoneyValue] = None,
        id: Optional[str] = None,
        compounding: CompoundingFrequency = CompoundingFrequency.NONE,
        grace_period_months: int = 0,
        installments: bool = False,
    ) -> "FundingEvent":
        """
        Build a debt event. With ``installments=True`` the principal is drawn
        down in straight-line monthly installments (initial payment first)
        instead of arriving in full in ``month``.
        """
        plan: Tuple[InstallmentEntry, ...] = ()
        if installments:
            maturity = to_month(maturity_date)
            plan = _straight_line_plan(amount, month, months_between(month, maturity), initial_payment)
        debt = DebtMetadata(
            interest_rate=interest_rate,
            maturity_date=maturity_date,
            initial_payment=initial_payment if initial_payment is not None and initial_payment.is_positive() else None,
            installment_plan=plan,
            compounding=CompoundingFrequency(compounding),
            grace_period_months=grace_period_months,
        )
        return cls(id or generate_id("fund"), name, FundingType.DEBT, month, amount, debt=debt)

    @classmethod
    def create(cls, name: str, type: Union[FundingType, str], amount: MoneyValue, month: str,
               debt: Optional[DebtMetadata] = None, meta: Optional[ConvertibleMeta] = None,
               id: Optional[str] = None) -> "FundingEvent":
        return cls(id or generate_id("fund"), name, FundingType(type), month, amount, debt=debt, meta=meta)

    # ------------------------------------------------------------------
    # properties

    @property
    def currency(self) -> str:
        return self.amount.currency

    @property
    def is_equity(self) -> bool:
        return self.type == FundingType.EQUITY

    @property
    def is_debt(self) -> bool:
        return self.type == FundingType.DEBT

    @property
    def is_grant(self) -> bool:
        return self.type == FundingType.GRANT

    @property
    def is_repayable(self) -> bool:
        return self.is_debt

    @property
    def interest_rate(self) -> float:
        return self.debt.interest_rate if self.debt else 0.0

    @property
    def maturity_month(self) -> Optional[str]:
        return self.debt.maturity_month if self.debt else None

    @property
    def term_months(self) -> int:
        if not self.is_debt:
            return 0
        return months_between(self.month, self.maturity_month)

    # ------------------------------------------------------------------
    # cash and interest

    def cash_in_for_month(self, month: str) -> MoneyValue:
        zero = MoneyValue.zero(self.currency)
        if self.is_debt and self.debt.installment_plan:
            return MoneyValue.total(
                (e.amount for e in self.debt.installment_plan if e.month == month), self.currency
            )
        return self.amount if month == self.month else zero

    def compute_interest(self, months: Optional[int] = None) -> MoneyValue:
        """Simple interest: amount × rate / 12 × months (defaults to the full term)."""
        if not self.is_debt:
            return MoneyValue.zero(self.currency)
        n = self.term_months if months is None else months
        return self.amount.multiply(to_decimal(self.interest_rate) / 12 * n)

    def compute_compound_interest(self, months: Optional[int] = None) -> MoneyValue:
        if not self.is_debt:
            return MoneyValue.zero(self.currency)
        if self.debt.compounding == CompoundingFrequency.NONE:
            return self.compute_interest(months)
        n = self.term_months if months is None else months
        per_year = _PERIODS_PER_YEAR[self.debt.compounding]
        rate = to_decimal(self.interest_rate) / per_year
        grown = self.amount.compound(rate, Decimal(per_year) * n / 12)
        return grown.subtract(self.amount)

    def total_with_interest(self, compound: bool = False, months: Optional[int] = None) -> MoneyValue:
        interest = self.compute_compound_interest(months) if compound else self.compute_interest(months)
        return self.amount.add(interest)

    def generate_amortization_schedule(
        self,
        fully_amortized: bool = False,
        use_compound_interest: bool = True,
    ) -> List[AmortizationEntry]:
        if not self.is_debt:
            return []
        debt = self.debt
        currency = self.currency
        zero = MoneyValue.zero(currency)
        total_months = self.term_months
        rate = monthly_period_rate(debt.interest_rate, debt.compounding, use_compound_interest)

        initial = debt.initial_payment or zero
        offset = 1 if initial.is_positive() else 0
        grace_end = offset + debt.grace_period_months
        amortizing = fully_amortized or debt.interest_rate == 0
        amortizing_months = max(total_months - grace_end, 0)

        remaining = self.amount
        payment: Optional[MoneyValue] = None
        schedule: List[AmortizationEntry] = []

        for i in range(total_months):
            month = offset_month(self.month, i)

            if i == 0 and offset:
                principal = initial if initial.less_than(remaining) else remaining
                remaining = remaining.subtract(principal)
                schedule.append(AmortizationEntry(month, principal, zero, remaining))
                continue

            interest = remaining.multiply(rate)

            if i < grace_end:
                schedule.append(AmortizationEntry(month, zero, interest, remaining))
                continue

            if not amortizing:
                remaining = remaining.add(interest)
                schedule.append(AmortizationEntry(month, zero, interest, remaining, capitalized=True))
                continue

            if payment is None:
                payment = compute_monthly_payment(remaining, rate, amortizing_months)
            if i == total_months - 1:
                principal = remaining
            else:
                principal = payment.subtract(interest).max_zero()
                if principal.greater_than(remaining):
                    principal = remaining
            remaining = remaining.subtract(principal).max_zero()
            schedule.append(AmortizationEntry(month, principal, interest, remaining))

        return schedule

    # ------------------------------------------------------------------
    # updates

    def with_amount(self, amount: MoneyValue) -> "FundingEvent":
        return replace(self, amount=amount)

    def rename(self, name: str) -> "FundingEvent":
        return replace(self, name=name)

    def reschedule(self, month: str) -> "FundingEvent":
        return replace(self, month=month)

    # ------------------------------------------------------------------
    # serialization

    def to_json(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "month": self.month,
            "amount": self.amount.to_json(),
            "debt": self.debt.to_json() if self.debt else None,
            "meta": self.meta.to_json() if self.meta else None,
        }

    @classmethod
    def from_json(cls, data: Union[str, dict]) -> "FundingEvent":
        if isinstance(data, str):
            data = json.loads(data)
        try:
            return cls(
                id=data["id"],
                name=data["name"],
                type=FundingType(data["type"]),
                month=data["month"],
                amount=MoneyValue.from_json(data["amount"]),
                debt=DebtMetadata.from_json(data["debt"]) if data.get("debt") else None,
                meta=ConvertibleMeta.from_json(data["meta"]) if data.get("meta") else None,
            )
        except KeyError as exc:
            raise ValidationError(f"Funding event JSON missing field {exc}") from exc


def _straight_line_plan(
    amount: MoneyValue,
    month: str,
    term_months: int,
    initial_payment: Optional[MoneyValue],
) -> Tuple[InstallmentEntry, ...]:
    plan: List[InstallmentEntry] = []
    remaining = amount
    start = 0
    if initial_payment is not None and initial_payment.is_positive():
        plan.append(InstallmentEntry(month, initial_payment))
        remaining = remaining.subtract(initial_payment)
        start = 1
    count = term_months - start
    if count <= 0:
        if remaining.is_positive():
            plan.append(InstallmentEntry(month, remaining))
        return tuple(plan)
    each = remaining.divide(count)
    drawn = MoneyValue.zero(amount.currency)
    for k in range(count):
        part = remaining.subtract(drawn) if k == count - 1 else each
        drawn = drawn.add(part)
        if part.is_positive():
            plan.append(InstallmentEntry(offset_month(month, start + k), part))
    return tuple(plan)
