"""
Model quality checks run before projecting.

Catches problems early without raising:
- Currency mismatches across collections
- Opening cash below zero
- Debt maturing after the planning horizon
- Recurring expenses or revenue items with nothing inside the period
- Installment plans that do not add up to the loan amount
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from .errors import CurrencyMismatchError
from .money import MoneyValue


@dataclass
class ValidationResult:
    """Collects all validation warnings/errors for a model."""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def summary(self) -> str:
        lines = []
        if self.errors:
            lines.append(f"ERRORS ({len(self.errors)}):")
            lines.extend(f"  - {e}" for e in self.errors)
        if self.warnings:
            lines.append(f"WARNINGS ({len(self.warnings)}):")
            lines.extend(f"  - {w}" for w in self.warnings)
        if not lines:
            lines.append("All checks passed.")
        return "\n".join(lines)


def validate_model(model) -> ValidationResult:
    """
    Run all checks on a BusinessModel.
    Errors block a meaningful projection; warnings are informational.
    """
    result = ValidationResult()

    # --- Currency ---
    for label, manager in (("expenses", model.expenses), ("revenues", model.revenues), ("funding", model.funding)):
        if manager.currency != model.currency:
            result.errors.append(f"{label} use {manager.currency}, model uses {model.currency}")
            continue
        try:
            manager.validate_currency_consistency()
        except CurrencyMismatchError as exc:
            result.errors.append(str(exc))

    # --- Opening cash ---
    if model.money.is_negative():
        result.warnings.append(f"Opening cash is negative ({model.money}).")

    period = model.period
    # --- Debt terms ---
    for event in model.funding.get_debt():
        if event.maturity_month > period.end_month:
            result.warnings.append(
                f"Debt '{event.name}' matures {event.maturity_month}, after the period end {period.end_month}."
            )
        plan = event.debt.installment_plan
        if plan:
            drawn = MoneyValue.total((e.amount for e in plan), event.currency)
            if drawn != event.amount:
                result.warnings.append(
                    f"Installments of '{event.name}' total {drawn}, loan amount is {event.amount}."
                )

    # --- Empty records ---
    months = period.months()
    for expense in model.expenses.get_all():
        if not any(expense.cash_out_for_month(m).is_positive() for m in months):
            result.warnings.append(f"Expense '{expense.name}' has no cash out inside the period.")
    for item in model.revenues.get_all():
        if not any(item.get_revenue(m).is_positive() for m in months):
            result.warnings.append(f"Revenue item '{item.name}' earns nothing inside the period.")

    if len(model.revenues) == 0 and len(model.expenses) > 0:
        result.warnings.append("Model has expenses but no revenue items.")

    return result
