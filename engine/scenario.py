"""
Scenario overrides: what-if deltas applied to a structural copy of a model.

The canonical model is never touched: ``apply_overrides`` clones first and
every delta rebuilds the affected collection on the clone.

  revenue_multiplier  scales planned volume (units / hours / subscribers)
  expense_multiplier  scales every expense amount
  expense_offset      adds a flat monthly operating expense (major units)
  opening_cash_delta  shifts opening cash (major units, may be negative)
  planned_funding     adds hypothetical funding events
  tax_config          replaces the tax regime
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from core.config import TaxConfig
from core.money import MoneyValue
from core.schema import Recurrence
from expenses.breakdown import ExpenseBreakdown
from expenses.expense import ExpenseRecord
from funding.events import FundingEvent
from revenue.stream import RevenueStream

from .model import BusinessModel

logger = logging.getLogger(__name__)


class ScenarioOverride(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str = "scenario"
    revenue_multiplier: float = Field(default=1.0, ge=0.0)
    expense_multiplier: float = Field(default=1.0, gt=0.0)
    expense_offset: float = Field(default=0.0, ge=0.0)
    opening_cash_delta: float = 0.0
    planned_funding: List[FundingEvent] = Field(default_factory=list)
    tax_config: Optional[TaxConfig] = None


def _apply(model: BusinessModel, override: ScenarioOverride) -> None:
    currency = model.currency

    if override.revenue_multiplier != 1.0:
        stream = model.revenues
        model.revenues = RevenueStream(
            currency,
            [item.scaled(override.revenue_multiplier) for item in stream.get_all()],
            stream.period,
        )

    if override.expense_multiplier != 1.0 or override.expense_offset > 0:
        breakdown = model.expenses
        records = [e.scaled(override.expense_multiplier) if override.expense_multiplier != 1.0 else e
                   for e in breakdown.get_all()]
        if override.expense_offset > 0:
            records.append(ExpenseRecord.recurring(
                f"Scenario adjustment: {override.name}",
                MoneyValue.from_major(override.expense_offset, currency),
                breakdown.period,
                Recurrence.MONTHLY,
            ))
        model.expenses = ExpenseBreakdown(currency, records, breakdown.period, archived=breakdown.archived)

    if override.opening_cash_delta:
        model.money = model.money.add(MoneyValue.from_major(override.opening_cash_delta, currency))

    for event in override.planned_funding:
        model.funding.add(event)

    if override.tax_config is not None:
        model.tax_config = override.tax_config


def apply_overrides(model: BusinessModel, overrides: Sequence[ScenarioOverride]) -> BusinessModel:
    """Return a clone of ``model`` with every override applied in order."""
    scenario = model.clone()
    for override in overrides:
        logger.debug("Applying scenario override %r", override.name)
        _apply(scenario, override)
    return scenario
