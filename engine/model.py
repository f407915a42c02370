"""
BusinessModel, the aggregate root a MajikRunway owns, and the balance snapshot.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from typing import Optional, Union

from core.config import DEFAULT_CONFIG, TaxConfig
from core.errors import ValidationError
from core.money import MoneyValue
from core.period import Period
from core.schema import BusinessModelType
from core.utils import generate_id
from expenses.breakdown import ExpenseBreakdown
from funding.manager import FundingManager
from revenue.stream import RevenueStream


@dataclass
class BusinessModel:
    id: str
    money: MoneyValue  # opening cash
    expenses: ExpenseBreakdown
    revenues: RevenueStream
    funding: FundingManager
    tax_config: TaxConfig
    period: Period
    type: BusinessModelType = BusinessModelType.HYBRID

    def __post_init__(self):
        self.type = BusinessModelType(self.type)

    @classmethod
    def create(
        cls,
        currency: str = DEFAULT_CONFIG.default_currency,
        opening_cash: Optional[MoneyValue] = None,
        period: Optional[Period] = None,
        tax_config: Optional[TaxConfig] = None,
        type: BusinessModelType = BusinessModelType.HYBRID,
        id: Optional[str] = None,
        config=DEFAULT_CONFIG,
    ) -> "BusinessModel":
        period = period or Period.default(config.default_horizon_months)
        money = opening_cash if opening_cash is not None else MoneyValue.zero(currency)
        if money.currency != currency:
            raise ValidationError(f"Opening cash is {money.currency}, model currency is {currency}")
        return cls(
            id=id or generate_id("model"),
            money=money,
            expenses=ExpenseBreakdown(currency, period=period),
            revenues=RevenueStream(currency, period=period),
            funding=FundingManager(
                currency,
                period=period,
                fully_amortized=config.fully_amortized_debt,
                compound_interest=config.compound_interest,
            ),
            tax_config=tax_config or TaxConfig(),
            period=period,
            type=type,
        )

    @property
    def currency(self) -> str:
        return self.money.currency

    def clone(self) -> "BusinessModel":
        """Structural copy: no mutable state is shared with the original."""
        return replace(
            self,
            expenses=self.expenses.clone(),
            revenues=self.revenues.clone(),
            funding=self.funding.clone(),
        )

    def to_json(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "money": self.money.to_json(),
            "period": self.period.to_json(),
            "tax_config": self.tax_config.to_json(),
            "expenses": self.expenses.to_json(),
            "revenues": self.revenues.to_json(),
            "funding": self.funding.to_json(),
        }

    @classmethod
    def from_json(cls, data: Union[str, dict]) -> "BusinessModel":
        if isinstance(data, str):
            data = json.loads(data)
        return cls(
            id=data["id"],
            money=MoneyValue.from_json(data["money"]),
            expenses=ExpenseBreakdown.from_json(data["expenses"]),
            revenues=RevenueStream.from_json(data["revenues"]),
            funding=FundingManager.from_json(data["funding"]),
            tax_config=TaxConfig.from_json(data["tax_config"]),
            period=Period.from_json(data["period"]),
            type=BusinessModelType(data["type"]),
        )


@dataclass(frozen=True)
class BalanceSnapshot:
    """Simplified balance sheet at the end of ``month``."""
    month: str
    cash: MoneyValue
    assets_net: MoneyValue
    liabilities: MoneyValue
    equity: MoneyValue
    debt_outstanding: MoneyValue
    retained_earnings: MoneyValue

    def to_json(self) -> dict:
        return {
            "month": self.month,
            "cash": self.cash.to_json(),
            "assets_net": self.assets_net.to_json(),
            "liabilities": self.liabilities.to_json(),
            "equity": self.equity.to_json(),
            "debt_outstanding": self.debt_outstanding.to_json(),
            "retained_earnings": self.retained_earnings.to_json(),
        }
