"""
Monthly cashflow record produced by the projection fold.

Components are kept separately so that every derived figure (EBITDA, net
income, burn, retained earnings) can be reduced from one run without going
back to the model.

  cash_in     = revenue + funding_in
  cash_out    = expenses + debt_principal + debt_interest
  ending_cash = opening_cash + cash_in - cash_out - taxes
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from core.money import MoneyValue


@dataclass(frozen=True)
class CashflowTaxes:
    vat: MoneyValue
    percentage_tax: MoneyValue
    income_tax: MoneyValue

    @classmethod
    def zero(cls, currency: str) -> "CashflowTaxes":
        z = MoneyValue.zero(currency)
        return cls(z, z, z)

    @property
    def total(self) -> MoneyValue:
        return self.vat.add(self.percentage_tax).add(self.income_tax)

    def add(self, other: "CashflowTaxes") -> "CashflowTaxes":
        return CashflowTaxes(
            self.vat.add(other.vat),
            self.percentage_tax.add(other.percentage_tax),
            self.income_tax.add(other.income_tax),
        )

    def to_json(self) -> dict:
        return {
            "vat": self.vat.to_json(),
            "percentage_tax": self.percentage_tax.to_json(),
            "income_tax": self.income_tax.to_json(),
        }


@dataclass(frozen=True)
class Cashflow:
    month: str
    opening_cash: MoneyValue
    revenue: MoneyValue
    funding_in: MoneyValue
    expenses: MoneyValue
    depreciation: MoneyValue
    debt_principal: MoneyValue
    debt_interest: MoneyValue
    taxes: Optional[CashflowTaxes] = None

    @property
    def currency(self) -> str:
        return self.opening_cash.currency

    @property
    def cash_in(self) -> MoneyValue:
        return self.revenue.add(self.funding_in)

    @property
    def cash_out(self) -> MoneyValue:
        return self.expenses.add(self.debt_principal).add(self.debt_interest)

    @property
    def tax_total(self) -> MoneyValue:
        return self.taxes.total if self.taxes else MoneyValue.zero(self.currency)

    @property
    def net_cashflow(self) -> MoneyValue:
        return self.cash_in.subtract(self.cash_out).subtract(self.tax_total)

    @property
    def ending_cash(self) -> MoneyValue:
        return self.opening_cash.add(self.net_cashflow)

    @property
    def operating_net(self) -> MoneyValue:
        """Revenue less every outflow; funding inflows excluded."""
        return self.revenue.subtract(self.cash_out).subtract(self.tax_total)

    @property
    def ebitda(self) -> MoneyValue:
        return self.revenue.subtract(self.expenses.subtract(self.depreciation))

    @property
    def net_income(self) -> MoneyValue:
        return self.revenue.subtract(self.expenses).subtract(self.debt_interest).subtract(self.tax_total)

    def with_opening_cash(self, opening_cash: MoneyValue) -> "Cashflow":
        return replace(self, opening_cash=opening_cash)

    def with_funding(self, extra: MoneyValue) -> "Cashflow":
        return replace(self, funding_in=self.funding_in.add(extra))

    def to_json(self) -> dict:
        return {
            "month": self.month,
            "opening_cash": self.opening_cash.to_json(),
            "revenue": self.revenue.to_json(),
            "funding_in": self.funding_in.to_json(),
            "expenses": self.expenses.to_json(),
            "depreciation": self.depreciation.to_json(),
            "debt_principal": self.debt_principal.to_json(),
            "debt_interest": self.debt_interest.to_json(),
            "cash_in": self.cash_in.to_json(),
            "cash_out": self.cash_out.to_json(),
            "taxes": self.taxes.to_json() if self.taxes else None,
            "ending_cash": self.ending_cash.to_json(),
        }
