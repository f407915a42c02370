"""
Base classes for revenue items.
Just the interface; the concrete union lives in items.py.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from core.money import MoneyValue
from core.schema import CapacityResizeMode, RevenueKind


@dataclass(frozen=True)
class MonthlyCapacity:
    """Units sold / hours billed / active subscribers planned for one month."""
    month: str
    units: float

    def to_json(self) -> dict:
        return {"month": self.month, "units": self.units}

    @classmethod
    def from_json(cls, data: dict) -> "MonthlyCapacity":
        return cls(data["month"], data["units"])


class RevenueItem:
    """Interface for anything that produces revenue and direct cost per month."""

    kind: RevenueKind
    id: str
    name: str

    @property
    def currency(self) -> str:
        raise NotImplementedError

    @property
    def gross_revenue(self) -> MoneyValue:
        raise NotImplementedError

    @property
    def gross_cost(self) -> MoneyValue:
        raise NotImplementedError

    @property
    def gross_profit(self) -> MoneyValue:
        return self.gross_revenue.subtract(self.gross_cost)

    def get_revenue(self, month: str) -> MoneyValue:
        raise NotImplementedError

    def get_cost(self, month: str) -> MoneyValue:
        raise NotImplementedError

    def get_profit(self, month: str) -> MoneyValue:
        return self.get_revenue(month).subtract(self.get_cost(month))

    def validate_self(self, throw_on_invalid: bool = True) -> List[str]:
        raise NotImplementedError

    def recompute_capacity_period(
        self,
        start_month: str,
        end_month: str,
        mode: CapacityResizeMode = CapacityResizeMode.DEFAULT,
    ) -> None:
        raise NotImplementedError

    def scaled(self, volume_factor: float) -> "RevenueItem":
        raise NotImplementedError

    def clone(self) -> "RevenueItem":
        raise NotImplementedError

    def to_json(self) -> dict:
        raise NotImplementedError
