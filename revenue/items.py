"""
Concrete revenue items: Product, Service, Subscription.

The set is closed. ``parse_revenue_item`` dispatches on the ``kind`` tag and
rejects anything it does not know instead of guessing.

Each item carries a per-month capacity plan (units, billable hours or
subscribers); revenue = capacity × unit price, direct cost = capacity × unit cost.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from typing import ClassVar, Dict, List, Optional, Type, Union

from core.errors import ValidationError
from core.money import MoneyValue
from core.period import Period
from core.schema import RECURRENCE_STEP, CapacityResizeMode, Recurrence, RevenueKind
from core.utils import generate_id, is_valid_month, month_range, months_between

from .base import MonthlyCapacity, RevenueItem


@dataclass
class CapacityRevenueItem(RevenueItem):
    id: str
    name: str
    unit_price: MoneyValue
    unit_cost: MoneyValue
    capacity_plan: List[MonthlyCapacity] = field(default_factory=list)

    kind: ClassVar[RevenueKind]

    @classmethod
    def constant(
        cls,
        name: str,
        unit_price: MoneyValue,
        units: float,
        period: Period,
        unit_cost: Optional[MoneyValue] = None,
        id: Optional[str] = None,
        **extra,
    ):
        """Flat plan: the same capacity in every month of ``period``."""
        return cls(
            id=id or generate_id(cls.kind.value.lower()),
            name=name,
            unit_price=unit_price,
            unit_cost=unit_cost if unit_cost is not None else MoneyValue.zero(unit_price.currency),
            capacity_plan=[MonthlyCapacity(m, units) for m in period.months()],
            **extra,
        )

    @property
    def currency(self) -> str:
        return self.unit_price.currency

    @property
    def months(self) -> List[str]:
        return [c.month for c in self.capacity_plan]

    def units_for_month(self, month: str) -> float:
        return sum(c.units for c in self.capacity_plan if c.month == month)

    def billed_units(self, month: str) -> float:
        return self.units_for_month(month)

    def get_revenue(self, month: str) -> MoneyValue:
        return self.unit_price.multiply(self.billed_units(month))

    def get_cost(self, month: str) -> MoneyValue:
        return self.unit_cost.multiply(self.units_for_month(month))

    @property
    def gross_revenue(self) -> MoneyValue:
        return MoneyValue.total((self.get_revenue(m) for m in self.months), self.currency)

    @property
    def gross_cost(self) -> MoneyValue:
        return MoneyValue.total((self.get_cost(m) for m in self.months), self.currency)

    def validate_self(self, throw_on_invalid: bool = True) -> List[str]:
        errors = []
        if not self.name or not self.name.strip():
            errors.append("name must not be empty")
        if self.unit_price.is_negative():
            errors.append("unit price must be >= 0")
        if self.unit_cost.is_negative():
            errors.append("unit cost must be >= 0")
        if self.unit_cost.currency != self.unit_price.currency:
            errors.append("unit cost and unit price currencies differ")
        seen = set()
        for c in self.capacity_plan:
            if not is_valid_month(c.month):
                errors.append(f"invalid capacity month {c.month!r}")
            if c.units < 0:
                errors.append(f"capacity for {c.month} must be >= 0")
            if c.month in seen:
                errors.append(f"duplicate capacity month {c.month}")
            seen.add(c.month)
        if errors and throw_on_invalid:
            raise ValidationError(f"{self.kind.value} '{self.name}': " + "; ".join(errors))
        return errors

    def recompute_capacity_period(
        self,
        start_month: str,
        end_month: str,
        mode: CapacityResizeMode = CapacityResizeMode.DEFAULT,
    ) -> None:
        """
        Fit the capacity plan to a new window.

        DEFAULT keeps per-month capacity for months still in the window and
        plans zero for new months. DISTRIBUTE keeps the total capacity and
        spreads it evenly over the new window.
        """
        months = month_range(start_month, end_month)
        if not months:
            raise ValidationError(f"Empty capacity window {start_month}..{end_month}")
        if CapacityResizeMode(mode) == CapacityResizeMode.DISTRIBUTE:
            total = sum(c.units for c in self.capacity_plan)
            each = total / len(months)
            self.capacity_plan = [MonthlyCapacity(m, each) for m in months]
        else:
            existing = {c.month: c.units for c in self.capacity_plan}
            self.capacity_plan = [MonthlyCapacity(m, existing.get(m, 0)) for m in months]

    def scaled(self, volume_factor: float) -> "CapacityRevenueItem":
        if volume_factor < 0:
            raise ValidationError(f"Volume factor must be >= 0, got {volume_factor}")
        return replace(
            self,
            capacity_plan=[MonthlyCapacity(c.month, c.units * volume_factor) for c in self.capacity_plan],
        )

    def clone(self) -> "CapacityRevenueItem":
        return copy.deepcopy(self)

    def _extra_json(self) -> dict:
        return {}

    def to_json(self) -> dict:
        data = {
            "kind": self.kind.value,
            "id": self.id,
            "name": self.name,
            "unit_price": self.unit_price.to_json(),
            "unit_cost": self.unit_cost.to_json(),
            "capacity_plan": [c.to_json() for c in self.capacity_plan],
        }
        data.update(self._extra_json())
        return data

    @classmethod
    def _extra_from_json(cls, data: dict) -> dict:
        return {}

    @classmethod
    def from_json(cls, data: dict):
        return cls(
            id=data["id"],
            name=data["name"],
            unit_price=MoneyValue.from_json(data["unit_price"]),
            unit_cost=MoneyValue.from_json(data["unit_cost"]),
            capacity_plan=[MonthlyCapacity.from_json(c) for c in data.get("capacity_plan", [])],
            **cls._extra_from_json(data),
        )


@dataclass
class Product(CapacityRevenueItem):
    kind: ClassVar[RevenueKind] = RevenueKind.PRODUCT


@dataclass
class Service(CapacityRevenueItem):
    """Billable units (hours by default) × rate."""

    unit_label: str = "hour"

    kind: ClassVar[RevenueKind] = RevenueKind.SERVICE

    def _extra_json(self) -> dict:
        return {"unit_label": self.unit_label}

    @classmethod
    def _extra_from_json(cls, data: dict) -> dict:
        return {"unit_label": data.get("unit_label", "hour")}


@dataclass
class Subscription(CapacityRevenueItem):
    """
    Active subscribers × price per billing cycle.

    Billing happens on the first planned month and every cycle after it;
    direct cost accrues every month.
    """

    billing_cycle: Recurrence = Recurrence.MONTHLY

    kind: ClassVar[RevenueKind] = RevenueKind.SUBSCRIPTION

    def billed_units(self, month: str) -> float:
        if not self.capacity_plan:
            return 0
        first = min(self.months)
        offset = months_between(first, month)
        if offset < 0 or offset % RECURRENCE_STEP[Recurrence(self.billing_cycle)] != 0:
            return 0
        return self.units_for_month(month)

    def _extra_json(self) -> dict:
        return {"billing_cycle": Recurrence(self.billing_cycle).value}

    @classmethod
    def _extra_from_json(cls, data: dict) -> dict:
        return {"billing_cycle": Recurrence(data.get("billing_cycle", Recurrence.MONTHLY.value))}


RevenueItemType = Union[Product, Service, Subscription]

REVENUE_ITEM_TYPES: Dict[RevenueKind, Type[CapacityRevenueItem]] = {
    RevenueKind.PRODUCT: Product,
    RevenueKind.SERVICE: Service,
    RevenueKind.SUBSCRIPTION: Subscription,
}


def parse_revenue_item(data: dict) -> RevenueItemType:
    try:
        kind = RevenueKind(data["kind"])
    except (KeyError, ValueError) as exc:
        raise ValidationError(f"Unknown revenue item kind in {data.get('kind')!r}") from exc
    try:
        return REVENUE_ITEM_TYPES[kind].from_json(data)
    except KeyError as exc:
        raise ValidationError(f"Revenue item JSON missing field {exc}") from exc
