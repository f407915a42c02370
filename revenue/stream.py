"""
RevenueStream: owns the revenue items of a model.

Mutations go through ``_commit()`` which recomputes cached totals. Averages
are taken over the inclusive month count of the stream's period.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Union

from core.config import DEFAULT_CONFIG
from core.errors import CurrencyMismatchError, NotFoundError, ValidationError
from core.money import MoneyValue
from core.period import Period
from core.schema import CapacityResizeMode, RevenueKind
from core.utils import month_year, offset_month

from .base import RevenueItem
from .items import Product, Service, Subscription, parse_revenue_item

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RevenueSummary:
    total_revenue: MoneyValue
    total_cost: MoneyValue
    total_gross_profit: MoneyValue
    average_monthly_revenue: MoneyValue
    average_monthly_gross_profit: MoneyValue
    item_count: int


class RevenueStream:
    def __init__(
        self,
        currency: str = DEFAULT_CONFIG.default_currency,
        items: Optional[Iterable[RevenueItem]] = None,
        period: Optional[Period] = None,
    ):
        self.currency = currency
        self.period = period or Period.default(DEFAULT_CONFIG.default_horizon_months)
        self._items: List[RevenueItem] = []
        self._summary: Optional[RevenueSummary] = None
        self._commit(list(items or []))

    # ------------------------------------------------------------------
    # cache funnel

    def _commit(self, items: List[RevenueItem]) -> None:
        ids = [i.id for i in items]
        if len(ids) != len(set(ids)):
            raise ValidationError("Duplicate revenue item ids")
        previous = self._items
        self._items = items
        try:
            self.recalculate_cache()
        except Exception:
            self._items = previous
            self.recalculate_cache()
            raise

    def recalculate_cache(self) -> None:
        months = self.period.months()
        revenue = MoneyValue.total((self.get_monthly_revenue(m) for m in months), self.currency)
        cost = MoneyValue.total((self.get_monthly_cost(m) for m in months), self.currency)
        profit = revenue.subtract(cost)
        n = len(months)
        zero = MoneyValue.zero(self.currency)
        self._summary = RevenueSummary(
            total_revenue=revenue,
            total_cost=cost,
            total_gross_profit=profit,
            average_monthly_revenue=revenue.divide(n) if n > 0 else zero,
            average_monthly_gross_profit=profit.divide(n) if n > 0 else zero,
            item_count=len(self._items),
        )
        logger.debug("Revenue cache recalculated: %d items, total %s", len(self._items), revenue)

    @property
    def summary(self) -> RevenueSummary:
        return self._summary

    # ------------------------------------------------------------------
    # CRUD

    def add_item(self, item: RevenueItem) -> "RevenueStream":
        if self.does_exist(item.id):
            raise ValidationError(f"Revenue item {item.id} already exists")
        self._commit(self._items + [item])
        return self

    def _add_validated(self, item: RevenueItem) -> "RevenueStream":
        item.validate_self(True)
        return self.add_item(item)

    def add_product(self, product: Product) -> "RevenueStream":
        return self._add_validated(product)

    def add_service(self, service: Service) -> "RevenueStream":
        return self._add_validated(service)

    def add_subscription(self, subscription: Subscription) -> "RevenueStream":
        return self._add_validated(subscription)

    def remove(self, item_id: str) -> "RevenueStream":
        if not self.does_exist(item_id):
            raise NotFoundError(f"Revenue item {item_id} not found")
        self._commit([i for i in self._items if i.id != item_id])
        return self

    def update_item(self, item_id: str, updated: RevenueItem) -> "RevenueStream":
        if not self.does_exist(item_id):
            raise NotFoundError(f"Revenue item {item_id} not found")
        updated.validate_self(True)
        self._commit([updated if i.id == item_id else i for i in self._items])
        return self

    def clear(self) -> "RevenueStream":
        self._commit([])
        return self

    def get_item_by_id(self, item_id: str) -> Optional[RevenueItem]:
        return next((i for i in self._items if i.id == item_id), None)

    def does_exist(self, item_id: str) -> bool:
        return any(i.id == item_id for i in self._items)

    def get_all(self) -> List[RevenueItem]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def get_by_type(self, kind: Union[RevenueKind, str]) -> List[RevenueItem]:
        k = RevenueKind(kind)
        return [i for i in self._items if i.kind == k]

    def group_by_type(self) -> Dict[RevenueKind, List[RevenueItem]]:
        return {k: self.get_by_type(k) for k in RevenueKind}

    def sort(self, by: str = "revenue", descending: bool = True) -> List[RevenueItem]:
        keys = {
            "revenue": lambda i: i.gross_revenue.minor,
            "profit": lambda i: i.gross_profit.minor,
            "name": lambda i: i.name.lower(),
        }
        if by not in keys:
            raise ValidationError(f"Unknown sort key {by!r}")
        return sorted(self._items, key=keys[by], reverse=descending)

    def get_top_revenue_items(self, n: int = 5) -> List[RevenueItem]:
        return self.sort("revenue", descending=True)[:n]

    # ------------------------------------------------------------------
    # aggregates

    def get_monthly_revenue(self, month: str) -> MoneyValue:
        return MoneyValue.total((i.get_revenue(month) for i in self._items), self.currency)

    def get_monthly_cost(self, month: str) -> MoneyValue:
        return MoneyValue.total((i.get_cost(month) for i in self._items), self.currency)

    def get_monthly_profit(self, month: str) -> MoneyValue:
        return self.get_monthly_revenue(month).subtract(self.get_monthly_cost(month))

    def get_monthly_revenue_series(self) -> Dict[str, MoneyValue]:
        return {m: self.get_monthly_revenue(m) for m in self.period.months()}

    def get_revenue_for_year(self, year: int) -> MoneyValue:
        return MoneyValue.total(
            (self.get_monthly_revenue(m) for m in self.period.months() if month_year(m) == year),
            self.currency,
        )

    def get_total_revenue(self) -> MoneyValue:
        return self._summary.total_revenue

    def get_total_cost(self) -> MoneyValue:
        return self._summary.total_cost

    def get_total_gross_profit(self) -> MoneyValue:
        return self._summary.total_gross_profit

    def get_average_monthly_revenue(self) -> MoneyValue:
        return self._summary.average_monthly_revenue

    def get_average_monthly_gross_profit(self) -> MoneyValue:
        return self._summary.average_monthly_gross_profit

    def get_last_revenue_growth_mom(self) -> Optional[float]:
        """Growth between the last two months of the period; None when the prior month is zero."""
        end = self.period.end_month
        prev = self.get_monthly_revenue(offset_month(end, -1))
        if prev.is_zero():
            return None
        return self.get_monthly_revenue(end).subtract(prev).ratio(prev)

    def get_revenue_growth_rate_cmgr(self) -> Optional[float]:
        """Compound monthly growth rate from the first to the last month of the period."""
        months = self.period.month_count
        if months < 2:
            return None
        start = self.get_monthly_revenue(self.period.start_month)
        if start.is_zero():
            return None
        ratio = self.get_monthly_revenue(self.period.end_month).ratio(start)
        if ratio < 0:
            return None
        return ratio ** (1.0 / (months - 1)) - 1.0

    # ------------------------------------------------------------------
    # period

    def set_period(
        self,
        period: Period,
        mode: CapacityResizeMode = CapacityResizeMode.DEFAULT,
    ) -> "RevenueStream":
        for item in self._items:
            item.recompute_capacity_period(period.start_month, period.end_month, mode)
        logger.info("Revenue period set to %s..%s (%s)", period.start_month, period.end_month,
                    CapacityResizeMode(mode).value)
        self.period = period
        self._commit(self._items)
        return self

    def update_period(self, start_month: Optional[str] = None, end_month: Optional[str] = None,
                      mode: CapacityResizeMode = CapacityResizeMode.DEFAULT) -> "RevenueStream":
        return self.set_period(self.period.with_bounds(start_month, end_month), mode)

    # ------------------------------------------------------------------
    # whole-collection operations

    def validate_currency_consistency(self) -> None:
        for item in self._items:
            found = {item.unit_price.currency, item.unit_cost.currency}
            if found != {self.currency}:
                raise CurrencyMismatchError(
                    f"Revenue item {item.id} uses {sorted(found)}, stream uses {self.currency}"
                )

    def merge(self, other: "RevenueStream") -> "RevenueStream":
        if other.currency != self.currency:
            raise CurrencyMismatchError(f"Cannot merge {other.currency} revenue into {self.currency}")
        existing = {i.id for i in self._items}
        self._commit(self._items + [i.clone() for i in other.get_all() if i.id not in existing])
        return self

    def clone(self) -> "RevenueStream":
        return RevenueStream(self.currency, [i.clone() for i in self._items], self.period)

    def to_json(self) -> dict:
        return {
            "currency": self.currency,
            "period": self.period.to_json(),
            "items": [i.to_json() for i in self._items],
        }

    @classmethod
    def from_json(cls, data: Union[str, dict]) -> "RevenueStream":
        if isinstance(data, str):
            data = json.loads(data)
        return cls(
            data["currency"],
            [parse_revenue_item(i) for i in data.get("items", [])],
            Period.from_json(data["period"]),
        )
