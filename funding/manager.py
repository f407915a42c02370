"""
FundingManager: owns the funding events of a model and keeps cached totals.

Every mutation goes through ``_commit()``, which replaces the event list and
recomputes the cache (totals, ratios, amortization schedules) in one place.

Period changes archive events that fall outside the new window instead of
deleting them; archived events come back when a later period covers them.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple, Union

import pandas as pd

from core.config import DEFAULT_CONFIG
from core.errors import CurrencyMismatchError, NotFoundError, ValidationError
from core.money import MoneyValue
from core.period import Period
from core.schema import CompoundingFrequency, FundingType
from core.utils import month_year, offset_month, require_month

from .events import AmortizationEntry, DebtMetadata, FundingEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FundingSummary:
    """Cached aggregates over the active events."""
    total_equity: MoneyValue
    total_debt: MoneyValue
    total_grants: MoneyValue
    total_funding: MoneyValue
    average_monthly_funding: MoneyValue
    debt_ratio: float
    non_repayable_ratio: float
    event_count: int


@dataclass(frozen=True)
class DebtService:
    principal: MoneyValue
    interest: MoneyValue

    @property
    def total(self) -> MoneyValue:
        return self.principal.add(self.interest)


@dataclass(frozen=True)
class FundingSnapshot:
    currency: str
    period: Period
    total_funding: MoneyValue
    total_equity: MoneyValue
    total_debt: MoneyValue
    total_grants: MoneyValue
    total_non_repayable: MoneyValue
    outstanding_debt: MoneyValue
    total_debt_interest: MoneyValue
    debt_ratio: float
    equity_percentage: float
    event_count: int
    alerts: List[str] = field(default_factory=list)


class FundingManager:
    def __init__(
        self,
        currency: str = DEFAULT_CONFIG.default_currency,
        events: Optional[Iterable[FundingEvent]] = None,
        period: Optional[Period] = None,
        *,
        fully_amortized: bool = DEFAULT_CONFIG.fully_amortized_debt,
        compound_interest: bool = DEFAULT_CONFIG.compound_interest,
        archived: Optional[Iterable[FundingEvent]] = None,
    ):
        self.currency = currency
        self.period = period or Period.default(DEFAULT_CONFIG.default_horizon_months)
        self.fully_amortized = fully_amortized
        self.compound_interest = compound_interest
        self._archived: List[FundingEvent] = list(archived or [])
        self._events: List[FundingEvent] = []
        self._schedules: Dict[str, List[AmortizationEntry]] = {}
        self._summary: Optional[FundingSummary] = None
        self._commit(list(events or []))

    # ------------------------------------------------------------------
    # cache funnel

    def _commit(self, events: List[FundingEvent]) -> None:
        ids = [e.id for e in events]
        if len(ids) != len(set(ids)):
            raise ValidationError("Duplicate funding event ids")
        previous = self._events
        self._events = events
        try:
            self.recalculate_cache()
        except Exception:
            self._events = previous
            self.recalculate_cache()
            raise

    def recalculate_cache(self) -> None:
        zero = MoneyValue.zero(self.currency)
        totals = {t: zero for t in FundingType}
        for e in self._events:
            totals[e.type] = totals[e.type].add(e.amount)
        total = MoneyValue.total(totals.values(), self.currency)
        months = self.period.month_count
        self._summary = FundingSummary(
            total_equity=totals[FundingType.EQUITY],
            total_debt=totals[FundingType.DEBT],
            total_grants=totals[FundingType.GRANT],
            total_funding=total,
            average_monthly_funding=total.divide(months) if months > 0 else zero,
            debt_ratio=totals[FundingType.DEBT].ratio(total) if total.is_positive() else 0.0,
            non_repayable_ratio=(
                totals[FundingType.EQUITY].add(totals[FundingType.GRANT]).ratio(total)
                if total.is_positive() else 0.0
            ),
            event_count=len(self._events),
        )
        self._schedules = {
            e.id: e.generate_amortization_schedule(self.fully_amortized, self.compound_interest)
            for e in self._events
            if e.is_debt
        }
        logger.debug("Funding cache recalculated: %d events, total %s", len(self._events), total)

    @property
    def summary(self) -> FundingSummary:
        return self._summary

    @property
    def archived(self) -> List[FundingEvent]:
        return list(self._archived)

    # ------------------------------------------------------------------
    # CRUD

    def add(self, event: FundingEvent) -> "FundingManager":
        if self.does_exist(event.id):
            raise ValidationError(f"Funding event {event.id} already exists")
        self._commit(self._events + [event])
        return self

    def remove(self, event_id: str) -> "FundingManager":
        if not self.does_exist(event_id):
            raise NotFoundError(f"Funding event {event_id} not found")
        self._commit([e for e in self._events if e.id != event_id])
        return self

    def update(self, event_id: str, updated: FundingEvent) -> "FundingManager":
        if not self.does_exist(event_id):
            raise NotFoundError(f"Funding event {event_id} not found")
        self._commit([updated if e.id == event_id else e for e in self._events])
        return self

    def clear(self) -> "FundingManager":
        self._archived = []
        self._commit([])
        return self

    def get_by_id(self, event_id: str) -> Optional[FundingEvent]:
        return next((e for e in self._events if e.id == event_id), None)

    def does_exist(self, event_id: str) -> bool:
        return any(e.id == event_id for e in self._events)

    def get_all(self) -> List[FundingEvent]:
        return list(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def add_equity(self, name: str, amount: MoneyValue, month: str, id: Optional[str] = None) -> "FundingManager":
        return self.add(FundingEvent.equity(name, amount, month, id=id))

    def add_grant(self, name: str, amount: MoneyValue, month: str, id: Optional[str] = None) -> "FundingManager":
        return self.add(FundingEvent.grant(name, amount, month, id=id))

    def add_debt(
        self,
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
    ) -> "FundingManager":
        return self.add(FundingEvent.debt_facility(
            name, amount, month, maturity_date,
            interest_rate=interest_rate,
            initial_payment=initial_payment,
            id=id,
            compounding=compounding,
            grace_period_months=grace_period_months,
            installments=installments,
        ))

    def add_funding(
        self,
        name: str,
        type: Union[FundingType, str],
        amount: MoneyValue,
        month: str,
        debt: Optional[DebtMetadata] = None,
        id: Optional[str] = None,
    ) -> "FundingManager":
        return self.add(FundingEvent.create(name, type, amount, month, debt=debt, id=id))

    # ------------------------------------------------------------------
    # filters

    def get_by_type(self, type: Union[FundingType, str]) -> List[FundingEvent]:
        t = FundingType(type)
        return [e for e in self._events if e.type == t]

    def get_equity(self) -> List[FundingEvent]:
        return self.get_by_type(FundingType.EQUITY)

    def get_debt(self) -> List[FundingEvent]:
        return self.get_by_type(FundingType.DEBT)

    def get_grants(self) -> List[FundingEvent]:
        return self.get_by_type(FundingType.GRANT)

    def get_for_month(self, month: str) -> List[FundingEvent]:
        return [e for e in self._events if e.month == month]

    def get_funding_between(self, start: str, end: str) -> List[FundingEvent]:
        return [e for e in self._events if start <= e.month <= end]

    def get_funding_for_year(self, year: int) -> List[FundingEvent]:
        return [e for e in self._events if month_year(e.month) == year]

    def get_top_funding(self, n: int = 5) -> List[FundingEvent]:
        return sorted(self._events, key=lambda e: e.amount.minor, reverse=True)[:n]

    def sort(self, by: str = "month", descending: bool = False) -> List[FundingEvent]:
        keys = {
            "month": lambda e: e.month,
            "amount": lambda e: e.amount.minor,
            "name": lambda e: e.name.lower(),
        }
        if by not in keys:
            raise ValidationError(f"Unknown sort key {by!r}")
        return sorted(self._events, key=keys[by], reverse=descending)

    def group_by_type(self) -> Dict[FundingType, List[FundingEvent]]:
        return {t: self.get_by_type(t) for t in FundingType}

    # ------------------------------------------------------------------
    # totals

    def _zero(self) -> MoneyValue:
        return MoneyValue.zero(self.currency)

    def get_monthly_cash_in(self, month: str) -> MoneyValue:
        return MoneyValue.total((e.cash_in_for_month(month) for e in self._events), self.currency)

    def total_funding(self) -> MoneyValue:
        return self._summary.total_funding

    def total_funding_for_month(self, month: str) -> MoneyValue:
        return MoneyValue.total((e.amount for e in self.get_for_month(month)), self.currency)

    def total_debt(self) -> MoneyValue:
        return self._summary.total_debt

    def total_non_repayable(self) -> MoneyValue:
        return self._summary.total_equity.add(self._summary.total_grants)

    def total_non_repayable_up_to(self, month: str) -> MoneyValue:
        return MoneyValue.total(
            (e.amount for e in self._events if not e.is_repayable and e.month <= month), self.currency
        )

    def total_by_type_until(self, type: Union[FundingType, str], month: str) -> MoneyValue:
        return MoneyValue.total((e.amount for e in self.get_by_type(type) if e.month <= month), self.currency)

    def funding_breakdown(self) -> Dict[FundingType, MoneyValue]:
        s = self._summary
        return {
            FundingType.EQUITY: s.total_equity,
            FundingType.DEBT: s.total_debt,
            FundingType.GRANT: s.total_grants,
        }

    def debt_ratio(self) -> float:
        return self._summary.debt_ratio

    def check_debt_limit(self, max_ratio: float = DEFAULT_CONFIG.max_debt_ratio) -> bool:
        """True while the debt share of total funding stays within ``max_ratio``."""
        return self.debt_ratio() <= max_ratio

    def equity_percentage(self) -> float:
        total = self._summary.total_funding
        if not total.is_positive():
            return 0.0
        return self._summary.total_equity.ratio(total) * 100.0

    # ------------------------------------------------------------------
    # debt

    def debt_amortization_schedules(self) -> Dict[str, List[AmortizationEntry]]:
        return {k: list(v) for k, v in self._schedules.items()}

    def get_schedule(self, event_id: str) -> List[AmortizationEntry]:
        if event_id not in self._schedules:
            raise NotFoundError(f"No amortization schedule for {event_id}")
        return list(self._schedules[event_id])

    def get_monthly_debt_service(self, month: str) -> DebtService:
        principal = self._zero()
        interest = self._zero()
        for schedule in self._schedules.values():
            for entry in schedule:
                if entry.month == month:
                    principal = principal.add(entry.principal)
                    interest = interest.add(entry.interest_paid)
        return DebtService(principal, interest)

    def get_outstanding_debt_up_to(self, month: str) -> MoneyValue:
        """Remaining principal per the last schedule entry at or before ``month``."""
        outstanding = self._zero()
        for event_id, schedule in self._schedules.items():
            event = self.get_by_id(event_id)
            if event.month > month:
                continue
            past = [entry for entry in schedule if entry.month <= month]
            if past:
                outstanding = outstanding.add(past[-1].total)
            else:
                outstanding = outstanding.add(event.amount)
        return outstanding

    def get_total_outstanding_debt_across_period(self) -> MoneyValue:
        return self.get_outstanding_debt_up_to(self.period.end_month)

    def get_total_debt_paid_across_period(self) -> MoneyValue:
        return MoneyValue.total(
            (
                entry.cash_paid
                for schedule in self._schedules.values()
                for entry in schedule
                if self.period.contains(entry.month)
            ),
            self.currency,
        )

    def total_debt_service(self) -> MoneyValue:
        return MoneyValue.total(
            (entry.cash_paid for schedule in self._schedules.values() for entry in schedule),
            self.currency,
        )

    def total_debt_interest(self) -> MoneyValue:
        return MoneyValue.total(
            (entry.interest for schedule in self._schedules.values() for entry in schedule),
            self.currency,
        )

    # ------------------------------------------------------------------
    # series

    def monthly_net_cashflow(self) -> Dict[str, MoneyValue]:
        """Funding cash-in minus debt service, per month of the period."""
        return {
            m: self.get_monthly_cash_in(m).subtract(self.get_monthly_debt_service(m).total)
            for m in self.period.months()
        }

    def cumulative_funding(self) -> Dict[str, MoneyValue]:
        running = self._zero()
        out = {}
        for m in self.period.months():
            running = running.add(self.get_monthly_cash_in(m))
            out[m] = running
        return out

    def cumulative_monthly_cashflow(self) -> Dict[str, MoneyValue]:
        running = self._zero()
        out = {}
        for m, net in self.monthly_net_cashflow().items():
            running = running.add(net)
            out[m] = running
        return out

    def monthly_cashflow_by_type(self) -> Dict[str, Dict[FundingType, MoneyValue]]:
        out = {}
        for m in self.period.months():
            row = {t: self._zero() for t in FundingType}
            for e in self._events:
                row[e.type] = row[e.type].add(e.cash_in_for_month(m))
            out[m] = row
        return out

    def monthly_growth_rate(self) -> Dict[str, Optional[float]]:
        """Month-over-month change of cumulative funding; None where the base is zero."""
        cumulative = list(self.cumulative_funding().items())
        out: Dict[str, Optional[float]] = {}
        for i, (m, value) in enumerate(cumulative):
            if i == 0:
                out[m] = None
                continue
            prev = cumulative[i - 1][1]
            out[m] = value.subtract(prev).ratio(prev) if prev.is_positive() else None
        return out

    def monthly_funding_weights(self) -> Dict[str, float]:
        total = self._summary.total_funding
        out = {}
        for m in self.period.months():
            cash = self.get_monthly_cash_in(m)
            out[m] = cash.ratio(total) if total.is_positive() else 0.0
        return out

    def project_funding(self, months: int, monthly_amount: MoneyValue) -> Dict[str, MoneyValue]:
        """Cumulative funding extended ``months`` beyond the period at a flat monthly rate."""
        if months <= 0:
            raise ValidationError(f"Projection months must be positive, got {months}")
        running = self.cumulative_funding()
        last = running[self.period.end_month] if running else self._zero()
        out = {}
        for i in range(1, months + 1):
            last = last.add(monthly_amount)
            out[offset_month(self.period.end_month, i)] = last
        return out

    # ------------------------------------------------------------------
    # runway

    def estimate_runway(self, monthly_burn: MoneyValue) -> float:
        funds = self.total_non_repayable()
        if not monthly_burn.is_positive():
            return float("inf")
        if funds.is_zero():
            return 0.0
        return funds.ratio(monthly_burn)

    def estimate_net_runway(self, monthly_burn: MoneyValue) -> float:
        net = self.total_non_repayable().subtract(self.total_debt_service())
        if not monthly_burn.is_positive():
            return float("inf")
        if not net.is_positive():
            return 0.0
        return net.ratio(monthly_burn)

    def funding_alerts(self, as_of: str, config=DEFAULT_CONFIG) -> List[str]:
        require_month(as_of, "as-of month")
        alerts = []
        if not self.check_debt_limit(config.max_debt_ratio):
            alerts.append(f"Debt ratio {self.debt_ratio():.0%} exceeds {config.max_debt_ratio:.0%}")
        for e in self.get_debt():
            if e.maturity_month <= as_of:
                alerts.append(f"Debt '{e.name}' matured in {e.maturity_month}")
        low = MoneyValue.from_major(config.low_funding_threshold, self.currency)
        upcoming = [e for e in self._events if e.month > as_of]
        if not upcoming and self.total_non_repayable_up_to(as_of).less_than(low):
            alerts.append("No upcoming funding and non-repayable funds are low")
        return alerts

    # ------------------------------------------------------------------
    # period

    def set_period(self, period: Period) -> "FundingManager":
        pool = self._events + self._archived
        active = [e for e in pool if period.contains(e.month)]
        archived = [e for e in pool if not period.contains(e.month)]
        newly = [e.id for e in self._events if not period.contains(e.month)]
        if newly:
            logger.warning("Archiving %d funding events outside %s..%s: %s",
                           len(newly), period.start_month, period.end_month, newly)
        logger.info("Funding period set to %s..%s", period.start_month, period.end_month)
        self.period = period
        self._archived = archived
        self._commit(active)
        return self

    def update_period(self, start_month: Optional[str] = None, end_month: Optional[str] = None) -> "FundingManager":
        return self.set_period(self.period.with_bounds(start_month, end_month))

    # ------------------------------------------------------------------
    # whole-collection operations

    def validate_currency_consistency(self) -> None:
        for e in self._events + self._archived:
            currencies = {e.amount.currency}
            if e.debt and e.debt.initial_payment:
                currencies.add(e.debt.initial_payment.currency)
            if currencies != {self.currency}:
                raise CurrencyMismatchError(
                    f"Funding event {e.id} uses {sorted(currencies)}, manager uses {self.currency}"
                )

    def clone(self) -> "FundingManager":
        return FundingManager(
            self.currency,
            self._events,
            self.period,
            fully_amortized=self.fully_amortized,
            compound_interest=self.compound_interest,
            archived=self._archived,
        )

    def merge(self, other: "FundingManager") -> "FundingManager":
        if other.currency != self.currency:
            raise CurrencyMismatchError(f"Cannot merge {other.currency} funding into {self.currency}")
        existing = {e.id for e in self._events}
        self._commit(self._events + [e for e in other.get_all() if e.id not in existing])
        return self

    def merge_by_name_and_type(self) -> "FundingManager":
        """Collapse events sharing name and type into one, summing amounts (earliest month kept)."""
        merged: Dict[Tuple[str, FundingType], FundingEvent] = {}
        for e in sorted(self._events, key=lambda ev: ev.month):
            key = (e.name, e.type)
            if key in merged and not e.is_debt:
                merged[key] = merged[key].with_amount(merged[key].amount.add(e.amount))
            elif key in merged:
                merged[(e.name, e.type, e.id)] = e
            else:
                merged[key] = e
        self._commit(list(merged.values()))
        return self

    def compare_totals(self, other: "FundingManager") -> Dict[FundingType, MoneyValue]:
        """Difference ``self - other`` per funding type."""
        mine = self.funding_breakdown()
        theirs = other.funding_breakdown()
        return {t: mine[t].subtract(theirs[t]) for t in FundingType}

    def get_dashboard_snapshot(self, as_of: Optional[str] = None) -> FundingSnapshot:
        s = self._summary
        return FundingSnapshot(
            currency=self.currency,
            period=self.period,
            total_funding=s.total_funding,
            total_equity=s.total_equity,
            total_debt=s.total_debt,
            total_grants=s.total_grants,
            total_non_repayable=self.total_non_repayable(),
            outstanding_debt=self.get_total_outstanding_debt_across_period(),
            total_debt_interest=self.total_debt_interest(),
            debt_ratio=s.debt_ratio,
            equity_percentage=self.equity_percentage(),
            event_count=s.event_count,
            alerts=self.funding_alerts(as_of) if as_of else [],
        )

    # ------------------------------------------------------------------
    # tables and serialization

    def to_dataframe(self) -> pd.DataFrame:
        rows = [
            {
                "id": e.id,
                "name": e.name,
                "type": e.type.value,
                "month": e.month,
                "amount": e.amount.to_major(),
                "currency": e.currency,
                "interest_rate": e.interest_rate,
                "maturity_month": e.maturity_month,
            }
            for e in self.sort("month")
        ]
        return pd.DataFrame(
            rows,
            columns=["id", "name", "type", "month", "amount", "currency", "interest_rate", "maturity_month"],
        )

    def to_csv(self, path=None) -> Optional[str]:
        return self.to_dataframe().to_csv(path, index=False)

    def to_json(self) -> dict:
        return {
            "currency": self.currency,
            "period": self.period.to_json(),
            "fully_amortized": self.fully_amortized,
            "compound_interest": self.compound_interest,
            "funding_events": [e.to_json() for e in self._events],
            "archived": [e.to_json() for e in self._archived],
        }

    @classmethod
    def from_json(cls, data: Union[str, dict]) -> "FundingManager":
        if isinstance(data, str):
            data = json.loads(data)
        return cls(
            data["currency"],
            [FundingEvent.from_json(e) for e in data.get("funding_events", [])],
            Period.from_json(data["period"]),
            fully_amortized=data.get("fully_amortized", DEFAULT_CONFIG.fully_amortized_debt),
            compound_interest=data.get("compound_interest", DEFAULT_CONFIG.compound_interest),
            archived=[FundingEvent.from_json(e) for e in data.get("archived", [])],
        )
