"""
Runway health classifier: rule table over one run's metrics.

Each rule is evaluated independently; the status is the most severe status
among the rules that fired (critical > warning > healthy). Every fired rule
contributes its reason.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional

import pandas as pd

from core.config import DEFAULT_CONFIG, RunwayConfig
from core.schema import HEALTH_RANK, HealthStatus

from .metrics import RunwayMetrics

DEFAULT_REASON = "Runway, burn, and revenue metrics are within safe thresholds"


@dataclass
class RunwayHealth:
    status: HealthStatus
    reasons: List[str] = field(default_factory=list)

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            [{"Status": self.status.value, "Reason": r} for r in self.reasons]
        )


@dataclass(frozen=True)
class HealthInputs:
    metrics: RunwayMetrics
    revenue_growth_mom: Optional[float]
    config: RunwayConfig = DEFAULT_CONFIG

    @property
    def runway(self) -> int:
        return self.metrics.runway_months

    @property
    def burning(self) -> bool:
        return self.metrics.average_net_burn.is_positive()

    @property
    def cash_positive(self) -> bool:
        return self.metrics.average_net_burn.is_negative()

    def runway_at_most(self, months: int) -> bool:
        # runway only means something when cash runs out within the horizon
        return self.metrics.cash_runs_out and self.runway <= months

    @property
    def declining(self) -> bool:
        return self.revenue_growth_mom is not None and self.revenue_growth_mom < 0


@dataclass(frozen=True)
class HealthRule:
    status: HealthStatus
    applies: Callable[[HealthInputs], bool]
    reason: Callable[[HealthInputs], str]


RULES: List[HealthRule] = [
    HealthRule(
        HealthStatus.CRITICAL,
        lambda h: h.runway_at_most(h.config.critical_runway_months),
        lambda h: f"Cash runs out in {h.runway} months",
    ),
    HealthRule(
        HealthStatus.CRITICAL,
        lambda h: h.metrics.average_revenue.is_zero() and h.metrics.average_cash_out.is_positive(),
        lambda h: "No revenue while expenses are ongoing",
    ),
    HealthRule(
        HealthStatus.CRITICAL,
        lambda h: h.burning and h.runway_at_most(h.config.warning_runway_months),
        lambda h: f"Burning {h.metrics.average_net_burn} per month with {h.runway} months of runway",
    ),
    HealthRule(
        HealthStatus.WARNING,
        lambda h: h.runway_at_most(h.config.warning_runway_months)
        and not h.runway_at_most(h.config.critical_runway_months),
        lambda h: f"Runway of {h.runway} months is below {h.config.warning_runway_months} months",
    ),
    HealthRule(
        HealthStatus.WARNING,
        lambda h: h.declining,
        lambda h: f"Revenue declined {abs(h.revenue_growth_mom):.1%} month over month",
    ),
    HealthRule(
        HealthStatus.WARNING,
        lambda h: h.declining and h.runway_at_most(h.config.warning_runway_months),
        lambda h: "Declining revenue with a short runway",
    ),
    HealthRule(
        HealthStatus.WARNING,
        lambda h: h.metrics.burn_efficiency is not None
        and h.metrics.burn_efficiency < h.config.min_burn_efficiency,
        lambda h: f"Burn efficiency {h.metrics.burn_efficiency:.2f} is below {h.config.min_burn_efficiency:.2f}",
    ),
    HealthRule(
        HealthStatus.WARNING,
        lambda h: h.burning and h.metrics.break_even_month is None,
        lambda h: "No break-even month while burning cash",
    ),
    HealthRule(
        HealthStatus.HEALTHY,
        lambda h: h.cash_positive,
        lambda h: "Cash-flow positive",
    ),
    HealthRule(
        HealthStatus.HEALTHY,
        lambda h: h.cash_positive and h.metrics.break_even_month is not None,
        lambda h: f"Profitable since break-even in {h.metrics.break_even_month}",
    ),
]


def assess_runway_health(inputs: HealthInputs, rules: Optional[List[HealthRule]] = None) -> RunwayHealth:
    fired = [r for r in (rules or RULES) if r.applies(inputs)]
    if not fired:
        return RunwayHealth(HealthStatus.HEALTHY, [DEFAULT_REASON])
    status = max((r.status for r in fired), key=lambda s: HEALTH_RANK[s])
    return RunwayHealth(status, [r.reason(inputs) for r in fired])
