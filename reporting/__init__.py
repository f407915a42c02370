"""
Reporting: derived metrics, health classification, tables and chart traces.
"""

from .aggregator import cashflows_to_dataframe, compare_scenarios
from .health import RunwayHealth, assess_runway_health
from .metrics import RunwayMetrics, compute_runway_metrics

__all__ = [
    "cashflows_to_dataframe",
    "compare_scenarios",
    "RunwayHealth",
    "assess_runway_health",
    "RunwayMetrics",
    "compute_runway_metrics",
]
