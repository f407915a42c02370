"""
Projection engine — deterministic month-by-month cashflow fold and scenario runs.
"""

from .cashflow import Cashflow, CashflowTaxes
from .model import BalanceSnapshot, BusinessModel
from .projection import (
    calculate_runway,
    generate_balance_snapshot,
    generate_monthly_cashflow,
    project_funding,
    run_scenarios,
    simulate_scenario,
)
from .scenario import ScenarioOverride

__all__ = [
    "Cashflow",
    "CashflowTaxes",
    "BalanceSnapshot",
    "BusinessModel",
    "calculate_runway",
    "generate_balance_snapshot",
    "generate_monthly_cashflow",
    "project_funding",
    "run_scenarios",
    "simulate_scenario",
    "ScenarioOverride",
]
