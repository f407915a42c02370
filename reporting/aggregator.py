"""
Tabular views of cashflow runs and scenario comparisons.

Money columns are converted to major-unit floats for display; the runs
themselves keep exact minor units.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Sequence, Tuple

import numpy as np
import pandas as pd

from engine.cashflow import Cashflow
from funding.events import AmortizationEntry

from .metrics import compute_runway_metrics

CASHFLOW_COLUMNS = [
    "month", "opening_cash", "revenue", "funding_in", "cash_in",
    "expenses", "depreciation", "debt_principal", "debt_interest", "cash_out",
    "vat", "percentage_tax", "income_tax", "taxes", "ending_cash",
]


def cashflows_to_dataframe(cashflows: Sequence[Cashflow]) -> pd.DataFrame:
    rows = []
    for cf in cashflows:
        taxes = cf.taxes
        rows.append({
            "month": cf.month,
            "opening_cash": cf.opening_cash.to_major(),
            "revenue": cf.revenue.to_major(),
            "funding_in": cf.funding_in.to_major(),
            "cash_in": cf.cash_in.to_major(),
            "expenses": cf.expenses.to_major(),
            "depreciation": cf.depreciation.to_major(),
            "debt_principal": cf.debt_principal.to_major(),
            "debt_interest": cf.debt_interest.to_major(),
            "cash_out": cf.cash_out.to_major(),
            "vat": taxes.vat.to_major() if taxes else 0.0,
            "percentage_tax": taxes.percentage_tax.to_major() if taxes else 0.0,
            "income_tax": taxes.income_tax.to_major() if taxes else 0.0,
            "taxes": cf.tax_total.to_major(),
            "ending_cash": cf.ending_cash.to_major(),
        })
    return pd.DataFrame(rows, columns=CASHFLOW_COLUMNS)


def amortization_to_dataframe(schedule: Sequence[AmortizationEntry]) -> pd.DataFrame:
    rows = [
        {
            "month": e.month,
            "principal": e.principal.to_major(),
            "interest": e.interest.to_major(),
            "remaining": e.total.to_major(),
            "capitalized": e.capitalized,
        }
        for e in schedule
    ]
    return pd.DataFrame(rows, columns=["month", "principal", "interest", "remaining", "capitalized"])


def summarize_cashflows(cashflows: Sequence[Cashflow]) -> pd.DataFrame:
    """One row per metric of a single run."""
    m = compute_runway_metrics(cashflows)
    rows = [
        {"Metric": "Runway", "Value": m.runway_months, "Unit": "months"},
        {"Metric": "Cash-out Month", "Value": m.cash_out_month or "N/A", "Unit": ""},
        {"Metric": "Average Net Burn", "Value": m.average_net_burn.to_major(), "Unit": m.ending_cash.currency},
        {"Metric": "Total Revenue", "Value": m.total_revenue.to_major(), "Unit": m.ending_cash.currency},
        {"Metric": "Total Taxes", "Value": m.total_taxes.to_major(), "Unit": m.ending_cash.currency},
        {"Metric": "EBITDA", "Value": m.ebitda.to_major(), "Unit": m.ending_cash.currency},
        {"Metric": "Net Income", "Value": m.net_income.to_major(), "Unit": m.ending_cash.currency},
        {"Metric": "Ending Cash", "Value": m.ending_cash.to_major(), "Unit": m.ending_cash.currency},
        {"Metric": "Break-even Month", "Value": m.break_even_month or "N/A", "Unit": ""},
        {
            "Metric": "Burn Efficiency",
            "Value": f"{m.burn_efficiency:.2f}" if m.burn_efficiency is not None else "N/A",
            "Unit": "",
        },
    ]
    return pd.DataFrame(rows)


def compare_scenarios(
    runs: Mapping[str, Sequence[Cashflow]],
    *,
    percentiles: Tuple[float, ...] = (0.05, 0.50, 0.95),
) -> Dict[str, pd.DataFrame]:
    """
    Compare scenario runs side by side.

    Returns
    -------
    Dict with:
      "by_scenario":   one row per scenario (runway, ending cash, lowest cash, net burn)
      "summary_table": distribution of those figures across scenarios
    """
    rows: List[dict] = []
    for name, cashflows in runs.items():
        m = compute_runway_metrics(cashflows)
        rows.append({
            "scenario": name,
            "runway_months": m.runway_months,
            "ending_cash": m.ending_cash.to_major(),
            "lowest_cash": min(cf.ending_cash.to_major() for cf in cashflows),
            "average_net_burn": m.average_net_burn.to_major(),
        })
    by_scenario = pd.DataFrame(
        rows, columns=["scenario", "runway_months", "ending_cash", "lowest_cash", "average_net_burn"]
    )

    summary_rows = []
    for col in ["runway_months", "ending_cash", "lowest_cash", "average_net_burn"]:
        values = by_scenario[col].to_numpy(dtype=float)
        if len(values) == 0:
            continue
        row = {"Metric": col, "Mean": float(np.mean(values)), "Min": float(np.min(values))}
        for p in percentiles:
            row[f"P{int(p * 100):02d}"] = float(np.percentile(values, p * 100))
        row["Max"] = float(np.max(values))
        summary_rows.append(row)

    return {"by_scenario": by_scenario, "summary_table": pd.DataFrame(summary_rows)}
