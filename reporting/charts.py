"""
Plotly trace builders. Pure data derivations; nothing is rendered here.
"""

from __future__ import annotations

from typing import List, Sequence

import plotly.graph_objects as go

from core.schema import CASHFLOW_COLORS, EXPENSE_COLORS, FUNDING_COLORS, ExpenseType, FundingType
from engine.cashflow import Cashflow
from expenses.breakdown import ExpenseBreakdown
from funding.manager import FundingManager
from revenue.stream import RevenueStream


def funding_time_series_traces(funding: FundingManager) -> List[go.Scatter]:
    by_month = funding.monthly_cashflow_by_type()
    months = list(by_month)
    traces = [
        go.Scatter(
            x=months,
            y=[by_month[m][t].to_major() for m in months],
            mode="lines+markers",
            name=t.value,
            line=dict(color=FUNDING_COLORS[t]),
        )
        for t in FundingType
    ]
    cumulative = funding.cumulative_funding()
    traces.append(go.Scatter(
        x=list(cumulative),
        y=[v.to_major() for v in cumulative.values()],
        mode="lines",
        name="Cumulative",
        line=dict(dash="dash"),
    ))
    return traces


def funding_bar_traces(funding: FundingManager) -> List[go.Bar]:
    by_month = funding.monthly_cashflow_by_type()
    months = list(by_month)
    return [
        go.Bar(x=months, y=[by_month[m][t].to_major() for m in months], name=t.value,
               marker_color=FUNDING_COLORS[t])
        for t in FundingType
    ]


def funding_pie_trace(funding: FundingManager) -> go.Pie:
    breakdown = funding.funding_breakdown()
    return go.Pie(
        labels=[t.value for t in breakdown],
        values=[v.to_major() for v in breakdown.values()],
        marker=dict(colors=[FUNDING_COLORS[t] for t in breakdown]),
        hole=0.4,
    )


def revenue_trend_traces(stream: RevenueStream) -> List[go.Scatter]:
    months = stream.period.months()
    return [
        go.Scatter(x=months, y=[stream.get_monthly_revenue(m).to_major() for m in months],
                   mode="lines+markers", name="Revenue"),
        go.Scatter(x=months, y=[stream.get_monthly_cost(m).to_major() for m in months],
                   mode="lines", name="Direct Cost"),
    ]


def revenue_by_item_traces(stream: RevenueStream) -> List[go.Bar]:
    months = stream.period.months()
    return [
        go.Bar(x=months, y=[item.get_revenue(m).to_major() for m in months], name=item.name)
        for item in stream.get_all()
    ]


def gross_margin_trend_trace(stream: RevenueStream) -> go.Scatter:
    months = stream.period.months()
    margins = []
    for m in months:
        revenue = stream.get_monthly_revenue(m)
        margins.append(stream.get_monthly_profit(m).ratio(revenue) * 100 if revenue.is_positive() else None)
    return go.Scatter(x=months, y=margins, mode="lines+markers", name="Gross Margin %")


def expense_pie_trace(breakdown: ExpenseBreakdown) -> go.Pie:
    months = breakdown.period.months()
    totals = {t: 0.0 for t in ExpenseType}
    for m in months:
        for t, v in breakdown.get_monthly_cash_out_by_type(m).items():
            totals[t] += v.to_major()
    return go.Pie(
        labels=[t.value for t in totals],
        values=list(totals.values()),
        marker=dict(colors=[EXPENSE_COLORS[t] for t in totals]),
    )


def expense_trend_traces(breakdown: ExpenseBreakdown) -> List[go.Bar]:
    months = breakdown.period.months()
    split = {m: breakdown.get_monthly_cash_out_by_type(m) for m in months}
    return [
        go.Bar(x=months, y=[split[m][t].to_major() for m in months], name=t.value,
               marker_color=EXPENSE_COLORS[t])
        for t in ExpenseType
    ]


def cashflow_bar_traces(cashflows: Sequence[Cashflow], include_taxes: bool = True) -> list:
    months = [cf.month for cf in cashflows]
    traces = [
        go.Bar(x=months, y=[cf.cash_in.to_major() for cf in cashflows], name="Cash In",
               marker_color=CASHFLOW_COLORS["cash_in"]),
        go.Bar(x=months, y=[-cf.cash_out.to_major() for cf in cashflows], name="Cash Out",
               marker_color=CASHFLOW_COLORS["cash_out"]),
    ]
    if include_taxes:
        traces.append(go.Bar(x=months, y=[-cf.tax_total.to_major() for cf in cashflows], name="Taxes",
                             marker_color=CASHFLOW_COLORS["taxes"]))
    traces.append(go.Scatter(x=months, y=[cf.ending_cash.to_major() for cf in cashflows],
                             mode="lines+markers", name="Ending Cash",
                             line=dict(color=CASHFLOW_COLORS["ending_cash"])))
    return traces
