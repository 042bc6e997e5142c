"""Plotly figures for the ledger reports.

Each function takes one of the result objects from :mod:`ledger_insights.reports`
and returns a :class:`plotly.graph_objects.Figure` ready for
``st.plotly_chart``.  Empty inputs give an empty figure titled
"No data to display".

Colors are assigned by :func:`color_for`, which derives a label's color from
its position in an explicit label list instead of a process-wide registry,
so the same inputs always render the same way.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from .models import BoxPlotData, BudgetReport, FlowGraph, FunnelBucket, ParetoResult, QuadrantPoint, ThemeRiver

COLOR_PALETTE: List[str] = [
    "#3b82f6", "#10b981", "#8b5cf6", "#ef4444", "#f59e0b", "#06b6d4", "#ec4899", "#f97316",
    "#60a5fa", "#34d399", "#a78bfa", "#f87171", "#fbbf24", "#22d3ee", "#f472b6", "#fb923c",
    "#93c5fd", "#6ee7b7", "#fca5a5", "#fcd34d", "#67e8f9", "#f9a8d4", "#fdba74",
]

QUADRANT_COLORS = {
    'high_frequency_high_amount': "#ff7f0e",
    'low_frequency_high_amount': "#d62728",
    'high_frequency_low_amount': "#2ca02c",
    'low_frequency_low_amount': "#1f77b4",
}
_EMPTY_QUADRANT_COLOR = "#8884d8"


def color_for(label: str, labels: Sequence[str]) -> str:
    """Color of ``label`` given the ordered list of labels on display.

    Labels take palette entries in order of first appearance in ``labels``;
    a label not in the list gets the next free slot.
    """
    ordered = list(dict.fromkeys(labels))
    position = ordered.index(label) if label in ordered else len(ordered)
    return COLOR_PALETTE[position % len(COLOR_PALETTE)]


def quadrant_color(point: QuadrantPoint, points: Sequence[QuadrantPoint]) -> str:
    if not points:
        return _EMPTY_QUADRANT_COLOR
    high_frequency = point.frequency > max(p.frequency for p in points) / 2
    high_amount = point.average_amount > max(p.average_amount for p in points) / 2
    key = f"{'high' if high_frequency else 'low'}_frequency_{'high' if high_amount else 'low'}_amount"
    return QUADRANT_COLORS[key]


def _empty_figure(title: str = "No data to display") -> go.Figure:
    fig = go.Figure()
    fig.update_layout(title=title)
    return fig


def create_flow_chart(graph: FlowGraph, title: Optional[str] = None) -> go.Figure:
    """Render a flow graph as a sankey diagram.

    Parameters
    ----------
    graph : FlowGraph
        Nodes and index-based links from :mod:`ledger_insights.flows`.
    title : str, optional
        Chart title.

    Returns
    -------
    plotly.graph_objects.Figure
        Sankey diagram.
    """
    if graph.is_empty or not graph.links:
        return _empty_figure()
    names = [node.name for node in graph.nodes]
    fig = go.Figure(
        go.Sankey(
            node=dict(label=names, color=[color_for(name, names) for name in names], pad=15, thickness=16),
            link=dict(
                source=[link.source for link in graph.links],
                target=[link.target for link in graph.links],
                value=[link.value for link in graph.links],
            ),
        )
    )
    fig.update_layout(title=title or "Spending flow")
    return fig


def create_pareto_chart(result: ParetoResult, title: Optional[str] = None) -> go.Figure:
    """Bars per category with the cumulative share on a second axis."""
    if not result.categories:
        return _empty_figure()
    fig = go.Figure()
    fig.add_trace(
        go.Bar(
            x=result.categories,
            y=result.values,
            name="Spend",
            marker_color=[color_for(c, result.categories) for c in result.categories],
        )
    )
    fig.add_trace(
        go.Scatter(
            x=result.categories,
            y=result.cumulative_percentages,
            name="Cumulative %",
            yaxis="y2",
            mode="lines+markers",
        )
    )
    fig.update_layout(
        title=title or "Pareto analysis",
        xaxis_title="Category",
        yaxis=dict(title="Spend"),
        yaxis2=dict(title="Cumulative %", overlaying="y", side="right", range=[0, 105]),
    )
    return fig


def create_box_plot(data: BoxPlotData, title: Optional[str] = None) -> go.Figure:
    """Precomputed quartile boxes per category.

    Parameters
    ----------
    data : BoxPlotData
        Statistics from :func:`ledger_insights.distribution.box_plot`.
        Empty entries are skipped.
    title : str, optional
        Chart title.

    Returns
    -------
    plotly.graph_objects.Figure
        Box plot.
    """
    stats = [stat for stat in data.stats if not stat.is_empty]
    if not stats:
        return _empty_figure()
    categories = data.categories
    fig = go.Figure()
    for stat in stats:
        fig.add_trace(
            go.Box(
                name=stat.category,
                x=[stat.category],
                q1=[stat.q1],
                median=[stat.median],
                q3=[stat.q3],
                lowerfence=[stat.min],
                upperfence=[stat.max],
                marker_color=color_for(stat.category, categories),
            )
        )
    fig.update_layout(title=title or "Transaction amounts by category", yaxis_title="Amount", showlegend=False)
    return fig


def create_funnel_chart(buckets: Sequence[FunnelBucket], title: Optional[str] = None) -> go.Figure:
    if not buckets:
        return _empty_figure()
    df = pd.DataFrame(
        {
            "Band": [bucket.label for bucket in buckets],
            "Spend": [bucket.value for bucket in buckets],
            "Share": [bucket.percentage_of_total for bucket in buckets],
        }
    )
    fig = px.funnel(df, x="Spend", y="Band", hover_data=["Share"])
    fig.update_layout(title=title or "Spend by amount band")
    return fig


def create_theme_river_chart(river: ThemeRiver, title: Optional[str] = None) -> go.Figure:
    """Stacked area of monthly spend per category."""
    if not river.points:
        return _empty_figure()
    df = pd.DataFrame(
        [{"Period": p.period_key, "Category": p.category, "Spend": p.value} for p in river.points]
    )
    # Areas need a dense grid; the sparse points are filled with zeros here only.
    df = (
        df.pivot_table(index="Period", columns="Category", values="Spend", aggfunc="sum", fill_value=0.0)
        .reindex(columns=river.categories, fill_value=0.0)
        .rename_axis(columns=None)
        .reset_index()
        .melt(id_vars="Period", var_name="Category", value_name="Spend")
    )
    fig = px.area(
        df,
        x="Period",
        y="Spend",
        color="Category",
        color_discrete_map={c: color_for(c, river.categories) for c in river.categories},
        category_orders={"Category": river.categories},
    )
    fig.update_layout(title=title or "Category trends", xaxis_title="Month", yaxis_title="Spend")
    return fig


def create_quadrant_chart(points: Sequence[QuadrantPoint], title: Optional[str] = None) -> go.Figure:
    if not points:
        return _empty_figure()
    fig = go.Figure(
        go.Scatter(
            x=[p.frequency for p in points],
            y=[p.average_amount for p in points],
            mode="markers",
            text=[f"{p.name} ({p.category})" for p in points],
            marker=dict(
                color=[quadrant_color(p, points) for p in points],
                size=[max(8.0, min(40.0, p.total_amount ** 0.5 / 2)) for p in points],
            ),
        )
    )
    fig.update_layout(
        title=title or "Merchant frequency vs. average amount",
        xaxis_title="Transactions",
        yaxis_title="Average amount",
    )
    return fig


def create_budget_progress_chart(report: BudgetReport, title: Optional[str] = None) -> go.Figure:
    """Spent vs. budget per category, over-budget bars highlighted."""
    if not report.categories:
        return _empty_figure()
    names = sorted(report.categories, key=lambda name: -report.categories[name].spent)
    spent = [report.categories[name].spent for name in names]
    budget = [report.categories[name].budget for name in names]
    fig = go.Figure()
    fig.add_trace(go.Bar(x=names, y=budget, name="Budget", marker_color="#d1d5db"))
    fig.add_trace(
        go.Bar(
            x=names,
            y=spent,
            name="Spent",
            marker_color=[
                COLOR_PALETTE[3] if report.categories[name].over_budget else COLOR_PALETTE[0] for name in names
            ],
        )
    )
    fig.update_layout(title=title or "Budget progress", barmode="group", xaxis_title="Category", yaxis_title="Amount")
    return fig
