"""Streamlit app for the ledger reports.

The page reads the configured ledger directory, lets the user pick a year,
an optional month and an owner, and renders the reports produced by
:class:`ledger_insights.reports.LedgerAnalytics`.

To run the dashboard from the command line::

    streamlit run ledger_insights/dashboard.py

or use ``run_dashboard.py`` at the repository root.
"""

from __future__ import annotations

import os
import sys
from typing import Optional

import pandas as pd
import streamlit as st

# Support both ``streamlit run ledger_insights/dashboard.py`` and package imports.
if __package__:
    from . import config
    from . import visualization as viz
    from .budgets import BudgetStore
    from .errors import MissingPeriodData
    from .ledger import ALL_OWNERS, CsvLedgerReader, OwnerDirectory
    from .logging_setup import configure_logging, get_logger
    from .reports import LedgerAnalytics
else:
    CURRENT_DIR = os.path.dirname(os.path.abspath(__file__))
    PARENT_DIR = os.path.dirname(CURRENT_DIR)
    if PARENT_DIR not in sys.path:
        sys.path.insert(0, PARENT_DIR)
    from ledger_insights import config  # type: ignore
    from ledger_insights import visualization as viz  # type: ignore
    from ledger_insights.budgets import BudgetStore  # type: ignore
    from ledger_insights.errors import MissingPeriodData  # type: ignore
    from ledger_insights.ledger import ALL_OWNERS, CsvLedgerReader, OwnerDirectory  # type: ignore
    from ledger_insights.logging_setup import configure_logging, get_logger  # type: ignore
    from ledger_insights.reports import LedgerAnalytics  # type: ignore

logger = get_logger(__name__)


def build_analytics() -> LedgerAnalytics:
    """Wire the analytics facade to the configured data directory."""
    config.ensure_data_directories()
    owners = OwnerDirectory.from_json(config.OWNERS_PATH)
    reader = CsvLedgerReader(config.LEDGER_DIR, owners=owners)
    return LedgerAnalytics(
        reader,
        budget_store=BudgetStore(config.BUDGET_CONFIG_PATH),
        owners=owners,
        options=config.load_options(),
    )


def _summary_metrics(analytics: LedgerAnalytics, year: int, month: Optional[int], owner: Optional[str]) -> None:
    stats = analytics.period_stats(year, month, owner)
    if month is None:
        income, expense, balance = stats.total_income, stats.total_expense, stats.total_balance
    else:
        income, expense, balance = stats.income, stats.expense, stats.balance
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Income", f"{income:,.2f}")
    col2.metric("Expense", f"{expense:,.2f}")
    col3.metric("Balance", f"{balance:,.2f}")
    col4.metric("Transactions", stats.transaction_count)

    if month is None and stats.monthly_data:
        st.subheader("Monthly overview")
        st.dataframe(
            pd.DataFrame(
                [
                    {"Month": m.month, "Income": m.income, "Expense": m.expense, "Balance": m.balance, "Salary": m.salary}
                    for m in stats.monthly_data
                ]
            ),
            hide_index=True,
        )


def _alerts(analytics: LedgerAnalytics, year: int, month: Optional[int], owner: Optional[str]) -> None:
    if month is None:
        return
    alerts = analytics.alerts(year, month, owner)
    st.subheader("Alerts")
    if not alerts:
        st.success("No spending alerts for this month.")
        return
    for alert in alerts:
        st.warning(f"{alert.date:%Y-%m-%d} · {alert.message}")


def main() -> None:
    """Entry point for the Streamlit app."""
    configure_logging()
    st.set_page_config(page_title="Ledger Insights", layout="wide", initial_sidebar_state="expanded")
    st.title("Ledger Insights")

    analytics = build_analytics()
    years = analytics.reader.list_years()
    if not years:
        st.info(f"No ledger data found under {config.LEDGER_DIR}.")
        st.stop()

    st.sidebar.header("Period")
    year = st.sidebar.selectbox("Year", options=years, index=0)
    owner_options = [ALL_OWNERS] + [entry['id'] for entry in analytics.owners.owners()]
    owner = st.sidebar.selectbox(
        "Owner",
        options=owner_options,
        format_func=lambda value: "Everyone" if value == ALL_OWNERS else analytics.owners.resolve_owner_name(value),
    )
    months = analytics.reader.list_months(year, owner)
    month_choice = st.sidebar.selectbox(
        "Month", options=["Whole year"] + months, format_func=lambda value: str(value)
    )
    month = None if month_choice == "Whole year" else int(month_choice)

    try:
        _summary_metrics(analytics, year, month, owner)

        budget_tab, flow_tab, distribution_tab, merchant_tab = st.tabs(
            ["Budget", "Flows", "Distribution", "Merchants"]
        )
        with budget_tab:
            report = analytics.budget_progress(year, month, owner)
            if not report.budget_available:
                st.info("Budget configuration unavailable; showing zero budgets.")
            st.plotly_chart(viz.create_budget_progress_chart(report), use_container_width=True)
            _alerts(analytics, year, month, owner)
        with flow_tab:
            st.plotly_chart(viz.create_flow_chart(analytics.income_flow_graph(year, month, owner), title="Income flow"), use_container_width=True)
            st.plotly_chart(viz.create_flow_chart(analytics.flow_graph(year, month, owner)), use_container_width=True)
        with distribution_tab:
            st.plotly_chart(viz.create_pareto_chart(analytics.pareto(year, month, owner)), use_container_width=True)
            st.plotly_chart(viz.create_theme_river_chart(analytics.theme_river(year, month, owner)), use_container_width=True)
            st.plotly_chart(viz.create_box_plot(analytics.box_plot(year, month, owner)), use_container_width=True)
            st.plotly_chart(viz.create_funnel_chart(analytics.funnel(year, month, owner)), use_container_width=True)
            habits = analytics.spending_habits(year, month, owner)
            st.subheader("Spending habits")
            st.table(pd.DataFrame([habits.__dict__]).T.rename(columns={0: "Value"}))
        with merchant_tab:
            st.plotly_chart(viz.create_quadrant_chart(analytics.quadrant(year, month, owner)), use_container_width=True)
            merchants = analytics.top_merchants(year, month, owner, limit=20)
            st.dataframe(
                pd.DataFrame(
                    [
                        {"Merchant": m.name, "Total": m.total_amount, "Transactions": m.transaction_count, "Last": m.last_transaction_date}
                        for m in merchants
                    ]
                ),
                hide_index=True,
            )
    except MissingPeriodData as exc:
        logger.info("Dashboard request for missing period: %s", exc)
        st.warning(str(exc))


if __name__ == "__main__":  # pragma: no cover
    main()
