import json
import logging
from dataclasses import asdict
from datetime import date

import pytest

from ledger_insights.budgets import BudgetStore
from ledger_insights.config import AnalyticsOptions
from ledger_insights.errors import MissingPeriodData
from ledger_insights.ledger import InMemoryLedger, OwnerDirectory
from ledger_insights.reports import LedgerAnalytics


@pytest.fixture
def analytics(sample_year, make_txn, tmp_path):
    records = sample_year + [
        make_txn('2023-12-20', -50, 'Food', 'Bakery', owner='Alice'),
        make_txn('2023-12-25', 900, 'Salary', 'Employer', owner='Alice'),
        make_txn('2024-03-10', -1500, 'Travel', '携程旅行', owner='Alice'),
    ]
    store = BudgetStore(tmp_path / 'budget.json')
    store.put_budget(2024, total=3000, categories={'Food': 1000, 'Travel': 1000})
    return LedgerAnalytics(
        InMemoryLedger(records),
        budget_store=store,
        owners=OwnerDirectory({'a': 'Alice'}),
        options=AnalyticsOptions(),
    )


def test_queries_are_idempotent(analytics):
    first = analytics.insights(2024)
    second = analytics.insights(2024)
    assert {k: repr(v) for k, v in first.items()} == {k: repr(v) for k, v in second.items()}
    assert asdict(analytics.yearly_stats(2024)) == asdict(analytics.yearly_stats(2024))


def test_missing_period_is_escalated(analytics):
    with pytest.raises(MissingPeriodData):
        analytics.monthly_stats(2022, 5)
    with pytest.raises(MissingPeriodData):
        analytics.flow_graph(2021)


def test_owner_filter_by_id(analytics):
    stats = analytics.monthly_stats(2024, 3, owner='a')
    assert stats.expense == pytest.approx(1560)
    assert analytics.monthly_stats(2024, 3, owner='all').expense == pytest.approx(1600)


def test_budget_progress_for_year(analytics):
    report = analytics.budget_progress(2024)
    assert report.budget_available
    assert report.total.spent == pytest.approx(2700)
    assert report.categories['Travel'].over_budget is True
    assert report.categories['Food'].percentage_used == pytest.approx(120)


def test_budget_failure_degrades_to_zero_budgets(sample_year, tmp_path, caplog):
    path = tmp_path / 'budget.json'
    path.write_text('[broken', encoding='utf-8')
    analytics = LedgerAnalytics(InMemoryLedger(sample_year), budget_store=BudgetStore(path), options=AnalyticsOptions())

    with caplog.at_level(logging.WARNING, logger='ledger_insights'):
        report = analytics.budget_progress(2024, 1)

    assert report.budget_available is False
    assert report.total.budget == 0
    assert all(p.budget == 0 and p.percentage_used == 0 for p in report.categories.values())
    assert caplog.records


def test_alerts_for_month(analytics):
    alerts = analytics.alerts(2024, 3)
    kinds = [a.kind for a in alerts]

    assert kinds.count('high_value') == 1
    assert 'monthly_increase' in kinds
    assert 'yearly_increase' in kinds


def test_alerts_skip_missing_previous_periods(make_txn):
    analytics = LedgerAnalytics(
        InMemoryLedger([make_txn('2024-01-05', -10, 'Food')]), options=AnalyticsOptions()
    )
    assert analytics.alerts(2024, 1) == []


def test_flow_graph_and_distribution_queries_use_options(analytics):
    graph = analytics.flow_graph(2024, top_categories=1)
    names = [node.name for node in graph.nodes]
    assert 'Travel' in names and 'Other categories' in names
    assert '携程' in names

    assert analytics.pareto(2024).cumulative_percentages[-1] == pytest.approx(100)
    assert analytics.word_weights(2024, limit=1)[0].label == '携程'
    assert analytics.box_plot(2024, categories=['Food', 'Gifts']).stats[1].is_empty


def test_income_flow_graph_for_month(analytics):
    graph = analytics.income_flow_graph(2024, 1)
    assert graph.inflow(graph.index_of('Total income')) == pytest.approx(1000)
    assert graph.inflow(graph.index_of('Balance')) == pytest.approx(900)


def test_recent_monthly_financials_walks_back(analytics):
    months = analytics.recent_monthly_financials(date(2024, 2, 15), months=3)
    assert [m.period_key for m in months] == ['2023-12', '2024-01', '2024-02']
    assert months[-1].salary == 1000
    assert months[-1].balance == pytest.approx(900)


def test_recent_monthly_financials_stops_at_lookback(analytics):
    months = analytics.recent_monthly_financials(date(2024, 2, 15), months=12, max_lookback=6)
    assert [m.period_key for m in months] == ['2023-12', '2024-01', '2024-02']


def test_latest_salary(analytics, make_txn):
    salary = analytics.latest_salary()
    assert salary.date == date(2024, 12, 25)
    assert salary.amount == 1000

    empty = LedgerAnalytics(InMemoryLedger([make_txn('2024-01-01', -5)]), options=AnalyticsOptions())
    assert empty.latest_salary() is None


def test_category_yearly_stats_excludes_unbudgeted_tag(make_txn):
    ledger = InMemoryLedger([
        make_txn('2024-01-01', -10, 'Food'),
        make_txn('2024-01-02', -90, 'Food', tags=frozenset({'预算外'})),
    ])
    analytics = LedgerAnalytics(ledger, options=AnalyticsOptions())
    assert analytics.category_yearly_stats(2024).total_expense == 100
    assert analytics.category_yearly_stats(2024, exclude_unbudgeted=True).total_expense == 10


def test_budget_store_file_round_trip_through_facade(sample_year, tmp_path):
    path = tmp_path / 'budget.json'
    path.write_text(json.dumps({'2024-01': {'total': 50, 'categories': {'Food': 50}}}), encoding='utf-8')
    analytics = LedgerAnalytics(InMemoryLedger(sample_year), budget_store=BudgetStore(path), options=AnalyticsOptions())

    report = analytics.budget_progress(2024, 1)
    assert report.categories['Food'].remaining == -50
    assert report.total.over_budget
