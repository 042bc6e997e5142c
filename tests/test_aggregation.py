import pytest

from ledger_insights.aggregation import (
    calculate_category_yearly_stats,
    calculate_monthly_stats,
    calculate_yearly_stats,
)
from ledger_insights.ledger import OwnerDirectory
from ledger_insights.models import OTHER_LABEL


def test_yearly_rollup_of_twelve_months(sample_year):
    stats = calculate_yearly_stats(sample_year, 2024)

    assert stats.total_income == pytest.approx(12000)
    assert stats.total_expense == pytest.approx(1200)
    assert stats.total_balance == pytest.approx(10800)
    assert stats.category_stats['Food'].total_amount == pytest.approx(1200)
    assert stats.category_stats['Food'].count == 24
    assert stats.total_salary == pytest.approx(12000)
    assert [m.month for m in stats.monthly_data] == list(range(1, 13))
    assert len(stats.expenses) == 24
    assert stats.transaction_count == 36


def test_single_food_record_per_month(make_txn):
    records = []
    for month in range(1, 13):
        records.append(make_txn(f'2023-{month:02d}-10', -100, 'Food'))
        records.append(make_txn(f'2023-{month:02d}-28', 1000, 'Salary'))

    stats = calculate_yearly_stats(records, 2023)

    assert (stats.total_income, stats.total_expense, stats.total_balance) == (12000, 1200, 10800)
    food = stats.category_stats['Food']
    assert (food.total_amount, food.count) == (1200, 12)


def test_balance_and_category_sums_hold_for_every_month(sample_year, make_txn):
    records = sample_year + [
        make_txn('2024-03-03', -12.34, 'Transport'),
        make_txn('2024-03-09', -0.66, ''),
        make_txn('2024-03-15', 45.5, 'Refund'),
    ]
    for month in range(1, 13):
        stats = calculate_monthly_stats(records, 2024, month)
        assert stats.balance == pytest.approx(stats.income - stats.expense)
        assert sum(s.total_amount for s in stats.category_stats.values()) == pytest.approx(stats.expense)


def test_monthly_stats_keep_ledger_order_and_label_missing_category(make_txn):
    records = [
        make_txn('2024-05-02', -10, 'Food', 'A'),
        make_txn('2024-05-01', -5, ''),
        make_txn('2024-05-03', -20, 'Food', 'B'),
        make_txn('2024-06-01', -999, 'Food'),
    ]
    stats = calculate_monthly_stats(records, 2024, 5)

    assert stats.transactions == records[:3]
    assert stats.category_stats[OTHER_LABEL].total_amount == 5
    assert [r.merchant for r in stats.category_stats['Food'].transactions] == ['A', 'B']
    assert stats.expense == 35


def test_owner_filter_skips_other_owners(sample_year):
    alice = calculate_monthly_stats(sample_year, 2024, 1, owner='Alice')
    assert alice.income == 1000
    assert alice.expense == 60
    assert alice.transaction_count == 2


def test_owner_filter_resolves_owner_ids(sample_year):
    owners = OwnerDirectory({'u1': 'Bob'})
    stats = calculate_monthly_stats(sample_year, 2024, 2, owner='u1', owners=owners)
    assert stats.expense == 40
    assert stats.income == 0


def test_unknown_owner_gives_empty_but_valid_report(sample_year):
    stats = calculate_yearly_stats(sample_year, 2024, owner='nobody')

    assert stats.total_income == 0
    assert stats.total_expense == 0
    assert stats.category_stats == {}
    assert stats.transaction_count == 0
    # Months with data are still listed, with zero totals.
    assert len(stats.monthly_data) == 12
    assert all(m.expense == 0 for m in stats.monthly_data)


def test_empty_period_is_all_zero():
    stats = calculate_monthly_stats([], 2024, 1)
    assert (stats.income, stats.expense, stats.balance) == (0, 0, 0)
    assert stats.category_stats == {}
    assert stats.transactions == []


def test_yearly_monthly_data_only_lists_months_with_records(make_txn):
    records = [make_txn('2024-02-01', -10), make_txn('2024-11-01', -30), make_txn('2023-12-01', -5)]
    stats = calculate_yearly_stats(records, 2024)
    assert [m.month for m in stats.monthly_data] == [2, 11]
    assert stats.total_expense == 40


def test_category_yearly_stats_orders_categories_and_months(make_txn):
    records = [
        make_txn('2024-03-01', -50, 'Travel'),
        make_txn('2024-01-01', -10, 'Food'),
        make_txn('2024-01-15', -15, 'Food'),
        make_txn('2024-02-01', -200, 'Rent'),
        make_txn('2024-02-02', 300, 'Salary'),
    ]
    stats = calculate_category_yearly_stats(records, 2024, top_expenses_limit=2)

    assert stats.categories == ['Rent', 'Travel', 'Food']
    food = stats.monthly_data['Food']
    assert [(p.month, p.amount, p.count) for p in food] == [(1, 25, 2)]
    assert stats.total_expense == 275
    assert [r.amount for r in stats.top_expenses] == [-200, -50]


def test_category_yearly_stats_can_exclude_tagged_records(make_txn):
    records = [
        make_txn('2024-01-01', -10, 'Food'),
        make_txn('2024-01-02', -500, 'Gadgets', tags=frozenset({'预算外'})),
    ]
    stats = calculate_category_yearly_stats(records, 2024, exclude_tag='预算外')
    assert stats.categories == ['Food']
    assert stats.total_expense == 10
