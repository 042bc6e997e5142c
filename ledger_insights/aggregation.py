"""Period rollups: monthly, yearly and per-category yearly statistics.

Records are loaded into a pandas frame once per call and every rollup is
computed from that frame.  Outflows are accounted by magnitude, so
``expense`` and every ``CategoryStat.total_amount`` are non-negative.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from .ledger import OwnerDirectory, is_unfiltered
from .models import (
    OTHER_LABEL,
    CategoryMonthPoint,
    CategoryStat,
    CategoryYearlyStats,
    MonthlyStats,
    MonthSummary,
    TransactionRecord,
    YearlyStats,
)

DEFAULT_SALARY_CATEGORIES = ("工资", "salary", "Salary")

FRAME_COLUMNS = ['Date', 'Amount', 'Category', 'Owner', 'Record']


def frame_from_records(records: Iterable[TransactionRecord]) -> pd.DataFrame:
    """Build the working frame used by the rollups.

    The original record is kept in the ``Record`` column so results can hand
    back the contributing transactions in ledger order.
    """
    rows = [
        {
            'Date': pd.Timestamp(record.date),
            'Amount': float(record.amount),
            'Category': record.category or OTHER_LABEL,
            'Owner': record.owner,
            'Record': record,
        }
        for record in records
    ]
    df = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    df['Date'] = pd.to_datetime(df['Date'])
    df['Amount'] = pd.to_numeric(df['Amount']).astype(float)
    df['Year'] = df['Date'].dt.year
    df['Month'] = df['Date'].dt.month
    return df


def _filter_owner(df: pd.DataFrame, owner: Optional[str], owners: Optional[OwnerDirectory]) -> pd.DataFrame:
    if is_unfiltered(owner):
        return df
    name = (owners or OwnerDirectory()).resolve_owner_name(owner)
    return df[df['Owner'] == name]


def _period(df: pd.DataFrame, year: int, month: Optional[int] = None) -> pd.DataFrame:
    mask = df['Year'] == year
    if month is not None:
        mask &= df['Month'] == month
    return df[mask]


def _records(df: pd.DataFrame) -> List[TransactionRecord]:
    return list(df['Record'])


def _category_stats(outflows: pd.DataFrame) -> Dict[str, CategoryStat]:
    stats: Dict[str, CategoryStat] = {}
    for category, group in outflows.groupby('Category', sort=False):
        stats[category] = CategoryStat(
            total_amount=float(-group['Amount'].sum()),
            count=int(len(group)),
            transactions=_records(group),
        )
    return stats


def _totals(df: pd.DataFrame, salary_categories: Sequence[str]):
    inflow_mask = df['Amount'] > 0
    income = float(df.loc[inflow_mask, 'Amount'].sum())
    expense = float(-df.loc[df['Amount'] < 0, 'Amount'].sum())
    salary = float(df.loc[inflow_mask & df['Category'].isin(list(salary_categories)), 'Amount'].sum())
    return income, expense, salary


def calculate_monthly_stats(
    records: Iterable[TransactionRecord],
    year: int,
    month: int,
    owner: Optional[str] = None,
    owners: Optional[OwnerDirectory] = None,
    salary_categories: Sequence[str] = DEFAULT_SALARY_CATEGORIES,
) -> MonthlyStats:
    """Roll up one month.

    Args:
        records: Ledger records; records outside the month are ignored
        year: Calendar year
        month: Month number, 1-12
        owner: Owner id to keep, ``None``/``"all"`` for everyone
        owners: Directory used to resolve ``owner`` to the stored name
        salary_categories: Inflow categories summed into ``total_salary``

    Returns:
        MonthlyStats for the period; zeros when nothing matches
    """
    df = _filter_owner(_period(frame_from_records(records), year, month), owner, owners)
    outflows = df[df['Amount'] < 0]
    income, expense, salary = _totals(df, salary_categories)
    return MonthlyStats(
        year=year,
        month=month,
        income=income,
        expense=expense,
        balance=income - expense,
        category_stats=_category_stats(outflows),
        transactions=_records(df),
        expenses=_records(outflows),
        transaction_count=int(len(df)),
        total_salary=salary,
    )


def calculate_yearly_stats(
    records: Iterable[TransactionRecord],
    year: int,
    owner: Optional[str] = None,
    owners: Optional[OwnerDirectory] = None,
    salary_categories: Sequence[str] = DEFAULT_SALARY_CATEGORIES,
) -> YearlyStats:
    """Roll up a calendar year with a per-month breakdown.

    ``monthly_data`` has one entry for every month that has ledger data in
    the year, whether or not the owner filter leaves anything in it.
    """
    year_df = _period(frame_from_records(records), year)
    df = _filter_owner(year_df, owner, owners)
    outflows = df[df['Amount'] < 0]
    income, expense, salary = _totals(df, salary_categories)

    monthly_data: List[MonthSummary] = []
    for month in sorted(int(m) for m in year_df['Month'].unique()):
        month_income, month_expense, month_salary = _totals(df[df['Month'] == month], salary_categories)
        monthly_data.append(
            MonthSummary(
                month=month,
                income=month_income,
                expense=month_expense,
                balance=month_income - month_expense,
                salary=month_salary,
            )
        )

    return YearlyStats(
        year=year,
        total_income=income,
        total_expense=expense,
        total_balance=income - expense,
        category_stats=_category_stats(outflows),
        monthly_data=monthly_data,
        transactions=_records(df),
        expenses=_records(outflows),
        transaction_count=int(len(df)),
        total_salary=salary,
    )


def calculate_category_yearly_stats(
    records: Iterable[TransactionRecord],
    year: int,
    owner: Optional[str] = None,
    owners: Optional[OwnerDirectory] = None,
    exclude_tag: Optional[str] = None,
    top_expenses_limit: int = 100,
) -> CategoryYearlyStats:
    """Per-category monthly spend for a year.

    Records tagged with ``exclude_tag`` (the "outside budget" tag, for
    example) are dropped before anything is counted.
    """
    df = _filter_owner(_period(frame_from_records(records), year), owner, owners)
    outflows = df[df['Amount'] < 0]
    if exclude_tag:
        keep = outflows['Record'].map(lambda record: exclude_tag not in record.tags).astype(bool)
        outflows = outflows[keep]

    totals = _category_stats(outflows)
    categories = sorted(totals, key=lambda name: -totals[name].total_amount)

    monthly_data: Dict[str, List[CategoryMonthPoint]] = {}
    for category in categories:
        group = outflows[outflows['Category'] == category]
        by_month = group.groupby('Month')['Amount'].agg(['sum', 'count'])
        monthly_data[category] = [
            CategoryMonthPoint(month=int(month), amount=float(-row['sum']), count=int(row['count']))
            for month, row in by_month.sort_index().iterrows()
        ]

    expenses = _records(outflows)
    top_expenses = sorted(expenses, key=lambda record: record.amount)[:top_expenses_limit]

    return CategoryYearlyStats(
        year=year,
        categories=categories,
        monthly_data=monthly_data,
        total_by_category=totals,
        total_expense=float(-outflows['Amount'].sum()),
        top_expenses=top_expenses,
        expenses=expenses,
    )
