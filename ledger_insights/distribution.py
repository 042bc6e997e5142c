"""Distributional analytics over a period's outflows.

Every function here takes the outflow records of a period (as returned in
``MonthlyStats.expenses`` / ``YearlyStats.expenses``) and works on
magnitudes.  Shares are percentages in the 0-100 range and are 0 whenever
the denominator is 0.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .merchants import MerchantNormalizer, merchant_label
from .models import (
    OTHER_LABEL,
    UNKNOWN_MERCHANT,
    BoxPlotData,
    BoxPlotPoint,
    BoxPlotStat,
    FunnelBucket,
    ParetoResult,
    PaymentMethodStat,
    QuadrantPoint,
    SpendingHabits,
    SpendingTier,
    ThemeRiver,
    ThemeRiverPoint,
    TransactionRecord,
    WordCloudEntry,
)

INF = float('inf')

FUNNEL_BANDS: Tuple[Tuple[float, float, str], ...] = (
    (0, 50, "0-50"),
    (50, 100, "50-100"),
    (100, 500, "100-500"),
    (500, 1000, "500-1000"),
    (1000, 5000, "1000-5000"),
    (5000, 10000, "5000-10000"),
    (10000, 15000, "10000-15000"),
    (15000, 20000, "15000-20000"),
    (20000, INF, ">20000"),
)

SPENDING_TIERS: Tuple[Tuple[float, float, str], ...] = (
    (15000, INF, "Large (15000+)"),
    (10000, 15000, "Large (10000-15000)"),
    (5000, 10000, "Large (5000-10000)"),
    (1000, 5000, "Large (1000-5000)"),
    (300, 1000, "Medium (300-1000)"),
    (100, 300, "Small (100-300)"),
    (0, 100, "Pocket money (0-100)"),
)

DEFAULT_FOOD_CATEGORIES = ("餐饮", "食品", "外卖", "超市", "生鲜", "水果", "零食", "酒水")

_PLACEHOLDER_MERCHANTS = {OTHER_LABEL, UNKNOWN_MERCHANT}


def _share(part: float, whole: float) -> float:
    return part / whole * 100 if whole > 0 else 0.0


def expense_frame(
    expenses: Iterable[TransactionRecord],
    normalizer: Optional[MerchantNormalizer] = None,
    use_description: bool = True,
) -> pd.DataFrame:
    """Tabulate outflows with magnitude amounts and standardized merchants."""
    rows = [
        {
            'Date': pd.Timestamp(record.date),
            'Amount': record.magnitude,
            'Category': record.category or OTHER_LABEL,
            'Merchant': merchant_label(record, normalizer, use_description=use_description),
            'Account': record.account,
            'Record': record,
        }
        for record in expenses
    ]
    df = pd.DataFrame(rows, columns=['Date', 'Amount', 'Category', 'Merchant', 'Account', 'Record'])
    df['Date'] = pd.to_datetime(df['Date'])
    df['Amount'] = df['Amount'].astype(float)
    return df


def _category_totals(df: pd.DataFrame) -> pd.Series:
    # Stable sort keeps first-seen order between equal totals.
    totals = df.groupby('Category', sort=False)['Amount'].sum()
    return totals.sort_values(ascending=False, kind='mergesort')


def pareto_analysis(expenses: Iterable[TransactionRecord], limit: int = 15) -> ParetoResult:
    """Rank categories and accumulate their share of the ranked total.

    The cumulative share is taken over the categories shown, so the last
    entry is always 100.
    """
    totals = _category_totals(expense_frame(expenses)).head(limit)
    grand_total = float(totals.sum())
    if totals.empty or grand_total <= 0:
        return ParetoResult()

    cumulative = totals.cumsum()
    return ParetoResult(
        categories=list(totals.index),
        values=[float(value) for value in totals],
        cumulative_percentages=[round(_share(float(value), grand_total), 2) for value in cumulative],
    )


def quadrant_analysis(
    expenses: Iterable[TransactionRecord],
    min_total: float = 50.0,
    min_frequency: int = 2,
    normalizer: Optional[MerchantNormalizer] = None,
) -> List[QuadrantPoint]:
    """Frequency vs. average amount per merchant.

    Merchants without a name, or below ``min_total`` / ``min_frequency``,
    are dropped.
    """
    df = expense_frame(expenses, normalizer, use_description=False)
    df = df[~df['Merchant'].isin(_PLACEHOLDER_MERCHANTS)]
    if df.empty:
        return []

    grouped = df.groupby('Merchant', sort=False).agg(
        category=('Category', 'first'),
        frequency=('Amount', 'size'),
        total=('Amount', 'sum'),
    )
    points = []
    for name, row in grouped.iterrows():
        if row['total'] < min_total or row['frequency'] < min_frequency:
            continue
        points.append(
            QuadrantPoint(
                name=name,
                category=row['category'],
                frequency=int(row['frequency']),
                average_amount=round(float(row['total']) / int(row['frequency']), 2),
                total_amount=round(float(row['total']), 2),
            )
        )
    return points


def theme_river(expenses: Iterable[TransactionRecord], top_n: int = 10) -> ThemeRiver:
    """Sparse monthly totals for the top categories."""
    df = expense_frame(expenses)
    if df.empty:
        return ThemeRiver()

    categories = list(_category_totals(df).head(top_n).index)
    rank = {category: position for position, category in enumerate(categories)}
    df = df[df['Category'].isin(categories)].copy()
    df['Period'] = df['Date'].dt.strftime('%Y-%m')

    sums = df.groupby(['Period', 'Category'], sort=False)['Amount'].sum()
    keys = sorted(sums.index, key=lambda key: (key[0], rank[key[1]]))
    points = [
        ThemeRiverPoint(period_key=period, category=category, value=float(sums[(period, category)]))
        for period, category in keys
        if sums[(period, category)] > 0
    ]
    return ThemeRiver(points=points, categories=categories)


def _banded_totals(df: pd.DataFrame, bands: Sequence[Tuple[float, float, str]]):
    for lower, upper, label in bands:
        mask = (df['Amount'] >= lower) & (df['Amount'] < upper)
        yield label, lower, upper, float(df.loc[mask, 'Amount'].sum())


def funnel_analysis(expenses: Iterable[TransactionRecord]) -> List[FunnelBucket]:
    """Spend per amount band, largest band first; empty bands are dropped."""
    df = expense_frame(expenses)
    grand_total = float(df['Amount'].sum())
    buckets = [
        FunnelBucket(label=label, value=round(total, 2), percentage_of_total=round(_share(total, grand_total), 1))
        for label, _, _, total in _banded_totals(df, FUNNEL_BANDS)
        if total > 0
    ]
    return sorted(buckets, key=lambda bucket: -bucket.value)


def spending_tiers(expenses: Iterable[TransactionRecord]) -> List[SpendingTier]:
    df = expense_frame(expenses)
    return [
        SpendingTier(label=label, value=round(total, 2), lower=lower, upper=upper)
        for label, lower, upper, total in _banded_totals(df, SPENDING_TIERS)
        if total > 0
    ]


def word_weights(
    expenses: Iterable[TransactionRecord],
    min_amount: float = 10.0,
    limit: int = 30,
    normalizer: Optional[MerchantNormalizer] = None,
) -> List[WordCloudEntry]:
    """Merchant spend for a word cloud; totals at or below ``min_amount`` are dropped."""
    df = expense_frame(expenses, normalizer, use_description=False)
    if df.empty:
        return []
    totals = df.groupby('Merchant', sort=False)['Amount'].sum()
    entries = [
        WordCloudEntry(label=name, weight=round(float(total), 2))
        for name, total in totals.items()
        if name.strip() and name not in _PLACEHOLDER_MERCHANTS and total > min_amount
    ]
    entries.sort(key=lambda entry: -entry.weight)
    return entries[:limit]


def box_plot(
    expenses: Iterable[TransactionRecord],
    top_n: int = 8,
    categories: Optional[Sequence[str]] = None,
) -> BoxPlotData:
    """Quartile statistics and scatter points per category.

    Quartiles use linear interpolation between closest ranks
    (``index = p/100 * (n - 1)``).  With ``categories`` given, those
    categories are reported in that order and one with no transactions gets
    an empty entry; otherwise the ``top_n`` categories by spend are used.
    """
    df = expense_frame(expenses)
    if categories is None:
        if df.empty:
            return BoxPlotData()
        categories = list(_category_totals(df).head(top_n).index)

    stats: List[BoxPlotStat] = []
    points: List[BoxPlotPoint] = []
    for index, category in enumerate(categories):
        group = df[df['Category'] == category]
        for _, row in group.iterrows():
            points.append(
                BoxPlotPoint(
                    category_index=index,
                    amount=float(row['Amount']),
                    merchant=row['Merchant'],
                    date=row['Record'].day,
                )
            )
        if group.empty:
            stats.append(BoxPlotStat(category=category))
            continue
        amounts = np.sort(group['Amount'].to_numpy(dtype=float))
        q1, median, q3 = np.percentile(amounts, [25, 50, 75], method='linear')
        stats.append(
            BoxPlotStat(
                category=category,
                min=float(amounts[0]),
                q1=float(q1),
                median=float(median),
                q3=float(q3),
                max=float(amounts[-1]),
            )
        )
    return BoxPlotData(stats=stats, points=points)


def payment_methods(expenses: Iterable[TransactionRecord]) -> List[PaymentMethodStat]:
    """Spend per account, with the parenthetical card suffix removed."""
    df = expense_frame(expenses)
    if df.empty:
        return []
    df['Method'] = df['Account'].map(lambda account: (account or OTHER_LABEL).split('(')[0].strip() or OTHER_LABEL)
    df['Day'] = df['Date'].dt.date

    grand_total = float(df['Amount'].sum())
    total_count = len(df)
    grouped = df.groupby('Method', sort=False).agg(
        count=('Amount', 'size'),
        total=('Amount', 'sum'),
        days=('Day', 'nunique'),
    )
    methods = [
        PaymentMethodStat(
            name=name,
            transaction_count=int(row['count']),
            total_amount=round(float(row['total']), 2),
            average_amount=round(float(row['total']) / int(row['count']), 2),
            usage_days=int(row['days']),
            amount_ratio=round(_share(float(row['total']), grand_total), 2),
            count_ratio=round(_share(int(row['count']), total_count), 2),
        )
        for name, row in grouped.iterrows()
    ]
    return sorted(methods, key=lambda method: -method.total_amount)


def spending_habits(
    expenses: Iterable[TransactionRecord],
    food_categories: Sequence[str] = DEFAULT_FOOD_CATEGORIES,
) -> SpendingHabits:
    """Daily average, weekend/month-start/late-night shares and Engel coefficient.

    Late-night spend (22:00-04:00) can only be detected for records that
    carry a time of day; date-only records never count as late night.
    """
    records = list(expenses)
    df = expense_frame(records)
    if df.empty:
        return SpendingHabits()

    total = float(df['Amount'].sum())
    daily = df.groupby(df['Date'].dt.date)['Amount'].sum()

    weekend = float(df.loc[df['Date'].dt.dayofweek >= 5, 'Amount'].sum())
    month_start = float(df.loc[df['Date'].dt.day <= 5, 'Amount'].sum())

    timed = df['Record'].map(lambda record: isinstance(record.date, datetime))
    hours = df['Date'].dt.hour
    late_night = float(df.loc[timed & ((hours >= 22) | (hours < 4)), 'Amount'].sum())

    # A merchant is "fixed" when it shows up in most months of the period.
    df['Period'] = df['Date'].dt.strftime('%Y-%m')
    raw_merchant = df['Record'].map(lambda record: record.merchant or UNKNOWN_MERCHANT)
    months_per_merchant = df.groupby(raw_merchant)['Period'].nunique()
    needed = max(2, df['Period'].nunique() * 0.8)
    recurring = set(months_per_merchant[months_per_merchant >= needed].index) - {UNKNOWN_MERCHANT}
    fixed = float(df.loc[raw_merchant.isin(recurring), 'Amount'].sum())

    lowered = [category.lower() for category in food_categories]
    is_food = df['Category'].str.lower().map(lambda name: any(food in name for food in lowered))
    food = float(df.loc[is_food.astype(bool), 'Amount'].sum())

    return SpendingHabits(
        daily_average=round(float(daily.mean()), 2),
        active_days=int(len(daily)),
        weekend_ratio=round(_share(weekend, total), 1),
        fixed_expenses_ratio=round(_share(fixed, total), 1),
        month_start_ratio=round(_share(month_start, total), 1),
        late_night_ratio=round(_share(late_night, total), 2),
        engel_coefficient=round(_share(food, total), 2),
    )


def filter_by_threshold(
    expenses: Iterable[TransactionRecord],
    threshold: float,
    above: bool = True,
) -> List[TransactionRecord]:
    """Outflows at or above ``threshold`` (or strictly below it when ``above`` is False)."""
    if above:
        return [record for record in expenses if record.magnitude >= threshold]
    return [record for record in expenses if record.magnitude < threshold]
