"""Query surface: one method per reporting artifact.

:class:`LedgerAnalytics` reads the ledger on every call and recomputes the
requested artifact from scratch; it keeps no results between calls.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Union

from . import aggregation, distribution, flows, merchants
from .alerts import AlertThresholds, SpendingAnalyzer
from .budgets import BudgetStore, calculate_budget_progress
from .config import AnalyticsOptions, load_options
from .errors import BudgetStoreError, MissingPeriodData
from .ledger import LedgerReader, OwnerDirectory
from .logging_setup import get_logger
from .merchants import MerchantNormalizer
from .models import (
    Budget,
    BudgetReport,
    CategoryYearlyStats,
    FlowGraph,
    MonthlyFinancials,
    MonthlyStats,
    SalaryRecord,
    SpendingAlert,
    TransactionRecord,
    YearlyStats,
)

logger = get_logger(__name__)

PeriodStats = Union[MonthlyStats, YearlyStats]


def _pick(value: Any, default: Any) -> Any:
    return default if value is None else value


def previous_month(year: int, month: int):
    return (year - 1, 12) if month == 1 else (year, month - 1)


class LedgerAnalytics:
    """Reporting queries over a ledger reader.

    Args:
        reader: Source of transaction records
        budget_store: Optional budget source for progress and alerts
        owners: Owner directory; defaults to the reader's, if it has one
        options: Tuning options; defaults to :func:`load_options`
        normalizer: Merchant normalizer; defaults to the bundled rules
    """

    def __init__(
        self,
        reader: LedgerReader,
        budget_store: Optional[BudgetStore] = None,
        owners: Optional[OwnerDirectory] = None,
        options: Optional[AnalyticsOptions] = None,
        normalizer: Optional[MerchantNormalizer] = None,
    ):
        self.reader = reader
        self.budget_store = budget_store
        self.owners = owners or getattr(reader, 'owners', None) or OwnerDirectory()
        self.options = options or load_options()
        self.normalizer = normalizer

    # ------------------------------------------------------------------
    # Rollups
    # ------------------------------------------------------------------

    def _records(self, year: int, month: Optional[int] = None) -> List[TransactionRecord]:
        # Owner filtering happens in the aggregator so yearly month lists
        # reflect every month with data.
        return self.reader.get_transactions(year, month)

    def monthly_stats(self, year: int, month: int, owner: Optional[str] = None) -> MonthlyStats:
        return aggregation.calculate_monthly_stats(
            self._records(year, month),
            year,
            month,
            owner=owner,
            owners=self.owners,
            salary_categories=self.options.salary_categories,
        )

    def yearly_stats(self, year: int, owner: Optional[str] = None) -> YearlyStats:
        return aggregation.calculate_yearly_stats(
            self._records(year),
            year,
            owner=owner,
            owners=self.owners,
            salary_categories=self.options.salary_categories,
        )

    def category_yearly_stats(
        self,
        year: int,
        owner: Optional[str] = None,
        exclude_unbudgeted: bool = False,
        top_expenses_limit: Optional[int] = None,
    ) -> CategoryYearlyStats:
        return aggregation.calculate_category_yearly_stats(
            self._records(year),
            year,
            owner=owner,
            owners=self.owners,
            exclude_tag=self.options.unbudgeted_tag if exclude_unbudgeted else None,
            top_expenses_limit=_pick(top_expenses_limit, self.options.top_expenses_limit),
        )

    def period_stats(self, year: int, month: Optional[int] = None, owner: Optional[str] = None) -> PeriodStats:
        if month is None:
            return self.yearly_stats(year, owner)
        return self.monthly_stats(year, month, owner)

    def _expenses(self, year: int, month: Optional[int], owner: Optional[str]) -> List[TransactionRecord]:
        return self.period_stats(year, month, owner).expenses

    # ------------------------------------------------------------------
    # Budgets
    # ------------------------------------------------------------------

    def _budget(self, year: int, month: Optional[int]):
        if self.budget_store is None:
            return Budget(year=year, month=month), False
        try:
            return self.budget_store.get_budget(year, month), True
        except BudgetStoreError as exc:
            logger.warning("Budget unavailable for %s; reporting zero budgets: %s", year, exc)
            return Budget(year=year, month=month), False

    def budget_progress(self, year: int, month: Optional[int] = None, owner: Optional[str] = None) -> BudgetReport:
        stats = self.period_stats(year, month, owner)
        spent = {name: stat.total_amount for name, stat in stats.category_stats.items()}
        total_spent = stats.expense if isinstance(stats, MonthlyStats) else stats.total_expense
        budget, available = self._budget(year, month)
        return calculate_budget_progress(budget, total_spent, spent, budget_available=available)

    # ------------------------------------------------------------------
    # Flow graphs and merchants
    # ------------------------------------------------------------------

    def flow_graph(
        self,
        year: int,
        month: Optional[int] = None,
        owner: Optional[str] = None,
        top_categories: Optional[int] = None,
        top_merchants: Optional[int] = None,
        inclusion_ratio: Optional[float] = None,
        bucket_unattributed: bool = True,
    ) -> FlowGraph:
        stats = self.period_stats(year, month, owner)
        return flows.build_expense_flow_graph(
            stats.category_stats,
            top_categories=_pick(top_categories, self.options.top_categories_count),
            top_merchants=_pick(top_merchants, self.options.top_merchants_per_category),
            inclusion_ratio=_pick(inclusion_ratio, self.options.merchant_inclusion_ratio),
            bucket_unattributed=bucket_unattributed,
            normalizer=self.normalizer,
        )

    def income_flow_graph(self, year: int, month: Optional[int] = None, owner: Optional[str] = None) -> FlowGraph:
        stats = self.period_stats(year, month, owner)
        if isinstance(stats, MonthlyStats):
            income, expense = stats.income, stats.expense
        else:
            income, expense = stats.total_income, stats.total_expense
        return flows.build_income_flow_graph(income, expense, stats.total_salary, stats.category_stats)

    def top_merchants(
        self, year: int, month: Optional[int] = None, owner: Optional[str] = None, limit: Optional[int] = None
    ):
        return merchants.top_merchants(
            self._expenses(year, month, owner),
            limit=_pick(limit, self.options.top_merchants_limit),
            normalizer=self.normalizer,
        )

    # ------------------------------------------------------------------
    # Distributions
    # ------------------------------------------------------------------

    def pareto(self, year: int, month: Optional[int] = None, owner: Optional[str] = None, limit: Optional[int] = None):
        return distribution.pareto_analysis(
            self._expenses(year, month, owner), limit=_pick(limit, self.options.pareto_limit)
        )

    def quadrant(
        self,
        year: int,
        month: Optional[int] = None,
        owner: Optional[str] = None,
        min_total: Optional[float] = None,
        min_frequency: Optional[int] = None,
    ):
        return distribution.quadrant_analysis(
            self._expenses(year, month, owner),
            min_total=_pick(min_total, self.options.quadrant_min_total),
            min_frequency=_pick(min_frequency, self.options.quadrant_min_frequency),
            normalizer=self.normalizer,
        )

    def theme_river(self, year: int, month: Optional[int] = None, owner: Optional[str] = None, top_n: Optional[int] = None):
        return distribution.theme_river(
            self._expenses(year, month, owner), top_n=_pick(top_n, self.options.theme_river_top_n)
        )

    def funnel(self, year: int, month: Optional[int] = None, owner: Optional[str] = None):
        return distribution.funnel_analysis(self._expenses(year, month, owner))

    def word_weights(
        self,
        year: int,
        month: Optional[int] = None,
        owner: Optional[str] = None,
        min_amount: Optional[float] = None,
        limit: Optional[int] = None,
    ):
        return distribution.word_weights(
            self._expenses(year, month, owner),
            min_amount=_pick(min_amount, self.options.word_cloud_min_amount),
            limit=_pick(limit, self.options.word_cloud_limit),
            normalizer=self.normalizer,
        )

    def box_plot(
        self,
        year: int,
        month: Optional[int] = None,
        owner: Optional[str] = None,
        top_n: Optional[int] = None,
        categories: Optional[Sequence[str]] = None,
    ):
        return distribution.box_plot(
            self._expenses(year, month, owner),
            top_n=_pick(top_n, self.options.box_plot_top_n),
            categories=categories,
        )

    def spending_tiers(self, year: int, month: Optional[int] = None, owner: Optional[str] = None):
        return distribution.spending_tiers(self._expenses(year, month, owner))

    def payment_methods(self, year: int, month: Optional[int] = None, owner: Optional[str] = None):
        return distribution.payment_methods(self._expenses(year, month, owner))

    def spending_habits(self, year: int, month: Optional[int] = None, owner: Optional[str] = None):
        return distribution.spending_habits(
            self._expenses(year, month, owner), food_categories=self.options.food_categories
        )

    # ------------------------------------------------------------------
    # Alerts and summaries
    # ------------------------------------------------------------------

    def _optional_month(self, year: int, month: int, owner: Optional[str]) -> Optional[MonthlyStats]:
        try:
            return self.monthly_stats(year, month, owner)
        except MissingPeriodData:
            return None

    def _optional_year(self, year: int, owner: Optional[str]) -> Optional[YearlyStats]:
        try:
            return self.yearly_stats(year, owner)
        except MissingPeriodData:
            return None

    def alerts(
        self,
        year: int,
        month: int,
        owner: Optional[str] = None,
        thresholds: Optional[AlertThresholds] = None,
    ) -> List[SpendingAlert]:
        """Alerts for one month, compared with the previous month and year."""
        current_month = self.monthly_stats(year, month, owner)
        current_year = self.yearly_stats(year, owner)
        prior_month = self._optional_month(*previous_month(year, month), owner)
        prior_year = self._optional_year(year - 1, owner)
        analyzer = SpendingAnalyzer(thresholds or AlertThresholds.from_options(self.options))
        return analyzer.analyze_spending(
            current_month.transactions,
            current_month,
            prior_month,
            current_year,
            prior_year,
            self.budget_progress(year, month, owner),
        )

    def recent_monthly_financials(
        self,
        reference: Optional[date] = None,
        months: int = 12,
        max_lookback: int = 48,
        owner: Optional[str] = None,
    ) -> List[MonthlyFinancials]:
        """Up to ``months`` most recent months with any activity, oldest first.

        Walks back from ``reference`` one month at a time and gives up after
        ``max_lookback`` months.
        """
        reference = reference or date.today()
        year, month = reference.year, reference.month
        collected: List[MonthlyFinancials] = []
        for _ in range(max_lookback + 1):
            if len(collected) >= months:
                break
            stats = self._optional_month(year, month, owner)
            if stats is not None and (stats.income > 0 or stats.expense > 0):
                collected.append(
                    MonthlyFinancials(
                        period_key=f"{year}-{month:02d}",
                        income=stats.income,
                        expenses=stats.expense,
                        salary=stats.total_salary,
                        balance=stats.balance,
                    )
                )
            year, month = previous_month(year, month)
        else:
            if len(collected) < months:
                logger.warning(
                    "Reached the %d month lookback with only %d active months", max_lookback, len(collected)
                )
        collected.reverse()
        return collected

    def latest_salary(self, owner: Optional[str] = None) -> Optional[SalaryRecord]:
        """Most recent salary inflow across the whole ledger."""
        salary_categories = set(self.options.salary_categories)
        for year in sorted(self.reader.list_years(), reverse=True):
            for month in sorted(self.reader.list_months(year), reverse=True):
                stats = self._optional_month(year, month, owner)
                if stats is None:
                    continue
                salaries = [
                    record for record in stats.transactions
                    if record.is_inflow and record.category in salary_categories
                ]
                if salaries:
                    newest = max(salaries, key=lambda record: record.day)
                    return SalaryRecord(amount=newest.amount, date=newest.day, category=newest.category)
        return None

    def insights(self, year: int, month: Optional[int] = None, owner: Optional[str] = None) -> Dict[str, Any]:
        """Every exploratory artifact for a period, keyed by name."""
        return {
            'flow_graph': self.flow_graph(year, month, owner),
            'income_flow_graph': self.income_flow_graph(year, month, owner),
            'top_merchants': self.top_merchants(year, month, owner),
            'pareto': self.pareto(year, month, owner),
            'quadrant': self.quadrant(year, month, owner),
            'theme_river': self.theme_river(year, month, owner),
            'payment_methods': self.payment_methods(year, month, owner),
            'spending_tiers': self.spending_tiers(year, month, owner),
            'spending_habits': self.spending_habits(year, month, owner),
            'funnel': self.funnel(year, month, owner),
            'word_weights': self.word_weights(year, month, owner),
            'box_plot': self.box_plot(year, month, owner),
        }
