"""Threshold-based spending alerts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional

from .config import AnalyticsOptions
from .logging_setup import get_logger
from .models import BudgetReport, MonthlyStats, SpendingAlert, TransactionRecord, YearlyStats

logger = get_logger(__name__)

HIGH_VALUE = "high_value"
MONTHLY_INCREASE = "monthly_increase"
YEARLY_INCREASE = "yearly_increase"
BUDGET_EXCEEDED = "budget_exceeded"


@dataclass(frozen=True)
class AlertThresholds:
    single_transaction: float = 1000.0
    monthly_increase_pct: float = 20.0
    yearly_increase_pct: float = 20.0
    budget_usage_pct: float = 80.0

    @classmethod
    def from_options(cls, options: AnalyticsOptions) -> "AlertThresholds":
        return cls(
            single_transaction=options.single_transaction_threshold,
            monthly_increase_pct=options.monthly_increase_threshold_pct,
            yearly_increase_pct=options.yearly_increase_threshold_pct,
            budget_usage_pct=options.budget_usage_threshold_pct,
        )


def _growth(current: float, previous: float) -> Optional[float]:
    if previous == 0:
        return None
    return (current - previous) / previous * 100


class SpendingAnalyzer:
    """Runs the four alert checks; each check is independent of the others."""

    def __init__(self, thresholds: Optional[AlertThresholds] = None):
        self.thresholds = thresholds or AlertThresholds()

    def check_high_value_transactions(self, transactions: Iterable[TransactionRecord]) -> List[SpendingAlert]:
        threshold = self.thresholds.single_transaction
        alerts = []
        for record in transactions:
            if not record.is_outflow or record.magnitude < threshold:
                continue
            label = record.description or record.merchant or record.category
            alerts.append(
                SpendingAlert(
                    kind=HIGH_VALUE,
                    amount=record.magnitude,
                    threshold=threshold,
                    date=record.day,
                    category=record.category,
                    message=f"Large transaction: {label} {record.magnitude:.2f}",
                )
            )
        return alerts

    def check_monthly_increase(
        self, current: MonthlyStats, previous: Optional[MonthlyStats]
    ) -> List[SpendingAlert]:
        if previous is None:
            logger.debug("No previous month for %d-%02d; skipping growth check", current.year, current.month)
            return []
        increase = _growth(current.expense, previous.expense)
        threshold = self.thresholds.monthly_increase_pct
        if increase is None or increase < threshold:
            return []
        return [
            SpendingAlert(
                kind=MONTHLY_INCREASE,
                amount=current.expense,
                threshold=threshold,
                date=date(current.year, current.month, 1),
                message=f"Monthly spending up {increase:.1f}% on the previous month",
            )
        ]

    def check_yearly_increase(
        self, current: YearlyStats, previous: Optional[YearlyStats]
    ) -> List[SpendingAlert]:
        if previous is None:
            logger.debug("No previous year for %d; skipping growth check", current.year)
            return []
        increase = _growth(current.total_expense, previous.total_expense)
        threshold = self.thresholds.yearly_increase_pct
        if increase is None or increase < threshold:
            return []
        return [
            SpendingAlert(
                kind=YEARLY_INCREASE,
                amount=current.total_expense,
                threshold=threshold,
                date=date(current.year, 1, 1),
                message=f"Yearly spending up {increase:.1f}% on the previous year",
            )
        ]

    def check_budget_usage(self, report: BudgetReport, year: int, month: Optional[int] = None) -> List[SpendingAlert]:
        """Alert on categories whose budget usage reached the threshold.

        The alert carries the category spend as ``amount`` and the category
        budget as ``threshold``.
        """
        alerts = []
        for category, progress in report.categories.items():
            if progress.budget <= 0 or progress.percentage_used < self.thresholds.budget_usage_pct:
                continue
            alerts.append(
                SpendingAlert(
                    kind=BUDGET_EXCEEDED,
                    amount=progress.spent,
                    threshold=progress.budget,
                    date=date(year, month or 1, 1),
                    category=category,
                    message=f'"{category}" budget {progress.percentage_used:.1f}% used',
                )
            )
        return alerts

    def analyze_spending(
        self,
        transactions: Iterable[TransactionRecord],
        current_month: MonthlyStats,
        previous_month: Optional[MonthlyStats],
        current_year: YearlyStats,
        previous_year: Optional[YearlyStats],
        budget_report: BudgetReport,
    ) -> List[SpendingAlert]:
        alerts: List[SpendingAlert] = []
        alerts.extend(self.check_high_value_transactions(transactions))
        alerts.extend(self.check_monthly_increase(current_month, previous_month))
        alerts.extend(self.check_yearly_increase(current_year, previous_year))
        alerts.extend(self.check_budget_usage(budget_report, current_month.year, current_month.month))
        return alerts
