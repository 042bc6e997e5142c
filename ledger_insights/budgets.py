"""Budget persistence and budget-vs-actual progress."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .errors import BudgetStoreError
from .logging_setup import get_logger
from .models import Budget, BudgetProgress, BudgetReport

logger = get_logger(__name__)


def period_key(year: int, month: Optional[int] = None) -> str:
    return str(year) if month is None else f"{year}-{month:02d}"


class BudgetStore:
    """JSON-backed budgets keyed by ``"YYYY"`` or ``"YYYY-MM"``.

    Each entry looks like ``{"total": 5000, "categories": {"Food": 800}}``.
    A month entry, when present, takes precedence over the year entry.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open('r', encoding='utf-8') as handle:
                data = json.load(handle)
        except (json.JSONDecodeError, OSError) as exc:
            raise BudgetStoreError(f"Cannot read budget file {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise BudgetStoreError(f"Budget file {self.path} must contain a JSON object")
        return data

    def _save(self, data: Mapping[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open('w', encoding='utf-8') as handle:
                json.dump(data, handle, indent=2, sort_keys=True, ensure_ascii=False)
        except OSError as exc:
            raise BudgetStoreError(f"Cannot write budget file {self.path}: {exc}") from exc

    def get_budget(self, year: int, month: Optional[int] = None) -> Budget:
        data = self._load()
        entry = None
        if month is not None:
            entry = data.get(period_key(year, month))
        if entry is None:
            entry = data.get(period_key(year))
        if not entry:
            return Budget(year=year, month=month)

        try:
            categories = {str(name): float(value) for name, value in (entry.get('categories') or {}).items()}
            total = float(entry.get('total') or 0.0)
        except (AttributeError, TypeError, ValueError) as exc:
            raise BudgetStoreError(f"Invalid budget entry for {period_key(year, month)}: {exc}") from exc
        return Budget(year=year, month=month, total_budget=total, category_budgets=categories)

    def put_budget(
        self,
        year: int,
        total: Optional[float] = None,
        categories: Optional[Mapping[str, float]] = None,
        month: Optional[int] = None,
    ) -> Budget:
        """Create or update a budget entry.

        Category amounts are merged into the existing entry; an omitted
        ``total`` keeps the stored one.
        """
        data = self._load()
        key = period_key(year, month)
        entry = dict(data.get(key) or {'total': 0.0, 'categories': {}})
        if total is not None:
            entry['total'] = float(total)
        merged = dict(entry.get('categories') or {})
        for name, value in (categories or {}).items():
            merged[name] = float(value)
        entry['categories'] = merged
        data[key] = entry
        self._save(data)
        logger.info("Saved budget %s (total %.2f, %d categories)", key, entry['total'], len(merged))
        return Budget(year=year, month=month, total_budget=entry['total'], category_budgets=merged)


def calculate_progress(budget: float, spent: float) -> BudgetProgress:
    percentage_used = (spent / budget * 100) if budget > 0 else 0.0
    return BudgetProgress(
        budget=budget,
        spent=spent,
        remaining=budget - spent,
        percentage_used=percentage_used,
        over_budget=spent > budget,
    )


def calculate_budget_progress(
    budget: Budget,
    total_spent: float,
    category_spent: Mapping[str, float],
    budget_available: bool = True,
) -> BudgetReport:
    """Compare a budget against actual spend.

    Categories with spend but no configured budget are reported with a
    budget of 0 and 0 % used; any spend marks them ``over_budget``.
    """
    categories: Dict[str, BudgetProgress] = {}
    for name, amount in budget.category_budgets.items():
        categories[name] = calculate_progress(amount, float(category_spent.get(name, 0.0)))
    for name, spent in category_spent.items():
        if name not in categories:
            categories[name] = calculate_progress(0.0, float(spent))

    return BudgetReport(
        total=calculate_progress(budget.total_budget, float(total_spent)),
        categories=categories,
        budget_available=budget_available,
    )
