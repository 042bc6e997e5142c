"""Record and result types shared by the analytics modules.

Transaction records are immutable; every other type here is a derived
value rebuilt on each query.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, FrozenSet, List, Optional, Union

OTHER_LABEL = "Other"
UNKNOWN_MERCHANT = "Unknown merchant"

DateLike = Union[date, datetime]


@dataclass(frozen=True)
class TransactionRecord:
    """A single normalized ledger entry.

    ``amount`` is signed: positive values are inflows, negative values are
    outflows.  ``date`` may be a :class:`datetime.datetime` when the source
    export carries a time of day.
    """

    date: DateLike
    amount: float
    category: str = OTHER_LABEL
    merchant: str = ""
    account: str = ""
    tags: FrozenSet[str] = frozenset()
    owner: str = ""
    description: str = ""

    @property
    def is_outflow(self) -> bool:
        return self.amount < 0

    @property
    def is_inflow(self) -> bool:
        return self.amount > 0

    @property
    def magnitude(self) -> float:
        return abs(self.amount)

    @property
    def day(self) -> date:
        if isinstance(self.date, datetime):
            return self.date.date()
        return self.date


@dataclass
class CategoryStat:
    total_amount: float = 0.0
    count: int = 0
    transactions: List[TransactionRecord] = field(default_factory=list, compare=False, repr=False)


@dataclass
class MonthlyStats:
    year: int
    month: int
    income: float = 0.0
    expense: float = 0.0
    balance: float = 0.0
    category_stats: Dict[str, CategoryStat] = field(default_factory=dict)
    transactions: List[TransactionRecord] = field(default_factory=list, repr=False)
    expenses: List[TransactionRecord] = field(default_factory=list, repr=False)
    transaction_count: int = 0
    total_salary: float = 0.0


@dataclass
class MonthSummary:
    month: int
    income: float = 0.0
    expense: float = 0.0
    balance: float = 0.0
    salary: float = 0.0


@dataclass
class YearlyStats:
    year: int
    total_income: float = 0.0
    total_expense: float = 0.0
    total_balance: float = 0.0
    category_stats: Dict[str, CategoryStat] = field(default_factory=dict)
    monthly_data: List[MonthSummary] = field(default_factory=list)
    transactions: List[TransactionRecord] = field(default_factory=list, repr=False)
    expenses: List[TransactionRecord] = field(default_factory=list, repr=False)
    transaction_count: int = 0
    total_salary: float = 0.0


@dataclass
class CategoryMonthPoint:
    month: int
    amount: float = 0.0
    count: int = 0


@dataclass
class CategoryYearlyStats:
    year: int
    categories: List[str] = field(default_factory=list)
    monthly_data: Dict[str, List[CategoryMonthPoint]] = field(default_factory=dict)
    total_by_category: Dict[str, CategoryStat] = field(default_factory=dict)
    total_expense: float = 0.0
    top_expenses: List[TransactionRecord] = field(default_factory=list, repr=False)
    expenses: List[TransactionRecord] = field(default_factory=list, repr=False)


# ---------------------------------------------------------------------------
# Budgets
# ---------------------------------------------------------------------------


@dataclass
class Budget:
    year: int
    month: Optional[int] = None
    total_budget: float = 0.0
    category_budgets: Dict[str, float] = field(default_factory=dict)


@dataclass
class BudgetProgress:
    budget: float
    spent: float
    remaining: float
    percentage_used: float
    over_budget: bool


@dataclass
class BudgetReport:
    total: BudgetProgress
    categories: Dict[str, BudgetProgress] = field(default_factory=dict)
    budget_available: bool = True


# ---------------------------------------------------------------------------
# Flow graphs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FlowNode:
    name: str


@dataclass(frozen=True)
class FlowLink:
    source: int
    target: int
    value: float


@dataclass
class FlowGraph:
    nodes: List[FlowNode] = field(default_factory=list)
    links: List[FlowLink] = field(default_factory=list)

    def index_of(self, name: str) -> int:
        for index, node in enumerate(self.nodes):
            if node.name == name:
                return index
        raise KeyError(name)

    def outflow(self, index: int) -> float:
        return sum(link.value for link in self.links if link.source == index)

    def inflow(self, index: int) -> float:
        return sum(link.value for link in self.links if link.target == index)

    @property
    def is_empty(self) -> bool:
        return not self.nodes


# ---------------------------------------------------------------------------
# Distribution analytics
# ---------------------------------------------------------------------------


@dataclass
class MerchantStat:
    name: str
    total_amount: float = 0.0
    transaction_count: int = 0
    category_breakdown: Dict[str, CategoryStat] = field(default_factory=dict)
    last_transaction_date: Optional[date] = None


@dataclass
class ParetoResult:
    categories: List[str] = field(default_factory=list)
    values: List[float] = field(default_factory=list)
    cumulative_percentages: List[float] = field(default_factory=list)


@dataclass
class QuadrantPoint:
    name: str
    category: str
    frequency: int
    average_amount: float
    total_amount: float


@dataclass(frozen=True)
class ThemeRiverPoint:
    period_key: str
    category: str
    value: float


@dataclass
class ThemeRiver:
    points: List[ThemeRiverPoint] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)


@dataclass
class FunnelBucket:
    label: str
    value: float
    percentage_of_total: float


@dataclass
class WordCloudEntry:
    label: str
    weight: float


@dataclass
class BoxPlotStat:
    category: str
    min: Optional[float] = None
    q1: Optional[float] = None
    median: Optional[float] = None
    q3: Optional[float] = None
    max: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        return self.min is None

    def as_list(self) -> List[float]:
        if self.is_empty:
            return []
        return [self.min, self.q1, self.median, self.q3, self.max]


@dataclass(frozen=True)
class BoxPlotPoint:
    category_index: int
    amount: float
    merchant: str
    date: date


@dataclass
class BoxPlotData:
    stats: List[BoxPlotStat] = field(default_factory=list)
    points: List[BoxPlotPoint] = field(default_factory=list)

    @property
    def categories(self) -> List[str]:
        return [stat.category for stat in self.stats]


@dataclass
class PaymentMethodStat:
    name: str
    transaction_count: int
    total_amount: float
    average_amount: float
    usage_days: int
    amount_ratio: float
    count_ratio: float


@dataclass
class SpendingTier:
    label: str
    value: float
    lower: float
    upper: float


@dataclass
class SpendingHabits:
    daily_average: float = 0.0
    active_days: int = 0
    weekend_ratio: float = 0.0
    fixed_expenses_ratio: float = 0.0
    month_start_ratio: float = 0.0
    late_night_ratio: float = 0.0
    engel_coefficient: float = 0.0


# ---------------------------------------------------------------------------
# Alerts and summaries
# ---------------------------------------------------------------------------


@dataclass
class SpendingAlert:
    kind: str
    amount: float
    threshold: float
    date: date
    category: Optional[str] = None
    message: str = ""


@dataclass
class MonthlyFinancials:
    period_key: str
    income: float
    expenses: float
    salary: float
    balance: float


@dataclass
class SalaryRecord:
    amount: float
    date: date
    category: str
