"""Flow graphs (sankey data) for expense and income breakdowns.

Graphs are built as plain node/link lists; the figure layer in
:mod:`ledger_insights.visualization` turns them into plotly sankeys.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Tuple

from .merchants import MerchantNormalizer, merchant_label
from .models import CategoryStat, FlowGraph, FlowLink, FlowNode

TOTAL_EXPENSE_NODE = "Total expense"
OTHER_CATEGORIES_NODE = "Other categories"
OTHER_MERCHANTS_NODE = "Other merchants"

SALARY_NODE = "Salary income"
OTHER_INCOME_NODE = "Other income"
DEFICIT_NODE = "Deficit"
TOTAL_INCOME_NODE = "Total income"
BALANCE_NODE = "Balance"
EXPENSE_NODE = "Expense"

# Remainders smaller than this are float noise, not money.
_EPSILON = 1e-6


class _GraphBuilder:
    """Collects nodes keyed by (namespace, name) and the links between them."""

    def __init__(self):
        self.nodes: List[FlowNode] = []
        self.links: List[FlowLink] = []
        self._index: Dict[Tuple[str, str], int] = {}

    def node(self, name: str, namespace: str = 'node') -> int:
        key = (namespace, name)
        if key not in self._index:
            self._index[key] = len(self.nodes)
            self.nodes.append(FlowNode(name))
        return self._index[key]

    def link(self, source: int, target: int, value: float) -> None:
        self.links.append(FlowLink(source=source, target=target, value=value))

    def build(self) -> FlowGraph:
        return FlowGraph(nodes=self.nodes, links=self.links)


def _merchant_totals(stat: CategoryStat, normalizer: Optional[MerchantNormalizer]) -> List[Tuple[str, float]]:
    totals: Dict[str, float] = {}
    for record in stat.transactions:
        name = merchant_label(record, normalizer)
        totals[name] = totals.get(name, 0.0) + record.magnitude
    return sorted(totals.items(), key=lambda item: -item[1])


def build_expense_flow_graph(
    category_stats: Mapping[str, CategoryStat],
    top_categories: int = 8,
    top_merchants: int = 3,
    inclusion_ratio: float = 0.005,
    bucket_unattributed: bool = True,
    normalizer: Optional[MerchantNormalizer] = None,
) -> FlowGraph:
    """Build the total -> category -> merchant flow graph.

    Args:
        category_stats: Outflow rollup per category, with transactions
        top_categories: Categories linked directly from the root
        top_merchants: Merchants shown per top category
        inclusion_ratio: Share of total outflow a merchant needs to be shown;
            the largest merchant of a category is always shown
        bucket_unattributed: Link each category's remainder (spend not shown
            through its merchants) to the shared "Other merchants" leaf
        normalizer: Merchant normalizer, defaults to the bundled rules

    Returns:
        FlowGraph; empty when there is no outflow
    """
    ranked = sorted(category_stats.items(), key=lambda item: -abs(item[1].total_amount))
    total = sum(abs(stat.total_amount) for _, stat in ranked)
    if total <= 0:
        return FlowGraph()

    threshold = total * inclusion_ratio
    graph = _GraphBuilder()
    root = graph.node(TOTAL_EXPENSE_NODE, 'root')

    def other_merchants() -> int:
        return graph.node(OTHER_MERCHANTS_NODE, 'bucket')

    for category, stat in ranked[:top_categories]:
        category_total = abs(stat.total_amount)
        if category_total <= 0:
            continue
        category_index = graph.node(category, 'category')
        graph.link(root, category_index, category_total)

        merchants = _merchant_totals(stat, normalizer)
        selected = [
            (name, amount) for position, (name, amount) in enumerate(merchants)
            if amount >= threshold or position == 0
        ][:top_merchants]
        for name, amount in selected:
            graph.link(category_index, graph.node(name, 'merchant'), amount)

        remainder = category_total - sum(amount for _, amount in selected)
        if bucket_unattributed and remainder > _EPSILON:
            graph.link(category_index, other_merchants(), remainder)

    rest_total = sum(abs(stat.total_amount) for _, stat in ranked[top_categories:])
    if rest_total > 0:
        rest_index = graph.node(OTHER_CATEGORIES_NODE, 'bucket')
        graph.link(root, rest_index, rest_total)
        graph.link(rest_index, other_merchants(), rest_total)

    return graph.build()


def build_income_flow_graph(
    total_income: float,
    total_expense: float,
    total_salary: float,
    category_stats: Mapping[str, CategoryStat],
) -> FlowGraph:
    """Income sources -> total income -> balance / expense -> categories.

    When spending exceeds income, a "Deficit" source covers the shortfall so
    the total income node still balances.
    """
    if total_income <= 0 and total_expense <= 0:
        return FlowGraph()

    graph = _GraphBuilder()
    salary = graph.node(SALARY_NODE)
    other = graph.node(OTHER_INCOME_NODE)
    total = graph.node(TOTAL_INCOME_NODE)
    balance = graph.node(BALANCE_NODE)
    expense = graph.node(EXPENSE_NODE)

    other_income = max(0.0, total_income - total_salary)
    if total_salary > 0:
        graph.link(salary, total, total_salary)
    if other_income > 0:
        graph.link(other, total, other_income)
    if total_expense > total_income:
        graph.link(graph.node(DEFICIT_NODE), total, total_expense - total_income)

    if total_income > total_expense:
        graph.link(total, balance, total_income - total_expense)
    if total_expense > 0:
        graph.link(total, expense, total_expense)

    for category, stat in sorted(category_stats.items(), key=lambda item: -abs(item[1].total_amount)):
        amount = abs(stat.total_amount)
        if amount > 0:
            graph.link(expense, graph.node(category, 'category'), amount)

    return graph.build()
