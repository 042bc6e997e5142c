"""Top-level package for Ledger Insights.

A personal/family ledger analytics engine.  The primary modules are:

* ``ledger`` - ledger readers and row normalization
* ``aggregation`` - monthly, yearly and per-category rollups
* ``budgets`` - budget store and budget-vs-actual progress
* ``flows`` / ``distribution`` / ``alerts`` - the exploratory reports
* ``reports`` - :class:`LedgerAnalytics`, one query per report
* ``visualization`` - Plotly figures for the reports
* ``dashboard`` - a Streamlit app that ties everything together

To run the dashboard from the command line you can execute:

```bash
streamlit run ledger_insights/dashboard.py
```
"""

from .errors import BudgetStoreError, LedgerError, MalformedRecord, MissingPeriodData  # noqa: F401
from .ledger import CsvLedgerReader, InMemoryLedger, OwnerDirectory  # noqa: F401
from .models import TransactionRecord  # noqa: F401
from .reports import LedgerAnalytics  # noqa: F401

from . import visualization  # noqa: F401  # re-exported for convenience
# Streamlit may not be installed in all environments (e.g. during unit
# testing); the dashboard is then unavailable.
try:
    from . import dashboard  # type: ignore  # noqa: F401
except ModuleNotFoundError:
    dashboard = None  # type: ignore


__all__ = [
    "BudgetStoreError",
    "CsvLedgerReader",
    "InMemoryLedger",
    "LedgerAnalytics",
    "LedgerError",
    "MalformedRecord",
    "MissingPeriodData",
    "OwnerDirectory",
    "TransactionRecord",
    "dashboard",
    "visualization",
]
