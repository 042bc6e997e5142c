"""Exception types raised by the ledger analytics engine.

Only :class:`MissingPeriodData` is meant to reach callers of the query
layer.  The other errors are raised at component boundaries and degraded
to defined defaults by the code that calls them.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional


class LedgerError(Exception):
    """Base class for all errors raised by ``ledger_insights``."""


class MissingPeriodData(LedgerError):
    """The requested year (or month) has no ledger data at all.

    This is distinct from a period that exists but has zero spend, which is
    reported as an ordinary, zero-valued result.
    """

    def __init__(self, year: int, month: Optional[int] = None):
        self.year = year
        self.month = month
        if month is None:
            message = f"No ledger data for {year}"
        else:
            message = f"No ledger data for {year}-{month:02d}"
        super().__init__(message)


class MalformedRecord(LedgerError):
    """A raw row could not be normalized into a transaction record."""

    def __init__(self, reason: str, row: Optional[Mapping[str, Any]] = None):
        self.reason = reason
        self.row = dict(row) if row is not None else {}
        super().__init__(reason)


class BudgetStoreError(LedgerError):
    """The budget configuration could not be read or written."""
