from datetime import date

import pytest

from ledger_insights.config import AnalyticsOptions
from ledger_insights.models import TransactionRecord


def txn(day, amount, category='Food', merchant='', **kwargs):
    """Build a record from an ISO date string or a date."""
    if isinstance(day, str):
        day = date.fromisoformat(day)
    return TransactionRecord(date=day, amount=amount, category=category, merchant=merchant, **kwargs)


@pytest.fixture
def make_txn():
    return txn


@pytest.fixture
def options():
    return AnalyticsOptions()


@pytest.fixture
def sample_year():
    """One year: Food spend of 100 and a 1000 salary every month."""
    records = []
    for month in range(1, 13):
        records.append(txn(f'2024-{month:02d}-05', -60, 'Food', 'Bakery', owner='Alice'))
        records.append(txn(f'2024-{month:02d}-18', -40, 'Food', 'Grocer', owner='Bob'))
        records.append(txn(f'2024-{month:02d}-25', 1000, 'Salary', 'Employer', owner='Alice'))
    return records
