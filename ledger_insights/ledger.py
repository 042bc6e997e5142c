"""Ledger readers and row normalization.

Raw rows coming from CSV exports are keyed by whatever headers the export
used (English or the Chinese headers written by the import tools).  They
are normalized once, here, into :class:`TransactionRecord` instances; the
analytics modules never look at raw field names.
"""

from __future__ import annotations

import json
import re
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

import pandas as pd

from .errors import MalformedRecord, MissingPeriodData
from .logging_setup import get_logger
from .models import OTHER_LABEL, TransactionRecord

logger = get_logger(__name__)

ALL_OWNERS = "all"

# Normalized field -> accepted source headers, checked in order.
COLUMN_ALIASES: Dict[str, Sequence[str]] = {
    'date': ('date', 'Date', 'Transaction Date', '日期', '交易时间'),
    'amount': ('amount', 'Amount', '金额', '金额(元)'),
    'category': ('category', 'Category', '分类'),
    'merchant': ('merchant', 'Merchant', 'payee', 'Payee', 'counterparty', '交易对方'),
    'account': ('account', 'Account', '账户'),
    'tags': ('tags', 'Tags', '标签'),
    'owner': ('owner', 'Owner', '账单人'),
    'description': ('description', 'Description', '描述', '备注'),
}

_TAG_SPLIT = re.compile(r"[,，;；\s]+")
_SKIPPED_STEM_MARKERS = ('_', 'alipay', 'wechat')


class LedgerReader(Protocol):
    """Read access to the ledger, one period at a time."""

    def get_transactions(
        self, year: int, month: Optional[int] = None, owner: Optional[str] = None
    ) -> List[TransactionRecord]:
        ...

    def list_years(self) -> List[int]:
        ...

    def list_months(self, year: int, owner: Optional[str] = None) -> List[int]:
        ...


# ---------------------------------------------------------------------------
# Row normalization
# ---------------------------------------------------------------------------


def _is_blank(value: Any) -> bool:
    if value is None or value is pd.NaT:
        return True
    if isinstance(value, float) and pd.isna(value):
        return True
    return isinstance(value, str) and not value.strip()


def _lookup(row: Mapping[str, Any], field_name: str) -> Any:
    for alias in COLUMN_ALIASES[field_name]:
        if alias in row and not _is_blank(row[alias]):
            return row[alias]
    return None


def _text(value: Any) -> str:
    return '' if _is_blank(value) else str(value).strip()


def _parse_amount(value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        amount = float(value)
    else:
        cleaned = _text(value).replace('¥', '').replace('$', '').replace(',', '')
        try:
            amount = float(cleaned)
        except ValueError:
            raise MalformedRecord(f"non-numeric amount {value!r}") from None
    if pd.isna(amount):
        raise MalformedRecord(f"non-numeric amount {value!r}")
    return amount


def _parse_date(value: Any):
    if _is_blank(value):
        raise MalformedRecord(f"missing date {value!r}")
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return value
    parsed = pd.to_datetime(_text(value), errors='coerce')
    if pd.isna(parsed):
        raise MalformedRecord(f"unparseable date {value!r}")
    parsed = parsed.to_pydatetime()
    if parsed.hour == 0 and parsed.minute == 0 and parsed.second == 0 and ':' not in _text(value):
        return parsed.date()
    return parsed


def _parse_tags(value: Any) -> frozenset:
    if _is_blank(value):
        return frozenset()
    if isinstance(value, (list, tuple, set, frozenset)):
        parts = [str(part) for part in value]
    else:
        parts = _TAG_SPLIT.split(str(value))
    return frozenset(part.strip().lstrip('#') for part in parts if part.strip().lstrip('#'))


def parse_record(row: Mapping[str, Any]) -> TransactionRecord:
    """Normalize one raw row into a :class:`TransactionRecord`.

    Raises:
        MalformedRecord: If the amount is missing or non-numeric, or the date
            is missing or cannot be parsed.
    """
    raw_date = _lookup(row, 'date')
    raw_amount = _lookup(row, 'amount')
    if raw_date is None:
        raise MalformedRecord("missing date", row)
    if raw_amount is None:
        raise MalformedRecord("missing amount", row)

    try:
        amount = _parse_amount(raw_amount)
        when = _parse_date(raw_date)
    except MalformedRecord as exc:
        raise MalformedRecord(exc.reason, row) from None

    return TransactionRecord(
        date=when,
        amount=amount,
        category=_text(_lookup(row, 'category')) or OTHER_LABEL,
        merchant=_text(_lookup(row, 'merchant')),
        account=_text(_lookup(row, 'account')),
        tags=_parse_tags(_lookup(row, 'tags')),
        owner=_text(_lookup(row, 'owner')),
        description=_text(_lookup(row, 'description')),
    )


def normalize_rows(rows: Iterable[Mapping[str, Any]]) -> List[TransactionRecord]:
    """Parse rows in order, skipping malformed ones with a warning."""
    records: List[TransactionRecord] = []
    skipped = 0
    for position, row in enumerate(rows):
        try:
            records.append(parse_record(row))
        except MalformedRecord as exc:
            skipped += 1
            logger.warning("Skipping malformed ledger row %d: %s", position, exc.reason)
    if skipped:
        logger.info("Normalized %d rows, skipped %d", len(records), skipped)
    return records


# ---------------------------------------------------------------------------
# Owners
# ---------------------------------------------------------------------------


class OwnerDirectory:
    """Maps owner ids onto the display names stored on records."""

    def __init__(self, owners: Optional[Mapping[str, str]] = None):
        self._owners: Dict[str, str] = dict(owners or {})

    @classmethod
    def from_json(cls, path: Path) -> "OwnerDirectory":
        """Load ``{"owners": [{"id": ..., "name": ...}]}``; a missing file is empty."""
        path = Path(path)
        if not path.exists():
            logger.debug("Owner file %s not found; owner ids used as names", path)
            return cls()
        with path.open('r', encoding='utf-8') as handle:
            data = json.load(handle)
        owners = {
            str(entry['id']): str(entry.get('name') or entry['id'])
            for entry in data.get('owners', [])
            if 'id' in entry
        }
        return cls(owners)

    def resolve_owner_name(self, owner_id: str) -> str:
        return self._owners.get(owner_id, owner_id)

    def owners(self) -> List[Dict[str, str]]:
        return [{'id': key, 'name': name} for key, name in self._owners.items()]

    def matches(self, record: TransactionRecord, owner: Optional[str]) -> bool:
        if is_unfiltered(owner):
            return True
        return record.owner == self.resolve_owner_name(owner)

    def filter(self, records: Iterable[TransactionRecord], owner: Optional[str]) -> List[TransactionRecord]:
        if is_unfiltered(owner):
            return list(records)
        return [record for record in records if self.matches(record, owner)]


def is_unfiltered(owner: Optional[str]) -> bool:
    return owner is None or owner == '' or owner == ALL_OWNERS


def _record_month(record: TransactionRecord) -> int:
    return record.day.month


def _record_year(record: TransactionRecord) -> int:
    return record.day.year


# ---------------------------------------------------------------------------
# Readers
# ---------------------------------------------------------------------------


class InMemoryLedger:
    """A ledger held in memory, mostly useful for tests and notebooks."""

    def __init__(self, records: Iterable[TransactionRecord], owners: Optional[OwnerDirectory] = None):
        self._records: List[TransactionRecord] = list(records)
        self.owners = owners or OwnerDirectory()

    @classmethod
    def from_rows(cls, rows: Iterable[Mapping[str, Any]], owners: Optional[OwnerDirectory] = None) -> "InMemoryLedger":
        return cls(normalize_rows(rows), owners=owners)

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame, owners: Optional[OwnerDirectory] = None) -> "InMemoryLedger":
        return cls.from_rows(df.to_dict(orient='records'), owners=owners)

    def get_transactions(
        self, year: int, month: Optional[int] = None, owner: Optional[str] = None
    ) -> List[TransactionRecord]:
        period = [
            record for record in self._records
            if _record_year(record) == year and (month is None or _record_month(record) == month)
        ]
        if not period:
            raise MissingPeriodData(year, month)
        return self.owners.filter(period, owner)

    def list_years(self) -> List[int]:
        return sorted({_record_year(record) for record in self._records}, reverse=True)

    def list_months(self, year: int, owner: Optional[str] = None) -> List[int]:
        months = {
            _record_month(record)
            for record in self._records
            if _record_year(record) == year and self.owners.matches(record, owner)
        }
        return sorted(months)


class CsvLedgerReader:
    """Reads ``<data_dir>/<YYYY>/<MM>.csv`` monthly ledger files.

    Files whose stem contains ``_``, ``alipay`` or ``wechat`` are raw
    platform exports waiting to be merged and are ignored.
    """

    def __init__(self, data_dir: Path, owners: Optional[OwnerDirectory] = None):
        self.data_dir = Path(data_dir)
        self.owners = owners or OwnerDirectory()

    def _year_dir(self, year: int) -> Path:
        return self.data_dir / str(year)

    def _month_files(self, year: int) -> Dict[int, Path]:
        year_dir = self._year_dir(year)
        if not year_dir.is_dir():
            return {}
        files: Dict[int, Path] = {}
        for path in sorted(year_dir.glob('*.csv')):
            stem = path.stem.lower()
            if any(marker in stem for marker in _SKIPPED_STEM_MARKERS):
                continue
            try:
                month = int(stem)
            except ValueError:
                logger.debug("Ignoring non-month ledger file %s", path)
                continue
            if 1 <= month <= 12:
                files[month] = path
        return files

    def _read_file(self, path: Path) -> List[TransactionRecord]:
        df = pd.read_csv(path, dtype=str, keep_default_na=False, encoding='utf-8-sig')
        records = normalize_rows(df.to_dict(orient='records'))
        logger.debug("Read %d records from %s", len(records), path)
        return records

    def get_transactions(
        self, year: int, month: Optional[int] = None, owner: Optional[str] = None
    ) -> List[TransactionRecord]:
        files = self._month_files(year)
        if month is not None:
            files = {month: files[month]} if month in files else {}
        if not files:
            raise MissingPeriodData(year, month)

        records: List[TransactionRecord] = []
        for number in sorted(files):
            records.extend(self._read_file(files[number]))
        return self.owners.filter(records, owner)

    def list_years(self) -> List[int]:
        if not self.data_dir.is_dir():
            return []
        years = [int(entry.name) for entry in self.data_dir.iterdir() if entry.is_dir() and entry.name.isdigit()]
        return sorted(years, reverse=True)

    def list_months(self, year: int, owner: Optional[str] = None) -> List[int]:
        files = self._month_files(year)
        if is_unfiltered(owner):
            return sorted(files)
        return sorted(
            number for number, path in files.items()
            if any(self.owners.matches(record, owner) for record in self._read_file(path))
        )
