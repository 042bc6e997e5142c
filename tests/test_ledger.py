import json
import logging
from datetime import date, datetime

import pandas as pd
import pytest

from ledger_insights.errors import MalformedRecord, MissingPeriodData
from ledger_insights.ledger import (
    CsvLedgerReader,
    InMemoryLedger,
    OwnerDirectory,
    normalize_rows,
    parse_record,
)


def test_parse_record_reads_chinese_headers():
    record = parse_record({
        '日期': '2024-03-05 12:30:00',
        '金额': '-88.50',
        '分类': '餐饮',
        '交易对方': '美团(外卖)',
        '账户': '招商银行(1234)',
        '标签': '预算外 #家庭',
        '账单人': '小明',
        '描述': '午餐',
    })

    assert record.date == datetime(2024, 3, 5, 12, 30)
    assert record.amount == -88.5
    assert record.category == '餐饮'
    assert record.merchant == '美团(外卖)'
    assert record.tags == frozenset({'预算外', '家庭'})
    assert record.owner == '小明'
    assert record.is_outflow


def test_parse_record_reads_english_headers_and_defaults_category():
    record = parse_record({'Date': '2024-01-02', 'Amount': '1,200.00', 'Description': 'Pay'})
    assert record.date == date(2024, 1, 2)
    assert record.amount == 1200.0
    assert record.category == 'Other'
    assert record.is_inflow


@pytest.mark.parametrize('row', [
    {'date': '2024-01-01', 'amount': 'abc'},
    {'date': 'not a date', 'amount': '10'},
    {'amount': '10'},
    {'date': '2024-01-01'},
])
def test_parse_record_rejects_malformed_rows(row):
    with pytest.raises(MalformedRecord):
        parse_record(row)


def test_normalize_rows_skips_malformed_rows_with_warning(caplog):
    rows = [
        {'date': '2024-01-01', 'amount': '-5'},
        {'date': '2024-01-02', 'amount': 'oops'},
        {'date': '2024-01-03', 'amount': '-7'},
    ]
    with caplog.at_level(logging.WARNING, logger='ledger_insights'):
        records = normalize_rows(rows)

    assert [r.amount for r in records] == [-5, -7]
    assert any('malformed' in message for message in caplog.messages)


def test_in_memory_ledger_lists_and_filters(make_txn):
    owners = OwnerDirectory({'u1': 'Alice'})
    ledger = InMemoryLedger([
        make_txn('2023-12-01', -1, owner='Alice'),
        make_txn('2024-01-01', -2, owner='Alice'),
        make_txn('2024-03-01', -3, owner='Bob'),
    ], owners=owners)

    assert ledger.list_years() == [2024, 2023]
    assert ledger.list_months(2024) == [1, 3]
    assert ledger.list_months(2024, owner='u1') == [1]
    assert [r.amount for r in ledger.get_transactions(2024, owner='u1')] == [-2]
    assert ledger.get_transactions(2024, 3, owner='u1') == []


def test_in_memory_ledger_raises_for_missing_period(make_txn):
    ledger = InMemoryLedger([make_txn('2024-01-01', -2)])
    with pytest.raises(MissingPeriodData) as excinfo:
        ledger.get_transactions(2024, 2)
    assert excinfo.value.year == 2024
    assert excinfo.value.month == 2
    with pytest.raises(MissingPeriodData):
        ledger.get_transactions(2022)


def _write_month(path, rows):
    path.parent.mkdir(parents=True, exist_ok=True)
    header = '日期,金额,分类,交易对方,账单人\n'
    path.write_text(header + '\n'.join(rows) + '\n', encoding='utf-8')


def test_csv_reader_reads_month_files_and_skips_raw_exports(tmp_path):
    _write_month(tmp_path / '2024' / '01.csv', ['2024-01-03,-20,餐饮,美团,Alice', '2024-01-04,bad,餐饮,美团,Alice'])
    _write_month(tmp_path / '2024' / '02.csv', ['2024-02-03,-30,交通,地铁,Bob'])
    _write_month(tmp_path / '2024' / '02_alipay.csv', ['2024-02-03,-999,交通,地铁,Bob'])
    _write_month(tmp_path / '2024' / 'wechat.csv', ['2024-02-03,-999,交通,地铁,Bob'])
    _write_month(tmp_path / '2023' / '12.csv', ['2023-12-03,-1,餐饮,美团,Alice'])

    reader = CsvLedgerReader(tmp_path)

    assert reader.list_years() == [2024, 2023]
    assert reader.list_months(2024) == [1, 2]
    assert reader.list_months(2024, owner='Bob') == [2]
    year = reader.get_transactions(2024)
    assert [r.amount for r in year] == [-20, -30]
    assert [r.merchant for r in reader.get_transactions(2024, 2)] == ['地铁']
    with pytest.raises(MissingPeriodData):
        reader.get_transactions(2024, 5)
    with pytest.raises(MissingPeriodData):
        reader.get_transactions(2021)


def test_owner_directory_from_json(tmp_path):
    path = tmp_path / 'owners.json'
    path.write_text(json.dumps({'owners': [{'id': 'u1', 'name': 'Alice'}]}), encoding='utf-8')
    owners = OwnerDirectory.from_json(path)

    assert owners.resolve_owner_name('u1') == 'Alice'
    assert owners.resolve_owner_name('u2') == 'u2'
    assert OwnerDirectory.from_json(tmp_path / 'missing.json').resolve_owner_name('u1') == 'u1'


def test_from_dataframe_skips_missing_datetimes_with_warning(caplog):
    df = pd.DataFrame(
        {
            'Date': pd.to_datetime(['2024-01-05', None, '2024-01-07']),
            'Amount': [-10, -20, -30],
        }
    )
    with caplog.at_level(logging.WARNING, logger='ledger_insights'):
        ledger = InMemoryLedger.from_dataframe(df)

    assert ledger.list_years() == [2024]
    assert [r.amount for r in ledger.get_transactions(2024, 1)] == [-10, -30]
    assert any('row 1' in message for message in caplog.messages)


def test_parse_record_rejects_nat_date():
    with pytest.raises(MalformedRecord):
        parse_record({'date': pd.NaT, 'amount': -5})
