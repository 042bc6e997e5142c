import pytest

pytest.importorskip('streamlit')

from ledger_insights import config, dashboard
from ledger_insights.ledger import CsvLedgerReader


def test_build_analytics_creates_data_directories(tmp_path, monkeypatch):
    data_dir = tmp_path / 'data'
    monkeypatch.setattr(config, 'DATA_DIR', data_dir)
    monkeypatch.setattr(config, 'LEDGER_DIR', data_dir / 'ledger')
    monkeypatch.setattr(config, 'OWNERS_PATH', data_dir / 'owners.json')
    monkeypatch.setattr(config, 'BUDGET_CONFIG_PATH', data_dir / 'budget_config.json')

    analytics = dashboard.build_analytics()

    assert (data_dir / 'ledger').is_dir()
    assert isinstance(analytics.reader, CsvLedgerReader)
    assert analytics.reader.list_years() == []
