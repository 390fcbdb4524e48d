from pathlib import Path

import pytest

from csvledger.config import Settings
from csvledger.database import build_session_factory
from csvledger.importer import CsvImporter


@pytest.fixture()
def temp_workspace(tmp_path: Path) -> Path:
    (tmp_path / "data").mkdir(parents=True, exist_ok=True)
    return tmp_path


@pytest.fixture()
def test_settings(temp_workspace: Path) -> Settings:
    return Settings(
        app_name="csvledger",
        database_url=f"sqlite:///{temp_workspace / 'test.db'}",
        log_level="INFO",
        csv_delimiter=",",
        default_transaction_kind="expense",
        default_category_id="uncategorized",
        default_source_id="checking",
    )


@pytest.fixture()
def importer(test_settings: Settings) -> CsvImporter:
    session_factory = build_session_factory(test_settings.database_url)
    return CsvImporter(test_settings, session_factory)
