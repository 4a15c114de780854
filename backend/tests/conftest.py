import pytest
from fastapi.testclient import TestClient

from survey_relay.config import Settings
from survey_relay.main import create_app
from survey_relay.services.relay import SheetRelay
from survey_relay.services.sheets import MemorySheet, MemorySheetBackend


def make_settings(tmp_path, **overrides) -> Settings:
    values = {
        "APP_ENV": "development",
        "SPREADSHEET_ID": "test-spreadsheet",
        "SHEETS_BACKEND": "memory",
        "STATIC_DIR": str(tmp_path / "public"),
        "DATA_DIR": str(tmp_path / "data"),
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def sheet():
    return MemorySheet()


@pytest.fixture
def relay(settings, sheet):
    return SheetRelay(settings, backend=MemorySheetBackend(sheet))


@pytest.fixture
def client(settings, relay):
    return TestClient(create_app(settings, relay=relay))
