import shutil
from pathlib import Path

import pytest

TEST_DATA_DIR = Path(__file__).parent / "data-tests"


@pytest.fixture(autouse=True)
def clean_test_data(monkeypatch):
    """Wipe data-tests/ and clear chambr env vars before every test."""
    monkeypatch.delenv("CHAMBR_HOME", raising=False)
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    if TEST_DATA_DIR.exists():
        shutil.rmtree(TEST_DATA_DIR)
    yield
    # leave data-tests around after tests for inspection; CI can ignore it


@pytest.fixture
def base_dir() -> Path:
    return TEST_DATA_DIR
