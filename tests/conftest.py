"""Pytest configuration and fixtures for the test suite."""

import pytest

from logseq_mochi_sync.config import Config, reset_config
from tests.fixtures import (
    MockByteSource,
    MockIdMapRepository,
    MockMochiClient,
    MockSourceStore,
)


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch, tmp_path):
    """Keep host environment variables and config files out of tests."""
    for name in (
        "MOCHI_API_KEY",
        "DEFAULT_DECK_NAME",
        "RUN_MODE",
        "DELETE_ORPHANS",
        "LOGSEQ_MOCHI_CONFIG",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def make_config(tmp_path):
    """Factory for a valid configuration with overrides."""

    def _make(**overrides) -> Config:
        values = {
            "mochi_api_key": "test-key",
            "data_dir": str(tmp_path),
            "include_page_title": False,
            "include_ancestor_blocks": False,
        }
        values.update(overrides)
        return Config(_env_file=None, **values)

    return _make


@pytest.fixture
def config(make_config):
    return make_config()


@pytest.fixture
def mock_mochi_client():
    """Provide a mock Mochi client for testing."""
    return MockMochiClient()


@pytest.fixture
def mock_source_store():
    """Provide a mock Logseq graph for testing."""
    return MockSourceStore()


@pytest.fixture
def mock_byte_source():
    """Provide an in-memory media source for testing."""
    return MockByteSource()


@pytest.fixture
def mock_id_repository():
    """Provide an in-memory id map repository for testing."""
    return MockIdMapRepository()
