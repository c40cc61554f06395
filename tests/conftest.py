"""Pytest configuration and shared fixtures."""

import tempfile
from pathlib import Path

import pytest

from careerdesk.config import Settings
from careerdesk.services.storage_adapter import StorageAdapter
from careerdesk.storage.document_store import DocumentStore


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_settings(temp_dir: Path) -> Settings:
    """Create test settings with a temporary data directory."""
    return Settings(
        data_dir=temp_dir / "data",
        cleanup_interval=0.05,
    )


@pytest.fixture
def store(test_settings: Settings) -> DocumentStore:
    """Document store over the temporary data directory."""
    return DocumentStore(test_settings.data_dir)


@pytest.fixture
def adapter(store: DocumentStore, test_settings: Settings) -> StorageAdapter:
    """Storage adapter over the temporary store."""
    return StorageAdapter(store, test_settings)
