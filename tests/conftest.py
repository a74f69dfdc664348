"""Pytest configuration and fixtures for gridstore tests.

This module provides common fixtures and configuration for all tests.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from gridstore.storage.config import GridStoreSettings
from gridstore.storage.filesystem_store import FilesystemBlobStore
from gridstore.storage.service import ObjectService
from tests.fakes import FakeBlobStore

GRIDSTORE_ENV_VARS = (
    "GRIDSTORE_STORE_BASE_DIR",
    "GRIDSTORE_DEFAULT_ROOT",
    "GRIDSTORE_CHUNK_SIZE",
    "GRIDSTORE_OTEL_ENABLED",
    "GRIDSTORE_OTEL_TEST_CAPTURE",
    "GRIDSTORE_REQUIRE_OTEL",
    "GRIDSTORE_OTEL_SERVICE_NAME",
    "GRIDSTORE_OTEL_EXPORTER",
    "GRIDSTORE_OTEL_RESOURCE_ATTRS",
)


@pytest.fixture(autouse=True)
def clean_gridstore_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Run every test without gridstore settings inherited from the shell."""
    for name in GRIDSTORE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings(tmp_path: Path) -> GridStoreSettings:
    """Settings with a small chunk size so multi-chunk paths are exercised."""
    return GridStoreSettings(base_dir=tmp_path / "objects", chunk_size=4)


@pytest.fixture
def fs_store(settings: GridStoreSettings) -> FilesystemBlobStore:
    """Create a FilesystemBlobStore under a temp directory."""
    return FilesystemBlobStore(base_dir=settings.base_dir, chunk_size=settings.chunk_size)


@pytest.fixture
def fs_service(fs_store: FilesystemBlobStore, settings: GridStoreSettings) -> ObjectService:
    """Object service over the filesystem store."""
    return ObjectService(fs_store, settings=settings)


@pytest.fixture
def fake_store() -> FakeBlobStore:
    """Configurable in-memory store."""
    return FakeBlobStore()


@pytest.fixture
def fake_service(fake_store: FakeBlobStore, settings: GridStoreSettings) -> ObjectService:
    """Object service over the in-memory store."""
    return ObjectService(fake_store, settings=settings)
