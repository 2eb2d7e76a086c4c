"""Pytest configuration and shared fixtures for the test suite."""

from collections.abc import Iterator
from pathlib import Path

import pytest

from pkvstore.backends import BACKEND_NAMES, InMemoryTextStorage
from pkvstore.config import StoreConfig
from pkvstore.store import PkvStore


@pytest.fixture(autouse=True)
def isolate_store_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep PKVSTORE_* variables from the developer's shell out of tests."""
    for name in (
        "PKVSTORE_BACKEND",
        "PKVSTORE_SYNC_WRITES",
        "PKVSTORE_COMPACTION_THRESHOLD_BYTES",
        "PKVSTORE_SQLITE_ECHO",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(params=BACKEND_NAMES)
def backend_name(request: pytest.FixtureRequest) -> str:
    """Name of each backend in turn."""
    return request.param


@pytest.fixture
def store_config(backend_name: str) -> StoreConfig:
    """Configuration selecting the parametrized backend, without fsync."""
    return StoreConfig(backend=backend_name, sync_writes=False)


@pytest.fixture
def store_dir(tmp_path: Path) -> Path:
    """Directory for an explicit-path store (not created yet)."""
    return tmp_path / "store"


@pytest.fixture
def store(store_dir: Path, store_config: StoreConfig) -> Iterator[PkvStore]:
    """Fresh, empty store for the parametrized backend.

    Yields:
        PkvStore closed again after the test
    """
    pkv = PkvStore.new_in_dir(store_dir, config=store_config, text_storage=InMemoryTextStorage())
    yield pkv
    pkv.close()
