"""Tests for the dump-on-write backend."""

from collections.abc import Iterator
from pathlib import Path

import msgpack
import pytest

from pkvstore.backends.dump_store import DUMP_FILE_NAME, DumpStore
from pkvstore.config import StoreConfig
from pkvstore.errors import NotFoundError, StorageIOError, StoreOpenError


@pytest.fixture
def config() -> StoreConfig:
    return StoreConfig(backend="dump", sync_writes=False)


@pytest.fixture
def store(tmp_path: Path, config: StoreConfig) -> Iterator[DumpStore]:
    """Open a fresh dump store in a temporary directory."""
    dump = DumpStore(tmp_path, config)
    yield dump
    dump.close()


def _fail_atomic_write(*args: object, **kwargs: object) -> None:
    raise OSError("No space left on device")


class TestDumpStore:
    """Tests for DumpStore."""

    def test_no_file_until_first_write(self, tmp_path: Path, store: DumpStore) -> None:
        """Opening an empty store should not create the dump file."""
        assert not (tmp_path / DUMP_FILE_NAME).exists()

        store.set_string("a", "1")

        assert (tmp_path / DUMP_FILE_NAME).exists()

    def test_file_holds_full_map(self, tmp_path: Path, store: DumpStore) -> None:
        """The dump file should be a msgpack map of key to record bytes."""
        store.set_string("a", "1")
        store.set("b", [1, 2])

        data = msgpack.unpackb((tmp_path / DUMP_FILE_NAME).read_bytes(), raw=False)

        assert set(data) == {"a", "b"}
        assert all(isinstance(v, bytes) for v in data.values())

    def test_values_survive_reopen(self, tmp_path: Path, config: StoreConfig) -> None:
        """A new store on the same directory should see earlier writes."""
        first = DumpStore(tmp_path, config)
        first.set("scores", {"ann": 3})
        first.close()

        second = DumpStore(tmp_path, config)
        try:
            assert second.get("scores", dict[str, int]) == {"ann": 3}
        finally:
            second.close()

    def test_corrupt_file_fails_to_open(self, tmp_path: Path, config: StoreConfig) -> None:
        """Undecodable dump files should raise StoreOpenError."""
        (tmp_path / DUMP_FILE_NAME).write_bytes(b"\xc1\xc1 garbage")
        with pytest.raises(StoreOpenError):
            DumpStore(tmp_path, config)

    def test_wrong_shape_fails_to_open(self, tmp_path: Path, config: StoreConfig) -> None:
        """A valid msgpack document that is not a key-record map should be rejected."""
        (tmp_path / DUMP_FILE_NAME).write_bytes(msgpack.packb([1, 2, 3]))
        with pytest.raises(StoreOpenError):
            DumpStore(tmp_path, config)

    def test_failed_write_keeps_memory_consistent(
        self, store: DumpStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A write whose dump fails should not be visible afterwards."""
        store.set_string("a", "old")
        monkeypatch.setattr("pkvstore.backends.dump_store.atomic_write", _fail_atomic_write)

        with pytest.raises(StorageIOError):
            store.set_string("a", "new")
        with pytest.raises(StorageIOError):
            store.set_string("b", "new")

        assert store.get("a", str) == "old"
        with pytest.raises(NotFoundError):
            store.get("b", str)

    def test_failed_delete_keeps_value(
        self, store: DumpStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A remove whose dump fails should leave the key in place."""
        store.set_string("a", "1")
        monkeypatch.setattr("pkvstore.backends.dump_store.atomic_write", _fail_atomic_write)

        with pytest.raises(StorageIOError):
            store.remove("a")

        assert store.get("a", str) == "1"

    def test_failed_clear_keeps_values(
        self, store: DumpStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A clear whose dump fails should leave every key in place."""
        store.set_string("a", "1")
        store.set_string("b", "2")
        monkeypatch.setattr("pkvstore.backends.dump_store.atomic_write", _fail_atomic_write)

        with pytest.raises(StorageIOError):
            store.clear()

        assert len(store) == 2

    def test_clear_persists_empty_map(self, tmp_path: Path, config: StoreConfig) -> None:
        """A cleared store should reopen empty."""
        dump = DumpStore(tmp_path, config)
        dump.set_string("a", "1")
        dump.clear()
        dump.close()

        reopened = DumpStore(tmp_path, config)
        try:
            assert len(reopened) == 0
        finally:
            reopened.close()
