"""Flat dump-on-write backend.

The whole map lives in memory and is written to a single file after every
mutating call. Reads never touch the disk.
"""

from pathlib import Path
from typing import Optional

import msgpack

from pkvstore.backends.base import MISSING, StoreBackend
from pkvstore.backends.files import atomic_write, raise_storage_error
from pkvstore.codecs.base import Record
from pkvstore.codecs.msgpack_codec import StructMapCodec
from pkvstore.config import StoreConfig, get_default_config
from pkvstore.errors import StoreOpenError
from pkvstore.observability.logging import get_logger

logger = get_logger(__name__)

DUMP_FILE_NAME = "pkv.dump"


class DumpStore(StoreBackend):
    """In-memory map persisted as one msgpack file of key -> record bytes."""

    name = "dump"
    transactional = False

    def __init__(self, directory: Path, config: Optional[StoreConfig] = None) -> None:
        """Load (or create) the dump file in ``directory``.

        Raises:
            StoreOpenError: If the directory cannot be created or the file is unreadable
        """
        config = config or get_default_config()
        super().__init__(StructMapCodec(), directory)
        self.path = directory / DUMP_FILE_NAME
        self._sync = config.sync_writes

        try:
            directory.mkdir(parents=True, exist_ok=True)
            self._data = self._load()
        except OSError as exc:
            raise StoreOpenError(
                f"Failed to open dump store: {exc}", path=str(self.path)
            ) from exc

        logger.info("store_opened", backend=self.name, path=str(self.path), keys=len(self._data))

    def _load(self) -> dict[str, bytes]:
        if not self.path.exists():
            return {}

        raw = self.path.read_bytes()
        if not raw:
            return {}
        try:
            data = msgpack.unpackb(raw, raw=False)
        except (ValueError, TypeError, msgpack.exceptions.UnpackException) as exc:
            raise StoreOpenError(
                f"Dump file is corrupt: {exc}", path=str(self.path)
            ) from exc

        if not isinstance(data, dict) or not all(
            isinstance(k, str) and isinstance(v, bytes) for k, v in data.items()
        ):
            raise StoreOpenError("Dump file is not a key-value map", path=str(self.path))
        return data

    @raise_storage_error
    def _dump(self) -> None:
        atomic_write(self.path, msgpack.packb(self._data, use_bin_type=True), sync=self._sync)

    def _restore(self, key: str, previous: object) -> None:
        if previous is MISSING:
            self._data.pop(key, None)
        else:
            self._data[key] = previous  # type: ignore[assignment]

    def read_record(self, key: str) -> Optional[Record]:
        return self._data.get(key)

    def write_record(self, key: str, record: Record) -> None:
        if isinstance(record, str):
            record = record.encode("utf-8")
        previous = self._data.get(key, MISSING)
        self._data[key] = record
        try:
            self._dump()
        except BaseException:
            # Keep memory identical to what is on disk
            self._restore(key, previous)
            raise

    def delete_record(self, key: str) -> Optional[Record]:
        if key not in self._data:
            return None
        previous = self._data.pop(key)
        try:
            self._dump()
        except BaseException:
            self._data[key] = previous
            raise
        return previous

    def clear_records(self) -> None:
        snapshot = self._data
        self._data = {}
        try:
            self._dump()
        except BaseException:
            self._data = snapshot
            raise

    def __len__(self) -> int:
        return len(self._data)

    def close(self) -> None:
        if not self._closed:
            logger.info("store_closed", backend=self.name, path=str(self.path))
        super().close()
