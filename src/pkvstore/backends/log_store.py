"""Log-structured backend: an append-only record log with an in-memory index.

File layout (``pkv.log``)::

    MAGIC (8 bytes)
    record*  = op (u8) | key length (u32) | value length (u32) | crc32 (u32)
               | key (utf-8) | value

Every write appends a PUT or DELETE record and (by default) fsyncs. Opening
the store replays the log to rebuild the key -> value offset index. A torn or
corrupt tail, the trace of a crash during an append, is truncated away, so at
most the most recent write is lost.
"""

import os
import struct
import zlib
from pathlib import Path
from typing import BinaryIO, Optional

from pkvstore.backends.base import StoreBackend
from pkvstore.backends.files import atomic_write, raise_storage_error
from pkvstore.codecs.base import Record
from pkvstore.codecs.msgpack_codec import PositionalCodec
from pkvstore.config import StoreConfig, get_default_config
from pkvstore.errors import EncodeError, StorageIOError, StoreOpenError
from pkvstore.observability.logging import get_logger

logger = get_logger(__name__)

LOG_FILE_NAME = "pkv.log"
MAGIC = b"PKVLOG\x00\x01"

_HEADER = struct.Struct(">BIII")
_OP_PUT = 1
_OP_DELETE = 2


def _frame(op: int, key: bytes, value: bytes) -> bytes:
    body = key + value
    crc = zlib.crc32(bytes([op]) + body)
    return _HEADER.pack(op, len(key), len(value), crc) + body


def _key_bytes(key: str) -> bytes:
    try:
        return key.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise EncodeError(f"Key is not valid UTF-8: {exc}") from exc


class LogStore(StoreBackend):
    """Append-only log store using the compact positional codec.

    Attributes:
        path: Log file path
    """

    name = "log"
    transactional = False

    def __init__(self, directory: Path, config: Optional[StoreConfig] = None) -> None:
        """Open (or create) the log in ``directory``.

        Args:
            directory: Directory holding ``pkv.log``; created if missing
            config: Store configuration (sync and compaction policy)

        Raises:
            StoreOpenError: If the directory or log cannot be opened
        """
        config = config or get_default_config()
        super().__init__(PositionalCodec(), directory)
        self.path = directory / LOG_FILE_NAME
        self._sync = config.sync_writes
        self._compaction_threshold = config.compaction_threshold_bytes

        # key -> (value offset, value length, full record length)
        self._index: dict[str, tuple[int, int, int]] = {}
        self._live_bytes = 0
        self._size = len(MAGIC)

        try:
            directory.mkdir(parents=True, exist_ok=True)
            self._file = self._open()
        except OSError as exc:
            raise StoreOpenError(
                f"Failed to open log store: {exc}", path=str(self.path)
            ) from exc

        try:
            self._replay()
        except OSError as exc:
            self._file.close()
            raise StoreOpenError(
                f"Failed to replay log store: {exc}", path=str(self.path)
            ) from exc

        logger.info("store_opened", backend=self.name, path=str(self.path), keys=len(self._index))

    # ------------------------------------------------------------------
    # File management
    # ------------------------------------------------------------------

    def _open(self) -> BinaryIO:
        if not self.path.exists() or self.path.stat().st_size == 0:
            atomic_write(self.path, MAGIC, sync=self._sync)

        handle = open(self.path, "r+b")
        if handle.read(len(MAGIC)) != MAGIC:
            handle.close()
            raise StoreOpenError("File is not a key-value log", path=str(self.path))
        return handle

    def _replay(self) -> None:
        handle = self._file
        handle.seek(0, os.SEEK_END)
        file_size = handle.tell()

        offset = len(MAGIC)
        handle.seek(offset)
        while True:
            header = handle.read(_HEADER.size)
            if len(header) < _HEADER.size:
                break
            op, key_len, value_len, crc = _HEADER.unpack(header)
            body = handle.read(key_len + value_len)
            if len(body) < key_len + value_len or op not in (_OP_PUT, _OP_DELETE):
                break
            if zlib.crc32(bytes([op]) + body) != crc:
                break
            try:
                key = body[:key_len].decode("utf-8")
            except UnicodeDecodeError:
                break

            record_len = _HEADER.size + key_len + value_len
            self._forget(key)
            if op == _OP_PUT:
                self._index[key] = (offset + _HEADER.size + key_len, value_len, record_len)
                self._live_bytes += record_len
            offset += record_len

        if offset < file_size:
            logger.warning(
                "log_tail_discarded",
                path=str(self.path),
                discarded_bytes=file_size - offset,
            )
            handle.truncate(offset)
            handle.flush()
            os.fsync(handle.fileno())

        self._size = offset

    def _append(self, op: int, key: bytes, value: bytes) -> int:
        """Append one record and return its offset."""
        frame = _frame(op, key, value)
        offset = self._size
        self._file.seek(offset)
        self._file.write(frame)
        self._file.flush()
        if self._sync:
            os.fsync(self._file.fileno())
        self._size = offset + len(frame)
        return offset

    def _read_at(self, offset: int, length: int) -> bytes:
        self._file.seek(offset)
        data = self._file.read(length)
        if len(data) != length:
            raise StorageIOError(
                "Log ended before the indexed record", path=str(self.path), offset=offset
            )
        return data

    def _forget(self, key: str) -> None:
        entry = self._index.pop(key, None)
        if entry is not None:
            self._live_bytes -= entry[2]

    @property
    def dead_bytes(self) -> int:
        """Bytes of superseded or deleted records still in the log."""
        return self._size - len(MAGIC) - self._live_bytes

    def _maybe_compact(self) -> None:
        dead = self.dead_bytes
        if dead > self._compaction_threshold and dead > self._live_bytes:
            # The triggering record is already on disk and the old log stays valid
            try:
                self.compact()
            except StorageIOError as exc:
                logger.warning(
                    "log_compaction_failed",
                    path=str(self.path),
                    dead_bytes=dead,
                    error=str(exc),
                )

    def _reopen(self) -> None:
        self._file = open(self.path, "r+b")
        self._file.seek(len(MAGIC))

    @raise_storage_error
    def compact(self) -> None:
        """Rewrite the log keeping only live records."""
        chunks = [MAGIC]
        new_index: dict[str, tuple[int, int, int]] = {}
        offset = len(MAGIC)
        for key, (value_offset, value_len, _) in self._index.items():
            key_bytes = key.encode("utf-8")
            frame = _frame(_OP_PUT, key_bytes, self._read_at(value_offset, value_len))
            new_index[key] = (offset + _HEADER.size + len(key_bytes), value_len, len(frame))
            chunks.append(frame)
            offset += len(frame)

        before = self._size
        self._file.close()
        try:
            atomic_write(self.path, b"".join(chunks), sync=self._sync)
        finally:
            self._reopen()

        self._index = new_index
        self._size = offset
        self._live_bytes = offset - len(MAGIC)
        logger.info("log_compacted", path=str(self.path), before=before, after=offset)

    # ------------------------------------------------------------------
    # Raw record primitives
    # ------------------------------------------------------------------

    @raise_storage_error
    def read_record(self, key: str) -> Optional[Record]:
        entry = self._index.get(key)
        if entry is None:
            return None
        return self._read_at(entry[0], entry[1])

    @raise_storage_error
    def write_record(self, key: str, record: Record) -> None:
        if isinstance(record, str):
            record = record.encode("utf-8")
        key_bytes = _key_bytes(key)
        offset = self._append(_OP_PUT, key_bytes, record)
        self._forget(key)
        record_len = _HEADER.size + len(key_bytes) + len(record)
        self._index[key] = (offset + _HEADER.size + len(key_bytes), len(record), record_len)
        self._live_bytes += record_len
        self._maybe_compact()

    @raise_storage_error
    def delete_record(self, key: str) -> Optional[Record]:
        entry = self._index.get(key)
        if entry is None:
            return None
        previous = self._read_at(entry[0], entry[1])
        self._append(_OP_DELETE, _key_bytes(key), b"")
        self._forget(key)
        self._maybe_compact()
        return previous

    @raise_storage_error
    def clear_records(self) -> None:
        self._file.close()
        try:
            atomic_write(self.path, MAGIC, sync=self._sync)
        finally:
            self._reopen()
        self._index.clear()
        self._live_bytes = 0
        self._size = len(MAGIC)

    def __len__(self) -> int:
        return len(self._index)

    def close(self) -> None:
        if not self._closed:
            self._file.close()
            logger.info("store_closed", backend=self.name, path=str(self.path))
        super().close()
