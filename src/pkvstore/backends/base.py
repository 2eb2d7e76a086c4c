"""Abstract storage backend interface.

``StoreBackend`` implements the whole store contract (set, set_string, get,
remove, remove_and_get, clear) on top of four raw record primitives. Concrete
backends only move records in and out of their engine and translate the
engine's native failures into the shared error taxonomy.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

from pkvstore.codecs.base import Codec, Record
from pkvstore.errors import DecodeError, EncodeError, NotFoundError, StorageIOError, StoreError
from pkvstore.observability.logging import get_logger

logger = get_logger(__name__)


class _Missing:
    """Type of ``MISSING``."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


# Returned by remove_and_get when nothing was stored; distinct from a stored None
MISSING: Any = _Missing()


def _check_key_encoding(operation: str, key: str, backend: str) -> None:
    """Keys are stored as UTF-8; lone surrogates cannot be."""
    try:
        key.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise EncodeError(
            f"Key is not valid UTF-8: {exc.reason}",
            operation=operation,
            key=key,
            backend=backend,
        ) from exc


class StoreBackend(ABC):
    """Key-value backend owning exactly one storage handle.

    Attributes:
        name: Registry name of the backend
        codec: Codec every record of this backend is written with
        transactional: True when each operation runs in an engine transaction
        location: Directory holding the backend's file, None if not on disk
    """

    name: str = "backend"
    transactional: bool = False

    def __init__(self, codec: Codec, location: Optional[Path] = None) -> None:
        self.codec = codec
        self.location = location
        self._closed = False

    # ------------------------------------------------------------------
    # Raw record primitives
    # ------------------------------------------------------------------

    @abstractmethod
    def read_record(self, key: str) -> Optional[Record]:
        """Return the stored record for ``key`` or None if absent."""

    @abstractmethod
    def write_record(self, key: str, record: Record) -> None:
        """Durably write (or overwrite) the record for ``key``."""

    @abstractmethod
    def delete_record(self, key: str) -> Optional[Record]:
        """Delete ``key`` and return its previous record (None if absent)."""

    @abstractmethod
    def clear_records(self) -> None:
        """Remove every record as one bulk operation."""

    def close(self) -> None:
        """Release the storage handle. Safe to call more than once."""
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Store contract
    # ------------------------------------------------------------------

    def set(self, key: str, value: Any) -> None:
        """Serialize and store a value.

        Raises:
            EncodeError: If the value cannot be serialized
            StorageIOError: If the engine fails to write
            TransactionError: If a transactional engine fails to commit
        """
        record = self._encode("set", key, value, self.codec.encode)
        self._call("set", key, self.write_record, key, record)
        logger.debug("record_written", key=key, backend=self.name)

    def set_string(self, key: str, value: str) -> None:
        """Store a plain string; readable with ``get(key, str)``."""
        record = self._encode("set_string", key, value, self.codec.encode_string)
        self._call("set_string", key, self.write_record, key, record)
        logger.debug("record_written", key=key, backend=self.name)

    def get(self, key: str, value_type: Any = Any) -> Any:
        """Read and decode the value stored under ``key``.

        Raises:
            NotFoundError: If the key is absent
            DecodeError: If the record does not decode as ``value_type``
            StorageIOError: If the engine fails to read
        """
        record = self._call("get", key, self.read_record, key)
        if record is None:
            raise NotFoundError(key, operation="get")
        return self._decode("get", key, record, value_type)

    def remove(self, key: str) -> None:
        """Delete ``key``; deleting an absent key is not an error."""
        self._call("remove", key, self.delete_record, key)

    def remove_and_get(self, key: str, value_type: Any = Any, *, default: Any = None) -> Any:
        """Delete ``key`` and return its decoded value, or ``default`` if it was absent.

        Pass ``default=MISSING`` to tell an absent key apart from a stored None.

        Raises:
            DecodeError: If the removed record does not decode as ``value_type``
            StorageIOError: If the engine fails to delete
        """
        record = self._call("remove_and_get", key, self.delete_record, key)
        if record is None:
            return default
        return self._decode("remove_and_get", key, record, value_type)

    def clear(self) -> None:
        """Remove every key in the store."""
        self._call("clear", None, self.clear_records)
        logger.info("store_cleared", backend=self.name)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _encode(self, operation: str, key: str, value: Any, encoder: Any) -> Record:
        try:
            return encoder(value)
        except EncodeError as exc:
            raise EncodeError(exc.message, operation=operation, key=key) from exc

    def _decode(self, operation: str, key: str, record: Record, value_type: Any) -> Any:
        try:
            return self.codec.decode(record, value_type)
        except DecodeError as exc:
            raise DecodeError(exc.message, operation=operation, key=key) from exc

    def _call(self, operation: str, key: Optional[str], func: Any, *args: Any) -> Any:
        """Run a raw primitive, stamping operation and key on store errors."""
        if self._closed:
            raise StorageIOError("Store is closed", operation=operation, backend=self.name)
        if key is not None:
            _check_key_encoding(operation, key, self.name)
        try:
            return func(*args)
        except StoreError as exc:
            exc.context.setdefault("operation", operation)
            if key is not None:
                exc.context.setdefault("key", key)
            exc.context.setdefault("backend", self.name)
            raise

    def __repr__(self) -> str:
        return f"{type(self).__name__}(location={self.location!r}, codec={self.codec!r})"
