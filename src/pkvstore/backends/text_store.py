"""Backend over a host-provided text key-value API.

Some hosts (browser local storage, embedded scripting hosts, settings
registries) only offer a flat string -> string namespace. ``TextStore`` keeps
one JSON entry per key in that namespace, with no extra metadata, so values
stay human-inspectable in the host's own tools.
"""

from collections.abc import Iterable
from typing import Any, Optional, Protocol, runtime_checkable

from pkvstore.backends.base import StoreBackend
from pkvstore.codecs.base import Record
from pkvstore.codecs.json_codec import JsonCodec
from pkvstore.errors import StorageIOError
from pkvstore.observability.logging import get_logger

logger = get_logger(__name__)


@runtime_checkable
class TextStorage(Protocol):
    """Minimal host API the text backend needs.

    ``clear`` is optional; hosts without it are cleared key by key.
    """

    def get_item(self, key: str) -> Optional[str]:
        """Return the stored text for ``key`` or None if absent."""
        ...

    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``."""
        ...

    def remove_item(self, key: str) -> None:
        """Remove ``key``; absent keys are ignored."""
        ...

    def keys(self) -> Iterable[str]:
        """Return every key in the namespace."""
        ...


class InMemoryTextStorage:
    """Process-local text storage, the default host outside a browser."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError("text storage only accepts str values")
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)


_default_storage: Optional[InMemoryTextStorage] = None


def get_default_text_storage() -> InMemoryTextStorage:
    """Return the process-wide text storage singleton."""
    global _default_storage
    if _default_storage is None:
        _default_storage = InMemoryTextStorage()
    return _default_storage


class TextStore(StoreBackend):
    """Store contract over a ``TextStorage`` host using the JSON codec."""

    name = "text"
    transactional = False

    def __init__(self, storage: Optional[TextStorage] = None) -> None:
        """Wrap a host storage namespace.

        Args:
            storage: Host text storage; defaults to the process-wide in-memory one
        """
        super().__init__(JsonCodec(), None)
        self.storage = storage if storage is not None else get_default_text_storage()
        logger.info("store_opened", backend=self.name, host=type(self.storage).__name__)

    def _host(self, action: str, func: Any, *args: Any) -> Any:
        try:
            return func(*args)
        except Exception as exc:
            # Host errors are opaque; surface them as storage failures
            raise StorageIOError(f"Host storage {action} failed: {exc}") from exc

    def read_record(self, key: str) -> Optional[Record]:
        return self._host("get_item", self.storage.get_item, key)

    def write_record(self, key: str, record: Record) -> None:
        if isinstance(record, bytes):
            record = record.decode("utf-8")
        self._host("set_item", self.storage.set_item, key, record)

    def delete_record(self, key: str) -> Optional[Record]:
        previous = self._host("get_item", self.storage.get_item, key)
        if previous is None:
            return None
        self._host("remove_item", self.storage.remove_item, key)
        return previous

    def clear_records(self) -> None:
        host_clear = getattr(self.storage, "clear", None)
        if callable(host_clear):
            self._host("clear", host_clear)
        else:
            for key in list(self._host("keys", self.storage.keys)):
                self._host("remove_item", self.storage.remove_item, key)

        remaining = list(self._host("keys", self.storage.keys))
        if remaining:
            raise StorageIOError(
                "Host storage still holds keys after clear", remaining=len(remaining)
            )
