"""Storage backends implementing the store contract.

Each backend owns one storage handle and pairs with one codec:

=========  ===================================  ======================
name       engine                               codec
=========  ===================================  ======================
``log``    append-only record log               msgpack, positional
``sqlite`` SQLite table via SQLAlchemy          msgpack, field names
``dump``   in-memory map dumped to one file     msgpack, field names
``text``   host text key-value namespace        JSON
=========  ===================================  ======================
"""

from pathlib import Path
from typing import Optional

from pkvstore.backends.base import MISSING, StoreBackend
from pkvstore.backends.dump_store import DumpStore
from pkvstore.backends.log_store import LogStore
from pkvstore.backends.sqlite_store import SQLiteStore
from pkvstore.backends.text_store import (
    InMemoryTextStorage,
    TextStorage,
    TextStore,
    get_default_text_storage,
)
from pkvstore.config import StoreConfig, get_default_config
from pkvstore.errors import BackendUnavailableError, StoreOpenError

DISK_BACKENDS: dict[str, type[StoreBackend]] = {
    "log": LogStore,
    "sqlite": SQLiteStore,
    "dump": DumpStore,
}

BACKEND_NAMES = tuple(DISK_BACKENDS) + ("text",)


def create_backend(
    config: Optional[StoreConfig] = None,
    directory: Optional[Path] = None,
    text_storage: Optional[TextStorage] = None,
) -> StoreBackend:
    """Open the backend named by ``config.backend``.

    Args:
        config: Store configuration (default config if omitted)
        directory: Resolved directory for on-disk backends
        text_storage: Host storage for the text backend

    Returns:
        Opened backend

    Raises:
        BackendUnavailableError: If the backend name is unknown
        StoreOpenError: If an on-disk backend is given no directory or cannot open
    """
    config = config or get_default_config()

    if config.backend == "text":
        return TextStore(text_storage)

    backend_cls = DISK_BACKENDS.get(config.backend)
    if backend_cls is None:
        raise BackendUnavailableError(config.backend)
    if directory is None:
        raise StoreOpenError("On-disk backend requires a directory", backend=config.backend)
    return backend_cls(directory, config)  # type: ignore[call-arg]


__all__ = [
    "BACKEND_NAMES",
    "DISK_BACKENDS",
    "MISSING",
    "StoreBackend",
    "LogStore",
    "SQLiteStore",
    "DumpStore",
    "TextStore",
    "TextStorage",
    "InMemoryTextStorage",
    "get_default_text_storage",
    "create_backend",
]
