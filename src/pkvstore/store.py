"""The store facade applications hold.

``PkvStore`` hides which backend is in use behind one API. The backend is
chosen from configuration when the store is constructed and stays fixed for
the store's lifetime.

Usage:
    store = PkvStore.new("MyOrg", "MyApp")
    store.set_string("username", "alice")
    store.get("username", str)            # -> "alice"
    store.set("user", User(name="alice", age=32))
    store.get("user", User)               # -> User(name="alice", age=32)
"""

from pathlib import Path
from typing import Any, Optional, TypeVar, Union, overload

from pkvstore.backends import MISSING, StoreBackend, TextStorage, create_backend
from pkvstore.codecs.base import Codec
from pkvstore.config import StoreConfig, load_config_from_env
from pkvstore.location import CustomPath, Location, PlatformDefault, resolve_location
from pkvstore.observability.logging import get_logger, store_context

logger = get_logger(__name__)

T = TypeVar("T")
D = TypeVar("D")

__all__ = ["MISSING", "PkvStore"]


def _check_key(key: Any) -> str:
    if not isinstance(key, str):
        raise TypeError(f"Store keys must be str, got {type(key).__name__}")
    return key


class PkvStore:
    """Persistent key-value store for application state.

    Attributes:
        backend: The backend every operation is delegated to
    """

    def __init__(self, backend: StoreBackend) -> None:
        """Wrap an already opened backend.

        Args:
            backend: Backend owning the storage handle
        """
        self.backend = backend
        if backend.location is not None:
            self._label = f"{backend.name}:{backend.location}"
        else:
            self._label = backend.name

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def new(
        cls,
        organization: str,
        application: str,
        *,
        config: Optional[StoreConfig] = None,
        text_storage: Optional[TextStorage] = None,
    ) -> "PkvStore":
        """Create or open a store in the platform's data directory.

        Args:
            organization: Vendor name used in the directory path
            application: Application name used in the directory path
            config: Store configuration (loaded from the environment if omitted)
            text_storage: Host storage when the text backend is configured

        Raises:
            StoreOpenError: If the backend cannot open its storage
        """
        location = PlatformDefault(organization=organization, application=application)
        return cls._open(location, config, text_storage)

    @classmethod
    def new_with_qualifier(
        cls,
        qualifier: str,
        organization: str,
        application: str,
        *,
        config: Optional[StoreConfig] = None,
        text_storage: Optional[TextStorage] = None,
    ) -> "PkvStore":
        """Like ``new``, with a qualifier such as "com" or "org".

        Some platforms (macOS) use the qualifier as part of the directory name.
        """
        location = PlatformDefault(
            qualifier=qualifier, organization=organization, application=application
        )
        return cls._open(location, config, text_storage)

    @classmethod
    def new_in_dir(
        cls,
        path: Union[str, Path],
        *,
        config: Optional[StoreConfig] = None,
        text_storage: Optional[TextStorage] = None,
    ) -> "PkvStore":
        """Create or open a store in an explicit directory.

        Args:
            path: Directory for the backing file; created if missing
            config: Store configuration (loaded from the environment if omitted)
            text_storage: Host storage when the text backend is configured
        """
        return cls._open(CustomPath(path=Path(path)), config, text_storage)

    @classmethod
    def _open(
        cls,
        location: Location,
        config: Optional[StoreConfig],
        text_storage: Optional[TextStorage],
    ) -> "PkvStore":
        config = config or load_config_from_env()
        directory = None
        if config.backend != "text":
            directory = resolve_location(location)
        return cls(create_backend(config, directory, text_storage))

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def backend_name(self) -> str:
        return self.backend.name

    @property
    def location(self) -> Optional[Path]:
        """Resolved directory, or None for backends without one."""
        return self.backend.location

    @property
    def codec(self) -> Codec:
        return self.backend.codec

    # ------------------------------------------------------------------
    # Store contract
    # ------------------------------------------------------------------

    def set(self, key: str, value: Any) -> None:
        """Serialize and store ``value`` under ``key``.

        Raises:
            EncodeError: If the value cannot be serialized
            StorageIOError: If the backend fails to write
            TransactionError: If a transactional backend fails to commit
        """
        with store_context(self._label):
            self.backend.set(_check_key(key), value)

    def set_string(self, key: str, value: str) -> None:
        """Store a plain string; same record as ``set(key, value)``."""
        if not isinstance(value, str):
            raise TypeError(f"set_string expects str, got {type(value).__name__}")
        with store_context(self._label):
            self.backend.set_string(_check_key(key), value)

    @overload
    def get(self, key: str) -> Any: ...

    @overload
    def get(self, key: str, value_type: type[T]) -> T: ...

    def get(self, key: str, value_type: Any = Any) -> Any:
        """Get the value for ``key`` decoded as ``value_type``.

        Raises:
            NotFoundError: If the key does not exist
            DecodeError: If the stored record does not decode as ``value_type``
        """
        with store_context(self._label):
            return self.backend.get(_check_key(key), value_type)

    def remove(self, key: str) -> None:
        """Remove ``key``; removing an absent key succeeds."""
        with store_context(self._label):
            self.backend.remove(_check_key(key))

    @overload
    def remove_and_get(self, key: str) -> Optional[Any]: ...

    @overload
    def remove_and_get(self, key: str, value_type: type[T]) -> Optional[T]: ...

    @overload
    def remove_and_get(self, key: str, *, default: D) -> Any: ...

    @overload
    def remove_and_get(self, key: str, value_type: type[T], *, default: D) -> Union[T, D]: ...

    def remove_and_get(self, key: str, value_type: Any = Any, *, default: Any = None) -> Any:
        """Remove ``key`` and return the value it held.

        A stored None and an absent key both give None by default. Pass
        ``default=MISSING`` to tell them apart:

            if store.remove_and_get("slot", default=MISSING) is MISSING:
                ...

        Returns:
            The removed value, or ``default`` if nothing was stored under ``key``
        """
        with store_context(self._label):
            return self.backend.remove_and_get(_check_key(key), value_type, default=default)

    def clear(self) -> None:
        """Remove every key."""
        with store_context(self._label):
            self.backend.clear()

    # ------------------------------------------------------------------
    # Resource handling
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Release the backend's storage handle."""
        self.backend.close()

    def __enter__(self) -> "PkvStore":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"PkvStore(backend={self.backend!r})"
