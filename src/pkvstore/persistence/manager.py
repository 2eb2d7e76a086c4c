"""Load-on-startup / save-on-change lifecycle for tracked values.

The host drives the manager through two hooks:

- ``startup()`` runs once before anything else. Every registered value is
  loaded from the store, or produced by its factory when nothing usable is
  stored. A factory default is not written back until it changes.
- ``sync()`` runs at a fixed point of every host cycle. Each value whose
  version moved since the manager last looked is written to the store. A
  failed write is logged and reported, never raised, and not retried until
  the value changes again; the in-memory value is kept either way.

Usage:
    manager = PersistenceManager(PkvStore.new("MyOrg", "MyGame"))
    settings = manager.init_persistent(GameSettings)
    manager.startup()
    while running:
        with settings.mutate() as s:
            s.volume = 0.8
        manager.sync()
"""

from typing import Any, Callable, Optional, TypeVar, Union

from pkvstore.errors import NotFoundError, StoreError
from pkvstore.observability.logging import get_logger
from pkvstore.persistence.tracked import Tracked, default_factory, type_key
from pkvstore.store import PkvStore

logger = get_logger(__name__)

T = TypeVar("T")

SaveErrorHandler = Callable[[Tracked[Any], StoreError], None]


class PersistenceManager:
    """Keeps registered values in sync with a store, keyed per value type.

    Attributes:
        store: Store every tracked value is persisted in
    """

    def __init__(self, store: PkvStore, on_save_error: Optional[SaveErrorHandler] = None) -> None:
        """Initialize the manager.

        Args:
            store: Store to load from and save to
            on_save_error: Called with the tracked value and error after a failed save
        """
        self.store = store
        self._on_save_error = on_save_error
        self._tracked: dict[str, Tracked[Any]] = {}
        self._observed: dict[str, int] = {}
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    @property
    def tracked_values(self) -> list[Tracked[Any]]:
        return list(self._tracked.values())

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        value_type: type[T],
        factory: Optional[Callable[[], T]] = None,
        *,
        key: Optional[str] = None,
    ) -> Tracked[T]:
        """Register a value type for automatic persistence.

        Registering after ``startup()`` loads the value immediately.

        Args:
            value_type: Type of the tracked value
            factory: Default producer; defaults to calling ``value_type()``
            key: Storage key; defaults to ``type_key(value_type)``

        Returns:
            The tracked value handle

        Raises:
            ValueError: If another value is already registered under the key
        """
        key = key or type_key(value_type)
        if key in self._tracked:
            raise ValueError(f"A value is already tracked under key '{key}'")

        tracked = Tracked(key, value_type, factory or default_factory(value_type))
        self._tracked[key] = tracked
        if self._started:
            self._load(tracked)
        return tracked

    def init_persistent(self, value_type: type[T]) -> Tracked[T]:
        """Track a type whose no-argument constructor gives the default."""
        return self.register(value_type)

    def init_persistent_with(self, value_type: type[T], factory: Callable[[], T]) -> Tracked[T]:
        """Track a type whose default comes from ``factory``."""
        return self.register(value_type, factory)

    def get_tracked(self, value_type_or_key: Union[type, str]) -> Tracked[Any]:
        """Look up a tracked value by its type or key.

        Raises:
            KeyError: If nothing is tracked under that key
        """
        if isinstance(value_type_or_key, str):
            key = value_type_or_key
        else:
            key = type_key(value_type_or_key)
        return self._tracked[key]

    # ------------------------------------------------------------------
    # Host hooks
    # ------------------------------------------------------------------

    def startup(self) -> None:
        """Load every registered value. Must run exactly once, before ``sync``.

        Raises:
            RuntimeError: If called a second time
        """
        if self._started:
            raise RuntimeError("PersistenceManager.startup() already ran")
        self._started = True
        for tracked in self._tracked.values():
            self._load(tracked)

    def sync(self) -> int:
        """Save every loaded value that changed since it was last observed.

        Returns:
            Number of values written successfully
        """
        saved = 0
        for tracked in self._tracked.values():
            if not tracked.loaded or tracked.version == self._observed.get(tracked.key):
                continue
            self._observed[tracked.key] = tracked.version
            if self._save(tracked):
                saved += 1
        return saved

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load(self, tracked: Tracked[Any]) -> None:
        try:
            value = self.store.get(tracked.key, tracked.value_type)
        except NotFoundError:
            logger.info("persistent_value_defaulted", key=tracked.key, reason="not_found")
            tracked._load(tracked.factory(), from_store=False)
        except StoreError as exc:
            logger.warning(
                "persistent_value_defaulted",
                key=tracked.key,
                reason=exc.error_code,
                error=str(exc),
            )
            tracked._load(tracked.factory(), from_store=False)
        else:
            logger.info("persistent_value_loaded", key=tracked.key)
            tracked._load(value, from_store=True)

        self._observed[tracked.key] = tracked.version

    def _save(self, tracked: Tracked[Any]) -> bool:
        try:
            self.store.set(tracked.key, tracked.value)
        except StoreError as exc:
            logger.error(
                "persistent_value_save_failed",
                key=tracked.key,
                version=tracked.version,
                error_code=exc.error_code,
                error=str(exc),
            )
            if self._on_save_error is not None:
                self._on_save_error(tracked, exc)
            return False

        logger.debug("persistent_value_saved", key=tracked.key, version=tracked.version)
        return True
