"""Tracked values: application state with an explicit change counter.

A tracked value wraps one object registered for automatic persistence. Every
mutation made through the wrapper bumps ``version``; the persistence manager
compares that counter with the last version it observed to decide whether a
write is due.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class TrackedState(str, Enum):
    """Load state of a tracked value."""

    UNINITIALIZED = "uninitialized"
    LOADED = "loaded"


def type_key(value_type: type) -> str:
    """Derive the storage key for a tracked type.

    The key is the type's fully qualified name, so it is stable across runs
    as long as the class keeps its module and name. Renaming or moving the
    class starts a fresh persisted value; pass an explicit ``key`` to
    ``PersistenceManager.register`` to keep the old one.

    Args:
        value_type: Class of the tracked value

    Returns:
        "<module>.<qualified name>"
    """
    return f"{value_type.__module__}.{value_type.__qualname__}"


class Tracked(Generic[T]):
    """One value under automatic persistence.

    Attributes:
        key: Storage key the value is persisted under
        value_type: Type the stored record is decoded as
        factory: Produces the default when nothing usable is stored
        state: Whether the value has been loaded
        version: Incremented on every mutation
    """

    def __init__(self, key: str, value_type: type[T], factory: Callable[[], T]) -> None:
        self.key = key
        self.value_type = value_type
        self.factory = factory
        self.state = TrackedState.UNINITIALIZED
        self.version = 0
        self.loaded_from_store = False
        self._value: Optional[T] = None

    @property
    def loaded(self) -> bool:
        return self.state is TrackedState.LOADED

    @property
    def value(self) -> T:
        """Current in-memory value.

        Raises:
            RuntimeError: If read before the value was loaded
        """
        if not self.loaded:
            raise RuntimeError(f"Tracked value '{self.key}' has not been loaded yet")
        return self._value  # type: ignore[return-value]

    def set(self, value: T) -> None:
        """Replace the value and mark it changed."""
        self._require_loaded()
        self._value = value
        self.version += 1

    @contextmanager
    def mutate(self) -> Iterator[T]:
        """Yield the value for in-place edits; marks it changed on exit.

        Example:
            >>> with settings.mutate() as s:
            ...     s.volume = 0.5
        """
        self._require_loaded()
        try:
            yield self._value  # type: ignore[misc]
        finally:
            self.version += 1

    def mark_changed(self) -> None:
        """Flag a change made to the value outside ``set``/``mutate``."""
        self._require_loaded()
        self.version += 1

    def _require_loaded(self) -> None:
        if not self.loaded:
            raise RuntimeError(f"Tracked value '{self.key}' has not been loaded yet")

    def _load(self, value: T, from_store: bool) -> None:
        self._value = value
        self.loaded_from_store = from_store
        self.state = TrackedState.LOADED

    def __repr__(self) -> str:
        return (
            f"Tracked(key={self.key!r}, state={self.state.value}, version={self.version})"
        )


def default_factory(value_type: type[T]) -> Callable[[], T]:
    """Factory that builds a default by calling the type with no arguments."""

    def _factory() -> Any:
        return value_type()

    return _factory
