"""Exception hierarchy for key-value store operations.

Every backend maps its native failures (filesystem errors, SQLAlchemy errors,
codec errors, host storage errors) into exactly these kinds, so callers never
need to know which storage engine sits behind a store.
"""

from typing import Any


class StoreError(Exception):
    """Base exception for all store errors.

    Attributes:
        message: Human-readable error description
        error_code: Unique code for programmatic error handling
        context: Additional context information (operation, key, backend...)
    """

    error_code: str = "STORE_ERROR"

    def __init__(self, message: str, **context: Any) -> None:
        """Initialize store error with message and optional context.

        Args:
            message: Human-readable error description
            **context: Additional context information
        """
        super().__init__(message)
        self.message = message
        self.context = context

    @property
    def key(self) -> Any:
        """Key the failed operation targeted, if any."""
        return self.context.get("key")

    @property
    def operation(self) -> Any:
        """Name of the failed operation, if known."""
        return self.context.get("operation")

    def __str__(self) -> str:
        """Return formatted error message with context."""
        if not self.context:
            return f"[{self.error_code}] {self.message}"

        context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"[{self.error_code}] {self.message} ({context_str})"


class NotFoundError(StoreError):
    """Raised by ``get`` when no record exists for the key.

    This is an expected outcome; callers branch on it to apply a default.
    """

    error_code = "NOT_FOUND"

    def __init__(self, key: str, **context: Any) -> None:
        """Initialize with the missing key.

        Args:
            key: Key that has no record
            **context: Additional context information
        """
        super().__init__(f"No value found for key '{key}'", key=key, **context)


class EncodeError(StoreError):
    """Raised when a value cannot be serialized by the store's codec."""

    error_code = "ENCODE_ERROR"


class DecodeError(StoreError):
    """Raised when a stored record cannot be decoded as the requested type."""

    error_code = "DECODE_ERROR"


class StorageIOError(StoreError):
    """Raised when the storage engine fails to read, write or open data."""

    error_code = "STORAGE_IO_ERROR"


class TransactionError(StoreError):
    """Raised when a transactional engine fails to begin or commit."""

    error_code = "TRANSACTION_ERROR"


class StoreOpenError(StoreError):
    """Raised when a backend cannot open its storage medium.

    Construction failures are fatal: a store that cannot open its medium
    cannot honour any of its guarantees, so this is raised from the
    constructor instead of being deferred to the first operation.
    """

    error_code = "STORE_OPEN_ERROR"


class BackendUnavailableError(StoreError):
    """Raised when configuration names a backend that does not exist."""

    error_code = "BACKEND_UNAVAILABLE"

    def __init__(self, backend: str, **context: Any) -> None:
        """Initialize with the unknown backend name.

        Args:
            backend: Name that failed to resolve
            **context: Additional context information
        """
        super().__init__(f"Unknown store backend '{backend}'", backend=backend, **context)
