"""Tests for the store error hierarchy."""

import pytest

from pkvstore.errors import (
    BackendUnavailableError,
    DecodeError,
    EncodeError,
    NotFoundError,
    StorageIOError,
    StoreError,
    StoreOpenError,
    TransactionError,
)


class TestStoreError:
    """Tests for the StoreError base class."""

    def test_str_without_context(self) -> None:
        """Errors without context should render code and message."""
        assert str(StoreError("boom")) == "[STORE_ERROR] boom"

    def test_str_with_context(self) -> None:
        """Context should be appended as key=value pairs."""
        error = StorageIOError("write failed", operation="set", key="user")
        assert str(error) == "[STORAGE_IO_ERROR] write failed (operation=set, key=user)"

    def test_key_and_operation_properties(self) -> None:
        """key and operation should read from the context."""
        error = DecodeError("bad record", operation="get", key="k")
        assert error.key == "k"
        assert error.operation == "get"
        assert StoreError("x").key is None

    @pytest.mark.parametrize(
        "error_class",
        [EncodeError, DecodeError, StorageIOError, TransactionError, StoreOpenError],
    )
    def test_subclasses_are_store_errors(self, error_class: type[StoreError]) -> None:
        """Every kind should be catchable as StoreError."""
        with pytest.raises(StoreError):
            raise error_class("failure")

    def test_error_codes_are_unique(self) -> None:
        """Each kind should have its own error code."""
        classes = [
            StoreError,
            NotFoundError,
            EncodeError,
            DecodeError,
            StorageIOError,
            TransactionError,
            StoreOpenError,
            BackendUnavailableError,
        ]
        codes = [cls.error_code for cls in classes]
        assert len(set(codes)) == len(codes)


class TestNotFoundError:
    """Tests for NotFoundError."""

    def test_carries_key(self) -> None:
        """NotFoundError should record the missing key."""
        error = NotFoundError("settings", operation="get")

        assert error.key == "settings"
        assert "settings" in error.message
        assert error.error_code == "NOT_FOUND"


class TestBackendUnavailableError:
    """Tests for BackendUnavailableError."""

    def test_carries_backend_name(self) -> None:
        """The unknown backend name should be in the context."""
        error = BackendUnavailableError("redis")

        assert error.context["backend"] == "redis"
        assert "redis" in str(error)
