"""Tests for store configuration."""

import pytest
from pydantic import ValidationError

from pkvstore.config import (
    DEFAULT_BACKEND,
    DEFAULT_COMPACTION_THRESHOLD_BYTES,
    StoreConfig,
    get_default_config,
    load_config_from_env,
)


@pytest.fixture(autouse=True)
def no_dotenv(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ignore any .env file in the working directory."""
    monkeypatch.setattr("pkvstore.config.load_dotenv", lambda: None)


class TestStoreConfig:
    """Tests for StoreConfig."""

    def test_defaults(self) -> None:
        """Default config should select sqlite with synchronous writes."""
        config = get_default_config()

        assert config.backend == DEFAULT_BACKEND == "sqlite"
        assert config.sync_writes is True
        assert config.compaction_threshold_bytes == DEFAULT_COMPACTION_THRESHOLD_BYTES
        assert config.sqlite_echo is False

    def test_unknown_backend_rejected(self) -> None:
        """Backend names outside the registry should fail validation."""
        with pytest.raises(ValidationError):
            StoreConfig(backend="redis")  # type: ignore[arg-type]

    def test_negative_threshold_rejected(self) -> None:
        """The compaction threshold cannot be negative."""
        with pytest.raises(ValidationError):
            StoreConfig(compaction_threshold_bytes=-1)

    def test_config_is_frozen(self) -> None:
        """A config cannot change after construction."""
        config = StoreConfig()
        with pytest.raises(ValidationError):
            config.backend = "log"  # type: ignore[misc]


class TestLoadConfigFromEnv:
    """Tests for load_config_from_env."""

    def test_defaults_without_variables(self) -> None:
        """No variables should give the default config."""
        assert load_config_from_env() == StoreConfig()

    def test_reads_every_variable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Each PKVSTORE_* variable should map onto its field."""
        monkeypatch.setenv("PKVSTORE_BACKEND", " Log ")
        monkeypatch.setenv("PKVSTORE_SYNC_WRITES", "false")
        monkeypatch.setenv("PKVSTORE_COMPACTION_THRESHOLD_BYTES", "4096")
        monkeypatch.setenv("PKVSTORE_SQLITE_ECHO", "yes")

        config = load_config_from_env()

        assert config.backend == "log"
        assert config.sync_writes is False
        assert config.compaction_threshold_bytes == 4096
        assert config.sqlite_echo is True

    def test_invalid_backend_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """An unknown backend name in the environment should fail validation."""
        monkeypatch.setenv("PKVSTORE_BACKEND", "cassandra")
        with pytest.raises(ValidationError):
            load_config_from_env()
