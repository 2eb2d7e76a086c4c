"""Tests for the persistence lifecycle manager."""

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
from pydantic import BaseModel

from pkvstore.backends import InMemoryTextStorage
from pkvstore.config import StoreConfig
from pkvstore.errors import StorageIOError, StoreError
from pkvstore.persistence import PersistenceManager, Tracked, type_key
from pkvstore.store import PkvStore


class GameSettings(BaseModel):
    volume: float = 1.0
    fullscreen: bool = False


class HighScores(BaseModel):
    scores: list[int] = []


@pytest.fixture
def store(tmp_path: Path) -> Iterator[PkvStore]:
    """Store on the dump backend in a temporary directory."""
    pkv = PkvStore.new_in_dir(tmp_path, config=StoreConfig(backend="dump", sync_writes=False))
    yield pkv
    pkv.close()


@pytest.fixture
def manager(store: PkvStore) -> PersistenceManager:
    return PersistenceManager(store)


class TestRegistration:
    """Tests for registering tracked values."""

    def test_register_uses_type_key(self, manager: PersistenceManager) -> None:
        """Values should be keyed by their fully qualified type name."""
        tracked = manager.init_persistent(GameSettings)

        assert tracked.key == type_key(GameSettings)
        assert manager.get_tracked(GameSettings) is tracked
        assert manager.get_tracked(tracked.key) is tracked

    def test_duplicate_registration_rejected(self, manager: PersistenceManager) -> None:
        """Registering the same type twice should raise ValueError."""
        manager.init_persistent(GameSettings)
        with pytest.raises(ValueError):
            manager.init_persistent(GameSettings)

    def test_explicit_key(self, manager: PersistenceManager) -> None:
        """An explicit key should override the type key."""
        tracked = manager.register(GameSettings, key="settings")
        assert tracked.key == "settings"

    def test_unknown_lookup_raises_key_error(self, manager: PersistenceManager) -> None:
        """Looking up an unregistered type should raise KeyError."""
        with pytest.raises(KeyError):
            manager.get_tracked(HighScores)


class TestStartup:
    """Tests for the startup hook."""

    def test_missing_value_uses_default_without_writing(
        self, manager: PersistenceManager, store: PkvStore
    ) -> None:
        """A fresh store should yield the default and not persist it."""
        settings = manager.init_persistent(GameSettings)

        manager.startup()

        assert settings.value == GameSettings()
        assert settings.loaded_from_store is False
        assert manager.sync() == 0
        assert store.remove_and_get(settings.key) is None

    def test_custom_factory(self, manager: PersistenceManager) -> None:
        """init_persistent_with should use the given factory for defaults."""
        scores = manager.init_persistent_with(HighScores, lambda: HighScores(scores=[100]))
        manager.startup()
        assert scores.value.scores == [100]

    def test_stored_value_is_loaded(self, manager: PersistenceManager, store: PkvStore) -> None:
        """A previously saved value should be loaded instead of the default."""
        store.set(type_key(GameSettings), GameSettings(volume=0.3))
        settings = manager.init_persistent(GameSettings)

        manager.startup()

        assert settings.value == GameSettings(volume=0.3)
        assert settings.loaded_from_store is True

    def test_undecodable_value_falls_back_to_default(
        self, manager: PersistenceManager, store: PkvStore
    ) -> None:
        """A stored record that no longer decodes should be replaced by the default."""
        store.set(type_key(GameSettings), [1, 2, 3])
        settings = manager.init_persistent(GameSettings)

        manager.startup()

        assert settings.value == GameSettings()
        assert settings.loaded_from_store is False

    def test_startup_twice_raises(self, manager: PersistenceManager) -> None:
        """startup should refuse to run a second time."""
        manager.startup()
        with pytest.raises(RuntimeError):
            manager.startup()

    def test_late_registration_loads_immediately(
        self, manager: PersistenceManager, store: PkvStore
    ) -> None:
        """Values registered after startup should be loaded right away."""
        store.set(type_key(HighScores), HighScores(scores=[5]))
        manager.startup()

        scores = manager.init_persistent(HighScores)

        assert scores.loaded
        assert scores.value.scores == [5]


class TestSync:
    """Tests for the sync hook."""

    def test_changed_value_is_saved(self, manager: PersistenceManager, store: PkvStore) -> None:
        """A mutation should be written on the next sync."""
        settings = manager.init_persistent(GameSettings)
        manager.startup()

        with settings.mutate() as s:
            s.volume = 0.5

        assert manager.sync() == 1
        assert store.get(settings.key, GameSettings) == GameSettings(volume=0.5)

    def test_unchanged_value_is_not_saved_again(self, manager: PersistenceManager) -> None:
        """sync should only write values whose version moved."""
        settings = manager.init_persistent(GameSettings)
        manager.startup()
        settings.set(GameSettings(fullscreen=True))

        assert manager.sync() == 1
        assert manager.sync() == 0

    def test_sync_before_startup_does_nothing(self, manager: PersistenceManager) -> None:
        """Unloaded values should never be written."""
        manager.init_persistent(GameSettings)
        assert manager.sync() == 0

    def test_values_survive_restart(self, tmp_path: Path) -> None:
        """A value saved in one run should be loaded in the next."""
        config = StoreConfig(backend="log", sync_writes=False)

        with PkvStore.new_in_dir(tmp_path, config=config) as pkv:
            first_run = PersistenceManager(pkv)
            settings = first_run.init_persistent(GameSettings)
            first_run.startup()
            settings.set(GameSettings(volume=0.1, fullscreen=True))
            first_run.sync()

        with PkvStore.new_in_dir(tmp_path, config=config) as pkv:
            second_run = PersistenceManager(pkv)
            settings = second_run.init_persistent(GameSettings)
            second_run.startup()
            assert settings.value == GameSettings(volume=0.1, fullscreen=True)

    def test_save_failure_is_reported_not_raised(self) -> None:
        """A failed save should call the handler, keep the value and not retry."""

        class FailingHost(InMemoryTextStorage):
            fail = True

            def set_item(self, key: str, value: str) -> None:
                if self.fail:
                    raise RuntimeError("quota exceeded")
                super().set_item(key, value)

        host = FailingHost()
        failures: list[tuple[Tracked[Any], StoreError]] = []
        store = PkvStore.new_in_dir(
            ".", config=StoreConfig(backend="text"), text_storage=host
        )
        manager = PersistenceManager(store, on_save_error=lambda t, e: failures.append((t, e)))
        settings = manager.init_persistent(GameSettings)
        manager.startup()

        settings.set(GameSettings(volume=0.2))
        assert manager.sync() == 0

        assert len(failures) == 1
        assert failures[0][0] is settings
        assert isinstance(failures[0][1], StorageIOError)
        assert settings.value == GameSettings(volume=0.2)

        host.fail = False
        assert manager.sync() == 0

        settings.mark_changed()
        assert manager.sync() == 1
        assert store.get(settings.key, GameSettings) == GameSettings(volume=0.2)

    def test_tracked_values_listing(self, manager: PersistenceManager) -> None:
        """tracked_values should list every registration."""
        manager.init_persistent(GameSettings)
        manager.init_persistent(HighScores)

        keys = {t.key for t in manager.tracked_values}

        assert keys == {type_key(GameSettings), type_key(HighScores)}
        assert not manager.started
