#!/usr/bin/env python
"""Automatically persisted application state.

Values registered with the persistence manager are loaded once at startup
and written back whenever they change. Stop the script and start it again to
see the counters continue where they left off.

Run from the repository root:
    python examples/persistent_value.py
"""

import getpass
import time
from dataclasses import dataclass

from pydantic import BaseModel

from pkvstore.observability import get_logger, setup_logging
from pkvstore.persistence import PersistenceManager
from pkvstore.store import PkvStore

logger = get_logger(__name__)


class GameSettings(BaseModel):
    volume: float = 0.0
    difficulty: int = 0


@dataclass
class PlayerProfile:
    name: str
    play_count: int
    created_at: int

    @classmethod
    def create(cls, name: str) -> "PlayerProfile":
        return cls(name=name, play_count=0, created_at=int(time.time()))


def _user_name() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "Player"


def main(cycles: int = 5, interval: float = 3.0) -> None:
    setup_logging(log_level="INFO", json_logs=False)

    store = PkvStore.new("BevyPkv", "PersistentResourceExample")
    manager = PersistenceManager(store)

    settings = manager.init_persistent(GameSettings)
    profile = manager.init_persistent_with(
        PlayerProfile, lambda: PlayerProfile.create(_user_name())
    )

    manager.startup()
    logger.info("settings_loaded", settings=settings.value.model_dump())
    logger.info("profile_loaded", name=profile.value.name, play_count=profile.value.play_count)

    try:
        for _ in range(cycles):
            time.sleep(interval)

            with settings.mutate() as s:
                s.volume = min(s.volume + 0.1, 1.0)
                s.difficulty = min(s.difficulty + 1, 3)
            with profile.mutate() as p:
                p.play_count += 1

            saved = manager.sync()
            logger.info(
                "cycle_complete",
                volume=round(settings.value.volume, 1),
                difficulty=settings.value.difficulty,
                play_count=profile.value.play_count,
                saved=saved,
            )
    finally:
        store.close()


if __name__ == "__main__":
    main()
