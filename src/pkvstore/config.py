"""Store configuration models and utilities.

This module decides which backend a store instance opens and how the
on-disk backends trade durability for write speed.
"""

import os
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

BackendName = Literal["log", "sqlite", "dump", "text"]

DEFAULT_BACKEND: BackendName = "sqlite"
DEFAULT_COMPACTION_THRESHOLD_BYTES = 1024 * 1024


class StoreConfig(BaseModel):
    """Configuration shared by every store instance.

    The backend is fixed for the lifetime of a store; changing it means
    opening a different store, never switching an open one.

    Attributes:
        backend: Storage engine to open ("log", "sqlite", "dump" or "text")
        sync_writes: fsync after every log or dump write
        compaction_threshold_bytes: Dead bytes a log file may accumulate
            before it is rewritten
        sqlite_echo: Log every SQL statement issued by the sqlite backend

    Example:
        >>> config = StoreConfig(backend="log", sync_writes=False)
        >>> store = PkvStore.new_in_dir("/tmp/app", config=config)
    """

    model_config = ConfigDict(frozen=True)

    backend: BackendName = Field(default=DEFAULT_BACKEND, description="Storage backend")
    sync_writes: bool = Field(default=True, description="fsync after each write")
    compaction_threshold_bytes: int = Field(
        default=DEFAULT_COMPACTION_THRESHOLD_BYTES,
        ge=0,
        description="Dead bytes tolerated in the log before compaction",
    )
    sqlite_echo: bool = Field(default=False, description="Echo SQL statements")


def get_default_config() -> StoreConfig:
    """Get the default store configuration.

    Returns:
        StoreConfig with default values
    """
    return StoreConfig()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def load_config_from_env() -> StoreConfig:
    """Load store configuration from environment variables.

    Automatically loads variables from .env file if present.

    Reads configuration from environment variables:
    - PKVSTORE_BACKEND: Backend name (log, sqlite, dump, text)
    - PKVSTORE_SYNC_WRITES: fsync after each write (true/false)
    - PKVSTORE_COMPACTION_THRESHOLD_BYTES: Log compaction threshold
    - PKVSTORE_SQLITE_ECHO: Echo SQL statements (true/false)

    Returns:
        StoreConfig loaded from environment

    Raises:
        pydantic.ValidationError: If a variable holds an invalid value
    """
    load_dotenv()

    return StoreConfig(
        backend=os.getenv("PKVSTORE_BACKEND", DEFAULT_BACKEND).strip().lower(),
        sync_writes=_env_flag("PKVSTORE_SYNC_WRITES", "true"),
        compaction_threshold_bytes=int(
            os.getenv(
                "PKVSTORE_COMPACTION_THRESHOLD_BYTES", str(DEFAULT_COMPACTION_THRESHOLD_BYTES)
            )
        ),
        sqlite_echo=_env_flag("PKVSTORE_SQLITE_ECHO", "false"),
    )
