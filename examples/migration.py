#!/usr/bin/env python
"""Renaming a field without losing stored data.

Field-name keyed backends (sqlite, dump, text) can decode a record written by
an older model into a newer one when the new field lists the old name as a
validation alias. The positional ``log`` backend cannot.

Run from the repository root:
    python examples/migration.py
"""

from pydantic import AliasChoices, BaseModel, Field

from pkvstore.config import StoreConfig
from pkvstore.observability import get_logger, setup_logging
from pkvstore.store import PkvStore

logger = get_logger(__name__)


class UserV1(BaseModel):
    nick: str
    favorite_color: str


class UserV2(BaseModel):
    name: str = Field(validation_alias=AliasChoices("name", "nick"))
    # favorite_color is no longer kept


def main() -> None:
    setup_logging(log_level="INFO", json_logs=False)

    config = StoreConfig(backend="sqlite")
    with PkvStore.new("BevyPkv", "MigrationExample", config=config) as store:
        store.set("user", UserV1(nick="old bob", favorite_color="beige"))

        user = store.get("user", UserV2)
        logger.info("welcome_back", name=user.name)


if __name__ == "__main__":
    main()
