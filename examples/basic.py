#!/usr/bin/env python
"""Basic store usage: strings, models and clearing.

Run from the repository root:
    python examples/basic.py

Set PKVSTORE_BACKEND=log (or dump, text) to try another backend.
"""

from pydantic import BaseModel

from pkvstore.errors import NotFoundError
from pkvstore.observability import get_logger, setup_logging
from pkvstore.store import PkvStore

logger = get_logger(__name__)


class User(BaseModel):
    name: str


def main() -> None:
    setup_logging(log_level="INFO", json_logs=False)

    with PkvStore.new("BevyPkv", "BasicExample") as store:
        try:
            username = store.get("username", str)
            logger.info("welcome_back", username=username)
        except NotFoundError:
            logger.info("first_run", hint="run again to see the stored values")
            store.set_string("username", "alice")

        store.set("user", User(name="bob"))
        user = store.get("user", User)
        logger.info("user_loaded", name=user.name)

        store.set_string("key1", "goodbye")
        store.set_string("key2", "see yeah!")
        store.clear()

        try:
            store.get("key1", str)
        except NotFoundError:
            logger.info("store_emptied")


if __name__ == "__main__":
    main()
