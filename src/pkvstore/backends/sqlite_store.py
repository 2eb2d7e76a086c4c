"""Transactional table backend on SQLite through SQLAlchemy."""

from pathlib import Path
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from pkvstore.backends.base import StoreBackend
from pkvstore.backends.database import Database, DatabaseConfig, RecordModel
from pkvstore.codecs.base import Record
from pkvstore.codecs.msgpack_codec import StructMapCodec
from pkvstore.config import StoreConfig, get_default_config
from pkvstore.errors import StoreOpenError
from pkvstore.observability.logging import get_logger

logger = get_logger(__name__)

DATABASE_FILE_NAME = "pkv.sqlite3"


class SQLiteStore(StoreBackend):
    """Single-table SQLite store; every read and write is its own transaction.

    Records use the field-name-keyed msgpack codec, so values written by an
    older model shape stay decodable by a newer one that aliases renamed
    fields.

    Attributes:
        path: Database file path
        db: Database wrapper owning the engine
    """

    name = "sqlite"
    transactional = True

    def __init__(self, directory: Path, config: Optional[StoreConfig] = None) -> None:
        """Open (or create) the database in ``directory``.

        Args:
            directory: Directory holding ``pkv.sqlite3``; created if missing
            config: Store configuration

        Raises:
            StoreOpenError: If the directory or database cannot be opened
        """
        config = config or get_default_config()
        super().__init__(StructMapCodec(), directory)
        self.path = directory / DATABASE_FILE_NAME

        try:
            directory.mkdir(parents=True, exist_ok=True)
            self.db = Database(
                DatabaseConfig(
                    path=self.path,
                    echo=config.sqlite_echo,
                    synchronous="FULL" if config.sync_writes else "NORMAL",
                )
            )
        except (OSError, SQLAlchemyError) as exc:
            raise StoreOpenError(
                f"Failed to open sqlite store: {exc}", path=str(self.path)
            ) from exc

        try:
            self.db.create_tables()
        except SQLAlchemyError as exc:
            self.db.close()
            raise StoreOpenError(
                f"Failed to open sqlite store: {exc}", path=str(self.path)
            ) from exc

        logger.info("store_opened", backend=self.name, path=str(self.path))

    def read_record(self, key: str) -> Optional[Record]:
        with self.db.session() as session:
            row = session.get(RecordModel, key)
            return None if row is None else bytes(row.value)

    def write_record(self, key: str, record: Record) -> None:
        if isinstance(record, str):
            record = record.encode("utf-8")
        stmt = sqlite_insert(RecordModel).values(key=key, value=record)
        stmt = stmt.on_conflict_do_update(
            index_elements=[RecordModel.key], set_={"value": stmt.excluded.value}
        )
        with self.db.session() as session:
            session.execute(stmt)

    def delete_record(self, key: str) -> Optional[Record]:
        # Read and delete share one transaction
        with self.db.session() as session:
            row = session.get(RecordModel, key)
            if row is None:
                return None
            previous = bytes(row.value)
            session.delete(row)
            return previous

    def clear_records(self) -> None:
        # A WHERE-less DELETE hits SQLite's truncate optimisation
        with self.db.session() as session:
            session.execute(delete(RecordModel))

    def __len__(self) -> int:
        with self.db.session() as session:
            return session.query(RecordModel).count()

    def close(self) -> None:
        if not self._closed:
            self.db.close()
            logger.info("store_closed", backend=self.name, path=str(self.path))
        super().close()
