"""SQLAlchemy engine, session management and the record table.

The transactional backend keeps every key in one table of one SQLite file.
Each session is one transaction: it commits when the block exits cleanly and
rolls back otherwise.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import LargeBinary, String, create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from pkvstore.errors import StorageIOError, TransactionError


class Base(DeclarativeBase):
    """Declarative base for the store's ORM models."""

    pass


class RecordModel(Base):
    """ORM model for one key-value record.

    Attributes:
        key: Application-chosen key (primary key)
        value: Codec-encoded record bytes
    """

    __tablename__ = "records"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)


class DatabaseConfig:
    """Database configuration.

    Attributes:
        path: SQLite database file
        echo: Whether to log SQL statements (default: False)
        synchronous: SQLite ``synchronous`` pragma (FULL, NORMAL or OFF)
    """

    def __init__(self, path: Path, echo: bool = False, synchronous: str = "FULL"):
        self.path = path
        self.echo = echo
        self.synchronous = synchronous

    @property
    def url(self) -> str:
        return f"sqlite:///{self.path}"


class Database:
    """SQLite engine and transactional session manager.

    Example:
        >>> db = Database(DatabaseConfig(path=Path("/tmp/app/pkv.sqlite3")))
        >>> db.create_tables()
        >>> with db.session() as session:
        ...     session.get(RecordModel, "user")
    """

    def __init__(self, config: DatabaseConfig):
        """Initialize database with configuration.

        Args:
            config: Database configuration
        """
        self.config = config
        self.engine = create_engine(config.url, echo=config.echo)
        self.session_factory = sessionmaker(self.engine, expire_on_commit=False)

        synchronous = config.synchronous

        @event.listens_for(self.engine, "connect")
        def _set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute(f"PRAGMA synchronous={synchronous}")
            cursor.close()

    def create_tables(self) -> None:
        """Create the record table if it does not exist."""
        Base.metadata.create_all(self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Open a session wrapping exactly one transaction.

        Yields:
            Session bound to the store's engine

        Raises:
            TransactionError: If the transaction cannot begin or commit
            StorageIOError: If a statement inside the transaction fails
        """
        try:
            session = self.session_factory()
            session.begin()
        except SQLAlchemyError as exc:
            raise TransactionError(f"Failed to begin transaction: {exc}") from exc

        try:
            try:
                yield session
            except SQLAlchemyError as exc:
                session.rollback()
                raise StorageIOError(f"Storage operation failed: {exc}") from exc
            except BaseException:
                session.rollback()
                raise

            try:
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise TransactionError(f"Failed to commit transaction: {exc}") from exc
        finally:
            session.close()

    def close(self) -> None:
        """Close database engine and connections."""
        self.engine.dispose()

    def health_check(self) -> bool:
        """Check database connectivity.

        Returns:
            True if database is healthy

        Raises:
            SQLAlchemyError if the database cannot be queried
        """
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
