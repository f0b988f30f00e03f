"""
SQL persistence backend.

Stores the key/value namespace in a single table through SQLAlchemy, with
connection handling and a commit/rollback session scope. SQLite gives an
embedded store; any SQLAlchemy URL works.
"""

from contextlib import contextmanager
from typing import Generator, List, Optional

import structlog
from sqlalchemy import create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..exceptions import BackendError
from .backends import PersistenceBackend, utf8_size
from .orm_models import Base, StorageEntry

logger = structlog.get_logger(__name__)


class SqlBackend(PersistenceBackend):
    """
    Key/value backend on a SQLAlchemy engine.

    Examples:
        >>> backend = SqlBackend("sqlite:///:memory:")
        >>> backend.set("k", "v")
        >>> backend.get("k")
        'v'
    """

    def __init__(self, url: str = "sqlite:///report_versions.db", echo: bool = False):
        self.engine: Engine = create_engine(url, echo=echo, pool_pre_ping=True)
        self._session_factory = sessionmaker(bind=self.engine)
        Base.metadata.create_all(self.engine)

        logger.info("sql_backend_created", database=self.engine.url.database)

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Context manager for sessions with automatic commit/rollback.

        Yields:
            SQLAlchemy Session instance

        Raises:
            BackendError: Any database error (after rollback)
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("sql_backend_session_rollback", error=str(e), error_type=type(e).__name__)
            raise BackendError(str(e)) from e
        finally:
            session.close()

    def get(self, key: str) -> Optional[str]:
        with self.session_scope() as session:
            entry = session.get(StorageEntry, key)
            return entry.value if entry is not None else None

    def set(self, key: str, value: str) -> None:
        with self.session_scope() as session:
            entry = session.get(StorageEntry, key)
            if entry is None:
                session.add(StorageEntry(key=key, value=value, size_bytes=utf8_size(value)))
            else:
                entry.value = value
                entry.size_bytes = utf8_size(value)

    def remove(self, key: str) -> None:
        with self.session_scope() as session:
            entry = session.get(StorageEntry, key)
            if entry is not None:
                session.delete(entry)

    def keys(self) -> List[str]:
        with self.session_scope() as session:
            return list(session.scalars(select(StorageEntry.key)))

    def size_of(self, key: str) -> int:
        with self.session_scope() as session:
            size = session.scalar(select(StorageEntry.size_bytes).where(StorageEntry.key == key))
            return size or 0

    def dispose(self) -> None:
        """Close pooled connections."""
        self.engine.dispose()
        logger.debug("sql_backend_disposed")
