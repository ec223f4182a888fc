"""
Database session management for the library lending core.

This module provides connection management and session handling for SQLAlchemy.
Proper session management matters for the lending core because:

1. Thread Safety: concurrent borrow/return calls each get their own session
2. Transaction Management: borrow and return must commit atomically
3. Connection Pooling: file databases use a real pool so writers can queue
4. Error Recovery: failures roll back and reach the caller unchanged

Sessions are short-lived (one per unit of work) and must never be shared
between threads.
"""

import logging
from collections.abc import Callable, Generator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_config
from .schema import Base

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


class DatabaseManager:
    """
    Manages database connections and sessions.

    This class provides:
    - Lazily created engine with backend-specific settings
    - Session factory with explicit transactions
    - Schema creation for development and tests
    """

    def __init__(self, database_url: str | None = None, busy_timeout: float | None = None):
        """
        Initialize the database manager.

        Args:
            database_url: SQLAlchemy database URL. If None, uses the configured URL.
            busy_timeout: Seconds a SQLite connection waits for a write lock.
        """
        config = get_config()
        if database_url is None:
            database_url = config.get_database_url()
            if database_url.startswith("sqlite:///") and not config.database_url:
                Path(config.database_path).parent.mkdir(exist_ok=True, parents=True)
                logger.info("Using SQLite database at: %s", config.database_path)

        self.database_url = database_url
        self.busy_timeout = busy_timeout if busy_timeout is not None else config.sqlite_busy_timeout
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None

    @property
    def engine(self) -> Engine:
        """
        Get or create the database engine.

        The engine is created with:
        - A single shared connection (StaticPool) only for in-memory SQLite
        - A busy timeout for file SQLite so concurrent writers wait their turn
        - Foreign key constraints enabled for SQLite
        """
        if self._engine is None:
            if self.database_url.startswith("sqlite"):
                if _is_memory_sqlite(self.database_url):
                    self._engine = create_engine(
                        self.database_url,
                        poolclass=StaticPool,
                        connect_args={"check_same_thread": False},
                        echo=False,
                    )
                else:
                    self._engine = create_engine(
                        self.database_url,
                        connect_args={"check_same_thread": False, "timeout": self.busy_timeout},
                        echo=False,
                    )

                @event.listens_for(self._engine, "connect")
                def set_sqlite_pragma(dbapi_connection, connection_record):  # noqa: ARG001
                    cursor = dbapi_connection.cursor()
                    cursor.execute("PRAGMA foreign_keys=ON")
                    cursor.close()
            else:
                self._engine = create_engine(
                    self.database_url,
                    pool_size=10,
                    max_overflow=20,
                    pool_pre_ping=True,
                    echo=False,
                )

            logger.info("Database engine created: %s", self._engine.url)

        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        """Get or create the session factory."""
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.engine,
                autoflush=False,
                expire_on_commit=False,
            )
        return self._session_factory

    def create_session(self) -> Session:
        """Create a new database session."""
        return self.session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope for database operations.

        ```python
        with db_manager.session_scope() as session:
            book = session.get(Book, book_id)
        # Session is automatically committed or rolled back
        ```
        """
        session = self.create_session()
        try:
            yield session
            session.commit()
            logger.debug("Database transaction committed successfully")
        except Exception:
            logger.exception("Database error, rolling back")
            session.rollback()
            raise
        finally:
            session.close()

    def init_database(self, drop_existing: bool = False) -> None:
        """
        Initialize the database schema.

        Args:
            drop_existing: If True, drop all tables before creating
        """
        engine = self.engine

        if drop_existing:
            logger.warning("Dropping all existing tables...")
            Base.metadata.drop_all(bind=engine)

        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database initialization complete")

    def verify_connection(self) -> bool:
        """Verify the database connection is working."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database connection verified")
            return True
        except Exception:
            logger.exception("Database connection failed")
            return False

    def close(self) -> None:
        """Close the database connection and cleanup resources."""
        if self._engine:
            self._engine.dispose()
            logger.info("Database engine disposed")
        self._engine = None
        self._session_factory = None


# Global database manager instance
_db_manager: DatabaseManager | None = None


def get_db_manager(database_url: str | None = None) -> DatabaseManager:
    """
    Get the global database manager instance.

    Args:
        database_url: Database URL (only used on first call)
    """
    global _db_manager  # noqa: PLW0603 - Singleton pattern for database manager

    if _db_manager is None:
        _db_manager = DatabaseManager(database_url)

    return _db_manager


def reset_db_manager() -> None:
    """Dispose and forget the global database manager (useful for testing)."""
    global _db_manager  # noqa: PLW0603

    if _db_manager is not None:
        _db_manager.close()
    _db_manager = None


def safe_commit(session: Session, operation: str) -> None:
    """
    Commit a session, rolling back on failure.

    The original persistence error is re-raised unchanged.
    """
    try:
        session.commit()
    except Exception:
        logger.exception("Database operation '%s' failed, rolling back", operation)
        session.rollback()
        raise


def safe_query(session: Session, query_func: Callable[[Session], T], description: str) -> T:
    """
    Execute a query, logging failures before re-raising them unchanged.

    Args:
        session: The database session
        query_func: Function that performs the query
        description: What the query does, for the log record
    """
    try:
        return query_func(session)
    except Exception:
        logger.exception("Query failed: %s", description)
        raise
