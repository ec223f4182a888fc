"""
Unit of Work for the library lending core.

A UnitOfWork owns one SQLAlchemy session and hands out the five repositories
on top of it. Repositories only stage changes; nothing reaches the database
until the unit of work commits, and a failed commit rolls everything back.

Typical use:

```python
with UnitOfWork() as uow, uow.transaction():
    book = uow.books.get_by_isbn("9780141439518")
    uow.books.try_adjust_available_copies(book.id, -1)
    uow.borrow_records.add(record)
# committed here, or rolled back if anything above raised
```

A unit of work is not thread-safe. Use one per operation per thread.
"""

import logging
from collections.abc import Callable, Generator
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy.orm import Session

from ..exceptions import InvalidOperationError
from .author_repository import AuthorRepository
from .book_repository import BookRepository
from .borrow_record_repository import BorrowRecordRepository
from .category_repository import CategoryRepository
from .member_repository import MemberRepository
from .session import get_db_manager, safe_commit

logger = logging.getLogger(__name__)


class UnitOfWork:
    """Coordinates one logical transaction across the lending repositories."""

    def __init__(
        self,
        session_factory: Callable[[], Session] | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Args:
            session_factory: Callable returning a new Session. Defaults to the
                global database manager's factory.
            clock: Source of "now" for audit timestamps written through this
                unit of work. Services replace it with their own clock.
        """
        self._session_factory = session_factory or get_db_manager().session_factory
        self.clock = clock
        self._session: Session | None = None
        self._in_transaction = False

        self._authors: AuthorRepository | None = None
        self._categories: CategoryRepository | None = None
        self._books: BookRepository | None = None
        self._members: MemberRepository | None = None
        self._borrow_records: BorrowRecordRepository | None = None

    @property
    def session(self) -> Session:
        if self._session is None:
            self._session = self._session_factory()
            self._session.info["clock"] = self.now
        return self._session

    def now(self) -> datetime:
        return self.clock()

    # Repositories are created on first access and share the session

    @property
    def authors(self) -> AuthorRepository:
        if self._authors is None:
            self._authors = AuthorRepository(self.session)
        return self._authors

    @property
    def categories(self) -> CategoryRepository:
        if self._categories is None:
            self._categories = CategoryRepository(self.session)
        return self._categories

    @property
    def books(self) -> BookRepository:
        if self._books is None:
            self._books = BookRepository(self.session)
        return self._books

    @property
    def members(self) -> MemberRepository:
        if self._members is None:
            self._members = MemberRepository(self.session)
        return self._members

    @property
    def borrow_records(self) -> BorrowRecordRepository:
        if self._borrow_records is None:
            self._borrow_records = BorrowRecordRepository(self.session)
        return self._borrow_records

    # === Transactions ===

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    def commit(self) -> None:
        """
        Persist every pending change atomically.

        Audit timestamps are stamped during the flush. On failure the session
        is rolled back and the persistence error is re-raised unchanged.
        """
        try:
            safe_commit(self.session, "unit of work commit")
        finally:
            self._in_transaction = False

    def begin_transaction(self) -> None:
        """Mark the start of an explicit multi-write transaction."""
        if self._in_transaction:
            raise InvalidOperationError("begin_transaction", "a transaction is already open")
        self._in_transaction = True
        logger.debug("Transaction started")

    def commit_transaction(self) -> None:
        if not self._in_transaction:
            raise InvalidOperationError("commit_transaction", "no transaction is open")
        self.commit()
        logger.debug("Transaction committed")

    def rollback_transaction(self) -> None:
        """Discard every change staged since the last commit."""
        self.session.rollback()
        self._in_transaction = False
        logger.debug("Transaction rolled back")

    @contextmanager
    def transaction(self) -> Generator["UnitOfWork", None, None]:
        """
        Run a block as one transaction.

        Commits when the block completes, rolls back and re-raises when it
        raises.
        """
        self.begin_transaction()
        try:
            yield self
        except BaseException:
            self.rollback_transaction()
            raise
        self.commit_transaction()

    def close(self) -> None:
        if self._session is not None:
            if self._in_transaction:
                self.rollback_transaction()
            self._session.close()
            self._session = None
        self._authors = None
        self._categories = None
        self._books = None
        self._members = None
        self._borrow_records = None

    def __enter__(self) -> "UnitOfWork":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None and self._session is not None:
            self.rollback_transaction()
        self.close()
