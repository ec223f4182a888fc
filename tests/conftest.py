"""Test configuration and fixtures for the library lending core.

Every test gets:
1. Its own SQLite database file - lending runs against real files so that
   concurrent writers behave the way they do in production
2. A frozen clock - loan dates, due dates and fines are deterministic
3. Fresh configuration and database manager singletons
"""

import itertools
from collections.abc import Generator
from datetime import datetime, timedelta
from pathlib import Path

import logfire
import pytest

from library_lending.config import reset_config
from library_lending.database import (
    AuthorCreateSchema,
    BookCreateSchema,
    CategoryCreateSchema,
    DatabaseManager,
    MemberCreateSchema,
    UnitOfWork,
    reset_db_manager,
)
from library_lending.services import (
    AuthorService,
    BookService,
    BorrowingService,
    CategoryService,
    LoanService,
    MemberService,
)

# === Pytest Configuration ===


def pytest_configure(config):  # noqa: ARG001
    """Keep spans and metrics local during tests."""
    logfire.configure(send_to_logfire=False, console=False)


def isbn13(n: int) -> str:
    """Build a valid ISBN-13 from a sequence number."""
    body = f"978{n:09d}"
    total = sum(int(digit) * (3 if i % 2 else 1) for i, digit in enumerate(body))
    return f"{body}{(10 - total % 10) % 10}"


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# === Isolation ===


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch) -> Generator[None, None, None]:
    """Point configuration at the test's directory and reset singletons."""
    monkeypatch.setenv("LIBRARY_LENDING_DATABASE_PATH", str(tmp_path / "default.db"))
    reset_config()
    yield
    reset_db_manager()
    reset_config()


# === Database Fixtures ===


@pytest.fixture
def test_db_path(tmp_path: Path) -> Path:
    return tmp_path / "test_library.db"


@pytest.fixture
def db_manager(test_db_path: Path) -> Generator[DatabaseManager, None, None]:
    """A database manager over a freshly created schema."""
    manager = DatabaseManager(f"sqlite:///{test_db_path}", busy_timeout=30)
    manager.init_database()
    yield manager
    manager.close()


@pytest.fixture
def uow_factory(db_manager: DatabaseManager):
    """Creates units of work bound to the test database."""
    return lambda: UnitOfWork(db_manager.session_factory)


@pytest.fixture
def uow(uow_factory) -> Generator[UnitOfWork, None, None]:
    with uow_factory() as unit:
        yield unit


@pytest.fixture
def clock() -> FrozenClock:
    """A clock frozen at the start of the test."""
    return FrozenClock(datetime.now().replace(microsecond=0))


# === Service Fixtures ===


@pytest.fixture
def borrowing(uow_factory, clock) -> BorrowingService:
    return BorrowingService(uow_factory, clock)


@pytest.fixture
def loans(uow_factory, clock) -> LoanService:
    return LoanService(uow_factory, clock)


@pytest.fixture
def book_service(uow_factory, clock) -> BookService:
    return BookService(uow_factory, clock)


@pytest.fixture
def member_service(uow_factory, clock) -> MemberService:
    return MemberService(uow_factory, clock)


# === Entity Factories ===


@pytest.fixture
def author_id(uow_factory) -> str:
    return AuthorService(uow_factory).create(
        AuthorCreateSchema(first_name="Jane", last_name="Austen", biography="English novelist")
    )


@pytest.fixture
def category_id(uow_factory) -> str:
    return CategoryService(uow_factory).create(
        CategoryCreateSchema(name="Fiction", description="Novels and short stories")
    )


@pytest.fixture
def make_book(book_service, author_id, category_id):
    """Factory adding books by the default author to the default category."""
    sequence = itertools.count(1)

    def _make(
        title: str | None = None,
        total_copies: int = 3,
        available_copies: int | None = None,
    ) -> str:
        n = next(sequence)
        return book_service.create(
            BookCreateSchema(
                title=title or f"Book {n:03d}",
                isbn=isbn13(n),
                total_copies=total_copies,
                available_copies=available_copies,
                author_id=author_id,
                category_id=category_id,
            )
        )

    return _make


@pytest.fixture
def make_member(member_service):
    """Factory registering members with unique e-mail and phone numbers."""
    sequence = itertools.count(1)

    def _make(
        first_name: str = "Elizabeth",
        last_name: str | None = None,
        expiration: datetime | None = None,
        is_active: bool = True,
    ) -> str:
        n = next(sequence)
        return member_service.create(
            MemberCreateSchema(
                first_name=first_name,
                last_name=last_name or f"Bennet{n}",
                email=f"reader{n}@library.org",
                phone_number=f"555{n:07d}",
                expiration=expiration,
                is_active=is_active,
            )
        )

    return _make


@pytest.fixture
def book_id(make_book) -> str:
    return make_book(title="Pride and Prejudice", total_copies=3)


@pytest.fixture
def member_id(make_member) -> str:
    return make_member()
