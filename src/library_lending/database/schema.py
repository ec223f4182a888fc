"""
SQLAlchemy database schema for the library lending core.

Five tables back the lending domain: authors, categories, books, members and
borrow_records. Every table carries the same audit columns (id, created_on,
updated_on, is_deleted, deleted_on). Rows are never physically removed by the
lending core; deletion is always a soft delete.

Key integrity rules enforced at the database level:
1. Book copy counts stay within 0 <= available_copies <= total_copies
2. ISBN, member e-mail, member phone, category name and author name pair are
   unique among rows that are not soft-deleted
3. Fine amounts are never negative
"""

import uuid
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    event,
    text,
)
from sqlalchemy.orm import Session, declarative_base, relationship
from sqlalchemy.types import TypeDecorator

from ..models.borrow_record import BorrowStatus

# Base class for all SQLAlchemy models
Base = declarative_base()

CENTS = Decimal("0.01")


def new_id() -> str:
    """Generate a new entity identifier."""
    return str(uuid.uuid4())


def session_now(session: Session) -> datetime:
    """The current time according to the clock the session was opened with."""
    return session.info.get("clock", datetime.now)()


def to_money(value: Decimal | int | float | str) -> Decimal:
    """Round an amount half-up to two decimal places."""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


class Money(TypeDecorator):
    """Stores a Decimal amount as integer cents so no backend rounds it."""

    impl = Integer
    cache_ok = True

    def process_bind_param(self, value, dialect):  # noqa: ARG002
        if value is None:
            return None
        return int(to_money(value) * 100)

    def process_result_value(self, value, dialect):  # noqa: ARG002
        if value is None:
            return None
        return to_money(Decimal(value) / 100)


def _live_unique_index(name: str, *columns: str) -> Index:
    """Unique index that ignores soft-deleted rows."""
    return Index(
        name,
        *columns,
        unique=True,
        sqlite_where=text("is_deleted = 0"),
        postgresql_where=text("is_deleted = false"),
    )


class AuditMixin:
    """Identifier, audit timestamps and soft-delete flag shared by every table."""

    id = Column(String(36), primary_key=True, default=new_id)
    created_on = Column(DateTime, nullable=True)
    updated_on = Column(DateTime, nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_on = Column(DateTime, nullable=True)


class Author(AuditMixin, Base):
    """Authors table - reference data with a one-to-many relation to books."""

    __tablename__ = "authors"

    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    biography = Column(Text, nullable=True)
    birth_date = Column(Date, nullable=True)

    books = relationship("Book", back_populates="author")

    __table_args__ = (
        Index("idx_author_last_name", "last_name"),
        Index("idx_author_is_deleted", "is_deleted"),
        _live_unique_index("uq_author_name_live", "first_name", "last_name"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Category(AuditMixin, Base):
    """Categories table - reference data with a one-to-many relation to books."""

    __tablename__ = "categories"

    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)

    books = relationship("Book", back_populates="category")

    __table_args__ = (
        Index("idx_category_is_deleted", "is_deleted"),
        _live_unique_index("uq_category_name_live", "name"),
    )

    @property
    def book_count(self) -> int:
        """Number of books in the category that are not soft-deleted."""
        return sum(1 for book in self.books if not book.is_deleted)


class Book(AuditMixin, Base):
    """
    Books table - the catalog and the copy counts the lending core guards.

    available_copies is only changed through conditional UPDATE statements
    issued by the book repository; callers never assign it directly.
    """

    __tablename__ = "books"

    title = Column(String(500), nullable=False)
    isbn = Column(String(13), nullable=False)
    description = Column(Text, nullable=True)
    page_count = Column(Integer, nullable=False, default=0)
    published_date = Column(Date, nullable=True)
    total_copies = Column(Integer, nullable=False, default=1)
    available_copies = Column(Integer, nullable=False, default=1)
    author_id = Column(String(36), ForeignKey("authors.id"), nullable=False)
    category_id = Column(String(36), ForeignKey("categories.id"), nullable=False)

    author = relationship("Author", back_populates="books")
    category = relationship("Category", back_populates="books")
    borrow_records = relationship("BorrowRecord", back_populates="book")

    __table_args__ = (
        Index("idx_book_title", "title"),
        Index("idx_book_author", "author_id"),
        Index("idx_book_category", "category_id"),
        Index("idx_book_is_deleted", "is_deleted"),
        _live_unique_index("uq_book_isbn_live", "isbn"),
        CheckConstraint("available_copies >= 0", name="check_available_copies_non_negative"),
        CheckConstraint(
            "available_copies <= total_copies", name="check_available_not_exceed_total"
        ),
        CheckConstraint("total_copies >= 0", name="check_total_copies_non_negative"),
        CheckConstraint("page_count >= 0", name="check_page_count_non_negative"),
    )

    @property
    def is_available(self) -> bool:
        return self.available_copies > 0

    @property
    def can_be_borrowed(self) -> bool:
        return self.is_available and not self.is_deleted

    @property
    def borrowed_copies(self) -> int:
        return self.total_copies - self.available_copies


class Member(AuditMixin, Base):
    """Members table - library patrons and their membership window."""

    __tablename__ = "members"

    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    phone_number = Column(String(20), nullable=False)
    address = Column(String(500), nullable=False, default="")
    membership_start = Column(DateTime, nullable=False, default=datetime.now)
    expiration = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    borrow_records = relationship("BorrowRecord", back_populates="member")

    __table_args__ = (
        Index("idx_member_last_name", "last_name"),
        Index("idx_member_is_active", "is_active"),
        Index("idx_member_is_deleted", "is_deleted"),
        _live_unique_index("uq_member_email_live", "email"),
        _live_unique_index("uq_member_phone_live", "phone_number"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def is_membership_valid(self, now: datetime | None = None) -> bool:
        """Active flag set and the membership window has not closed."""
        now = now or datetime.now()
        return bool(self.is_active) and (self.expiration is None or self.expiration > now)

    @property
    def membership_valid(self) -> bool:
        return self.is_membership_valid()

    @property
    def active_borrow_count(self) -> int:
        return sum(
            1
            for record in self.borrow_records
            if not record.is_deleted and record.status == BorrowStatus.BORROWED
        )


class BorrowRecord(AuditMixin, Base):
    """
    Borrow records table - one row per loan.

    Created only by a successful borrow. Changed afterwards only by return,
    fine assessment or an administrative lost/damaged action.
    """

    __tablename__ = "borrow_records"

    book_id = Column(String(36), ForeignKey("books.id"), nullable=False)
    member_id = Column(String(36), ForeignKey("members.id"), nullable=False)
    borrow_date = Column(DateTime, nullable=False)
    due_date = Column(DateTime, nullable=False)
    return_date = Column(DateTime, nullable=True)
    status = Column(Enum(BorrowStatus), nullable=False, default=BorrowStatus.BORROWED)
    fine_amount = Column(Money, nullable=True)
    notes = Column(String(1000), nullable=True)

    book = relationship("Book", back_populates="borrow_records")
    member = relationship("Member", back_populates="borrow_records")

    __table_args__ = (
        Index("idx_borrow_book", "book_id"),
        Index("idx_borrow_member", "member_id"),
        Index("idx_borrow_date", "borrow_date"),
        Index("idx_borrow_due_date", "due_date"),
        Index("idx_borrow_status", "status"),
        Index("idx_borrow_is_deleted", "is_deleted"),
        CheckConstraint("fine_amount IS NULL OR fine_amount >= 0", name="check_fine_non_negative"),
    )


@event.listens_for(Session, "before_flush")
def stamp_audit_fields(session, flush_context, instances):  # noqa: ARG001
    """
    Assign audit timestamps to everything about to be written.

    New rows get an id (if still unset) and created_on; modified rows get
    updated_on. Bulk UPDATE statements bypass the flush and set updated_on
    themselves.
    """
    now = session_now(session)

    for obj in session.new:
        if isinstance(obj, AuditMixin):
            if obj.id is None:
                obj.id = new_id()
            if obj.created_on is None:
                obj.created_on = now

    for obj in session.dirty:
        if isinstance(obj, AuditMixin) and session.is_modified(obj, include_collections=False):
            obj.updated_on = now
