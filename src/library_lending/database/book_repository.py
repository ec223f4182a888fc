"""
Book repository implementation for the library lending core.

Besides the usual catalog lookups this repository owns the only statements
that change a book's copy counts. Each of them is a single conditional UPDATE:
the bounds check and the write happen in one statement, so two callers can
never both see the last copy and both take it.
"""

from datetime import date

from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy import or_, select, update

from ..database.schema import Author as AuthorDB
from ..database.schema import Book as BookDB
from ..models.book import Book as BookModel
from ..models.book import normalize_isbn
from .repository import BaseRepository


class BookCreateSchema(BaseModel):
    """
    Schema for adding a book to the catalog.

    available_copies defaults to total_copies: a new title starts with every
    copy on the shelf.
    """

    title: str = Field(..., min_length=1, max_length=500)
    isbn: str
    description: str | None = None
    page_count: int = Field(default=0, ge=0)
    published_date: date | None = None
    total_copies: int = Field(default=1, ge=0)
    available_copies: int | None = Field(default=None, ge=0)
    author_id: str
    category_id: str

    @field_validator("isbn")
    @classmethod
    def validate_isbn(cls, v: str) -> str:
        return normalize_isbn(v)

    @model_validator(mode="after")
    def validate_copies(self) -> "BookCreateSchema":
        if self.available_copies is None:
            self.available_copies = self.total_copies
        if self.available_copies > self.total_copies:
            raise ValueError("Available copies cannot exceed total copies")
        return self


class BookUpdateSchema(BaseModel):
    """
    Schema for updating a book - all fields optional.

    available_copies is deliberately absent; it moves only through lending
    and the availability service.
    """

    title: str | None = Field(None, min_length=1, max_length=500)
    isbn: str | None = None
    description: str | None = None
    page_count: int | None = Field(None, ge=0)
    published_date: date | None = None
    total_copies: int | None = Field(None, ge=0)
    author_id: str | None = None
    category_id: str | None = None

    @field_validator("isbn")
    @classmethod
    def validate_isbn(cls, v: str | None) -> str | None:
        return normalize_isbn(v) if v is not None else None


class BookRepository(BaseRepository[BookDB, BookModel]):
    """Repository for book data access."""

    @property
    def model_class(self):
        return BookDB

    @property
    def response_schema(self):
        return BookModel

    def ordering(self):
        return (BookDB.title,)

    # === Lookups ===

    def get_by_isbn(self, isbn: str) -> BookDB | None:
        """Find a live book by ISBN (hyphens and spaces are ignored)."""
        return self.first_or_none(BookDB.isbn == normalize_isbn(isbn))

    def get_by_author(self, author_id: str) -> list[BookDB]:
        return self.find(BookDB.author_id == str(author_id))

    def get_by_category(self, category_id: str) -> list[BookDB]:
        return self.find(BookDB.category_id == str(category_id))

    def get_available(self) -> list[BookDB]:
        """Live books with at least one copy on the shelf."""
        return self.find(BookDB.available_copies > 0)

    def search(self, term: str) -> list[BookDB]:
        """
        Case-insensitive search over title, description, ISBN and author name.

        An empty term returns every live book.
        """
        term = (term or "").strip()
        if not term:
            return self.get_all()

        pattern = f"%{term}%"
        author_ids = select(AuthorDB.id).where(
            or_(AuthorDB.first_name.ilike(pattern), AuthorDB.last_name.ilike(pattern))
        )
        return self.find(
            or_(
                BookDB.title.ilike(pattern),
                BookDB.description.ilike(pattern),
                BookDB.isbn.like(pattern.replace("-", "")),
                BookDB.author_id.in_(author_ids),
            )
        )

    def is_isbn_unique(self, isbn: str, exclude_id: str | None = None) -> bool:
        criteria = [BookDB.isbn == normalize_isbn(isbn)]
        if exclude_id is not None:
            criteria.append(BookDB.id != str(exclude_id))
        return not self.any(*criteria)

    # === Copy counts ===

    def _expire_counts(self, book_id: str) -> None:
        """Drop cached copy counts so the next read sees the stored values."""
        cached = self.session.identity_map.get(self.session.identity_key(BookDB, str(book_id)))
        if cached is not None:
            self.session.expire(cached, ["available_copies", "total_copies", "updated_on"])

    def try_adjust_available_copies(
        self, book_id: str, delta: int, *, include_deleted: bool = False
    ) -> bool:
        """
        Atomically add ``delta`` to a book's available copies.

        The row is only touched when the result stays within
        ``[0, total_copies]``; otherwise nothing is written.

        Args:
            book_id: Book to adjust
            delta: Change to apply (-1 to lend a copy, +1 to take one back)
            include_deleted: Also match soft-deleted books (returns of copies
                lent before the book was withdrawn)

        Returns:
            True if exactly one row was updated
        """
        new_value = BookDB.available_copies + delta
        stmt = (
            update(BookDB)
            .where(
                BookDB.id == str(book_id),
                new_value >= 0,
                new_value <= BookDB.total_copies,
            )
            .values(available_copies=new_value, updated_on=self._now())
            .execution_options(synchronize_session=False)
        )
        if not include_deleted:
            stmt = stmt.where(self._live())

        updated = self.session.execute(stmt).rowcount == 1
        if updated:
            self._expire_counts(book_id)
        return updated

    def try_set_available_copies(self, book_id: str, count: int) -> bool:
        """Atomically set available copies, provided ``count`` fits the total."""
        if count < 0:
            return False

        stmt = (
            update(BookDB)
            .where(BookDB.id == str(book_id), self._live(), BookDB.total_copies >= count)
            .values(available_copies=count, updated_on=self._now())
            .execution_options(synchronize_session=False)
        )
        updated = self.session.execute(stmt).rowcount == 1
        if updated:
            self._expire_counts(book_id)
        return updated

    def try_set_total_copies(self, book_id: str, total: int) -> bool:
        """
        Atomically change the number of copies owned.

        Copies currently lent out stay lent out: available copies move by the
        same amount as the total, and the change is refused when the new total
        would be smaller than the number of copies out of the library.
        """
        if total < 0:
            return False

        stmt = (
            update(BookDB)
            .where(
                BookDB.id == str(book_id),
                self._live(),
                BookDB.total_copies - BookDB.available_copies <= total,
            )
            .values(
                available_copies=BookDB.available_copies + (total - BookDB.total_copies),
                total_copies=total,
                updated_on=self._now(),
            )
            .execution_options(synchronize_session=False)
        )
        updated = self.session.execute(stmt).rowcount == 1
        if updated:
            self._expire_counts(book_id)
        return updated
