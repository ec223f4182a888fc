"""
Catalog services: authors, categories and books.

These are the plain CRUD operations the request layer calls. Each create and
update checks the uniqueness rules first and raises DuplicateEntityError
naming the entity, the field and the offending value. The partial unique
indexes in the schema back the same rules if two writers race.
"""

import logging

from ..database.author_repository import AuthorCreateSchema, AuthorUpdateSchema
from ..database.book_repository import BookCreateSchema, BookUpdateSchema
from ..database.category_repository import CategoryCreateSchema, CategoryUpdateSchema
from ..database.schema import Author as AuthorDB
from ..database.schema import Book as BookDB
from ..database.schema import Category as CategoryDB
from ..database.unit_of_work import UnitOfWork
from ..exceptions import DuplicateEntityError, InvalidOperationError, NotFoundError
from ..models.author import Author, AuthorWithBooks
from ..models.book import Book
from ..models.category import Category, CategoryWithBooks
from .base import EntityService

logger = logging.getLogger(__name__)


def _live_books(books) -> list[Book]:
    return [Book.model_validate(book) for book in books if not book.is_deleted]


class AuthorService(EntityService[Author]):
    entity_name = "Author"

    def _repository(self, uow: UnitOfWork):
        return uow.authors

    def create(self, data: AuthorCreateSchema) -> str:
        """
        Add an author.

        Raises:
            DuplicateEntityError: An author with the same name already exists
        """
        with self._unit_of_work() as uow:
            if not uow.authors.is_name_unique(data.first_name, data.last_name):
                raise DuplicateEntityError("Author", "Name", f"{data.first_name} {data.last_name}")

            author = uow.authors.add(AuthorDB(**data.model_dump()))
            uow.commit()

        logger.info("Author %s created: %s", author.id, author.full_name)
        return author.id

    def update(self, id: str, data: AuthorUpdateSchema) -> bool:
        """
        Apply the fields set on ``data`` to an author.

        Returns:
            False if the author does not exist
        """
        changes = data.model_dump(exclude_unset=True)
        with self._unit_of_work() as uow:
            author = uow.authors.get_by_id(id)
            if author is None:
                return False

            first_name = changes.get("first_name", author.first_name)
            last_name = changes.get("last_name", author.last_name)
            if not uow.authors.is_name_unique(first_name, last_name, exclude_id=author.id):
                raise DuplicateEntityError("Author", "Name", f"{first_name} {last_name}")

            for field, value in changes.items():
                setattr(author, field, value)
            uow.authors.update(author)
            uow.commit()
        return True

    def get_with_books(self) -> list[AuthorWithBooks]:
        with self._unit_of_work() as uow:
            return [
                AuthorWithBooks(
                    **Author.model_validate(author).model_dump(), books=_live_books(author.books)
                )
                for author in uow.authors.get_with_books()
            ]


class CategoryService(EntityService[Category]):
    entity_name = "Category"

    def _repository(self, uow: UnitOfWork):
        return uow.categories

    def create(self, data: CategoryCreateSchema) -> str:
        with self._unit_of_work() as uow:
            if not uow.categories.is_name_unique(data.name):
                raise DuplicateEntityError("Category", "Name", data.name)

            category = uow.categories.add(CategoryDB(**data.model_dump()))
            uow.commit()

        logger.info("Category %s created: %s", category.id, category.name)
        return category.id

    def update(self, id: str, data: CategoryUpdateSchema) -> bool:
        changes = data.model_dump(exclude_unset=True)
        with self._unit_of_work() as uow:
            category = uow.categories.get_by_id(id)
            if category is None:
                return False

            name = changes.get("name", category.name)
            if not uow.categories.is_name_unique(name, exclude_id=category.id):
                raise DuplicateEntityError("Category", "Name", name)

            for field, value in changes.items():
                setattr(category, field, value)
            uow.categories.update(category)
            uow.commit()
        return True

    def get_with_books(self) -> list[CategoryWithBooks]:
        with self._unit_of_work() as uow:
            return [
                CategoryWithBooks(
                    **Category.model_validate(category).model_dump(),
                    books=_live_books(category.books),
                )
                for category in uow.categories.get_with_books()
            ]

    def get_empty(self) -> list[Category]:
        """Categories without any live book."""
        with self._unit_of_work() as uow:
            return [uow.categories.to_model(c) for c in uow.categories.get_empty()]


class BookService(EntityService[Book]):
    """
    Catalog operations on books.

    Copy counts are not editable through ``update``: the number of copies
    owned can change, and available copies move with it, but the available
    count itself only changes through lending and the availability service.
    """

    entity_name = "Book"

    def _repository(self, uow: UnitOfWork):
        return uow.books

    def _ensure_references(self, uow: UnitOfWork, author_id: str, category_id: str) -> None:
        if not uow.authors.exists(author_id):
            raise NotFoundError("Author", author_id)
        if not uow.categories.exists(category_id):
            raise NotFoundError("Category", category_id)

    def create(self, data: BookCreateSchema) -> str:
        """
        Add a book to the catalog.

        Raises:
            DuplicateEntityError: The ISBN is already in the catalog
            NotFoundError: The author or category does not exist
        """
        with self._unit_of_work() as uow:
            if not uow.books.is_isbn_unique(data.isbn):
                raise DuplicateEntityError("Book", "ISBN", data.isbn)
            self._ensure_references(uow, data.author_id, data.category_id)

            book = uow.books.add(BookDB(**data.model_dump()))
            uow.commit()

        logger.info("Book %s created: %s (%d copies)", book.id, book.title, book.total_copies)
        return book.id

    def update(self, id: str, data: BookUpdateSchema) -> bool:
        """
        Apply the fields set on ``data`` to a book.

        Raises:
            DuplicateEntityError: The new ISBN belongs to another book
            NotFoundError: The new author or category does not exist
            InvalidOperationError: The new total is below the copies on loan
        """
        changes = data.model_dump(exclude_unset=True)
        total_copies = changes.pop("total_copies", None)

        with self._unit_of_work() as uow, uow.transaction():
            book = uow.books.get_by_id(id)
            if book is None:
                return False

            isbn = changes.get("isbn")
            if isbn is not None and not uow.books.is_isbn_unique(isbn, exclude_id=book.id):
                raise DuplicateEntityError("Book", "ISBN", isbn)
            self._ensure_references(
                uow,
                changes.get("author_id", book.author_id),
                changes.get("category_id", book.category_id),
            )

            for field, value in changes.items():
                setattr(book, field, value)
            uow.books.update(book)

            if total_copies is not None and total_copies != book.total_copies:
                if not uow.books.try_set_total_copies(book.id, total_copies):
                    raise InvalidOperationError(
                        "update_book",
                        f"Total copies ({total_copies}) cannot be less than copies on loan "
                        f"({book.borrowed_copies})",
                    )
        return True

    def get_by_isbn(self, isbn: str) -> Book | None:
        with self._unit_of_work() as uow:
            book = uow.books.get_by_isbn(isbn)
            return uow.books.to_model(book) if book is not None else None

    def get_by_author(self, author_id: str) -> list[Book]:
        with self._unit_of_work() as uow:
            return [uow.books.to_model(b) for b in uow.books.get_by_author(author_id)]

    def get_by_category(self, category_id: str) -> list[Book]:
        with self._unit_of_work() as uow:
            return [uow.books.to_model(b) for b in uow.books.get_by_category(category_id)]

    def get_available(self) -> list[Book]:
        with self._unit_of_work() as uow:
            return [uow.books.to_model(b) for b in uow.books.get_available()]
