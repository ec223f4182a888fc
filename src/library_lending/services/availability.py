"""
Availability service for the library lending core.

Owns the rule that a book's available copies always lie within
``[0, total_copies]``. Reads go through the book repository; every write is
one of the repository's conditional UPDATE statements, so the bounds are
checked by the database in the same statement that changes the count.
"""

import logging

from ..database.unit_of_work import UnitOfWork
from ..exceptions import InvalidOperationError, NotFoundError

logger = logging.getLogger(__name__)


class AvailabilityService:
    """Copy-count queries and bounded copy-count changes for books."""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    def is_available(self, book_id: str) -> bool:
        """False if the book is missing, soft-deleted or has no copy on the shelf."""
        book = self.uow.books.get_by_id(book_id)
        return book is not None and book.available_copies > 0

    def get_available_copies(self, book_id: str) -> int:
        book = self.uow.books.get_by_id(book_id)
        return book.available_copies if book is not None else 0

    def get_total_copies(self, book_id: str) -> int:
        book = self.uow.books.get_by_id(book_id)
        return book.total_copies if book is not None else 0

    def get_borrowed_copies(self, book_id: str) -> int:
        """
        Number of the book's loans in ``Borrowed`` status.

        Counted from the loan ledger rather than derived from the two copy
        counters, so comparing the two exposes drift.
        """
        return self.uow.borrow_records.count_active_for_book(book_id)

    def copy_drift(self, book_id: str) -> int:
        """
        Copies missing from the shelf that no outstanding loan accounts for.

        Zero when the counters agree with the ledger. Overdue loans count as
        outstanding here since their copy is still out.
        """
        book = self.uow.books.get_by_id(book_id)
        if book is None:
            return 0
        outstanding = self.uow.borrow_records.count_outstanding_for_book(book.id)
        return (book.total_copies - book.available_copies) - outstanding

    def set_availability(self, book_id: str, new_count: int) -> None:
        """
        Set the number of copies on the shelf.

        Persisted immediately unless the unit of work already has a
        transaction open, in which case it commits with that transaction.

        Raises:
            NotFoundError: If the book does not exist
            InvalidOperationError: If ``new_count`` is negative or above the total
        """
        book = self.uow.books.get_by_id(book_id)
        if book is None:
            raise NotFoundError("Book", book_id)

        if new_count < 0:
            raise InvalidOperationError(
                "set_availability", "Available copies cannot be negative"
            )
        if new_count > book.total_copies:
            raise InvalidOperationError(
                "set_availability",
                f"Available copies ({new_count}) cannot exceed total copies ({book.total_copies})",
            )

        if not self.uow.books.try_set_available_copies(book.id, new_count):
            # The total shrank or the book was withdrawn since it was read
            raise InvalidOperationError(
                "set_availability", "Book changed concurrently; copy count not updated"
            )

        if not self.uow.in_transaction:
            self.uow.commit()
        logger.info("Available copies of book %s set to %d", book.id, new_count)

    def reserve_copy(self, book_id: str) -> bool:
        """
        Take one copy off the shelf.

        Returns False, writing nothing, when no copy is left or the book is
        missing or withdrawn. Not committed; runs inside the caller's
        transaction.
        """
        return self.uow.books.try_adjust_available_copies(book_id, -1)

    def release_copy(self, book_id: str) -> bool:
        """
        Put one copy back on the shelf.

        Withdrawn books still take their copies back. Returns False when the
        count is already at the total. Not committed.
        """
        return self.uow.books.try_adjust_available_copies(book_id, 1, include_deleted=True)
