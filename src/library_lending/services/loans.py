"""
Loan services: the request-layer surface over the borrowing core.

Borrow, return and fine go straight to BorrowingService. Listings read the
loan ledger. ``mark_lost`` and ``mark_damaged`` are the administrative
actions that end a loan without the copy coming back; they leave the copy
counts alone, so the missing copy shows up as drift until the book's total
is corrected.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal

from ..database.unit_of_work import UnitOfWork
from ..exceptions import InvalidOperationError, NotFoundError
from ..models.borrow_record import BorrowRecord, BorrowStatus, can_transition, sources_for
from .base import EntityService
from .borrowing import BorrowingService

logger = logging.getLogger(__name__)


class LoanService(EntityService[BorrowRecord]):
    entity_name = "BorrowRecord"

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork] = UnitOfWork,
        clock: Callable[[], datetime] = datetime.now,
    ):
        super().__init__(uow_factory, clock)
        self.borrowing = BorrowingService(uow_factory, clock)

    def _repository(self, uow: UnitOfWork):
        return uow.borrow_records

    def _models(self, records, uow: UnitOfWork) -> list[BorrowRecord]:
        return [uow.borrow_records.to_model(record) for record in records]

    # === Circulation ===

    def borrow(self, member_id: str, book_id: str) -> str:
        """Lend a book; returns the new loan id."""
        return self.borrowing.borrow(member_id, book_id).id

    def return_loan(self, id: str) -> bool:
        """
        Return a loan.

        Returns:
            False if the loan does not exist

        Raises:
            InvalidOperationError: The loan is already returned, lost or damaged
        """
        try:
            self.borrowing.return_book(id)
        except NotFoundError:
            return False
        return True

    def fine(self, id: str) -> Decimal:
        return self.borrowing.calculate_fine(id)

    # === Listings ===

    def by_member(self, member_id: str) -> list[BorrowRecord]:
        with self._unit_of_work() as uow:
            return self._models(uow.borrow_records.get_by_member(member_id), uow)

    def by_book(self, book_id: str) -> list[BorrowRecord]:
        with self._unit_of_work() as uow:
            return self._models(uow.borrow_records.get_by_book(book_id), uow)

    def active(self) -> list[BorrowRecord]:
        """Loans whose copy is still out."""
        with self._unit_of_work() as uow:
            return self._models(uow.borrow_records.get_active(), uow)

    def overdue(self) -> list[BorrowRecord]:
        with self._unit_of_work() as uow:
            return self._models(uow.borrow_records.get_overdue(self._clock()), uow)

    def search(self, term: str) -> list[BorrowRecord]:
        """Loans whose book title or member name contains ``term``."""
        term = (term or "").strip().lower()
        return [
            loan
            for loan in self.list_all()
            if not term
            or term in (loan.book_title or "").lower()
            or term in (loan.member_name or "").lower()
        ]

    def total_fines(self, member_id: str) -> Decimal:
        """Sum of the fines stored on the member's loans."""
        with self._unit_of_work() as uow:
            return uow.borrow_records.total_fines_for_member(member_id)

    # === Administrative actions ===

    def _close_loan(self, id: str, target: BorrowStatus, note: str) -> BorrowRecord:
        with self._unit_of_work() as uow:
            with uow.transaction():
                record = uow.borrow_records.get_by_id(id)
                if record is None:
                    raise NotFoundError("BorrowRecord", id)
                if not can_transition(record.status, target):
                    raise InvalidOperationError(
                        f"mark_{target.value}",
                        f"Loan is {record.status.value} and cannot become {target.value}",
                    )
                if not uow.borrow_records.try_transition(
                    record.id, sources_for(target), target, notes=note
                ):
                    raise InvalidOperationError(
                        f"mark_{target.value}", "Loan changed concurrently"
                    )
            loan = uow.borrow_records.to_model(record)

        logger.info("Loan %s marked %s", id, target.value)
        return loan

    def mark_lost(self, id: str) -> BorrowRecord:
        return self._close_loan(id, BorrowStatus.LOST, "Book reported lost")

    def mark_damaged(self, id: str) -> BorrowRecord:
        return self._close_loan(id, BorrowStatus.DAMAGED, "Book reported damaged")
