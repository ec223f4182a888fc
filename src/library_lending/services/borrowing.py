"""
Borrowing service - the lending core.

This module decides who may take a book, records loans and returns, and
computes fines on overdue loans.

CONCURRENCY:
The eligibility check that runs before a borrow is advisory. What actually
keeps copy counts correct is that every change to ``available_copies`` is a
single conditional UPDATE (see ``BookRepository.try_adjust_available_copies``)
and that the loan status change on return is a conditional UPDATE too. Both
writes of a borrow or a return commit together in one unit of work.

For the per-member loan limit the member row is locked first (a no-op on
SQLite, where the database write lock serializes writers instead) and the
active loans are counted again once this transaction holds the write lock.

FINES:
``calculate_fine`` is a query with one deliberate side effect: the first
time it finds a ``Borrowed`` loan past its due date it moves the loan to
``Overdue`` and stores the fine. That step lives in ``_flag_overdue`` so it
can't be mistaken for part of the arithmetic, which is ``compute_fine``.
"""

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta
from decimal import Decimal

from ..config import DAILY_FINE_RATE, LOAN_PERIOD_DAYS, MAX_ACTIVE_LOANS
from ..database.schema import Book as BookDB
from ..database.schema import BorrowRecord as BorrowRecordDB
from ..database.schema import Member as MemberDB
from ..database.schema import to_money
from ..database.unit_of_work import UnitOfWork
from ..exceptions import (
    BookNotAvailableError,
    InvalidOperationError,
    LendingError,
    MemberCannotBorrowError,
    NotFoundError,
    OperationCancelledError,
)
from ..models.borrow_record import BorrowRecord, BorrowStatus, sources_for
from ..observability import fines_assessed, record_circulation_event, trace_operation
from .availability import AvailabilityService

logger = logging.getLogger(__name__)

BORROW_NOTE = "Book borrowed successfully"
RETURN_NOTE = "Book returned successfully"

ZERO = to_money(0)


def compute_fine(
    due_date: datetime, now: datetime, daily_rate: Decimal = DAILY_FINE_RATE
) -> Decimal:
    """
    Fine owed on a loan that is still out.

    Whole days past the due date times the daily rate; partial days are not
    charged. Zero when ``now`` is not after ``due_date``.
    """
    if now <= due_date:
        return ZERO
    days_overdue = (now - due_date).days
    return to_money(days_overdue * daily_rate)


def _raise_if_cancelled(cancel_event: threading.Event | None, operation: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise OperationCancelledError(operation)


class BorrowingService:
    """
    Eligibility, borrow, return and fine computation.

    Each operation opens its own unit of work, so one service instance can be
    shared between threads.
    """

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork] = UnitOfWork,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Args:
            uow_factory: Creates a fresh unit of work per operation
            clock: Source of "now" for loan dates and fines
        """
        self._uow_factory = uow_factory
        self._clock = clock

    def _unit_of_work(self) -> UnitOfWork:
        uow = self._uow_factory()
        uow.clock = self._clock
        return uow

    # === Eligibility ===

    def _ensure_eligible(
        self,
        uow: UnitOfWork,
        member: MemberDB | None,
        member_id: str,
        book_id: str,
        now: datetime,
    ) -> BookDB:
        """
        Apply the borrowing rules in order, raising on the first that fails.

        1. the member exists
        2. the membership is valid
        3. the member has fewer than MAX_ACTIVE_LOANS loans in Borrowed status
        4. the book exists, is not withdrawn and has a copy on the shelf

        Returns:
            The book to be lent
        """
        if member is None:
            raise NotFoundError("Member", member_id)

        if not member.is_membership_valid(now):
            reason = "Membership is inactive" if not member.is_active else "Membership has expired"
            raise MemberCannotBorrowError(reason)

        active = uow.borrow_records.count_active_for_member(member.id)
        if active >= MAX_ACTIVE_LOANS:
            raise MemberCannotBorrowError(
                "Maximum borrow limit reached", current=active, maximum=MAX_ACTIVE_LOANS
            )

        book = uow.books.get_by_id(book_id)
        if book is None:
            raise NotFoundError("Book", book_id)

        if book.available_copies <= 0:
            raise BookNotAvailableError(book.title, "No available copies")

        return book

    def check_eligibility(self, member_id: str, book_id: str) -> LendingError | None:
        """
        Run the borrowing rules without changing anything.

        Returns:
            None if the member may borrow the book, otherwise the error a
            borrow would raise right now
        """
        with self._unit_of_work() as uow:
            member = uow.members.get_by_id(member_id)
            try:
                self._ensure_eligible(uow, member, member_id, book_id, self._clock())
            except LendingError as e:
                return e
        return None

    def can_borrow(self, member_id: str, book_id: str) -> bool:
        """Advisory check; ``borrow`` verifies everything again."""
        return self.check_eligibility(member_id, book_id) is None

    # === Borrow ===

    @trace_operation("borrow")
    def borrow(
        self, member_id: str, book_id: str, cancel_event: threading.Event | None = None
    ) -> BorrowRecord:
        """
        Lend one copy of a book to a member.

        The loan record and the copy-count decrement commit together or not
        at all.

        Args:
            member_id: Borrowing member
            book_id: Book to lend
            cancel_event: Checked before commit; setting it afterwards has no effect

        Returns:
            The new loan, status Borrowed, due LOAN_PERIOD_DAYS from now

        Raises:
            NotFoundError: Member or book missing
            MemberCannotBorrowError: Membership invalid or loan limit reached
            BookNotAvailableError: No copy left to lend
            OperationCancelledError: Cancelled before commit
        """
        now = self._clock()
        try:
            with self._unit_of_work() as uow:
                with uow.transaction():
                    member = uow.members.lock_for_update(member_id)
                    book = self._ensure_eligible(uow, member, member_id, book_id, now)
                    title = book.title

                    if not AvailabilityService(uow).reserve_copy(book.id):
                        raise BookNotAvailableError(title, "No available copies")

                    # Counted again now that this transaction holds the write lock
                    active = uow.borrow_records.count_active_for_member(member.id)
                    if active >= MAX_ACTIVE_LOANS:
                        raise MemberCannotBorrowError(
                            "Maximum borrow limit reached",
                            current=active,
                            maximum=MAX_ACTIVE_LOANS,
                        )

                    record = uow.borrow_records.add(
                        BorrowRecordDB(
                            book_id=book.id,
                            member_id=member.id,
                            borrow_date=now,
                            due_date=now + timedelta(days=LOAN_PERIOD_DAYS),
                            status=BorrowStatus.BORROWED,
                            notes=BORROW_NOTE,
                        )
                    )
                    _raise_if_cancelled(cancel_event, "borrow")

                loan = uow.borrow_records.to_model(record)
        except LendingError as e:
            logger.info("Borrow refused (member=%s, book=%s): %s", member_id, book_id, e)
            record_circulation_event("borrow", type(e).__name__)
            raise

        logger.info(
            "Book %s lent to member %s as loan %s, due %s",
            loan.book_id,
            loan.member_id,
            loan.id,
            loan.due_date.isoformat(),
        )
        record_circulation_event("borrow", "success")
        return loan

    # === Return ===

    @trace_operation("return_book")
    def return_book(
        self, record_id: str, cancel_event: threading.Event | None = None
    ) -> BorrowRecord:
        """
        Take a lent copy back.

        Only a loan in Borrowed or Overdue status can be returned, and only
        once: the status change is conditional, so of two concurrent returns
        exactly one wins and the copy count goes up exactly once.

        Raises:
            NotFoundError: No such loan
            InvalidOperationError: Loan already returned, lost or damaged
            OperationCancelledError: Cancelled before commit
        """
        now = self._clock()
        returnable = sources_for(BorrowStatus.RETURNED)
        try:
            with self._unit_of_work() as uow:
                with uow.transaction():
                    record = uow.borrow_records.get_by_id(record_id)
                    if record is None:
                        raise NotFoundError("BorrowRecord", record_id)
                    if record.status not in returnable:
                        raise InvalidOperationError("return", _not_returnable(record.status))

                    book_id = record.book_id
                    moved = uow.borrow_records.try_transition(
                        record.id,
                        returnable,
                        BorrowStatus.RETURNED,
                        return_date=now,
                        notes=RETURN_NOTE,
                    )
                    if not moved:
                        # Another return committed between the read and the update
                        raise InvalidOperationError(
                            "return", _not_returnable(BorrowStatus.RETURNED)
                        )

                    if not AvailabilityService(uow).release_copy(book_id):
                        logger.warning(
                            "Book %s already has every copy on the shelf; return of loan %s "
                            "left the count unchanged",
                            book_id,
                            record_id,
                        )
                    _raise_if_cancelled(cancel_event, "return")

                loan = uow.borrow_records.to_model(record)
        except LendingError as e:
            logger.info("Return refused (loan=%s): %s", record_id, e)
            record_circulation_event("return", type(e).__name__)
            raise

        logger.info("Loan %s returned, book %s back on the shelf", loan.id, loan.book_id)
        record_circulation_event("return", "success")
        return loan

    # === Fines ===

    @trace_operation("calculate_fine")
    def calculate_fine(self, record_id: str) -> Decimal:
        """
        Fine owed on a loan as of now.

        Zero when the loan is missing, returned or not yet due. A Borrowed
        loan found past its due date is flagged Overdue with the fine stored,
        once; later calls recompute the amount without storing it again.
        """
        now = self._clock()
        with self._unit_of_work() as uow:
            record = uow.borrow_records.get_by_id(record_id)
            if record is None or record.status == BorrowStatus.RETURNED:
                return ZERO
            if now <= record.due_date:
                return ZERO

            amount = compute_fine(record.due_date, now)
            if record.status == BorrowStatus.BORROWED:
                self._flag_overdue(uow, record, amount)
            return amount

    def _flag_overdue(self, uow: UnitOfWork, record: BorrowRecordDB, amount: Decimal) -> None:
        """Move a Borrowed loan to Overdue and store its fine (committed)."""
        with uow.transaction():
            flagged = uow.borrow_records.try_transition(
                record.id, {BorrowStatus.BORROWED}, BorrowStatus.OVERDUE, fine_amount=amount
            )
        if flagged:
            fines_assessed.add(1)
            logger.info("Loan %s flagged overdue with fine %s", record.id, amount)


def _not_returnable(status: BorrowStatus) -> str:
    if status == BorrowStatus.RETURNED:
        return "Book is already returned"
    return f"Loan is {status.value} and cannot be returned"
