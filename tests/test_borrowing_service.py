"""
Tests for the borrowing service.

These tests verify that borrowing:
1. Applies the eligibility rules in order and reports the failing rule
2. Keeps copy counts in step with the loan ledger through borrow and return
3. Computes fines from whole overdue days and flags overdue loans once
4. Leaves no trace when an operation is refused or cancelled
"""

import logging
import threading
from datetime import timedelta
from decimal import Decimal

import pytest

from library_lending.config import LOAN_PERIOD_DAYS, MAX_ACTIVE_LOANS
from library_lending.exceptions import (
    BookNotAvailableError,
    InvalidOperationError,
    MemberCannotBorrowError,
    NotFoundError,
    OperationCancelledError,
)
from library_lending.models import BorrowStatus
from library_lending.services import AvailabilityService, BookService, LoanService


def available(uow_factory, book_id: str) -> int:
    with uow_factory() as uow:
        return AvailabilityService(uow).get_available_copies(book_id)


def loan_count(uow_factory, member_id: str) -> int:
    with uow_factory() as uow:
        return uow.borrow_records.count(
            uow.borrow_records.model_class.member_id == member_id
        )


# === Borrow ===


class TestBorrow:
    def test_borrow_records_loan_and_takes_copy(
        self, uow_factory, borrowing, clock, member_id, book_id
    ):
        loan = borrowing.borrow(member_id, book_id)

        assert loan.status == BorrowStatus.BORROWED
        assert loan.member_id == member_id
        assert loan.book_id == book_id
        assert loan.borrow_date == clock.now
        assert loan.due_date == clock.now + timedelta(days=LOAN_PERIOD_DAYS)
        assert loan.return_date is None
        assert loan.notes == "Book borrowed successfully"
        assert loan.book_title == "Pride and Prejudice"
        assert available(uow_factory, book_id) == 2

    def test_unknown_member(self, uow_factory, borrowing, book_id):
        with pytest.raises(NotFoundError) as exc_info:
            borrowing.borrow("no-such-member", book_id)

        assert exc_info.value.entity == "Member"
        assert available(uow_factory, book_id) == 3

    def test_unknown_book(self, borrowing, member_id):
        with pytest.raises(NotFoundError) as exc_info:
            borrowing.borrow(member_id, "no-such-book")
        assert exc_info.value.entity == "Book"

    def test_withdrawn_book_cannot_be_borrowed(self, borrowing, book_service, member_id, book_id):
        book_service.delete(book_id)

        with pytest.raises(NotFoundError):
            borrowing.borrow(member_id, book_id)

    def test_inactive_member(self, uow_factory, borrowing, make_member, book_id):
        member_id = make_member(is_active=False)

        with pytest.raises(MemberCannotBorrowError) as exc_info:
            borrowing.borrow(member_id, book_id)

        assert exc_info.value.reason == "Membership is inactive"
        assert loan_count(uow_factory, member_id) == 0

    def test_expired_member(self, borrowing, make_member, clock, book_id):
        member_id = make_member(expiration=clock.now - timedelta(days=1))

        with pytest.raises(MemberCannotBorrowError) as exc_info:
            borrowing.borrow(member_id, book_id)
        assert exc_info.value.reason == "Membership has expired"

    def test_membership_checked_against_clock(self, borrowing, make_member, clock, book_id):
        member_id = make_member(expiration=clock.now + timedelta(days=2))
        borrowing.borrow(member_id, book_id)

        clock.advance(days=3)
        with pytest.raises(MemberCannotBorrowError):
            borrowing.borrow(member_id, book_id)

    def test_sixth_loan_refused(self, uow_factory, borrowing, member_id, make_book):
        book_ids = [make_book() for _ in range(MAX_ACTIVE_LOANS + 1)]
        for book_id in book_ids[:MAX_ACTIVE_LOANS]:
            borrowing.borrow(member_id, book_id)

        with pytest.raises(MemberCannotBorrowError) as exc_info:
            borrowing.borrow(member_id, book_ids[-1])

        assert exc_info.value.reason == "Maximum borrow limit reached"
        assert exc_info.value.current == 5
        assert exc_info.value.maximum == 5
        assert "Current borrow count: 5, Max allowed: 5" in str(exc_info.value)
        assert available(uow_factory, book_ids[-1]) == 3

    def test_returned_loans_free_the_limit(self, borrowing, member_id, make_book):
        loans = [borrowing.borrow(member_id, make_book()) for _ in range(MAX_ACTIVE_LOANS)]
        borrowing.return_book(loans[0].id)

        assert borrowing.borrow(member_id, make_book()).status == BorrowStatus.BORROWED

    def test_no_copies_left(self, uow_factory, borrowing, member_id, make_book):
        book_id = make_book(title="Emma", total_copies=3, available_copies=0)

        with pytest.raises(BookNotAvailableError) as exc_info:
            borrowing.borrow(member_id, book_id)

        assert exc_info.value.title == "Emma"
        assert exc_info.value.reason == "No available copies"
        assert loan_count(uow_factory, member_id) == 0

    def test_last_copy(self, uow_factory, borrowing, make_member, make_book):
        book_id = make_book(total_copies=1)
        borrowing.borrow(make_member(), book_id)

        with pytest.raises(BookNotAvailableError):
            borrowing.borrow(make_member(), book_id)
        assert available(uow_factory, book_id) == 0

    def test_limit_checked_before_availability(self, borrowing, member_id, make_book):
        for _ in range(MAX_ACTIVE_LOANS):
            borrowing.borrow(member_id, make_book())
        empty = make_book(total_copies=1, available_copies=0)

        with pytest.raises(MemberCannotBorrowError):
            borrowing.borrow(member_id, empty)

    def test_cancelled_borrow_leaves_no_trace(self, uow_factory, borrowing, member_id, book_id):
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(OperationCancelledError):
            borrowing.borrow(member_id, book_id, cancel_event=cancel)

        assert available(uow_factory, book_id) == 3
        assert loan_count(uow_factory, member_id) == 0


class TestEligibility:
    def test_eligible(self, borrowing, member_id, book_id):
        assert borrowing.check_eligibility(member_id, book_id) is None
        assert borrowing.can_borrow(member_id, book_id) is True

    def test_reports_failing_rule(self, borrowing, make_member, book_id):
        member_id = make_member(is_active=False)

        error = borrowing.check_eligibility(member_id, book_id)

        assert isinstance(error, MemberCannotBorrowError)
        assert borrowing.can_borrow(member_id, book_id) is False

    def test_check_does_not_change_anything(self, uow_factory, borrowing, member_id, book_id):
        borrowing.check_eligibility(member_id, book_id)
        assert available(uow_factory, book_id) == 3
        assert loan_count(uow_factory, member_id) == 0


# === Return ===


class TestReturn:
    def test_return_puts_copy_back(self, uow_factory, borrowing, clock, member_id, book_id):
        loan = borrowing.borrow(member_id, book_id)
        clock.advance(days=3)

        returned = borrowing.return_book(loan.id)

        assert returned.status == BorrowStatus.RETURNED
        assert returned.return_date == clock.now
        assert returned.notes == "Book returned successfully"
        assert available(uow_factory, book_id) == 3

    def test_double_return_fails_and_counts_once(
        self, uow_factory, borrowing, member_id, book_id
    ):
        loan = borrowing.borrow(member_id, book_id)
        borrowing.return_book(loan.id)

        with pytest.raises(InvalidOperationError) as exc_info:
            borrowing.return_book(loan.id)

        assert exc_info.value.reason == "Book is already returned"
        assert available(uow_factory, book_id) == 3

    def test_unknown_loan(self, borrowing):
        with pytest.raises(NotFoundError) as exc_info:
            borrowing.return_book("no-such-loan")
        assert exc_info.value.entity == "BorrowRecord"

    def test_overdue_loan_can_be_returned(self, uow_factory, borrowing, clock, member_id, book_id):
        loan = borrowing.borrow(member_id, book_id)
        clock.advance(days=LOAN_PERIOD_DAYS + 2)
        borrowing.calculate_fine(loan.id)

        returned = borrowing.return_book(loan.id)

        assert returned.status == BorrowStatus.RETURNED
        assert returned.fine_amount == Decimal("2.00")
        assert available(uow_factory, book_id) == 3

    def test_lost_loan_cannot_be_returned(self, uow_factory, clock, member_id, book_id):
        loans = LoanService(uow_factory, clock)
        loan_id = loans.borrow(member_id, book_id)
        loans.mark_lost(loan_id)

        with pytest.raises(InvalidOperationError) as exc_info:
            loans.borrowing.return_book(loan_id)

        assert exc_info.value.reason == "Loan is lost and cannot be returned"
        assert available(uow_factory, book_id) == 2

    def test_return_of_withdrawn_book(self, uow_factory, borrowing, member_id, book_id):
        loan = borrowing.borrow(member_id, book_id)
        BookService(uow_factory).delete(book_id)

        borrowing.return_book(loan.id)

        with uow_factory() as uow:
            book = uow.session.get(uow.books.model_class, book_id)
            assert book.available_copies == 3

    def test_return_to_full_shelf_is_logged(
        self, uow_factory, borrowing, member_id, book_id, caplog
    ):
        loan = borrowing.borrow(member_id, book_id)
        with uow_factory() as uow:
            AvailabilityService(uow).set_availability(book_id, 3)

        with caplog.at_level(logging.WARNING, logger="library_lending.services.borrowing"):
            returned = borrowing.return_book(loan.id)

        assert returned.status == BorrowStatus.RETURNED
        assert available(uow_factory, book_id) == 3
        assert "already has every copy on the shelf" in caplog.text

    def test_cancelled_return_leaves_loan_open(
        self, uow_factory, borrowing, member_id, book_id
    ):
        loan = borrowing.borrow(member_id, book_id)
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(OperationCancelledError):
            borrowing.return_book(loan.id, cancel_event=cancel)

        assert available(uow_factory, book_id) == 2
        assert borrowing.return_book(loan.id).status == BorrowStatus.RETURNED


# === Fines ===


class TestFines:
    def test_no_fine_before_due_date(self, uow_factory, borrowing, clock, member_id, book_id):
        loan = borrowing.borrow(member_id, book_id)
        clock.advance(days=LOAN_PERIOD_DAYS - 1)

        assert borrowing.calculate_fine(loan.id) == Decimal("0.00")
        with uow_factory() as uow:
            assert uow.borrow_records.get_by_id(loan.id).status == BorrowStatus.BORROWED

    def test_ten_days_overdue(self, uow_factory, borrowing, clock, member_id, book_id):
        loan = borrowing.borrow(member_id, book_id)
        clock.advance(days=LOAN_PERIOD_DAYS + 10)

        assert borrowing.calculate_fine(loan.id) == Decimal("10.00")

        with uow_factory() as uow:
            record = uow.borrow_records.get_by_id(loan.id)
            assert record.status == BorrowStatus.OVERDUE
            assert record.fine_amount == Decimal("10.00")

    def test_partial_day_not_charged(self, borrowing, clock, member_id, book_id):
        loan = borrowing.borrow(member_id, book_id)
        clock.advance(days=LOAN_PERIOD_DAYS + 1, hours=23)

        assert borrowing.calculate_fine(loan.id) == Decimal("1.00")

    def test_stored_fine_set_once(self, uow_factory, borrowing, clock, member_id, book_id):
        loan = borrowing.borrow(member_id, book_id)
        clock.advance(days=LOAN_PERIOD_DAYS + 10)
        borrowing.calculate_fine(loan.id)

        clock.advance(days=1)
        assert borrowing.calculate_fine(loan.id) == Decimal("11.00")

        with uow_factory() as uow:
            assert uow.borrow_records.get_by_id(loan.id).fine_amount == Decimal("10.00")

    def test_returned_loan_has_no_fine(self, borrowing, clock, member_id, book_id):
        loan = borrowing.borrow(member_id, book_id)
        clock.advance(days=LOAN_PERIOD_DAYS + 5)
        borrowing.return_book(loan.id)

        assert borrowing.calculate_fine(loan.id) == Decimal("0.00")

    def test_unknown_loan_has_no_fine(self, borrowing):
        assert borrowing.calculate_fine("no-such-loan") == Decimal("0.00")

    def test_lost_loan_fine_computed_without_transition(
        self, uow_factory, clock, member_id, book_id
    ):
        loans = LoanService(uow_factory, clock)
        loan_id = loans.borrow(member_id, book_id)
        loans.mark_lost(loan_id)
        clock.advance(days=LOAN_PERIOD_DAYS + 4)

        assert loans.fine(loan_id) == Decimal("4.00")
        with uow_factory() as uow:
            record = uow.borrow_records.get_by_id(loan_id)
            assert record.status == BorrowStatus.LOST
            assert record.fine_amount is None
