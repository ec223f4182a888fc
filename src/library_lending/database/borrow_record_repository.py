"""
Borrow record repository implementation for the library lending core.

Borrow records are the loan ledger. This repository provides:

1. **Loan listings**: by member, by book, active, overdue and by status
2. **Counting**: active loans per member and per book, the inputs to the
   borrowing limit and the drift check
3. **Status changes**: a conditional UPDATE that moves a loan only if it is
   still in one of the expected states, so two concurrent returns of the
   same loan cannot both succeed
"""

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select, update

from ..database.schema import BorrowRecord as BorrowRecordDB
from ..database.schema import to_money
from ..database.session import safe_query
from ..models.borrow_record import OUTSTANDING_STATUSES, BorrowStatus
from ..models.borrow_record import BorrowRecord as BorrowRecordModel
from .repository import BaseRepository


class BorrowRecordRepository(BaseRepository[BorrowRecordDB, BorrowRecordModel]):
    """Repository for borrow record data access."""

    @property
    def model_class(self):
        return BorrowRecordDB

    @property
    def response_schema(self):
        return BorrowRecordModel

    def ordering(self):
        return (BorrowRecordDB.borrow_date.desc(),)

    def to_model(self, db_obj: BorrowRecordDB) -> BorrowRecordModel:
        """Convert to the read model, copying the book title and member name."""
        model = BorrowRecordModel.model_validate(db_obj, from_attributes=True)
        if db_obj.book is not None:
            model.book_title = db_obj.book.title
        if db_obj.member is not None:
            model.member_name = db_obj.member.full_name
        return model

    # === Listings ===

    def get_by_member(self, member_id: str) -> list[BorrowRecordDB]:
        return self.find(BorrowRecordDB.member_id == str(member_id))

    def get_by_book(self, book_id: str) -> list[BorrowRecordDB]:
        return self.find(BorrowRecordDB.book_id == str(book_id))

    def get_by_status(self, status: BorrowStatus) -> list[BorrowRecordDB]:
        return self.find(BorrowRecordDB.status == BorrowStatus(status))

    def get_active(self) -> list[BorrowRecordDB]:
        """Loans whose copy is still out of the library (borrowed or overdue)."""
        return self.find(BorrowRecordDB.status.in_(list(OUTSTANDING_STATUSES)))

    def get_overdue(self, now: datetime | None = None) -> list[BorrowRecordDB]:
        """
        Outstanding loans past their due date, oldest due date first.

        A loan counts as overdue here whether or not a fine query has already
        flipped its status.
        """
        now = now or self._now()
        query = (
            self._select(
                BorrowRecordDB.status.in_(list(OUTSTANDING_STATUSES)),
                BorrowRecordDB.due_date < now,
            )
            .order_by(BorrowRecordDB.due_date, BorrowRecordDB.id)
        )
        return self._scalars(query, "Failed to list overdue borrow records")

    def get_active_for(self, member_id: str, book_id: str) -> BorrowRecordDB | None:
        """The member's outstanding loan of the given book, if any."""
        return self.first_or_none(
            BorrowRecordDB.member_id == str(member_id),
            BorrowRecordDB.book_id == str(book_id),
            BorrowRecordDB.status.in_(list(OUTSTANDING_STATUSES)),
        )

    # === Counts ===

    def count_active_for_member(self, member_id: str) -> int:
        """Loans in ``Borrowed`` status, the figure the borrowing limit applies to."""
        return self.count(
            BorrowRecordDB.member_id == str(member_id),
            BorrowRecordDB.status == BorrowStatus.BORROWED,
        )

    def count_for_member(self, member_id: str) -> int:
        """Every live loan the member has ever taken, whatever its status."""
        return self.count(BorrowRecordDB.member_id == str(member_id))

    def count_active_for_book(self, book_id: str) -> int:
        return self.count(
            BorrowRecordDB.book_id == str(book_id),
            BorrowRecordDB.status == BorrowStatus.BORROWED,
        )

    def count_outstanding_for_book(self, book_id: str) -> int:
        """Loans whose copy has not come back, including overdue ones."""
        return self.count(
            BorrowRecordDB.book_id == str(book_id),
            BorrowRecordDB.status.in_(list(OUTSTANDING_STATUSES)),
        )

    def total_fines_for_member(self, member_id: str) -> Decimal:
        query = select(func.sum(BorrowRecordDB.fine_amount)).where(
            self._live(), BorrowRecordDB.member_id == str(member_id)
        )
        total = safe_query(
            self.session, lambda s: s.execute(query).scalar(), "Failed to total member fines"
        )
        return to_money(total or 0)

    def has_overdue(self, member_id: str, now: datetime | None = None) -> bool:
        """
        Whether the member holds a loan past its due date.

        Loans already flagged ``Overdue`` count as well as ``Borrowed`` ones, so
        the answer does not change once a fine query has flagged the loan.
        """
        now = now or self._now()
        return self.any(
            BorrowRecordDB.member_id == str(member_id),
            BorrowRecordDB.status.in_(list(OUTSTANDING_STATUSES)),
            BorrowRecordDB.due_date < now,
        )

    # === Status changes ===

    def try_transition(
        self,
        record_id: str,
        from_statuses: Iterable[BorrowStatus],
        to_status: BorrowStatus,
        **values,
    ) -> bool:
        """
        Atomically move a live loan to ``to_status``.

        The row is updated only if its current status is one of
        ``from_statuses``; extra column values (return_date, fine_amount) are
        written in the same statement.

        Returns:
            True if exactly one row changed
        """
        stmt = (
            update(BorrowRecordDB)
            .where(
                BorrowRecordDB.id == str(record_id),
                self._live(),
                BorrowRecordDB.status.in_(list(from_statuses)),
            )
            .values(status=to_status, updated_on=self._now(), **values)
            .execution_options(synchronize_session=False)
        )
        updated = self.session.execute(stmt).rowcount == 1
        if updated:
            cached = self.session.identity_map.get(
                self.session.identity_key(BorrowRecordDB, str(record_id))
            )
            if cached is not None:
                self.session.expire(cached)
        return updated
