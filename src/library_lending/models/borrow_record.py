"""
Borrow record model and loan state machine for the library lending core.

State machine:

    BORROWED ──return──────────────► RETURNED (terminal)
        │                               ▲
        ├──fine assessed after due──► OVERDUE ──return──┘
        │                               │
        └──admin action──► LOST / DAMAGED (terminal) ◄──┘

The lending core itself only produces BORROWED, OVERDUE and RETURNED. LOST and
DAMAGED are reached through an administrative action.
"""

import enum
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class BorrowStatus(str, enum.Enum):
    """Lifecycle state of a loan."""

    BORROWED = "borrowed"
    RETURNED = "returned"
    OVERDUE = "overdue"
    LOST = "lost"
    DAMAGED = "damaged"


ALLOWED_TRANSITIONS: dict[BorrowStatus, frozenset[BorrowStatus]] = {
    BorrowStatus.BORROWED: frozenset(
        {BorrowStatus.RETURNED, BorrowStatus.OVERDUE, BorrowStatus.LOST, BorrowStatus.DAMAGED}
    ),
    BorrowStatus.OVERDUE: frozenset(
        {BorrowStatus.RETURNED, BorrowStatus.LOST, BorrowStatus.DAMAGED}
    ),
    BorrowStatus.RETURNED: frozenset(),
    BorrowStatus.LOST: frozenset(),
    BorrowStatus.DAMAGED: frozenset(),
}

# Loans whose copy is still out of the library
OUTSTANDING_STATUSES = frozenset({BorrowStatus.BORROWED, BorrowStatus.OVERDUE})


def can_transition(current: BorrowStatus, target: BorrowStatus) -> bool:
    """Check whether a loan may move from ``current`` to ``target``."""
    return target in ALLOWED_TRANSITIONS[current]


def sources_for(target: BorrowStatus) -> frozenset[BorrowStatus]:
    """All states from which ``target`` can be reached."""
    return frozenset(
        status for status, targets in ALLOWED_TRANSITIONS.items() if target in targets
    )


def is_terminal(status: BorrowStatus) -> bool:
    return not ALLOWED_TRANSITIONS[status]


class BorrowRecord(BaseModel):
    """
    Represents one loan of one book to one member.

    ``book_title`` and ``member_name`` are read conveniences copied from the
    related rows when the record is loaded; the record only owns the keys.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    book_id: str
    member_id: str
    borrow_date: datetime
    due_date: datetime
    return_date: datetime | None = None
    status: BorrowStatus = BorrowStatus.BORROWED
    fine_amount: Decimal | None = Field(None, ge=0)
    notes: str | None = Field(None, max_length=1000)
    created_on: datetime | None = None
    updated_on: datetime | None = None

    book_title: str | None = None
    member_name: str | None = None

    @property
    def is_overdue(self) -> bool:
        """Copy is still out and the due date has passed."""
        return self.status in OUTSTANDING_STATUSES and datetime.now() > self.due_date

    @property
    def days_overdue(self) -> int:
        if not self.is_overdue:
            return 0
        return (datetime.now() - self.due_date).days

    @property
    def borrow_duration_days(self) -> int:
        """Days the copy has been (or was) out."""
        end = self.return_date or datetime.now()
        return (end - self.borrow_date).days
