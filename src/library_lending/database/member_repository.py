"""
Member repository implementation for the library lending core.

This repository manages library member data and provides:

1. **Uniqueness lookups**: e-mail and phone number among live members
2. **Membership status**: active and expired member listings
3. **Circulation support**: members with overdue loans, and the row lock the
   borrowing service takes before counting a member's active loans
"""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy import exists, or_, select

from ..database.schema import BorrowRecord as BorrowRecordDB
from ..database.schema import Member as MemberDB
from ..database.session import safe_query
from ..models.borrow_record import OUTSTANDING_STATUSES
from ..models.member import Member as MemberModel
from .repository import BaseRepository


def normalize_email(value: str) -> str:
    return value.strip().lower()


def normalize_phone(value: str) -> str:
    return value.strip()


class MemberCreateSchema(BaseModel):
    """Schema for registering a new member."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone_number: str = Field(..., min_length=1, max_length=20)
    address: str = Field(default="", max_length=500)
    membership_start: datetime = Field(default_factory=datetime.now)
    expiration: datetime | None = None
    is_active: bool = True

    @field_validator("email", mode="after")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("phone_number")
    @classmethod
    def strip_phone(cls, v: str) -> str:
        return normalize_phone(v)


class MemberUpdateSchema(BaseModel):
    """Schema for updating a member - all fields optional."""

    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    email: EmailStr | None = None
    phone_number: str | None = Field(None, min_length=1, max_length=20)
    address: str | None = Field(None, max_length=500)
    expiration: datetime | None = None
    is_active: bool | None = None

    @field_validator("email", mode="after")
    @classmethod
    def lower_email(cls, v: str | None) -> str | None:
        return normalize_email(v) if v is not None else None

    @field_validator("phone_number")
    @classmethod
    def strip_phone(cls, v: str | None) -> str | None:
        return normalize_phone(v) if v is not None else None


class MemberRepository(BaseRepository[MemberDB, MemberModel]):
    """Repository for member data access."""

    @property
    def model_class(self):
        return MemberDB

    @property
    def response_schema(self):
        return MemberModel

    def ordering(self):
        return (MemberDB.last_name, MemberDB.first_name)

    def get_by_email(self, email: str) -> MemberDB | None:
        return self.first_or_none(MemberDB.email == normalize_email(email))

    def get_by_phone(self, phone_number: str) -> MemberDB | None:
        return self.first_or_none(MemberDB.phone_number == normalize_phone(phone_number))

    def _active_criteria(self, now: datetime):
        return (
            MemberDB.is_active.is_(True),
            or_(MemberDB.expiration.is_(None), MemberDB.expiration > now),
        )

    def get_active(self, now: datetime | None = None) -> list[MemberDB]:
        """Members whose membership currently allows borrowing."""
        return self.find(*self._active_criteria(now or self._now()))

    def get_expired(self, now: datetime | None = None) -> list[MemberDB]:
        """Members whose expiration date has passed."""
        now = now or self._now()
        return self.find(MemberDB.expiration.is_not(None), MemberDB.expiration <= now)

    def count_active(self, now: datetime | None = None) -> int:
        return self.count(*self._active_criteria(now or self._now()))

    def count_expired(self, now: datetime | None = None) -> int:
        now = now or self._now()
        return self.count(MemberDB.expiration.is_not(None), MemberDB.expiration <= now)

    def search(self, term: str) -> list[MemberDB]:
        """Case-insensitive search over name, e-mail and phone number."""
        term = (term or "").strip()
        if not term:
            return self.get_all()

        pattern = f"%{term}%"
        return self.find(
            or_(
                MemberDB.first_name.ilike(pattern),
                MemberDB.last_name.ilike(pattern),
                MemberDB.email.ilike(pattern),
                MemberDB.phone_number.like(pattern),
            )
        )

    def get_with_overdue_loans(self, now: datetime | None = None) -> list[MemberDB]:
        """Members holding at least one outstanding loan past its due date."""
        now = now or self._now()
        overdue = exists().where(
            BorrowRecordDB.member_id == MemberDB.id,
            BorrowRecordDB.is_deleted.is_(False),
            BorrowRecordDB.status.in_(list(OUTSTANDING_STATUSES)),
            BorrowRecordDB.due_date < now,
        )
        return self.find(overdue)

    def is_email_unique(self, email: str, exclude_id: str | None = None) -> bool:
        criteria = [MemberDB.email == normalize_email(email)]
        if exclude_id is not None:
            criteria.append(MemberDB.id != str(exclude_id))
        return not self.any(*criteria)

    def is_phone_unique(self, phone_number: str, exclude_id: str | None = None) -> bool:
        criteria = [MemberDB.phone_number == normalize_phone(phone_number)]
        if exclude_id is not None:
            criteria.append(MemberDB.id != str(exclude_id))
        return not self.any(*criteria)

    def is_membership_valid(self, member_id: str, now: datetime | None = None) -> bool:
        member = self.get_by_id(member_id)
        return member is not None and member.is_membership_valid(now or self._now())

    def lock_for_update(self, member_id: str) -> MemberDB | None:
        """
        Load a live member and hold its row lock until the transaction ends.

        Backends without row locks (SQLite) serialize writers on the database
        lock instead, so this degrades to a fresh read there.
        """
        query = (
            select(MemberDB)
            .where(MemberDB.id == str(member_id), self._live())
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            "Failed to lock member",
        )

