"""Member services: registration, profile updates and membership listings."""

import logging

from ..database.member_repository import MemberCreateSchema, MemberUpdateSchema
from ..database.schema import Member as MemberDB
from ..database.unit_of_work import UnitOfWork
from ..exceptions import DuplicateEntityError
from ..models.member import Member
from .base import EntityService

logger = logging.getLogger(__name__)


class MemberService(EntityService[Member]):
    """
    CRUD for library members.

    E-mail (compared lower-cased) and phone number must each be unique among
    live members. E-mail is checked first.
    """

    entity_name = "Member"

    def _repository(self, uow: UnitOfWork):
        return uow.members

    def _ensure_unique(
        self, uow: UnitOfWork, email: str, phone_number: str, exclude_id: str | None = None
    ) -> None:
        if not uow.members.is_email_unique(email, exclude_id=exclude_id):
            raise DuplicateEntityError("Member", "Email", email)
        if not uow.members.is_phone_unique(phone_number, exclude_id=exclude_id):
            raise DuplicateEntityError("Member", "PhoneNumber", phone_number)

    def create(self, data: MemberCreateSchema) -> str:
        """
        Register a member.

        Raises:
            DuplicateEntityError: E-mail or phone number already registered
        """
        with self._unit_of_work() as uow:
            self._ensure_unique(uow, data.email, data.phone_number)
            member = uow.members.add(MemberDB(**data.model_dump()))
            uow.commit()

        logger.info("Member %s registered", member.id)
        return member.id

    def update(self, id: str, data: MemberUpdateSchema) -> bool:
        """
        Apply the fields set on ``data`` to a member.

        Returns:
            False if the member does not exist
        """
        # expiration=None clears the expiry; None elsewhere means unchanged
        changes = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None or field == "expiration"
        }
        with self._unit_of_work() as uow:
            member = uow.members.get_by_id(id)
            if member is None:
                return False

            self._ensure_unique(
                uow,
                changes.get("email") or member.email,
                changes.get("phone_number") or member.phone_number,
                exclude_id=member.id,
            )

            for field, value in changes.items():
                setattr(member, field, value)
            uow.members.update(member)
            uow.commit()
        return True

    def get_by_email(self, email: str) -> Member | None:
        with self._unit_of_work() as uow:
            member = uow.members.get_by_email(email)
            return uow.members.to_model(member) if member is not None else None

    def get_active(self) -> list[Member]:
        """Members whose membership currently allows borrowing."""
        with self._unit_of_work() as uow:
            return [uow.members.to_model(m) for m in uow.members.get_active()]

    def get_expired(self) -> list[Member]:
        with self._unit_of_work() as uow:
            return [uow.members.to_model(m) for m in uow.members.get_expired()]

    def get_with_overdue_loans(self) -> list[Member]:
        with self._unit_of_work() as uow:
            return [uow.members.to_model(m) for m in uow.members.get_with_overdue_loans()]
