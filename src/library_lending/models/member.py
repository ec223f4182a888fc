"""
Member model for the library lending core.

A member may borrow while the membership is valid: the active flag is set and
the expiration (if any) lies in the future.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Member(BaseModel):
    """Represents a library member who can borrow books."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., description="Lower-cased e-mail address")
    phone_number: str = Field(..., max_length=20)
    address: str = ""
    membership_start: datetime
    expiration: datetime | None = None
    is_active: bool = True
    created_on: datetime | None = None
    updated_on: datetime | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def membership_valid(self) -> bool:
        """Check if the membership currently allows borrowing."""
        return self.is_active and (self.expiration is None or self.expiration > datetime.now())
