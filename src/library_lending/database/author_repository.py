"""
Author repository implementation for the library lending core.

Authors are reference data. The only rule enforced here is that the
(first name, last name) pair is unique among live authors.
"""

from datetime import date

from pydantic import BaseModel, Field
from sqlalchemy import func, or_
from sqlalchemy.orm import selectinload

from ..database.schema import Author as AuthorDB
from ..models.author import Author as AuthorModel
from .repository import BaseRepository


class AuthorCreateSchema(BaseModel):
    """Schema for creating a new author."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    biography: str | None = None
    birth_date: date | None = None


class AuthorUpdateSchema(BaseModel):
    """Schema for updating an author - all fields optional."""

    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    biography: str | None = None
    birth_date: date | None = None


class AuthorRepository(BaseRepository[AuthorDB, AuthorModel]):
    """Repository for author data access."""

    @property
    def model_class(self):
        return AuthorDB

    @property
    def response_schema(self):
        return AuthorModel

    def ordering(self):
        return (AuthorDB.last_name, AuthorDB.first_name)

    def get_by_name(self, first_name: str, last_name: str) -> AuthorDB | None:
        """Case-insensitive lookup by full name."""
        return self.first_or_none(
            func.lower(AuthorDB.first_name) == first_name.strip().lower(),
            func.lower(AuthorDB.last_name) == last_name.strip().lower(),
        )

    def search(self, term: str) -> list[AuthorDB]:
        term = (term or "").strip()
        if not term:
            return self.get_all()

        pattern = f"%{term}%"
        return self.find(
            or_(
                AuthorDB.first_name.ilike(pattern),
                AuthorDB.last_name.ilike(pattern),
                AuthorDB.biography.ilike(pattern),
            )
        )

    def get_with_books(self) -> list[AuthorDB]:
        """All live authors with their books loaded in one extra query."""
        query = self._ordered(self._select()).options(selectinload(AuthorDB.books))
        return self._scalars(query, "Failed to load authors with books")

    def is_name_unique(
        self, first_name: str, last_name: str, exclude_id: str | None = None
    ) -> bool:
        criteria = [
            func.lower(AuthorDB.first_name) == first_name.strip().lower(),
            func.lower(AuthorDB.last_name) == last_name.strip().lower(),
        ]
        if exclude_id is not None:
            criteria.append(AuthorDB.id != str(exclude_id))
        return not self.any(*criteria)

