"""Author model for the library lending core."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from .book import Book


class Author(BaseModel):
    """Represents a book author."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    biography: str | None = None
    birth_date: date | None = None
    created_on: datetime | None = None
    updated_on: datetime | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def age(self) -> int | None:
        """Age in calendar years, counted the simple way (year difference)."""
        if self.birth_date is None:
            return None
        return date.today().year - self.birth_date.year


class AuthorWithBooks(Author):
    """Author together with the live books attributed to them."""

    books: list[Book] = []
