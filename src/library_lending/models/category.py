"""Category model for the library lending core."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .book import Book


class Category(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    created_on: datetime | None = None
    updated_on: datetime | None = None


class CategoryWithBooks(Category):
    books: list[Book] = []

    @property
    def book_count(self) -> int:
        return len(self.books)
