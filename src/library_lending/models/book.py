"""
Book model for the library lending core.

The read model mirrors the books table. ISBN handling lives here too: ISBNs
are accepted with hyphens or spaces, stored as bare digits, and must pass the
ISBN-10 or ISBN-13 checksum.
"""

import re
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

_ISBN_CHARS = re.compile(r"^[0-9X]+$")


def _is_valid_isbn10(isbn: str) -> bool:
    if not isbn[:9].isdigit():
        return False
    total = sum(int(digit) * (10 - i) for i, digit in enumerate(isbn[:9]))
    check = isbn[9]
    if check == "X":
        total += 10
    elif check.isdigit():
        total += int(check)
    else:
        return False
    return total % 11 == 0


def _is_valid_isbn13(isbn: str) -> bool:
    if not isbn.isdigit():
        return False
    total = sum(int(digit) * (1 if i % 2 == 0 else 3) for i, digit in enumerate(isbn[:12]))
    return (10 - total % 10) % 10 == int(isbn[12])


def normalize_isbn(value: str) -> str:
    """
    Strip separators from an ISBN and validate its checksum.

    Raises:
        ValueError: If the value is empty or not a valid ISBN-10/ISBN-13
    """
    if not value or not value.strip():
        raise ValueError("ISBN cannot be empty")

    cleaned = value.replace("-", "").replace(" ", "").strip().upper()
    if not _ISBN_CHARS.match(cleaned):
        raise ValueError(f"Invalid ISBN format: {value}")

    if len(cleaned) == 10 and _is_valid_isbn10(cleaned):
        return cleaned
    if len(cleaned) == 13 and _is_valid_isbn13(cleaned):
        return cleaned
    raise ValueError(f"Invalid ISBN format: {value}")


class Book(BaseModel):
    """
    Represents a book in the library catalog.

    Copy counts are read-only here; they change only through the
    availability service.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Unique identifier for the book")
    title: str = Field(..., description="The title of the book", min_length=1, max_length=500)
    isbn: str = Field(..., description="Normalized ISBN-10 or ISBN-13")
    description: str | None = Field(None, description="Brief description of the book")
    page_count: int = Field(default=0, ge=0)
    published_date: date | None = None
    total_copies: int = Field(..., description="Copies owned by the library", ge=0)
    available_copies: int = Field(..., description="Copies on the shelf", ge=0)
    author_id: str
    category_id: str
    created_on: datetime | None = None
    updated_on: datetime | None = None

    @property
    def is_available(self) -> bool:
        """Check if the book has any available copies."""
        return self.available_copies > 0

    @property
    def borrowed_copies(self) -> int:
        """Copies not on the shelf, derived from the two counters."""
        return self.total_copies - self.available_copies
