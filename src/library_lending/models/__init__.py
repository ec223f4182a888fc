"""
Library lending read models.

This package contains Pydantic models for all core entities. These models
provide:

1. Data validation using Pydantic v2
2. Serialization for whatever request layer sits in front of the core
3. Derived read-only properties (availability, membership validity, overdue)

The models represent:
- Author and Category: reference data
- Book: catalog items with copy counts
- Member: library members who can borrow books
- BorrowRecord: loans and the loan state machine
"""

from .author import Author, AuthorWithBooks
from .book import Book, normalize_isbn
from .borrow_record import (
    ALLOWED_TRANSITIONS,
    OUTSTANDING_STATUSES,
    BorrowRecord,
    BorrowStatus,
    can_transition,
)
from .category import Category, CategoryWithBooks
from .member import Member

__all__ = [
    "ALLOWED_TRANSITIONS",
    "OUTSTANDING_STATUSES",
    "Author",
    "AuthorWithBooks",
    "Book",
    "BorrowRecord",
    "BorrowStatus",
    "Category",
    "CategoryWithBooks",
    "Member",
    "can_transition",
    "normalize_isbn",
]
