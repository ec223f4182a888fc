"""
Services for the library lending core.

- AvailabilityService: copy-count queries and bounded copy-count changes
- BorrowingService: eligibility, borrow, return and fines
- AuthorService, CategoryService, BookService, MemberService: catalog and
  member CRUD for the request layer
- LoanService: loan listings and administrative loan actions
"""

from .availability import AvailabilityService
from .borrowing import BorrowingService, compute_fine
from .catalog import AuthorService, BookService, CategoryService
from .loans import LoanService
from .members import MemberService

__all__ = [
    "AuthorService",
    "AvailabilityService",
    "BookService",
    "BorrowingService",
    "CategoryService",
    "LoanService",
    "MemberService",
    "compute_fine",
]
