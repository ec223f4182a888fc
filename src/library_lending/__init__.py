"""
Library Lending Core Package.

The lending domain of a library-management backend: who may borrow, how
copy counts stay consistent under concurrent lending and return, and how
fines accrue on overdue loans.

Key Components:
- models: Pydantic read models and the loan state machine
- database: SQLAlchemy schema, repositories and the unit of work
- services: availability, borrowing and the CRUD/loan application services
- config: Configuration management with pydantic-settings
- observability: logging setup and logfire spans/metrics
"""

__version__ = "0.1.0"

from . import database, services
from .exceptions import (
    BookNotAvailableError,
    DuplicateEntityError,
    InvalidOperationError,
    LendingError,
    MemberCannotBorrowError,
    NotFoundError,
    OperationCancelledError,
)

__all__ = [
    "BookNotAvailableError",
    "DuplicateEntityError",
    "InvalidOperationError",
    "LendingError",
    "MemberCannotBorrowError",
    "NotFoundError",
    "OperationCancelledError",
    "__version__",
    "database",
    "services",
]
