"""
Database package for the library lending core.

This package provides:
- SQLAlchemy schema definitions (schema.py)
- Session management and connection handling (session.py)
- One repository per entity over a shared generic base (repository.py)
- The unit of work that commits repository changes atomically (unit_of_work.py)
"""

from .author_repository import AuthorCreateSchema, AuthorRepository, AuthorUpdateSchema
from .book_repository import BookCreateSchema, BookRepository, BookUpdateSchema
from .borrow_record_repository import BorrowRecordRepository
from .category_repository import CategoryCreateSchema, CategoryRepository, CategoryUpdateSchema
from .member_repository import MemberCreateSchema, MemberRepository, MemberUpdateSchema
from .repository import BaseRepository, PaginatedResponse, PaginationParams
from .schema import Author, Base, Book, BorrowRecord, Category, Member, Money, to_money
from .session import (
    DatabaseManager,
    get_db_manager,
    reset_db_manager,
    safe_commit,
    safe_query,
)
from .unit_of_work import UnitOfWork

__all__ = [
    "Author",
    "AuthorCreateSchema",
    "AuthorRepository",
    "AuthorUpdateSchema",
    "Base",
    "BaseRepository",
    "Book",
    "BookCreateSchema",
    "BookRepository",
    "BookUpdateSchema",
    "BorrowRecord",
    "BorrowRecordRepository",
    "Category",
    "CategoryCreateSchema",
    "CategoryRepository",
    "CategoryUpdateSchema",
    "DatabaseManager",
    "Member",
    "MemberCreateSchema",
    "MemberRepository",
    "MemberUpdateSchema",
    "Money",
    "PaginatedResponse",
    "PaginationParams",
    "UnitOfWork",
    "get_db_manager",
    "reset_db_manager",
    "safe_commit",
    "safe_query",
    "to_money",
]
