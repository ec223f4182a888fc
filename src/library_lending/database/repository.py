"""
Repository pattern implementation for the library lending core.

This module provides the data access layer shared by every entity. The
repository pattern is used because:

1. **Separation**: services express business rules without writing SQL
2. **Testability**: repositories can be exercised against a throwaway database
3. **Consistency**: soft-delete filtering and ordering are applied in one place

Repositories never commit. They stage changes on the session they were given
and the unit of work decides when those changes become durable.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import ColumnElement, Select, func, select
from sqlalchemy.orm import Session

from ..database.schema import Base, new_id, session_now
from ..database.session import safe_query

# Type variables for generic repository
ModelType = TypeVar("ModelType", bound=Base)
ResponseSchemaType = TypeVar("ResponseSchemaType", bound=BaseModel)


class PaginationParams(BaseModel):
    """Standard pagination parameters for list operations."""

    page: int = 1
    page_size: int = 20

    @property
    def offset(self) -> int:
        """Calculate offset for SQL queries."""
        return (self.page - 1) * self.page_size

    def validate_params(self) -> None:
        """Validate pagination parameters."""
        if self.page < 1:
            raise ValueError("Page must be >= 1")
        if self.page_size < 1 or self.page_size > 100:
            raise ValueError("Page size must be between 1 and 100")


class PaginatedResponse(BaseModel, Generic[ResponseSchemaType]):
    """Standard paginated response for list operations."""

    items: list[ResponseSchemaType]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


class BaseRepository(ABC, Generic[ModelType, ResponseSchemaType]):
    """
    Abstract base repository providing common query and mutation operations.

    Every read goes through ``_select`` which composes the soft-delete
    predicate into the statement, so deleted rows are invisible unless a
    subclass deliberately builds its own statement.
    """

    def __init__(self, session: Session):
        """Initialize repository with database session."""
        self.session = session

    @property
    @abstractmethod
    def model_class(self) -> type[ModelType]:
        """Return the SQLAlchemy model class."""

    @property
    @abstractmethod
    def response_schema(self) -> type[ResponseSchemaType]:
        """Return the Pydantic response schema."""

    def ordering(self) -> Sequence[ColumnElement]:
        """Columns that give list results a stable order."""
        return ()

    @property
    def entity_name(self) -> str:
        return self.model_class.__name__

    def to_model(self, db_obj: ModelType) -> ResponseSchemaType:
        """Convert database model to Pydantic response model."""
        return self.response_schema.model_validate(db_obj, from_attributes=True)

    # === Statement builders ===

    def _now(self) -> datetime:
        return session_now(self.session)

    def _live(self) -> ColumnElement[bool]:
        return self.model_class.is_deleted.is_(False)

    def _select(self, *criteria: ColumnElement[bool]) -> Select:
        return select(self.model_class).where(self._live(), *criteria)

    def _ordered(self, query: Select) -> Select:
        return query.order_by(*self.ordering(), self.model_class.id)

    def _scalars(self, query: Select, description: str) -> list[ModelType]:
        return list(
            safe_query(self.session, lambda s: s.execute(query).scalars().all(), description)
        )

    # === Reads ===

    def get_by_id(self, id: str) -> ModelType | None:
        """
        Get a live entity by ID.

        Returns:
            The entity or None if missing or soft-deleted
        """
        query = self._select(self.model_class.id == str(id))
        return safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            f"Failed to get {self.entity_name} by ID",
        )

    def get_all(self) -> list[ModelType]:
        """Get all live entities in the repository's deterministic order."""
        return self._scalars(self._ordered(self._select()), f"Failed to list {self.entity_name}")

    def find(self, *criteria: ColumnElement[bool]) -> list[ModelType]:
        """Get live entities matching every criterion."""
        return self._scalars(
            self._ordered(self._select(*criteria)), f"Failed to find {self.entity_name}"
        )

    def first_or_none(self, *criteria: ColumnElement[bool]) -> ModelType | None:
        query = self._ordered(self._select(*criteria)).limit(1)
        return safe_query(
            self.session,
            lambda s: s.execute(query).scalars().first(),
            f"Failed to get first {self.entity_name}",
        )

    def count(self, *criteria: ColumnElement[bool]) -> int:
        query = (
            select(func.count()).select_from(self.model_class).where(self._live(), *criteria)
        )
        return (
            safe_query(
                self.session,
                lambda s: s.execute(query).scalar(),
                f"Failed to count {self.entity_name}",
            )
            or 0
        )

    def any(self, *criteria: ColumnElement[bool]) -> bool:
        return self.count(*criteria) > 0

    def exists(self, id: str) -> bool:
        """Check if a live entity exists by ID."""
        return self.any(self.model_class.id == str(id))

    def get_paged(
        self, pagination: PaginationParams | None = None, *criteria: ColumnElement[bool]
    ) -> PaginatedResponse[ResponseSchemaType]:
        """
        Get one page of live entities as response models.

        Args:
            pagination: Pagination parameters (first page of 20 when omitted)
            criteria: Optional extra filters
        """
        pagination = pagination or PaginationParams()
        pagination.validate_params()

        total = self.count(*criteria)
        query = (
            self._ordered(self._select(*criteria))
            .offset(pagination.offset)
            .limit(pagination.page_size)
        )
        results = self._scalars(query, f"Failed to get paginated {self.entity_name}")

        return PaginatedResponse(
            items=[self.to_model(item) for item in results],
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
            total_pages=(total + pagination.page_size - 1) // pagination.page_size,
            has_next=pagination.page * pagination.page_size < total,
            has_previous=pagination.page > 1,
        )

    # === Mutations (staged, committed by the unit of work) ===

    def add(self, entity: ModelType) -> ModelType:
        """
        Stage a new entity.

        The identifier is assigned immediately so callers can reference it
        before the commit; audit timestamps are stamped at flush.
        """
        if entity.id is None:
            entity.id = new_id()
        self.session.add(entity)
        return entity

    def add_range(self, entities: Sequence[ModelType]) -> list[ModelType]:
        return [self.add(entity) for entity in entities]

    def update(self, entity: ModelType) -> ModelType:
        """Stage changes made to an entity."""
        if entity not in self.session:
            entity = self.session.merge(entity)
        return entity

    def soft_delete(self, id: str) -> bool:
        """
        Mark an entity as deleted without removing the row.

        Missing or already deleted ids are a no-op.

        Returns:
            True if the entity was deleted by this call, False otherwise
        """
        entity = self.get_by_id(id)
        if entity is None:
            return False

        entity.is_deleted = True
        entity.deleted_on = self._now()
        return True
