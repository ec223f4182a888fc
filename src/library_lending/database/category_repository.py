"""Category repository implementation for the library lending core."""

from pydantic import BaseModel, Field
from sqlalchemy import exists, func, or_
from sqlalchemy.orm import selectinload

from ..database.schema import Book as BookDB
from ..database.schema import Category as CategoryDB
from ..models.category import Category as CategoryModel
from .repository import BaseRepository


class CategoryCreateSchema(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None


class CategoryUpdateSchema(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = None


class CategoryRepository(BaseRepository[CategoryDB, CategoryModel]):
    """Repository for category data access. Names are unique among live rows."""

    @property
    def model_class(self):
        return CategoryDB

    @property
    def response_schema(self):
        return CategoryModel

    def ordering(self):
        return (CategoryDB.name,)

    def get_by_name(self, name: str) -> CategoryDB | None:
        return self.first_or_none(func.lower(CategoryDB.name) == name.strip().lower())

    def search(self, term: str) -> list[CategoryDB]:
        term = (term or "").strip()
        if not term:
            return self.get_all()

        pattern = f"%{term}%"
        return self.find(
            or_(CategoryDB.name.ilike(pattern), CategoryDB.description.ilike(pattern))
        )

    def get_with_books(self) -> list[CategoryDB]:
        query = self._ordered(self._select()).options(selectinload(CategoryDB.books))
        return self._scalars(query, "Failed to load categories with books")

    def get_empty(self) -> list[CategoryDB]:
        """Live categories that hold no live books."""
        has_books = exists().where(
            BookDB.category_id == CategoryDB.id, BookDB.is_deleted.is_(False)
        )
        return self.find(~has_books)

    def is_name_unique(self, name: str, exclude_id: str | None = None) -> bool:
        criteria = [func.lower(CategoryDB.name) == name.strip().lower()]
        if exclude_id is not None:
            criteria.append(CategoryDB.id != str(exclude_id))
        return not self.any(*criteria)
