"""Shared read and soft-delete operations for the entity services."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel

from ..database.repository import BaseRepository, PaginatedResponse, PaginationParams
from ..database.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

ReadModel = TypeVar("ReadModel", bound=BaseModel)


class EntityService(ABC, Generic[ReadModel]):
    """
    Base for the application services the request layer talks to.

    Each call opens and closes its own unit of work. Reads return Pydantic
    read models, never ORM rows.
    """

    entity_name: str = "Entity"

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork] = UnitOfWork,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._uow_factory = uow_factory
        self._clock = clock

    def _unit_of_work(self) -> UnitOfWork:
        """Open a unit of work that stamps audit fields with this service's clock."""
        uow = self._uow_factory()
        uow.clock = self._clock
        return uow

    @abstractmethod
    def _repository(self, uow: UnitOfWork) -> BaseRepository:
        """The repository this service manages."""

    def get(self, id: str) -> ReadModel | None:
        with self._unit_of_work() as uow:
            repo = self._repository(uow)
            entity = repo.get_by_id(id)
            return repo.to_model(entity) if entity is not None else None

    def list_all(self) -> list[ReadModel]:
        with self._unit_of_work() as uow:
            repo = self._repository(uow)
            return [repo.to_model(entity) for entity in repo.get_all()]

    def get_paged(self, pagination: PaginationParams | None = None) -> PaginatedResponse:
        with self._unit_of_work() as uow:
            return self._repository(uow).get_paged(pagination)

    def search(self, term: str) -> list[ReadModel]:
        with self._unit_of_work() as uow:
            repo = self._repository(uow)
            return [repo.to_model(entity) for entity in repo.search(term)]

    def delete(self, id: str) -> bool:
        """
        Soft-delete an entity.

        Returns:
            False if there was no live entity with that id
        """
        with self._unit_of_work() as uow:
            if not self._repository(uow).soft_delete(id):
                return False
            uow.commit()
        logger.info("%s %s deleted", self.entity_name, id)
        return True
