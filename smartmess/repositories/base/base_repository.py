"""
Base repository with standardized CRUD operations and error handling.

Repositories flush but never commit: the owning service decides where
a unit of work ends.
"""

from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from smartmess.core.exceptions import DuplicateEntryError
from smartmess.core.logging import get_logger
from smartmess.models.base.base_model import BaseModel

logger = get_logger(__name__)

ModelType = TypeVar("ModelType", bound=BaseModel)


class BaseRepository(Generic[ModelType]):
    """
    Generic repository over one model class.
    """

    def __init__(self, model: Type[ModelType], db: Session):
        self.model = model
        self.db = db

    # ==================== Create Operations ====================

    def create(self, entity: ModelType) -> ModelType:
        """
        Add an entity and flush it so generated ids and defaults are populated.

        Raises:
            DuplicateEntryError: If a unique constraint rejects the row
        """
        try:
            self.db.add(entity)
            self.db.flush()
            logger.debug(f"Created {self.model.__name__} with id: {entity.id}")
            return entity
        except IntegrityError as e:
            raise DuplicateEntryError(f"{self.model.__name__} already exists") from e

    # ==================== Read Operations ====================

    def get_by_id(self, entity_id: Any) -> Optional[ModelType]:
        return self.db.get(self.model, entity_id)

    def get_for_update(self, entity_id: Any) -> Optional[ModelType]:
        """Load an entity holding a row lock where the database supports it"""
        stmt = select(self.model).where(self.model.id == entity_id).with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def find_one_by(self, **filters: Any) -> Optional[ModelType]:
        stmt = select(self.model).filter_by(**filters).limit(1)
        return self.db.execute(stmt).scalars().first()

