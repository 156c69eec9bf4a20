"""
Base class for local projection collections
"""

from abc import ABC, abstractmethod
from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from energy_sync.core.logger import logger


class ProjectionRepository(ABC):
    """
    Collection holding this service's copy of a foreign entity

    Projections are keyed by the foreign entity id and must stay idempotent
    under redelivery: create is insert-or-ignore, update overwrites, delete is
    unconditional.
    """

    collection_name: str
    key_field: str

    def __init__(self, database: AsyncIOMotorDatabase):
        self.database = database
        self.collection = database[self.collection_name]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index(self.key_field, unique=True, name=f"{self.key_field}_unique")

    async def _insert_ignore(self, document: dict) -> bool:
        """Insert document; an existing key is success. Returns True if inserted"""
        try:
            await self.collection.insert_one(document)
            return True
        except DuplicateKeyError:
            logger.debug(
                f"{self.collection_name}: {self.key_field}={document[self.key_field]} already projected",
                metadata={"event": "projection_exists"},
            )
            return False

    @abstractmethod
    async def create(self, payload: Any) -> bool:
        """Project a newly created entity"""

    async def update(self, payload: Any) -> bool:
        """Projections without mutable fields have nothing to update"""
        return False

    @abstractmethod
    async def delete(self, entity_id: int) -> bool:
        """Remove the projection (and anything this service keys on it)"""

    async def get(self, entity_id: int):
        return await self.collection.find_one({self.key_field: entity_id}, {"_id": 0})

    async def exists(self, entity_id: int) -> bool:
        return await self.collection.count_documents({self.key_field: entity_id}, limit=1) > 0
