"""
Existence markers for identity users, kept by the device registry
"""

from datetime import datetime, timezone

from motor.motor_asyncio import AsyncIOMotorDatabase

from energy_sync.events.models import UserPayload
from energy_sync.repositories.base import ProjectionRepository
from energy_sync.repositories.devices import DeviceRepository


class SyncedUserRepository(ProjectionRepository):
    """Bare ``user_id`` markers; devices may only be assigned to these"""

    collection_name = "synced_users"
    key_field = "user_id"

    def __init__(self, database: AsyncIOMotorDatabase, devices: DeviceRepository):
        super().__init__(database)
        self.devices = devices

    async def create(self, payload: UserPayload) -> bool:
        return await self._insert_ignore({"user_id": payload.id, "synced_at": datetime.now(timezone.utc)})

    async def delete(self, entity_id: int) -> bool:
        result = await self.collection.delete_one({"user_id": entity_id})
        await self.devices.detach_owner(entity_id)
        return result.deleted_count > 0
