"""
Device registry store: ownership of devices by synced users
"""

from motor.motor_asyncio import AsyncIOMotorDatabase

from energy_sync.core.errors import ErrorResponse
from energy_sync.core.logger import logger


class DeviceRepository:
    """Registry devices; ``user_id`` refers to a row of ``synced_users``"""

    def __init__(self, database: AsyncIOMotorDatabase):
        self.collection = database["devices"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index("device_id", unique=True, name="device_id_unique")
        await self.collection.create_index("user_id", name="user_id_idx")

    async def detach_owner(self, user_id: int) -> int:
        """Null the owner of every device of ``user_id`` (on delete set null)"""
        result = await self.collection.update_many({"user_id": user_id}, {"$set": {"user_id": None}})
        if result.modified_count:
            logger.info(
                f"Detached {result.modified_count} device(s) from deleted user {user_id}",
                metadata={"event": "devices_detached", "userId": user_id},
            )
        return result.modified_count

    async def assign_owner(self, device_id: int, user_id: int, synced_users) -> None:
        """
        Assign a device to a user known to this service

        Args:
            device_id: Registry device id
            user_id: Identity user id; must exist in the local projection
            synced_users: SyncedUserRepository used as the source of truth

        Raises:
            ErrorResponse: 404 if the user has not been synced or the device is unknown
        """
        if not await synced_users.exists(user_id):
            raise ErrorResponse("User not found", status_code=404, details={"userId": user_id})

        result = await self.collection.update_one({"device_id": device_id}, {"$set": {"user_id": user_id}})
        if result.matched_count == 0:
            raise ErrorResponse("Device not found", status_code=404, details={"deviceId": device_id})

    async def list_for_user(self, user_id: int):
        return await self.collection.find({"user_id": user_id}, {"_id": 0}).to_list(length=None)
