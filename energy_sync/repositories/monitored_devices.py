"""
Devices known to the monitoring service
"""

from datetime import datetime, timezone

from motor.motor_asyncio import AsyncIOMotorDatabase

from energy_sync.core.logger import logger
from energy_sync.events.models import DevicePayload
from energy_sync.repositories.base import ProjectionRepository
from energy_sync.repositories.hourly_consumption import HourlyConsumptionRepository


class MonitoredDeviceRepository(ProjectionRepository):
    collection_name = "monitored_devices"
    key_field = "device_id"

    def __init__(self, database: AsyncIOMotorDatabase, hourly: HourlyConsumptionRepository):
        super().__init__(database)
        self.hourly = hourly

    async def create(self, payload: DevicePayload) -> bool:
        return await self._insert_ignore({
            "device_id": payload.id,
            "name": payload.name,
            "max_consumption": payload.max_consumption,
            "registered_at": datetime.now(timezone.utc),
        })

    async def delete(self, entity_id: int) -> bool:
        """Drop the device and all of its historical consumption"""
        cleared = await self.hourly.delete_for_device(entity_id)
        result = await self.collection.delete_one({"device_id": entity_id})
        logger.info(
            f"Cleared {cleared} hourly bucket(s) of deleted device {entity_id}",
            metadata={"event": "device_history_cleared", "deviceId": entity_id, "buckets": cleared},
        )
        return result.deleted_count > 0
