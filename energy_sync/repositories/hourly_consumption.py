"""
Hourly energy consumption buckets of the monitoring service
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import List

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, IndexModel
from pymongo.errors import DuplicateKeyError

from energy_sync.core.logger import logger


def truncate_to_hour(timestamp: datetime) -> datetime:
    """Start of the UTC hour containing ``timestamp`` (naive values are UTC)"""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc).replace(minute=0, second=0, microsecond=0)


class HourlyConsumptionRepository:
    """One accumulator per (device_id, hour_start)"""

    def __init__(self, database: AsyncIOMotorDatabase):
        self.collection = database["hourly_consumption"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_indexes([
            IndexModel(
                [("device_id", ASCENDING), ("hour_start", ASCENDING)],
                unique=True,
                name="device_hour_unique",
            ),
        ])

    async def add_measurement(self, device_id: int, timestamp: datetime, value: float) -> datetime:
        """
        Add ``value`` to the device's bucket for the hour of ``timestamp``

        Single atomic upsert with ``$inc``; the bucket is created if absent.
        Two first writers racing on the same bucket can make one upsert fail
        with a duplicate key; the bucket exists by then, so retrying applies
        the increment instead of losing it.

        Returns:
            The hour bucket the value was added to
        """
        hour_start = truncate_to_hour(timestamp)
        query = {"device_id": device_id, "hour_start": hour_start}
        update = {"$inc": {"energy_consumed": value}}

        try:
            await self.collection.update_one(query, update, upsert=True)
        except DuplicateKeyError:
            logger.debug(
                f"Concurrent insert of bucket {device_id}@{hour_start.isoformat()}, retrying increment",
                metadata={"event": "hourly_bucket_race"},
            )
            await self.collection.update_one(query, update, upsert=True)

        return hour_start

    async def delete_for_device(self, device_id: int) -> int:
        result = await self.collection.delete_many({"device_id": device_id})
        return result.deleted_count

    async def count_for_device(self, device_id: int) -> int:
        return await self.collection.count_documents({"device_id": device_id})

    async def get_bucket(self, device_id: int, hour_start: datetime):
        return await self.collection.find_one(
            {"device_id": device_id, "hour_start": truncate_to_hour(hour_start)},
            {"_id": 0},
        )

    async def daily_consumption(self, device_id: int, day: date) -> List[dict]:
        """Hourly buckets of one UTC day, oldest first"""
        start = datetime.combine(day, time.min, tzinfo=timezone.utc)
        end = start + timedelta(days=1)
        cursor = self.collection.find(
            {"device_id": device_id, "hour_start": {"$gte": start, "$lt": end}},
            {"_id": 0, "hour_start": 1, "energy_consumed": 1},
        ).sort("hour_start", ASCENDING)
        return await cursor.to_list(length=None)
