"""
Per-role wiring of publishers, projections and consumers onto the broker
"""

import asyncio
from typing import Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from energy_sync.core.config import Config, ServiceRole
from energy_sync.core.logger import logger
from energy_sync.events.consumers import MeasurementIngestionConsumer, SyncProjector
from energy_sync.events.models import DEVICE_PREFIX, USER_PREFIX
from energy_sync.events.publishers import EventPublisher
from energy_sync.messaging.i_message_broker import IMessageBroker
from energy_sync.messaging.topology import sync_consumer_queue, sync_destination
from energy_sync.repositories import (
    DeviceRepository,
    HourlyConsumptionRepository,
    MonitoredDeviceRepository,
    SyncedUserRepository,
    UserProfileRepository,
)

PUBLISHING_ROLES = {ServiceRole.IDENTITY, ServiceRole.DEVICES}


class SyncService:
    """Everything one service process contributes to synchronization"""

    def __init__(self, settings: Config, broker: IMessageBroker, database: AsyncIOMotorDatabase):
        self.settings = settings
        self.role = settings.service_role
        self.broker = broker
        self.database = database

        self.publisher: Optional[EventPublisher] = None
        self.projectors: List[SyncProjector] = []
        self.measurements: Optional[MeasurementIngestionConsumer] = None
        self.repositories: Dict[str, object] = {}

        self._wire()

    def _wire(self) -> None:
        if self.role in PUBLISHING_ROLES:
            self.publisher = EventPublisher(
                self.broker,
                sync_destination(self.settings),
                source=self.settings.service_name,
            )

        if self.role == ServiceRole.DEVICES:
            devices = DeviceRepository(self.database)
            synced_users = SyncedUserRepository(self.database, devices)
            self.repositories.update(devices=devices, synced_users=synced_users)
            self._add_projector("devices-user-sync", USER_PREFIX, synced_users)

        elif self.role == ServiceRole.USERS_DATA:
            profiles = UserProfileRepository(self.database)
            self.repositories.update(user_profiles=profiles)
            self._add_projector("users-data-sync", USER_PREFIX, profiles)

        elif self.role == ServiceRole.MONITORING:
            hourly = HourlyConsumptionRepository(self.database)
            monitored = MonitoredDeviceRepository(self.database, hourly)
            self.repositories.update(hourly_consumption=hourly, monitored_devices=monitored)
            self._add_projector("monitoring-device-sync", DEVICE_PREFIX, monitored)

            self.measurements = MeasurementIngestionConsumer(hourly)
            self.broker.consume(self.settings.data_queue, self.measurements.handle_message)

        logger.info(
            f"Sync wiring ready for role '{self.role.value}'",
            metadata={
                "publishes": self.publisher is not None,
                "projectors": [p.name for p in self.projectors],
                "ingestsMeasurements": self.measurements is not None,
            },
        )

    def _add_projector(self, name: str, prefix: str, projection) -> None:
        projector = SyncProjector(name, prefix, projection)
        self.broker.consume(sync_consumer_queue(self.settings), projector.handle_message)
        self.projectors.append(projector)

    async def ensure_indexes(self) -> bool:
        """Create unique indexes the idempotent projections rely on"""
        try:
            for repository in self.repositories.values():
                await repository.ensure_indexes()
        except PyMongoError as e:
            logger.error("Could not create projection indexes", error=e)
            return False
        return True

    async def run(self) -> None:
        """Ensure indexes, then supervise the broker connection"""
        # Idempotent CREATE depends on the unique indexes; do not consume without them
        while not await self.ensure_indexes():
            await asyncio.sleep(self.settings.reconnect_delay)
        await self.broker.run()

    async def stop(self) -> None:
        await self.broker.stop()


def create_sync_service(settings: Config, broker: IMessageBroker, database: AsyncIOMotorDatabase) -> SyncService:
    return SyncService(settings, broker, database)
