"""
Measurement ingestion consumer
Folds raw device samples into hourly consumption buckets
"""

from typing import Any

from pymongo.errors import DuplicateKeyError, PyMongoError

from energy_sync.core.errors import MalformedEventError
from energy_sync.core.logger import logger, set_correlation_id
from energy_sync.events.models import parse_measurement
from energy_sync.repositories.hourly_consumption import HourlyConsumptionRepository


class MeasurementIngestionConsumer:
    """Consumer of the raw measurement queue; acks after the bucket write"""

    def __init__(self, hourly: HourlyConsumptionRepository):
        self.hourly = hourly

    async def handle_message(self, message: Any) -> None:
        set_correlation_id(message.correlation_id or message.message_id)

        try:
            measurement = parse_measurement(message.body)
        except MalformedEventError as e:
            logger.error(
                "Rejecting malformed measurement",
                error=e,
                metadata={"event": "event_rejected", "messageId": message.message_id},
            )
            await message.reject(requeue=False)
            return

        try:
            hour_start = await self.hourly.add_measurement(
                measurement.device_id,
                measurement.timestamp,
                measurement.measurement_value,
            )
        except DuplicateKeyError as e:
            # Still conflicting after the retry inside add_measurement
            logger.error(
                f"Dropping measurement for device {measurement.device_id}",
                error=e,
                metadata={"event": "measurement_dropped", "deviceId": measurement.device_id},
            )
        except PyMongoError as e:
            logger.error(
                f"DB error on hourly aggregation for device {measurement.device_id}, requeueing",
                error=e,
                metadata={"event": "event_requeued", "deviceId": measurement.device_id},
            )
            await message.nack(requeue=True)
            return
        except Exception as e:
            logger.error(
                f"Rejecting measurement for device {measurement.device_id}, aggregation failed",
                error=e,
                metadata={"event": "event_rejected", "deviceId": measurement.device_id},
            )
            await message.reject(requeue=False)
            return
        else:
            logger.debug(
                f"Updated hourly sum for device {measurement.device_id} at {hour_start.isoformat()}: "
                f"+{measurement.measurement_value} kWh",
                metadata={"event": "measurement_aggregated", "deviceId": measurement.device_id},
            )

        await message.ack()
