"""
Sync projector
Applies sync events of interest to a local projection and settles the
delivery only once the write is durable.
"""

from typing import Any

from pymongo.errors import DuplicateKeyError, PyMongoError

from energy_sync.core.errors import MalformedEventError
from energy_sync.core.logger import logger, set_correlation_id
from energy_sync.events.models import DomainEvent, ProjectionAction, decode_envelope, parse_event
from energy_sync.repositories.base import ProjectionRepository


class SyncProjector:
    """
    Consumer for one projection

    Settlement rules:
    - event type outside ``prefix``: ack, no write
    - body that is not a valid event: reject without requeue
    - write succeeded, or failed on a duplicate key: ack
    - any other database error: nack with requeue, redelivered until the
      store is reachable again
    - any other error while applying: reject without requeue
    """

    def __init__(self, name: str, prefix: str, projection: ProjectionRepository):
        self.name = name
        self.prefix = prefix
        self.projection = projection

    def is_interested(self, event_type: str) -> bool:
        return event_type.startswith(self.prefix)

    async def handle_message(self, message: Any) -> None:
        """Broker callback: process one delivery and ack / nack / reject it"""
        correlation_id = message.correlation_id or message.message_id
        set_correlation_id(correlation_id)

        try:
            envelope = decode_envelope(message.body)
            if not self.is_interested(envelope["type"]):
                logger.debug(
                    f"[{self.name}] Ignoring {envelope['type']}",
                    metadata={"event": "event_ignored", "eventType": envelope["type"]},
                )
                await message.ack()
                return
            event = parse_event(envelope)
        except MalformedEventError as e:
            logger.error(
                f"[{self.name}] Rejecting malformed sync message",
                error=e,
                metadata={"event": "event_rejected", "messageId": message.message_id},
            )
            await message.reject(requeue=False)
            return

        try:
            await self.apply(event)
        except DuplicateKeyError:
            logger.info(
                f"[{self.name}] {event.type} for ID {event.entity_id} already applied",
                metadata={"event": "event_projected", "eventType": event.type, "duplicate": True},
            )
        except PyMongoError as e:
            logger.error(
                f"[{self.name}] Failed to process {event.type} for ID {event.entity_id}, requeueing",
                error=e,
                metadata={
                    "event": "event_requeued",
                    "eventType": event.type,
                    "redelivered": bool(message.redelivered),
                },
            )
            await message.nack(requeue=True)
            return
        except Exception as e:
            # Unclassified failures are never requeued
            logger.error(
                f"[{self.name}] Rejecting {event.type} for ID {event.entity_id}, projection failed",
                error=e,
                metadata={"event": "event_rejected", "eventType": event.type, "messageId": message.message_id},
            )
            await message.reject(requeue=False)
            return

        await message.ack()

    async def apply(self, event: DomainEvent) -> None:
        """Run the projection operation for ``event``"""
        if event.action == ProjectionAction.CREATE:
            changed = await self.projection.create(event.data)
        elif event.action == ProjectionAction.UPDATE:
            changed = await self.projection.update(event.data)
        else:
            changed = await self.projection.delete(event.entity_id)

        logger.info(
            f"[{self.name}] Processed {event.type} for ID {event.entity_id}",
            metadata={"event": "event_projected", "eventType": event.type, "changed": changed},
        )
