"""
Sync event publisher
Used by the service that owns an entity to broadcast its changes
"""

import uuid
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel

from energy_sync.core.logger import logger
from energy_sync.events.models import EventType, build_event
from energy_sync.messaging.i_message_broker import IMessageBroker
from energy_sync.messaging.topology import Destination


class EventPublisher:
    """Publisher for sending domain events to the sync fabric"""

    def __init__(self, broker: IMessageBroker, destination: Destination, source: str):
        self.broker = broker
        self.destination = destination
        self.source = source

    async def publish(
        self,
        event_type: Union[EventType, str],
        data: Union[Dict[str, Any], BaseModel],
        correlation_id: Optional[str] = None,
    ) -> bool:
        """
        Publish an event to the fabric

        Best effort: the message is persistent once the broker has it, but a
        missing channel or broker error is only logged. Callers have already
        committed their own write and are not told about the loss beyond the
        return value.

        Args:
            event_type: One of the sync event types
            data: Payload matching the event type
            correlation_id: Optional correlation ID for tracing

        Returns:
            True if the message was handed to the broker, False otherwise

        Raises:
            ValueError: unknown event type or payload of the wrong shape
        """
        event = build_event(event_type, data)
        metadata = {
            "eventType": event.type,
            "entityId": event.entity_id,
            "destination": self.destination.name,
            "source": self.source,
        }

        try:
            await self.broker.publish(
                self.destination,
                event.to_message(),
                message_id=str(uuid.uuid4()),
                correlation_id=correlation_id,
            )
        except Exception as e:
            logger.error(
                f"Failed to publish sync event: {event.type} for ID {event.entity_id}",
                correlation_id=correlation_id,
                error=e,
                metadata={"event": "event_publish_failed", **metadata},
            )
            # Don't raise - publishing failures shouldn't break main flow
            return False

        logger.info(
            f"Event published: {event.type} for ID {event.entity_id}",
            correlation_id=correlation_id,
            metadata={"event": "event_published", **metadata},
        )
        return True

    async def publish_user_created(
        self,
        user_id: int,
        role: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
        avatar_url: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> bool:
        data = {"id": user_id, "role": role, "name": name, "email": email, "avatar_url": avatar_url}
        return await self.publish(EventType.USER_CREATED, data, correlation_id)

    async def publish_user_updated(
        self,
        user_id: int,
        role: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
        avatar_url: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> bool:
        data = {"id": user_id, "role": role, "name": name, "email": email, "avatar_url": avatar_url}
        return await self.publish(EventType.USER_UPDATED, data, correlation_id)

    async def publish_user_deleted(self, user_id: int, correlation_id: Optional[str] = None) -> bool:
        return await self.publish(EventType.USER_DELETED, {"id": user_id}, correlation_id)

    async def publish_device_created(
        self,
        device_id: int,
        name: str,
        max_consumption: float,
        correlation_id: Optional[str] = None,
    ) -> bool:
        data = {"id": device_id, "name": name, "max_consumption": max_consumption}
        return await self.publish(EventType.DEVICE_CREATED, data, correlation_id)

    async def publish_device_deleted(self, device_id: int, correlation_id: Optional[str] = None) -> bool:
        return await self.publish(EventType.DEVICE_DELETED, {"id": device_id}, correlation_id)
