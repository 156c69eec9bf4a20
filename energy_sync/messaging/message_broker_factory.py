"""
Message Broker Factory
Creates the appropriate message broker instance based on configuration
"""

from typing import Optional

from energy_sync.core.config import Config, config
from energy_sync.core.logger import logger
from energy_sync.messaging.i_message_broker import IMessageBroker
from energy_sync.messaging.memory_broker import InMemoryBroker
from energy_sync.messaging.rabbitmq_broker import RabbitMQBroker
from energy_sync.messaging.topology import build_topology


class MessageBrokerFactory:
    """Factory for creating message broker instances"""

    @staticmethod
    def create(settings: Optional[Config] = None) -> IMessageBroker:
        """
        Create a message broker for the configured service role

        Returns:
            IMessageBroker implementation selected by MESSAGE_BROKER_TYPE
        """
        settings = settings or config
        broker_type = settings.message_broker_type.lower()
        topology = build_topology(settings)

        logger.info(
            f"Creating message broker: {broker_type}",
            metadata={
                "brokerType": broker_type,
                "role": settings.service_role.value,
                "transport": settings.sync_transport.value,
            },
        )

        if broker_type == "rabbitmq":
            return RabbitMQBroker(
                settings.rabbitmq_url,
                topology,
                prefetch_count=settings.prefetch_count,
                reconnect_delay=settings.reconnect_delay,
            )

        elif broker_type == "memory":
            return InMemoryBroker(topology)

        else:
            raise ValueError(
                f"Unsupported message broker type: {broker_type}. "
                f"Supported types: rabbitmq, memory"
            )
