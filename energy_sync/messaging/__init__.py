"""
Message fabric: broker interface, implementations and topology
"""

from .i_message_broker import ConnectionState, IMessageBroker, MessageHandler
from .memory_broker import InMemoryBroker, InMemoryMessage
from .message_broker_factory import MessageBrokerFactory
from .rabbitmq_broker import RabbitMQBroker
from .topology import (
    Destination,
    DestinationKind,
    QueueDeclaration,
    Topology,
    build_topology,
    dead_letter_queue,
    sync_consumer_queue,
    sync_destination,
)

__all__ = [
    "ConnectionState",
    "IMessageBroker",
    "MessageHandler",
    "InMemoryBroker",
    "InMemoryMessage",
    "MessageBrokerFactory",
    "RabbitMQBroker",
    "Destination",
    "DestinationKind",
    "QueueDeclaration",
    "Topology",
    "build_topology",
    "dead_letter_queue",
    "sync_consumer_queue",
    "sync_destination",
]
