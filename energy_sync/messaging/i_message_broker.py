"""
Message Broker Interface
Defines the capability every fabric implementation exposes to services:
connection state, publish and consume, plus the supervising lifecycle.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from energy_sync.messaging.topology import Destination

# Receives the delivered message and settles it (ack / nack / reject) itself
MessageHandler = Callable[[Any], Awaitable[None]]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"  # topology asserted
    RUNNING = "running"  # consumers started


class IMessageBroker(ABC):
    """Abstract base class for message broker implementations"""

    @property
    @abstractmethod
    def state(self) -> ConnectionState:
        """Current lifecycle state"""

    @property
    def connected(self) -> bool:
        return self.state != ConnectionState.DISCONNECTED

    @abstractmethod
    def consume(self, queue_name: str, handler: MessageHandler) -> None:
        """
        Register a consumer for a declared queue

        Consumers are (re)started every time the topology is asserted, so
        registration may happen before the first connection.
        """

    @abstractmethod
    async def publish(
        self,
        destination: Destination,
        body: bytes,
        message_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        """
        Hand a persistent message to the fabric

        Raises:
            BrokerNotConnectedError: no open channel
            UnknownDestinationError: exchange not part of the topology
        """

    @abstractmethod
    async def run(self) -> None:
        """Supervising loop: connect, assert topology, start consumers, repeat on loss"""

    @abstractmethod
    async def stop(self) -> None:
        """Stop supervising and close the connection"""

    def is_healthy(self) -> bool:
        """Check if broker connection is healthy"""
        return self.state == ConnectionState.RUNNING

    @abstractmethod
    def get_stats(self) -> Dict[str, Any]:
        """Connection and topology snapshot for health endpoints"""
