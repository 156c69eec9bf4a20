"""
RabbitMQ Broker Implementation
Connection manager for the sync fabric using aio-pika: one connection and one
channel per process, topology asserted on every connect, reconnect forever on
a fixed delay.
"""

import asyncio
from typing import Any, Dict, Optional

import aio_pika
from aio_pika.abc import AbstractChannel, AbstractConnection, AbstractExchange, AbstractQueue

from energy_sync.core.errors import BrokerNotConnectedError, UnknownDestinationError
from energy_sync.core.logger import logger
from energy_sync.messaging.i_message_broker import ConnectionState, IMessageBroker, MessageHandler
from energy_sync.messaging.topology import Destination, DestinationKind, Topology


class RabbitMQBroker(IMessageBroker):
    """RabbitMQ implementation of IMessageBroker with a supervising reconnect loop"""

    def __init__(
        self,
        rabbitmq_url: str,
        topology: Topology,
        prefetch_count: int = 1,
        reconnect_delay: float = 5.0,
        heartbeat: int = 600,
    ):
        """
        Initialize RabbitMQ broker

        Args:
            rabbitmq_url: RabbitMQ connection URL
            topology: Exchanges and queues to assert on each connect
            prefetch_count: Unacknowledged deliveries allowed per consumer
            reconnect_delay: Seconds to wait between connection attempts
            heartbeat: AMQP heartbeat interval in seconds
        """
        self.rabbitmq_url = rabbitmq_url
        self.topology = topology
        self.prefetch_count = prefetch_count
        self.reconnect_delay = reconnect_delay
        self.heartbeat = heartbeat

        self.connection: Optional[AbstractConnection] = None
        self.channel: Optional[AbstractChannel] = None
        self.exchanges: Dict[str, AbstractExchange] = {}
        self.queues: Dict[str, AbstractQueue] = {}
        self.consumers: Dict[str, MessageHandler] = {}

        self._state = ConnectionState.DISCONNECTED
        self._stopping = False
        self._closed: Optional[asyncio.Event] = None
        self.connect_attempts = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return (
            self._state != ConnectionState.DISCONNECTED
            and self.channel is not None
            and not self.channel.is_closed
        )

    def consume(self, queue_name: str, handler: MessageHandler) -> None:
        """Register handler for a queue; started on every (re)connect"""
        if all(q.name != queue_name for q in self.topology.queues):
            raise UnknownDestinationError(f"Queue '{queue_name}' is not part of the topology")
        self.consumers[queue_name] = handler
        logger.debug(f"Registered consumer for queue: {queue_name}")

    async def connect(self) -> None:
        """Open connection and channel, then assert the topology"""
        self.connect_attempts += 1
        logger.info(
            "Connecting to RabbitMQ...",
            metadata={"event": "broker_connecting", "attempt": self.connect_attempts},
        )

        self._closed = asyncio.Event()
        self.connection = await aio_pika.connect(self.rabbitmq_url, heartbeat=self.heartbeat)
        self.connection.close_callbacks.add(self._on_closed)

        # No publisher confirms: publishing is fire-and-forget
        self.channel = await self.connection.channel(publisher_confirms=False)
        self.channel.close_callbacks.add(self._on_closed)
        await self.channel.set_qos(prefetch_count=self.prefetch_count)

        await self._declare_topology()

        self._state = ConnectionState.CONNECTED
        logger.info(
            "RabbitMQ connected and topology asserted",
            metadata={
                "event": "broker_connected",
                "exchanges": list(self.exchanges),
                "queues": list(self.queues),
            },
        )

    async def _declare_topology(self) -> None:
        self.exchanges = {}
        self.queues = {}

        for name in self.topology.exchanges:
            self.exchanges[name] = await self.channel.declare_exchange(
                name, aio_pika.ExchangeType.FANOUT, durable=True
            )

        for declaration in self.topology.queues:
            queue = await self.channel.declare_queue(
                declaration.name,
                durable=declaration.durable,
                arguments=declaration.arguments or None,
            )
            if declaration.bind_to:
                await queue.bind(self.exchanges[declaration.bind_to], routing_key="")
            self.queues[declaration.name] = queue

    async def _start_consumers(self) -> None:
        for queue_name, handler in self.consumers.items():
            await self.queues[queue_name].consume(handler, no_ack=False)
            logger.info(f"Consumer started on queue: {queue_name}")

        self._state = ConnectionState.RUNNING

    def _on_closed(self, sender: Any, exc: Optional[BaseException] = None) -> None:
        if exc is not None:
            logger.error("RabbitMQ connection lost", error=exc, metadata={"event": "broker_disconnected"})
        if self._closed is not None:
            self._closed.set()

    async def run(self) -> None:
        """Connect and keep reconnecting until stop() is called"""
        self._stopping = False

        while not self._stopping:
            try:
                await self.connect()
                await self._start_consumers()
                await self._closed.wait()
            except asyncio.CancelledError:
                await self._teardown()
                raise
            except Exception as e:
                logger.error(
                    "Failed to connect to RabbitMQ",
                    error=e,
                    metadata={"event": "broker_connect_failed", "attempt": self.connect_attempts},
                )

            await self._teardown()
            if self._stopping:
                break

            logger.warning(
                f"Reconnecting to RabbitMQ in {self.reconnect_delay}s",
                metadata={"event": "broker_reconnect_scheduled"},
            )
            await asyncio.sleep(self.reconnect_delay)

    async def _teardown(self) -> None:
        self._state = ConnectionState.DISCONNECTED
        connection, self.connection, self.channel = self.connection, None, None
        self.exchanges = {}
        self.queues = {}

        if connection is not None and not connection.is_closed:
            try:
                await connection.close()
            except Exception as e:
                logger.warning(f"Error closing RabbitMQ connection: {e}")

    async def stop(self) -> None:
        """Close RabbitMQ connection and end the supervising loop"""
        logger.info("Stopping RabbitMQ broker...")
        self._stopping = True
        if self._closed is not None:
            self._closed.set()
        await self._teardown()

    async def publish(
        self,
        destination: Destination,
        body: bytes,
        message_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        if not self.connected:
            raise BrokerNotConnectedError("RabbitMQ channel not available")

        message = aio_pika.Message(
            body=body,
            content_type="application/json",
            delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            message_id=message_id,
            correlation_id=correlation_id,
        )

        if destination.kind == DestinationKind.EXCHANGE:
            exchange = self.exchanges.get(destination.name)
            if exchange is None:
                raise UnknownDestinationError(f"Exchange '{destination.name}' is not part of the topology")
            await exchange.publish(message, routing_key="")
        else:
            await self.channel.default_exchange.publish(message, routing_key=destination.name)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "type": "rabbitmq",
            "state": self._state.value,
            "connected": self.connected,
            "connect_attempts": self.connect_attempts,
            "exchanges": list(self.topology.exchanges),
            "queues": [q.name for q in self.topology.queues],
            "consumers": list(self.consumers),
        }
