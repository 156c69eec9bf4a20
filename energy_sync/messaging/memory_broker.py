"""In-process message fabric.

Same routing and settlement rules as the RabbitMQ topology the services use:
durable queues, fanout exchanges copying every message to each bound queue,
and explicit ack / nack(requeue) / reject per delivery. Rejected messages go
to the queues bound to the dead-letter exchange, or are discarded when none is
configured. Used for local runs
(MESSAGE_BROKER_TYPE=memory) and tests.

Deliveries happen one message at a time per queue, which is the prefetch=1
behaviour of the real consumers.
"""

import asyncio
import itertools
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from energy_sync.core.errors import BrokerNotConnectedError, UnknownDestinationError
from energy_sync.core.logger import logger
from energy_sync.messaging.i_message_broker import ConnectionState, IMessageBroker, MessageHandler
from energy_sync.messaging.topology import Destination, DestinationKind, Topology


class InMemoryMessage:
    """Delivered message exposing the settlement API of aio-pika's IncomingMessage"""

    def __init__(
        self,
        broker: "InMemoryBroker",
        queue_name: str,
        body: bytes,
        delivery_tag: int,
        message_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
        redelivered: bool = False,
    ):
        self._broker = broker
        self.queue_name = queue_name
        self.body = body
        self.delivery_tag = delivery_tag
        self.message_id = message_id
        self.correlation_id = correlation_id
        self.redelivered = redelivered
        self.settled: Optional[str] = None

    def _settle(self, outcome: str) -> None:
        if self.settled is not None:
            raise RuntimeError(f"Message {self.delivery_tag} already settled ({self.settled})")
        self.settled = outcome

    async def ack(self, multiple: bool = False) -> None:
        self._settle("ack")
        self._broker._acked(self)

    async def nack(self, multiple: bool = False, requeue: bool = True) -> None:
        self._settle("nack")
        self._broker._rejected(self, requeue)

    async def reject(self, requeue: bool = False) -> None:
        self._settle("reject")
        self._broker._rejected(self, requeue)


class InMemoryBroker(IMessageBroker):
    """In-memory implementation of IMessageBroker"""

    def __init__(self, topology: Topology):
        self.topology = topology
        self.queues: Dict[str, Deque[InMemoryMessage]] = {}
        self.bindings: Dict[str, List[str]] = {}
        self.consumers: Dict[str, MessageHandler] = {}
        self.unacked: Dict[int, InMemoryMessage] = {}
        self.dropped = 0
        self.published: List[tuple] = []

        self._state = ConnectionState.DISCONNECTED
        self._tags = itertools.count(1)
        self._wakeup = asyncio.Event()
        self._stopping = False
        self._declare_topology()

    def _declare_topology(self) -> None:
        # Queues are durable, so they exist (and buffer) while disconnected
        for name in self.topology.exchanges:
            self.bindings.setdefault(name, [])
        for declaration in self.topology.queues:
            self.queues.setdefault(declaration.name, deque())
            if declaration.bind_to and declaration.name not in self.bindings[declaration.bind_to]:
                self.bindings[declaration.bind_to].append(declaration.name)

    @property
    def state(self) -> ConnectionState:
        return self._state

    def consume(self, queue_name: str, handler: MessageHandler) -> None:
        if queue_name not in self.queues:
            raise UnknownDestinationError(f"Queue '{queue_name}' is not part of the topology")
        self.consumers[queue_name] = handler

    async def start(self) -> None:
        """Connect without entering the delivery loop"""
        self._state = ConnectionState.RUNNING
        logger.info("In-memory broker running", metadata={"event": "broker_connected"})

    async def run(self) -> None:
        self._stopping = False
        await self.start()
        while not self._stopping:
            await self._wakeup.wait()
            self._wakeup.clear()
            while not self._stopping and await self.drain():
                # Yield so requeued messages do not starve other tasks
                await asyncio.sleep(0)

    async def stop(self) -> None:
        self._stopping = True
        self._state = ConnectionState.DISCONNECTED
        self._wakeup.set()

    def disconnect(self) -> None:
        """Simulate a lost connection: unacked deliveries go back to their queues"""
        self._state = ConnectionState.DISCONNECTED
        for message in list(self.unacked.values()):
            self._rejected(message, requeue=True)

    async def publish(
        self,
        destination: Destination,
        body: bytes,
        message_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        if not self.connected:
            raise BrokerNotConnectedError("In-memory broker is not connected")

        if destination.kind == DestinationKind.EXCHANGE:
            if destination.name not in self.bindings:
                raise UnknownDestinationError(f"Exchange '{destination.name}' is not part of the topology")
            targets = list(self.bindings[destination.name])
        else:
            if destination.name not in self.queues:
                raise UnknownDestinationError(f"Queue '{destination.name}' is not part of the topology")
            targets = [destination.name]

        self.published.append((destination, body))
        for queue_name in targets:
            self._enqueue(queue_name, body, message_id, correlation_id)
        self._wakeup.set()

    def _enqueue(
        self,
        queue_name: str,
        body: bytes,
        message_id: Optional[str],
        correlation_id: Optional[str],
        redelivered: bool = False,
    ) -> None:
        message = InMemoryMessage(
            self,
            queue_name,
            body,
            delivery_tag=next(self._tags),
            message_id=message_id,
            correlation_id=correlation_id,
            redelivered=redelivered,
        )
        self.queues[queue_name].append(message)

    async def drain(self, queue_name: Optional[str] = None) -> int:
        """
        Deliver every message that is pending right now

        Messages requeued during this call wait for the next one, so a
        permanently failing handler cannot spin forever inside a single drain.

        Returns:
            Number of deliveries made
        """
        if self._state != ConnectionState.RUNNING:
            return 0

        names = [queue_name] if queue_name else list(self.queues)
        delivered = 0
        for name in names:
            handler = self.consumers.get(name)
            if handler is None:
                continue
            for _ in range(len(self.queues[name])):
                message = self.queues[name].popleft()
                self.unacked[message.delivery_tag] = message
                delivered += 1
                await handler(message)
        return delivered

    def _acked(self, message: InMemoryMessage) -> None:
        self.unacked.pop(message.delivery_tag, None)

    def _rejected(self, message: InMemoryMessage, requeue: bool) -> None:
        self.unacked.pop(message.delivery_tag, None)
        if requeue:
            self._enqueue(
                message.queue_name,
                message.body,
                message.message_id,
                message.correlation_id,
                redelivered=True,
            )
            self._wakeup.set()
            return

        # Dead-lettered like RabbitMQ: copied to the queues bound to the DLX, else discarded
        targets = self.bindings.get(self.topology.dead_letter_exchange or "", [])
        for queue_name in targets:
            self._enqueue(queue_name, message.body, message.message_id, message.correlation_id)
        if not targets:
            self.dropped += 1
            logger.warning(
                f"Discarded rejected message {message.message_id} from {message.queue_name}",
                metadata={"event": "message_discarded", "queue": message.queue_name},
            )

    @property
    def dead_letters(self) -> List[InMemoryMessage]:
        """Messages retained by the dead-letter queues"""
        names = self.bindings.get(self.topology.dead_letter_exchange or "", [])
        return [message for name in names for message in self.queues[name]]

    def pending(self, queue_name: str) -> int:
        return len(self.queues[queue_name])

    def get_stats(self) -> Dict[str, Any]:
        return {
            "type": "memory",
            "state": self._state.value,
            "connected": self.connected,
            "queues": {name: len(messages) for name, messages in self.queues.items()},
            "unacked": len(self.unacked),
            "dead_letters": len(self.dead_letters),
            "dropped": self.dropped,
        }
