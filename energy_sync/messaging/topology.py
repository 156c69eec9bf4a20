"""
Fabric topology: the durable queues, exchanges and bindings a service asserts
on every (re)connect
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from energy_sync.core.config import Config, ServiceRole, SyncTransport


class DestinationKind(str, Enum):
    QUEUE = "queue"
    EXCHANGE = "exchange"


@dataclass(frozen=True)
class Destination:
    """Where a publisher sends its messages"""

    kind: DestinationKind
    name: str

    @classmethod
    def queue(cls, name: str) -> "Destination":
        return cls(DestinationKind.QUEUE, name)

    @classmethod
    def exchange(cls, name: str) -> "Destination":
        return cls(DestinationKind.EXCHANGE, name)


@dataclass(frozen=True)
class QueueDeclaration:
    name: str
    durable: bool = True
    bind_to: Optional[str] = None  # fanout exchange, bound with routing key ""
    arguments: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Topology:
    """Everything a service declares before consumers start"""

    exchanges: List[str] = field(default_factory=list)
    queues: List[QueueDeclaration] = field(default_factory=list)
    dead_letter_exchange: Optional[str] = None

    def add_exchange(self, name: str) -> None:
        if name not in self.exchanges:
            self.exchanges.append(name)

    def add_queue(self, declaration: QueueDeclaration) -> None:
        if all(q.name != declaration.name for q in self.queues):
            self.queues.append(declaration)


def _queue_arguments(settings: Config) -> Dict[str, Any]:
    if settings.dead_letter_exchange:
        return {"x-dead-letter-exchange": settings.dead_letter_exchange}
    return {}


def dead_letter_queue(exchange: str) -> str:
    """Durable queue retaining what consumers reject"""
    return f"{exchange}_queue"


def sync_destination(settings: Config) -> Destination:
    """Destination sync events are published to"""
    if settings.sync_transport == SyncTransport.QUEUE:
        return Destination.queue(settings.sync_queue)
    return Destination.exchange(settings.sync_exchange)


def sync_consumer_queue(settings: Config) -> str:
    """Queue the sync projector of this service consumes from"""
    if settings.sync_transport == SyncTransport.QUEUE:
        return settings.sync_queue
    return settings.private_sync_queue


def build_topology(settings: Config) -> Topology:
    """
    Topology for the role configured in ``settings``

    Publishers (identity, devices) declare the sync destination. Projecting
    services (devices, users_data, monitoring) declare the queue they consume
    from; in exchange mode that is a private durable queue bound to the
    fanout exchange. Monitoring also declares the raw measurement queue.
    With a dead-letter exchange configured, every consumer queue points at it
    and a durable queue bound to it keeps the rejected messages.
    """
    topology = Topology(dead_letter_exchange=settings.dead_letter_exchange)
    role = settings.service_role
    arguments = _queue_arguments(settings)

    if settings.dead_letter_exchange:
        topology.add_exchange(settings.dead_letter_exchange)
        topology.add_queue(
            QueueDeclaration(
                dead_letter_queue(settings.dead_letter_exchange),
                bind_to=settings.dead_letter_exchange,
            )
        )

    if settings.sync_transport == SyncTransport.QUEUE:
        # Shared sync queue; publishers and consumers assert the same queue
        topology.add_queue(QueueDeclaration(settings.sync_queue, arguments=arguments))
    else:
        topology.add_exchange(settings.sync_exchange)
        if role != ServiceRole.IDENTITY:
            topology.add_queue(
                QueueDeclaration(
                    settings.private_sync_queue,
                    bind_to=settings.sync_exchange,
                    arguments=arguments,
                )
            )

    if role == ServiceRole.MONITORING:
        topology.add_queue(QueueDeclaration(settings.data_queue, arguments=arguments))

    return topology
