"""
Event publishing and consumption utilities
"""

from .consumers import MeasurementIngestionConsumer, SyncProjector
from .models import (
    DEVICE_PREFIX,
    USER_PREFIX,
    DomainEvent,
    EventType,
    Measurement,
    build_event,
    decode_envelope,
    parse_event,
    parse_measurement,
)
from .publishers import EventPublisher

__all__ = [
    # Models
    "DEVICE_PREFIX",
    "USER_PREFIX",
    "DomainEvent",
    "EventType",
    "Measurement",
    "build_event",
    "decode_envelope",
    "parse_event",
    "parse_measurement",
    # Publishers
    "EventPublisher",
    # Consumers
    "MeasurementIngestionConsumer",
    "SyncProjector",
]
