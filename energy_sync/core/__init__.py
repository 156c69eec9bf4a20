"""
Core module initialization
"""

from .config import config, Config, ServiceRole, SyncTransport
from .errors import (
    ErrorResponse,
    BrokerError,
    BrokerNotConnectedError,
    UnknownDestinationError,
    MalformedEventError,
)
from .logger import logger

__all__ = [
    "config",
    "Config",
    "ServiceRole",
    "SyncTransport",
    "ErrorResponse",
    "BrokerError",
    "BrokerNotConnectedError",
    "UnknownDestinationError",
    "MalformedEventError",
    "logger",
]
