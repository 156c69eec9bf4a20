"""
Service-local projection stores
"""

from .base import ProjectionRepository
from .devices import DeviceRepository
from .hourly_consumption import HourlyConsumptionRepository, truncate_to_hour
from .monitored_devices import MonitoredDeviceRepository
from .synced_users import SyncedUserRepository
from .user_profiles import UserProfileRepository

__all__ = [
    "ProjectionRepository",
    "DeviceRepository",
    "HourlyConsumptionRepository",
    "truncate_to_hour",
    "MonitoredDeviceRepository",
    "SyncedUserRepository",
    "UserProfileRepository",
]
