"""
Event consumers
"""

from .measurement_consumer import MeasurementIngestionConsumer
from .sync_projector import SyncProjector

__all__ = ["MeasurementIngestionConsumer", "SyncProjector"]
