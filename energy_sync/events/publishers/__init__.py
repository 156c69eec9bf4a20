"""
Event publishers
"""

from .publisher import EventPublisher

__all__ = ["EventPublisher"]
