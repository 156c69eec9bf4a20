"""
Event synchronization fabric for the energy monitoring services
"""

__version__ = "1.0.0"
