"""
Event tracking system for the desktop backend
"""

from .event_bus import event_bus, EventBus, EventTypes, SystemEvent

__all__ = ['event_bus', 'EventBus', 'EventTypes', 'SystemEvent']
