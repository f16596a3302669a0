"""
events/ - Node change events and the per-node dispatcher.
"""

from .events import (
    NodeEventType,
    NodeEvent,
    AttributesChangedEvent,
    SourceChangedEvent,
    SOURCES_KEY,
)
from .dispatcher import ChangeDispatcher, Subscription, EventHandler, WILDCARD

__all__ = [
    "NodeEventType",
    "NodeEvent",
    "AttributesChangedEvent",
    "SourceChangedEvent",
    "SOURCES_KEY",
    "ChangeDispatcher",
    "Subscription",
    "EventHandler",
    "WILDCARD",
]
