"""
events/events.py - Node change events.

One AttributesChangedEvent is emitted per mutation of a node and carries
every attribute that changed in it. Listeners are keyed by attribute name,
so the event exposes the names it concerns through `keys`.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple
import uuid


class NodeEventType(str, Enum):
    """Types of node events."""
    ATTRIBUTES_CHANGED = "attributes_changed"
    SOURCE_CHANGED = "source_changed"


# Key under which source forwarding events are delivered
SOURCES_KEY = ":sources"


@dataclass
class NodeEvent:
    """Base class for node events."""
    event_id: str = field(default_factory=lambda: str(uuid.uuid4())[:12])
    event_type: NodeEventType = NodeEventType.ATTRIBUTES_CHANGED
    node_id: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def keys(self) -> FrozenSet[str]:
        return frozenset()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "node_id": self.node_id,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass
class AttributesChangedEvent(NodeEvent):
    """
    Emitted once per `set()` call that changed at least one attribute.

    `changes` maps attribute name to (previous value, new value).
    """
    event_type: NodeEventType = field(default=NodeEventType.ATTRIBUTES_CHANGED)
    changes: Dict[str, Tuple[Any, Any]] = field(default_factory=dict)

    @property
    def keys(self) -> FrozenSet[str]:
        return frozenset(self.changes)

    def changed(self, name: str) -> bool:
        return name in self.changes

    def previous(self, name: str) -> Any:
        return self.changes[name][0] if name in self.changes else None

    def current(self, name: str) -> Any:
        return self.changes[name][1] if name in self.changes else None

    def to_dict(self) -> Dict[str, Any]:
        base = super().to_dict()
        base.update({
            "changed": sorted(self.changes),
        })
        return base


@dataclass
class SourceChangedEvent(NodeEvent):
    """
    Emitted on a parent when one of its source nodes emitted an event.

    Carries the source attribute name and the original event.
    """
    event_type: NodeEventType = field(default=NodeEventType.SOURCE_CHANGED)
    source_name: str = ""
    source_id: Optional[str] = None
    source_event: Optional[NodeEvent] = None

    @property
    def keys(self) -> FrozenSet[str]:
        return frozenset([SOURCES_KEY])

    def to_dict(self) -> Dict[str, Any]:
        base = super().to_dict()
        base.update({
            "source_name": self.source_name,
            "source_id": self.source_id,
            "source_event": self.source_event.to_dict() if self.source_event else None,
        })
        return base
