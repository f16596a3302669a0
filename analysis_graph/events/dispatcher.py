"""
events/dispatcher.py - Per-node change dispatcher.

Instance-scoped: every AnalysisNode owns one. Handlers subscribe to one or
more keys (attribute names, or SOURCES_KEY) and optionally to everything.
Subscriptions can carry a context object so that everything bound by one
owner can be dropped in a single call.

INVARIANT: A handler runs at most once per emitted event, even when it is
subscribed to several of the event's keys.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Union
import logging

from .events import NodeEvent


logger = logging.getLogger(__name__)


EventHandler = Callable[[NodeEvent], None]

WILDCARD = "*"


@dataclass
class Subscription:
    """A handler bound to a set of keys."""
    handler: EventHandler
    keys: FrozenSet[str]
    context: Any = None
    subscription_id: str = ""

    def matches(self, event_keys: FrozenSet[str]) -> bool:
        return WILDCARD in self.keys or bool(self.keys & event_keys)


class ChangeDispatcher:
    """
    Dispatches node events to handlers keyed by attribute name.

    Usage:
        dispatcher = ChangeDispatcher(node_id="a1")
        dispatcher.subscribe(["radius", "source"], handler, context=self)
        dispatcher.emit(AttributesChangedEvent(changes={"radius": (1, 2)}))
        dispatcher.unsubscribe_context(self)
    """

    def __init__(self, node_id: Optional[str] = None, max_history: int = 100):
        self._node_id = node_id
        self._max_history = max_history
        self._subscriptions: List[Subscription] = []
        self._history: List[NodeEvent] = []
        self._subscription_counter = 0

    @property
    def node_id(self) -> Optional[str]:
        return self._node_id

    def subscribe(
        self,
        keys: Union[str, Iterable[str]],
        handler: EventHandler,
        context: Any = None,
    ) -> str:
        """
        Subscribe a handler to one or more keys.

        Args:
            keys: Attribute name or names
            handler: Callback function(event) -> None
            context: Owner of the subscription, for unsubscribe_context

        Returns:
            Subscription ID, or "" if nothing was subscribed
        """
        if isinstance(keys, str):
            keys = [keys]
        key_set = frozenset(keys)
        if not key_set:
            return ""

        for sub in self._subscriptions:
            if sub.handler == handler and sub.keys == key_set and sub.context is context:
                return ""

        self._subscription_counter += 1
        sub_id = f"sub_{self._subscription_counter}"
        self._subscriptions.append(Subscription(
            handler=handler,
            keys=key_set,
            context=context,
            subscription_id=sub_id,
        ))
        logger.debug(f"[{self._node_id}] {sub_id} bound to {sorted(key_set)}")
        return sub_id

    def subscribe_all(self, handler: EventHandler, context: Any = None) -> str:
        """Subscribe a handler to every event."""
        return self.subscribe(WILDCARD, handler, context=context)

    def unsubscribe(self, keys: Union[str, Iterable[str]], handler: EventHandler) -> bool:
        """
        Remove a handler from the given keys.

        Returns:
            True if any subscription was changed
        """
        if isinstance(keys, str):
            keys = [keys]
        key_set = frozenset(keys)
        changed = False
        remaining = []

        for sub in self._subscriptions:
            if sub.handler == handler and sub.keys & key_set:
                changed = True
                left = sub.keys - key_set
                if left:
                    sub.keys = left
                    remaining.append(sub)
                continue
            remaining.append(sub)

        self._subscriptions = remaining
        return changed

    def unsubscribe_context(self, context: Any) -> int:
        """
        Remove every subscription made with the given context.

        Returns:
            Number of subscriptions removed
        """
        before = len(self._subscriptions)
        self._subscriptions = [s for s in self._subscriptions if s.context is not context]
        removed = before - len(self._subscriptions)
        if removed:
            logger.debug(f"[{self._node_id}] unbound {removed} subscription(s)")
        return removed

    def emit(self, event: NodeEvent) -> None:
        """
        Deliver an event to every matching handler, in subscription order.

        The set of handlers is fixed before the first one runs, so handlers
        that rebind subscriptions only affect later events.
        """
        self._history.append(event)
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history:]

        event_keys = event.keys
        handlers: List[EventHandler] = []
        for sub in self._subscriptions:
            if sub.matches(event_keys) and sub.handler not in handlers:
                handlers.append(sub.handler)

        logger.debug(
            f"[{self._node_id}] emitting {event.event_type.value} "
            f"keys={sorted(event_keys)} to {len(handlers)} handler(s)"
        )

        for handler in handlers:
            handler(event)

    def get_history(self, limit: int = 20) -> List[NodeEvent]:
        return self._history[-limit:]

    def clear_history(self) -> None:
        self._history.clear()

    @property
    def handler_count(self) -> int:
        """Number of active subscriptions."""
        return len(self._subscriptions)

    @property
    def event_count(self) -> int:
        return len(self._history)

    def get_handler_summary(self) -> Dict[str, int]:
        """Map each key to the number of subscriptions listening on it."""
        summary: Dict[str, int] = {}
        for sub in self._subscriptions:
            for key in sub.keys:
                summary[key] = summary.get(key, 0) + 1
        return summary

    def count_for_context(self, context: Any) -> int:
        return sum(1 for s in self._subscriptions if s.context is context)
