"""
analysis/model.py - Analysis node.

One vertex of the analysis dependency graph. A node holds a bag of
attributes whose meaning depends on its type: the reference catalog says
which attribute names are sources (nested nodes) and which are params.
Changes to those attributes, to the type, and to the status are turned
into reload requests for the map.

INVARIANT: `error` is only kept while `status` is FAILED.
INVARIANT: After a type change no listener bound under the old schema
remains.
"""

from __future__ import annotations
from functools import partial
from typing import Any, Dict, Iterator, List, Optional, TYPE_CHECKING
from urllib.parse import urlencode
import copy
import logging

from ..core.enums import AnalysisStatus, ReloadReason, DONE_STATUSES
from ..errors import AnalysisGraphError, CyclicAnalysisError, InvalidFilterError, MissingSourceError
from ..events import (
    AttributesChangedEvent,
    ChangeDispatcher,
    EventHandler,
    NodeEvent,
    SourceChangedEvent,
)
from ..filters.base import Filter
from ..reload import ReloadRequest

if TYPE_CHECKING:
    from ..reference import ReferenceCatalog
    from ..reload import ReloadPathway

logger = logging.getLogger(__name__)


# Attributes that never trigger a reload
BOOKKEEPING_ATTRIBUTES = frozenset(["id", "status", "error", "url", "apiKey", "authToken"])

_MISSING = object()


class AnalysisNode:
    """
    A node of the analysis graph.

    The constructor takes attributes as given: required sources are
    checked by AnalysisService when it builds the node. Afterwards `set()`
    refuses to drop a required source or to take a source that reaches
    back to this node.

    Usage:
        node = AnalysisNode(
            {"id": "a1", "type": "buffer", "radius": 300, "source": source_node},
            reference=CamshaftReference(),
            reload_pathway=vis,
        )
        node.set(radius=500)        # -> vis.reload(ReloadRequest(source_id="a1"))
    """

    STATUS = AnalysisStatus

    def __init__(
        self,
        attributes: Optional[Dict[str, Any]] = None,
        reference: "ReferenceCatalog" = None,
        reload_pathway: Optional["ReloadPathway"] = None,
        max_history: int = 100,
        **kwargs: Any,
    ):
        if reference is None:
            raise AnalysisGraphError("AnalysisNode requires a reference catalog")

        attrs = dict(attributes or {})
        attrs.update(kwargs)
        if attrs.get("status") != AnalysisStatus.FAILED:
            attrs.pop("error", None)

        self._reference = reference
        self._reload_pathway = reload_pathway
        self._attributes: Dict[str, Any] = attrs
        self._source_owners: Dict[int, Any] = {}
        self._filters: List[Filter] = []
        self._bound_sources: List[AnalysisNode] = []
        self._dispatcher = ChangeDispatcher(node_id=attrs.get("id"), max_history=max_history)

        self._init_binds()

    def __repr__(self) -> str:
        return f"AnalysisNode(id={self.id!r}, type={self.type!r}, status={self.status!r})"

    # =========================================================================
    # ATTRIBUTES
    # =========================================================================

    @property
    def id(self) -> Optional[str]:
        return self._attributes.get("id")

    @property
    def type(self) -> Optional[str]:
        return self._attributes.get("type")

    @property
    def status(self) -> Optional[str]:
        return self._attributes.get("status")

    @property
    def error(self) -> Optional[str]:
        return self._attributes.get("error")

    @property
    def attributes(self) -> Dict[str, Any]:
        """Shallow copy of the attribute bag."""
        return dict(self._attributes)

    @property
    def dispatcher(self) -> ChangeDispatcher:
        return self._dispatcher

    def get(self, name: str, default: Any = None) -> Any:
        return self._attributes.get(name, default)

    def has(self, name: str) -> bool:
        return self._attributes.get(name) is not None

    def set(self, attributes: Optional[Dict[str, Any]] = None, **kwargs: Any) -> bool:
        """
        Update attributes and notify listeners once.

        Only values that actually change are recorded. Clearing the failed
        status also clears `error`.

        Returns:
            True if anything changed
        """
        values = dict(attributes or {})
        values.update(kwargs)

        if "id" in values and self.id is not None and values["id"] != self.id:
            raise AnalysisGraphError(f"Analysis id cannot change ({self.id} -> {values['id']})")

        final_type = values.get("type", self.type)
        if final_type != self.type:
            # Fail before touching state if the catalog rejects the new type
            self._reference.get_param_names_for_analysis_type(final_type)
        self._check_sources(final_type, values)

        final_status = values.get("status", self.status)
        if final_status != AnalysisStatus.FAILED:
            values["error"] = None

        changes: Dict[str, Any] = {}
        for name, value in values.items():
            previous = self._attributes.get(name, _MISSING)
            if previous is _MISSING:
                if value is None:
                    continue
                previous = None
            elif previous is value or previous == value:
                continue
            changes[name] = (previous, value)

        if not changes:
            return False

        for name, (_, value) in changes.items():
            if value is None:
                self._attributes.pop(name, None)
            else:
                self._attributes[name] = value

        self._dispatcher.emit(AttributesChangedEvent(node_id=self.id, changes=changes))
        return True

    def _check_sources(self, analysis_type: Optional[str], values: Dict[str, Any]) -> None:
        """Reject removing a required source or taking a source that leads back here."""
        for name in self._reference.get_source_names_for_analysis_type(analysis_type) or []:
            if name not in values:
                continue
            value = values[name]
            if value is None:
                if self.has(name) and not self._reference.is_source_name_optional_for_analysis_type(
                    analysis_type, name
                ):
                    raise MissingSourceError(analysis_type, name, analysis_id=self.id)
            elif isinstance(value, AnalysisNode):
                path = value._path_to(self)
                if path is not None:
                    raise CyclicAnalysisError([self.id] + [n.id for n in path])

    def _path_to(self, target: "AnalysisNode") -> Optional[List["AnalysisNode"]]:
        """Nodes from this one down to `target` through sources, or None."""
        parents: Dict[int, Optional[AnalysisNode]] = {id(self): None}
        stack = [self]
        while stack:
            node = stack.pop()
            if node is target:
                path = []
                current: Optional[AnalysisNode] = node
                while current is not None:
                    path.append(current)
                    current = parents[id(current)]
                return list(reversed(path))
            for source in node.get_sources():
                if id(source) not in parents:
                    parents[id(source)] = node
                    stack.append(source)
        return None

    # =========================================================================
    # SCHEMA
    # =========================================================================

    def get_source_names(self) -> List[str]:
        """Source attribute names of the current type, in schema order."""
        return list(self._reference.get_source_names_for_analysis_type(self.type) or [])

    def get_param_names(self) -> List[str]:
        return list(self._reference.get_param_names_for_analysis_type(self.type) or [])

    def get_sources(self) -> List["AnalysisNode"]:
        """Source nodes currently set, in schema order."""
        sources = []
        for name in self.get_source_names():
            value = self._attributes.get(name)
            if isinstance(value, AnalysisNode):
                sources.append(value)
        return sources

    def is_source_type(self) -> bool:
        return self.type == "source"

    # =========================================================================
    # BINDINGS
    # =========================================================================

    def _init_binds(self) -> None:
        self._dispatcher.subscribe("type", self._on_type_changed, context=self)
        self._dispatcher.subscribe("status", self._on_status_changed, context=self)

        tracked = [
            name for name in self.get_source_names() + self.get_param_names()
            if name not in BOOKKEEPING_ATTRIBUTES
        ]
        if tracked:
            self._dispatcher.subscribe(tracked, self._on_attribute_changed, context=self)

        self._bind_sources()

    def _unbind(self) -> None:
        self._dispatcher.unsubscribe_context(self)
        self._unbind_sources()

    def _bind_sources(self) -> None:
        """Forward the events of the current source nodes to this node, once per node."""
        self._unbind_sources()
        for name in self.get_source_names():
            source = self._attributes.get(name)
            if not isinstance(source, AnalysisNode):
                continue
            if any(bound is source for bound in self._bound_sources):
                # Same node in several slots, named after the first one
                continue
            source.dispatcher.subscribe_all(partial(self._on_source_event, name), context=self)
            self._bound_sources.append(source)

    def _unbind_sources(self) -> None:
        for source in self._bound_sources:
            source.dispatcher.unsubscribe_context(self)
        self._bound_sources = []

    def _on_attribute_changed(self, event: AttributesChangedEvent) -> None:
        if event.changed("type"):
            # Handled by _on_type_changed
            return
        self._bind_sources()
        self._reload_vis()

    def _on_type_changed(self, event: AttributesChangedEvent) -> None:
        logger.debug(f"Analysis {self.id} type {event.previous('type')} -> {self.type}, rebinding")
        self._unbind()
        self._init_binds()
        self._reload_vis()

    def _on_status_changed(self, event: AttributesChangedEvent) -> None:
        # Only interesting to whoever consumes this node, once it is usable
        if (
            self.is_source_of_any_model()
            and event.previous("status") is not None
            and self.status == AnalysisStatus.READY
        ):
            self._reload_vis()

    def _on_source_event(self, source_name: str, event: NodeEvent) -> None:
        source = self._attributes.get(source_name)
        self._dispatcher.emit(SourceChangedEvent(
            node_id=self.id,
            source_name=source_name,
            source_id=source.id if isinstance(source, AnalysisNode) else None,
            source_event=event,
        ))

    def subscribe(self, keys, handler: EventHandler, context: Any = None) -> str:
        """Listen to changes of the given attribute names."""
        return self._dispatcher.subscribe(keys, handler, context=context)

    def unsubscribe(self, keys, handler: EventHandler) -> bool:
        return self._dispatcher.unsubscribe(keys, handler)

    # =========================================================================
    # RELOAD
    # =========================================================================

    def _reload_vis(self, reason: Optional[ReloadReason] = None) -> None:
        if self._reload_pathway is None:
            logger.debug(f"Analysis {self.id} has no reload pathway, skipping reload")
            return

        request = ReloadRequest(source_id=self.id, reason=reason, error=self.set_error)
        logger.debug(f"Reload requested by analysis {self.id}: {request.to_dict()}")
        self._reload_pathway.reload(request)

    def url(self) -> Optional[str]:
        """Base URL with a single auth parameter; api_key wins over auth_token."""
        base = self._attributes.get("url")
        if base is None:
            return None

        if self._attributes.get("apiKey"):
            query = urlencode({"api_key": self._attributes["apiKey"]})
        elif self._attributes.get("authToken"):
            query = urlencode({"auth_token": self._attributes["authToken"]})
        else:
            return base

        separator = "&" if "?" in base else "?"
        return f"{base}{separator}{query}"

    # =========================================================================
    # STATUS
    # =========================================================================

    def set_ok(self) -> None:
        self.set(error=None, status=AnalysisStatus.READY)

    def set_error(self, message: str) -> None:
        logger.warning(f"Analysis {self.id} failed: {message}")
        self.set(error=message, status=AnalysisStatus.FAILED)

    def is_done(self) -> bool:
        return self.status in DONE_STATUSES

    # =========================================================================
    # GRAPH
    # =========================================================================

    def _iter_nodes(self) -> Iterator["AnalysisNode"]:
        """Pre-order DFS over sources, each node once."""
        seen = set()
        stack = [self]
        while stack:
            node = stack.pop()
            if id(node) in seen:
                continue
            seen.add(id(node))
            yield node
            stack.extend(reversed(node.get_sources()))

    def find_analysis_by_id(self, analysis_id: str) -> Optional["AnalysisNode"]:
        """
        Find a node by id in this node's source graph.

        Returns:
            The first match in pre-order, or None
        """
        for node in self._iter_nodes():
            if node.id == analysis_id:
                return node
        return None

    def get_nodes(self) -> List["AnalysisNode"]:
        """This node and every node reachable through sources, once each."""
        return list(self._iter_nodes())

    def to_json(self) -> Dict[str, Any]:
        """
        Serialize to the wire shape {id, type, params}.

        Sources (and params holding nodes) are serialized recursively, so the
        output never shares objects with the live graph.
        """
        params: Dict[str, Any] = {}
        for name in self.get_param_names():
            if name not in self._attributes:
                continue
            value = self._attributes[name]
            params[name] = value.to_json() if isinstance(value, AnalysisNode) else copy.deepcopy(value)

        for name in self.get_source_names():
            source = self._attributes.get(name)
            if isinstance(source, AnalysisNode):
                params[name] = source.to_json()

        return {
            "id": self.id,
            "type": self.type,
            "params": params,
        }

    # =========================================================================
    # REFERENCES
    # =========================================================================

    def mark_as_source_of(self, owner: Any) -> None:
        self._source_owners[id(owner)] = owner

    def unmark_as_source_of(self, owner: Any) -> None:
        self._source_owners.pop(id(owner), None)

    def is_source_of_any_model(self) -> bool:
        return bool(self._source_owners)

    @property
    def source_owners(self) -> List[Any]:
        return list(self._source_owners.values())

    # =========================================================================
    # FILTERS
    # =========================================================================

    def get_filters(self) -> List[Filter]:
        return list(self._filters)

    def has_filter(self, filter: Filter) -> bool:
        return any(f is filter for f in self._filters)

    def add_filter(self, filter: Filter) -> None:
        """Attach a filter. Adding alone does not reload."""
        if not isinstance(filter, Filter):
            raise InvalidFilterError(f"Expected a Filter, got {type(filter).__name__}")
        if filter.analysis is not self:
            raise InvalidFilterError(f"Filter on '{filter.column}' belongs to another analysis")
        if self.has_filter(filter):
            return
        self._filters.append(filter)
        logger.debug(f"Filter on '{filter.column}' added to analysis {self.id}")

    def remove_filter(self, filter: Filter) -> bool:
        """
        Detach a filter and reload.

        Returns:
            True if the filter was attached
        """
        if not self.has_filter(filter):
            return False
        self._filters = [f for f in self._filters if f is not filter]
        self.notify_filters_changed()
        return True

    def notify_filters_changed(self) -> None:
        self._reload_vis(reason=ReloadReason.FILTERS_CHANGED)
