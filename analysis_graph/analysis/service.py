"""
analysis/service.py - Analysis graph builder.

Turns a nested description into wired AnalysisNode instances. Children are
resolved before their parent, and every node is kept in a flat registry
keyed by id: resolving the same id and type again returns the registered
instance, refreshed with the new attributes.
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional, TYPE_CHECKING
import logging
import uuid

from pydantic import ValidationError

from ..errors import CyclicAnalysisError, InvalidDescriptionError, MissingSourceError
from .model import AnalysisNode
from .schemas import AnalysisDescription, looks_like_description

if TYPE_CHECKING:
    from ..bootstrap.config import GraphConfig
    from ..reference import ReferenceCatalog
    from ..reload import ReloadPathway

logger = logging.getLogger(__name__)


class AnalysisService:
    """
    Builds analysis graphs and keeps the per-graph registry.

    Usage:
        service = AnalysisService(reference=CamshaftReference(), reload_pathway=vis)
        root = service.create_analysis({
            "id": "a1",
            "type": "buffer",
            "params": {"radius": 300, "source": {"id": "a0", "type": "source",
                                                 "params": {"query": "SELECT ..."}}},
        })
    """

    def __init__(
        self,
        reference: "ReferenceCatalog",
        reload_pathway: Optional["ReloadPathway"] = None,
        config: Optional["GraphConfig"] = None,
    ):
        self._reference = reference
        self._reload_pathway = reload_pathway
        self._config = config
        self._registry: Dict[str, AnalysisNode] = {}

    def __len__(self) -> int:
        return len(self._registry)

    def __contains__(self, analysis_id: object) -> bool:
        return analysis_id in self._registry

    @property
    def nodes(self) -> List[AnalysisNode]:
        """Registered nodes, in registration order."""
        return list(self._registry.values())

    def find_node_by_id(self, analysis_id: str) -> Optional[AnalysisNode]:
        return self._registry.get(analysis_id)

    def create_analysis(self, description: Any, owner: Any = None) -> AnalysisNode:
        """
        Build (or refresh) the graph described by `description`.

        Args:
            description: {id, type, params} dict or AnalysisDescription
            owner: Optional owner that uses the root node as its source

        Returns:
            The root node
        """
        analysis = self._resolve(description, path=[])
        if owner is not None:
            analysis.mark_as_source_of(owner)

        logger.info(
            f"Analysis {analysis.id} ({analysis.type}) built: "
            f"{len(analysis.get_nodes())} node(s), {len(self._registry)} registered"
        )
        return analysis

    # =========================================================================
    # RESOLUTION
    # =========================================================================

    def _resolve(self, raw: Any, path: List[str]) -> AnalysisNode:
        definition = self._validate(raw)
        analysis_id = definition.id or self._generate_id()

        if analysis_id in path:
            raise CyclicAnalysisError(path + [analysis_id])
        path = path + [analysis_id]

        attributes = self._get_attributes(definition, analysis_id, path)

        existing = self._registry.get(analysis_id)
        if existing is not None and existing.type == definition.type:
            self._check_not_own_source(existing, attributes, path)
            existing.set(attributes)
            logger.debug(f"Analysis {analysis_id} reused")
            return existing

        if existing is not None:
            logger.debug(
                f"Analysis {analysis_id} changed type {existing.type} -> {definition.type}, "
                f"creating a new node"
            )

        analysis = AnalysisNode(
            attributes,
            reference=self._reference,
            reload_pathway=self._reload_pathway,
            max_history=self._config.event_history if self._config else 100,
        )
        self._registry[analysis_id] = analysis
        return analysis

    def _validate(self, raw: Any) -> AnalysisDescription:
        if isinstance(raw, AnalysisDescription):
            return raw
        try:
            return AnalysisDescription.model_validate(raw)
        except ValidationError as e:
            raise InvalidDescriptionError(f"Invalid analysis description: {e}") from e

    def _get_attributes(
        self,
        definition: AnalysisDescription,
        analysis_id: str,
        path: List[str],
    ) -> Dict[str, Any]:
        analysis_type = definition.type
        params = definition.params

        attributes: Dict[str, Any] = {"id": analysis_id, "type": analysis_type}
        attributes.update(self._connection_attributes())
        if definition.status is not None:
            attributes["status"] = definition.status

        source_names = self._reference.get_source_names_for_analysis_type(analysis_type) or []
        param_names = self._reference.get_param_names_for_analysis_type(analysis_type) or []

        for name in source_names:
            raw_source = params.get(name)
            if raw_source is None:
                if not self._reference.is_source_name_optional_for_analysis_type(analysis_type, name):
                    raise MissingSourceError(analysis_type, name, analysis_id)
                continue
            attributes[name] = self._resolve(raw_source, path)

        for name in param_names:
            if name not in params:
                continue
            value = params[name]
            attributes[name] = self._resolve(value, path) if looks_like_description(value) else value

        ignored = set(params) - set(source_names) - set(param_names)
        if ignored:
            logger.debug(f"Analysis {analysis_id} ({analysis_type}) ignores params {sorted(ignored)}")

        return attributes

    def _connection_attributes(self) -> Dict[str, Any]:
        if self._config is None:
            return {}
        maps_api = self._config.maps_api
        attributes = {}
        if maps_api.url:
            attributes["url"] = maps_api.url
        if maps_api.api_key:
            attributes["apiKey"] = maps_api.api_key
        if maps_api.auth_token:
            attributes["authToken"] = maps_api.auth_token
        return attributes

    def _check_not_own_source(
        self,
        existing: AnalysisNode,
        attributes: Dict[str, Any],
        path: List[str],
    ) -> None:
        for value in attributes.values():
            if isinstance(value, AnalysisNode) and any(n is existing for n in value.get_nodes()):
                raise CyclicAnalysisError(path + [value.id, existing.id])

    @staticmethod
    def _generate_id() -> str:
        return f"a{uuid.uuid4().hex[:8]}"
