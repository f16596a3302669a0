"""
reference/catalog.py - Analysis type reference catalog.

Maps an analysis type to the names of its source attributes (nested
analyses) and its plain parameters. The graph consults the catalog every
time it needs to know which attributes of a node are sources.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

from ..errors import UnknownAnalysisTypeError


class ReferenceCatalog(Protocol):
    """Lookup interface the graph depends on."""

    def get_source_names_for_analysis_type(self, analysis_type: str) -> Sequence[str]:
        ...

    def get_param_names_for_analysis_type(self, analysis_type: str) -> Sequence[str]:
        ...

    def is_source_name_optional_for_analysis_type(self, analysis_type: str, source_name: str) -> bool:
        ...


@dataclass
class AnalysisTypeDefinition:
    """Schema of one analysis type."""
    name: str
    sources: List[str] = field(default_factory=list)
    params: List[str] = field(default_factory=list)
    optional_sources: List[str] = field(default_factory=list)

    def __post_init__(self):
        unknown = [s for s in self.optional_sources if s not in self.sources]
        if unknown:
            raise ValueError(f"Optional sources {unknown} are not sources of '{self.name}'")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "sources": list(self.sources),
            "params": list(self.params),
            "optional_sources": list(self.optional_sources),
        }


# =============================================================================
# STANDARD ANALYSIS TYPES
# =============================================================================

ANALYSIS_TYPES: Dict[str, AnalysisTypeDefinition] = {
    "source": AnalysisTypeDefinition(
        name="source",
        params=["query"],
    ),
    "buffer": AnalysisTypeDefinition(
        name="buffer",
        sources=["source"],
        params=["radius", "isolines", "dissolved"],
    ),
    "filter-range": AnalysisTypeDefinition(
        name="filter-range",
        sources=["source"],
        params=["column", "min", "max"],
    ),
    "filter-category": AnalysisTypeDefinition(
        name="filter-category",
        sources=["source"],
        params=["column", "accept", "reject"],
    ),
    "sampling": AnalysisTypeDefinition(
        name="sampling",
        sources=["source"],
        params=["sampling", "seed"],
    ),
    "centroid": AnalysisTypeDefinition(
        name="centroid",
        sources=["source"],
        params=["category_column", "aggregation", "aggregation_column"],
    ),
    "weighted-centroid": AnalysisTypeDefinition(
        name="weighted-centroid",
        sources=["source"],
        params=["weight_column", "category_column", "aggregation", "aggregation_column"],
    ),
    "concave-hull": AnalysisTypeDefinition(
        name="concave-hull",
        sources=["source"],
        params=["target_percent", "allow_holes"],
    ),
    "contour": AnalysisTypeDefinition(
        name="contour",
        sources=["source"],
        params=["column", "buffer", "method", "class_method", "steps", "resolution"],
    ),
    "trade-area": AnalysisTypeDefinition(
        name="trade-area",
        sources=["source"],
        params=["kind", "time", "isolines", "dissolved"],
    ),
    "point-in-polygon": AnalysisTypeDefinition(
        name="point-in-polygon",
        sources=["points_source", "polygons_source"],
    ),
    "intersection": AnalysisTypeDefinition(
        name="intersection",
        sources=["source", "target"],
    ),
    "aggregate-intersection": AnalysisTypeDefinition(
        name="aggregate-intersection",
        sources=["source", "target"],
        params=["aggregate_function", "aggregate_column"],
    ),
    "kmeans": AnalysisTypeDefinition(
        name="kmeans",
        sources=["source"],
        params=["clusters"],
    ),
    "merge": AnalysisTypeDefinition(
        name="merge",
        sources=["left_source", "right_source"],
        params=["left_source_column", "right_source_column", "join_operator",
                "source_geometry", "left_source_columns", "right_source_columns"],
    ),
    "deprecated-sql-function": AnalysisTypeDefinition(
        name="deprecated-sql-function",
        sources=["primary_source", "secondary_source"],
        params=["function_name", "function_args"],
        optional_sources=["secondary_source"],
    ),
}


class CamshaftReference:
    """
    Reference catalog backed by AnalysisTypeDefinition records.

    A None type (a node whose type is not set yet) has no sources and no
    params. Any other type the catalog does not know raises
    UnknownAnalysisTypeError.
    """

    def __init__(self, load_defaults: bool = True):
        self._types: Dict[str, AnalysisTypeDefinition] = {}

        if load_defaults:
            for definition in ANALYSIS_TYPES.values():
                self.register_type(definition)

    def register_type(self, definition: AnalysisTypeDefinition) -> None:
        """Register (or replace) an analysis type."""
        self._types[definition.name] = definition

    def get_type(self, analysis_type: str) -> Optional[AnalysisTypeDefinition]:
        return self._types.get(analysis_type)

    def _require(self, analysis_type: str) -> Optional[AnalysisTypeDefinition]:
        if analysis_type is None:
            return None
        definition = self._types.get(analysis_type)
        if definition is None:
            raise UnknownAnalysisTypeError(analysis_type)
        return definition

    def get_source_names_for_analysis_type(self, analysis_type: str) -> List[str]:
        definition = self._require(analysis_type)
        return list(definition.sources) if definition else []

    def get_param_names_for_analysis_type(self, analysis_type: str) -> List[str]:
        definition = self._require(analysis_type)
        return list(definition.params) if definition else []

    def is_source_name_optional_for_analysis_type(self, analysis_type: str, source_name: str) -> bool:
        definition = self._require(analysis_type)
        return bool(definition) and source_name in definition.optional_sources

    @property
    def analysis_types(self) -> List[str]:
        return list(self._types.keys())

    def to_dict(self) -> Dict[str, Any]:
        return {name: d.to_dict() for name, d in self._types.items()}
