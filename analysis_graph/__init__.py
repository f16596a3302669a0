"""
analysis_graph - Analysis dependency graph engine.

Provides:
- AnalysisNode: a typed, observable node of the analysis DAG
- AnalysisService: builds graphs from nested {id, type, params} descriptions
- RangeFilter: filters that reload their analysis when they change
- CamshaftReference: catalog of analysis types, sources and params
"""

from .core import AnalysisStatus, ReloadReason
from .errors import (
    AnalysisGraphError,
    InvalidFilterError,
    InvalidRangeError,
    InvalidDescriptionError,
    MissingSourceError,
    UnknownAnalysisTypeError,
    CyclicAnalysisError,
)
from .reference import ReferenceCatalog, AnalysisTypeDefinition, CamshaftReference
from .reload import ReloadRequest, ReloadPathway
from .filters import Filter, RangeFilter
from .analysis import AnalysisNode, AnalysisDescription, AnalysisService

__version__ = "1.0.0"

__all__ = [
    "AnalysisStatus",
    "ReloadReason",
    "AnalysisGraphError",
    "InvalidFilterError",
    "InvalidRangeError",
    "InvalidDescriptionError",
    "MissingSourceError",
    "UnknownAnalysisTypeError",
    "CyclicAnalysisError",
    "ReferenceCatalog",
    "AnalysisTypeDefinition",
    "CamshaftReference",
    "ReloadRequest",
    "ReloadPathway",
    "Filter",
    "RangeFilter",
    "AnalysisNode",
    "AnalysisDescription",
    "AnalysisService",
]
