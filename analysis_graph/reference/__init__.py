"""
reference/ - Analysis type catalog.
"""

from .catalog import (
    ReferenceCatalog,
    AnalysisTypeDefinition,
    CamshaftReference,
    ANALYSIS_TYPES,
)

__all__ = [
    "ReferenceCatalog",
    "AnalysisTypeDefinition",
    "CamshaftReference",
    "ANALYSIS_TYPES",
]
