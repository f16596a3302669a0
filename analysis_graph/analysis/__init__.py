"""
analysis/ - Analysis nodes and the graph builder.
"""

from .model import AnalysisNode, BOOKKEEPING_ATTRIBUTES
from .schemas import AnalysisDescription
from .service import AnalysisService

__all__ = [
    "AnalysisNode",
    "BOOKKEEPING_ATTRIBUTES",
    "AnalysisDescription",
    "AnalysisService",
]
