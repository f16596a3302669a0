"""
errors/exceptions.py - Exception hierarchy for the analysis graph.

Contract violations raise immediately. Where a violation is a type or value
problem the exception also derives from the matching builtin, so callers can
catch either.
"""

from __future__ import annotations
from typing import List, Optional


class AnalysisGraphError(Exception):
    """Base exception for analysis graph errors."""
    pass


class InvalidFilterError(AnalysisGraphError, TypeError):
    """Raised when something that is not a filter of the node is attached."""
    pass


class InvalidRangeError(AnalysisGraphError, ValueError):
    """Raised when range filter bounds are not usable."""
    pass


class InvalidDescriptionError(AnalysisGraphError, ValueError):
    """Raised when a raw analysis description has the wrong shape."""
    pass


class MissingSourceError(AnalysisGraphError, ValueError):
    """Raised when a required source is absent from a description."""

    def __init__(self, analysis_type: str, source_name: str, analysis_id: Optional[str] = None):
        self.analysis_type = analysis_type
        self.source_name = source_name
        self.analysis_id = analysis_id
        super().__init__(
            f"Source '{source_name}' is required for analysis type '{analysis_type}'"
            + (f" (analysis '{analysis_id}')" if analysis_id else "")
        )


class UnknownAnalysisTypeError(AnalysisGraphError, KeyError):
    """Raised by the reference catalog for types it does not know."""

    def __init__(self, analysis_type: str):
        self.analysis_type = analysis_type
        super().__init__(analysis_type)

    def __str__(self) -> str:
        return f"Unknown analysis type: {self.analysis_type}"


class CyclicAnalysisError(AnalysisGraphError):
    """Raised when a description or an update would make a node its own source."""

    def __init__(self, cycle: List[str]):
        self.cycle = cycle
        super().__init__(f"Cyclic analysis detected: {' -> '.join(cycle)}")
