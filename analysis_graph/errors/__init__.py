"""
errors/ - Exception hierarchy.
"""

from .exceptions import (
    AnalysisGraphError,
    InvalidFilterError,
    InvalidRangeError,
    InvalidDescriptionError,
    MissingSourceError,
    UnknownAnalysisTypeError,
    CyclicAnalysisError,
)

__all__ = [
    "AnalysisGraphError",
    "InvalidFilterError",
    "InvalidRangeError",
    "InvalidDescriptionError",
    "MissingSourceError",
    "UnknownAnalysisTypeError",
    "CyclicAnalysisError",
]
