"""
filters/ - Filters attached to analysis nodes.
"""

from .base import Filter
from .range import RangeFilter

__all__ = [
    "Filter",
    "RangeFilter",
]
