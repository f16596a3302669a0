"""
filters/range.py - Range filter on a numeric column.
"""

from __future__ import annotations
from numbers import Real
from typing import Any, Dict, Optional

from ..errors import InvalidRangeError
from .base import Filter


def _check_bound(name: str, value: Any) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, Real):
        raise InvalidRangeError(f"Range {name} must be a number, got {value!r}")
    if value != value:
        raise InvalidRangeError(f"Range {name} must not be NaN")


class RangeFilter(Filter):
    """
    Keeps rows whose column value lies within [min, max].

    Either bound may be open (None), not both.
    """

    filter_type = "range"

    def __init__(self, analysis, column: str):
        self._min: Optional[float] = None
        self._max: Optional[float] = None
        super().__init__(analysis, column)

    @property
    def min(self) -> Optional[float]:
        return self._min

    @property
    def max(self) -> Optional[float]:
        return self._max

    def set_range(self, min: Optional[float] = None, max: Optional[float] = None) -> bool:
        """
        Set the bounds.

        Returns:
            True if the range changed (and a reload was requested)
        """
        _check_bound("min", min)
        _check_bound("max", max)
        if min is None and max is None:
            raise InvalidRangeError("Range needs at least one bound, use unset_range() to clear it")
        if min is not None and max is not None and min > max:
            raise InvalidRangeError(f"Range min ({min}) is greater than max ({max})")

        if (min, max) == (self._min, self._max):
            return False

        self._min, self._max = min, max
        self._changed()
        return True

    def unset_range(self) -> bool:
        if self.is_empty():
            return False
        self._min = self._max = None
        self._changed()
        return True

    def is_empty(self) -> bool:
        return self._min is None and self._max is None

    def to_json(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self._min is not None:
            data["min"] = self._min
        if self._max is not None:
            data["max"] = self._max
        return data
