"""
filters/base.py - Filters owned by an analysis node.

A filter narrows the output of exactly one analysis. Creating a filter
attaches it to its analysis; changing or removing it asks the analysis
to reload with reason "filtersChanged".
"""

from __future__ import annotations
from typing import Any, Dict, TYPE_CHECKING
import logging

from ..errors import InvalidFilterError

if TYPE_CHECKING:
    from ..analysis.model import AnalysisNode

logger = logging.getLogger(__name__)


class Filter:
    """Base class for analysis filters."""

    filter_type = "filter"

    def __init__(self, analysis: "AnalysisNode", column: str):
        from ..analysis.model import AnalysisNode

        if not isinstance(analysis, AnalysisNode):
            raise InvalidFilterError(
                f"{type(self).__name__} requires an AnalysisNode, got {type(analysis).__name__}"
            )
        if not column or not isinstance(column, str):
            raise InvalidFilterError(f"{type(self).__name__} requires a column name")

        self._analysis = analysis
        self._column = column
        analysis.add_filter(self)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(analysis={self._analysis.id!r}, column={self._column!r})"

    @property
    def analysis(self) -> "AnalysisNode":
        return self._analysis

    @property
    def column(self) -> str:
        return self._column

    @property
    def is_attached(self) -> bool:
        return self._analysis.has_filter(self)

    def remove(self) -> bool:
        """
        Detach from the analysis.

        Returns:
            False if the filter had already been removed
        """
        return self._analysis.remove_filter(self)

    def _changed(self) -> None:
        # A detached filter no longer affects the map
        if not self.is_attached:
            logger.debug(f"{self!r} changed while detached, no reload")
            return
        self._analysis.notify_filters_changed()

    def is_empty(self) -> bool:
        return True

    def to_json(self) -> Dict[str, Any]:
        return {}
