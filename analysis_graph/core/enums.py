"""
analysis_graph/core/enums.py - Core enumerations.

Status values follow the ones reported by the remote analysis service.
"""

from enum import Enum


class AnalysisStatus(str, Enum):
    """Execution status of an analysis node."""
    PENDING = "pending"
    WAITING = "waiting"
    RUNNING = "running"
    READY = "ready"
    FAILED = "failed"


class ReloadReason(str, Enum):
    """Why a reload was requested, when it is not a plain node change."""
    FILTERS_CHANGED = "filtersChanged"


# Statuses after which the remote computation is over
DONE_STATUSES = (AnalysisStatus.READY, AnalysisStatus.FAILED)
