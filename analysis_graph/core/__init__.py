"""
core/ - Shared enumerations.
"""

from .enums import AnalysisStatus, ReloadReason, DONE_STATUSES

__all__ = [
    "AnalysisStatus",
    "ReloadReason",
    "DONE_STATUSES",
]
