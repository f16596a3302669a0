"""
reload/ - Recomputation request contract.
"""

from .request import ReloadRequest, ReloadPathway

__all__ = [
    "ReloadRequest",
    "ReloadPathway",
]
