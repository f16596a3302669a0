"""
reload/request.py - Recomputation requests handed to the reload pathway.

The pathway owns the network round trip. It must eventually call exactly
one of `success()` or `error(message)` on a request.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol, Union

from ..core.enums import ReloadReason


@dataclass
class ReloadRequest:
    """A request to recompute the analyses behind the rendered map."""
    source_id: Optional[str] = None
    reason: Optional[Union[ReloadReason, str]] = None
    error: Optional[Callable[[str], None]] = None
    success: Optional[Callable[[], None]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape, without the callbacks."""
        data: Dict[str, Any] = {}
        if self.source_id is not None:
            data["sourceId"] = self.source_id
        if self.reason is not None:
            data["reason"] = self.reason.value if isinstance(self.reason, ReloadReason) else self.reason
        return data


class ReloadPathway(Protocol):
    """Anything that can take a ReloadRequest."""

    def reload(self, request: ReloadRequest) -> None:
        ...
