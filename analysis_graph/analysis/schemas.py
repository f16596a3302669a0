"""
analysis/schemas.py - Pydantic model of the serialized analysis form.

Validates the shape of one level of a description. Nested descriptions stay
raw inside `params` and are validated when the service resolves them.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class AnalysisDescription(BaseModel):
    """{id, type, params} as produced by AnalysisNode.to_json()."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = Field(None, description="Analysis id, generated when missing")
    type: str = Field(..., min_length=1, description="Analysis type name")
    params: Dict[str, Any] = Field(
        default_factory=dict,
        description="Params and sources; a source is a nested description",
    )
    status: Optional[str] = Field(None, description="Last known status, if any")


def looks_like_description(value: Any) -> bool:
    """True for values that should be resolved into nodes."""
    if isinstance(value, AnalysisDescription):
        return True
    return isinstance(value, dict) and "type" in value and "params" in value
