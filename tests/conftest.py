"""
Test configuration and shared fixtures.

Provides a mock reload pathway, catalogs, and ready-made nodes.
"""

import pytest
from typing import Dict, List, Optional
from unittest.mock import Mock

from analysis_graph.analysis import AnalysisNode, AnalysisService
from analysis_graph.reference import CamshaftReference


class FakeReference:
    """
    Table-driven reference catalog.

    Unknown types have no sources and no params.
    """

    def __init__(
        self,
        sources: Dict[str, List[str]],
        params: Dict[str, List[str]],
        optional: Optional[Dict[str, List[str]]] = None,
    ):
        self._sources = sources
        self._params = params
        self._optional = optional or {}

    def get_source_names_for_analysis_type(self, analysis_type):
        return self._sources.get(analysis_type, [])

    def get_param_names_for_analysis_type(self, analysis_type):
        return self._params.get(analysis_type, [])

    def is_source_name_optional_for_analysis_type(self, analysis_type, source_name):
        return source_name in self._optional.get(analysis_type, [])


@pytest.fixture
def vis():
    """Reload pathway double."""
    return Mock(name="vis")


@pytest.fixture
def reference():
    return CamshaftReference()


@pytest.fixture
def numbered_reference():
    """Catalog with five numbered analysis types; source5 is optional."""
    return FakeReference(
        sources={
            "analysis-type-1": ["source1", "source2"],
            "analysis-type-2": [],
            "analysis-type-3": ["source3"],
            "analysis-type-4": [],
            "analysis-type-5": ["source4", "source5"],
        },
        params={
            "analysis-type-1": ["a"],
            "analysis-type-2": ["a2"],
            "analysis-type-3": [],
            "analysis-type-4": ["a4"],
            "analysis-type-5": [],
        },
        optional={
            "analysis-type-5": ["source5"],
        },
    )


@pytest.fixture
def service(reference, vis):
    return AnalysisService(reference=reference, reload_pathway=vis)


@pytest.fixture
def make_node(reference, vis):
    """Factory for standalone nodes bound to the shared catalog and vis."""

    def _make(**attributes):
        return AnalysisNode(attributes, reference=reference, reload_pathway=vis)

    return _make


@pytest.fixture
def sampling_node(make_node):
    return make_node(id="a0", type="sampling", sampling=15, seed=20)
