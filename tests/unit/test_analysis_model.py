"""
Unit tests for analysis/model.py

Tests AnalysisNode bindings, status lifecycle, graph traversal,
serialization, reference tracking and filters.
"""

import pytest
from unittest.mock import Mock, patch

from analysis_graph.analysis import AnalysisNode, AnalysisService
from analysis_graph.core import AnalysisStatus, ReloadReason
from analysis_graph.errors import (
    AnalysisGraphError,
    CyclicAnalysisError,
    InvalidFilterError,
    MissingSourceError,
    UnknownAnalysisTypeError,
)
from analysis_graph.events import SourceChangedEvent
from analysis_graph.filters import RangeFilter
from analysis_graph.reload import ReloadRequest


def last_request(vis) -> ReloadRequest:
    return vis.reload.call_args[0][0]


class TestUrl:
    """Tests for url()."""

    def test_api_key_wins_over_auth_token(self, sampling_node):
        sampling_node.set(url="http://example.com", apiKey="THE_API_KEY", authToken="THE_AUTH_TOKEN")

        assert sampling_node.url() == "http://example.com?api_key=THE_API_KEY"

    def test_auth_token_when_no_api_key(self, sampling_node):
        sampling_node.set(url="http://example.com", authToken="THE_AUTH_TOKEN")

        assert sampling_node.url() == "http://example.com?auth_token=THE_AUTH_TOKEN"

    def test_short_urls(self, sampling_node):
        sampling_node.set(url="http://x", apiKey="K", authToken="T")
        assert sampling_node.url() == "http://x?api_key=K"

        sampling_node.set(apiKey=None)
        assert sampling_node.url() == "http://x?auth_token=T"

    def test_no_credentials_returns_base(self, sampling_node):
        sampling_node.set(url="http://example.com")

        assert sampling_node.url() == "http://example.com"

    def test_existing_query_string(self, sampling_node):
        sampling_node.set(url="http://example.com?v=2", apiKey="K")

        assert sampling_node.url() == "http://example.com?v=2&api_key=K"

    def test_no_url(self, sampling_node):
        assert sampling_node.url() is None


class TestParamBindings:
    """Reloads triggered by attribute changes."""

    def test_param_change_reloads(self, sampling_node, vis):
        sampling_node.set(sampling=sampling_node.get("sampling") + 1)

        vis.reload.assert_called_once()
        assert last_request(vis).source_id == "a0"
        vis.reload.reset_mock()

        sampling_node.set(seed=25)

        vis.reload.assert_called_once()

    def test_untracked_attribute_does_not_reload(self, sampling_node, vis):
        sampling_node.set(randomAttribute="something")

        vis.reload.assert_not_called()

    @pytest.mark.parametrize("name,value", [
        ("url", "http://example.com"),
        ("apiKey", "K"),
        ("authToken", "T"),
    ])
    def test_bookkeeping_attributes_do_not_reload(self, sampling_node, vis, name, value):
        sampling_node.set({name: value})

        vis.reload.assert_not_called()

    def test_one_reload_per_set(self, sampling_node, vis):
        sampling_node.set(sampling=1, seed=2)

        assert vis.reload.call_count == 1

    def test_unchanged_value_does_not_reload(self, sampling_node, vis):
        changed = sampling_node.set(sampling=15)

        assert changed is False
        vis.reload.assert_not_called()

    def test_source_change_reloads(self, sampling_node, make_node, vis):
        source = make_node(id="s0", type="source", query="SELECT 1")

        sampling_node.set(source=source)

        vis.reload.assert_called_once()
        assert last_request(vis).source_id == "a0"

    def test_reload_error_marks_node_failed(self, sampling_node, vis):
        sampling_node.set(sampling=16, status=AnalysisStatus.READY)

        # The remote computation fails and the pathway calls back
        vis.reload.call_args_list[0][0][0].error("something bad just happened")

        assert sampling_node.status == AnalysisStatus.FAILED
        assert sampling_node.error == "something bad just happened"

    def test_without_reload_pathway(self, reference):
        node = AnalysisNode({"id": "a0", "type": "sampling", "sampling": 1}, reference=reference)

        assert node.set(sampling=2) is True

    def test_id_cannot_change(self, sampling_node):
        with pytest.raises(AnalysisGraphError):
            sampling_node.set(id="other")


class TestTypeBindings:
    """Rebinding on type change."""

    def test_unbinds_and_rebinds(self, sampling_node):
        with patch.object(sampling_node, "_unbind", wraps=sampling_node._unbind) as unbind, \
                patch.object(sampling_node, "_init_binds", wraps=sampling_node._init_binds) as init_binds:
            sampling_node.set(type="source")

        unbind.assert_called_once()
        init_binds.assert_called_once()

    def test_no_stale_listeners(self, sampling_node, vis):
        sampling_node.set(type="source")
        vis.reload.reset_mock()

        # sampling is not a param of "source" anymore
        sampling_node.set(sampling=99)
        vis.reload.assert_not_called()

        sampling_node.set(query="SELECT * FROM t")
        vis.reload.assert_called_once()

    def test_listener_count_is_stable(self, sampling_node):
        count = sampling_node.dispatcher.count_for_context(sampling_node)

        sampling_node.set(type="buffer")
        sampling_node.set(type="sampling")

        assert sampling_node.dispatcher.count_for_context(sampling_node) == count

    def test_type_change_reloads(self, sampling_node, vis):
        sampling_node.set(type="centroid")

        vis.reload.assert_called_once()

    def test_keeps_listening_to_type_changes(self, sampling_node, vis):
        sampling_node.set(type="concave-hull")
        vis.reload.assert_called_once()
        vis.reload.reset_mock()

        sampling_node.set(type="contour")
        vis.reload.assert_called_once()

    def test_type_and_param_in_one_set_reload_once(self, sampling_node, vis):
        sampling_node.set(type="buffer", radius=100, sampling=3)

        assert vis.reload.call_count == 1

    def test_unknown_type_leaves_node_untouched(self, sampling_node, vis):
        with pytest.raises(UnknownAnalysisTypeError):
            sampling_node.set(type="not-a-type")

        assert sampling_node.type == "sampling"
        sampling_node.set(seed=1)
        vis.reload.assert_called_once()


def _no_status_no_references(make_node):
    return make_node(id="a0")


def _no_status_with_references(make_node):
    node = make_node(id="a0")
    node.mark_as_source_of(object())
    return node


def _status_no_references(make_node):
    return make_node(id="a0", status="foo")


def _status_with_references(make_node):
    node = make_node(id="a0", status="foo")
    node.mark_as_source_of(object())
    return node


STATUS_CASES = [
    (_no_status_no_references, []),
    (_no_status_with_references, []),
    (_status_no_references, []),
    (_status_with_references, [AnalysisStatus.READY]),
]


class TestStatusBindings:
    """Reload on status change only for consumed nodes becoming ready."""

    @pytest.mark.parametrize("create_node,reload_statuses", STATUS_CASES)
    @pytest.mark.parametrize("status", list(AnalysisStatus))
    def test_status_transition(self, make_node, vis, create_node, reload_statuses, status):
        node = create_node(make_node)
        vis.reload.assert_not_called()

        node.set(status=status)

        if status in reload_statuses:
            vis.reload.assert_called_once()
        else:
            vis.reload.assert_not_called()

    def test_pending_to_ready_without_owners(self, make_node, vis):
        node = make_node(id="a0", status=AnalysisStatus.PENDING)

        node.set(status=AnalysisStatus.READY)

        vis.reload.assert_not_called()

    def test_failed_to_ready_with_owner(self, make_node, vis):
        node = make_node(id="a0", status=AnalysisStatus.PENDING)
        node.set(status=AnalysisStatus.READY)
        node.mark_as_source_of(object())
        node.set_error("boom")

        node.set_ok()

        vis.reload.assert_called_once()
        assert last_request(vis).source_id == "a0"


class TestFindAnalysisById:
    """Depth-first lookup over sources."""

    def test_finds_nodes_in_graph(self, numbered_reference, vis):
        service = AnalysisService(reference=numbered_reference, reload_pathway=vis)
        root = service.create_analysis({
            "id": "a1",
            "type": "analysis-type-1",
            "params": {
                "a": 1,
                "source1": {"id": "a2", "type": "analysis-type-2", "params": {"a2": 2}},
                "source2": {
                    "id": "a3",
                    "type": "analysis-type-3",
                    "params": {
                        "source3": {
                            "id": "a5",
                            "type": "analysis-type-5",
                            "params": {
                                "source4": {"id": "a4", "type": "analysis-type-4", "params": {"a4": 4}},
                            },
                        },
                    },
                },
            },
        })

        assert root.find_analysis_by_id("a1") is root
        assert root.find_analysis_by_id("a2").id == "a2"
        assert root.find_analysis_by_id("a3").id == "a3"
        assert root.find_analysis_by_id("a5").id == "a5"
        assert root.find_analysis_by_id("a4").id == "a4"
        assert root.find_analysis_by_id("zz") is None


class TestToJson:
    """Recursive serialization."""

    def test_serializes_graph(self, numbered_reference, vis):
        description = {
            "id": "a1",
            "type": "analysis-type-1",
            "params": {
                "a": 1,
                "source1": {"id": "a2", "type": "analysis-type-2", "params": {"a2": 2}},
                "source2": {
                    "id": "a3",
                    "type": "analysis-type-3",
                    "params": {
                        "source3": {
                            "id": "a4",
                            "type": "analysis-type-4",
                            "params": {
                                "a4": {
                                    "id": "a5",
                                    "type": "analysis-type-5",
                                    "params": {
                                        "source4": {
                                            "id": "a6",
                                            "type": "analysis-type-2",
                                            "params": {"a2": 2},
                                        },
                                    },
                                },
                            },
                        },
                    },
                },
            },
        }
        service = AnalysisService(reference=numbered_reference, reload_pathway=vis)

        root = service.create_analysis(description)

        assert root.to_json() == description

    def test_output_does_not_share_values(self, make_node):
        node = make_node(id="c0", type="filter-category", column="kind", accept=["a", "b"])

        data = node.to_json()
        data["params"]["accept"].append("c")

        assert node.get("accept") == ["a", "b"]


class TestIsDone:
    """is_done() reflects settled statuses."""

    @pytest.mark.parametrize("status", [AnalysisStatus.READY, AnalysisStatus.FAILED])
    def test_done(self, sampling_node, status):
        sampling_node.set(status=status)
        assert sampling_node.is_done() is True

    @pytest.mark.parametrize("status", [
        AnalysisStatus.PENDING,
        AnalysisStatus.WAITING,
        AnalysisStatus.RUNNING,
    ])
    def test_not_done(self, sampling_node, status):
        sampling_node.set(status=status)
        assert sampling_node.is_done() is False

    def test_unset_status_not_done(self, sampling_node):
        assert sampling_node.is_done() is False


class TestOkAndError:
    """set_ok() / set_error()."""

    def test_set_ok_unsets_error(self, sampling_node):
        sampling_node.set_error("error")

        sampling_node.set_ok()

        assert sampling_node.error is None
        assert sampling_node.status == AnalysisStatus.READY

    def test_set_error(self, sampling_node):
        sampling_node.set_error("wadus")

        assert sampling_node.error == "wadus"
        assert sampling_node.status == AnalysisStatus.FAILED

    def test_error_only_kept_while_failed(self, sampling_node):
        sampling_node.set_error("wadus")

        sampling_node.set(status=AnalysisStatus.RUNNING)

        assert sampling_node.error is None

    def test_error_on_construction_requires_failed(self, make_node):
        node = make_node(id="a0", status=AnalysisStatus.READY, error="stale")

        assert node.error is None


class TestGetNodes:
    """Flat list of reachable nodes."""

    def test_chain(self, service):
        analysis = service.create_analysis({
            "id": "a2",
            "type": "filter-range",
            "params": {
                "column": "estimated_people",
                "source": {
                    "id": "a1",
                    "type": "buffer",
                    "params": {
                        "dissolved": False,
                        "radius": 300,
                        "source": {
                            "id": "a0",
                            "type": "source",
                            "params": {"query": "SELECT * FROM subway_stops"},
                        },
                    },
                },
            },
        })

        nodes = analysis.get_nodes()

        assert len(nodes) == 3
        assert [n.id for n in nodes] == ["a2", "a1", "a0"]

    def test_shared_source_counted_once(self, service):
        source = {"id": "a0", "type": "source", "params": {"query": "SELECT 1"}}
        analysis = service.create_analysis({
            "id": "i0",
            "type": "intersection",
            "params": {
                "source": {"id": "b0", "type": "buffer", "params": {"radius": 1, "source": source}},
                "target": source,
            },
        })

        assert [n.id for n in analysis.get_nodes()] == ["i0", "b0", "a0"]


class TestReferenceTracking:
    """Owners that use a node as their source."""

    def test_mark_and_unmark(self, sampling_node):
        model1 = object()
        model2 = object()

        assert sampling_node.is_source_of_any_model() is False

        sampling_node.mark_as_source_of(model1)
        assert sampling_node.is_source_of_any_model() is True

        sampling_node.mark_as_source_of(model1)
        assert sampling_node.is_source_of_any_model() is True
        assert len(sampling_node.source_owners) == 1

        sampling_node.mark_as_source_of(model2)
        assert sampling_node.is_source_of_any_model() is True

        sampling_node.unmark_as_source_of(model1)
        assert sampling_node.is_source_of_any_model() is True

        sampling_node.unmark_as_source_of(model2)
        assert sampling_node.is_source_of_any_model() is False

    def test_unmark_unknown_owner(self, sampling_node):
        sampling_node.unmark_as_source_of(object())

        assert sampling_node.is_source_of_any_model() is False

    def test_unhashable_owner(self, sampling_node):
        owner = {"layer": "l1"}

        sampling_node.mark_as_source_of(owner)
        assert sampling_node.is_source_of_any_model() is True

        sampling_node.unmark_as_source_of(owner)
        assert sampling_node.is_source_of_any_model() is False


class TestFilters:
    """Filters owned by the node."""

    def test_empty_on_creation(self, sampling_node):
        assert len(sampling_node.get_filters()) == 0

    @pytest.mark.parametrize("bad", [None, {"some": "object"}, "price"])
    def test_add_filter_checks_type(self, sampling_node, bad):
        with pytest.raises(TypeError):
            sampling_node.add_filter(bad)

    def test_add_filter_of_other_node(self, sampling_node, make_node):
        other = make_node(id="a9", type="source")
        filter = RangeFilter(analysis=other, column="price")

        with pytest.raises(InvalidFilterError):
            sampling_node.add_filter(filter)

    def test_filter_added_on_creation(self, sampling_node, vis):
        filter = RangeFilter(analysis=sampling_node, column="price")

        assert len(sampling_node.get_filters()) == 1
        assert sampling_node.get_filters()[0].column == "price"
        vis.reload.assert_not_called()

        filter.remove()

    def test_changing_filter_reloads(self, sampling_node, vis):
        filter = RangeFilter(analysis=sampling_node, column="price")

        filter.set_range(0, 100)

        vis.reload.assert_called_once()
        assert last_request(vis).reason == ReloadReason.FILTERS_CHANGED
        assert last_request(vis).to_dict()["reason"] == "filtersChanged"

    def test_removing_filter_reloads(self, sampling_node, vis):
        filter = RangeFilter(analysis=sampling_node, column="price")

        filter.remove()

        vis.reload.assert_called_once()
        assert last_request(vis).reason == ReloadReason.FILTERS_CHANGED
        assert len(sampling_node.get_filters()) == 0

    def test_full_lifecycle(self, sampling_node, vis):
        filter = RangeFilter(analysis=sampling_node, column="price")
        assert len(sampling_node.get_filters()) == 1
        assert vis.reload.call_count == 0

        filter.set_range(10, 20)
        assert vis.reload.call_count == 1

        filter.remove()
        assert vis.reload.call_count == 2
        assert len(sampling_node.get_filters()) == 0

    def test_add_same_filter_twice(self, sampling_node):
        filter = RangeFilter(analysis=sampling_node, column="price")

        sampling_node.add_filter(filter)

        assert len(sampling_node.get_filters()) == 1


class TestSourceForwarding:
    """Events of source nodes are re-emitted on their consumers."""

    @pytest.fixture
    def chain(self, service):
        return service.create_analysis({
            "id": "a2",
            "type": "filter-range",
            "params": {
                "column": "estimated_people",
                "source": {
                    "id": "a1",
                    "type": "buffer",
                    "params": {
                        "radius": 300,
                        "source": {"id": "a0", "type": "source", "params": {"query": "SELECT 1"}},
                    },
                },
            },
        })

    def test_forwards_without_extra_reload(self, chain, service, vis):
        handler = Mock()
        chain.dispatcher.subscribe_all(handler)

        service.find_node_by_id("a0").set(query="SELECT 2")

        vis.reload.assert_called_once()
        assert last_request(vis).source_id == "a0"
        handler.assert_called_once()
        event = handler.call_args[0][0]
        assert isinstance(event, SourceChangedEvent)
        assert event.source_id == "a1"
        assert event.source_event.source_id == "a0"

    def test_rebinds_when_source_replaced(self, chain, service, make_node):
        old_source = service.find_node_by_id("a1")
        new_source = make_node(id="s9", type="source", query="SELECT 9")

        chain.set(source=new_source)

        assert old_source.dispatcher.count_for_context(chain) == 0
        assert new_source.dispatcher.count_for_context(chain) == 1

        handler = Mock()
        chain.dispatcher.subscribe_all(handler)
        old_source.set(radius=1)
        handler.assert_not_called()

    def test_node_in_two_slots_forwards_once(self, service):
        source = {"id": "a0", "type": "source", "params": {"query": "SELECT 1"}}
        root = service.create_analysis({
            "id": "i0",
            "type": "intersection",
            "params": {"source": source, "target": source},
        })
        handler = Mock()
        root.dispatcher.subscribe_all(handler)

        root.get("source").set(query="SELECT 2")

        handler.assert_called_once()
        assert handler.call_args[0][0].source_name == "source"
        assert root.get("target").dispatcher.count_for_context(root) == 1

    def test_diamond_forwards_once_per_level(self, service):
        source = {"id": "a0", "type": "source", "params": {"query": "SELECT 1"}}
        buffer = {"id": "b0", "type": "buffer", "params": {"radius": 1, "source": source}}
        root = service.create_analysis({
            "id": "i1",
            "type": "intersection",
            "params": {
                "source": {"id": "i0", "type": "intersection", "params": {"source": buffer, "target": buffer}},
                "target": {"id": "i0", "type": "intersection", "params": {"source": buffer, "target": buffer}},
            },
        })
        handler = Mock()
        root.dispatcher.subscribe_all(handler)

        service.find_node_by_id("a0").set(query="SELECT 2")

        handler.assert_called_once()


class TestSourceGuards:
    """set() keeps the graph acyclic and required sources present."""

    @pytest.fixture
    def buffers(self, service):
        source = {"id": "a0", "type": "source", "params": {"query": "SELECT 1"}}
        b1 = service.create_analysis({"id": "b1", "type": "buffer", "params": {"radius": 1, "source": source}})
        b2 = service.create_analysis({
            "id": "b2",
            "type": "buffer",
            "params": {"radius": 2, "source": {"id": "b1", "type": "buffer", "params": {"radius": 1, "source": source}}},
        })
        return b1, b2

    def test_rejects_source_reaching_back(self, buffers, vis):
        b1, b2 = buffers
        assert b2.get("source") is b1

        with pytest.raises(CyclicAnalysisError) as exc_info:
            b1.set(source=b2)

        assert exc_info.value.cycle == ["b1", "b2", "b1"]
        assert b1.get("source").id == "a0"
        vis.reload.assert_not_called()

    def test_rejects_itself_as_source(self, sampling_node, vis):
        with pytest.raises(CyclicAnalysisError) as exc_info:
            sampling_node.set(source=sampling_node, seed=1)

        assert exc_info.value.cycle == ["a0", "a0"]
        assert sampling_node.get("seed") == 20
        vis.reload.assert_not_called()

    def test_rejects_cycle_under_new_type(self, buffers):
        b1, b2 = buffers

        with pytest.raises(CyclicAnalysisError):
            b1.set(type="intersection", target=b2)

        assert b1.type == "buffer"

    def test_accepts_unrelated_source(self, buffers, make_node, vis):
        b1, _ = buffers
        other = make_node(id="s9", type="source", query="SELECT 9")

        b1.set(source=other)

        assert b1.get("source") is other
        vis.reload.assert_called_once()

    def test_rejects_removing_required_source(self, buffers, vis):
        b1, _ = buffers

        with pytest.raises(MissingSourceError) as exc_info:
            b1.set(source=None)

        assert exc_info.value.source_name == "source"
        assert b1.get("source").id == "a0"
        vis.reload.assert_not_called()

    def test_removes_optional_source(self, service, vis):
        source = {"id": "a0", "type": "source", "params": {"query": "SELECT 1"}}
        node = service.create_analysis({
            "id": "d0",
            "type": "deprecated-sql-function",
            "params": {"function_name": "fn", "primary_source": source, "secondary_source": source},
        })

        node.set(secondary_source=None)

        assert node.has("secondary_source") is False
        assert node.has("primary_source") is True
        vis.reload.assert_called_once()


class TestAccessors:
    """Read helpers for hosts."""

    def test_attributes_is_a_copy(self, sampling_node):
        attributes = sampling_node.attributes
        attributes["seed"] = 1

        assert attributes["sampling"] == 15
        assert sampling_node.get("seed") == 20

    def test_has(self, sampling_node):
        assert sampling_node.has("sampling") is True
        assert sampling_node.has("source") is False

    def test_is_source_type(self, make_node, sampling_node):
        assert make_node(id="s0", type="source", query="SELECT 1").is_source_type() is True
        assert sampling_node.is_source_type() is False
