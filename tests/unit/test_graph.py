"""Tests for the graph model, GraphBuilder and Mermaid rendering."""

from __future__ import annotations

import threading

from hypothesis import given, settings
from hypothesis import strategies as st

from kubetopo.graph import GraphBuilder, NodeRole, make_node, mermaid_key, node_id, to_mermaid
from kubetopo.graph.models import role_for_kind

_kinds = st.sampled_from(["Service", "Pod", "Ingress", "EndpointSlice", "VirtualService", "Deployment"])
_names = st.from_regex(r"[a-z][a-z0-9\-]{0,12}", fullmatch=True)
_namespaces = st.sampled_from(["default", "payments", None])
_nodes = st.builds(make_node, _kinds, _names, _namespaces)
_reasons = st.sampled_from(["a", "b", "Ingress backend routes to Service"])


# ---------------------------------------------------------------------------
# Node identity
# ---------------------------------------------------------------------------


class TestNodeIdentity:
    def test_id_format(self) -> None:
        assert node_id("Service", "checkout", "payments") == "Service|payments|checkout"
        assert node_id("PersistentVolume", "pv-1") == "PersistentVolume||pv-1"

    def test_make_node_assigns_role(self) -> None:
        assert make_node("Ingress", "web").role == NodeRole.ENTRY
        assert make_node("Gateway", "gw").role == NodeRole.ENTRY
        assert make_node("DestinationRule", "dr").role == NodeRole.ROUTER
        assert make_node("EndpointSlice", "es").role == NodeRole.ENDPOINT
        assert make_node("StatefulSet", "db").role == NodeRole.WORKLOAD
        assert make_node("Pod", "p").role == NodeRole.POD

    def test_unknown_kind_is_unknown_role(self) -> None:
        assert role_for_kind("ConfigMap") == NodeRole.UNKNOWN

    def test_same_identity_same_id(self) -> None:
        a = make_node("Service", "checkout", "payments")
        b = make_node("Service", "checkout", "payments")
        assert a.id == b.id


# ---------------------------------------------------------------------------
# GraphBuilder
# ---------------------------------------------------------------------------


class TestGraphBuilder:
    def test_start_node_present(self) -> None:
        start = make_node("Service", "checkout", "payments")
        graph = GraphBuilder(start).build()
        assert graph.start == start
        assert [n.id for n in graph.nodes] == [start.id]
        assert graph.edges == ()
        assert graph.warnings == ()

    def test_add_edge_adds_both_endpoints(self) -> None:
        svc = make_node("Service", "checkout", "payments")
        pod = make_node("Pod", "checkout-7d9", "payments")
        gb = GraphBuilder(svc)
        gb.add_edge(svc, pod, "selects")
        graph = gb.build()
        assert graph.node(pod.id) == pod
        assert len(graph.edges) == 1

    def test_add_edge_twice_is_noop(self) -> None:
        svc = make_node("Service", "checkout", "payments")
        pod = make_node("Pod", "checkout-7d9", "payments")
        gb = GraphBuilder(svc)
        gb.add_edge(svc, pod, "selects")
        gb.add_edge(svc, pod, "selects")
        assert len(gb.build().edges) == 1

    def test_distinct_reasons_are_distinct_edges(self) -> None:
        svc = make_node("Service", "checkout", "payments")
        pod = make_node("Pod", "checkout-7d9", "payments")
        gb = GraphBuilder(svc)
        gb.add_edge(svc, pod, "selects")
        gb.add_edge(svc, pod, "endpoint")
        assert len(gb.build().edges) == 2

    def test_add_node_overwrites_but_keeps_position(self) -> None:
        start = make_node("Service", "checkout", "payments")
        gb = GraphBuilder(start)
        gb.add_node(make_node("Pod", "p1", "payments"))
        gb.add_node(make_node("Pod", "p2", "payments"))
        gb.add_node(make_node("Pod", "p1", "payments", role=NodeRole.UNKNOWN))
        graph = gb.build()
        assert [n.name for n in graph.nodes] == ["checkout", "p1", "p2"]
        assert graph.node("Pod|payments|p1").role == NodeRole.UNKNOWN

    def test_has_edge_with_and_without_reason(self) -> None:
        a = make_node("Deployment", "web", "default")
        b = make_node("Pod", "web-1", "default")
        gb = GraphBuilder(a)
        gb.add_edge(a, b, "owns")
        assert gb.has_edge(a.id, b.id)
        assert gb.has_edge(a.id, b.id, "owns")
        assert not gb.has_edge(a.id, b.id, "selects")
        assert not gb.has_edge(b.id, a.id)

    def test_build_is_a_snapshot(self) -> None:
        start = make_node("Service", "checkout")
        gb = GraphBuilder(start)
        first = gb.build()
        gb.add_warning("later")
        assert first.warnings == ()
        assert gb.build().warnings == ("later",)

    def test_repeated_warning_kept_once_in_first_seen_order(self) -> None:
        gb = GraphBuilder(make_node("Deployment", "web"))
        for _ in range(3):
            gb.add_warning("Ingress lookup in namespace default failed")
        gb.add_warning("No pods currently match")
        gb.add_warning("Ingress lookup in namespace default failed")
        assert gb.build().warnings == ("Ingress lookup in namespace default failed", "No pods currently match")

    def test_concurrent_edges_stay_unique(self) -> None:
        start = make_node("Service", "checkout")
        pods = [make_node("Pod", f"p{i}") for i in range(20)]
        gb = GraphBuilder(start)

        def _worker() -> None:
            for p in pods:
                gb.add_edge(start, p, "selects")

        threads = [threading.Thread(target=_worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(gb.build().edges) == 20

    @given(st.lists(st.tuples(_nodes, _nodes, _reasons), max_size=40))
    @settings(max_examples=100)
    def test_ids_and_edge_triples_unique(self, edges) -> None:
        gb = GraphBuilder(make_node("Service", "start", "default"))
        for a, b, reason in edges:
            gb.add_edge(a, b, reason)
            gb.add_edge(a, b, reason)
        graph = gb.build()

        ids = [n.id for n in graph.nodes]
        assert len(ids) == len(set(ids))
        triples = [(e.from_id, e.to_id, e.reason) for e in graph.edges]
        assert len(triples) == len(set(triples))
        assert len(triples) == len({(a.id, b.id, r) for a, b, r in edges})
        for e in graph.edges:
            assert graph.node(e.from_id) is not None
            assert graph.node(e.to_id) is not None


# ---------------------------------------------------------------------------
# Mermaid
# ---------------------------------------------------------------------------


class TestMermaid:
    def test_mermaid_key_sanitizes(self) -> None:
        assert mermaid_key("Service|payments|checkout") == "n_Service_payments_checkout"
        assert mermaid_key("Pod|a.b|x-y") == "n_Pod_a_b_x_y"

    def test_render(self) -> None:
        ing = make_node("Ingress", "web", "payments")
        svc = make_node("Service", "checkout", "payments")
        gb = GraphBuilder(svc)
        gb.add_edge(ing, svc, "Ingress backend routes to Service")
        text = to_mermaid(gb.build())
        assert text.splitlines() == [
            "graph LR",
            '  n_Service_payments_checkout["Service\\ncheckout\\nns:payments"]',
            '  n_Ingress_payments_web["Ingress\\nweb\\nns:payments"]',
            '  n_Ingress_payments_web -->|"Ingress backend routes to Service"| n_Service_payments_checkout',
        ]

    def test_cluster_scoped_node_has_no_namespace_line(self) -> None:
        gb = GraphBuilder(make_node("PersistentVolume", "pv-1"))
        assert '["PersistentVolume\\npv-1"]' in to_mermaid(gb.build())

    def test_quotes_escaped(self) -> None:
        svc = make_node("Service", "checkout", "payments")
        pod = make_node("Pod", "p", "payments")
        gb = GraphBuilder(svc)
        gb.add_edge(svc, pod, 'label "quoted"')
        assert '|"label \\"quoted\\""|' in to_mermaid(gb.build())

    @given(st.lists(st.tuples(_nodes, _nodes, _reasons), max_size=20))
    @settings(max_examples=50)
    def test_rendering_is_deterministic(self, edges) -> None:
        def _build() -> str:
            gb = GraphBuilder(make_node("Service", "start", "default"))
            for a, b, reason in edges:
                gb.add_edge(a, b, reason)
            return to_mermaid(gb.build())

        assert _build() == _build()
