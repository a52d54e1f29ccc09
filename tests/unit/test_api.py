"""REST API tests, including property-based fuzzing of the request bodies.

Validates that:
 1. Well-formed queries return the traffic and impact envelopes
 2. Domain errors map to 400/404/502 with the ``error`` + ``detail`` envelope
 3. No 500s from malformed input (validation catches everything)
 4. Content-Type is always ``application/json`` on the query routes
"""

from __future__ import annotations

from fastapi.testclient import TestClient
from hypothesis import given, settings
from hypothesis import strategies as st
from kube_fakes import FakeCluster, make_config_map, make_endpoint_slice, make_pod, make_service, make_workload

from kubetopo import __version__
from kubetopo.api.app import create_app

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _make_cluster() -> FakeCluster:
    spec = {"containers": [{"name": "app", "envFrom": [{"configMapRef": {"name": "checkout-config"}}]}]}
    return FakeCluster(
        make_service("checkout", "payments", {"app": "checkout"}),
        make_endpoint_slice("checkout-abc", "payments", "checkout", ["checkout-7d9"]),
        make_pod("checkout-7d9", "payments", {"app": "checkout"}),
        make_config_map("checkout-config", "payments"),
        make_workload("Deployment", "checkout", "payments", {"app": "checkout"}, pod_spec=spec),
    )


def _make_app(cluster: FakeCluster | None = None) -> TestClient:
    app = create_app(cluster=cluster or _make_cluster())
    return TestClient(app, raise_server_exceptions=False)


def _assert_valid_json_response(resp, allowed_status_codes: set[int] | None = None):
    """Assert universal invariants on every API response."""
    assert resp.headers.get("content-type", "").startswith("application/json"), (
        f"Expected application/json, got {resp.headers.get('content-type')}"
    )
    body = resp.json()
    assert isinstance(body, dict)

    if allowed_status_codes is not None:
        assert resp.status_code in allowed_status_codes, f"Unexpected status {resp.status_code}, body={body}"

    if resp.status_code >= 400:
        assert "error" in body, f"Error response missing 'error': {body}"
        assert "detail" in body, f"Error response missing 'detail': {body}"


# ---------------------------------------------------------------------------
# Hypothesis strategies
# ---------------------------------------------------------------------------

_json_safe_text = st.text(
    alphabet=st.characters(codec="utf-8", exclude_categories=("Cs",)),
    min_size=0,
    max_size=300,
)

_kinds = st.one_of(
    st.sampled_from(["Service", "svc", "Pod", "Deployment", "Ingress", "VirtualService", "Gateway", "ConfigMap"]),
    _json_safe_text,
)

_names = st.one_of(st.from_regex(r"[a-z][a-z0-9\-]{0,30}", fullmatch=True), _json_safe_text)


# ===========================================================================
# A. Happy paths and error mapping
# ===========================================================================


class TestHealth:
    def test_health(self) -> None:
        resp = _make_app().get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "version": __version__}


class TestTrafficEndpoint:
    def test_service_graph(self) -> None:
        resp = _make_app().post(
            "/api/v1/traffic",
            json={"kind": "svc", "name": "checkout", "namespace": "payments"},
        )
        _assert_valid_json_response(resp, allowed_status_codes={200})
        body = resp.json()
        assert body["start"]["id"] == "Service|payments|checkout"
        assert body["start"]["role"] == "service"
        node_ids = {n["id"] for n in body["nodes"]}
        assert "Pod|payments|checkout-7d9" in node_ids
        assert body["mermaid"].startswith("graph LR")
        assert "Pod|payments|checkout-7d9" not in body["mermaid"]

    def test_empty_kind_is_400(self) -> None:
        resp = _make_app().post("/api/v1/traffic", json={"kind": "", "name": "checkout"})
        _assert_valid_json_response(resp, allowed_status_codes={400})
        assert resp.json()["error"] == "INVALID_TARGET"
        assert resp.json()["detail"].startswith("kind:")

    def test_blank_name_is_400(self) -> None:
        resp = _make_app().post("/api/v1/traffic", json={"kind": "Service", "name": "   "})
        _assert_valid_json_response(resp, allowed_status_codes={400})
        assert resp.json()["error"] == "INVALID_TARGET"

    def test_missing_start_is_404(self) -> None:
        resp = _make_app().post(
            "/api/v1/traffic",
            json={"kind": "Service", "name": "ghost", "namespace": "payments"},
        )
        _assert_valid_json_response(resp, allowed_status_codes={404})
        assert resp.json()["error"] == "START_OBJECT_NOT_FOUND"
        assert "ghost" in resp.json()["detail"]

    def test_unreadable_start_is_502(self) -> None:
        cluster = _make_cluster().fail("Service", op="get")
        resp = _make_app(cluster).post(
            "/api/v1/traffic",
            json={"kind": "Service", "name": "checkout", "namespace": "payments"},
        )
        _assert_valid_json_response(resp, allowed_status_codes={502})
        assert resp.json()["error"] == "CLUSTER_ACCESS_FAILED"

    def test_max_depth_out_of_range_is_400(self) -> None:
        resp = _make_app().post("/api/v1/traffic", json={"kind": "Service", "name": "checkout", "max_depth": 0})
        _assert_valid_json_response(resp, allowed_status_codes={400})

    def test_unsupported_kind_is_a_warning(self) -> None:
        resp = _make_app().post("/api/v1/traffic", json={"kind": "ConfigMap", "name": "x", "namespace": "payments"})
        _assert_valid_json_response(resp, allowed_status_codes={200})
        assert any("not supported" in w for w in resp.json()["warnings"])


class TestImpactEndpoint:
    def test_config_map_impact(self) -> None:
        resp = _make_app().post(
            "/api/v1/impact",
            json={"kind": "ConfigMap", "name": "checkout-config", "namespace": "payments"},
        )
        _assert_valid_json_response(resp, allowed_status_codes={200})
        body = resp.json()
        assert body["action"] == "delete"
        assert body["severity"] == "MEDIUM"
        assert body["target"] == {"kind": "ConfigMap", "name": "checkout-config", "namespace": "payments"}
        assert body["impacted_resources"] == [
            {
                "kind": "Deployment",
                "name": "checkout",
                "namespace": "payments",
                "impact_type": "envFrom:app",
                "severity": "MEDIUM",
            }
        ]

    def test_invalid_action_is_400(self) -> None:
        resp = _make_app().post("/api/v1/impact", json={"kind": "ConfigMap", "name": "x", "action": "restart"})
        _assert_valid_json_response(resp, allowed_status_codes={400})
        assert resp.json()["error"] == "INVALID_ACTION"

    def test_change_summary_too_long_is_400(self) -> None:
        resp = _make_app().post(
            "/api/v1/impact",
            json={"kind": "ConfigMap", "name": "x", "action": "update", "change_summary": "x" * 1001},
        )
        _assert_valid_json_response(resp, allowed_status_codes={400})


class TestMetrics:
    def test_metrics_exposed(self) -> None:
        client = _make_app()
        client.post("/api/v1/impact", json={"kind": "Secret", "name": "x", "namespace": "payments"})
        resp = client.get("/metrics/")
        assert resp.status_code == 200
        assert "kubetopo_impact_queries_total" in resp.text


# ===========================================================================
# B. Fuzzing
# ===========================================================================


class TestTrafficFuzz:
    @given(kind=_kinds, name=_names)
    @settings(max_examples=50)
    def test_random_targets_never_500(self, kind: str, name: str) -> None:
        client = _make_app()
        resp = client.post("/api/v1/traffic", json={"kind": kind, "name": name, "namespace": "payments"})
        _assert_valid_json_response(resp, allowed_status_codes={200, 400, 404})

    @given(extra=st.dictionaries(st.text(min_size=1, max_size=20).map(lambda k: f"x_{k}"), st.text(max_size=50), max_size=5))
    @settings(max_examples=30)
    def test_extra_fields_ignored(self, extra: dict) -> None:
        body = {**extra, "kind": "Service", "name": "checkout", "namespace": "payments"}
        resp = _make_app().post("/api/v1/traffic", json=body)
        _assert_valid_json_response(resp, allowed_status_codes={200})

    def test_missing_fields_return_400(self) -> None:
        resp = _make_app().post("/api/v1/traffic", json={})
        _assert_valid_json_response(resp, allowed_status_codes={400})


class TestImpactFuzz:
    @given(
        kind=_kinds,
        name=_names,
        action=st.one_of(st.sampled_from(["delete", "update"]), _json_safe_text),
    )
    @settings(max_examples=50)
    def test_random_bodies_never_500(self, kind: str, name: str, action: str) -> None:
        client = _make_app()
        resp = client.post(
            "/api/v1/impact",
            json={"kind": kind, "name": name, "namespace": "payments", "action": action},
        )
        _assert_valid_json_response(resp, allowed_status_codes={200, 400})

    @given(length=st.integers(min_value=300, max_value=2000))
    @settings(max_examples=10)
    def test_extremely_long_name_rejected(self, length: int) -> None:
        resp = _make_app().post("/api/v1/impact", json={"kind": "Secret", "name": "x" * length})
        _assert_valid_json_response(resp, allowed_status_codes={400})
