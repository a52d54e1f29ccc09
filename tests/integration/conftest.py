"""Shared fixtures for kubetopo integration tests.

Provides in-memory clusters laid out like small real applications so the
traffic and impact queries can be exercised end to end without touching a
real Kubernetes API server.
"""

from __future__ import annotations

import pytest
from kube_fakes import (
    FakeCluster,
    make_endpoint_slice,
    make_ingress,
    make_namespace,
    make_pod,
    make_replica_set,
    make_secret,
    make_service,
    make_workload,
)

from kubetopo.models.config import DiscoveryConfig, KubeTopoConfig

# ---------------------------------------------------------------------------
# Scenario builders
# ---------------------------------------------------------------------------


def checkout_objects() -> list[dict]:
    """payments/checkout: Ingress -> Service -> EndpointSlice -> one ready pod.

    checkout-7d9 is listed in the EndpointSlice; checkout-x1z matches the
    selector but is not ready, so it never appears as an endpoint.
    """
    pod_spec = {"containers": [{"name": "api", "envFrom": [{"secretRef": {"name": "db-creds"}}]}]}
    return [
        make_namespace("payments", {"team": "payments"}),
        make_ingress("shop", "payments", backends=[("shop.example.com", "/pay", "checkout")]),
        make_service("checkout", "payments", {"app": "checkout"}),
        make_endpoint_slice("checkout-abc12", "payments", "checkout", ["checkout-7d9"]),
        make_workload("Deployment", "checkout", "payments", {"app": "checkout"}, pod_spec=pod_spec),
        make_replica_set("checkout-5f6", "payments", "checkout"),
        make_pod("checkout-7d9", "payments", {"app": "checkout"}, owner=("ReplicaSet", "checkout-5f6")),
        make_pod("checkout-x1z", "payments", {"app": "checkout"}, owner=("ReplicaSet", "checkout-5f6")),
        make_secret("db-creds", "payments"),
    ]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def checkout_cluster() -> FakeCluster:
    return FakeCluster(*checkout_objects())


@pytest.fixture
def config() -> KubeTopoConfig:
    return KubeTopoConfig()


@pytest.fixture
def fast_config() -> KubeTopoConfig:
    """Tight query timeout for partial-result scenarios."""
    return KubeTopoConfig(discovery=DiscoveryConfig(query_timeout_seconds=0.2))
