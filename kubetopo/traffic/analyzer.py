"""Traffic query facade: validate, check the start object, discover, render."""

from __future__ import annotations

import asyncio
import time
from typing import Any

from kubetopo.cluster.protocol import ClusterReader
from kubetopo.errors import ClusterAccessError, InvalidTargetError, NotFoundError, StartObjectNotFoundError
from kubetopo.graph.builder import GraphBuilder
from kubetopo.graph.mermaid import to_mermaid
from kubetopo.graph.models import make_node
from kubetopo.kinds import ISTIO_KINDS, normalize_kind
from kubetopo.models.config import KubeTopoConfig
from kubetopo.models.network import NetworkPolicyEvaluation
from kubetopo.models.traffic import TrafficFlowRequest, TrafficFlowResult
from kubetopo.observability.logging import get_logger, query_context
from kubetopo.observability.metrics import discovery_warnings_total, query_duration_seconds, traffic_queries_total
from kubetopo.selectors import resolve_namespace
from kubetopo.traffic.context import DiscoveryContext
from kubetopo.traffic.network_policy import evaluate_network_policies
from kubetopo.traffic.router import SUPPORTED_START_KINDS, discover_traffic

_logger = get_logger("traffic.analyzer")


async def ensure_start_exists(
    cluster: ClusterReader,
    kind: str,
    name: str,
    namespace: str,
    include_istio: bool,
) -> None:
    """Fail fast when the start object is missing.

    Kinds without a discovery algorithm are not checked; the router reports
    them as a warning instead.
    """
    if kind not in SUPPORTED_START_KINDS:
        return
    if kind in ISTIO_KINDS and not include_istio:
        return
    try:
        await cluster.get(kind, name, namespace)
    except NotFoundError as exc:
        raise StartObjectNotFoundError(kind, name, namespace) from exc


async def _evaluate_policies(
    cluster: ClusterReader,
    request: TrafficFlowRequest,
    namespace: str,
    pods: list[dict[str, Any]],
    max_policies: int,
) -> dict[str, NetworkPolicyEvaluation]:
    """Evaluate each destination pod against its namespace's policies.

    A traffic query names no destination port, so ``ports`` lists on ingress
    rules are not applied: a rule that admits the source on any port counts
    as allowing it.
    """
    source_pod = request.from_name if normalize_kind(request.from_kind or "") == "Pod" else None
    evaluations = await asyncio.gather(
        *(
            evaluate_network_policies(
                cluster,
                namespace,
                pod,
                source_pod_name=source_pod,
                source_namespace=request.from_namespace,
                max_policies=max_policies,
            )
            for pod in pods
        )
    )
    return {e.pod: e for e in evaluations}


async def analyze_traffic_flow(
    cluster: ClusterReader,
    request: TrafficFlowRequest,
    config: KubeTopoConfig | None = None,
) -> TrafficFlowResult:
    """Build the traffic graph around ``request.kind/name``.

    Raises:
        InvalidTargetError: kind or name missing (before any cluster call).
        StartObjectNotFoundError: the start object does not exist.
        ClusterAccessError: the start object could not be read.
    """
    config = config or KubeTopoConfig()
    kind = normalize_kind(request.kind or "")
    name = (request.name or "").strip()
    if not kind or not name:
        raise InvalidTargetError("analyze_traffic_flow requires kind and name")

    t_start = time.monotonic()
    namespace = resolve_namespace(request.namespace, cluster.default_namespace())
    with query_context("traffic", kind, name, namespace):
        return await _run_query(cluster, request, config, kind, name, namespace, t_start)


async def _run_query(
    cluster: ClusterReader,
    request: TrafficFlowRequest,
    config: KubeTopoConfig,
    kind: str,
    name: str,
    namespace: str,
    t_start: float,
) -> TrafficFlowResult:
    try:
        await ensure_start_exists(cluster, kind, name, namespace, request.include_istio)
    except (StartObjectNotFoundError, ClusterAccessError) as exc:
        traffic_queries_total.labels(kind=kind, outcome="start_failed").inc()
        _logger.info("traffic_start_unavailable", error=str(exc))
        raise

    gb = GraphBuilder(make_node(kind, name, namespace))
    if request.max_depth is not None:
        gb.add_warning(
            f"max_depth={request.max_depth} is accepted but not enforced; "
            "discovery follows fixed per-kind hop sequences."
        )

    ctx = DiscoveryContext.for_query(
        cluster,
        domain=config.cluster.domain,
        include_istio=request.include_istio,
        max_workload_pods=config.discovery.max_workload_pods,
    )
    outcome = "ok"
    pods: list[dict[str, Any]] = []
    try:
        async with asyncio.timeout(config.discovery.query_timeout_seconds):
            pods = await discover_traffic(ctx, gb, kind, name, namespace)
    except TimeoutError:
        outcome = "partial"
        gb.add_warning(
            f"Discovery exceeded {config.discovery.query_timeout_seconds}s; the graph below is partial."
        )
        _logger.warning("traffic_query_timed_out", timeout=config.discovery.query_timeout_seconds)

    network_policies: dict[str, NetworkPolicyEvaluation] = {}
    if pods and config.discovery.evaluate_network_policies and outcome == "ok":
        network_policies = await _evaluate_policies(
            cluster, request, namespace, pods, config.discovery.max_network_policies
        )

    graph = gb.build()
    if graph.warnings:
        discovery_warnings_total.labels(kind=kind).inc(len(graph.warnings))
    traffic_queries_total.labels(kind=kind, outcome=outcome).inc()
    query_duration_seconds.labels(query="traffic").observe(time.monotonic() - t_start)
    _logger.info(
        "traffic_query_done",
        nodes=len(graph.nodes),
        edges=len(graph.edges),
        warnings=len(graph.warnings),
        policies=len(network_policies),
        outcome=outcome,
    )

    return TrafficFlowResult(
        start=graph.start,
        nodes=list(graph.nodes),
        edges=list(graph.edges),
        mermaid=to_mermaid(graph),
        warnings=list(graph.warnings),
        network_policies=network_policies,
    )
