"""Discovery starting from a multi-pod controller (Deployment and friends)."""

from __future__ import annotations

import asyncio
from typing import Any

from kubetopo.cluster.lookup import best_effort
from kubetopo.graph.builder import GraphBuilder
from kubetopo.graph.models import make_node
from kubetopo.selectors import has_match_expressions, match_labels_of, selects_none, to_label_selector
from kubetopo.traffic.context import REASON_WORKLOAD_SELECTS_POD, DiscoveryContext
from kubetopo.traffic.pod_flow import link_pod, list_services
from kubetopo.traffic.service_flow import discover_from_service

WORKLOAD_KINDS = frozenset({"Deployment", "StatefulSet", "DaemonSet", "ReplicaSet"})


async def discover_from_workload(
    ctx: DiscoveryContext,
    gb: GraphBuilder,
    kind: str,
    name: str,
    namespace: str,
) -> list[dict[str, Any]]:
    """Run pod discovery for each member pod; returns the pods inspected."""
    workload_node = make_node(kind, name, namespace)
    gb.add_node(workload_node)

    lookup = await best_effort(ctx.cluster.get(kind, name, namespace), f"{kind} {name} lookup", None)
    if lookup.value is None:
        gb.add_warning(lookup.note or f"{kind} {name} not found in namespace {namespace}")
        return []

    selector = (lookup.value.get("spec") or {}).get("selector")
    match_labels = match_labels_of(selector)
    if has_match_expressions(selector):
        gb.add_warning(f"{kind} {name} selector uses matchExpressions; only matchLabels is evaluated.")
    if not match_labels:
        gb.add_warning(f"{kind} {name} has no spec.selector.matchLabels; cannot list member pods reliably.")
        return []

    pods_lookup = await best_effort(
        ctx.cluster.list("Pod", namespace, label_selector=to_label_selector(match_labels)),
        f"Pod lookup for {kind} {name}",
        [],
    )
    if pods_lookup.note:
        gb.add_warning(pods_lookup.note)
        return []

    pods = sorted(
        (p for p in pods_lookup.value if selects_none((p.get("metadata") or {}).get("labels"), match_labels)),
        key=lambda p: (p.get("metadata") or {}).get("name") or "",
    )
    if not pods:
        gb.add_warning(f"No pods currently match the selector of {kind} {name}.")
        return []
    if len(pods) > ctx.max_workload_pods:
        gb.add_warning(
            f"{kind} {name} selects {len(pods)} pods; only the first {ctx.max_workload_pods} were inspected."
        )
        pods = pods[: ctx.max_workload_pods]

    services = await list_services(ctx, gb, namespace)
    found = await asyncio.gather(*(link_pod(ctx, gb, p, services) for p in pods))

    # Service -> member pods it selects, so each Service is discovered once.
    members_by_service: dict[str, list[str]] = {}
    for pod, discovery in zip(pods, found):
        pod_name = (pod.get("metadata") or {}).get("name") or ""
        pod_node = make_node("Pod", pod_name, namespace)
        if not gb.has_edge(workload_node.id, pod_node.id):
            gb.add_edge(workload_node, pod_node, REASON_WORKLOAD_SELECTS_POD)
        for svc in discovery.services:
            members_by_service.setdefault(svc, []).append(pod_name)

    await asyncio.gather(
        *(
            discover_from_service(ctx, gb, svc, namespace, focus_pods=members)
            for svc, members in members_by_service.items()
        )
    )
    return pods
