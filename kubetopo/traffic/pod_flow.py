"""Discovery starting from a Pod: owning workload and fronting Services."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from kubetopo.cluster.lookup import best_effort
from kubetopo.graph.builder import GraphBuilder
from kubetopo.graph.models import make_node
from kubetopo.selectors import selects_none
from kubetopo.traffic.context import REASON_OWNER_POD, REASON_SERVICE_SELECTS_POD, DiscoveryContext


@dataclass
class PodDiscovery:
    """What pod discovery hands back to the router for chaining."""

    pod: dict[str, Any] | None = None
    services: list[str] = field(default_factory=list)


async def discover_from_pod(ctx: DiscoveryContext, gb: GraphBuilder, name: str, namespace: str) -> PodDiscovery:
    gb.add_node(make_node("Pod", name, namespace))
    lookup = await best_effort(ctx.cluster.get("Pod", name, namespace), f"Pod {name} lookup", None)
    if lookup.value is None:
        gb.add_warning(lookup.note or f"Pod {name} not found in namespace {namespace}")
        return PodDiscovery()
    return await link_pod(ctx, gb, lookup.value)


async def list_services(ctx: DiscoveryContext, gb: GraphBuilder, namespace: str) -> list[dict[str, Any]]:
    services = await best_effort(ctx.cluster.list("Service", namespace), f"Service lookup in namespace {namespace}", [])
    if services.note:
        gb.add_warning(services.note)
    return services.value


async def link_pod(
    ctx: DiscoveryContext,
    gb: GraphBuilder,
    pod: dict[str, Any],
    services: list[dict[str, Any]] | None = None,
) -> PodDiscovery:
    """Add owner and selecting-Service edges for an already-read pod.

    *services* is the namespace's Service list when the caller already holds
    it; otherwise it is read here.
    """
    meta = pod.get("metadata") or {}
    name = meta.get("name") or ""
    namespace = meta.get("namespace") or ""
    pod_node = make_node("Pod", name, namespace)

    owner = await ctx.owners.collapse(pod)
    if owner.kind != "Pod":
        reason = f"Workload owns Pod via ReplicaSet {owner.via}" if owner.via else REASON_OWNER_POD
        gb.add_edge(make_node(owner.kind, owner.name, namespace), pod_node, reason)

    if services is None:
        services = await list_services(ctx, gb, namespace)

    labels = meta.get("labels") or {}
    matched: list[str] = []
    for svc in services:
        svc_name = (svc.get("metadata") or {}).get("name")
        if not svc_name:
            continue
        if selects_none(labels, (svc.get("spec") or {}).get("selector")):
            gb.add_edge(make_node("Service", svc_name, namespace), pod_node, REASON_SERVICE_SELECTS_POD)
            matched.append(svc_name)

    return PodDiscovery(pod=pod, services=matched)
