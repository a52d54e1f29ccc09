"""Discovery starting from an Ingress."""

from __future__ import annotations

import asyncio

from kubetopo.cluster.lookup import best_effort
from kubetopo.graph.builder import GraphBuilder
from kubetopo.graph.models import make_node
from kubetopo.traffic.context import REASON_INGRESS_BACKEND, DiscoveryContext
from kubetopo.traffic.service_flow import discover_from_service, ingress_backend_services


async def discover_from_ingress(ctx: DiscoveryContext, gb: GraphBuilder, name: str, namespace: str) -> None:
    ing_node = make_node("Ingress", name, namespace)
    gb.add_node(ing_node)

    lookup = await best_effort(ctx.cluster.get("Ingress", name, namespace), f"Ingress {name} lookup", None)
    if lookup.value is None:
        gb.add_warning(lookup.note or f"Ingress {name} not found in namespace {namespace}")
        return

    backends = ingress_backend_services(lookup.value)
    for svc_name in backends:
        gb.add_edge(ing_node, make_node("Service", svc_name, namespace), REASON_INGRESS_BACKEND)

    await asyncio.gather(*(discover_from_service(ctx, gb, svc_name, namespace) for svc_name in backends))
