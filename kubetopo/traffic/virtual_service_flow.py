"""Discovery starting from an Istio VirtualService or Gateway."""

from __future__ import annotations

import asyncio

from kubetopo.cluster.lookup import best_effort
from kubetopo.graph.builder import GraphBuilder
from kubetopo.graph.models import make_node
from kubetopo.hosts import iter_route_destinations, namespaced_host_guess, service_for_host
from kubetopo.traffic.context import (
    REASON_GATEWAY_VIRTUAL_SERVICE,
    REASON_VIRTUAL_SERVICE_HOST,
    DiscoveryContext,
)
from kubetopo.traffic.service_flow import discover_from_service, link_gateways


async def discover_from_virtual_service(ctx: DiscoveryContext, gb: GraphBuilder, name: str, namespace: str) -> None:
    vs_node = make_node("VirtualService", name, namespace)
    gb.add_node(vs_node)

    lookup = await best_effort(
        ctx.cluster.get("VirtualService", name, namespace),
        f"VirtualService {name} lookup",
        None,
    )
    if lookup.value is None:
        gb.add_warning(lookup.note or f"VirtualService {name} not found in namespace {namespace}")
        return
    vs = lookup.value

    link_gateways(gb, vs_node, vs)

    hosts: dict[str, None] = {}
    for _protocol, dest, _weight in iter_route_destinations(vs.get("spec") or {}):
        host = str(dest["host"]).strip()
        if host:
            hosts.setdefault(host, None)
    resolved = await asyncio.gather(*(_resolve_host(ctx, gb, host, namespace) for host in hosts))

    destinations: dict[tuple[str, str], None] = {}
    for target in resolved:
        if target is not None:
            destinations.setdefault(target, None)

    # Service discovery only sees VirtualServices in the Service's own
    # namespace, so cross-namespace destinations are linked here.
    for svc_name, svc_ns in destinations:
        if svc_ns != namespace:
            gb.add_edge(vs_node, make_node("Service", svc_name, svc_ns), REASON_VIRTUAL_SERVICE_HOST)

    await asyncio.gather(
        *(discover_from_service(ctx, gb, svc_name, svc_ns) for svc_name, svc_ns in destinations)
    )


async def _resolve_host(ctx: DiscoveryContext, gb: GraphBuilder, host: str, namespace: str) -> tuple[str, str] | None:
    """The Service a destination host addresses, or None for external hosts."""
    target = service_for_host(host, namespace, ctx.domain)
    if target is not None:
        return target

    guess = namespaced_host_guess(host)
    if guess is not None:
        svc_name, svc_ns = guess
        lookup = await best_effort(
            ctx.cluster.get("Service", svc_name, svc_ns),
            f"Service {svc_name} lookup in namespace {svc_ns}",
            None,
        )
        if lookup.value is not None:
            return guess
        if not lookup.not_found:
            gb.add_warning(lookup.note or f"Service {svc_name} lookup in namespace {svc_ns} failed")
            return None

    gb.add_warning(f"Destination host {host} does not name an in-cluster Service; not followed.")
    return None


def gateway_bound(gateways: list[str], name: str, namespace: str) -> str | None:
    """The reference under which a VirtualService binds Gateway *name*, if any."""
    qualified = f"{namespace}/{name}"
    if qualified in gateways:
        return qualified
    if name in gateways:
        return name
    return None


async def discover_from_gateway(ctx: DiscoveryContext, gb: GraphBuilder, name: str, namespace: str) -> None:
    gw_node = make_node("Gateway", name, namespace)
    gb.add_node(gw_node)

    virtual_services = await best_effort(
        ctx.cluster.list("VirtualService", namespace),
        f"VirtualService lookup in namespace {namespace}",
        [],
    )
    if virtual_services.note:
        gb.add_warning(virtual_services.note)
        return

    bound: list[str] = []
    for vs in virtual_services.value:
        vs_name = (vs.get("metadata") or {}).get("name")
        refs = [str(r) for r in (vs.get("spec") or {}).get("gateways") or []]
        if vs_name and gateway_bound(refs, name, namespace):
            gb.add_edge(gw_node, make_node("VirtualService", vs_name, namespace), REASON_GATEWAY_VIRTUAL_SERVICE)
            bound.append(vs_name)

    if not bound:
        gb.add_warning(f"No VirtualService in namespace {namespace} references Gateway {name}.")
        return

    await asyncio.gather(*(discover_from_virtual_service(ctx, gb, vs_name, namespace) for vs_name in bound))
