"""Discovery starting from a Service.

Downstream: Service -> EndpointSlice -> Pod.
Upstream:   Ingress -> Service, and Gateway -> VirtualService ->
            (DestinationRule ->) Service when Istio discovery is enabled.
"""

from __future__ import annotations

import asyncio
from collections.abc import Collection
from typing import Any

from kubetopo.cluster.lookup import best_effort
from kubetopo.graph.builder import GraphBuilder
from kubetopo.graph.models import TrafficNode, make_node
from kubetopo.hosts import find_destination_rule, host_matches_service, iter_route_destinations, parse_gateway_ref
from kubetopo.traffic.context import (
    REASON_DESTINATION_RULE_SERVICE,
    REASON_ENDPOINT_POD,
    REASON_GATEWAY_VIRTUAL_SERVICE,
    REASON_INGRESS_BACKEND,
    REASON_SERVICE_ENDPOINT_SLICE,
    REASON_VIRTUAL_SERVICE_HOST,
    DiscoveryContext,
)

SERVICE_NAME_LABEL = "kubernetes.io/service-name"


async def discover_from_service(
    ctx: DiscoveryContext,
    gb: GraphBuilder,
    name: str,
    namespace: str,
    focus_pods: Collection[str] | None = None,
) -> None:
    """Populate *gb* with everything routing to or served by Service *name*.

    With *focus_pods* set, only those pods are linked below the EndpointSlices so
    pod-scoped discovery never fans out to siblings.
    """
    svc = make_node("Service", name, namespace)
    gb.add_node(svc)

    slices, ingresses = await asyncio.gather(
        best_effort(
            ctx.cluster.list("EndpointSlice", namespace, label_selector=f"{SERVICE_NAME_LABEL}={name}"),
            f"EndpointSlice lookup for Service {name}",
            [],
        ),
        best_effort(ctx.cluster.list("Ingress", namespace), f"Ingress lookup in namespace {namespace}", []),
    )

    if slices.note:
        gb.add_warning(slices.note)
    else:
        _link_endpoint_slices(gb, svc, slices.value, namespace, focus_pods)

    if ingresses.note:
        gb.add_warning(ingresses.note)
    else:
        _link_ingresses(gb, svc, ingresses.value)

    if ctx.include_istio:
        await _link_virtual_services(ctx, gb, svc)


def _link_endpoint_slices(
    gb: GraphBuilder,
    svc: TrafficNode,
    slices: list[dict[str, Any]],
    namespace: str,
    focus_pods: Collection[str] | None,
) -> None:
    seen: set[str] = set()
    for es in slices:
        es_name = (es.get("metadata") or {}).get("name")
        if not es_name:
            continue
        es_node = make_node("EndpointSlice", es_name, namespace)
        gb.add_edge(svc, es_node, REASON_SERVICE_ENDPOINT_SLICE)

        for ep in es.get("endpoints") or []:
            ref = (ep or {}).get("targetRef") or {}
            if ref.get("kind") != "Pod" or not ref.get("name"):
                continue
            if focus_pods is not None and ref["name"] not in focus_pods:
                continue
            seen.add(ref["name"])
            pod_node = make_node("Pod", ref["name"], ref.get("namespace") or namespace)
            gb.add_edge(es_node, pod_node, REASON_ENDPOINT_POD)

    for pod_name in focus_pods or ():
        if pod_name not in seen:
            gb.add_warning(
                f"Service {svc.name} selects Pod {pod_name} but the Pod is not listed in its "
                "EndpointSlices (likely NotReady or endpoints not yet updated)."
            )


def ingress_backend_services(ingress: dict[str, Any]) -> list[str]:
    """Backend Service names of an Ingress in first-seen order, de-duplicated."""
    spec = ingress.get("spec") or {}
    names: dict[str, None] = {}
    for rule in spec.get("rules") or []:
        for path in ((rule or {}).get("http") or {}).get("paths") or []:
            svc_name = (((path or {}).get("backend") or {}).get("service") or {}).get("name")
            if svc_name:
                names.setdefault(svc_name, None)
    default = ((spec.get("defaultBackend") or {}).get("service") or {}).get("name")
    if default:
        names.setdefault(default, None)
    return list(names)


def _link_ingresses(gb: GraphBuilder, svc: TrafficNode, ingresses: list[dict[str, Any]]) -> None:
    for ing in ingresses:
        ing_name = (ing.get("metadata") or {}).get("name")
        if ing_name and svc.name in ingress_backend_services(ing):
            gb.add_edge(make_node("Ingress", ing_name, svc.namespace), svc, REASON_INGRESS_BACKEND)


def link_gateways(gb: GraphBuilder, vs_node: TrafficNode, vs: dict[str, Any]) -> None:
    namespace = vs_node.namespace or ""
    for ref in (vs.get("spec") or {}).get("gateways") or []:
        parsed = parse_gateway_ref(str(ref), namespace)
        if parsed is None:
            continue
        gw_name, gw_ns = parsed
        gb.add_edge(make_node("Gateway", gw_name, gw_ns), vs_node, REASON_GATEWAY_VIRTUAL_SERVICE)


def _extras_suffix(subset: str | None, weight: Any) -> str:
    extras = []
    if subset:
        extras.append(f"subset: {subset}")
    if isinstance(weight, int):
        extras.append(f"traffic: {weight}%")
    return f" ({', '.join(extras)})" if extras else ""


def _weights_suffix(weights: list[int]) -> str:
    if len(weights) == 1:
        return f" (traffic: {weights[0]}%)"
    if len(weights) > 1:
        return f" (traffic weights: {'/'.join(str(w) for w in weights)}%)"
    return ""


async def _link_virtual_services(ctx: DiscoveryContext, gb: GraphBuilder, svc: TrafficNode) -> None:
    namespace = svc.namespace or ""
    rules, virtual_services = await asyncio.gather(
        best_effort(
            ctx.cluster.list("DestinationRule", namespace),
            f"DestinationRule lookup in namespace {namespace}",
            [],
        ),
        best_effort(
            ctx.cluster.list("VirtualService", namespace),
            f"VirtualService lookup in namespace {namespace}",
            [],
        ),
    )
    for lookup in (rules, virtual_services):
        if lookup.note:
            gb.add_warning(lookup.note)

    for vs in virtual_services.value:
        vs_name = (vs.get("metadata") or {}).get("name")
        if not vs_name:
            continue

        matched: list[tuple[str, str | None, Any]] = []
        for _protocol, dest, weight in iter_route_destinations(vs.get("spec") or {}):
            host = str(dest["host"])
            if host_matches_service(host, svc.name, namespace, ctx.domain):
                subset = dest.get("subset")
                matched.append((host, str(subset) if subset else None, weight))
        if not matched:
            continue

        vs_node = make_node("VirtualService", vs_name, namespace)
        link_gateways(gb, vs_node, vs)

        via_rule = False
        for host, subset, weight in matched:
            dr = find_destination_rule(rules.value, host, svc.name, namespace, ctx.domain)
            dr_name = ((dr or {}).get("metadata") or {}).get("name")
            if not dr_name:
                continue
            via_rule = True
            dr_node = make_node("DestinationRule", dr_name, namespace)
            gb.add_edge(
                vs_node,
                dr_node,
                f"VirtualService traffic policy via DestinationRule{_extras_suffix(subset, weight)}",
            )
            gb.add_edge(dr_node, svc, REASON_DESTINATION_RULE_SERVICE)

        if not via_rule:
            weights = [w for _h, _s, w in matched if isinstance(w, int)]
            gb.add_edge(vs_node, svc, f"{REASON_VIRTUAL_SERVICE_HOST}{_weights_suffix(weights)}")
