"""Dispatch a start object to its discovery algorithm."""

from __future__ import annotations

import asyncio
from typing import Any

from kubetopo.graph.builder import GraphBuilder
from kubetopo.kinds import ResourceKind
from kubetopo.traffic.context import DiscoveryContext
from kubetopo.traffic.ingress_flow import discover_from_ingress
from kubetopo.traffic.pod_flow import discover_from_pod
from kubetopo.traffic.service_flow import discover_from_service
from kubetopo.traffic.virtual_service_flow import discover_from_gateway, discover_from_virtual_service
from kubetopo.traffic.workload_flow import discover_from_workload

SUPPORTED_START_KINDS = (
    ResourceKind.SERVICE,
    ResourceKind.POD,
    ResourceKind.DEPLOYMENT,
    ResourceKind.STATEFUL_SET,
    ResourceKind.DAEMON_SET,
    ResourceKind.REPLICA_SET,
    ResourceKind.INGRESS,
    ResourceKind.VIRTUAL_SERVICE,
    ResourceKind.GATEWAY,
)


async def discover_traffic(
    ctx: DiscoveryContext,
    gb: GraphBuilder,
    kind: str,
    name: str,
    namespace: str,
) -> list[dict[str, Any]]:
    """Run the algorithm for *kind*; returns the destination pods inspected.

    Unsupported kinds leave a warning and the start node alone.
    """
    match kind:
        case ResourceKind.SERVICE:
            await discover_from_service(ctx, gb, name, namespace)
            return []

        case ResourceKind.POD:
            found = await discover_from_pod(ctx, gb, name, namespace)
            # Upstream routing is expanded, downstream stays on this pod.
            await asyncio.gather(
                *(discover_from_service(ctx, gb, svc, namespace, focus_pods=(name,)) for svc in found.services)
            )
            return [found.pod] if found.pod else []

        case (
            ResourceKind.DEPLOYMENT
            | ResourceKind.STATEFUL_SET
            | ResourceKind.DAEMON_SET
            | ResourceKind.REPLICA_SET
        ):
            return await discover_from_workload(ctx, gb, kind, name, namespace)

        case ResourceKind.INGRESS:
            await discover_from_ingress(ctx, gb, name, namespace)
            return []

        case ResourceKind.VIRTUAL_SERVICE | ResourceKind.GATEWAY if not ctx.include_istio:
            gb.add_warning(f"include_istio=false: {kind} discovery disabled")
            return []

        case ResourceKind.VIRTUAL_SERVICE:
            await discover_from_virtual_service(ctx, gb, name, namespace)
            return []

        case ResourceKind.GATEWAY:
            await discover_from_gateway(ctx, gb, name, namespace)
            return []

        case _:
            supported = "/".join(SUPPORTED_START_KINDS)
            gb.add_warning(f"Traffic flow discovery for kind={kind} is not supported. Try {supported}.")
            return []
