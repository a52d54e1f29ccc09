"""Per-query state shared by the discovery algorithms."""

from __future__ import annotations

from dataclasses import dataclass

from kubetopo.cluster.protocol import ClusterReader
from kubetopo.hosts import DEFAULT_CLUSTER_DOMAIN
from kubetopo.owners import OwnerResolver

# Edge reasons reused across algorithms so revisiting a relationship from a
# different start kind collapses onto the same edge.
REASON_SERVICE_ENDPOINT_SLICE = "Service selects EndpointSlice (kubernetes.io/service-name)"
REASON_ENDPOINT_POD = "EndpointSlice endpoint targetRef -> Pod"
REASON_INGRESS_BACKEND = "Ingress backend routes to Service"
REASON_GATEWAY_VIRTUAL_SERVICE = "Gateway is referenced by VirtualService"
REASON_DESTINATION_RULE_SERVICE = "DestinationRule applies to this service host"
REASON_SERVICE_SELECTS_POD = "Service selector matches Pod labels"
REASON_OWNER_POD = "Workload owns Pod (ownerReferences)"
REASON_WORKLOAD_SELECTS_POD = "Workload selector matches Pod labels"
REASON_VIRTUAL_SERVICE_HOST = "VirtualService routes to Service via destination.host"


@dataclass
class DiscoveryContext:
    """Everything an algorithm needs besides the graph and its start object.

    Created once per query; ``owners`` memoises ReplicaSet lookups for
    that query only.
    """

    cluster: ClusterReader
    owners: OwnerResolver
    domain: str = DEFAULT_CLUSTER_DOMAIN
    include_istio: bool = True
    max_workload_pods: int = 10

    @classmethod
    def for_query(
        cls,
        cluster: ClusterReader,
        domain: str = DEFAULT_CLUSTER_DOMAIN,
        include_istio: bool = True,
        max_workload_pods: int = 10,
    ) -> DiscoveryContext:
        return cls(
            cluster=cluster,
            owners=OwnerResolver(cluster),
            domain=domain,
            include_istio=include_istio,
            max_workload_pods=max_workload_pods,
        )
