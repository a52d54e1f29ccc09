"""Traffic-flow discovery.

Submodules:
    context              -- per-query ``DiscoveryContext`` and shared edge reasons.
    service_flow         -- Service -> EndpointSlice -> Pod, Ingress/VirtualService upstream.
    pod_flow             -- owning workload and selecting Services of one pod.
    workload_flow        -- member pods of Deployments, StatefulSets, DaemonSets, ReplicaSets.
    ingress_flow         -- Ingress backends.
    virtual_service_flow -- VirtualService destinations and Gateway bindings.
    network_policy       -- best-effort ingress evaluation for destination pods.
    router               -- start-kind dispatch.
    analyzer             -- ``analyze_traffic_flow`` query facade.
"""

from kubetopo.traffic.analyzer import analyze_traffic_flow
from kubetopo.traffic.network_policy import evaluate_network_policies

__all__ = ["analyze_traffic_flow", "evaluate_network_policies"]
