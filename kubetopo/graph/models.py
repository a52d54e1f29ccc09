"""Data structures for the traffic-flow graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class NodeRole(StrEnum):
    """Coarse position of an object along a request path."""

    ENTRY = "entry"
    ROUTER = "router"
    SERVICE = "service"
    ENDPOINT = "endpoint"
    WORKLOAD = "workload"
    POD = "pod"
    UNKNOWN = "unknown"


_ROLE_BY_KIND: dict[str, NodeRole] = {
    "Ingress": NodeRole.ENTRY,
    "Gateway": NodeRole.ENTRY,
    "VirtualService": NodeRole.ROUTER,
    "DestinationRule": NodeRole.ROUTER,
    "Service": NodeRole.SERVICE,
    "EndpointSlice": NodeRole.ENDPOINT,
    "Endpoints": NodeRole.ENDPOINT,
    "Deployment": NodeRole.WORKLOAD,
    "StatefulSet": NodeRole.WORKLOAD,
    "DaemonSet": NodeRole.WORKLOAD,
    "ReplicaSet": NodeRole.WORKLOAD,
    "Job": NodeRole.WORKLOAD,
    "Pod": NodeRole.POD,
}


def role_for_kind(kind: str) -> NodeRole:
    return _ROLE_BY_KIND.get(kind, NodeRole.UNKNOWN)


def node_id(kind: str, name: str, namespace: str | None = None) -> str:
    """Return the stable ``kind|namespace|name`` identity of a node."""
    return f"{kind}|{namespace or ''}|{name}"


@dataclass(frozen=True)
class TrafficNode:
    """A cluster object participating in a traffic graph."""

    kind: str
    name: str
    namespace: str | None = None
    role: NodeRole = NodeRole.UNKNOWN

    @property
    def id(self) -> str:
        return node_id(self.kind, self.name, self.namespace)


def make_node(kind: str, name: str, namespace: str | None = None, role: NodeRole | None = None) -> TrafficNode:
    """Build a node, deriving its role from the kind unless one is given."""
    return TrafficNode(kind=kind, name=name, namespace=namespace, role=role or role_for_kind(kind))


@dataclass(frozen=True)
class TrafficEdge:
    """A directed relationship between two nodes.

    ``reason`` says why the relationship was discovered; the same pair of
    nodes may be linked by several edges with different reasons.
    """

    from_id: str
    to_id: str
    reason: str


@dataclass(frozen=True)
class TrafficGraph:
    """Immutable snapshot returned by ``GraphBuilder.build()``."""

    start: TrafficNode
    nodes: tuple[TrafficNode, ...] = ()
    edges: tuple[TrafficEdge, ...] = ()
    warnings: tuple[str, ...] = field(default_factory=tuple)

    def node(self, id_: str) -> TrafficNode | None:
        for n in self.nodes:
            if n.id == id_:
                return n
        return None
