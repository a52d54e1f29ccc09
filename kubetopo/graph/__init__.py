"""Traffic-flow graph model.

Provides the node/edge value types, the per-query ``GraphBuilder``
accumulator and the Mermaid serializer consumed by the reporting layer.
"""

from kubetopo.graph.builder import GraphBuilder
from kubetopo.graph.mermaid import mermaid_key, to_mermaid
from kubetopo.graph.models import (
    NodeRole,
    TrafficEdge,
    TrafficGraph,
    TrafficNode,
    make_node,
    node_id,
    role_for_kind,
)

__all__ = [
    "GraphBuilder",
    "NodeRole",
    "TrafficEdge",
    "TrafficGraph",
    "TrafficNode",
    "make_node",
    "mermaid_key",
    "node_id",
    "role_for_kind",
    "to_mermaid",
]
