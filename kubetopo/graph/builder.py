"""Per-query accumulator for discovered nodes, edges and warnings."""

from __future__ import annotations

import threading

from kubetopo.graph.models import TrafficEdge, TrafficGraph, TrafficNode


class GraphBuilder:
    """Collects the graph of a single query.

    Nodes are keyed by id and keep first-insertion order; edges are unique by
    ``(from, to, reason)`` and warnings by text. All mutators take the same
    lock and never await while holding it, so sibling lookups may share one
    builder from tasks or threads.
    """

    def __init__(self, start: TrafficNode) -> None:
        self._start = start
        self._lock = threading.Lock()
        self._nodes: dict[str, TrafficNode] = {}
        self._edges: list[TrafficEdge] = []
        self._edge_keys: set[tuple[str, str, str]] = set()
        self._warnings: list[str] = []
        self.add_node(start)

    @property
    def start(self) -> TrafficNode:
        return self._start

    def add_node(self, node: TrafficNode) -> None:
        with self._lock:
            self._nodes[node.id] = node

    def add_edge(self, from_node: TrafficNode, to_node: TrafficNode, reason: str) -> None:
        with self._lock:
            self._nodes.setdefault(from_node.id, from_node)
            self._nodes.setdefault(to_node.id, to_node)
            key = (from_node.id, to_node.id, reason)
            if key in self._edge_keys:
                return
            self._edge_keys.add(key)
            self._edges.append(TrafficEdge(from_id=from_node.id, to_id=to_node.id, reason=reason))

    def add_warning(self, warning: str) -> None:
        with self._lock:
            if warning not in self._warnings:
                self._warnings.append(warning)

    def has_edge(self, from_id: str, to_id: str, reason: str | None = None) -> bool:
        with self._lock:
            if reason is not None:
                return (from_id, to_id, reason) in self._edge_keys
            return any(f == from_id and t == to_id for f, t, _ in self._edge_keys)

    def build(self) -> TrafficGraph:
        with self._lock:
            return TrafficGraph(
                start=self._start,
                nodes=tuple(self._nodes.values()),
                edges=tuple(self._edges),
                warnings=tuple(self._warnings),
            )
