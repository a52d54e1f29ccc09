"""Prometheus metrics exported on ``/metrics``."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

traffic_queries_total = Counter(
    "kubetopo_traffic_queries_total",
    "Traffic-flow queries by start kind and outcome.",
    ["kind", "outcome"],
)

impact_queries_total = Counter(
    "kubetopo_impact_queries_total",
    "Impact queries by target kind, action and resulting severity.",
    ["kind", "action", "severity"],
)

discovery_warnings_total = Counter(
    "kubetopo_discovery_warnings_total",
    "Non-fatal warnings attached to traffic graphs, by start kind.",
    ["kind"],
)

query_duration_seconds = Histogram(
    "kubetopo_query_duration_seconds",
    "Wall-clock duration of a query.",
    ["query"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)
