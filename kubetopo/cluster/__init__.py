"""Cluster access for kubetopo.

Submodules:
    protocol -- ``ClusterReader`` interface consumed by discovery and impact rules.
    kube     -- kubernetes-asyncio implementation used in production.
    lookup   -- ``best_effort`` wrapper turning auxiliary failures into notes.
"""

from kubetopo.cluster.lookup import Lookup, best_effort
from kubetopo.cluster.protocol import ClusterReader

__all__ = ["ClusterReader", "Lookup", "best_effort"]
