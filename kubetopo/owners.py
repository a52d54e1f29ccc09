"""Collapse a pod's owner chain to its top-level workload."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from kubetopo.cluster.protocol import ClusterReader
from kubetopo.errors import ClusterAccessError, NotFoundError
from kubetopo.observability.logging import get_logger

_logger = get_logger("owners")


@dataclass(frozen=True)
class OwnerRef:
    """Top-most resolvable owner of a pod.

    ``via`` names the intermediate ReplicaSet when the chain was collapsed
    through one.
    """

    kind: str
    name: str
    via: str | None = None


def controller_owner(obj: dict[str, Any]) -> dict[str, Any] | None:
    """The owner reference with ``controller: true``, else the first one."""
    owners = (obj.get("metadata") or {}).get("ownerReferences") or []
    if not owners:
        return None
    for o in owners:
        if o.get("controller"):
            return o  # type: ignore[no-any-return]
    return owners[0]  # type: ignore[no-any-return]


class OwnerResolver:
    """Resolves pods to workloads, memoising ReplicaSet lookups.

    One resolver lives for one query; the memo is never shared across
    queries so it cannot go stale. Concurrent callers asking for the same
    ReplicaSet share one in-flight read.
    """

    def __init__(self, cluster: ClusterReader) -> None:
        self._cluster = cluster
        self._replica_sets: dict[tuple[str, str], asyncio.Task[OwnerRef]] = {}

    async def collapse(self, pod: dict[str, Any]) -> OwnerRef:
        meta = pod.get("metadata") or {}
        namespace = meta.get("namespace") or ""
        owner = controller_owner(pod)
        if owner is None or not owner.get("kind") or not owner.get("name"):
            return OwnerRef(kind="Pod", name=meta.get("name") or "unknown")

        kind, name = str(owner["kind"]), str(owner["name"])
        if kind != "ReplicaSet":
            return OwnerRef(kind=kind, name=name)
        return await self._resolve_replica_set(name, namespace)

    async def _resolve_replica_set(self, rs_name: str, namespace: str) -> OwnerRef:
        key = (namespace, rs_name)
        task = self._replica_sets.get(key)
        if task is None:
            task = asyncio.create_task(self._read_replica_set(rs_name, namespace))
            self._replica_sets[key] = task
        return await task

    async def _read_replica_set(self, rs_name: str, namespace: str) -> OwnerRef:
        top = OwnerRef(kind="ReplicaSet", name=rs_name)
        try:
            rs = await self._cluster.get("ReplicaSet", rs_name, namespace)
        except (NotFoundError, ClusterAccessError) as exc:
            _logger.debug("replicaset_read_failed", replicaset=rs_name, namespace=namespace, error=str(exc))
        else:
            for o in (rs.get("metadata") or {}).get("ownerReferences") or []:
                if o.get("kind") == "Deployment" and o.get("name"):
                    top = OwnerRef(kind="Deployment", name=str(o["name"]), via=rs_name)
                    break
        return top


async def collapse_owner_chain(cluster: ClusterReader, pod: dict[str, Any]) -> OwnerRef:
    """One-shot helper for callers without a resolver of their own."""
    return await OwnerResolver(cluster).collapse(pod)
