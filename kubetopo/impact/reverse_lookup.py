"""Reverse lookups: which objects point at a target.

Every finder is best-effort. A list or read that fails is recorded in
``References.notes`` and the finder carries on with whatever it could read.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from kubetopo.cluster.lookup import best_effort
from kubetopo.cluster.protocol import ClusterReader
from kubetopo.hosts import DEFAULT_CLUSTER_DOMAIN, iter_route_destinations, parse_gateway_ref, service_host_candidates
from kubetopo.kinds import ResourceKind
from kubetopo.owners import OwnerResolver
from kubetopo.selectors import selects_none, to_label_selector
from kubetopo.traffic.service_flow import ingress_backend_services

# Kinds whose pod template may consume ConfigMaps, Secrets and claims.
TEMPLATE_WORKLOAD_KINDS = (
    ResourceKind.DEPLOYMENT,
    ResourceKind.STATEFUL_SET,
    ResourceKind.DAEMON_SET,
    ResourceKind.JOB,
    ResourceKind.CRON_JOB,
)


@dataclass(frozen=True)
class Reference:
    """One object referencing the target, and how (``ref_type``)."""

    kind: str
    name: str
    namespace: str | None
    ref_type: str


@dataclass
class References:
    items: list[Reference] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    def extend(self, other: References) -> None:
        self.items.extend(other.items)
        self.notes.extend(other.notes)


@dataclass(frozen=True)
class PodSpecRef:
    kind: str
    name: str
    ref_type: str


def _name(obj: dict[str, Any]) -> str | None:
    return (obj.get("metadata") or {}).get("name")


def pod_template_spec(kind: str, workload: dict[str, Any]) -> dict[str, Any]:
    """The pod spec inside a workload, following CronJob's job template."""
    spec = workload.get("spec") or {}
    if kind == ResourceKind.CRON_JOB:
        spec = (spec.get("jobTemplate") or {}).get("spec") or {}
    return ((spec.get("template") or {}).get("spec")) or {}


def _volume_refs(volume: dict[str, Any]) -> Iterator[PodSpecRef]:
    vname = volume.get("name") or "?"
    cm = (volume.get("configMap") or {}).get("name")
    if cm:
        yield PodSpecRef(ResourceKind.CONFIG_MAP, cm, f"volume:{vname}")
    secret = (volume.get("secret") or {}).get("secretName")
    if secret:
        yield PodSpecRef(ResourceKind.SECRET, secret, f"volume:{vname}")
    claim = (volume.get("persistentVolumeClaim") or {}).get("claimName")
    if claim:
        yield PodSpecRef(ResourceKind.PERSISTENT_VOLUME_CLAIM, claim, f"volume:{vname}")
    for source in (volume.get("projected") or {}).get("sources") or []:
        source = source or {}
        cm = (source.get("configMap") or {}).get("name")
        if cm:
            yield PodSpecRef(ResourceKind.CONFIG_MAP, cm, f"projected:{vname}")
        secret = (source.get("secret") or {}).get("name")
        if secret:
            yield PodSpecRef(ResourceKind.SECRET, secret, f"projected:{vname}")


def _container_refs(container: dict[str, Any]) -> Iterator[PodSpecRef]:
    cname = container.get("name") or "?"
    for env_from in container.get("envFrom") or []:
        env_from = env_from or {}
        cm = (env_from.get("configMapRef") or {}).get("name")
        if cm:
            yield PodSpecRef(ResourceKind.CONFIG_MAP, cm, f"envFrom:{cname}")
        secret = (env_from.get("secretRef") or {}).get("name")
        if secret:
            yield PodSpecRef(ResourceKind.SECRET, secret, f"envFrom:{cname}")
    for env in container.get("env") or []:
        value_from = (env or {}).get("valueFrom") or {}
        cm = (value_from.get("configMapKeyRef") or {}).get("name")
        if cm:
            yield PodSpecRef(ResourceKind.CONFIG_MAP, cm, f"env:{cname}")
        secret = (value_from.get("secretKeyRef") or {}).get("name")
        if secret:
            yield PodSpecRef(ResourceKind.SECRET, secret, f"env:{cname}")


def extract_pod_spec_refs(pod_spec: dict[str, Any] | None) -> list[PodSpecRef]:
    """ConfigMap, Secret and claim references of a pod spec, in document order.

    Covers volumes (plain and projected), ``envFrom`` and ``env.valueFrom``
    of containers and init containers, and ``imagePullSecrets``.
    """
    if not pod_spec:
        return []
    refs: list[PodSpecRef] = []
    for volume in pod_spec.get("volumes") or []:
        refs.extend(_volume_refs(volume or {}))
    for container in [*(pod_spec.get("containers") or []), *(pod_spec.get("initContainers") or [])]:
        refs.extend(_container_refs(container or {}))
    for pull in pod_spec.get("imagePullSecrets") or []:
        secret = (pull or {}).get("name")
        if secret:
            refs.append(PodSpecRef(ResourceKind.SECRET, secret, "imagePullSecret"))
    return refs


def _claim_template_ref(workload: dict[str, Any], claim: str) -> str | None:
    """``volumeClaimTemplate:<t>`` when *claim* was stamped out by this StatefulSet."""
    sts = _name(workload)
    for template in (workload.get("spec") or {}).get("volumeClaimTemplates") or []:
        tname = _name(template or {})
        if tname and re.fullmatch(rf"{re.escape(tname)}-{re.escape(sts or '')}-\d+", claim):
            return f"volumeClaimTemplate:{tname}"
    return None


async def find_workloads_referencing(
    cluster: ClusterReader,
    kind: str,
    name: str,
    namespace: str,
) -> References:
    """Workloads whose pod template consumes ConfigMap/Secret/claim *name*.

    One entry per workload; the first matching reference names the
    ``ref_type``.
    """
    lookups = await asyncio.gather(
        *(
            best_effort(cluster.list(wk, namespace), f"list {wk} in {namespace}", [])
            for wk in TEMPLATE_WORKLOAD_KINDS
        )
    )
    out = References()
    for wk, lookup in zip(TEMPLATE_WORKLOAD_KINDS, lookups, strict=True):
        if lookup.note:
            out.notes.append(lookup.note)
        for workload in lookup.value:
            wname = _name(workload)
            if not wname:
                continue
            ref_type = next(
                (r.ref_type for r in extract_pod_spec_refs(pod_template_spec(wk, workload)) if r.kind == kind and r.name == name),
                None,
            )
            if ref_type is None and kind == ResourceKind.PERSISTENT_VOLUME_CLAIM and wk == ResourceKind.STATEFUL_SET:
                ref_type = _claim_template_ref(workload, name)
            if ref_type is not None:
                out.items.append(Reference(wk, wname, namespace, ref_type))
    return out


async def find_claim_bound_to_volume(cluster: ClusterReader, name: str) -> References:
    """The claim a PersistentVolume is bound to, via ``spec.claimRef``."""
    out = References()
    lookup = await best_effort(cluster.get(ResourceKind.PERSISTENT_VOLUME, name), f"read PersistentVolume {name}", {})
    if lookup.note:
        out.notes.append(lookup.note)
        return out
    claim_ref = (lookup.value.get("spec") or {}).get("claimRef") or {}
    if claim_ref.get("name"):
        out.items.append(
            Reference(
                ResourceKind.PERSISTENT_VOLUME_CLAIM,
                claim_ref["name"],
                claim_ref.get("namespace"),
                "claimRef",
            )
        )
    return out


def _ingress_hits(ingress: dict[str, Any], service: str) -> list[str]:
    spec = ingress.get("spec") or {}
    hits: list[str] = []
    if ((spec.get("defaultBackend") or {}).get("service") or {}).get("name") == service:
        hits.append("defaultBackend")
    for rule in spec.get("rules") or []:
        rule = rule or {}
        for path in (rule.get("http") or {}).get("paths") or []:
            path = path or {}
            if ((path.get("backend") or {}).get("service") or {}).get("name") == service:
                hits.append(f"rule:{rule.get('host') or '*'} path:{path.get('path') or '*'}")
    return hits


async def find_ingresses_referencing_service(cluster: ClusterReader, name: str, namespace: str) -> References:
    out = References()
    lookup = await best_effort(cluster.list(ResourceKind.INGRESS, namespace), f"list Ingress in {namespace}", [])
    if lookup.note:
        out.notes.append(lookup.note)
    for ingress in lookup.value:
        iname = _name(ingress)
        hits = _ingress_hits(ingress, name)
        if iname and hits:
            out.items.append(Reference(ResourceKind.INGRESS, iname, namespace, f"backendService:{','.join(hits)}"))
    return out


async def find_virtual_services_referencing_service(
    cluster: ClusterReader,
    name: str,
    namespace: str,
    domain: str = DEFAULT_CLUSTER_DOMAIN,
) -> References:
    """VirtualServices with an http/tcp/tls destination host addressing the Service."""
    out = References()
    lookup = await best_effort(
        cluster.list(ResourceKind.VIRTUAL_SERVICE, namespace), f"list VirtualService in {namespace}", []
    )
    if lookup.note:
        out.notes.append(lookup.note)
    candidates = service_host_candidates(name, namespace, domain)
    for vs in lookup.value:
        vs_name = _name(vs)
        hits = [
            f"{protocol}:{dest['host']}"
            for protocol, dest, _weight in iter_route_destinations(vs.get("spec") or {})
            if dest["host"] in candidates
        ]
        if vs_name and hits:
            out.items.append(Reference(ResourceKind.VIRTUAL_SERVICE, vs_name, namespace, f"destHost:{','.join(hits)}"))
    return out


async def find_virtual_services_referencing_gateway(cluster: ClusterReader, name: str, namespace: str) -> References:
    """VirtualServices in *namespace* binding the Gateway by short or ``ns/name`` reference."""
    out = References()
    lookup = await best_effort(
        cluster.list(ResourceKind.VIRTUAL_SERVICE, namespace), f"list VirtualService in {namespace}", []
    )
    if lookup.note:
        out.notes.append(lookup.note)
    qualified = f"{namespace}/{name}"
    for vs in lookup.value:
        vs_name = _name(vs)
        gateways = (vs.get("spec") or {}).get("gateways") or []
        if not vs_name:
            continue
        if qualified in gateways:
            out.items.append(Reference(ResourceKind.VIRTUAL_SERVICE, vs_name, namespace, f"gatewayRef:{qualified}"))
        elif name in gateways:
            out.items.append(Reference(ResourceKind.VIRTUAL_SERVICE, vs_name, namespace, f"gatewayRef:{name}"))
    return out


async def find_services_referenced_by_ingress(cluster: ClusterReader, name: str, namespace: str) -> References:
    out = References()
    lookup = await best_effort(cluster.get(ResourceKind.INGRESS, name, namespace), f"read Ingress {namespace}/{name}", {})
    if lookup.note:
        out.notes.append(lookup.note)
        return out
    for svc in ingress_backend_services(lookup.value):
        out.items.append(Reference(ResourceKind.SERVICE, svc, namespace, "ingressBackend"))
    return out


async def find_virtual_service_targets(cluster: ClusterReader, name: str, namespace: str) -> References:
    """Gateways and destination hosts of a VirtualService, gateways first.

    Destination hosts are kept as written: an external host cannot be mapped
    to a Service without guessing.
    """
    out = References()
    lookup = await best_effort(
        cluster.get(ResourceKind.VIRTUAL_SERVICE, name, namespace), f"read VirtualService {namespace}/{name}", {}
    )
    if lookup.note:
        out.notes.append(lookup.note)
        return out
    spec = lookup.value.get("spec") or {}
    for ref in spec.get("gateways") or []:
        parsed = parse_gateway_ref(str(ref), namespace)
        if parsed is not None:
            gw_name, gw_ns = parsed
            out.items.append(Reference(ResourceKind.GATEWAY, gw_name, gw_ns, "virtualServiceGateway"))
    hosts: dict[str, None] = {}
    for _protocol, dest, _weight in iter_route_destinations(spec):
        hosts.setdefault(str(dest["host"]), None)
    for host in hosts:
        out.items.append(Reference(ResourceKind.SERVICE, host, namespace, "virtualServiceDestination"))
    return out


async def find_workloads_backed_by_service(cluster: ClusterReader, name: str, namespace: str) -> References:
    """Top-level workloads behind a Service selector, with member pod counts.

    A Service without a selector (manual endpoints, ExternalName) has no
    backing workloads.
    """
    out = References()
    svc = await best_effort(cluster.get(ResourceKind.SERVICE, name, namespace), f"read Service {namespace}/{name}", {})
    if svc.note:
        out.notes.append(svc.note)
        return out
    selector = (svc.value.get("spec") or {}).get("selector") or {}
    if not selector:
        return out

    pods = await best_effort(
        cluster.list(ResourceKind.POD, namespace, label_selector=to_label_selector(selector)),
        f"list Pod in {namespace}",
        [],
    )
    if pods.note:
        out.notes.append(pods.note)

    resolver = OwnerResolver(cluster)
    counts: dict[tuple[str, str], int] = {}
    for pod in pods.value:
        if not selects_none((pod.get("metadata") or {}).get("labels"), selector):
            continue
        owner = await resolver.collapse(pod)
        counts[(owner.kind, owner.name)] = counts.get((owner.kind, owner.name), 0) + 1

    for (kind, wname), count in counts.items():
        out.items.append(Reference(kind, wname, namespace, f"serviceSelector pods={count}"))
    return out
