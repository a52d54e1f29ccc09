"""Per-kind impact rules.

Each rule finds what references its target, assigns a severity per
referencing object and writes a summary for the requested action. Update
summaries describe changed behaviour only; delete summaries describe what
breaks.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from kubetopo.cluster.protocol import ClusterReader
from kubetopo.hosts import DEFAULT_CLUSTER_DOMAIN
from kubetopo.impact.reverse_lookup import (
    Reference,
    find_claim_bound_to_volume,
    find_ingresses_referencing_service,
    find_services_referenced_by_ingress,
    find_virtual_service_targets,
    find_virtual_services_referencing_gateway,
    find_virtual_services_referencing_service,
    find_workloads_backed_by_service,
    find_workloads_referencing,
)
from kubetopo.kinds import ResourceKind
from kubetopo.models.impact import ImpactAction, ImpactedResource, ImpactResult, ImpactTarget, Severity, max_severity

NO_RULES_SUMMARY = "No impact rules defined for this resource type."


@dataclass(frozen=True)
class ImpactContext:
    cluster: ClusterReader
    action: ImpactAction
    target: ImpactTarget
    change_summary: str | None = None
    domain: str = DEFAULT_CLUSTER_DOMAIN

    @property
    def namespace(self) -> str:
        return self.target.namespace or ""

    def updating(self, noun: str) -> str:
        """``Updating this <noun>`` with the change summary woven in."""
        if self.change_summary:
            return f"Updating this {noun} ({self.change_summary})"
        return f"Updating this {noun}"

    def result(
        self,
        severity: Severity,
        summary: str,
        impacted: list[ImpactedResource],
        notes: list[str],
    ) -> ImpactResult:
        return ImpactResult(
            action=self.action,
            target=self.target,
            severity=severity,
            summary=summary,
            change_summary=self.change_summary,
            impacted_resources=impacted,
            notes=notes,
        )


def _impacted(refs: list[Reference], severity: Severity) -> list[ImpactedResource]:
    return [ImpactedResource(r.kind, r.name, r.namespace, r.ref_type, severity) for r in refs]


async def configmap_impact(ctx: ImpactContext) -> ImpactResult:
    refs = await find_workloads_referencing(ctx.cluster, ResourceKind.CONFIG_MAP, ctx.target.name, ctx.namespace)
    impacted = _impacted(refs.items, Severity.MEDIUM)
    if not impacted:
        summary = "No workloads reference this ConfigMap."
    elif ctx.action == ImpactAction.DELETE:
        summary = (
            "Deleting this ConfigMap will restart dependent pods. "
            "Applications may fail to start if configuration is required."
        )
    else:
        summary = (
            f"{ctx.updating('ConfigMap')} changes configuration read by dependent workloads. "
            "Mounted files refresh in place; environment variables change only after pods restart."
        )
    return ctx.result(max_severity(i.severity for i in impacted), summary, impacted, refs.notes)


async def secret_impact(ctx: ImpactContext) -> ImpactResult:
    refs = await find_workloads_referencing(ctx.cluster, ResourceKind.SECRET, ctx.target.name, ctx.namespace)
    impacted = _impacted(refs.items, Severity.HIGH)
    if not impacted:
        summary = "No workloads reference this Secret."
    elif ctx.action == ImpactAction.DELETE:
        summary = "Deleting this Secret will cause authentication or startup failures in dependent workloads."
    else:
        summary = (
            f"{ctx.updating('Secret')} rotates data used by dependent workloads. "
            "Pods holding the previous values may fail authentication until they restart."
        )
    return ctx.result(max_severity(i.severity for i in impacted), summary, impacted, refs.notes)


async def pvc_impact(ctx: ImpactContext) -> ImpactResult:
    refs = await find_workloads_referencing(
        ctx.cluster, ResourceKind.PERSISTENT_VOLUME_CLAIM, ctx.target.name, ctx.namespace
    )
    impacted = _impacted(refs.items, Severity.HIGH)
    if ctx.action == ImpactAction.DELETE:
        summary = "Pods using this PVC will fail to start or lose storage access."
    else:
        summary = (
            f"{ctx.updating('PersistentVolumeClaim')} may resize or reconfigure its storage; "
            "pods using it can stall while the volume is modified."
        )
    return ctx.result(Severity.HIGH, summary, impacted, refs.notes)


async def pv_impact(ctx: ImpactContext) -> ImpactResult:
    refs = await find_claim_bound_to_volume(ctx.cluster, ctx.target.name)
    for claim in list(refs.items):
        if claim.namespace:
            refs.extend(
                await find_workloads_referencing(
                    ctx.cluster, ResourceKind.PERSISTENT_VOLUME_CLAIM, claim.name, claim.namespace
                )
            )
    impacted = _impacted(refs.items, Severity.HIGH)
    if ctx.action == ImpactAction.DELETE:
        summary = "Deleting this PV breaks the bound PVC and all consuming pods."
    else:
        summary = (
            f"{ctx.updating('PersistentVolume')} may change reclaim policy, capacity or access modes "
            "of storage used by the bound claim."
        )
    return ctx.result(Severity.HIGH, summary, impacted, refs.notes)


async def service_impact(ctx: ImpactContext) -> ImpactResult:
    name, ns = ctx.target.name, ctx.namespace
    ingresses, virtual_services, workloads = await asyncio.gather(
        find_ingresses_referencing_service(ctx.cluster, name, ns),
        find_virtual_services_referencing_service(ctx.cluster, name, ns, ctx.domain),
        find_workloads_backed_by_service(ctx.cluster, name, ns),
    )
    routes = _impacted(ingresses.items + virtual_services.items, Severity.CRITICAL)
    backends = _impacted(workloads.items, Severity.HIGH)
    impacted = routes + backends

    if routes:
        severity = Severity.CRITICAL
    elif backends:
        severity = Severity.HIGH
    else:
        severity = Severity.LOW

    if ctx.action == ImpactAction.DELETE:
        if impacted:
            summary = (
                "Deleting this Service will break routing rules (Ingress/VirtualService) and stop traffic "
                "from reaching workloads behind the Service selector."
            )
        else:
            summary = (
                "Deleting this Service removes the stable service endpoint; no Ingress/VirtualService routes "
                "found and no selector-backed workloads detected."
            )
    else:
        summary = (
            f"{ctx.updating('Service')} may change which pods receive traffic (selector/ports). "
            "Routing rules remain, but traffic distribution could change."
        )
    notes = ingresses.notes + virtual_services.notes + workloads.notes
    return ctx.result(severity, summary, impacted, notes)


async def ingress_impact(ctx: ImpactContext) -> ImpactResult:
    refs = await find_services_referenced_by_ingress(ctx.cluster, ctx.target.name, ctx.namespace)
    impacted = _impacted(refs.items, Severity.HIGH)
    if ctx.action == ImpactAction.DELETE:
        summary = "Deleting this Ingress will remove external HTTP(S) routing to its backend services."
    else:
        summary = f"{ctx.updating('Ingress')} will change external routing behavior to backend services."
    return ctx.result(Severity.HIGH, summary, impacted, refs.notes)


async def virtual_service_impact(ctx: ImpactContext) -> ImpactResult:
    refs = await find_virtual_service_targets(ctx.cluster, ctx.target.name, ctx.namespace)
    impacted = _impacted(refs.items, Severity.CRITICAL)
    if ctx.action == ImpactAction.DELETE:
        summary = (
            "Deleting this VirtualService will remove routing rules, and traffic may stop reaching "
            "destination services via the referenced gateways."
        )
    else:
        summary = (
            f"{ctx.updating('VirtualService')} changes traffic routing behavior (e.g., weights/matches). "
            "Gateways and destination services stay in place; only routing distribution changes."
        )
    return ctx.result(Severity.CRITICAL, summary, impacted, refs.notes)


async def gateway_impact(ctx: ImpactContext) -> ImpactResult:
    refs = await find_virtual_services_referencing_gateway(ctx.cluster, ctx.target.name, ctx.namespace)
    impacted = _impacted(refs.items, Severity.CRITICAL)
    if ctx.action == ImpactAction.DELETE:
        if impacted:
            summary = "Deleting this Gateway will break ingress traffic handled by VirtualServices that reference it."
        else:
            summary = (
                "Deleting this Gateway will remove an ingress listener; no VirtualServices in the same "
                "namespace explicitly reference it."
            )
    else:
        summary = (
            f"{ctx.updating('Gateway')} may alter listeners/hosts/tls settings and change which traffic is accepted."
        )
    severity = Severity.CRITICAL if impacted else Severity.HIGH
    return ctx.result(severity, summary, impacted, refs.notes)


def no_rules(ctx: ImpactContext) -> ImpactResult:
    return ctx.result(Severity.NONE, NO_RULES_SUMMARY, [], [])


