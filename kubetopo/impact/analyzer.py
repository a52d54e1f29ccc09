"""Impact query facade."""

from __future__ import annotations

import time

from kubetopo.cluster.protocol import ClusterReader
from kubetopo.errors import InvalidTargetError
from kubetopo.impact import rules
from kubetopo.kinds import CLUSTER_SCOPED_KINDS, ResourceKind, normalize_kind
from kubetopo.models.config import KubeTopoConfig
from kubetopo.models.impact import ImpactAction, ImpactRequest, ImpactResult, ImpactTarget
from kubetopo.observability.logging import get_logger, query_context
from kubetopo.observability.metrics import impact_queries_total, query_duration_seconds
from kubetopo.selectors import resolve_namespace

_logger = get_logger("impact.analyzer")


def _parse_action(action: str | None) -> ImpactAction:
    try:
        return ImpactAction((action or ImpactAction.DELETE).strip().lower())
    except ValueError:
        raise InvalidTargetError(
            f"Unsupported action {action!r}; expected delete or update",
            code="INVALID_ACTION",
        ) from None


async def analyze_impact(
    cluster: ClusterReader,
    request: ImpactRequest,
    config: KubeTopoConfig | None = None,
) -> ImpactResult:
    """Classify what depends on ``request.kind/name``.

    Reverse lookups never fail the query; what they could not read ends up
    in ``ImpactResult.notes``. Kinds without rules get a NONE result.

    Raises:
        InvalidTargetError: kind/name missing or action unknown (before any cluster call).
    """
    config = config or KubeTopoConfig()
    kind = normalize_kind(request.kind or "")
    name = (request.name or "").strip()
    if not kind or not name:
        raise InvalidTargetError("analyze_impact requires kind and name")
    action = _parse_action(request.action)

    namespace = None
    if kind not in CLUSTER_SCOPED_KINDS:
        namespace = resolve_namespace(request.namespace, cluster.default_namespace())

    ctx = rules.ImpactContext(
        cluster=cluster,
        action=action,
        target=ImpactTarget(kind=kind, name=name, namespace=namespace),
        change_summary=(request.change_summary or "").strip() or None,
        domain=config.cluster.domain,
    )

    t_start = time.monotonic()
    with query_context("impact", kind, name, namespace):
        result = await _dispatch(ctx)
        impact_queries_total.labels(kind=kind, action=action, severity=result.severity).inc()
        query_duration_seconds.labels(query="impact").observe(time.monotonic() - t_start)
        _logger.info(
            "impact_query_done",
            action=action,
            severity=result.severity,
            impacted=len(result.impacted_resources),
            notes=len(result.notes),
        )
    return result


async def _dispatch(ctx: rules.ImpactContext) -> ImpactResult:
    match ctx.target.kind:
        case ResourceKind.CONFIG_MAP:
            return await rules.configmap_impact(ctx)
        case ResourceKind.SECRET:
            return await rules.secret_impact(ctx)
        case ResourceKind.PERSISTENT_VOLUME_CLAIM:
            return await rules.pvc_impact(ctx)
        case ResourceKind.PERSISTENT_VOLUME:
            return await rules.pv_impact(ctx)
        case ResourceKind.SERVICE:
            return await rules.service_impact(ctx)
        case ResourceKind.INGRESS:
            return await rules.ingress_impact(ctx)
        case ResourceKind.VIRTUAL_SERVICE:
            return await rules.virtual_service_impact(ctx)
        case ResourceKind.GATEWAY:
            return await rules.gateway_impact(ctx)
        case _:
            return rules.no_rules(ctx)
