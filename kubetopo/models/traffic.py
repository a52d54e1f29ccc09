"""Traffic query request and result envelopes."""

from __future__ import annotations

from dataclasses import dataclass, field

from kubetopo.graph.models import TrafficEdge, TrafficNode
from kubetopo.models.network import NetworkPolicyEvaluation


@dataclass(frozen=True)
class TrafficFlowRequest:
    """Input of a traffic query.

    ``max_depth`` is accepted for compatibility but discovery follows fixed
    per-kind hop sequences. ``from_*`` fields do not constrain discovery;
    a ``from_kind`` of ``Pod`` is used as the source for NetworkPolicy
    evaluation.
    """

    kind: str
    name: str
    namespace: str | None = None
    include_istio: bool = True
    max_depth: int | None = None
    from_kind: str | None = None
    from_name: str | None = None
    from_namespace: str | None = None


@dataclass
class TrafficFlowResult:
    """Graph snapshot plus its Mermaid rendering and attached evidence."""

    start: TrafficNode
    nodes: list[TrafficNode]
    edges: list[TrafficEdge]
    mermaid: str
    warnings: list[str] = field(default_factory=list)
    network_policies: dict[str, NetworkPolicyEvaluation] = field(default_factory=dict)
