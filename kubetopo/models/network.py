"""Network-policy evaluation results attached to traffic queries."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class PolicyVerdict(StrEnum):
    """Outcome of a best-effort ingress evaluation.

    ``NOT_EVALUATED`` (no policy applies, traffic is allowed by default) and
    ``INCOMPLETE`` (a policy applies but could not be fully evaluated) are
    deliberately distinct from ``DENIED``.
    """

    ALLOWED = "allowed"
    DENIED = "denied"
    INCOMPLETE = "incomplete"
    NOT_EVALUATED = "not_evaluated"


@dataclass
class NetworkPolicyFinding:
    """A NetworkPolicy that selects the destination pod."""

    policy: str
    policy_types: list[str]
    deny_all_ingress: bool
    verdict: PolicyVerdict
    note: str
    restricts_ingress: bool = True
    selects_destination_pod: bool = True
    allow_from_source: bool | None = None
    unsupported: list[str] = field(default_factory=list)


@dataclass
class NetworkPolicyEvaluation:
    """All findings for one destination pod plus the combined verdict."""

    pod: str
    namespace: str
    verdict: PolicyVerdict
    summary: str
    source: str | None = None
    findings: list[NetworkPolicyFinding] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
