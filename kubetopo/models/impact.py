"""Impact query request and result structures."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import StrEnum


class Severity(StrEnum):
    """Impact level, ordered CRITICAL > HIGH > MEDIUM > LOW > NONE."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    NONE = "NONE"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK: dict[Severity, int] = {
    Severity.NONE: 0,
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


def max_severity(severities: Iterable[Severity], default: Severity = Severity.NONE) -> Severity:
    """Highest severity in *severities*, or *default* when empty."""
    return max(severities, key=lambda s: s.rank, default=default)


class ImpactAction(StrEnum):
    DELETE = "delete"
    UPDATE = "update"


@dataclass(frozen=True)
class ImpactRequest:
    kind: str
    name: str
    namespace: str | None = None
    action: str = ImpactAction.DELETE
    change_summary: str | None = None


@dataclass(frozen=True)
class ImpactTarget:
    kind: str
    name: str
    namespace: str | None = None


@dataclass(frozen=True)
class ImpactedResource:
    """An object that points at the target.

    ``impact_type`` says how it points at it, e.g. ``envFrom:api`` or
    ``serviceSelector pods=3``.
    """

    kind: str
    name: str
    namespace: str | None
    impact_type: str
    severity: Severity


@dataclass
class ImpactResult:
    action: ImpactAction
    target: ImpactTarget
    severity: Severity
    summary: str
    change_summary: str | None = None
    impacted_resources: list[ImpactedResource] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)  # reverse lookups that could not complete
