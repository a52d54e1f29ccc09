"""Request and response bodies of the REST API."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _Schema(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class TrafficQuery(BaseModel):
    kind: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=253)
    namespace: str | None = Field(default=None, max_length=63)
    include_istio: bool = True
    max_depth: int | None = Field(default=None, ge=1, le=32)
    from_kind: str | None = None
    from_name: str | None = None
    from_namespace: str | None = None


class ImpactQuery(BaseModel):
    action: Literal["delete", "update"] = "delete"
    kind: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=253)
    namespace: str | None = Field(default=None, max_length=63)
    change_summary: str | None = Field(default=None, max_length=1000)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class Node(_Schema):
    id: str
    kind: str
    name: str
    namespace: str | None = None
    role: str


class Edge(_Schema):
    from_id: str
    to_id: str
    reason: str


class NetworkPolicyFinding(_Schema):
    policy: str
    policy_types: list[str]
    selects_destination_pod: bool
    deny_all_ingress: bool
    allow_from_source: bool | None = None
    verdict: str
    note: str
    unsupported: list[str] = Field(default_factory=list)


class NetworkPolicyEvaluation(_Schema):
    pod: str
    namespace: str
    verdict: str
    summary: str
    source: str | None = None
    findings: list[NetworkPolicyFinding] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)


class TrafficFlowResponse(_Schema):
    start: Node
    nodes: list[Node]
    edges: list[Edge]
    warnings: list[str] = Field(default_factory=list)
    mermaid: str
    network_policies: dict[str, NetworkPolicyEvaluation] = Field(default_factory=dict)


class ImpactTarget(_Schema):
    kind: str
    name: str
    namespace: str | None = None


class ImpactedResource(_Schema):
    kind: str
    name: str
    namespace: str | None = None
    impact_type: str
    severity: str


class ImpactResponse(_Schema):
    action: str
    change_summary: str | None = None
    target: ImpactTarget
    severity: str
    summary: str
    impacted_resources: list[ImpactedResource] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str


class ErrorResponse(BaseModel):
    """Error envelope shared by every non-2xx response."""

    error: str
    detail: str
