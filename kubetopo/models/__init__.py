"""Value objects shared by the query facades, REST API and CLI."""

from kubetopo.models.config import KubeTopoConfig
from kubetopo.models.impact import (
    ImpactAction,
    ImpactedResource,
    ImpactRequest,
    ImpactResult,
    ImpactTarget,
    Severity,
    max_severity,
)
from kubetopo.models.network import NetworkPolicyEvaluation, NetworkPolicyFinding, PolicyVerdict
from kubetopo.models.traffic import TrafficFlowRequest, TrafficFlowResult

__all__ = [
    "ImpactAction",
    "ImpactRequest",
    "ImpactResult",
    "ImpactTarget",
    "ImpactedResource",
    "KubeTopoConfig",
    "NetworkPolicyEvaluation",
    "NetworkPolicyFinding",
    "PolicyVerdict",
    "Severity",
    "TrafficFlowRequest",
    "TrafficFlowResult",
    "max_severity",
]
