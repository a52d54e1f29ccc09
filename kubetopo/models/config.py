"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ClusterConfig:
    """Cluster access configuration."""

    domain: str = "cluster.local"
    call_timeout_seconds: float = 10.0
    istio_version: str = "v1beta1"


@dataclass
class DiscoveryConfig:
    """Traffic discovery limits and switches."""

    query_timeout_seconds: float = 60.0
    max_workload_pods: int = 10
    max_network_policies: int = 20
    evaluate_network_policies: bool = True


@dataclass
class APIConfig:
    """REST API configuration."""

    port: int = 8080


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class KubeTopoConfig:
    """Top-level kubetopo configuration."""

    cluster: ClusterConfig = field(default_factory=ClusterConfig)
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
