"""Configuration loading from environment variables."""

from __future__ import annotations

import os
import re

from kubetopo.models.config import (
    APIConfig,
    ClusterConfig,
    DiscoveryConfig,
    KubeTopoConfig,
    LogConfig,
)

_DNS_DOMAIN_RE = re.compile(r"^[a-z0-9]([a-z0-9\-]*[a-z0-9])?(\.[a-z0-9]([a-z0-9\-]*[a-z0-9])?)*$")


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KUBETOPO_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float, min_val: float | None = None, max_val: float | None = None) -> float:
    val = float(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _validate_domain(value: str) -> str:
    if not _DNS_DOMAIN_RE.match(value):
        raise ValueError(f"Invalid cluster domain: {value}")
    return value


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def load_config() -> KubeTopoConfig:
    """Load configuration from KUBETOPO_* environment variables."""
    return KubeTopoConfig(
        cluster=ClusterConfig(
            domain=_validate_domain(_env("CLUSTER_DOMAIN", "cluster.local")),
            call_timeout_seconds=_env_float("CALL_TIMEOUT_SECONDS", 10.0, min_val=1.0, max_val=60.0),
            istio_version=_env("ISTIO_VERSION", "v1beta1"),
        ),
        discovery=DiscoveryConfig(
            query_timeout_seconds=_env_float("QUERY_TIMEOUT_SECONDS", 60.0, min_val=5.0, max_val=600.0),
            max_workload_pods=_env_int("MAX_WORKLOAD_PODS", 10, min_val=1, max_val=100),
            max_network_policies=_env_int("MAX_NETWORK_POLICIES", 20, min_val=1, max_val=200),
            evaluate_network_policies=_env_bool("EVALUATE_NETWORK_POLICIES", True),
        ),
        api=APIConfig(
            port=_env_int("API_PORT", 8080, min_val=1024, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
