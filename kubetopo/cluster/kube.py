"""ClusterReader backed by kubernetes-asyncio.

Typed API responses are converted to camelCase dicts with
``ApiClient.sanitize_for_serialization`` so that built-in kinds and Istio
custom objects share one shape downstream.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from pathlib import Path
from typing import Any

import aiohttp
from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]
from kubernetes_asyncio import config as k8s_config  # type: ignore[import-untyped]
from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]

from kubetopo.errors import ClusterAccessError, NotFoundError
from kubetopo.models.config import ClusterConfig
from kubetopo.observability.logging import get_logger

_logger = get_logger("cluster.kube")

_SERVICE_ACCOUNT_NAMESPACE = Path("/var/run/secrets/kubernetes.io/serviceaccount/namespace")

_ISTIO_GROUP = "networking.istio.io"

# kind -> (api class attribute, method suffix, namespaced)
_TYPED_KINDS: dict[str, tuple[str, str, bool]] = {
    "Pod": ("core", "pod", True),
    "Service": ("core", "service", True),
    "Namespace": ("core", "namespace", False),
    "ConfigMap": ("core", "config_map", True),
    "Secret": ("core", "secret", True),
    "PersistentVolumeClaim": ("core", "persistent_volume_claim", True),
    "PersistentVolume": ("core", "persistent_volume", False),
    "Deployment": ("apps", "deployment", True),
    "StatefulSet": ("apps", "stateful_set", True),
    "DaemonSet": ("apps", "daemon_set", True),
    "ReplicaSet": ("apps", "replica_set", True),
    "Job": ("batch", "job", True),
    "CronJob": ("batch", "cron_job", True),
    "Ingress": ("networking", "ingress", True),
    "NetworkPolicy": ("networking", "network_policy", True),
    "EndpointSlice": ("discovery", "endpoint_slice", True),
}

_ISTIO_PLURALS: dict[str, str] = {
    "VirtualService": "virtualservices",
    "DestinationRule": "destinationrules",
    "Gateway": "gateways",
}


async def load_kube_config() -> None:
    """Configure the default client from in-cluster config, else kubeconfig."""
    try:
        # load_incluster_config() is synchronous in kubernetes-asyncio
        k8s_config.load_incluster_config()
        _logger.info("k8s client configured from in-cluster service account")
    except k8s_config.ConfigException:
        await k8s_config.load_kube_config()
        _logger.info("k8s client configured from kubeconfig")


def detect_default_namespace() -> str | None:
    """Namespace of the service account, else of the active kubeconfig context."""
    try:
        ns = _SERVICE_ACCOUNT_NAMESPACE.read_text().strip()
        if ns:
            return ns
    except OSError:
        pass
    try:
        _contexts, active = k8s_config.list_kube_config_contexts()
    except (k8s_config.ConfigException, OSError):
        return None
    if not active:
        return None
    ns = (active.get("context") or {}).get("namespace")
    return str(ns) if ns else None


class KubeClusterReader:
    """Read-only view of a live cluster.

    Every call is bounded by ``call_timeout_seconds``; a timeout surfaces as
    ``ClusterAccessError`` like any other non-404 failure.
    """

    def __init__(
        self,
        api_client: Any,
        config: ClusterConfig | None = None,
        default_namespace: str | None = None,
    ) -> None:
        self._config = config or ClusterConfig()
        self._api_client = api_client
        self._default_namespace = default_namespace
        self._apis: dict[str, Any] = {
            "core": k8s_client.CoreV1Api(api_client),
            "apps": k8s_client.AppsV1Api(api_client),
            "batch": k8s_client.BatchV1Api(api_client),
            "networking": k8s_client.NetworkingV1Api(api_client),
            "discovery": k8s_client.DiscoveryV1Api(api_client),
            "custom": k8s_client.CustomObjectsApi(api_client),
        }

    @classmethod
    async def connect(cls, config: ClusterConfig | None = None) -> KubeClusterReader:
        await load_kube_config()
        return cls(k8s_client.ApiClient(), config=config, default_namespace=detect_default_namespace())

    async def close(self) -> None:
        await self._api_client.close()

    def default_namespace(self) -> str | None:
        return self._default_namespace

    async def get(self, kind: str, name: str, namespace: str | None = None) -> dict[str, Any]:
        if kind in _ISTIO_PLURALS:
            obj = await self._call(
                kind,
                name,
                namespace,
                self._apis["custom"].get_namespaced_custom_object(
                    _ISTIO_GROUP,
                    self._config.istio_version,
                    namespace,
                    _ISTIO_PLURALS[kind],
                    name,
                ),
            )
            return dict(obj)

        api_key, suffix, namespaced = self._typed(kind)
        api = self._apis[api_key]
        if namespaced:
            coro = getattr(api, f"read_namespaced_{suffix}")(name=name, namespace=namespace)
        else:
            coro = getattr(api, f"read_{suffix}")(name=name)
        return self._to_dict(await self._call(kind, name, namespace, coro))

    async def list(
        self,
        kind: str,
        namespace: str | None = None,
        label_selector: str | None = None,
        field_selector: str | None = None,
    ) -> list[dict[str, Any]]:
        if kind in _ISTIO_PLURALS:
            body = await self._call(
                kind,
                "",
                namespace,
                self._apis["custom"].list_namespaced_custom_object(
                    _ISTIO_GROUP,
                    self._config.istio_version,
                    namespace,
                    _ISTIO_PLURALS[kind],
                    label_selector=label_selector,
                    field_selector=field_selector,
                ),
            )
            return [dict(item) for item in (body or {}).get("items") or []]

        api_key, suffix, namespaced = self._typed(kind)
        api = self._apis[api_key]
        kwargs = {"label_selector": label_selector, "field_selector": field_selector}
        if namespaced and namespace:
            coro = getattr(api, f"list_namespaced_{suffix}")(namespace=namespace, **kwargs)
        elif namespaced:
            coro = getattr(api, f"list_{suffix}_for_all_namespaces")(**kwargs)
        else:
            coro = getattr(api, f"list_{suffix}")(**kwargs)
        result = await self._call(kind, "", namespace, coro)
        return [self._to_dict(item) for item in result.items or []]

    def _typed(self, kind: str) -> tuple[str, str, bool]:
        try:
            return _TYPED_KINDS[kind]
        except KeyError:
            raise ClusterAccessError(f"Unsupported kind for cluster reads: {kind}") from None

    def _to_dict(self, obj: Any) -> dict[str, Any]:
        return self._api_client.sanitize_for_serialization(obj)  # type: ignore[no-any-return]

    async def _call(self, kind: str, name: str, namespace: str | None, coro: Awaitable[Any]) -> Any:
        try:
            return await asyncio.wait_for(coro, timeout=self._config.call_timeout_seconds)
        except ApiException as exc:
            if exc.status == 404:
                raise NotFoundError(kind, name or "<list>", namespace) from exc
            raise ClusterAccessError(
                f"{kind} request failed with status {exc.status}: {exc.reason}",
                status=exc.status,
            ) from exc
        except TimeoutError as exc:
            raise ClusterAccessError(
                f"{kind} request timed out after {self._config.call_timeout_seconds}s"
            ) from exc
        except aiohttp.ClientError as exc:
            raise ClusterAccessError(f"{kind} request failed: {exc}") from exc
