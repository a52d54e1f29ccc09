"""Tests for KubeClusterReader dispatch and error mapping, with mocked API classes."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
from kubernetes_asyncio.client.exceptions import ApiException

from kubetopo.cluster.kube import KubeClusterReader
from kubetopo.errors import ClusterAccessError, NotFoundError
from kubetopo.models.config import ClusterConfig


def _make_reader(call_timeout: float = 10.0) -> KubeClusterReader:
    api_client = MagicMock()
    api_client.sanitize_for_serialization = MagicMock(side_effect=lambda obj: {"converted": obj})
    api_client.close = AsyncMock()
    reader = KubeClusterReader(
        api_client,
        config=ClusterConfig(call_timeout_seconds=call_timeout),
        default_namespace="payments",
    )
    for key in ("core", "apps", "networking", "discovery", "custom"):
        reader._apis[key] = MagicMock()
    return reader


class TestDispatch:
    async def test_namespaced_get(self) -> None:
        reader = _make_reader()
        reader._apis["core"].read_namespaced_service = AsyncMock(return_value="svc-model")
        obj = await reader.get("Service", "checkout", "payments")
        reader._apis["core"].read_namespaced_service.assert_awaited_once_with(name="checkout", namespace="payments")
        assert obj == {"converted": "svc-model"}

    async def test_cluster_scoped_get(self) -> None:
        reader = _make_reader()
        reader._apis["core"].read_persistent_volume = AsyncMock(return_value="pv-model")
        await reader.get("PersistentVolume", "pv-1")
        reader._apis["core"].read_persistent_volume.assert_awaited_once_with(name="pv-1")

    async def test_namespaced_list_passes_selectors(self) -> None:
        reader = _make_reader()
        reader._apis["discovery"].list_namespaced_endpoint_slice = AsyncMock(return_value=MagicMock(items=["a", "b"]))
        items = await reader.list("EndpointSlice", "payments", label_selector="kubernetes.io/service-name=checkout")
        reader._apis["discovery"].list_namespaced_endpoint_slice.assert_awaited_once_with(
            namespace="payments",
            label_selector="kubernetes.io/service-name=checkout",
            field_selector=None,
        )
        assert items == [{"converted": "a"}, {"converted": "b"}]

    async def test_list_without_namespace_spans_all_namespaces(self) -> None:
        reader = _make_reader()
        reader._apis["apps"].list_deployment_for_all_namespaces = AsyncMock(return_value=MagicMock(items=[]))
        assert await reader.list("Deployment") == []
        reader._apis["apps"].list_deployment_for_all_namespaces.assert_awaited_once()

    async def test_istio_objects_use_custom_objects_api(self) -> None:
        reader = _make_reader()
        custom = reader._apis["custom"]
        custom.list_namespaced_custom_object = AsyncMock(return_value={"items": [{"kind": "VirtualService"}]})
        items = await reader.list("VirtualService", "payments")
        custom.list_namespaced_custom_object.assert_awaited_once_with(
            "networking.istio.io",
            "v1beta1",
            "payments",
            "virtualservices",
            label_selector=None,
            field_selector=None,
        )
        assert items == [{"kind": "VirtualService"}]

    async def test_unknown_kind_is_access_error(self) -> None:
        with pytest.raises(ClusterAccessError, match="Unsupported kind"):
            await _make_reader().get("Widget", "x", "payments")

    async def test_default_namespace_and_close(self) -> None:
        reader = _make_reader()
        assert reader.default_namespace() == "payments"
        await reader.close()
        reader._api_client.close.assert_awaited_once()


class TestErrorMapping:
    async def test_404_is_not_found(self) -> None:
        reader = _make_reader()
        reader._apis["core"].read_namespaced_pod = AsyncMock(side_effect=ApiException(status=404, reason="Not Found"))
        with pytest.raises(NotFoundError) as exc_info:
            await reader.get("Pod", "ghost", "payments")
        assert str(exc_info.value) == "Pod ghost not found in namespace payments"

    async def test_403_is_access_error_with_status(self) -> None:
        reader = _make_reader()
        reader._apis["networking"].list_namespaced_network_policy = AsyncMock(
            side_effect=ApiException(status=403, reason="Forbidden")
        )
        with pytest.raises(ClusterAccessError) as exc_info:
            await reader.list("NetworkPolicy", "payments")
        assert exc_info.value.status == 403
        assert not isinstance(exc_info.value, NotFoundError)

    async def test_transport_error_is_access_error(self) -> None:
        reader = _make_reader()
        reader._apis["core"].read_namespaced_service = AsyncMock(side_effect=aiohttp.ClientConnectionError("refused"))
        with pytest.raises(ClusterAccessError, match="refused"):
            await reader.get("Service", "checkout", "payments")

    async def test_slow_call_times_out(self) -> None:
        reader = _make_reader(call_timeout=0.05)

        async def _hang(**_kwargs):
            await asyncio.sleep(5)

        reader._apis["core"].read_namespaced_service = _hang
        with pytest.raises(ClusterAccessError, match="timed out"):
            await reader.get("Service", "checkout", "payments")
