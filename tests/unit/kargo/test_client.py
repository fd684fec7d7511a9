"""Unit tests for the Kubernetes-backed resource client."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
import urllib3
from kubernetes.client.exceptions import ApiException
from kubernetes.config import ConfigException

from kargo_publish.errors import QueryFailedError, ResourceNotFoundError
from kargo_publish.kargo.client import (
    KARGO_GROUP,
    KARGO_VERSION,
    KubernetesResourceClient,
    get_stage,
    list_freight,
    list_warehouses,
    load_kube_config,
)


@pytest.fixture
def api() -> MagicMock:
    """CustomObjectsApi mock."""
    return MagicMock()


@pytest.fixture
def client(api: MagicMock) -> KubernetesResourceClient:
    return KubernetesResourceClient(api)


class TestList:
    """Tests for KubernetesResourceClient.list."""

    def test_returns_items(self, client: KubernetesResourceClient, api: MagicMock) -> None:
        api.list_namespaced_custom_object.return_value = {"items": [{"metadata": {"name": "a"}}]}

        items = client.list("warehouse", "kargo-pipelines")

        assert items == [{"metadata": {"name": "a"}}]
        api.list_namespaced_custom_object.assert_called_once_with(
            KARGO_GROUP, KARGO_VERSION, "kargo-pipelines", "warehouses"
        )

    def test_empty_listing_is_not_an_error(
        self, client: KubernetesResourceClient, api: MagicMock
    ) -> None:
        api.list_namespaced_custom_object.return_value = {"items": []}
        assert client.list("freight", "ns") == []

    def test_selectors_forwarded(self, client: KubernetesResourceClient, api: MagicMock) -> None:
        api.list_namespaced_custom_object.return_value = {"items": []}
        client.list("freight", "ns", label_selector="a=b")
        assert api.list_namespaced_custom_object.call_args.kwargs == {"label_selector": "a=b"}

    def test_api_error_is_query_failure(
        self, client: KubernetesResourceClient, api: MagicMock
    ) -> None:
        api.list_namespaced_custom_object.side_effect = ApiException(
            status=403, reason="Forbidden"
        )
        with pytest.raises(QueryFailedError) as exc_info:
            client.list("freight", "ns")
        assert exc_info.value.reason == "Forbidden (HTTP 403)"
        assert exc_info.value.exit_code == 8

    def test_transport_error_is_query_failure(
        self, client: KubernetesResourceClient, api: MagicMock
    ) -> None:
        api.list_namespaced_custom_object.side_effect = urllib3.exceptions.MaxRetryError(
            MagicMock(), "https://cluster"
        )
        with pytest.raises(QueryFailedError):
            client.list("stage", "ns")

    def test_malformed_response(self, client: KubernetesResourceClient, api: MagicMock) -> None:
        api.list_namespaced_custom_object.return_value = {"kind": "Status"}
        with pytest.raises(QueryFailedError, match="items"):
            client.list("stage", "ns")

    def test_unknown_kind(self, client: KubernetesResourceClient) -> None:
        with pytest.raises(ValueError, match="Unsupported kind"):
            client.list("promotion", "ns")


class TestGet:
    """Tests for KubernetesResourceClient.get."""

    def test_returns_object(self, client: KubernetesResourceClient, api: MagicMock) -> None:
        api.get_namespaced_custom_object.return_value = {"metadata": {"name": "s"}}
        assert client.get("stage", "ns", "s") == {"metadata": {"name": "s"}}
        api.get_namespaced_custom_object.assert_called_once_with(
            KARGO_GROUP, KARGO_VERSION, "ns", "stages", "s"
        )

    def test_404_is_not_found(self, client: KubernetesResourceClient, api: MagicMock) -> None:
        api.get_namespaced_custom_object.side_effect = ApiException(status=404, reason="Not Found")
        with pytest.raises(ResourceNotFoundError) as exc_info:
            client.get("stage", "ns", "missing")
        assert exc_info.value.name == "missing"
        assert exc_info.value.exit_code == 9

    def test_500_is_query_failure(self, client: KubernetesResourceClient, api: MagicMock) -> None:
        api.get_namespaced_custom_object.side_effect = ApiException(
            status=500, reason="Internal Server Error"
        )
        with pytest.raises(QueryFailedError):
            client.get("stage", "ns", "s")


class TestAnnotate:
    """Tests for KubernetesResourceClient.annotate."""

    def test_merge_patch_body(self, client: KubernetesResourceClient, api: MagicMock) -> None:
        client.annotate("warehouse", "ns", "w1", {"kargo.akuity.io/refresh": "t"})
        api.patch_namespaced_custom_object.assert_called_once_with(
            KARGO_GROUP,
            KARGO_VERSION,
            "ns",
            "warehouses",
            "w1",
            {"metadata": {"annotations": {"kargo.akuity.io/refresh": "t"}}},
        )

    def test_missing_target(self, client: KubernetesResourceClient, api: MagicMock) -> None:
        api.patch_namespaced_custom_object.side_effect = ApiException(status=404)
        with pytest.raises(ResourceNotFoundError):
            client.annotate("warehouse", "ns", "w1", {"a": "b"})


class TestTypedQueries:
    """Tests for list_warehouses, list_freight and get_stage."""

    def test_parse_records(
        self,
        mock_client: MagicMock,
        make_warehouse: Callable[..., dict[str, Any]],
        make_freight: Callable[..., dict[str, Any]],
        make_stage: Callable[..., dict[str, Any]],
    ) -> None:
        mock_client.list.side_effect = lambda kind, namespace: {
            "warehouse": [make_warehouse("w1", ["repo"])],
            "freight": [make_freight("f1", [("repo", "v1")])],
        }[kind]
        mock_client.get.return_value = make_stage(name="s1")

        assert [w.name for w in list_warehouses(mock_client, "ns")] == ["w1"]
        assert [f.name for f in list_freight(mock_client, "ns")] == ["f1"]
        assert get_stage(mock_client, "ns", "s1").name == "s1"


class TestLoadKubeConfig:
    """Tests for load_kube_config."""

    def test_explicit_kubeconfig(self) -> None:
        with patch("kargo_publish.kargo.client.k8s_config") as k8s_config:
            k8s_config.ConfigException = ConfigException
            load_kube_config("/tmp/kubeconfig", "kind-dev")
        k8s_config.load_kube_config.assert_called_once_with(
            config_file="/tmp/kubeconfig", context="kind-dev"
        )
        k8s_config.load_incluster_config.assert_not_called()

    def test_falls_back_from_incluster(self) -> None:
        with patch("kargo_publish.kargo.client.k8s_config") as k8s_config:
            k8s_config.ConfigException = ConfigException
            k8s_config.load_incluster_config.side_effect = ConfigException("not in cluster")
            load_kube_config()
        k8s_config.load_kube_config.assert_called_once_with(context=None)

    def test_no_configuration(self) -> None:
        with patch("kargo_publish.kargo.client.k8s_config") as k8s_config:
            k8s_config.ConfigException = ConfigException
            k8s_config.load_incluster_config.side_effect = ConfigException("not in cluster")
            k8s_config.load_kube_config.side_effect = ConfigException("no config")
            with pytest.raises(QueryFailedError, match="no config"):
                load_kube_config()
