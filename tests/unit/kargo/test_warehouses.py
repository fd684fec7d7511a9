"""Unit tests for warehouse discovery."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock

import pytest

from kargo_publish.errors import QueryFailedError
from kargo_publish.kargo.warehouses import WarehouseResolver


class TestWarehouseResolver:
    """Tests for WarehouseResolver.resolve."""

    def test_override_skips_query(self, mock_client: MagicMock, repository: str) -> None:
        resolver = WarehouseResolver(mock_client, "kargo-pipelines")

        assert resolver.resolve(repository, override="backstage-ghcr") == ["backstage-ghcr"]
        mock_client.list.assert_not_called()

    def test_matching_warehouses_in_listing_order(
        self,
        mock_client: MagicMock,
        repository: str,
        make_warehouse: Callable[..., dict[str, Any]],
    ) -> None:
        mock_client.list.return_value = [
            make_warehouse("b-second", [repository]),
            make_warehouse("unrelated", ["ghcr.io/other/app"]),
            make_warehouse("a-first", ["ghcr.io/other/app", repository]),
        ]
        resolver = WarehouseResolver(mock_client, "kargo-pipelines")

        assert resolver.resolve(repository) == ["b-second", "a-first"]
        mock_client.list.assert_called_once_with("warehouse", "kargo-pipelines")

    def test_no_subscribers(
        self,
        mock_client: MagicMock,
        repository: str,
        make_warehouse: Callable[..., dict[str, Any]],
    ) -> None:
        mock_client.list.return_value = [make_warehouse("w", [repository + "/"])]
        assert WarehouseResolver(mock_client, "ns").resolve(repository) == []

    def test_empty_namespace(self, mock_client: MagicMock, repository: str) -> None:
        assert WarehouseResolver(mock_client, "ns").resolve(repository) == []

    def test_query_failure_propagates(self, mock_client: MagicMock, repository: str) -> None:
        mock_client.list.side_effect = QueryFailedError("warehouse", "ns", "Forbidden (HTTP 403)")
        with pytest.raises(QueryFailedError):
            WarehouseResolver(mock_client, "ns").resolve(repository)
