"""Warehouse discovery by subscribed repository URL."""

from __future__ import annotations

import structlog

from kargo_publish.kargo.client import ResourceClient, list_warehouses

logger = structlog.get_logger(__name__)


class WarehouseResolver:
    """Find the warehouses that watch a given image repository.

    Args:
        client: Resource store client.
        namespace: Kargo project namespace to search.
    """

    def __init__(self, client: ResourceClient, namespace: str) -> None:
        self._client = client
        self.namespace = namespace

    def resolve(self, repository: str, override: str | None = None) -> list[str]:
        """Return the names of warehouses subscribed to ``repository``.

        Matching is exact and case-sensitive on each image subscription's
        ``repoURL``; no trailing-slash or host normalization is applied.

        Args:
            repository: Full repository URL that was pushed.
            override: Explicit warehouse name. When set it is returned as-is
                and the resource store is not queried.

        Returns:
            Matching warehouse names in listing order. Empty if none subscribe.

        Raises:
            QueryFailedError: If the warehouses cannot be listed.
        """
        if override:
            logger.debug("warehouse_override", warehouse=override, namespace=self.namespace)
            return [override]

        names = [
            warehouse.name
            for warehouse in list_warehouses(self._client, self.namespace)
            if warehouse.subscribes_to(repository)
        ]
        logger.info(
            "warehouses_resolved",
            repository=repository,
            namespace=self.namespace,
            warehouses=names,
        )
        return names


__all__ = ["WarehouseResolver"]
