"""Kargo promotion-orchestration core.

Modules:
    client: Resource store access (Kubernetes custom objects)
    deadline: Shared wait budget
    warehouses: Warehouse discovery by repository URL
    refresh: Refresh annotation trigger
    freight: Freight Locator
    stages: Promotion Watcher
"""

from __future__ import annotations

from kargo_publish.kargo.client import (
    REFRESH_ANNOTATION,
    KubernetesResourceClient,
    ResourceClient,
    get_stage,
    list_freight,
    list_warehouses,
)
from kargo_publish.kargo.deadline import Deadline
from kargo_publish.kargo.freight import FreightLocator
from kargo_publish.kargo.refresh import RefreshTrigger
from kargo_publish.kargo.stages import PromotionWatcher, describe_pending
from kargo_publish.kargo.warehouses import WarehouseResolver

__all__ = [
    "REFRESH_ANNOTATION",
    "Deadline",
    "FreightLocator",
    "KubernetesResourceClient",
    "PromotionWatcher",
    "RefreshTrigger",
    "ResourceClient",
    "WarehouseResolver",
    "describe_pending",
    "get_stage",
    "list_freight",
    "list_warehouses",
]
