"""Pydantic schemas for kargo-publish.

Modules:
    config: Environment-driven settings
    resources: Typed Kargo resource records
    results: Outcome of a publish run
"""

from __future__ import annotations

from kargo_publish.schemas.config import PublishSettings, ReleaseSettings
from kargo_publish.schemas.resources import (
    ArtifactRef,
    ArtifactSubscription,
    Freight,
    Stage,
    Warehouse,
)
from kargo_publish.schemas.results import PublishResult

__all__ = [
    "ArtifactRef",
    "ArtifactSubscription",
    "Freight",
    "PublishResult",
    "PublishSettings",
    "ReleaseSettings",
    "Stage",
    "Warehouse",
]
