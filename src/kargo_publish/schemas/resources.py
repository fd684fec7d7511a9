"""Typed records for the Kargo resources this tool reads.

Raw objects returned by the Kubernetes API are parsed into frozen Pydantic
models so that polling logic never touches the wire format directly.

Key Components:
    ArtifactRef: A pushed image, ``repository:tag``
    Warehouse: Subscribes to repositories and mints freight
    Freight: Immutable record binding pushed artifacts to a name
    Stage: Promotion target reporting freight, conditions and health

Example:
    >>> ref = ArtifactRef(repository="registry/ns/app", tag="dev-20240101-120000")
    >>> str(ref)
    'registry/ns/app:dev-20240101-120000'
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

READY_CONDITION = "Ready"
"""Stage condition type reporting that the current promotion finished."""

VERIFIED_CONDITION = "Verified"
"""Stage condition type reporting that verification passed."""

HEALTHY = "Healthy"
"""Stage health status value required for convergence."""

CONDITION_TRUE = "True"


def _metadata(obj: dict[str, Any]) -> tuple[str, str]:
    metadata = obj.get("metadata") or {}
    return str(metadata.get("name") or ""), str(metadata.get("namespace") or "")


class ArtifactRef(BaseModel):
    """Identifies a pushed image.

    Equality is an exact match on both fields. No normalization or digest
    resolution is applied.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    repository: str = Field(..., min_length=1, description="Image repository URL")
    tag: str = Field(..., min_length=1, description="Image tag")

    def __str__(self) -> str:
        return f"{self.repository}:{self.tag}"

    def with_tag(self, tag: str) -> ArtifactRef:
        """Return a reference to another tag in the same repository."""
        return ArtifactRef(repository=self.repository, tag=tag)


class ArtifactSubscription(BaseModel):
    """One entry of a warehouse's subscription list.

    Only image subscriptions carry a repository URL; git and chart
    subscriptions parse with an empty URL and never match an image.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    repository_url: str = Field(default="", description="Subscribed image repoURL")

    @classmethod
    def from_resource(cls, subscription: dict[str, Any]) -> ArtifactSubscription:
        image = subscription.get("image") or {}
        return cls(repository_url=str(image.get("repoURL") or ""))


class Warehouse(BaseModel):
    """A Kargo Warehouse."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    namespace: str
    subscriptions: tuple[ArtifactSubscription, ...] = ()

    @classmethod
    def from_resource(cls, obj: dict[str, Any]) -> Warehouse:
        """Parse a raw ``Warehouse`` object."""
        name, namespace = _metadata(obj)
        spec = obj.get("spec") or {}
        subscriptions = tuple(
            ArtifactSubscription.from_resource(sub)
            for sub in spec.get("subscriptions") or []
            if isinstance(sub, dict)
        )
        return cls(name=name, namespace=namespace, subscriptions=subscriptions)

    def subscribes_to(self, repository: str) -> bool:
        """True when any subscription's repoURL equals ``repository`` exactly."""
        return any(sub.repository_url == repository for sub in self.subscriptions)


class Freight(BaseModel):
    """A Kargo Freight record.

    Freight names are opaque identifiers minted by the controller.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    namespace: str
    artifacts: tuple[ArtifactRef, ...] = ()

    @classmethod
    def from_resource(cls, obj: dict[str, Any]) -> Freight:
        """Parse a raw ``Freight`` object.

        Image entries missing either ``repoURL`` or ``tag`` are skipped.
        """
        name, namespace = _metadata(obj)
        artifacts = tuple(
            ArtifactRef(repository=str(image["repoURL"]), tag=str(image["tag"]))
            for image in obj.get("images") or []
            if isinstance(image, dict) and image.get("repoURL") and image.get("tag")
        )
        return cls(name=name, namespace=namespace, artifacts=artifacts)

    def contains(self, artifact: ArtifactRef) -> bool:
        """True when some artifact has identical repository and tag."""
        return any(
            ref.repository == artifact.repository and ref.tag == artifact.tag
            for ref in self.artifacts
        )


class Stage(BaseModel):
    """A Kargo Stage as observed in one read.

    Attributes:
        current_freight_summary: ``status.freightSummary`` (empty if unset).
        conditions: Condition type to status; first entry per type wins.
        health: ``status.health.status`` (empty if unset).
        raw: The full object as fetched, kept for diagnostics.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    namespace: str
    current_freight_summary: str = ""
    conditions: dict[str, str] = Field(default_factory=dict)
    health: str = ""
    raw: dict[str, Any] = Field(default_factory=dict, repr=False)

    @classmethod
    def from_resource(cls, obj: dict[str, Any]) -> Stage:
        """Parse a raw ``Stage`` object."""
        name, namespace = _metadata(obj)
        status = obj.get("status") or {}

        conditions: dict[str, str] = {}
        for condition in status.get("conditions") or []:
            if not isinstance(condition, dict):
                continue
            condition_type = condition.get("type")
            if condition_type and condition_type not in conditions:
                conditions[str(condition_type)] = str(condition.get("status") or "")

        health = status.get("health") or {}
        return cls(
            name=name,
            namespace=namespace,
            current_freight_summary=str(status.get("freightSummary") or ""),
            conditions=conditions,
            health=str(health.get("status") or "") if isinstance(health, dict) else "",
            raw=obj,
        )

    def pending_checks(self, freight_name: str) -> list[str]:
        """Return the convergence checks this snapshot does not satisfy."""
        pending = []
        if self.current_freight_summary != freight_name:
            pending.append(
                f"freight={self.current_freight_summary or '<none>'} (want {freight_name})"
            )
        ready = self.conditions.get(READY_CONDITION)
        if ready != CONDITION_TRUE:
            pending.append(f"{READY_CONDITION}={ready or '<unset>'}")
        if self.health != HEALTHY:
            pending.append(f"health={self.health or '<unset>'}")
        verified = self.conditions.get(VERIFIED_CONDITION)
        if verified != CONDITION_TRUE:
            pending.append(f"{VERIFIED_CONDITION}={verified or '<unset>'}")
        return pending

    def is_converged_on(self, freight_name: str) -> bool:
        """True when this snapshot serves ``freight_name`` and is ready, healthy and verified."""
        return not self.pending_checks(freight_name)


__all__ = [
    "CONDITION_TRUE",
    "HEALTHY",
    "READY_CONDITION",
    "VERIFIED_CONDITION",
    "ArtifactRef",
    "ArtifactSubscription",
    "Freight",
    "Stage",
    "Warehouse",
]
