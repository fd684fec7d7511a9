"""Outcome record of a publish run."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from kargo_publish.schemas.resources import ArtifactRef


class PublishResult(BaseModel):
    """What a publish (or wait-only) run did.

    Examples:
        >>> result = PublishResult(artifact=ArtifactRef(repository="r/ns/app", tag="v1.0.0"))
        >>> result.promoted
        False
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    artifact: ArtifactRef = Field(..., description="The pushed image reference")
    latest: ArtifactRef | None = Field(
        default=None,
        description="The 'latest' reference moved to the same image, if any",
    )
    warehouses: tuple[str, ...] = Field(
        default=(),
        description="Warehouses resolved for the repository",
    )
    refreshed: tuple[str, ...] = Field(
        default=(),
        description="Warehouses whose refresh annotation was written",
    )
    failed_refreshes: tuple[str, ...] = Field(
        default=(),
        description="Warehouses whose refresh trigger failed",
    )
    freight: str | None = Field(default=None, description="Freight minted for the artifact")
    stage: str | None = Field(default=None, description="Stage now serving the artifact")
    elapsed_seconds: float = Field(default=0.0, ge=0, description="Wall time of the run")

    @property
    def promoted(self) -> bool:
        """True when a stage was observed converged on the artifact."""
        return self.stage is not None and self.freight is not None


__all__ = ["PublishResult"]
