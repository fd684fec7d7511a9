"""Environment-driven configuration for kargo-publish.

Settings are read from environment variables (and an optional ``.env``
file) using the same variable names as the publishing scripts they replace,
so existing CI jobs and shell profiles keep working unchanged.

Environment Variables:
    REGISTRY_HOST            Registry host (default: gitea.cnoe.localtest.me:8443)
    REGISTRY_NAMESPACE       Registry namespace/owner (default: giteaadmin)
    IMAGE_NAME               Image name (default: backstage-app)
    REGISTRY_TLS_VERIFY      'true' or 'false' (default: false)
    KARGO_REFRESH            Trigger warehouse refresh (default: 1)
    KARGO_NAMESPACE          Kargo project namespace (default: kargo-pipelines)
    KARGO_WAREHOUSE          Explicit warehouse, skips discovery (optional)
    KARGO_WAIT               Wait for auto-promotion (default: 0)
    KARGO_STAGE              Stage to watch (required if KARGO_WAIT=1)
    KARGO_TIMEOUT_SECONDS    Shared wait budget (default: 300)

Example:
    >>> settings = PublishSettings(kargo_wait=True, kargo_stage="backstage-local-dev")
    >>> settings.image_repository
    'gitea.cnoe.localtest.me:8443/giteaadmin/backstage-app'
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TIMEOUT_SECONDS = 300
DEFAULT_POLL_INTERVAL_SECONDS = 2.0
DEFAULT_LOCAL_DEV_STAGE = "backstage-local-dev"
GHCR_HOST = "ghcr.io"


class PublishSettings(BaseSettings):
    """Settings for publishing a dev image to the in-cluster Gitea registry."""

    model_config = SettingsConfigDict(
        env_prefix="",  # No prefix - use REGISTRY_HOST, KARGO_WAIT directly
        env_file=".env",
        extra="ignore",
    )

    # Registry
    registry_host: str = Field(
        default="gitea.cnoe.localtest.me:8443",
        description="Registry host, optionally with port",
    )
    registry_namespace: str = Field(
        default="giteaadmin",
        description="Registry namespace (user or organization)",
    )
    image_name: str = Field(default="backstage-app", description="Image name")
    registry_tls_verify: bool = Field(
        default=False,
        description="Verify registry TLS certificates (false allows self-signed)",
    )
    push_latest: bool = Field(
        default=True,
        description="Also move the 'latest' tag to the pushed image",
    )
    nix_flake_ref: str = Field(
        default="./nix#backstageImage",
        description="Nix flake output that builds the docker-archive image",
    )

    # Kargo
    kargo_refresh: bool = Field(default=True, description="Trigger warehouse refresh")
    kargo_namespace: str = Field(default="kargo-pipelines", description="Kargo namespace")
    kargo_warehouse: str | None = Field(
        default=None,
        description="Explicit warehouse name; bypasses discovery by repoURL",
    )
    kargo_wait: bool = Field(default=False, description="Wait for auto-promotion")
    kargo_stage: str | None = Field(default=None, description="Stage to wait on")
    kargo_timeout_seconds: int = Field(
        default=DEFAULT_TIMEOUT_SECONDS,
        gt=0,
        description="Budget shared by the freight and promotion waits",
    )
    kargo_poll_interval_seconds: float = Field(
        default=DEFAULT_POLL_INTERVAL_SECONDS,
        gt=0,
        description="Delay between polls of the resource store",
    )

    # Release
    version: str | None = Field(
        default=None,
        description="Release version (major.minor.patch, optional leading 'v')",
    )

    @field_validator("registry_tls_verify", mode="before")
    @classmethod
    def validate_tls_verify(cls, v: Any) -> Any:
        """Accept only the literal strings 'true'/'false' from the environment."""
        if isinstance(v, str) and v not in ("true", "false"):
            raise ValueError(f"REGISTRY_TLS_VERIFY must be 'true' or 'false', got: {v}")
        return v

    @field_validator("kargo_warehouse", "kargo_stage", "version", mode="before")
    @classmethod
    def empty_as_none(cls, v: Any) -> Any:
        """Treat empty environment values as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def image_repository(self) -> str:
        """Full repository URL, e.g. ``ghcr.io/owner/backstage-app``."""
        return f"{self.registry_host}/{self.registry_namespace}/{self.image_name}"

    def with_overrides(self, **overrides: Any) -> PublishSettings:
        """Return a copy with non-None overrides applied and re-validated."""
        values = self.model_dump()
        values.update({key: value for key, value in overrides.items() if value is not None})
        return type(self)(**values)


class ReleaseSettings(PublishSettings):
    """Settings for publishing a semver release to GitHub Container Registry.

    The registry target is always ``ghcr.io/<owner>`` with TLS verification;
    ``REGISTRY_HOST``, ``REGISTRY_NAMESPACE`` and ``REGISTRY_TLS_VERIFY`` only
    apply to dev publishing and are ignored here.

    Environment Variables:
        GITHUB_OWNER     Registry owner (default: vpittamp, lower-cased)
        VERSION          Release version (required)
        KARGO_WAREHOUSE  Warehouse to refresh (default: backstage-ghcr)
    """

    registry_host: str = Field(default=GHCR_HOST, description="Registry host")
    registry_namespace: str = Field(
        default="",
        description="Registry owner; always the lower-cased GITHUB_OWNER",
    )
    registry_tls_verify: bool = Field(default=True, description="Verify registry TLS")
    github_owner: str = Field(default="vpittamp", description="GitHub user or organization")
    kargo_warehouse: str | None = Field(
        default="backstage-ghcr",
        description="Warehouse subscribed to the GHCR repository",
    )

    @field_validator("registry_tls_verify", mode="before")
    @classmethod
    def validate_tls_verify(cls, v: Any) -> Any:
        """GHCR is always verified; dev registry values are not parsed."""
        return True

    @model_validator(mode="after")
    def pin_ghcr_target(self) -> ReleaseSettings:
        """Container image paths use ghcr.io and the lower-cased owner."""
        self.registry_host = GHCR_HOST
        self.registry_namespace = self.github_owner.lower()
        self.registry_tls_verify = True
        return self


__all__ = [
    "DEFAULT_LOCAL_DEV_STAGE",
    "DEFAULT_POLL_INTERVAL_SECONDS",
    "DEFAULT_TIMEOUT_SECONDS",
    "GHCR_HOST",
    "PublishSettings",
    "ReleaseSettings",
]
