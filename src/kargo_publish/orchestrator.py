"""Publish orchestration: build, push, refresh, and wait for promotion.

This module provides the PublishOrchestrator class, which sequences the
whole publish flow and owns the shared wait deadline.

Flow:
    1. Validate configuration (no I/O): stage required in wait mode,
       release version must be major.minor.patch
    2. Generate the tag once
    3. Build the image archive, resolve credentials, push <tag> and latest
    4. Resolve subscribed warehouses and trigger a refresh on each
       (best-effort; an empty result is only a warning)
    5. In wait mode: check the stage exists, then locate the freight for the
       pushed tag and watch the stage converge, both against one deadline

Example:
    >>> from kargo_publish.schemas.config import PublishSettings
    >>> settings = PublishSettings(kargo_wait=True, kargo_stage="backstage-local-dev")
    >>> orchestrator = PublishOrchestrator(settings, client_factory=KubernetesResourceClient.from_kubeconfig)
    >>> result = orchestrator.run()
    >>> result.stage
    'backstage-local-dev'
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog

from kargo_publish.errors import (
    MissingStageParameterError,
    QueryFailedError,
    ResourceNotFoundError,
)
from kargo_publish.image.build import NixImageBuilder
from kargo_publish.image.credentials import CredentialResolver, gitea_credential_sources
from kargo_publish.image.push import SkopeoPusher
from kargo_publish.kargo.client import KubernetesResourceClient, ResourceClient
from kargo_publish.kargo.deadline import Clock, Deadline, Sleeper
from kargo_publish.kargo.freight import FreightLocator
from kargo_publish.kargo.refresh import RefreshTrigger
from kargo_publish.kargo.stages import PromotionWatcher
from kargo_publish.kargo.warehouses import WarehouseResolver
from kargo_publish.schemas.config import PublishSettings, ReleaseSettings
from kargo_publish.schemas.resources import ArtifactRef
from kargo_publish.schemas.results import PublishResult
from kargo_publish.tags import dev_tag, release_tag, short_revision
from kargo_publish.telemetry.tracing import create_span

if TYPE_CHECKING:
    from kargo_publish.schemas.resources import Freight, Stage

logger = structlog.get_logger(__name__)

LATEST_TAG = "latest"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PublishOrchestrator:
    """Drive one publish run end to end.

    Collaborators are injected so that each phase can be replaced in tests;
    defaults build the real Nix/skopeo/Kubernetes implementations from
    ``settings``.

    Args:
        settings: Publish or release settings.
        client_factory: Creates the resource client on first use.
        builder: Image builder (default: NixImageBuilder).
        pusher: Image pusher (default: SkopeoPusher).
        credentials: Credential resolver (default: Gitea chain).
        clock: Monotonic clock shared by the deadline and timings.
        sleep: Sleep function used by the pollers.
        now: UTC wall-clock source for dev tags.
        revision: Short revision provider for dev tags.
    """

    def __init__(
        self,
        settings: PublishSettings,
        *,
        client_factory: Callable[[], ResourceClient] = KubernetesResourceClient.from_kubeconfig,
        builder: NixImageBuilder | None = None,
        pusher: SkopeoPusher | None = None,
        credentials: CredentialResolver | None = None,
        clock: Clock = time.monotonic,
        sleep: Sleeper = time.sleep,
        now: Callable[[], datetime] = _utc_now,
        revision: Callable[[], str | None] = short_revision,
    ) -> None:
        self.settings = settings
        self._client_factory = client_factory
        self._client: ResourceClient | None = None
        self.builder = builder or NixImageBuilder(settings.nix_flake_ref)
        self.pusher = pusher or SkopeoPusher(
            tls_verify=settings.registry_tls_verify,
            archive_image=f"{settings.image_name}:latest",
        )
        self.credentials = credentials or CredentialResolver(gitea_credential_sources())
        self._clock = clock
        self._sleep = sleep
        self._now = now
        self._revision = revision

    @property
    def client(self) -> ResourceClient:
        """Resource client, created on first use."""
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    # =========================================================================
    # Configuration
    # =========================================================================

    def validate(self) -> None:
        """Check configuration before any network or subprocess call.

        Raises:
            MissingStageParameterError: Wait mode without a stage.
            InvalidVersionError: Release mode with a malformed version.
        """
        if self.settings.kargo_wait and not self.settings.kargo_stage:
            raise MissingStageParameterError()
        if isinstance(self.settings, ReleaseSettings):
            release_tag(self.settings.version)

    def generate_tag(self) -> str:
        """Generate the run's tag. Call once per run."""
        if isinstance(self.settings, ReleaseSettings):
            return release_tag(self.settings.version)
        return dev_tag(self._now(), self._revision())

    # =========================================================================
    # Phases
    # =========================================================================

    def run(self, tag: str | None = None) -> PublishResult:
        """Build, push, refresh and optionally wait for promotion.

        Args:
            tag: Use this tag instead of generating one.

        Returns:
            PublishResult describing the run.

        Raises:
            KargoPublishError: Any configuration, build, push, query or
                timeout failure. The pushed image is never rolled back.
        """
        started = self._clock()
        self.validate()
        tag = tag or self.generate_tag()
        artifact = ArtifactRef(repository=self.settings.image_repository, tag=tag)

        with create_span(
            "kargo_publish.publish",
            {"image.repository": artifact.repository, "image.tag": artifact.tag},
        ):
            logger.info("publish_started", image=str(artifact))
            latest = self._publish_image(artifact)
            result = self._promote(artifact, started)

        return result.model_copy(update={"latest": latest})

    def wait_for_promotion(self, tag: str) -> PublishResult:
        """Refresh and wait for an image that is already pushed.

        Raises:
            KargoPublishError: Configuration, query or timeout failures.
        """
        started = self._clock()
        self.validate()
        artifact = ArtifactRef(repository=self.settings.image_repository, tag=tag)
        with create_span("kargo_publish.wait", {"image.tag": tag}):
            return self._promote(artifact, started)

    def _publish_image(self, artifact: ArtifactRef) -> ArtifactRef | None:
        archive = self.builder.build()
        creds = self.credentials.resolve()
        self.pusher.push(archive, artifact, creds)

        if not self.settings.push_latest or artifact.tag == LATEST_TAG:
            return None
        latest = artifact.with_tag(LATEST_TAG)
        self.pusher.retag(artifact, latest, creds)
        return latest

    def _promote(self, artifact: ArtifactRef, started: float) -> PublishResult:
        warehouses: list[str] = []
        refreshed: list[str] = []
        failed: list[str] = []

        if self.settings.kargo_refresh:
            warehouses = self.resolve_warehouses(artifact.repository)
            refreshed, failed = self.refresh_warehouses(warehouses)

        freight_name: str | None = None
        stage_name: str | None = None
        if self.settings.kargo_wait:
            freight, stage = self.await_promotion(artifact)
            freight_name, stage_name = freight.name, stage.name

        return PublishResult(
            artifact=artifact,
            warehouses=tuple(warehouses),
            refreshed=tuple(refreshed),
            failed_refreshes=tuple(failed),
            freight=freight_name,
            stage=stage_name,
            elapsed_seconds=max(0.0, self._clock() - started),
        )

    def resolve_warehouses(self, repository: str) -> list[str]:
        """Find warehouses to refresh.

        Query failures are fatal only in wait mode; otherwise they are logged
        and refresh is skipped.
        """
        namespace = self.settings.kargo_namespace
        with create_span(
            "kargo_publish.resolve_warehouses",
            {"kargo.namespace": namespace, "image.repository": repository},
        ):
            try:
                resolver = WarehouseResolver(self.client, namespace)
                warehouses = resolver.resolve(repository, override=self.settings.kargo_warehouse)
            except QueryFailedError as e:
                if self.settings.kargo_wait:
                    raise
                logger.warning("warehouse_discovery_failed", namespace=namespace, error=str(e))
                return []

        if not warehouses:
            logger.warning(
                "no_matching_warehouses",
                namespace=namespace,
                repository=repository,
            )
        return warehouses

    def refresh_warehouses(self, warehouses: list[str]) -> tuple[list[str], list[str]]:
        """Trigger a refresh on each warehouse; one failure does not stop the rest.

        Returns:
            (refreshed, failed) warehouse names.
        """
        namespace = self.settings.kargo_namespace
        if not warehouses:
            return [], []

        trigger = RefreshTrigger(self.client)
        refreshed: list[str] = []
        failed: list[str] = []

        for name in warehouses:
            try:
                trigger.trigger("warehouse", namespace, name)
            except (ResourceNotFoundError, QueryFailedError) as e:
                logger.warning("refresh_failed", namespace=namespace, warehouse=name, error=str(e))
                failed.append(name)
            else:
                refreshed.append(name)
        return refreshed, failed

    def await_promotion(self, artifact: ArtifactRef) -> tuple[Freight, Stage]:
        """Wait for the artifact's freight and its promotion to the stage.

        The stage is checked for existence before the deadline starts; the
        freight and promotion waits then share one deadline.

        Raises:
            MissingStageParameterError: No stage configured.
            StageNotFoundError: The stage does not exist.
            FreightTimeoutError: No freight for the artifact in time.
            PromotionTimeoutError: The stage did not converge in time.
        """
        stage_name = self.settings.kargo_stage
        if not stage_name:
            raise MissingStageParameterError()

        namespace = self.settings.kargo_namespace
        interval = self.settings.kargo_poll_interval_seconds
        watcher = PromotionWatcher(self.client, poll_interval=interval, sleep=self._sleep)
        locator = FreightLocator(self.client, poll_interval=interval, sleep=self._sleep)

        initial = watcher.ensure_exists(namespace, stage_name)
        deadline = Deadline(self.settings.kargo_timeout_seconds, clock=self._clock)
        logger.info(
            "promotion_wait_started",
            namespace=namespace,
            stage=stage_name,
            image=str(artifact),
            timeout_seconds=self.settings.kargo_timeout_seconds,
        )

        with create_span(
            "kargo_publish.locate_freight",
            {"kargo.namespace": namespace, "image.tag": artifact.tag},
        ):
            freight = locator.locate(namespace, artifact, deadline)

        with create_span(
            "kargo_publish.watch_promotion",
            {"kargo.namespace": namespace, "kargo.stage": stage_name, "kargo.freight": freight.name},
        ):
            stage = watcher.watch(namespace, stage_name, freight, deadline, initial=initial)

        return freight, stage


__all__ = ["LATEST_TAG", "PublishOrchestrator"]
