"""Publish and wait command implementations.

This module implements the publishing commands:
- ``kargo-publish dev``: build and push a ``dev-<timestamp>`` tag to Gitea
- ``kargo-publish local-dev``: ``dev`` that waits for the local-dev stage
- ``kargo-publish release VERSION``: build and push ``v<semver>`` to GHCR
- ``kargo-publish wait --tag TAG``: refresh and wait for an already pushed tag

Each command reads defaults from the environment (see
:mod:`kargo_publish.schemas.config`) and applies command-line overrides.

Example:
    $ KARGO_WAIT=1 KARGO_STAGE=backstage-local-dev kargo-publish dev
    $ kargo-publish local-dev --timeout 600
    $ GITHUB_OWNER=acme kargo-publish release 1.4.0
    $ kargo-publish wait --tag dev-20250101-120000-abc1234 --stage backstage-local-dev
"""

from __future__ import annotations

import functools
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click
import structlog
from pydantic import ValidationError

from kargo_publish.cli.utils import (
    ExitCode,
    dump_stage,
    error,
    error_exit,
    info,
    success,
    warn,
)
from kargo_publish.errors import ConfigurationError, KargoPublishError, PromotionTimeoutError
from kargo_publish.image.credentials import (
    CredentialResolver,
    ghcr_credential_sources,
    gitea_credential_sources,
)
from kargo_publish.kargo.client import KubernetesResourceClient
from kargo_publish.orchestrator import PublishOrchestrator
from kargo_publish.schemas.config import (
    DEFAULT_LOCAL_DEV_STAGE,
    PublishSettings,
    ReleaseSettings,
)
from kargo_publish.schemas.results import PublishResult

logger = structlog.get_logger(__name__)

EXIT_CODES_EPILOG = """
Exit Codes:
    0   - Success
    2   - Invalid configuration
    3   - Missing required tool (nix, skopeo, ...)
    4   - No registry credentials
    5   - Image build or push failed
    8   - Kubernetes query failed
    9   - Stage not found
    10  - Timed out waiting for Freight
    11  - Timed out waiting for promotion
    130 - Interrupted
"""


def kargo_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Attach the Kargo refresh/wait options shared by all commands."""
    options = [
        click.option(
            "--wait/--no-wait",
            default=None,
            help="Wait for the stage to promote the new Freight. [env: KARGO_WAIT]",
        ),
        click.option(
            "--stage",
            default=None,
            help="Stage to wait on. [env: KARGO_STAGE]",
            metavar="NAME",
        ),
        click.option(
            "--warehouse",
            default=None,
            help="Warehouse to refresh; skips discovery. [env: KARGO_WAREHOUSE]",
            metavar="NAME",
        ),
        click.option(
            "--namespace",
            "-n",
            default=None,
            help="Kargo project namespace. [env: KARGO_NAMESPACE]",
            metavar="NAMESPACE",
        ),
        click.option(
            "--timeout",
            type=click.IntRange(min=1),
            default=None,
            help="Seconds to wait for Freight and promotion. [env: KARGO_TIMEOUT_SECONDS]",
        ),
        click.option(
            "--no-refresh",
            is_flag=True,
            default=False,
            help="Do not annotate warehouses for refresh.",
        ),
        click.option(
            "--kubeconfig",
            type=click.Path(dir_okay=False, path_type=Path),
            default=None,
            envvar="KUBECONFIG",
            help="Path to kubeconfig file.",
        ),
        click.option(
            "--context",
            "kube_context",
            default=None,
            help="Kubernetes context to use.",
        ),
        click.option(
            "--output",
            type=click.Choice(["text", "json"], case_sensitive=False),
            default="text",
            show_default=True,
            help="Output format.",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _overrides(
    *,
    wait: bool | None,
    stage: str | None,
    warehouse: str | None,
    namespace: str | None,
    timeout: int | None,
    no_refresh: bool,
) -> dict[str, Any]:
    return {
        "kargo_wait": wait,
        "kargo_stage": stage,
        "kargo_warehouse": warehouse,
        "kargo_namespace": namespace,
        "kargo_timeout_seconds": timeout,
        "kargo_refresh": False if no_refresh else None,
    }


def _format_result(result: PublishResult, output: str) -> str:
    if output == "json":
        return result.model_dump_json(indent=2)

    lines = [f"Published: {result.artifact}"]
    if result.latest is not None:
        lines.append(f"Latest:    {result.latest}")
    if result.refreshed:
        lines.append(f"Refreshed: {', '.join(result.refreshed)}")
    if result.promoted:
        lines.append(f"Freight:   {result.freight}")
        lines.append(f"Stage:     {result.stage} (healthy)")
    lines.append(f"Elapsed:   {result.elapsed_seconds:.1f}s")
    return "\n".join(lines)


def _execute(
    build: Callable[[], PublishOrchestrator],
    action: Callable[[PublishOrchestrator], PublishResult],
    output: str,
) -> None:
    """Run an orchestrator action and map failures to exit codes."""
    try:
        orchestrator = build()
        result = action(orchestrator)
    except ValidationError as e:
        error_exit(f"Invalid configuration: {e}", exit_code=ExitCode.CONFIGURATION_ERROR)
    except PromotionTimeoutError as e:
        error(str(e))
        if e.last_stage is not None and e.last_stage.raw:
            dump_stage(e.last_stage.raw)
        sys.exit(e.exit_code)
    except KargoPublishError as e:
        logger.error(
            "publish_command_failed",
            error_type=type(e).__name__,
            error_summary=str(e)[:200],
        )
        error_exit(str(e), exit_code=e.exit_code)
    except KeyboardInterrupt:
        error_exit("Interrupted", exit_code=ExitCode.INTERRUPTED)

    for name in result.failed_refreshes:
        warn("Warehouse refresh failed", warehouse=name)
    success(_format_result(result, output))


def _orchestrator_factory(
    settings_factory: Callable[[], PublishSettings],
    credentials_factory: Callable[[PublishSettings], CredentialResolver],
    kubeconfig: Path | None,
    kube_context: str | None,
) -> Callable[[], PublishOrchestrator]:
    def build() -> PublishOrchestrator:
        settings = settings_factory()
        if settings.kargo_wait and settings.kargo_stage:
            info(
                f"Waiting for {settings.kargo_namespace}/{settings.kargo_stage} "
                f"(timeout {settings.kargo_timeout_seconds}s)"
            )
        return PublishOrchestrator(
            settings,
            client_factory=functools.partial(
                KubernetesResourceClient.from_kubeconfig, kubeconfig, kube_context
            ),
            credentials=credentials_factory(settings),
        )

    return build


def _gitea_credentials(settings: PublishSettings) -> CredentialResolver:
    return CredentialResolver(gitea_credential_sources())


def _ghcr_credentials(settings: PublishSettings) -> CredentialResolver:
    if not isinstance(settings, ReleaseSettings):
        raise ConfigurationError("GHCR credentials require release settings")
    return CredentialResolver(ghcr_credential_sources(settings.github_owner))


@click.command(
    name="dev",
    help="Build and push a dev image to the Gitea registry, then refresh Kargo.",
    epilog=EXIT_CODES_EPILOG,
)
@kargo_options
def dev_command(
    wait: bool | None,
    stage: str | None,
    warehouse: str | None,
    namespace: str | None,
    timeout: int | None,
    no_refresh: bool,
    kubeconfig: Path | None,
    kube_context: str | None,
    output: str,
) -> None:
    """Publish a ``dev-<timestamp>[-<rev>]`` tag."""
    overrides = _overrides(
        wait=wait,
        stage=stage,
        warehouse=warehouse,
        namespace=namespace,
        timeout=timeout,
        no_refresh=no_refresh,
    )
    build = _orchestrator_factory(
        lambda: PublishSettings().with_overrides(**overrides),
        _gitea_credentials,
        kubeconfig,
        kube_context,
    )
    _execute(build, lambda o: o.run(), output)


@click.command(
    name="local-dev",
    help=(
        "Publish a dev image and wait for the local-dev stage "
        f"(default stage: {DEFAULT_LOCAL_DEV_STAGE})."
    ),
    epilog=EXIT_CODES_EPILOG,
)
@kargo_options
def local_dev_command(
    wait: bool | None,
    stage: str | None,
    warehouse: str | None,
    namespace: str | None,
    timeout: int | None,
    no_refresh: bool,
    kubeconfig: Path | None,
    kube_context: str | None,
    output: str,
) -> None:
    """Publish a dev image and wait for promotion by default."""

    def settings_factory() -> PublishSettings:
        base = PublishSettings()
        overrides = _overrides(
            wait=True if wait is None else wait,
            stage=stage or base.kargo_stage or DEFAULT_LOCAL_DEV_STAGE,
            warehouse=warehouse,
            namespace=namespace,
            timeout=timeout,
            no_refresh=no_refresh,
        )
        return base.with_overrides(**overrides)

    build = _orchestrator_factory(settings_factory, _gitea_credentials, kubeconfig, kube_context)
    _execute(build, lambda o: o.run(), output)


@click.command(
    name="release",
    help="Build and push a semver release image to GitHub Container Registry.",
    epilog=EXIT_CODES_EPILOG,
)
@click.argument("version", required=False)
@click.option(
    "--owner",
    default=None,
    help="GitHub user or organization. [env: GITHUB_OWNER]",
    metavar="OWNER",
)
@kargo_options
def release_command(
    version: str | None,
    owner: str | None,
    wait: bool | None,
    stage: str | None,
    warehouse: str | None,
    namespace: str | None,
    timeout: int | None,
    no_refresh: bool,
    kubeconfig: Path | None,
    kube_context: str | None,
    output: str,
) -> None:
    """Publish ``v<VERSION>``.

    \b
    VERSION: major.minor.patch with optional leading 'v' [env: VERSION]
    """
    overrides = _overrides(
        wait=wait,
        stage=stage,
        warehouse=warehouse,
        namespace=namespace,
        timeout=timeout,
        no_refresh=no_refresh,
    )
    overrides["version"] = version
    overrides["github_owner"] = owner

    build = _orchestrator_factory(
        lambda: ReleaseSettings().with_overrides(**overrides),
        _ghcr_credentials,
        kubeconfig,
        kube_context,
    )
    _execute(build, lambda o: o.run(), output)


@click.command(
    name="wait",
    help="Refresh Kargo and wait for an already pushed tag to be promoted.",
    epilog=EXIT_CODES_EPILOG,
)
@click.option("--tag", required=True, help="Image tag that was pushed.", metavar="TAG")
@kargo_options
def wait_command(
    tag: str,
    wait: bool | None,
    stage: str | None,
    warehouse: str | None,
    namespace: str | None,
    timeout: int | None,
    no_refresh: bool,
    kubeconfig: Path | None,
    kube_context: str | None,
    output: str,
) -> None:
    """Skip build and push; only refresh and wait."""
    overrides = _overrides(
        wait=True if wait is None else wait,
        stage=stage,
        warehouse=warehouse,
        namespace=namespace,
        timeout=timeout,
        no_refresh=no_refresh,
    )
    build = _orchestrator_factory(
        lambda: PublishSettings().with_overrides(**overrides),
        _gitea_credentials,
        kubeconfig,
        kube_context,
    )
    _execute(build, lambda o: o.wait_for_promotion(tag), output)


__all__: list[str] = [
    "dev_command",
    "local_dev_command",
    "release_command",
    "wait_command",
]
