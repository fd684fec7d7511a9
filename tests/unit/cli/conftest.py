"""Unit test fixtures for the CLI module.

CLI tests replace the orchestrator with a mock, so they exercise argument
parsing, settings overrides and exit-code mapping without a cluster.
"""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from kargo_publish.schemas.resources import ArtifactRef
from kargo_publish.schemas.results import PublishResult

REPO = "gitea.cnoe.localtest.me:8443/giteaadmin/backstage-app"


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def publish_result() -> PublishResult:
    artifact = ArtifactRef(repository=REPO, tag="dev-20240101-120000-abc1234")
    return PublishResult(
        artifact=artifact,
        latest=artifact.with_tag("latest"),
        warehouses=("backstage-local",),
        refreshed=("backstage-local",),
        freight="f-abc123",
        stage="backstage-local-dev",
        elapsed_seconds=12.5,
    )


@pytest.fixture
def orchestrator_cls(publish_result: PublishResult) -> Iterator[MagicMock]:
    """Patch PublishOrchestrator in the CLI module.

    The class mock records the settings each command builds; its instance
    returns ``publish_result`` from run() and wait_for_promotion().
    """
    with patch("kargo_publish.cli.publish.PublishOrchestrator") as cls:
        cls.return_value.run.return_value = publish_result
        cls.return_value.wait_for_promotion.return_value = publish_result
        yield cls
