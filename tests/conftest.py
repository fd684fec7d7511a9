"""Shared test configuration for kargo-publish.

Provides:
- A fake monotonic clock whose ``sleep`` advances time instantly
- A MagicMock resource client
- Factories for raw Warehouse, Freight and Stage objects as returned by
  the Kubernetes API
- Isolation from the developer's environment variables and .env file
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any
from unittest.mock import MagicMock

import pytest

from kargo_publish.telemetry.tracing import set_tracer

NAMESPACE = "kargo-pipelines"
REPOSITORY = "gitea.cnoe.localtest.me:8443/giteaadmin/backstage-app"

_SETTINGS_ENV = (
    "REGISTRY_HOST",
    "REGISTRY_NAMESPACE",
    "IMAGE_NAME",
    "REGISTRY_TLS_VERIFY",
    "PUSH_LATEST",
    "NIX_FLAKE_REF",
    "KARGO_REFRESH",
    "KARGO_NAMESPACE",
    "KARGO_WAREHOUSE",
    "KARGO_WAIT",
    "KARGO_STAGE",
    "KARGO_TIMEOUT_SECONDS",
    "KARGO_POLL_INTERVAL_SECONDS",
    "VERSION",
    "GITHUB_OWNER",
    "GITHUB_TOKEN",
    "GITHUB_PAT",
)


class FakeClock:
    """Monotonic clock driven by the code under test.

    ``sleep`` records the requested delay and advances ``now`` by it, so
    polling loops run instantly and deterministically.
    """

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def isolated_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Any
) -> Iterator[None]:
    """Clear settings variables and run from an empty directory (no .env)."""
    for name in _SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    yield


@pytest.fixture(autouse=True)
def reset_tracer() -> Iterator[None]:
    """Reset the cached tracer between tests."""
    set_tracer(None)
    yield
    set_tracer(None)


@pytest.fixture
def namespace() -> str:
    return NAMESPACE


@pytest.fixture
def repository() -> str:
    return REPOSITORY


@pytest.fixture
def fake_clock() -> FakeClock:
    """Fake clock starting at t=1000s."""
    return FakeClock()


@pytest.fixture
def mock_client() -> MagicMock:
    """Resource client mock with empty listings by default."""
    client = MagicMock()
    client.list.return_value = []
    return client


@pytest.fixture
def make_warehouse() -> Callable[..., dict[str, Any]]:
    """Factory for raw Warehouse objects."""

    def _make(name: str, repo_urls: list[str], namespace: str = NAMESPACE) -> dict[str, Any]:
        return {
            "apiVersion": "kargo.akuity.io/v1alpha1",
            "kind": "Warehouse",
            "metadata": {"name": name, "namespace": namespace},
            "spec": {
                "subscriptions": [{"image": {"repoURL": url}} for url in repo_urls],
            },
        }

    return _make


@pytest.fixture
def make_freight() -> Callable[..., dict[str, Any]]:
    """Factory for raw Freight objects from (repoURL, tag) pairs."""

    def _make(
        name: str,
        images: list[tuple[str, str]],
        namespace: str = NAMESPACE,
    ) -> dict[str, Any]:
        return {
            "apiVersion": "kargo.akuity.io/v1alpha1",
            "kind": "Freight",
            "metadata": {"name": name, "namespace": namespace},
            "images": [{"repoURL": repo, "tag": tag} for repo, tag in images],
        }

    return _make


@pytest.fixture
def make_stage() -> Callable[..., dict[str, Any]]:
    """Factory for raw Stage objects.

    Defaults describe a stage fully converged on ``freight``.
    """

    def _make(
        name: str = "backstage-local-dev",
        freight: str | None = "f-abc123",
        ready: str | None = "True",
        health: str | None = "Healthy",
        verified: str | None = "True",
        namespace: str = NAMESPACE,
    ) -> dict[str, Any]:
        conditions = []
        if ready is not None:
            conditions.append({"type": "Ready", "status": ready})
        if verified is not None:
            conditions.append({"type": "Verified", "status": verified})
        status: dict[str, Any] = {"conditions": conditions}
        if freight is not None:
            status["freightSummary"] = freight
        if health is not None:
            status["health"] = {"status": health}
        return {
            "apiVersion": "kargo.akuity.io/v1alpha1",
            "kind": "Stage",
            "metadata": {"name": name, "namespace": namespace},
            "status": status,
        }

    return _make
