"""Registry credential resolution through an ordered fallback chain.

Each source is tried in priority order; the first one that yields a
non-empty secret wins. Sources whose CLI is not installed are skipped, and
a failing source is logged and passed over rather than aborting the chain.

Chains:
    gitea: idpbuilder secrets -> Kubernetes secret ``gitea/gitea-credential``
    ghcr:  GITHUB_TOKEN/GITHUB_PAT -> 1Password -> Kubernetes secret
           ``kargo-pipelines/kargo-ghcr-backstage-credentials`` -> ``gh auth token``

Example:
    >>> resolver = CredentialResolver(ghcr_credential_sources("vpittamp"))
    >>> creds = resolver.resolve()
    >>> creds.as_skopeo_arg()  # doctest: +SKIP
    'vpittamp:ghp_...'
"""

from __future__ import annotations

import base64
import binascii
import json
import os
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

import structlog
import urllib3
from kubernetes import client as k8s_client
from kubernetes.client.exceptions import ApiException

from kargo_publish.errors import CredentialsError, MissingToolError, QueryFailedError
from kargo_publish.image.tools import CommandFailedError, has_command, run_command
from kargo_publish.kargo.client import load_kube_config
from kargo_publish.telemetry.sanitization import sanitize_k8s_api_error

logger = structlog.get_logger(__name__)

DEFAULT_ONEPASSWORD_ITEMS: tuple[tuple[str, str], ...] = (
    ("Github Personal Access Token", "token"),
    ("GitHub PAT", "token"),
    ("GitHub Token", "token"),
    ("github.com", "password"),
)
"""1Password (item, field) pairs tried in order for a GitHub token."""


@dataclass(frozen=True)
class RegistryCredentials:
    """Username and secret for registry access.

    Attributes:
        username: Registry user.
        password: Password or token; excluded from repr.
        source: Name of the source that produced the credentials.
    """

    username: str
    password: str = field(repr=False)
    source: str = ""

    def as_skopeo_arg(self) -> str:
        """Return ``user:secret`` as expected by skopeo ``--*-creds``."""
        return f"{self.username}:{self.password}"


class CredentialSource(ABC):
    """One place registry credentials may come from."""

    name: str = "source"

    def available(self) -> bool:
        """True when this source can be attempted at all."""
        return True

    @abstractmethod
    def resolve(self) -> RegistryCredentials | None:
        """Return credentials, or None when this source has none."""
        ...


class EnvTokenSource(CredentialSource):
    """Token from the first non-empty environment variable."""

    name = "environment"

    def __init__(
        self,
        username: str,
        variables: Sequence[str] = ("GITHUB_TOKEN", "GITHUB_PAT"),
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.username = username
        self.variables = tuple(variables)
        self._environ = environ if environ is not None else os.environ

    def resolve(self) -> RegistryCredentials | None:
        for variable in self.variables:
            token = self._environ.get(variable, "")
            if token:
                return RegistryCredentials(self.username, token, source=variable)
        return None


class OnePasswordSource(CredentialSource):
    """Token stored in a 1Password item, read with the ``op`` CLI."""

    name = "1password"

    def __init__(
        self,
        username: str,
        items: Sequence[tuple[str, str]] = DEFAULT_ONEPASSWORD_ITEMS,
    ) -> None:
        self.username = username
        self.items = tuple(items)

    def available(self) -> bool:
        return has_command("op")

    def resolve(self) -> RegistryCredentials | None:
        for item, item_field in self.items:
            try:
                secret = run_command(
                    ["op", "item", "get", item, "--fields", item_field, "--reveal"]
                ).strip()
            except CommandFailedError:
                continue
            if secret:
                return RegistryCredentials(
                    self.username, secret, source=f"1password:{item}"
                )
        return None


class IdpbuilderSource(CredentialSource):
    """Gitea admin credentials from ``idpbuilder get secrets``."""

    name = "idpbuilder"

    def __init__(self, package: str = "gitea") -> None:
        self.package = package

    def available(self) -> bool:
        return has_command("idpbuilder")

    def resolve(self) -> RegistryCredentials | None:
        output = run_command(["idpbuilder", "get", "secrets", "-p", self.package, "-o", "json"])
        try:
            entries = json.loads(output)
        except json.JSONDecodeError:
            logger.warning("idpbuilder_output_invalid", package=self.package)
            return None
        if not isinstance(entries, list) or not entries or not isinstance(entries[0], dict):
            return None

        entry = entries[0]
        username = str(entry.get("username") or "")
        password = str(entry.get("token") or entry.get("password") or "")
        if not username or not password:
            return None
        return RegistryCredentials(username, password, source=self.name)


class KubernetesSecretSource(CredentialSource):
    """Credentials stored in a Kubernetes Secret.

    Args:
        secret_name: Secret to read.
        namespace: Namespace of the secret.
        password_key: Data key holding the password or token.
        username_key: Data key holding the username, if stored in the secret.
        username: Fixed username, used when ``username_key`` is not set.
        api: CoreV1Api instance; created from the loaded kubeconfig if omitted.
    """

    name = "kubernetes-secret"

    def __init__(
        self,
        secret_name: str,
        namespace: str,
        *,
        password_key: str = "password",
        username_key: str | None = None,
        username: str = "",
        api: k8s_client.CoreV1Api | None = None,
    ) -> None:
        self.secret_name = secret_name
        self.namespace = namespace
        self.password_key = password_key
        self.username_key = username_key
        self.username = username
        self._api = api

    def _decode(self, data: Mapping[str, str], key: str | None) -> str:
        if not key or not data.get(key):
            return ""
        try:
            return base64.b64decode(data[key]).decode("utf-8").strip()
        except (binascii.Error, UnicodeDecodeError):
            logger.warning("secret_value_undecodable", secret=self.secret_name, key=key)
            return ""

    def _core_api(self) -> k8s_client.CoreV1Api | None:
        if self._api is not None:
            return self._api
        try:
            load_kube_config()
        except QueryFailedError as e:
            logger.debug("secret_source_unconfigured", error=e.reason)
            return None
        return k8s_client.CoreV1Api()

    def resolve(self) -> RegistryCredentials | None:
        api = self._core_api()
        if api is None:
            return None
        try:
            secret = api.read_namespaced_secret(self.secret_name, self.namespace)
        except ApiException as e:
            logger.debug(
                "secret_unavailable",
                secret=f"{self.namespace}/{self.secret_name}",
                error=sanitize_k8s_api_error(e),
            )
            return None
        except (urllib3.exceptions.HTTPError, OSError) as e:
            logger.debug(
                "secret_unavailable",
                secret=f"{self.namespace}/{self.secret_name}",
                error=type(e).__name__,
            )
            return None

        data = secret.data or {}
        username = self._decode(data, self.username_key) or self.username
        password = self._decode(data, self.password_key)
        if not username or not password:
            return None
        return RegistryCredentials(
            username, password, source=f"secret:{self.namespace}/{self.secret_name}"
        )


class GhCliSource(CredentialSource):
    """Token from ``gh auth token``; may lack the packages:write scope."""

    name = "gh"

    def __init__(self, username: str) -> None:
        self.username = username

    def available(self) -> bool:
        return has_command("gh")

    def resolve(self) -> RegistryCredentials | None:
        token = run_command(["gh", "auth", "token"]).strip()
        if not token:
            return None
        return RegistryCredentials(self._login() or self.username, token, source=self.name)

    def _login(self) -> str:
        """Account the token belongs to, or empty if it cannot be read."""
        try:
            return run_command(["gh", "api", "user", "--jq", ".login"]).strip()
        except CommandFailedError as e:
            logger.debug("gh_login_unavailable", error=str(e))
            return ""


class CredentialResolver:
    """Try credential sources in priority order."""

    def __init__(self, sources: Sequence[CredentialSource]) -> None:
        self.sources = tuple(sources)

    def resolve(self) -> RegistryCredentials:
        """Return the first credentials found.

        Raises:
            CredentialsError: If every source is unavailable or empty.
        """
        tried: list[str] = []
        for source in self.sources:
            if not source.available():
                logger.debug("credential_source_skipped", source=source.name)
                continue

            tried.append(source.name)
            try:
                credentials = source.resolve()
            except (CommandFailedError, MissingToolError) as e:
                logger.debug("credential_source_failed", source=source.name, error=str(e))
                continue

            if credentials is not None:
                logger.info(
                    "credentials_resolved",
                    source=credentials.source or source.name,
                    username=credentials.username,
                )
                return credentials

        raise CredentialsError("No registry credentials found", tried=tried)


def gitea_credential_sources() -> list[CredentialSource]:
    """Sources for the in-cluster Gitea registry."""
    return [
        IdpbuilderSource("gitea"),
        KubernetesSecretSource(
            "gitea-credential",
            "gitea",
            username_key="username",
            password_key="token",
        ),
    ]


def ghcr_credential_sources(
    owner: str,
    environ: Mapping[str, str] | None = None,
) -> list[CredentialSource]:
    """Sources for GitHub Container Registry, most to least preferred."""
    return [
        EnvTokenSource(owner, environ=environ),
        OnePasswordSource(owner),
        KubernetesSecretSource(
            "kargo-ghcr-backstage-credentials",
            "kargo-pipelines",
            password_key="password",
            username=owner,
        ),
        GhCliSource(owner),
    ]


__all__ = [
    "DEFAULT_ONEPASSWORD_ITEMS",
    "CredentialResolver",
    "CredentialSource",
    "EnvTokenSource",
    "GhCliSource",
    "IdpbuilderSource",
    "KubernetesSecretSource",
    "OnePasswordSource",
    "RegistryCredentials",
    "ghcr_credential_sources",
    "gitea_credential_sources",
]
