"""Read-only access to Kargo resources, plus the annotation side-channel.

The Kargo controller stores Warehouses, Freight and Stages as custom
resources in group ``kargo.akuity.io``. This module wraps the Kubernetes
``CustomObjectsApi`` behind a small protocol so that the polling logic can
be driven by a mock in tests and never parses ``kubectl`` text output.

Failure semantics:
    - A missing named object raises ResourceNotFoundError.
    - Any other API, transport or kubeconfig failure raises QueryFailedError.
    - An empty list is only ever returned for a successful, empty query.

Example:
    >>> client = KubernetesResourceClient.from_kubeconfig()
    >>> [w.name for w in list_warehouses(client, "kargo-pipelines")]
    ['backstage-local']
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog
import urllib3
from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.client.exceptions import ApiException

from kargo_publish.errors import QueryFailedError, ResourceNotFoundError
from kargo_publish.schemas.resources import Freight, Stage, Warehouse
from kargo_publish.telemetry.sanitization import (
    sanitize_error_message,
    sanitize_k8s_api_error,
)

if TYPE_CHECKING:
    from pathlib import Path

logger = structlog.get_logger(__name__)

KARGO_GROUP = "kargo.akuity.io"
KARGO_VERSION = "v1alpha1"

REFRESH_ANNOTATION = "kargo.akuity.io/refresh"
"""Annotation whose value change makes the controller re-evaluate a resource."""

KIND_PLURALS: dict[str, str] = {
    "warehouse": "warehouses",
    "freight": "freights",
    "stage": "stages",
}


class ResourceClient(Protocol):
    """Structured access to the declarative resource store."""

    def list(
        self,
        kind: str,
        namespace: str,
        label_selector: str | None = None,
        field_selector: str | None = None,
    ) -> list[dict[str, Any]]:
        """Return all objects of ``kind`` in ``namespace``."""
        ...

    def get(self, kind: str, namespace: str, name: str) -> dict[str, Any]:
        """Return one object, raising ResourceNotFoundError if absent."""
        ...

    def annotate(
        self, kind: str, namespace: str, name: str, annotations: dict[str, str]
    ) -> None:
        """Merge ``annotations`` into the object's metadata, overwriting values."""
        ...


def load_kube_config(kubeconfig: Path | str | None = None, context: str | None = None) -> None:
    """Load cluster credentials for the Kubernetes client.

    An explicit kubeconfig wins. Otherwise in-cluster configuration is tried
    first, then the default kubeconfig.

    Raises:
        QueryFailedError: If no usable configuration is found.
    """
    try:
        if kubeconfig:
            k8s_config.load_kube_config(config_file=str(kubeconfig), context=context)
        else:
            try:
                k8s_config.load_incluster_config()
            except k8s_config.ConfigException:
                k8s_config.load_kube_config(context=context)
    except (k8s_config.ConfigException, OSError) as e:
        raise QueryFailedError(
            "kubeconfig", context or "default", sanitize_error_message(str(e))
        ) from e


def _plural(kind: str) -> str:
    try:
        return KIND_PLURALS[kind.lower()]
    except KeyError:
        raise ValueError(
            f"Unsupported kind '{kind}'. Expected one of: {', '.join(sorted(KIND_PLURALS))}"
        ) from None


class KubernetesResourceClient:
    """ResourceClient backed by the Kubernetes Python client.

    Attributes:
        group: API group of the custom resources.
        version: API version of the custom resources.
    """

    def __init__(
        self,
        api: k8s_client.CustomObjectsApi | None = None,
        *,
        group: str = KARGO_GROUP,
        version: str = KARGO_VERSION,
    ) -> None:
        self._api = api if api is not None else k8s_client.CustomObjectsApi()
        self.group = group
        self.version = version

    @classmethod
    def from_kubeconfig(
        cls,
        kubeconfig: Path | str | None = None,
        context: str | None = None,
    ) -> KubernetesResourceClient:
        """Load cluster credentials and build a client.

        Raises:
            QueryFailedError: If no usable configuration is found.
        """
        load_kube_config(kubeconfig, context)
        return cls()

    def list(
        self,
        kind: str,
        namespace: str,
        label_selector: str | None = None,
        field_selector: str | None = None,
    ) -> list[dict[str, Any]]:
        plural = _plural(kind)
        kwargs: dict[str, str] = {}
        if label_selector:
            kwargs["label_selector"] = label_selector
        if field_selector:
            kwargs["field_selector"] = field_selector

        try:
            response = self._api.list_namespaced_custom_object(
                self.group, self.version, namespace, plural, **kwargs
            )
        except ApiException as e:
            raise QueryFailedError(kind, namespace, sanitize_k8s_api_error(e)) from e
        except (urllib3.exceptions.HTTPError, OSError) as e:
            raise QueryFailedError(kind, namespace, sanitize_error_message(str(e))) from e

        items = response.get("items") if isinstance(response, dict) else None
        if not isinstance(items, list):
            raise QueryFailedError(kind, namespace, "response has no 'items' list")
        return items

    def get(self, kind: str, namespace: str, name: str) -> dict[str, Any]:
        plural = _plural(kind)
        try:
            obj = self._api.get_namespaced_custom_object(
                self.group, self.version, namespace, plural, name
            )
        except ApiException as e:
            if e.status == 404:
                raise ResourceNotFoundError(kind, namespace, name) from e
            raise QueryFailedError(kind, namespace, sanitize_k8s_api_error(e)) from e
        except (urllib3.exceptions.HTTPError, OSError) as e:
            raise QueryFailedError(kind, namespace, sanitize_error_message(str(e))) from e

        if not isinstance(obj, dict):
            raise QueryFailedError(kind, namespace, f"unexpected response for {name}")
        return obj

    def annotate(
        self, kind: str, namespace: str, name: str, annotations: dict[str, str]
    ) -> None:
        plural = _plural(kind)
        body = {"metadata": {"annotations": dict(annotations)}}
        try:
            self._api.patch_namespaced_custom_object(
                self.group, self.version, namespace, plural, name, body
            )
        except ApiException as e:
            if e.status == 404:
                raise ResourceNotFoundError(kind, namespace, name) from e
            raise QueryFailedError(kind, namespace, sanitize_k8s_api_error(e)) from e
        except (urllib3.exceptions.HTTPError, OSError) as e:
            raise QueryFailedError(kind, namespace, sanitize_error_message(str(e))) from e

        logger.debug(
            "resource_annotated",
            kind=kind,
            namespace=namespace,
            name=name,
            annotations=sorted(annotations),
        )


# =============================================================================
# Typed Queries
# =============================================================================


def list_warehouses(client: ResourceClient, namespace: str) -> list[Warehouse]:
    """List warehouses in ``namespace`` as typed records."""
    return [Warehouse.from_resource(obj) for obj in client.list("warehouse", namespace)]


def list_freight(client: ResourceClient, namespace: str) -> list[Freight]:
    """List freight in ``namespace`` as typed records, in listing order."""
    return [Freight.from_resource(obj) for obj in client.list("freight", namespace)]


def get_stage(client: ResourceClient, namespace: str, name: str) -> Stage:
    """Fetch one stage as a single consistent snapshot."""
    return Stage.from_resource(client.get("stage", namespace, name))


__all__ = [
    "KARGO_GROUP",
    "KARGO_VERSION",
    "KIND_PLURALS",
    "REFRESH_ANNOTATION",
    "KubernetesResourceClient",
    "ResourceClient",
    "get_stage",
    "list_freight",
    "list_warehouses",
    "load_kube_config",
]
