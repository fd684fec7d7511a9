"""Request controller re-evaluation through the refresh annotation.

Kargo reacts to a *change* in the ``kargo.akuity.io/refresh`` annotation
value, so each trigger writes a new UTC timestamp with second precision.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import structlog

from kargo_publish.kargo.client import REFRESH_ANNOTATION, ResourceClient

logger = structlog.get_logger(__name__)

REFRESH_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RefreshTrigger:
    """Write fresh refresh timestamps onto Kargo resources.

    Values written by one trigger instance never repeat: when two calls
    land in the same second, the later value is advanced by one second.

    Args:
        client: Resource store client.
        clock: UTC time source (injectable for tests).
    """

    def __init__(
        self,
        client: ResourceClient,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._client = client
        self._clock = clock
        self._last: datetime | None = None

    def _next_timestamp(self) -> datetime:
        now = self._clock().astimezone(timezone.utc).replace(microsecond=0)
        if self._last is not None and now <= self._last:
            now = self._last + timedelta(seconds=1)
        self._last = now
        return now

    def trigger(self, kind: str, namespace: str, name: str) -> str:
        """Set the refresh annotation on one resource.

        Returns:
            The timestamp value written.

        Raises:
            ResourceNotFoundError: If the resource does not exist.
            QueryFailedError: If the patch could not be applied.
        """
        value = self._next_timestamp().strftime(REFRESH_TIMESTAMP_FORMAT)
        self._client.annotate(kind, namespace, name, {REFRESH_ANNOTATION: value})
        logger.info("refresh_requested", kind=kind, namespace=namespace, name=name, at=value)
        return value


__all__ = ["REFRESH_TIMESTAMP_FORMAT", "RefreshTrigger"]
