"""Wait for the freight that corresponds to a pushed image tag.

After a push, the warehouse asynchronously discovers the new tag and mints
a Freight whose ``images`` list contains it. The locator polls the freight
list until an entry with the exact repository and tag appears.

Polling Timeline (default config):
    - Poll 1: immediate
    - Poll N: every 2s, the last sleep clipped to the remaining budget
    - Expiry: FreightTimeoutError with the artifact that was searched for
"""

from __future__ import annotations

import time

import structlog

from kargo_publish.errors import FreightTimeoutError, QueryFailedError
from kargo_publish.kargo.client import ResourceClient, list_freight
from kargo_publish.kargo.deadline import Deadline, Sleeper
from kargo_publish.schemas.config import DEFAULT_POLL_INTERVAL_SECONDS
from kargo_publish.schemas.resources import ArtifactRef, Freight

logger = structlog.get_logger(__name__)


class FreightLocator:
    """Poll for freight containing an exact ``repository:tag``.

    Args:
        client: Resource store client.
        poll_interval: Seconds between polls.
        sleep: Sleep function (injectable for tests).
    """

    def __init__(
        self,
        client: ResourceClient,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        sleep: Sleeper = time.sleep,
    ) -> None:
        self._client = client
        self.poll_interval = poll_interval
        self._sleep = sleep

    def find(self, namespace: str, artifact: ArtifactRef) -> Freight | None:
        """Return the first freight in listing order containing ``artifact``.

        Raises:
            QueryFailedError: If freight cannot be listed.
        """
        for freight in list_freight(self._client, namespace):
            if freight.contains(artifact):
                return freight
        return None

    def locate(self, namespace: str, artifact: ArtifactRef, deadline: Deadline) -> Freight:
        """Block until matching freight exists or the deadline passes.

        Query failures are logged and retried until the deadline; they are
        never treated as "no match".

        Args:
            namespace: Kargo project namespace.
            artifact: The exact pushed image reference.
            deadline: Shared run deadline.

        Returns:
            The first matching freight observed.

        Raises:
            FreightTimeoutError: If the deadline expires first, including when
                it has already expired on entry.
        """
        last_error: str | None = None
        polls = 0

        while not deadline.expired():
            polls += 1
            try:
                freight = self.find(namespace, artifact)
            except QueryFailedError as e:
                last_error = e.reason
                logger.warning(
                    "freight_query_failed",
                    namespace=namespace,
                    artifact=str(artifact),
                    poll=polls,
                    error=e.reason,
                )
            else:
                if freight is not None:
                    logger.info(
                        "freight_located",
                        freight=freight.name,
                        artifact=str(artifact),
                        polls=polls,
                        elapsed_seconds=round(deadline.elapsed(), 1),
                    )
                    return freight
                logger.debug("freight_pending", artifact=str(artifact), poll=polls)

            deadline.sleep(self.poll_interval, self._sleep)

        raise FreightTimeoutError(
            artifact,
            namespace=namespace,
            elapsed_seconds=deadline.elapsed(),
            timeout_seconds=deadline.timeout_seconds,
            last_error=last_error,
        )


__all__ = ["FreightLocator"]
