"""Wait for a stage to adopt freight and report itself healthy and verified.

A stage is converged on a freight when, in one fetched snapshot:

- ``status.freightSummary`` equals the freight name
- condition ``Ready`` is ``"True"``
- ``status.health.status`` is ``"Healthy"``
- condition ``Verified`` is ``"True"``

All four checks are evaluated against the same object so that a controller
update between reads can never produce a torn result.
"""

from __future__ import annotations

import time

import structlog

from kargo_publish.errors import (
    PromotionTimeoutError,
    QueryFailedError,
    ResourceNotFoundError,
    StageNotFoundError,
)
from kargo_publish.kargo.client import ResourceClient, get_stage
from kargo_publish.kargo.deadline import Deadline, Sleeper
from kargo_publish.schemas.config import DEFAULT_POLL_INTERVAL_SECONDS
from kargo_publish.schemas.resources import Freight, Stage

logger = structlog.get_logger(__name__)


def describe_pending(stage: Stage, freight: Freight) -> list[str]:
    """List the convergence checks ``stage`` does not yet satisfy for ``freight``."""
    return stage.pending_checks(freight.name)


class PromotionWatcher:
    """Poll a stage until it is converged on the expected freight.

    The watcher never prints the last observed state; on timeout it attaches
    the snapshot to the raised PromotionTimeoutError for the caller to show.

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

    def ensure_exists(self, namespace: str, stage_name: str) -> Stage:
        """Fetch the stage once, failing fast if it is missing.

        Raises:
            StageNotFoundError: If the stage does not exist.
            QueryFailedError: If the stage cannot be fetched.
        """
        try:
            return get_stage(self._client, namespace, stage_name)
        except ResourceNotFoundError as e:
            raise StageNotFoundError(namespace, stage_name) from e

    def watch(
        self,
        namespace: str,
        stage_name: str,
        expected_freight: Freight,
        deadline: Deadline,
        initial: Stage | None = None,
    ) -> Stage:
        """Block until the stage converges on ``expected_freight``.

        Args:
            namespace: Kargo project namespace.
            stage_name: Stage to watch.
            expected_freight: Freight the stage must adopt.
            deadline: Shared run deadline.
            initial: Snapshot from a prior ensure_exists; fetched when omitted.

        Returns:
            The converged stage snapshot.

        Raises:
            StageNotFoundError: If the stage does not exist.
            PromotionTimeoutError: If the deadline expires first.
        """
        last_stage = initial if initial is not None else self.ensure_exists(namespace, stage_name)
        polls = 0

        while not deadline.expired():
            polls += 1
            try:
                stage = get_stage(self._client, namespace, stage_name)
            except (QueryFailedError, ResourceNotFoundError) as e:
                logger.warning(
                    "stage_query_failed",
                    namespace=namespace,
                    stage=stage_name,
                    poll=polls,
                    error=str(e),
                )
            else:
                last_stage = stage
                pending = stage.pending_checks(expected_freight.name)
                if not pending:
                    logger.info(
                        "stage_converged",
                        stage=stage_name,
                        freight=expected_freight.name,
                        polls=polls,
                        elapsed_seconds=round(deadline.elapsed(), 1),
                    )
                    return stage
                logger.debug("stage_pending", stage=stage_name, poll=polls, pending=pending)

            deadline.sleep(self.poll_interval, self._sleep)

        raise PromotionTimeoutError(
            stage_name,
            expected_freight.name,
            namespace=namespace,
            elapsed_seconds=deadline.elapsed(),
            timeout_seconds=deadline.timeout_seconds,
            last_stage=last_stage,
            pending=describe_pending(last_stage, expected_freight),
        )


__all__ = ["PromotionWatcher", "describe_pending"]
