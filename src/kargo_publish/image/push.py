"""Image push with skopeo.

The built docker-archive is copied to ``<repo>:<tag>`` first; ``latest`` is
then copied registry-to-registry from that tag so both point at the same
manifest.
"""

from __future__ import annotations

from pathlib import Path

import structlog

from kargo_publish.errors import ImagePushError
from kargo_publish.image.credentials import RegistryCredentials
from kargo_publish.image.tools import CommandFailedError, require_command, run_command
from kargo_publish.schemas.resources import ArtifactRef
from kargo_publish.telemetry.tracing import create_span

logger = structlog.get_logger(__name__)


class SkopeoPusher:
    """Copy images into a registry with ``skopeo copy``.

    Args:
        tls_verify: Verify registry TLS certificates.
        archive_image: Image name and tag stored inside the docker-archive.
        retry_times: Passed to ``skopeo copy --retry-times``.
    """

    def __init__(
        self,
        tls_verify: bool = True,
        archive_image: str = "backstage-app:latest",
        retry_times: int = 3,
    ) -> None:
        self.tls_verify = tls_verify
        self.archive_image = archive_image
        self.retry_times = retry_times

    def _tls_flag(self, prefix: str) -> str:
        return f"--{prefix}-tls-verify={'true' if self.tls_verify else 'false'}"

    def _copy(self, args: list[str], destination: ArtifactRef) -> None:
        require_command("skopeo")
        command = ["skopeo", "copy", "--retry-times", str(self.retry_times), *args]
        with create_span("kargo_publish.push", {"image.reference": str(destination)}):
            try:
                run_command(command)
            except CommandFailedError as e:
                raise ImagePushError(str(destination), e.details or str(e)) from e
        logger.info("image_pushed", image=str(destination))

    def push(
        self,
        archive: Path,
        destination: ArtifactRef,
        credentials: RegistryCredentials,
    ) -> None:
        """Copy the local docker-archive to ``destination``.

        Raises:
            ImagePushError: If skopeo fails.
        """
        self._copy(
            [
                "--dest-creds",
                credentials.as_skopeo_arg(),
                self._tls_flag("dest"),
                f"docker-archive:{archive}:{self.archive_image}",
                f"docker://{destination}",
            ],
            destination,
        )

    def retag(
        self,
        source: ArtifactRef,
        destination: ArtifactRef,
        credentials: RegistryCredentials,
    ) -> None:
        """Copy ``source`` to ``destination`` within the registry.

        Raises:
            ImagePushError: If skopeo fails.
        """
        creds = credentials.as_skopeo_arg()
        self._copy(
            [
                "--src-creds",
                creds,
                self._tls_flag("src"),
                "--dest-creds",
                creds,
                self._tls_flag("dest"),
                f"docker://{source}",
                f"docker://{destination}",
            ],
            destination,
        )


__all__ = ["SkopeoPusher"]
