"""Reproducible image build via Nix.

The flake output is a ``dockerTools`` image, i.e. a docker-archive tarball in
the Nix store. The path is handed to skopeo as ``docker-archive:<path>``.
"""

from __future__ import annotations

from pathlib import Path

import structlog

from kargo_publish.errors import ImageBuildError
from kargo_publish.image.tools import CommandFailedError, require_command, run_command
from kargo_publish.telemetry.tracing import create_span

logger = structlog.get_logger(__name__)


class NixImageBuilder:
    """Build the image archive with ``nix build``.

    Args:
        flake_ref: Flake output that produces a docker-archive tarball.
    """

    def __init__(self, flake_ref: str = "./nix#backstageImage") -> None:
        self.flake_ref = flake_ref

    def build(self) -> Path:
        """Build and return the path of the image tarball.

        Raises:
            MissingToolError: If nix is not installed.
            ImageBuildError: If the build fails or yields no tarball.
        """
        require_command("nix")
        with create_span("kargo_publish.build", {"nix.flake_ref": self.flake_ref}):
            logger.info("image_build_started", flake_ref=self.flake_ref)
            try:
                output = run_command(
                    ["nix", "build", self.flake_ref, "--no-link", "--print-out-paths"]
                )
            except CommandFailedError as e:
                raise ImageBuildError(f"nix build failed: {e.details}") from e

            out_paths = [line.strip() for line in output.splitlines() if line.strip()]
            if not out_paths:
                raise ImageBuildError("nix build did not return an output path")

            archive = Path(out_paths[0])
            if not archive.is_file():
                raise ImageBuildError(f"Expected image tarball at: {archive}")

            logger.info("image_build_finished", archive=str(archive))
            return archive


__all__ = ["NixImageBuilder"]
