"""Exception hierarchy for kargo-publish.

All custom exceptions inherit from KargoPublishError so callers can catch
every publish/promotion failure with a single except clause.

Exception Hierarchy:
    KargoPublishError (base)
    ├── ConfigurationError          # Invalid settings, checked before any I/O
    │   ├── InvalidVersionError     # Release version is not major.minor.patch
    │   └── MissingStageParameterError  # Wait requested without a stage
    ├── MissingToolError            # Required CLI not on PATH
    ├── CredentialsError            # No credential source produced a secret
    ├── ImageBuildError             # nix build failed or produced no archive
    ├── ImagePushError              # skopeo copy failed
    ├── QueryFailedError            # Resource store transport/auth failure
    ├── ResourceNotFoundError       # get/annotate targeted a missing object
    │   └── StageNotFoundError      # Target stage does not exist
    └── WaitTimeoutError            # Shared deadline expired
        ├── FreightTimeoutError     # Freight for the pushed tag never appeared
        └── PromotionTimeoutError   # Stage never converged on the freight

Exit Codes:
    0   - Success
    1   - General error (KargoPublishError)
    2   - Configuration error
    3   - Missing required tool
    4   - Credentials could not be resolved
    5   - Image build or push failed
    8   - Resource store query failed
    9   - Resource not found
    10  - Timed out waiting for freight
    11  - Timed out waiting for promotion
    130 - Interrupted

Example:
    >>> from kargo_publish.errors import InvalidVersionError
    >>> raise InvalidVersionError("1.2")
    Traceback (most recent call last):
        ...
    InvalidVersionError: VERSION must be semver format (e.g., 1.2.3 or v1.2.3), got: 1.2
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kargo_publish.schemas.resources import ArtifactRef, Stage


class KargoPublishError(Exception):
    """Base exception for all kargo-publish errors.

    Attributes:
        exit_code: CLI exit code for this error type (default: 1).
    """

    exit_code: int = 1


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(KargoPublishError):
    """Raised when settings are invalid.

    Configuration errors are always raised before any network or subprocess
    interaction takes place.
    """

    exit_code: int = 2


class InvalidVersionError(ConfigurationError):
    """Raised when a release version is missing or not ``major.minor.patch``.

    Attributes:
        version: The rejected version string.
    """

    def __init__(self, version: str | None) -> None:
        self.version = version
        if not version:
            msg = "VERSION is required. Set VERSION=1.2.3 or VERSION=v1.2.3"
        else:
            msg = f"VERSION must be semver format (e.g., 1.2.3 or v1.2.3), got: {version}"
        super().__init__(msg)


class MissingStageParameterError(ConfigurationError):
    """Raised when promotion wait is enabled without a stage name."""

    def __init__(self) -> None:
        super().__init__(
            "KARGO_STAGE is required when KARGO_WAIT=1 (e.g. backstage-local-dev)"
        )


# =============================================================================
# External Tool Errors
# =============================================================================


class MissingToolError(KargoPublishError):
    """Raised when a required command-line tool is not installed.

    Attributes:
        tool: Name of the missing executable.
    """

    exit_code: int = 3

    def __init__(self, tool: str) -> None:
        self.tool = tool
        super().__init__(f"Missing required command: {tool}")


class CredentialsError(KargoPublishError):
    """Raised when no credential source yields a registry secret.

    Attributes:
        tried: Names of the sources that were attempted, in order.
    """

    exit_code: int = 4

    def __init__(self, message: str, tried: list[str] | None = None) -> None:
        self.tried = tried or []
        if self.tried:
            message = f"{message} (tried: {', '.join(self.tried)})"
        super().__init__(message)


class ImageBuildError(KargoPublishError):
    """Raised when the reproducible image build fails."""

    exit_code: int = 5


class ImagePushError(KargoPublishError):
    """Raised when copying an image to the registry fails.

    Attributes:
        destination: The image reference that could not be written.
    """

    exit_code: int = 5

    def __init__(self, destination: str, reason: str) -> None:
        self.destination = destination
        self.reason = reason
        super().__init__(f"Failed to push {destination}: {reason}")


# =============================================================================
# Resource Store Errors
# =============================================================================


class QueryFailedError(KargoPublishError):
    """Raised when the resource store cannot be queried.

    Distinct from an empty result: callers can always tell "no matches"
    apart from "query failed".

    Attributes:
        kind: Resource kind being queried.
        namespace: Namespace being queried.
        reason: Sanitized failure description.
    """

    exit_code: int = 8

    def __init__(self, kind: str, namespace: str, reason: str) -> None:
        self.kind = kind
        self.namespace = namespace
        self.reason = reason
        super().__init__(f"Failed to query {kind} in {namespace}: {reason}")


class ResourceNotFoundError(KargoPublishError):
    """Raised when a named resource does not exist.

    Attributes:
        kind: Resource kind.
        namespace: Namespace that was searched.
        name: Name of the missing resource.
    """

    exit_code: int = 9

    def __init__(self, kind: str, namespace: str, name: str) -> None:
        self.kind = kind
        self.namespace = namespace
        self.name = name
        super().__init__(self._message())

    def _message(self) -> str:
        return f"{self.kind.capitalize()} not found: {self.namespace}/{self.name}"


class StageNotFoundError(ResourceNotFoundError):
    """Raised when the target stage does not exist."""

    def __init__(self, namespace: str, name: str) -> None:
        super().__init__("stage", namespace, name)

    def _message(self) -> str:
        return (
            f"Kargo Stage not found: {self.namespace}/{self.name} "
            "(apply the Kargo pipeline for this image first)"
        )


# =============================================================================
# Timeout Errors
# =============================================================================


class WaitTimeoutError(KargoPublishError):
    """Base class for deadline expiry while waiting on the controller.

    Attributes:
        namespace: Namespace being watched.
        elapsed_seconds: Time spent before giving up.
        timeout_seconds: Total budget of the shared deadline.
    """

    exit_code: int = 10

    def __init__(
        self,
        message: str,
        *,
        namespace: str,
        elapsed_seconds: float,
        timeout_seconds: float,
    ) -> None:
        self.namespace = namespace
        self.elapsed_seconds = elapsed_seconds
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"{message} (elapsed {elapsed_seconds:.1f}s of {timeout_seconds:.0f}s)"
        )


class FreightTimeoutError(WaitTimeoutError):
    """Raised when freight for the pushed artifact never materializes.

    Attributes:
        artifact: The exact (repository, tag) that was searched for.
        last_error: Last query failure observed while polling, if any.
    """

    def __init__(
        self,
        artifact: ArtifactRef,
        *,
        namespace: str,
        elapsed_seconds: float,
        timeout_seconds: float,
        last_error: str | None = None,
    ) -> None:
        self.artifact = artifact
        self.last_error = last_error
        message = (
            f"Timed out waiting for Freight for tag {artifact} in {namespace} "
            "(is the Kargo warehouse configured?)"
        )
        if last_error:
            message = f"{message}; last query error: {last_error}"
        super().__init__(
            message,
            namespace=namespace,
            elapsed_seconds=elapsed_seconds,
            timeout_seconds=timeout_seconds,
        )


class PromotionTimeoutError(WaitTimeoutError):
    """Raised when the stage does not converge on the freight in time.

    Attributes:
        stage: Stage name.
        freight: Freight name the stage was expected to adopt.
        last_stage: Last fetched stage snapshot, for diagnostics.
        pending: Convergence checks still unsatisfied at the last read.
    """

    exit_code: int = 11

    def __init__(
        self,
        stage: str,
        freight: str,
        *,
        namespace: str,
        elapsed_seconds: float,
        timeout_seconds: float,
        last_stage: Stage | None = None,
        pending: list[str] | None = None,
    ) -> None:
        self.stage = stage
        self.freight = freight
        self.last_stage = last_stage
        self.pending = pending or []
        message = (
            f"Timed out waiting for {namespace}/{stage} to promote "
            f"freight {freight} and become healthy"
        )
        if self.pending:
            message = f"{message}; pending: {', '.join(self.pending)}"
        super().__init__(
            message,
            namespace=namespace,
            elapsed_seconds=elapsed_seconds,
            timeout_seconds=timeout_seconds,
        )


__all__ = [
    "ConfigurationError",
    "CredentialsError",
    "FreightTimeoutError",
    "ImageBuildError",
    "ImagePushError",
    "InvalidVersionError",
    "KargoPublishError",
    "MissingStageParameterError",
    "MissingToolError",
    "PromotionTimeoutError",
    "QueryFailedError",
    "ResourceNotFoundError",
    "StageNotFoundError",
    "WaitTimeoutError",
]
