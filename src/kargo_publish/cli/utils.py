"""CLI utility functions and error handling.

This module provides shared utilities for the kargo-publish CLI, including:
- Exit code constants
- Output helpers for consistent stderr/stdout usage
- Diagnostic dump of a stage snapshot after a promotion timeout

Example:
    from kargo_publish.cli.utils import error_exit, ExitCode

    if not settings.kargo_stage:
        error_exit("KARGO_STAGE is required", exit_code=ExitCode.CONFIGURATION_ERROR)
"""

from __future__ import annotations

import sys
from enum import IntEnum
from typing import TYPE_CHECKING, Any

import click
import yaml

if TYPE_CHECKING:
    from typing import NoReturn

STAGE_DUMP_MAX_LINES = 220


class ExitCode(IntEnum):
    """Exit codes for CLI commands.

    Values match the ``exit_code`` attribute of the corresponding
    exceptions in :mod:`kargo_publish.errors`.
    """

    SUCCESS = 0
    """Command completed successfully."""

    GENERAL_ERROR = 1
    """General error (catch-all for failures)."""

    CONFIGURATION_ERROR = 2
    """Invalid settings, version or usage."""

    MISSING_TOOL = 3
    """A required command-line tool is not installed."""

    CREDENTIALS_ERROR = 4
    """No registry credentials could be resolved."""

    IMAGE_ERROR = 5
    """Image build or push failed."""

    QUERY_FAILED = 8
    """Kubernetes API unreachable or rejected the request."""

    NOT_FOUND = 9
    """Stage or other named resource does not exist."""

    FREIGHT_TIMEOUT = 10
    """No freight appeared for the pushed image in time."""

    PROMOTION_TIMEOUT = 11
    """The stage did not converge on the freight in time."""

    INTERRUPTED = 130
    """Interrupted by the user (SIGINT)."""


def _format(prefix: str, message: str, context: dict[str, Any]) -> str:
    parts = [f"{k}={v}" for k, v in context.items() if v is not None]
    if parts:
        return f"{prefix}{message} ({', '.join(parts)})"
    return f"{prefix}{message}"


def error(message: str, **context: str | int | bool | None) -> None:
    """Print an error message to stderr.

    Example:
        error("Stage not found", stage="backstage-local-dev")
        # Output: Error: Stage not found (stage=backstage-local-dev)
    """
    click.echo(_format("Error: ", message, context), err=True)


def error_exit(
    message: str,
    exit_code: ExitCode | int = ExitCode.GENERAL_ERROR,
    **context: str | int | bool | None,
) -> NoReturn:
    """Print an error message to stderr and exit with a code.

    Raises:
        SystemExit: Always exits with the specified code.
    """
    error(message, **context)
    sys.exit(int(exit_code))


def warn(message: str, **context: str | int | bool | None) -> None:
    """Print a warning message to stderr."""
    click.echo(_format("Warning: ", message, context), err=True)


def success(message: str) -> None:
    """Print a success message to stdout."""
    click.echo(message)


def info(message: str) -> None:
    """Print an informational message to stderr.

    Used for progress updates that should not be captured by stdout
    redirection.
    """
    click.echo(message, err=True)


def dump_stage(raw: dict[str, Any], max_lines: int = STAGE_DUMP_MAX_LINES) -> None:
    """Write a stage object to stderr as YAML, truncated to ``max_lines``.

    Args:
        raw: Stage object as returned by the Kubernetes API.
        max_lines: Maximum number of YAML lines to print.
    """
    lines = yaml.safe_dump(raw, sort_keys=False, default_flow_style=False).splitlines()
    click.echo("Last observed stage:", err=True)
    for line in lines[:max_lines]:
        click.echo(line, err=True)
    if len(lines) > max_lines:
        click.echo(f"... ({len(lines) - max_lines} more lines)", err=True)


__all__ = [
    "STAGE_DUMP_MAX_LINES",
    "ExitCode",
    "dump_stage",
    "error",
    "error_exit",
    "info",
    "success",
    "warn",
]
