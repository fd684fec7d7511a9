"""Subprocess helpers for the external image tools (nix, skopeo, op, gh, ...)."""

from __future__ import annotations

import shutil
import subprocess
from collections.abc import Sequence

import structlog

from kargo_publish.errors import MissingToolError
from kargo_publish.telemetry.sanitization import sanitize_error_message

logger = structlog.get_logger(__name__)


class CommandFailedError(Exception):
    """Raised by run_command when a tool exits non-zero.

    The message is sanitized: credentials passed on the command line never
    appear in it.

    Attributes:
        returncode: Process exit status.
        details: Sanitized stderr (or stdout) of the failed process.
    """

    def __init__(self, args: Sequence[str], returncode: int, details: str) -> None:
        self.returncode = returncode
        self.details = details
        command = sanitize_error_message(" ".join(args))
        super().__init__(f"Command failed ({returncode}): {command}\n{details}".rstrip())


def has_command(name: str) -> bool:
    """True when ``name`` resolves on PATH."""
    return shutil.which(name) is not None


def require_command(name: str) -> None:
    """Raise MissingToolError unless ``name`` resolves on PATH."""
    if not has_command(name):
        raise MissingToolError(name)


def run_command(args: Sequence[str], *, input_text: str | None = None) -> str:
    """Run a command and return its stdout.

    Args:
        args: Command and arguments (no shell).
        input_text: Optional text written to stdin.

    Returns:
        Captured stdout.

    Raises:
        CommandFailedError: If the command exits non-zero.
        MissingToolError: If the executable does not exist.
    """
    logger.debug("command_started", command=args[0])
    try:
        result = subprocess.run(
            list(args),
            check=True,
            capture_output=True,
            text=True,
            input=input_text,
        )
    except FileNotFoundError as e:
        raise MissingToolError(args[0]) from e
    except subprocess.CalledProcessError as e:
        details = (e.stderr or "").strip() or (e.stdout or "").strip()
        raise CommandFailedError(
            args, e.returncode, sanitize_error_message(details)
        ) from None
    return result.stdout


__all__ = ["CommandFailedError", "has_command", "require_command", "run_command"]
