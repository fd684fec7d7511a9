"""Image tag generation.

Two tag shapes are produced:

- Inner-loop tags ``dev-YYYYMMDD-HHMMSS[-<sha7>]`` derived from the current
  UTC time and, when available, the short git revision.
- Release tags ``v<major>.<minor>.<patch>`` normalized from a user-supplied
  version with an optional leading ``v``.

A tag is generated once per run and reused for the push, the freight match
and every log line.

Example:
    >>> from datetime import datetime, timezone
    >>> dev_tag(datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc), "abc1234")
    'dev-20240101-120000-abc1234'
    >>> release_tag("1.2.3")
    'v1.2.3'
"""

from __future__ import annotations

import re
import shutil
import subprocess
from datetime import datetime, timezone
from pathlib import Path

import structlog

from kargo_publish.errors import InvalidVersionError

logger = structlog.get_logger(__name__)

SEMVER_PATTERN = re.compile(r"^[0-9]+\.[0-9]+\.[0-9]+$")
"""Accepted release version shape, after stripping one leading 'v'."""

DEV_TAG_PREFIX = "dev"


def dev_tag(now: datetime | None = None, revision: str | None = None) -> str:
    """Build an inner-loop tag from a UTC timestamp and optional revision.

    Args:
        now: Timestamp to encode. Naive datetimes are treated as UTC.
            Defaults to the current time.
        revision: Short revision identifier appended as a suffix when non-empty.

    Returns:
        Tag such as ``dev-20240101-120000-abc1234``.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    else:
        now = now.astimezone(timezone.utc)

    tag = f"{DEV_TAG_PREFIX}-{now:%Y%m%d-%H%M%S}"
    if revision:
        tag = f"{tag}-{revision}"
    return tag


def release_tag(version: str | None) -> str:
    """Normalize a release version to ``v<major>.<minor>.<patch>``.

    Args:
        version: Version such as ``1.2.3`` or ``v1.2.3``. Required.

    Returns:
        Normalized tag, always with a single leading ``v``.

    Raises:
        InvalidVersionError: If version is empty or not three numeric parts.
    """
    if not version:
        raise InvalidVersionError(version)

    number = version[1:] if version.startswith("v") else version
    if not SEMVER_PATTERN.fullmatch(number):
        raise InvalidVersionError(version)
    return f"v{number}"


def short_revision(cwd: Path | str | None = None, length: int = 7) -> str | None:
    """Return the abbreviated HEAD revision, or None outside a git checkout."""
    if shutil.which("git") is None:
        return None
    try:
        result = subprocess.run(
            ["git", "rev-parse", f"--short={length}", "HEAD"],
            check=True,
            capture_output=True,
            text=True,
            cwd=cwd,
        )
    except (subprocess.CalledProcessError, OSError) as e:
        logger.debug("git_revision_unavailable", error=str(e))
        return None
    return result.stdout.strip() or None


__all__ = ["DEV_TAG_PREFIX", "SEMVER_PATTERN", "dev_tag", "release_tag", "short_revision"]
