"""Unit tests for image tag generation."""

from __future__ import annotations

import subprocess
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from kargo_publish.errors import InvalidVersionError
from kargo_publish.tags import dev_tag, release_tag, short_revision


class TestDevTag:
    """Tests for dev_tag."""

    def test_timestamp_and_revision(self) -> None:
        """Tag encodes UTC time and appends the revision."""
        now = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        assert dev_tag(now, "abc1234") == "dev-20240102-030405-abc1234"

    def test_without_revision(self) -> None:
        """Revision suffix is omitted when unavailable."""
        now = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        assert dev_tag(now, None) == "dev-20240102-030405"
        assert dev_tag(now, "") == "dev-20240102-030405"

    def test_non_utc_input_is_converted(self) -> None:
        """Aware timestamps in other zones are rendered in UTC."""
        plus_two = timezone(timedelta(hours=2))
        now = datetime(2024, 1, 2, 5, 0, 0, tzinfo=plus_two)
        assert dev_tag(now) == "dev-20240102-030000"

    def test_naive_input_treated_as_utc(self) -> None:
        """Naive timestamps are not shifted."""
        assert dev_tag(datetime(2024, 6, 30, 23, 59, 59)) == "dev-20240630-235959"

    def test_default_uses_current_time(self) -> None:
        """Without arguments the tag has the dev-YYYYMMDD-HHMMSS shape."""
        tag = dev_tag()
        assert tag.startswith("dev-")
        date_part, time_part = tag.split("-")[1:3]
        assert len(date_part) == 8 and date_part.isdigit()
        assert len(time_part) == 6 and time_part.isdigit()


class TestReleaseTag:
    """Tests for release_tag."""

    @pytest.mark.parametrize(
        ("version", "expected"),
        [
            ("1.2.3", "v1.2.3"),
            ("v1.2.3", "v1.2.3"),
            ("10.0.42", "v10.0.42"),
        ],
    )
    def test_normalizes_to_single_v(self, version: str, expected: str) -> None:
        assert release_tag(version) == expected

    @pytest.mark.parametrize(
        "version",
        ["1.2", "1.2.3.4", "vv1.2.3", "1.2.3-rc1", "a.b.c", " 1.2.3", "1.2.3\n"],
    )
    def test_rejects_non_semver(self, version: str) -> None:
        with pytest.raises(InvalidVersionError) as exc_info:
            release_tag(version)
        assert exc_info.value.version == version
        assert exc_info.value.exit_code == 2

    @pytest.mark.parametrize("version", [None, ""])
    def test_requires_version(self, version: str | None) -> None:
        with pytest.raises(InvalidVersionError, match="VERSION is required"):
            release_tag(version)


class TestShortRevision:
    """Tests for short_revision."""

    def test_returns_stripped_output(self) -> None:
        completed = MagicMock(stdout="abc1234\n")
        with (
            patch("kargo_publish.tags.shutil.which", return_value="/usr/bin/git"),
            patch("kargo_publish.tags.subprocess.run", return_value=completed) as run,
        ):
            assert short_revision() == "abc1234"
        assert run.call_args.args[0] == ["git", "rev-parse", "--short=7", "HEAD"]

    def test_none_without_git(self) -> None:
        with patch("kargo_publish.tags.shutil.which", return_value=None):
            assert short_revision() is None

    def test_none_outside_checkout(self) -> None:
        error = subprocess.CalledProcessError(128, ["git"], stderr="not a git repository")
        with (
            patch("kargo_publish.tags.shutil.which", return_value="/usr/bin/git"),
            patch("kargo_publish.tags.subprocess.run", side_effect=error),
        ):
            assert short_revision() is None
