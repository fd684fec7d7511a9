"""Main entry point for the kargo-publish CLI.

Commands:
    kargo-publish dev: Publish a dev image to the in-cluster Gitea registry
    kargo-publish local-dev: Publish a dev image and wait for the local stage
    kargo-publish release: Publish a semver release to GHCR
    kargo-publish wait: Refresh and wait for an already pushed tag

Example:
    $ kargo-publish --help
    $ kargo-publish --log-level DEBUG local-dev
    $ kargo-publish --json-logs release 1.2.3 --wait --stage backstage-prod
"""

from __future__ import annotations

import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version

import click

from kargo_publish.cli.publish import (
    dev_command,
    local_dev_command,
    release_command,
    wait_command,
)
from kargo_publish.cli.utils import ExitCode
from kargo_publish.telemetry.logging import configure_logging

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _get_version() -> str:
    """Get the kargo-publish package version, or 'unknown' if not installed."""
    try:
        return get_version("kargo-publish")
    except PackageNotFoundError:
        return "unknown"


@click.group(
    name="kargo-publish",
    help="kargo-publish - Build, push and promote images through Kargo.",
    epilog="Use 'kargo-publish <command> --help' for command-specific help.",
    context_settings={
        "help_option_names": ["-h", "--help"],
    },
)
@click.version_option(
    version=_get_version(),
    prog_name="kargo-publish",
    message="%(prog)s %(version)s",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="INFO",
    show_default=True,
    envvar="LOG_LEVEL",
    help="Minimum level of structured log events written to stderr.",
)
@click.option(
    "--json-logs",
    is_flag=True,
    default=False,
    help="Write log events as JSON lines.",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str, json_logs: bool) -> None:
    """Root command group for the kargo-publish CLI."""
    ctx.ensure_object(dict)
    configure_logging(log_level, json_output=json_logs)


cli.add_command(dev_command)
cli.add_command(local_dev_command)
cli.add_command(release_command)
cli.add_command(wait_command)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the kargo-publish CLI.

    Args:
        argv: Command-line arguments (uses sys.argv if None).
    """
    try:
        cli(args=argv, standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.Abort:
        click.echo("Interrupted", err=True)
        sys.exit(ExitCode.INTERRUPTED)
    except KeyboardInterrupt:
        click.echo("Interrupted", err=True)
        sys.exit(ExitCode.INTERRUPTED)


if __name__ == "__main__":
    main()
