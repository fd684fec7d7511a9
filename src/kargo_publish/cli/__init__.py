"""Command-line interface for kargo-publish.

Entry point: ``kargo-publish`` (see :func:`kargo_publish.cli.main.main`).
"""

from __future__ import annotations

from kargo_publish.cli.main import cli, main

__all__ = ["cli", "main"]
