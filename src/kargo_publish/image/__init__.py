"""External image collaborators: build, credentials and push.

These wrap command-line tools (nix, skopeo, idpbuilder, op, gh) and the
Kubernetes secret API. The orchestration core only needs their outcome.
"""

from __future__ import annotations

from kargo_publish.image.build import NixImageBuilder
from kargo_publish.image.credentials import (
    CredentialResolver,
    CredentialSource,
    RegistryCredentials,
    ghcr_credential_sources,
    gitea_credential_sources,
)
from kargo_publish.image.push import SkopeoPusher
from kargo_publish.image.tools import CommandFailedError, require_command, run_command

__all__ = [
    "CommandFailedError",
    "CredentialResolver",
    "CredentialSource",
    "NixImageBuilder",
    "RegistryCredentials",
    "SkopeoPusher",
    "ghcr_credential_sources",
    "gitea_credential_sources",
    "require_command",
    "run_command",
]
