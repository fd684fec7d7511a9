"""kargo-publish: publish container images and follow their Kargo promotion.

Builds an image with Nix, pushes it with skopeo, asks Kargo to refresh the
warehouses that subscribe to the repository and optionally waits until a
stage has promoted the resulting freight and reports healthy.
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
