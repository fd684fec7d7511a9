"""Redact credentials from messages before they reach logs, spans or stderr.

Registry passwords travel on subprocess command lines (``--dest-creds
user:token``) and Kubernetes API errors can echo request bodies, so every
error string that leaves the process goes through this module.
"""

from __future__ import annotations

import re

_SENSITIVE_KEY_PATTERN = re.compile(
    r"(password|secret|token|api_key|authorization|credential)"
    r"\s*[=:]\s*\S+",
    re.IGNORECASE,
)
_URL_CREDENTIAL_PATTERN = re.compile(r"://[^@/\s]+:[^@/\s]+@")
_CREDS_FLAG_PATTERN = re.compile(r"(--(?:src-|dest-)?creds)(=|\s+)\S+")


def sanitize_error_message(msg: str, max_length: int = 500) -> str:
    """Sanitize an error message by redacting credentials and truncating.

    Args:
        msg: Raw error message to sanitize.
        max_length: Maximum length of returned message.

    Returns:
        Sanitized and truncated error message.

    Example:
        >>> sanitize_error_message("skopeo copy --dest-creds admin:s3cr3t src dst")
        'skopeo copy --dest-creds <REDACTED> src dst'
    """
    sanitized = _CREDS_FLAG_PATTERN.sub(r"\1\2<REDACTED>", msg)
    sanitized = _URL_CREDENTIAL_PATTERN.sub("://<REDACTED>@", sanitized)
    sanitized = _SENSITIVE_KEY_PATTERN.sub(
        lambda m: m.group(0).split("=", 1)[0].split(":", 1)[0] + "=<REDACTED>"
        if "=" in m.group(0)
        else m.group(0).split(":", 1)[0] + ": <REDACTED>",
        sanitized,
    )
    return sanitized[:max_length]


def sanitize_k8s_api_error(exc: Exception) -> str:
    """Summarize a Kubernetes ApiException without its body or headers.

    Args:
        exc: Exception from the kubernetes client (ApiException expected).

    Returns:
        ``"<reason> (HTTP <status>)"`` when available, else a sanitized message.
    """
    status = getattr(exc, "status", None)
    reason = getattr(exc, "reason", None)

    if status is not None and reason is not None:
        return f"{reason} (HTTP {status})"
    if reason is not None:
        return str(reason)
    return sanitize_error_message(str(exc)) or type(exc).__name__


__all__ = ["sanitize_error_message", "sanitize_k8s_api_error"]
