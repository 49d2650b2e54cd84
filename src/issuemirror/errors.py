"""Error taxonomy & redaction.

Every failure the mirror engine can surface derives from :class:`MirrorError`
so callers (the CLI, library users) can catch one type and still branch on the
concrete category:

- :class:`ConfigError`          bad page size, malformed ``owner/name``, unreadable config
- :class:`SourceError`          issue/comment page query failed (stage annotated)
- :class:`MirrorFilesystemError` mkdir / delete / write / link failure under the output root

``classify_error`` + ``redact`` prepare any exception for safe logging.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

# Simple token patterns; can be expanded (e.g., GitHub token, private key markers)
_SENSITIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"ghp_[A-Za-z0-9]{20,40}"),  # GitHub classic tokens
    re.compile(r"gh[ous]_[A-Za-z0-9]{20,40}"),  # OAuth / app tokens
    re.compile(r"github_pat_\w{20,}"),  # GitHub fine-grained tokens
    re.compile(r"(?i)bearer\s+[A-Za-z0-9_\-.]{8,}"),
]

_REDACTION_PLACEHOLDER = "<redacted>"

STAGE_ISSUE_PAGE = "issue_page"
STAGE_COMMENT_PAGE = "comment_page"


class MirrorError(RuntimeError):
    """Base class for all engine failures."""


class ConfigError(MirrorError):
    """Configuration rejected before any network or filesystem work."""


class SourceError(MirrorError):
    """A query against the remote issue source failed; the run is aborted."""

    def __init__(self, message: str, *, stage: str, issue_number: int | None = None):
        super().__init__(message)
        self.stage = stage
        self.issue_number = issue_number


class MirrorFilesystemError(MirrorError):
    """A filesystem mutation under the output root failed."""

    def __init__(self, message: str, *, operation: str, path: str):
        super().__init__(message)
        self.operation = operation
        self.path = path


@dataclass
class ErrorInfo:
    category: str
    message: str
    original_type: str
    transient: bool = False
    details: dict[str, Any] | None = None


def redact(text: str) -> str:
    """Redact sensitive tokens in arbitrary text."""
    if not text:
        return text
    redacted = text
    for pat in _SENSITIVE_PATTERNS:
        redacted = pat.sub(_REDACTION_PLACEHOLDER, redacted)
    return redacted


def classify_error(exc: BaseException) -> ErrorInfo:
    """Best-effort classification of an exception.

    Typed mirror errors map directly onto a category; anything else falls
    back to keyword sniffing of the message:
    - rate limit / abuse -> 'github.rate_limit' / 'github.abuse', transient
    - network-y keywords -> 'network', transient
    - fallback -> 'generic'
    """
    msg = str(exc) if exc else ""
    low = msg.lower()
    name = exc.__class__.__name__

    if isinstance(exc, ConfigError):
        return ErrorInfo("config", redact(msg), name)
    if isinstance(exc, MirrorFilesystemError):
        return ErrorInfo(
            "filesystem",
            redact(msg),
            name,
            details={"operation": exc.operation, "path": exc.path},
        )
    if "rate limit" in low or "secondary rate" in low:
        return ErrorInfo("github.rate_limit", redact(msg), name, transient=True)
    if "abuse" in low:
        return ErrorInfo("github.abuse", redact(msg), name, transient=True)
    if any(k in low for k in ("timeout", "timed out", "connection reset", "temporarily unavailable")):
        return ErrorInfo("network", redact(msg), name, transient=True)
    if isinstance(exc, SourceError):
        details: dict[str, Any] = {"stage": exc.stage}
        if exc.issue_number is not None:
            details["issue_number"] = exc.issue_number
        return ErrorInfo("source", redact(msg), name, details=details)
    return ErrorInfo("generic", redact(msg), name)


__all__ = [
    "STAGE_COMMENT_PAGE",
    "STAGE_ISSUE_PAGE",
    "ConfigError",
    "ErrorInfo",
    "MirrorError",
    "MirrorFilesystemError",
    "SourceError",
    "classify_error",
    "redact",
]
