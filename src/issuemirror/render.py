"""Markdown rendering of one issue plus its comments.

Pure functions, no I/O. Cross-references (``#123``) in the issue body and in
every comment body become relative links to the sibling document
(``[#123](123.md)``), so the mirrored tree is navigable offline.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import datetime, tzinfo

from .models import Comment, Issue
from .snapshot import DEFAULT_EXTENSION

CROSS_REFERENCE = re.compile(r"#(\d+)")
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S %z %Z"


def rewrite_cross_references(text: str, extension: str = DEFAULT_EXTENSION) -> str:
    return CROSS_REFERENCE.sub(lambda m: f"[#{m.group(1)}]({m.group(1)}.{extension})", text)


def format_timestamp(value: datetime, tz: tzinfo | None) -> str:
    """Render ``value`` in ``tz``; ``None`` selects the local system zone."""
    if value.tzinfo is None:
        raise ValueError(f"naive timestamp cannot be localized: {value!r}")
    return value.astimezone(tz).strftime(TIMESTAMP_FORMAT)


def render_header(issue: Issue, tz: tzinfo | None, extension: str = DEFAULT_EXTENSION) -> str:
    return (
        f"{issue.title}\n---\n\n"
        f"Created by {issue.author} on {format_timestamp(issue.created_at, tz)}:\n\n"
        f"{rewrite_cross_references(issue.body, extension)}\n\n---\n"
    )


def render_comment(comment: Comment, tz: tzinfo | None, extension: str = DEFAULT_EXTENSION) -> str:
    return (
        f"\n{comment.author} commented on {format_timestamp(comment.created_at, tz)}:\n\n"
        f"{rewrite_cross_references(comment.body, extension)}\n\n---\n"
    )


def render_document(
    issue: Issue,
    comments: Sequence[Comment],
    closed_at: datetime | None,
    tz: tzinfo | None,
    extension: str = DEFAULT_EXTENSION,
) -> str:
    parts = [render_header(issue, tz, extension)]
    parts.extend(render_comment(c, tz, extension) for c in comments)
    if closed_at is not None:
        parts.append(f"Closed on {format_timestamp(closed_at, tz)}\n")
    return "".join(parts)


__all__ = [
    "CROSS_REFERENCE",
    "format_timestamp",
    "render_comment",
    "render_document",
    "render_header",
    "rewrite_cross_references",
]
