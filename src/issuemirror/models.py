from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

STATE_OPEN = "OPEN"
STATE_CLOSED = "CLOSED"

GHOST_AUTHOR = "ghost"


@dataclass(frozen=True)
class Cursor:
    """Continuation point of one paginated listing (issues, or one issue's comments)."""

    end_cursor: str | None = None
    has_next_page: bool = False


@dataclass(frozen=True)
class Comment:
    author: str
    body: str
    created_at: datetime


@dataclass
class CommentPage:
    comments: list[Comment]
    cursor: Cursor = field(default_factory=Cursor)


@dataclass
class Issue:
    """One remote issue as returned by an issue page.

    ``first_comments`` holds the first comment page when the source embeds it
    in the issue query; ``None`` means the driver must fetch it separately.
    """

    number: int
    title: str
    body: str
    author: str
    created_at: datetime
    state: str
    closed: bool = False
    closed_at: datetime | None = None
    milestone: str | None = None
    first_comments: CommentPage | None = None


@dataclass
class IssuePage:
    issues: list[Issue]
    cursor: Cursor = field(default_factory=Cursor)


@dataclass(frozen=True)
class IssueFilter:
    states: tuple[str, ...]
    since: datetime
    page_size: int


@dataclass
class MirrorRecord:
    """An issue with its complete comment list, ready for rendering."""

    issue: Issue
    comments: list[Comment]


@dataclass
class SyncSession:
    count: int = 0
    written: list[Path] = field(default_factory=list)

    def record(self, path: Path) -> None:
        self.written.append(path)
        self.count += 1


@dataclass
class SyncResult:
    count: int
    written: list[Path]
    quiescent: bool
    started_at: datetime


__all__ = [
    "GHOST_AUTHOR",
    "STATE_CLOSED",
    "STATE_OPEN",
    "Comment",
    "CommentPage",
    "Cursor",
    "Issue",
    "IssueFilter",
    "IssuePage",
    "MirrorRecord",
    "SyncResult",
    "SyncSession",
]
