"""Pytest configuration for issuemirror tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install (`pip install -e .`), and provides an
in-memory issue source so no test talks to GitHub.
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from issuemirror.github_graphql import GitHubAPIError  # noqa: E402
from issuemirror.logging import configure_logging  # noqa: E402
from issuemirror.models import (  # noqa: E402
    Comment,
    CommentPage,
    Cursor,
    Issue,
    IssueFilter,
    IssuePage,
)

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeSource:
    """Serves pre-baked issue pages and per-issue comment pages.

    Records every query so tests can count round trips. Assign to
    ``issue_pages`` between runs to simulate remote changes.
    """

    def __init__(
        self,
        issue_pages: list[list[Issue]] | None = None,
        comment_pages: dict[int, list[list[Comment]]] | None = None,
        *,
        fail_issue_page: int | None = None,
        fail_comments_for: int | None = None,
    ) -> None:
        self.issue_pages = issue_pages or []
        self.comment_pages = comment_pages or {}
        self.fail_issue_page = fail_issue_page
        self.fail_comments_for = fail_comments_for
        self.issue_calls: list[str | None] = []
        self.comment_calls: dict[int, list[str | None]] = {}
        self.filters: list[IssueFilter] = []

    def fetch_issue_page(self, issue_filter: IssueFilter, cursor: str | None) -> IssuePage:
        self.issue_calls.append(cursor)
        self.filters.append(issue_filter)
        idx = 0 if cursor is None else int(cursor.rsplit("-", 1)[1])
        if self.fail_issue_page is not None and idx == self.fail_issue_page:
            raise GitHubAPIError("GitHub GraphQL POST failed with 502", status=502)
        issues = self.issue_pages[idx] if idx < len(self.issue_pages) else []
        has_next = idx + 1 < len(self.issue_pages)
        return IssuePage(
            issues=list(issues),
            cursor=Cursor(f"issues-{idx + 1}" if has_next else None, has_next),
        )

    def fetch_comment_page(self, number: int, cursor: str | None, page_size: int) -> CommentPage:
        self.comment_calls.setdefault(number, []).append(cursor)
        if self.fail_comments_for == number:
            raise GitHubAPIError("connection reset by peer")
        pages = self.comment_pages.get(number, [])
        idx = 0 if cursor is None else int(cursor.rsplit("-", 1)[1])
        comments = pages[idx] if idx < len(pages) else []
        has_next = idx + 1 < len(pages)
        return CommentPage(
            comments=list(comments),
            cursor=Cursor(f"c{number}-{idx + 1}" if has_next else None, has_next),
        )


def build_issue(
    number: int,
    *,
    title: str | None = None,
    body: str = "Body",
    state: str = "OPEN",
    milestone: str | None = None,
    author: str = "octocat",
    created_at: datetime = T0,
    closed_at: datetime | None = None,
    first_comments: CommentPage | None = None,
) -> Issue:
    closed = state == "CLOSED"
    if closed and closed_at is None:
        closed_at = created_at + timedelta(days=1)
    return Issue(
        number=number,
        title=title or f"Issue {number}",
        body=body,
        author=author,
        created_at=created_at,
        state=state,
        closed=closed,
        closed_at=closed_at,
        milestone=milestone,
        first_comments=first_comments,
    )


def build_comment(body: str, *, author: str = "hubot", minutes: int = 5) -> Comment:
    return Comment(author=author, body=body, created_at=T0 + timedelta(minutes=minutes))


@pytest.fixture(autouse=True)
def _fresh_logger() -> None:
    # handlers bind sys.stdout at creation; rebind per test so capsys sees output
    configure_logging(json_logging=False, level="INFO")


@pytest.fixture
def make_issue() -> Callable[..., Issue]:
    return build_issue


@pytest.fixture
def make_comment() -> Callable[..., Comment]:
    return build_comment


@pytest.fixture
def fake_source() -> type[FakeSource]:
    return FakeSource
