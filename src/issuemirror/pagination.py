"""Nested cursor pagination over an :class:`IssueSource`.

``PaginationDriver.records()`` is a pull-based generator: it fetches one issue
page at a time and, for each issue on it, drains every comment page before
yielding the complete :class:`MirrorRecord`. Ordering follows the source.

An empty first issue page raises :class:`NothingToSync`. That is the quiescent
outcome (nothing changed since the last sync), not an error; the engine turns
it into ``SyncResult.quiescent``.
"""

from __future__ import annotations

from collections.abc import Iterator

from .errors import STAGE_COMMENT_PAGE, STAGE_ISSUE_PAGE, ConfigError, SourceError
from .github_graphql import GitHubAPIError, IssueSource
from .logging import get_logger
from .models import Comment, CommentPage, Issue, IssueFilter, IssuePage, MirrorRecord


class NothingToSync(Exception):
    """First issue page came back empty."""


def validate_page_size(page_size: int) -> int:
    if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size <= 0:
        raise ConfigError(f"page size must be a positive integer, got {page_size!r}")
    return page_size


class PaginationDriver:
    def __init__(self, source: IssueSource, issue_filter: IssueFilter) -> None:
        validate_page_size(issue_filter.page_size)
        self.source = source
        self.filter = issue_filter
        self.issue_pages_fetched = 0
        self.comment_pages_fetched: dict[int, int] = {}
        self._logger = get_logger()

    def _issue_page(self, cursor: str | None) -> IssuePage:
        try:
            page = self.source.fetch_issue_page(self.filter, cursor)
        except GitHubAPIError as exc:
            raise SourceError(f"unable to fetch issue page: {exc}", stage=STAGE_ISSUE_PAGE) from exc
        self.issue_pages_fetched += 1
        return page

    def _comment_page(self, number: int, cursor: str | None) -> CommentPage:
        try:
            page = self.source.fetch_comment_page(number, cursor, self.filter.page_size)
        except GitHubAPIError as exc:
            raise SourceError(
                f"unable to extract comments for issue #{number}: {exc}",
                stage=STAGE_COMMENT_PAGE,
                issue_number=number,
            ) from exc
        self.comment_pages_fetched[number] = self.comment_pages_fetched.get(number, 0) + 1
        return page

    def comments(self, issue: Issue) -> list[Comment]:
        """Every comment of ``issue``, starting from its embedded page if any."""
        page = issue.first_comments
        if page is None:
            page = self._comment_page(issue.number, None)
        collected = list(page.comments)
        while page.cursor.has_next_page:
            self._logger.debug("getting next page of comments", issue_number=issue.number)
            page = self._comment_page(issue.number, page.cursor.end_cursor)
            collected.extend(page.comments)
        return collected

    def pages(self) -> Iterator[IssuePage]:
        cursor: str | None = None
        first = True
        while True:
            page = self._issue_page(cursor)
            if first and not page.issues:
                raise NothingToSync()
            first = False
            yield page
            if not page.cursor.has_next_page:
                return
            cursor = page.cursor.end_cursor

    def records(self) -> Iterator[MirrorRecord]:
        for page in self.pages():
            for issue in page.issues:
                yield MirrorRecord(issue=issue, comments=self.comments(issue))


__all__ = ["NothingToSync", "PaginationDriver", "validate_page_size"]
