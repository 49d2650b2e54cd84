"""GitHub GraphQL issue source.

``IssueSource`` is the boundary the pagination driver consumes; anything with
the two fetch methods works (tests use in-memory fakes). ``GitHubGraphQLClient``
is the production implementation: one blocking POST per page against the
GraphQL endpoint, bearer-token auth, fixed per-request timeout, no retries.

The issue query embeds the first page of each issue's comments so issues with
few comments cost no extra round trip; later comment pages go through
``fetch_comment_page``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

import requests

from .models import (
    GHOST_AUTHOR,
    Comment,
    CommentPage,
    Cursor,
    Issue,
    IssueFilter,
    IssuePage,
)

DEFAULT_GRAPHQL_URL = "https://api.github.com/graphql"
USER_AGENT = "issuemirror/0.1.0"
HTTP_ERROR_STATUS = 400
REQUEST_TIMEOUT = 30

_COMMENT_FIELDS = """
      pageInfo { endCursor hasNextPage }
      nodes {
        body
        createdAt
        author { login }
      }
"""

ISSUES_QUERY = (
    """
query($owner: String!, $name: String!, $count: Int!, $issueCursor: String, $filterBy: IssueFilters) {
  repository(owner: $owner, name: $name) {
    issues(first: $count, after: $issueCursor, filterBy: $filterBy) {
      pageInfo { endCursor hasNextPage }
      nodes {
        number
        title
        body
        state
        closed
        closedAt
        createdAt
        author { login }
        milestone { title }
        comments(first: $count) {"""
    + _COMMENT_FIELDS
    + """        }
      }
    }
  }
}
"""
)

COMMENTS_QUERY = (
    """
query($owner: String!, $name: String!, $issueNumber: Int!, $count: Int!, $commentsCursor: String) {
  repository(owner: $owner, name: $name) {
    issue(number: $issueNumber) {
      comments(first: $count, after: $commentsCursor) {"""
    + _COMMENT_FIELDS
    + """      }
    }
  }
}
"""
)


class GitHubAPIError(RuntimeError):
    """Raised when the GitHub GraphQL API (or the transport) fails."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        response_text: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.response_text = response_text


class IssueSource(Protocol):
    def fetch_issue_page(self, issue_filter: IssueFilter, cursor: str | None) -> IssuePage: ...

    def fetch_comment_page(
        self, number: int, cursor: str | None, page_size: int
    ) -> CommentPage: ...


def format_since(value: datetime) -> str:
    """RFC 3339 in UTC, the form the ``filterBy.since`` argument expects."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_timestamp(raw: Any) -> datetime | None:
    if not isinstance(raw, str) or not raw:
        return None
    text = raw[:-1] + "+00:00" if raw.endswith("Z") else raw
    try:
        return datetime.fromisoformat(text)
    except ValueError as exc:
        raise GitHubAPIError(f"Unparseable timestamp from GitHub: {raw!r}") from exc


def _author(node: dict[str, Any]) -> str:
    author = node.get("author")
    if isinstance(author, dict) and author.get("login"):
        return str(author["login"])
    return GHOST_AUTHOR


def _cursor(connection: dict[str, Any]) -> Cursor:
    info = connection.get("pageInfo") or {}
    end = info.get("endCursor")
    return Cursor(
        end_cursor=end if isinstance(end, str) else None,
        has_next_page=bool(info.get("hasNextPage")),
    )


def parse_comment_page(connection: dict[str, Any] | None) -> CommentPage:
    if not isinstance(connection, dict):
        return CommentPage(comments=[])
    comments: list[Comment] = []
    for node in connection.get("nodes") or []:
        if not isinstance(node, dict):
            continue
        created = parse_timestamp(node.get("createdAt"))
        if created is None:
            raise GitHubAPIError("Comment without createdAt in GitHub response")
        comments.append(
            Comment(author=_author(node), body=node.get("body") or "", created_at=created)
        )
    return CommentPage(comments=comments, cursor=_cursor(connection))


def parse_issue(node: dict[str, Any]) -> Issue:
    created = parse_timestamp(node.get("createdAt"))
    if created is None:
        raise GitHubAPIError(f"Issue #{node.get('number')} without createdAt in GitHub response")
    milestone = node.get("milestone")
    return Issue(
        number=int(node["number"]),
        title=node.get("title") or "",
        body=node.get("body") or "",
        author=_author(node),
        created_at=created,
        state=str(node.get("state") or "OPEN"),
        closed=bool(node.get("closed")),
        closed_at=parse_timestamp(node.get("closedAt")),
        milestone=milestone.get("title") if isinstance(milestone, dict) else None,
        first_comments=parse_comment_page(node.get("comments")),
    )


def _repository(data: Any, owner: str, name: str) -> dict[str, Any]:
    body = data.get("data") if isinstance(data, dict) else None
    repo = body.get("repository") if isinstance(body, dict) else None
    if not isinstance(repo, dict):
        raise GitHubAPIError(f"Repository {owner}/{name} not found or not accessible")
    return repo


@dataclass
class GitHubGraphQLClient:
    """Minimal GraphQL client for reading issues and comments."""

    token: str
    owner: str
    name: str
    graphql_url: str = DEFAULT_GRAPHQL_URL
    timeout: float = REQUEST_TIMEOUT
    session: requests.Session | None = None
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:  # pragma: no cover - simple wiring
        self._session = self.session or requests.Session()
        self._session.headers.setdefault("Authorization", f"Bearer {self.token}")
        self._session.headers.setdefault("Accept", "application/vnd.github+json")
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    def graphql(self, query: str, variables: dict[str, Any] | None = None) -> Any:
        payload = {"query": query, "variables": variables or {}}
        try:
            response = self._session.request(
                "POST",
                self.graphql_url,
                json=payload,
                headers=self._session.headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise GitHubAPIError(f"GitHub GraphQL request failed: {exc}") from exc
        if response.status_code >= HTTP_ERROR_STATUS:
            raise GitHubAPIError(
                f"GitHub GraphQL POST {self.graphql_url} failed with {response.status_code}",
                status=response.status_code,
                response_text=response.text,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise GitHubAPIError(
                "GitHub GraphQL returned a non-JSON body",
                status=response.status_code,
                response_text=response.text,
            ) from exc
        if isinstance(data, dict) and data.get("errors"):
            raise GitHubAPIError(f"GraphQL query failed: {data['errors']}")
        return data

    def fetch_issue_page(self, issue_filter: IssueFilter, cursor: str | None) -> IssuePage:
        variables = {
            "owner": self.owner,
            "name": self.name,
            "count": issue_filter.page_size,
            "issueCursor": cursor,
            "filterBy": {
                "since": format_since(issue_filter.since),
                "states": list(issue_filter.states),
            },
        }
        repo = _repository(self.graphql(ISSUES_QUERY, variables), self.owner, self.name)
        connection = repo.get("issues") or {}
        issues = [parse_issue(node) for node in connection.get("nodes") or [] if isinstance(node, dict)]
        return IssuePage(issues=issues, cursor=_cursor(connection))

    def fetch_comment_page(self, number: int, cursor: str | None, page_size: int) -> CommentPage:
        variables = {
            "owner": self.owner,
            "name": self.name,
            "issueNumber": number,
            "count": page_size,
            "commentsCursor": cursor,
        }
        repo = _repository(self.graphql(COMMENTS_QUERY, variables), self.owner, self.name)
        issue = repo.get("issue")
        if not isinstance(issue, dict):
            raise GitHubAPIError(f"Issue #{number} not found in {self.owner}/{self.name}")
        return parse_comment_page(issue.get("comments"))


__all__ = [
    "COMMENTS_QUERY",
    "DEFAULT_GRAPHQL_URL",
    "ISSUES_QUERY",
    "GitHubAPIError",
    "GitHubGraphQLClient",
    "IssueSource",
    "format_since",
    "parse_comment_page",
    "parse_issue",
    "parse_timestamp",
]
