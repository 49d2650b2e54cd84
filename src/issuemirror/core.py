from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .config import MirrorConfig, load_config, validate_config
from .env_auth import EnvAuthConfig, create_env_auth_manager
from .errors import ConfigError, MirrorFilesystemError, classify_error
from .github_graphql import GitHubGraphQLClient, IssueSource, format_since
from .logging import configure_logging
from .milestones import prune_dangling_links
from .models import IssueFilter, MirrorRecord, SyncResult, SyncSession
from .pagination import NothingToSync, PaginationDriver
from .reconciler import Reconciler
from .render import render_document
from .snapshot import build_snapshot


class IssueMirror:
    """One repository mirrored into one output tree.

    ``sync()`` performs a full run: prepare directories, snapshot the existing
    tree, page through issues changed since ``cfg.since`` and reconcile each
    into its canonical file (plus milestone link when enabled).
    """

    def __init__(self, cfg: MirrorConfig, source: IssueSource | None = None):
        validate_config(cfg)
        self.cfg = cfg
        self._last_error: dict[str, Any] | None = None
        self._logger = configure_logging(
            json_logging=cfg.logging_json_enabled, level=cfg.logging_level
        )
        self.source: IssueSource = source if source is not None else self._build_source()

    @classmethod
    def from_config_path(cls, path: str | Path) -> IssueMirror:
        return cls(load_config(path))

    @property
    def root(self) -> Path:
        return Path(self.cfg.output).absolute()

    @property
    def issue_filter(self) -> IssueFilter:
        return IssueFilter(
            states=self.cfg.states, since=self.cfg.since, page_size=self.cfg.page_size
        )

    @property
    def last_error(self) -> dict[str, Any] | None:
        return self._last_error

    def resolve_token(self) -> str | None:
        if self.cfg.token:
            return self.cfg.token
        manager = create_env_auth_manager(
            EnvAuthConfig(
                load_dotenv=self.cfg.env_auth_load_dotenv,
                dotenv_path=self.cfg.env_auth_dotenv_path,
            )
        )
        return manager.get_github_token()

    def _build_source(self) -> IssueSource:
        token = self.resolve_token()
        if not token:
            raise ConfigError(
                "No GitHub token found; set GITHUB_TOKEN (or GH_TOKEN) or configure 'token'"
            )
        owner, name = self.cfg.owner_and_name
        return GitHubGraphQLClient(token=token, owner=owner, name=name)

    def _prepare_dirs(self) -> None:
        dirs = [self.root, self.root / "open"]
        if self.cfg.all_states:
            dirs.append(self.root / "closed")
        for d in dirs:
            try:
                d.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise MirrorFilesystemError(
                    f"unable to create directory {d}: {exc}", operation="mkdir", path=str(d)
                ) from exc

    def render(self, record: MirrorRecord) -> str:
        issue = record.issue
        return render_document(
            issue,
            record.comments,
            issue.closed_at if issue.closed else None,
            self.cfg.display_tz,
            self.cfg.extension,
        )

    def sync(self) -> SyncResult:
        started = datetime.now(timezone.utc)
        session = SyncSession()
        quiescent = False
        since = format_since(self.cfg.since)
        try:
            with self._logger.timed_operation("sync", repo=self.cfg.repo, since=since):
                self._logger.info(
                    f"Getting new and updated issues/comments from {self.cfg.repo} since {since}"
                )
                self._prepare_dirs()
                snapshot = build_snapshot(self.root)
                reconciler = Reconciler(
                    self.root,
                    snapshot,
                    session,
                    extension=self.cfg.extension,
                    group_milestones=self.cfg.group_milestones,
                    include_closed=self.cfg.all_states,
                )
                driver = PaginationDriver(self.source, self.issue_filter)
                try:
                    for record in driver.records():
                        reconciler.reconcile(record.issue, self.render(record))
                except NothingToSync:
                    quiescent = True
                    self._logger.log_operation("sync_quiescent", repo=self.cfg.repo)
                if self.cfg.prune_links:
                    prune_dangling_links(self.root)
                self._logger.log_operation(
                    "sync_complete",
                    written=session.count,
                    quiescent=quiescent,
                    issue_pages=driver.issue_pages_fetched,
                )
                self._logger.info(f"Downloaded {session.count} issue(s) including comments")
        except Exception as exc:  # broad catch to enrich logging then re-raise
            info = classify_error(exc)
            self._logger.log_error(
                "sync_failed",
                category=info.category,
                transient=info.transient,
                original_type=info.original_type,
                error=info.message,
            )
            self._last_error = {
                "category": info.category,
                "transient": info.transient,
                "original_type": info.original_type,
                "message": info.message,
            }
            raise
        return SyncResult(
            count=session.count,
            written=list(session.written),
            quiescent=quiescent,
            started_at=started,
        )


__all__ = ["IssueMirror"]
