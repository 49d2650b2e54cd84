from __future__ import annotations

from pathlib import Path

from .errors import MirrorFilesystemError
from .logging import get_logger
from .milestones import link_into_milestone
from .models import Issue, SyncSession
from .snapshot import DEFAULT_EXTENSION, SnapshotIndex, document_filename


class Reconciler:
    """Replace whatever exists on disk for an issue with its fresh document.

    For each issue: delete every indexed file sharing ``{n}.{ext}`` (old state
    directory, old milestone links), write the canonical copy under
    ``{root}/{state}/`` and, when grouping is on, link it into its milestone.
    """

    def __init__(
        self,
        root: str | Path,
        snapshot: SnapshotIndex,
        session: SyncSession,
        *,
        extension: str = DEFAULT_EXTENSION,
        group_milestones: bool = False,
        include_closed: bool = False,
    ) -> None:
        self.root = Path(root).absolute()
        self.snapshot = snapshot
        self.session = session
        self.extension = extension
        self.group_milestones = group_milestones
        self.include_closed = include_closed
        self._logger = get_logger()

    def canonical_path(self, issue: Issue) -> Path:
        return self.root / issue.state.lower() / document_filename(issue.number, self.extension)

    def remove_stale(self, number: int) -> list[Path]:
        removed: list[Path] = []
        for path in sorted(self.snapshot.lookup(document_filename(number, self.extension))):
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                raise MirrorFilesystemError(
                    f"unable to delete stale file {path} for issue #{number}: {exc}",
                    operation="delete",
                    path=str(path),
                ) from exc
            self.snapshot.discard(path)
            removed.append(path)
        if removed:
            self._logger.debug(
                f"removed {len(removed)} stale file(s) for #{number}", issue_number=number
            )
        return removed

    def write(self, path: Path, document: str, number: int) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(document, encoding="utf-8")
        except OSError as exc:
            raise MirrorFilesystemError(
                f"error writing issue {number} to {path}: {exc}",
                operation="write",
                path=str(path),
            ) from exc

    def reconcile(self, issue: Issue, document: str) -> Path:
        self.remove_stale(issue.number)
        target = self.canonical_path(issue)
        self.write(target, document, issue.number)
        if self.group_milestones and issue.milestone:
            link_into_milestone(
                self.root,
                target,
                issue.milestone,
                issue.state,
                include_closed=self.include_closed,
            )
        self.session.record(target)
        self._logger.log_issue_action("write", issue.number, path=str(target))
        return target


__all__ = ["Reconciler"]
