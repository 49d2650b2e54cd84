"""Milestone grouping via relative symlinks.

The canonical document lives under ``{root}/{state}/``; a milestone view is a
symlink at ``{root}/milestones/{sanitized}/{state}/{n}.md`` pointing back at
it. Links are relative so the tree survives being moved or archived.

Known limitation: a link is only replaced when its issue is fetched again
(identity-based deletion removes every file sharing the name). If an issue
leaves a milestone without being re-fetched, its old link remains until
``prune_dangling_links`` is run, and that only catches links whose target has
disappeared.
"""

from __future__ import annotations

import os
from pathlib import Path

from .errors import MirrorFilesystemError
from .logging import get_logger
from .snapshot import raise_scan_error

MILESTONES_DIR = "milestones"

_SEPARATORS = {"/", "\\", os.sep} | ({os.altsep} if os.altsep else set())


def sanitize_milestone(title: str) -> str:
    out = title
    for sep in _SEPARATORS:
        out = out.replace(sep, "_")
    if out in (".", ".."):
        # would resolve to the milestones dir itself or the output root
        out = "_" * len(out)
    return out


def milestone_dir(root: Path, title: str) -> Path:
    return root / MILESTONES_DIR / sanitize_milestone(title)


def ensure_milestone_dirs(root: Path, title: str, include_closed: bool) -> Path:
    base = milestone_dir(root, title)
    states = ["open", "closed"] if include_closed else ["open"]
    for state in states:
        target = base / state
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise MirrorFilesystemError(
                f"unable to create milestone directory {target}: {exc}",
                operation="mkdir",
                path=str(target),
            ) from exc
    return base


def link_into_milestone(
    root: Path,
    canonical: Path,
    title: str,
    state: str,
    include_closed: bool = False,
) -> Path:
    """Create the milestone link for ``canonical``; return the link path.

    An entry already present at the link location counts as satisfied.
    """
    base = ensure_milestone_dirs(root, title, include_closed)
    state_dir = base / state.lower()
    try:
        state_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise MirrorFilesystemError(
            f"unable to create milestone directory {state_dir}: {exc}",
            operation="mkdir",
            path=str(state_dir),
        ) from exc
    link = state_dir / canonical.name
    target = os.path.relpath(canonical, start=state_dir)
    try:
        link.symlink_to(target)
    except FileExistsError:
        get_logger().debug("milestone link already present", path=str(link))
        return link
    except OSError as exc:
        raise MirrorFilesystemError(
            f"unable to link {link} -> {target}: {exc}",
            operation="symlink",
            path=str(link),
        ) from exc
    return link


def _holds_entries(directory: Path) -> bool:
    """True when anything other than a directory exists below ``directory``."""
    for dirpath, dirnames, filenames in os.walk(directory, onerror=raise_scan_error):
        if filenames or any(os.path.islink(os.path.join(dirpath, d)) for d in dirnames):
            return True
    return False


def _remove_empty_tree(directory: Path) -> None:
    for dirpath, _dirnames, _filenames in os.walk(
        directory, topdown=False, onerror=raise_scan_error
    ):
        current = Path(dirpath)
        try:
            current.rmdir()
        except OSError as exc:
            raise MirrorFilesystemError(
                f"unable to remove empty milestone directory {current}: {exc}",
                operation="rmdir",
                path=str(current),
            ) from exc


def prune_dangling_links(root: Path) -> list[Path]:
    """Remove milestone links whose canonical target no longer exists.

    A milestone directory left without any link is removed as a whole; the
    ``open``/``closed`` directories of a milestone that still holds links stay.
    Returns the removed link paths.
    """
    base = root / MILESTONES_DIR
    removed: list[Path] = []
    if not base.is_dir():
        return removed
    for dirpath, _dirnames, filenames in os.walk(base, onerror=raise_scan_error):
        current = Path(dirpath)
        for name in filenames:
            path = current / name
            if path.is_symlink() and not path.exists():
                try:
                    path.unlink()
                except OSError as exc:
                    raise MirrorFilesystemError(
                        f"unable to remove dangling link {path}: {exc}",
                        operation="delete",
                        path=str(path),
                    ) from exc
                removed.append(path)
    for milestone in sorted(base.iterdir()):
        if milestone.is_dir() and not milestone.is_symlink() and not _holds_entries(milestone):
            _remove_empty_tree(milestone)
    if removed:
        get_logger().log_operation("prune_links", removed=len(removed))
    return removed


__all__ = [
    "MILESTONES_DIR",
    "ensure_milestone_dirs",
    "link_into_milestone",
    "milestone_dir",
    "prune_dangling_links",
    "sanitize_milestone",
]
