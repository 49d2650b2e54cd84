from __future__ import annotations

import os
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

from .errors import MirrorFilesystemError
from .logging import get_logger

DEFAULT_EXTENSION = "md"


def document_filename(number: int, extension: str = DEFAULT_EXTENSION) -> str:
    return f"{number}.{extension}"


@dataclass
class SnapshotIndex:
    """Existing files under the output root, keyed by base filename.

    A filename can map to several paths (the canonical copy plus milestone
    links), so every entry is a set. Built once per run; ``discard`` removes
    paths as the reconciler deletes them.
    """

    root: Path
    entries: dict[str, set[Path]] = field(default_factory=dict)

    def add(self, path: Path) -> None:
        self.entries.setdefault(path.name, set()).add(path)

    def lookup(self, filename: str) -> set[Path]:
        return set(self.entries.get(filename, ()))

    def discard(self, path: Path) -> None:
        paths = self.entries.get(path.name)
        if paths is None:
            return
        paths.discard(path)
        if not paths:
            del self.entries[path.name]

    def __contains__(self, filename: object) -> bool:
        return filename in self.entries

    def __len__(self) -> int:
        return sum(len(v) for v in self.entries.values())

    def __iter__(self) -> Iterator[Path]:
        for paths in self.entries.values():
            yield from paths


def raise_scan_error(exc: OSError) -> None:
    """``os.walk`` error hook: an unreadable directory aborts the run."""
    path = exc.filename if exc.filename is not None else ""
    raise MirrorFilesystemError(
        f"unable to scan directory {path}: {exc}", operation="scan", path=str(path)
    ) from exc


def build_snapshot(root: str | Path) -> SnapshotIndex:
    """Walk ``root`` once and index every file (symlinks included) by name.

    A missing root is the cold-start case and yields an empty index.
    """
    base = Path(root).absolute()
    index = SnapshotIndex(root=base)
    if not base.is_dir():
        get_logger().debug("snapshot root missing; cold start", root=str(base))
        return index
    # dangling symlinks are reported in filenames, so stale links get indexed too
    for dirpath, _dirnames, filenames in os.walk(base, onerror=raise_scan_error, followlinks=False):
        current = Path(dirpath)
        for name in filenames:
            index.add(current / name)
    get_logger().debug("snapshot built", root=str(base), files=len(index))
    return index


__all__ = [
    "DEFAULT_EXTENSION",
    "SnapshotIndex",
    "build_snapshot",
    "document_filename",
    "raise_scan_error",
]
