from __future__ import annotations

import os

import pytest

from issuemirror.errors import MirrorFilesystemError
from issuemirror.milestones import (
    ensure_milestone_dirs,
    link_into_milestone,
    prune_dangling_links,
    sanitize_milestone,
)


def _canonical(root, state="open", number=12, text="doc"):
    path = root / state / f"{number}.md"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


def test_sanitize_replaces_separators():
    assert sanitize_milestone("Release/1.0") == "Release_1.0"
    assert sanitize_milestone("a\\b/c") == "a_b_c"
    assert sanitize_milestone("Sprint 3") == "Sprint 3"


def test_ensure_dirs_open_only_by_default(tmp_path):
    base = ensure_milestone_dirs(tmp_path, "v1", include_closed=False)
    assert (base / "open").is_dir()
    assert not (base / "closed").exists()


def test_ensure_dirs_with_closed(tmp_path):
    base = ensure_milestone_dirs(tmp_path, "v1", include_closed=True)
    assert (base / "open").is_dir()
    assert (base / "closed").is_dir()


def test_link_is_relative_and_resolves_to_canonical(tmp_path):
    canonical = _canonical(tmp_path, text="hello")
    link = link_into_milestone(tmp_path, canonical, "Release/1.0", "OPEN")

    assert link == tmp_path / "milestones" / "Release_1.0" / "open" / "12.md"
    assert link.is_symlink()
    assert not os.path.isabs(os.readlink(link))
    assert link.read_text() == "hello"
    assert link.resolve() == canonical.resolve()


def test_link_survives_relocation(tmp_path):
    root = tmp_path / "a"
    canonical = _canonical(root, text="portable")
    link_into_milestone(root, canonical, "v2", "open")
    moved = tmp_path / "b"
    root.rename(moved)
    assert (moved / "milestones" / "v2" / "open" / "12.md").read_text() == "portable"


def test_existing_link_is_tolerated(tmp_path):
    canonical = _canonical(tmp_path)
    first = link_into_milestone(tmp_path, canonical, "v1", "open")
    second = link_into_milestone(tmp_path, canonical, "v1", "open")
    assert first == second
    assert first.is_symlink()


def test_link_failure_is_wrapped(tmp_path, monkeypatch):
    canonical = _canonical(tmp_path)

    def boom(self, target):
        raise PermissionError("denied")

    monkeypatch.setattr(type(canonical), "symlink_to", boom)
    with pytest.raises(MirrorFilesystemError) as err:
        link_into_milestone(tmp_path, canonical, "v1", "open")
    assert err.value.operation == "symlink"


def test_prune_removes_only_dangling_links(tmp_path):
    keep = _canonical(tmp_path, number=1)
    gone = _canonical(tmp_path, number=2)
    link_into_milestone(tmp_path, keep, "v1", "open")
    link_into_milestone(tmp_path, gone, "old", "open")
    gone.unlink()

    removed = prune_dangling_links(tmp_path)

    assert removed == [tmp_path / "milestones" / "old" / "open" / "2.md"]
    assert (tmp_path / "milestones" / "v1" / "open" / "1.md").is_symlink()
    assert not (tmp_path / "milestones" / "old").exists()


def test_prune_without_milestones_dir(tmp_path):
    assert prune_dangling_links(tmp_path) == []


def test_prune_keeps_state_dirs_of_live_milestone(tmp_path):
    keep = _canonical(tmp_path, number=1)
    gone = _canonical(tmp_path, number=2)
    ensure_milestone_dirs(tmp_path, "v1", include_closed=True)
    link_into_milestone(tmp_path, keep, "v1", "open", include_closed=True)
    link_into_milestone(tmp_path, gone, "v1", "open", include_closed=True)
    gone.unlink()

    removed = prune_dangling_links(tmp_path)

    assert removed == [tmp_path / "milestones" / "v1" / "open" / "2.md"]
    assert (tmp_path / "milestones" / "v1" / "open" / "1.md").is_symlink()
    assert (tmp_path / "milestones" / "v1" / "closed").is_dir()


def test_prune_scan_failure_is_wrapped(tmp_path, monkeypatch):
    keep = _canonical(tmp_path, number=1)
    link_into_milestone(tmp_path, keep, "v1", "open")
    blocked = str(tmp_path / "milestones" / "v1")
    real_scandir = os.scandir

    def scandir(path="."):
        if os.fspath(path) == blocked:
            raise PermissionError(13, "Permission denied", blocked)
        return real_scandir(path)

    monkeypatch.setattr(os, "scandir", scandir)
    with pytest.raises(MirrorFilesystemError) as err:
        prune_dangling_links(tmp_path)
    assert err.value.operation == "scan"
    assert err.value.path == blocked


@pytest.mark.parametrize(("title", "expected"), [(".", "_"), ("..", "__"), ("...", "...")])
def test_sanitize_dot_titles(title, expected):
    assert sanitize_milestone(title) == expected


def test_dot_dot_milestone_links_inside_milestones(tmp_path):
    canonical = _canonical(tmp_path, text="dots")
    link = link_into_milestone(tmp_path, canonical, "..", "open")
    assert link == tmp_path / "milestones" / "__" / "open" / "12.md"
    assert link.is_symlink()
    assert canonical.read_text() == "dots"
