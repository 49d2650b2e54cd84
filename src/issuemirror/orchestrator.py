"""Run summary helpers layered over :class:`IssueMirror`.

``sync_with_summary`` runs one sync and returns a JSON-ready summary of what
was written, optionally persisting it. Failures still produce a summary file
(with ``last_error``) before the exception propagates.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TypedDict

from .core import IssueMirror
from .github_graphql import format_since
from .logging import get_logger
from .models import SyncResult


class Totals(TypedDict):
    written: int


class RunSummary(TypedDict, total=False):
    generated_at: str
    repo: str | None
    since: str
    started_at: str
    quiescent: bool
    totals: Totals
    written: list[str]
    last_error: Any


def build_summary(mirror: IssueMirror, result: SyncResult | None) -> RunSummary:
    summary: RunSummary = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "repo": mirror.cfg.repo,
        "since": format_since(mirror.cfg.since),
        "quiescent": bool(result and result.quiescent),
        "totals": {"written": result.count if result else 0},
        "written": [str(p) for p in result.written] if result else [],
    }
    if result is not None:
        summary["started_at"] = result.started_at.isoformat()
    if mirror.last_error is not None:
        summary["last_error"] = mirror.last_error
    return summary


def write_summary(path: str | Path, summary: RunSummary) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(summary, indent=2) + "\n", encoding="utf-8")


def sync_with_summary(
    mirror: IssueMirror, summary_path: str | Path | None = None
) -> tuple[SyncResult, RunSummary]:
    try:
        result = mirror.sync()
    except Exception:
        if summary_path:
            write_summary(summary_path, build_summary(mirror, None))
        raise
    summary = build_summary(mirror, result)
    if summary_path:
        write_summary(summary_path, summary)
        get_logger().debug(f"summary written to {summary_path}")
    return result, summary


__all__ = ["RunSummary", "build_summary", "sync_with_summary", "write_summary"]
