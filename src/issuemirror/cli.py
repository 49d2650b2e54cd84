"""issuemirror CLI.

Downloads the issues of a GitHub repository for offline use. Open and closed
issues land in separate folders; after each run the settings and the time of
the run are stored in ``.issuemirror.yaml`` so the next run only fetches
issues updated since then.

Exit codes: 0 success (including "nothing new"), 1 fetch or filesystem
failure, 2 configuration problem.
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Any

from issuemirror.config import (
    CONFIG_DEFAULT,
    MirrorConfig,
    load_config,
    parse_since,
    save_config,
)
from issuemirror.core import IssueMirror
from issuemirror.errors import ConfigError, MirrorError, redact
from issuemirror.orchestrator import sync_with_summary

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2

_MAX_HELP_WIDTH = 100

EPILOG = """\
You need a GitHub personal access token in GITHUB_TOKEN (or GH_TOKEN, or a .env file).

Download all open issues of "octo/widgets" to ./issues:
    GITHUB_TOKEN=mysecrettoken issuemirror -r octo/widgets

Download open and closed issues to ./output, grouped by milestone:
    issuemirror -r octo/widgets -o ./output --all --milestones
"""


class _HelpFormatter(argparse.RawDescriptionHelpFormatter):
    def __init__(self, prog: str) -> None:
        super().__init__(prog, max_help_position=30, width=_MAX_HELP_WIDTH)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="issuemirror",
        description="Download GitHub issues as Markdown for offline usage",
        epilog=EPILOG,
        formatter_class=_HelpFormatter,
    )
    p.add_argument(
        "--config",
        default=CONFIG_DEFAULT,
        help=f"Config file (default: {CONFIG_DEFAULT})",
    )
    p.add_argument("-r", "--repo", help="Repository to download (eg: octo/widgets)")
    p.add_argument("-o", "--output", help="Output folder to download the issues to (default ./issues)")
    p.add_argument(
        "-c",
        "--count",
        type=int,
        help="Amount of issues/comments to fetch at once (default 100)",
    )
    p.add_argument(
        "--all",
        action="store_true",
        default=None,
        help="Get open and closed issues (default: only open issues)",
    )
    p.add_argument("--utc", action="store_true", default=None, help="Use UTC for dates")
    p.add_argument(
        "--since",
        help="Only fetch issues updated since this RFC 3339 time (default: last run)",
    )
    p.add_argument(
        "--milestones",
        action="store_true",
        default=None,
        help="Also group issues by milestone (symlinks under milestones/)",
    )
    p.add_argument(
        "--prune-links",
        action="store_true",
        default=None,
        help="Remove milestone links whose issue file no longer exists",
    )
    p.add_argument("--token", help="GitHub token (default: GITHUB_TOKEN / GH_TOKEN / .env)")
    p.add_argument("--summary-json", help="Write a JSON run summary to this path")
    p.add_argument(
        "--no-save",
        action="store_true",
        help="Do not write settings and last sync time back to the config file",
    )
    p.add_argument("--json-logs", action="store_true", default=None, help="Emit JSON log lines")
    p.add_argument("--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)")
    p.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress informational output (env: ISSUEMIRROR_QUIET=1)",
    )
    return p


_OVERRIDES: dict[str, str] = {
    "repo": "repo",
    "count": "page_size",
    "all": "all_states",
    "utc": "utc",
    "milestones": "group_milestones",
    "prune_links": "prune_links",
    "token": "token",
    "json_logs": "logging_json_enabled",
    "log_level": "logging_level",
}


def prepare_config(args: argparse.Namespace) -> MirrorConfig:
    """Load the config file and apply command-line overrides."""
    cfg = load_config(args.config)
    for arg_name, attr in _OVERRIDES.items():
        value = getattr(args, arg_name, None)
        if value is not None:
            setattr(cfg, attr, value)
    if args.output:
        cfg.output = Path(args.output)
    if args.since:
        cfg.since = parse_since(args.since)
    if args.quiet:
        cfg.logging_level = "WARNING"
    return cfg


def _err(message: str) -> None:
    print(f"[issuemirror] {redact(message)}", file=sys.stderr)


def _report(result: Any, quiet: bool) -> None:
    if quiet:
        return
    if result.quiescent:
        print("[issuemirror] no new or updated issues found")
        return
    print(f"[issuemirror] wrote {result.count} issue(s)")
    for path in result.written:
        print(f"  {path}")


def _cmd_sync(cfg: MirrorConfig, args: argparse.Namespace) -> int:
    try:
        mirror = IssueMirror(cfg)
    except ConfigError as exc:
        _err(str(exc))
        return EXIT_CONFIG
    try:
        result, _summary = sync_with_summary(mirror, args.summary_json)
    except ConfigError as exc:
        _err(str(exc))
        return EXIT_CONFIG
    except MirrorError as exc:
        _err(f"Unable to fetch issues: {exc}")
        return EXIT_FAILURE
    _report(result, args.quiet)
    if not args.no_save:
        try:
            save_config(cfg.config_file or CONFIG_DEFAULT, cfg, result.started_at)
        except ConfigError as exc:
            _err(str(exc))
            return EXIT_FAILURE
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.quiet and os.environ.get("ISSUEMIRROR_QUIET") == "1":
        args.quiet = True
    try:
        cfg = prepare_config(args)
    except ConfigError as exc:
        _err(str(exc))
        return EXIT_CONFIG
    return _cmd_sync(cfg, args)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
