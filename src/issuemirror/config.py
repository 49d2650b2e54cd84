from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from pathlib import Path
from typing import Any, cast

import yaml

from .errors import ConfigError
from .github_graphql import format_since
from .logging import get_logger
from .models import STATE_CLOSED, STATE_OPEN
from .pagination import validate_page_size
from .snapshot import DEFAULT_EXTENSION

CONFIG_DEFAULT = ".issuemirror.yaml"
DEFAULT_OUTPUT = "./issues"
DEFAULT_PAGE_SIZE = 100
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class MirrorConfig:
    repo: str | None = None
    output: Path = field(default_factory=lambda: Path(DEFAULT_OUTPUT))
    page_size: int = DEFAULT_PAGE_SIZE
    all_states: bool = False
    utc: bool = False
    since: datetime = EPOCH
    group_milestones: bool = False
    prune_links: bool = False
    token: str | None = None
    extension: str = DEFAULT_EXTENSION
    # Logging configuration
    logging_json_enabled: bool = False
    logging_level: str = "INFO"
    # Environment authentication configuration
    env_auth_load_dotenv: bool = True
    env_auth_dotenv_path: str | None = None
    config_file: Path | None = None

    @property
    def states(self) -> tuple[str, ...]:
        return (STATE_OPEN, STATE_CLOSED) if self.all_states else (STATE_OPEN,)

    @property
    def display_tz(self) -> tzinfo | None:
        """UTC, or ``None`` for the local system zone."""
        return timezone.utc if self.utc else None

    @property
    def owner_and_name(self) -> tuple[str, str]:
        return parse_repository(self.repo)


def parse_repository(repo: str | None) -> tuple[str, str]:
    parts = (repo or "").split("/")
    if len(parts) != 2 or not all(p.strip() for p in parts):  # noqa: PLR2004
        raise ConfigError(
            f"Couldn't determine repository from {repo!r}. "
            "Make sure it's in the format USER/REPOSITORY"
        )
    return parts[0].strip(), parts[1].strip()


def parse_since(raw: Any) -> datetime:
    """Parse an RFC 3339 timestamp; unparseable values fall back to the epoch."""
    if raw is None or raw == "":
        return EPOCH
    if isinstance(raw, datetime):
        value = raw
    else:
        text = str(raw).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            get_logger().warning(
                f"Unable to parse timestamp {raw!r}, using default value of {EPOCH.isoformat()}"
            )
            return EPOCH
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _resolve_env_var(value: Any, env_var_name: str | None = None) -> Any:
    """Resolve environment variable if value starts with $."""
    if isinstance(value, str) and value.startswith('$'):
        env_name = env_var_name or value[1:]  # Remove $ prefix
        return os.getenv(env_name, value)  # Fallback to original if not found
    return value


def validate_config(cfg: MirrorConfig) -> MirrorConfig:
    """Reject unusable settings before any network or filesystem work."""
    parse_repository(cfg.repo)
    validate_page_size(cfg.page_size)
    if not cfg.extension or "/" in cfg.extension:
        raise ConfigError(f"invalid document extension {cfg.extension!r}")
    return cfg


def _read_yaml(p: Path) -> dict[str, Any]:
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f'Unable to read configuration file {p}: {exc}') from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f'Configuration file {p} must contain a mapping')
    return cast(dict[str, Any], raw)


def load_config(path: str | Path | None = None) -> MirrorConfig:
    """Load ``path`` (default ``.issuemirror.yaml``); a missing file yields defaults."""
    p = Path(path) if path else Path(CONFIG_DEFAULT)
    raw: dict[str, Any] = {}
    if p.exists():
        raw = _read_yaml(p)
        get_logger().debug(f"Using config file: {p}")
    logging_config = cast(dict[str, Any], raw.get('logging', {}) or {})
    env_auth = cast(dict[str, Any], raw.get('environment', {}) or {})
    try:
        page_size = int(raw.get('count', DEFAULT_PAGE_SIZE))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"count must be an integer, got {raw.get('count')!r}") from exc
    token = _resolve_env_var(raw.get('token'))
    if isinstance(token, str) and token.startswith('$'):
        token = None  # unresolved reference

    return MirrorConfig(
        repo=raw.get('repo'),
        output=Path(raw.get('output') or DEFAULT_OUTPUT),
        page_size=page_size,
        all_states=bool(raw.get('all', False)),
        utc=bool(raw.get('utc', False)),
        since=parse_since(raw.get('last_sync')),
        group_milestones=bool(raw.get('milestones', False)),
        prune_links=bool(raw.get('prune_links', False)),
        token=token,
        extension=str(raw.get('extension', DEFAULT_EXTENSION)),
        logging_json_enabled=bool(logging_config.get('json_enabled', False)),
        logging_level=str(logging_config.get('level', 'INFO')),
        env_auth_load_dotenv=bool(env_auth.get('load_dotenv', True)),
        env_auth_dotenv_path=env_auth.get('dotenv_path'),
        config_file=p,
    )


def save_config(path: str | Path, cfg: MirrorConfig, last_sync: datetime) -> None:
    """Persist settings plus ``last_sync``; the token is never written.

    Unknown keys already present in the file are preserved.
    """
    p = Path(path)
    raw: dict[str, Any] = _read_yaml(p) if p.exists() else {}
    raw.update(
        {
            'repo': cfg.repo,
            'output': str(cfg.output),
            'count': cfg.page_size,
            'all': cfg.all_states,
            'utc': cfg.utc,
            'milestones': cfg.group_milestones,
            'prune_links': cfg.prune_links,
            'last_sync': format_since(last_sync),
        }
    )
    if cfg.extension != DEFAULT_EXTENSION:
        raw['extension'] = cfg.extension
    tmp = p.with_suffix(p.suffix + ".tmp")
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(yaml.safe_dump(raw, sort_keys=False), encoding="utf-8")
        tmp.replace(p)
    except OSError as exc:
        raise ConfigError(f"error writing to file {p}: {exc}") from exc


__all__ = [
    "CONFIG_DEFAULT",
    "EPOCH",
    "ConfigError",
    "MirrorConfig",
    "format_since",
    "load_config",
    "parse_repository",
    "parse_since",
    "save_config",
    "validate_config",
]
