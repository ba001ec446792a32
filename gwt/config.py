"""Project configuration for gwt.

Configuration lives in `<project>/.gwt/settings.toml`, optionally overridden key-by-key by
`<project>/.gwt/settings.local.toml` (meant to stay out of version control). Recognised
keys:

- `symlinks`: glob patterns, relative to the source tree, linked into new worktrees.
- `worktree_source_dir`: the main working tree (default: the project directory).
- `worktree_destination_base_dir`: where new worktrees go
  (default: `../<source-dir-name>-worktree`).
- `default_source`: start point for newly created branches (default: git's HEAD).

Relative paths are resolved against the project directory. A project without a settings
file gets the defaults; a malformed file or a value of the wrong type is a `ConfigError`.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import ConfigError

CONFIG_DIR = ".gwt"
CONFIG_FILE = "settings.toml"
LOCAL_CONFIG_FILE = "settings.local.toml"


@dataclass(frozen=True)
class Config:
    source_dir: Path | None
    dest_base_dir: Path | None
    symlinks: list[str] = field(default_factory=list)
    default_source: str | None = None

    def require_source(self) -> Path:
        if self.source_dir is None or _blank(self.source_dir):
            raise ConfigError("worktree source directory is not configured")
        return self.source_dir

    def require_dest(self) -> Path:
        if self.dest_base_dir is None or _blank(self.dest_base_dir):
            raise ConfigError("worktree destination base directory is not configured")
        return self.dest_base_dir


def _blank(path: Path) -> bool:
    # Path("") normalises to "."
    return str(path) in ("", ".")


def load_config(directory: Path) -> Config:
    directory = directory.resolve()
    raw: dict[str, Any] = {}
    for name in (CONFIG_FILE, LOCAL_CONFIG_FILE):
        raw.update(_read_toml(directory / CONFIG_DIR / name))

    symlinks = raw.get("symlinks", [])
    if not isinstance(symlinks, list) or not all(isinstance(s, str) for s in symlinks):
        raise ConfigError("config key 'symlinks' must be an array of strings")

    source_dir = (directory / _str_key(raw, "worktree_source_dir", ".")).resolve()
    dest_default = f"../{source_dir.name}-worktree"
    dest_base_dir = (directory / _str_key(raw, "worktree_destination_base_dir", dest_default)).resolve()
    default_source = _str_key(raw, "default_source", "") or None

    return Config(
        source_dir=source_dir,
        dest_base_dir=dest_base_dir,
        symlinks=list(symlinks),
        default_source=default_source,
    )


def _read_toml(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"failed to parse {path}: {exc}") from exc


def _str_key(raw: dict[str, Any], key: str, default: str) -> str:
    value = raw.get(key, default)
    if not isinstance(value, str):
        raise ConfigError(f"config key {key!r} must be a string")
    return value
