"""`gwt init`: write a commented settings template to `.gwt/settings.toml`."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .config import CONFIG_DIR, CONFIG_FILE
from .errors import ConfigError
from .formatting import FormatResult
from .fs import FileSystem, path_exists

SETTINGS_TEMPLATE = """\
# gwt project configuration

# Symlink patterns to create in new worktrees
# Example: symlinks = [".envrc", ".tool-versions", "node_modules"]
symlinks = []

# Worktree destination base directory (default: ../<repo-name>-worktree)
# worktree_destination_base_dir = "../my-worktrees"

# Worktree source directory (default: current directory)
# worktree_source_dir = "."

# Default source branch for new worktrees
# default_source = "main"
"""


@dataclass(frozen=True)
class InitOptions:
    force: bool = False


@dataclass
class InitResult:
    config_dir: Path
    settings_path: Path
    created: bool = False
    skipped: bool = False
    overwritten: bool = False

    def format(self) -> FormatResult:
        rel = f"{CONFIG_DIR}/{CONFIG_FILE}"
        if self.skipped:
            return FormatResult(stdout=f"Skipped {rel} (already exists)\n")
        if self.overwritten:
            return FormatResult(stdout=f"Created {rel} (overwritten)\n")
        if self.created:
            return FormatResult(stdout=f"Created {rel}\n")
        return FormatResult()


class InitCommand:
    def __init__(self, *, fs: FileSystem) -> None:
        self.fs = fs

    def run(self, directory: Path, opts: InitOptions = InitOptions()) -> InitResult:
        config_dir = directory / CONFIG_DIR
        settings_path = config_dir / CONFIG_FILE
        result = InitResult(config_dir=config_dir, settings_path=settings_path)

        exists = path_exists(self.fs, settings_path)
        if exists and not opts.force:
            result.skipped = True
            return result

        try:
            self.fs.mkdir_all(config_dir, 0o755)
        except OSError as exc:
            raise ConfigError(f"failed to create config directory: {exc}") from exc
        try:
            self.fs.write_file(settings_path, SETTINGS_TEMPLATE.encode("utf-8"), 0o644)
        except OSError as exc:
            raise ConfigError(f"failed to write settings file: {exc}") from exc

        result.created = True
        result.overwritten = exists
        return result
