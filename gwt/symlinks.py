"""Symlink materialization for new worktrees.

Support files that git does not track (`.envrc`, `.tool-versions`, local config, caches)
are linked from the source tree into each new worktree. Patterns are globs relative to the
source tree and are processed in order:

- a pattern with no matches yields one skipped result ("no matching files") and the run
  continues;
- a match whose destination already exists is skipped ("already exists"). This is the
  normal case for files git itself checked out, so tracked content is never overwritten;
- every other match gets its parent directories created and a symlink pointing at the
  absolute source path.

Any other filesystem failure raises `LinkError` and aborts the remaining patterns; a
partially materialized worktree is not rolled back.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .errors import LinkError
from .fs import FileSystem

NO_MATCH_REASON = "no matching files"
EXISTS_REASON = "already exists"


@dataclass(frozen=True)
class SymlinkResult:
    src: Path | str
    dst: Path | str
    skipped: bool = False
    reason: str = ""


def materialize_symlinks(
    fs: FileSystem, src_dir: Path, dst_dir: Path, patterns: list[str]
) -> list[SymlinkResult]:
    results: list[SymlinkResult] = []
    for pattern in patterns:
        matches = fs.glob(src_dir, pattern)
        if not matches:
            results.append(SymlinkResult(src=pattern, dst="", skipped=True, reason=NO_MATCH_REASON))
            continue
        for rel in matches:
            results.append(_link_one(fs, src_dir / rel, dst_dir / rel, rel))
    return results


def _link_one(fs: FileSystem, src: Path, dst: Path, rel: str) -> SymlinkResult:
    try:
        fs.stat(dst)
    except OSError as exc:
        if not fs.is_not_exist(exc):
            raise LinkError(f"failed to inspect {dst}: {exc}") from exc
    else:
        return SymlinkResult(src=src, dst=dst, skipped=True, reason=EXISTS_REASON)

    try:
        fs.mkdir_all(dst.parent, 0o755)
    except OSError as exc:
        raise LinkError(f"failed to create directory for {rel}: {exc}") from exc
    try:
        fs.symlink(src, dst)
    except OSError as exc:
        raise LinkError(f"failed to create symlink for {rel}: {exc}") from exc
    return SymlinkResult(src=src, dst=dst)
