"""Filesystem capability used by the symlink materializer and `init`.

The core never touches `os`/`pathlib` directly for mutations; it goes through a
`FileSystem` so tests can substitute an in-memory fake. `OsFileSystem` is the real thing.

- `stat(path)` does not follow symlinks: a dangling link still "exists", which is what the
  materializer's "already exists" skip needs.
- `glob(base_dir, pattern)` returns paths relative to `base_dir`, sorted, hidden entries
  included, `**` recursive.
"""

from __future__ import annotations

import glob as _glob
import os
from pathlib import Path
from typing import Protocol


class FileSystem(Protocol):
    def stat(self, path: Path) -> os.stat_result: ...

    def is_not_exist(self, err: BaseException) -> bool: ...

    def glob(self, base_dir: Path, pattern: str) -> list[str]: ...

    def mkdir_all(self, path: Path, mode: int = 0o755) -> None: ...

    def symlink(self, src: Path, dst: Path) -> None: ...

    def write_file(self, path: Path, data: bytes, mode: int = 0o644) -> None: ...


class OsFileSystem:
    def stat(self, path: Path) -> os.stat_result:
        return os.lstat(path)

    def is_not_exist(self, err: BaseException) -> bool:
        return isinstance(err, FileNotFoundError)

    def glob(self, base_dir: Path, pattern: str) -> list[str]:
        matches = _glob.glob(pattern, root_dir=base_dir, recursive=True, include_hidden=True)
        return sorted(m.rstrip("/") for m in matches)

    def mkdir_all(self, path: Path, mode: int = 0o755) -> None:
        Path(path).mkdir(mode=mode, parents=True, exist_ok=True)

    def symlink(self, src: Path, dst: Path) -> None:
        os.symlink(src, dst)

    def write_file(self, path: Path, data: bytes, mode: int = 0o644) -> None:
        p = Path(path)
        p.write_bytes(data)
        p.chmod(mode)


def path_exists(fs: FileSystem, path: Path) -> bool:
    """True when `path` exists; errors other than "not exist" count as existing."""
    try:
        fs.stat(path)
    except OSError as exc:
        return not fs.is_not_exist(exc)
    return True
