from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from gwt.errors import AdapterError


class FakeFS:
    """In-memory FileSystem: paths are plain strings, nothing touches the disk."""

    def __init__(self) -> None:
        self.existing: set[str] = set()
        self.glob_results: dict[str, list[str]] = {}
        self.symlinks: dict[str, str] = {}
        self.files: dict[str, bytes] = {}
        self.dirs: set[str] = set()
        self.symlink_err: OSError | None = None
        self.mkdir_err: OSError | None = None
        self.stat_err: OSError | None = None
        self.calls: list[tuple[str, str]] = []

    def stat(self, path: Path) -> SimpleNamespace:
        p = str(path)
        self.calls.append(("stat", p))
        if self.stat_err is not None:
            raise self.stat_err
        if p in self.existing or p in self.symlinks or p in self.files or p in self.dirs:
            return SimpleNamespace(st_mode=0)
        raise FileNotFoundError(p)

    def is_not_exist(self, err: BaseException) -> bool:
        return isinstance(err, FileNotFoundError)

    def glob(self, base_dir: Path, pattern: str) -> list[str]:
        self.calls.append(("glob", pattern))
        return list(self.glob_results.get(pattern, []))

    def mkdir_all(self, path: Path, mode: int = 0o755) -> None:
        self.calls.append(("mkdir_all", str(path)))
        if self.mkdir_err is not None:
            raise self.mkdir_err
        self.dirs.add(str(path))

    def symlink(self, src: Path, dst: Path) -> None:
        self.calls.append(("symlink", str(dst)))
        if self.symlink_err is not None:
            raise self.symlink_err
        self.symlinks[str(dst)] = str(src)

    def write_file(self, path: Path, data: bytes, mode: int = 0o644) -> None:
        self.calls.append(("write_file", str(path)))
        self.files[str(path)] = data

    def remove_tree(self, path: str) -> None:
        prefix = path.rstrip("/") + "/"
        self.existing = {p for p in self.existing if p != path and not p.startswith(prefix)}
        self.symlinks = {k: v for k, v in self.symlinks.items() if not k.startswith(prefix)}
        self.dirs = {p for p in self.dirs if p != path and not p.startswith(prefix)}


class FakeGitExecutor:
    """Scripted git: keeps branches, worktrees and the stash stack in memory.

    `fail` maps a two-word command key (e.g. "stash push", "worktree add") to the stderr
    text of an injected failure. `apply_fail_paths` makes `stash apply` fail only inside
    the listed worktrees. `stash_noop` makes `stash push` exit 0 without adding an entry,
    as git does when only submodules are dirty.
    """

    def __init__(self, fs: FakeFS | None = None) -> None:
        self.fs = fs
        self.branches: set[str] = {"main"}
        self.worktrees: list[tuple[str, str | None]] = [("/repo/main", "main")]
        self.has_changes = False
        self.stash_noop = False
        self.stash: list[str] = []
        self.applied: list[tuple[str, str | None]] = []
        self.fail: dict[str, str] = {}
        self.apply_fail_paths: set[str] = set()
        self.merged: dict[str, list[str]] = {}
        self.content_merged: dict[str, list[str]] = {}
        self.calls: list[list[str]] = []
        self._stash_seq = 0

    def run(self, args: list[str]) -> bytes:
        self.calls.append(list(args))
        cwd: str | None = None
        if args[:1] == ["-C"]:
            cwd, args = args[1], args[2:]
        key = " ".join(args[:2])
        if key in self.fail:
            self._raise(args, self.fail[key])

        if args[0] == "rev-parse":
            return self._rev_parse(args)
        if key == "worktree list":
            return self._porcelain().encode()
        if key == "worktree add":
            return self._worktree_add(args)
        if key == "worktree remove":
            path = args[-1]
            self.worktrees = [w for w in self.worktrees if w[0] != path]
            if self.fs is not None:
                self.fs.remove_tree(path)
            return b""
        if args[0] == "branch" and args[1] in ("-d", "-D"):
            self.branches.discard(args[2])
            return f"Deleted branch {args[2]}\n".encode()
        if key == "branch --merged":
            return "".join(f"{b}\n" for b in self.merged.get(args[2], [])).encode()
        if key == "status --porcelain":
            return b" M tracked.txt\n" if self.has_changes else b""
        if key == "stash push":
            if self.stash_noop:
                return b"No local changes to save\n"
            self._stash_seq += 1
            self.stash.insert(0, f"stash{self._stash_seq}")
            return b""
        if key == "stash apply":
            if cwd in self.apply_fail_paths:
                self._raise(args, "error: could not apply stash")
            self.applied.append((args[2], cwd))
            return b""
        if key == "stash list":
            return "".join(f"{s}\n" for s in self.stash).encode()
        if key == "stash pop":
            index = int(args[2].removeprefix("stash@{").removesuffix("}"))
            self.stash.pop(index)
            return b""
        if key == "diff --name-only":
            target, branch = args[2], args[3]
            return b"" if branch in self.content_merged.get(target, []) else b"file.txt\n"
        raise AssertionError(f"unexpected git args: {args}")

    def mutation_calls(self) -> list[list[str]]:
        reads = {"worktree list", "rev-parse --verify", "status --porcelain", "stash list"}
        return [c for c in self.calls if " ".join(c[:2]) not in reads]

    def count(self, key: str) -> int:
        return sum(1 for c in self.calls if " ".join(c[2:4] if c[:1] == ["-C"] else c[:2]) == key)

    def _rev_parse(self, args: list[str]) -> bytes:
        ref = args[-1]
        if ref == "refs/stash" and self.stash:
            return f"{self.stash[0]}\n".encode()
        if ref.startswith("refs/heads/") and ref.removeprefix("refs/heads/") in self.branches:
            return b"0123456789abcdef\n"
        self._raise(args, "fatal: Needed a single revision")
        return b""

    def _worktree_add(self, args: list[str]) -> bytes:
        if args[2] == "-b":
            branch, path = args[3], args[4]
            if branch in self.branches:
                self._raise(args, f"fatal: a branch named '{branch}' already exists")
            self.branches.add(branch)
        else:
            path, branch = args[2], args[3]
            if any(b == branch for _, b in self.worktrees):
                self._raise(args, f"fatal: '{branch}' is already checked out")
        self.worktrees.append((path, branch))
        if self.fs is not None:
            self.fs.existing.add(path)
        return f"Preparing worktree (branch '{branch}')\n".encode()

    def _porcelain(self) -> str:
        records = []
        for path, branch in self.worktrees:
            lines = [f"worktree {path}", "HEAD 0123456789abcdef"]
            lines.append(f"branch refs/heads/{branch}" if branch else "detached")
            records.append("\n".join(lines) + "\n")
        return "\n".join(records)

    def _raise(self, args: list[str], stderr: str) -> None:
        raise AdapterError.from_command(args, returncode=128, stderr=stderr.encode(), stdout=b"")


@pytest.fixture
def fake_fs() -> FakeFS:
    return FakeFS()


@pytest.fixture
def fake_git(fake_fs: FakeFS) -> FakeGitExecutor:
    return FakeGitExecutor(fs=fake_fs)
