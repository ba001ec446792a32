"""Git operations and worktree management for gwt.

This module is the only place that knows git's command lines and output formats. It has
two layers:

- `GitExecutor`: the process capability. `run(args)` executes `git <args>` against one
  fixed repository directory and returns stdout as bytes, raising `AdapterError` (with
  git's stderr) on a non-zero exit. `SubprocessGitExecutor` is the real implementation and
  runs `git -C <directory> ...` so the process working directory is never changed.
- `GitRunner`: the adapter. Each method maps a domain intent onto one (occasionally two)
  git invocations and turns the textual output into a typed fact.

GitRunner API (public methods)
- `branch_exists(name) -> bool`
  `git rev-parse --verify refs/heads/<name>`. Any failure means "does not exist".
- `worktree_list_branches() -> list[str]`
  Branches checked out in any worktree, parsed from `git worktree list --porcelain`.
- `worktree_find_by_branch(branch) -> Path`
  Path of the worktree that has `branch` checked out; `NotFound` when none does.
- `worktree_add(path, branch, opts) -> bytes`
  `git worktree add <path> <branch>`, or `git worktree add -b <branch> <path> [<base>]`
  when `opts.create_branch` is set. Returns raw stdout for optional display.
- `worktree_remove(path, opts) -> bytes`
  `git worktree remove [-f] <path>`; without force git refuses dirty worktrees.
- `branch_delete(branch, opts) -> bytes`
  `git branch -d <branch>` (safe delete) or `-D` with force.
- `has_changes() / stash_push(label, exclude=...) / stash_apply(stash_id, cwd=...) / stash_pop(stash_id)`
  Minimal stash primitives used by the add pipeline's sync transaction.
- `is_branch_merged(branch, target) / is_branch_content_identical(branch, target)`
  Merge detection that also recognises squash merges.

Porcelain format
`git worktree list --porcelain` emits one record per worktree, records separated by a
blank line:

    worktree /path/to/main
    HEAD 1111111
    branch refs/heads/main

    worktree /path/to/detached
    HEAD 2222222
    detached

Only `branch refs/heads/<name>` lines name a branch; detached/bare/locked records carry no
branch and are skipped. A branch line that cannot be attributed (empty name, or no
`worktree` line earlier in its record) raises `AdapterError` instead of yielding a silently
wrong answer.

Nothing here retries; retries belong to callers.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence

from .errors import AdapterError, NotFound

_BRANCH_PREFIX = "branch refs/heads/"
_WORKTREE_PREFIX = "worktree "


class GitExecutor(Protocol):
    def run(self, args: list[str]) -> bytes: ...


class SubprocessGitExecutor:
    def __init__(self, *, directory: Path) -> None:
        self.directory = directory

    def run(self, args: list[str]) -> bytes:
        p = subprocess.run(
            ["git", "-C", str(self.directory), *args],
            capture_output=True,
            check=False,
        )
        if p.returncode != 0:
            raise AdapterError.from_command(args, returncode=p.returncode, stderr=p.stderr, stdout=p.stdout)
        return p.stdout


@dataclass(frozen=True)
class WorktreeAddOptions:
    create_branch: bool = False
    base: str | None = None


@dataclass(frozen=True)
class WorktreeRemoveOptions:
    force: bool = False


@dataclass(frozen=True)
class BranchDeleteOptions:
    force: bool = False


class GitRunner:
    def __init__(self, *, executor: GitExecutor) -> None:
        self.executor = executor

    @classmethod
    def for_directory(cls, directory: Path) -> "GitRunner":
        return cls(executor=SubprocessGitExecutor(directory=directory))

    def branch_exists(self, name: str) -> bool:
        try:
            self._git(["rev-parse", "--verify", f"refs/heads/{name}"])
        except AdapterError:
            return False
        return True

    def worktree_list_branches(self) -> list[str]:
        """Return branch names currently checked out in any worktree."""
        branches: list[str] = []
        for line in self._worktree_porcelain():
            if not line.startswith(_BRANCH_PREFIX):
                continue
            name = line.removeprefix(_BRANCH_PREFIX)
            if not name:
                raise AdapterError(f"unparseable worktree listing line: {line!r}")
            branches.append(name)
        return branches

    def worktree_find_by_branch(self, branch: str) -> Path:
        current_path: str | None = None
        for line in self._worktree_porcelain():
            if not line.strip():
                # End of one worktree record.
                current_path = None
                continue
            if line.startswith(_WORKTREE_PREFIX):
                current_path = line.removeprefix(_WORKTREE_PREFIX)
            elif line.startswith(_BRANCH_PREFIX) and line.removeprefix(_BRANCH_PREFIX) == branch:
                if not current_path:
                    raise AdapterError(f"worktree listing has branch {branch!r} without a worktree path")
                return Path(current_path)
        raise NotFound(f'branch "{branch}" is not checked out in any worktree')

    def worktree_add(self, path: Path, branch: str, opts: WorktreeAddOptions = WorktreeAddOptions()) -> bytes:
        if opts.create_branch:
            args = ["worktree", "add", "-b", branch, str(path)]
            if opts.base:
                args.append(opts.base)
        else:
            args = ["worktree", "add", str(path), branch]
        return self._git(args)

    def worktree_remove(self, path: Path, opts: WorktreeRemoveOptions = WorktreeRemoveOptions()) -> bytes:
        args = ["worktree", "remove"]
        if opts.force:
            args.append("-f")
        args.append(str(path))
        return self._git(args)

    def branch_delete(self, branch: str, opts: BranchDeleteOptions = BranchDeleteOptions()) -> bytes:
        flag = "-D" if opts.force else "-d"
        return self._git(["branch", flag, branch])

    def has_changes(self) -> bool:
        return bool(self._git(["status", "--porcelain"]).strip())

    def stash_push(self, label: str, *, exclude: Sequence[str] = ()) -> str | None:
        """Stash tracked and untracked changes; return the new stash commit id.

        Returns None when git stashed nothing (`refs/stash` did not move), e.g. when the
        only dirty paths are submodules or the excluded ones. `exclude` holds paths
        relative to the repository directory that stay in place.
        """
        before = self._stash_head()
        args = ["stash", "push", "--include-untracked", "-m", label]
        if exclude:
            args += ["--", ".", *(f":(exclude,literal){p}" for p in exclude)]
        self._git(args)
        after = self._stash_head()
        if after is None or after == before:
            return None
        return after

    def stash_apply(self, stash_id: str, *, cwd: Path) -> None:
        # -C is cumulative in git; an absolute path overrides the executor's directory.
        self._git(["-C", str(cwd), "stash", "apply", stash_id])

    def stash_pop(self, stash_id: str) -> None:
        out = self._git(["stash", "list", "--format=%H"]).decode("utf-8")
        ids = [line.strip() for line in out.splitlines() if line.strip()]
        if stash_id not in ids:
            raise AdapterError(f"stash entry {stash_id} is no longer on the stash stack")
        self._git(["stash", "pop", f"stash@{{{ids.index(stash_id)}}}"])

    def is_branch_merged(self, branch: str, target: str) -> bool:
        """True when `branch` is merged into `target`, including squash merges."""
        out = self._git(["branch", "--merged", target, "--format=%(refname:short)"]).decode("utf-8")
        if branch in {line.strip() for line in out.splitlines()}:
            return True
        return self.is_branch_content_identical(branch, target)

    def is_branch_content_identical(self, branch: str, target: str) -> bool:
        out = self._git(["diff", "--name-only", target, branch])
        return not out.strip()

    def _worktree_porcelain(self) -> list[str]:
        return self._git(["worktree", "list", "--porcelain"]).decode("utf-8").splitlines()

    def _stash_head(self) -> str | None:
        try:
            out = self._git(["rev-parse", "--verify", "refs/stash"])
        except AdapterError:
            return None
        return out.decode("utf-8").strip() or None

    def _git(self, args: list[str]) -> bytes:
        return self.executor.run(args)
