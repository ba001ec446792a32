"""Add pipeline: create worktrees for one or more branches.

`AddCommand.run(branches)` walks a small state machine per invocation:

    Idle -> (TransactionOpen) -> per-branch x N -> (TransactionClosed) -> Done

1. Validate input and configuration (no side effects on failure).
2. When `sync` is requested and the source tree has uncommitted changes, stash them once
   (`StashTransaction.open`). Files matched by the symlink patterns are excluded from the
   stash so they can still be linked. If git stashes nothing the transaction stays closed.
   A failed push aborts the whole batch before any worktree is created.
3. For each branch, independently:
   - refuse if `<dest_base_dir>/<branch>` already exists (no git calls for that branch);
   - for an existing branch, refuse if it is checked out in any worktree, else add a
     worktree for it; for a new branch, add the worktree with `-b`;
   - with an open transaction, apply the stash inside the new worktree. If that fails the
     just-created worktree is force-removed (rollback) and the branch records an error;
   - link support files (`materialize_symlinks`). A link failure is recorded but the
     worktree is kept since it is usable.
4. Pop the stash exactly once after every branch has been processed, however many failed.
   A pop failure does not fail the batch; it is returned in `AddBatchResult.warnings`
   because the entry stays on the stash stack and needs manual attention.

Per-branch failures never stop later branches and never close the transaction early.
With `max_parallel > 1` the per-branch step runs in a thread pool; the pop still happens
after the pool is joined and results keep the input order.

Branch names with `/` produce nested directories: `feature/x` -> `<base>/feature/x`.
"""

from __future__ import annotations

import sys
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from .config import Config
from .errors import AdapterError, GwtError, InputError, LinkError
from .formatting import FormatResult
from .fs import FileSystem, path_exists
from .git_ops import GitRunner, WorktreeAddOptions, WorktreeRemoveOptions
from .symlinks import SymlinkResult, materialize_symlinks

STASH_LABEL = "gwt sync"


@dataclass
class AddResult:
    branch: str
    worktree_path: Path | None = None
    git_output: bytes = b""
    symlinks: list[SymlinkResult] = field(default_factory=list)
    changes_synced: bool = False

    def created_symlinks(self) -> list[SymlinkResult]:
        return [s for s in self.symlinks if not s.skipped]

    def format(self, opts: "AddFormatOptions") -> FormatResult:
        if opts.print_fields:
            return FormatResult(stdout=f"{self.worktree_path}\n")

        lines: list[str] = []
        if opts.verbose:
            lines.append(f"Created worktree at {self.worktree_path}")
            git_text = self.git_output.decode("utf-8", errors="replace").rstrip()
            if git_text:
                lines.append(git_text)
            if self.changes_synced:
                lines.append("Synced uncommitted changes")
            for s in self.symlinks:
                if s.skipped:
                    lines.append(f"Skipped symlink: {s.src} ({s.reason})")
                else:
                    lines.append(f"Created symlink: {s.dst} -> {s.src}")
        lines.append(f"gwt add: {self.branch} ({len(self.created_symlinks())} symlinks)")
        return FormatResult(stdout="".join(f"{line}\n" for line in lines))


@dataclass(frozen=True)
class AddFormatOptions:
    verbose: bool = False
    print_fields: tuple[str, ...] = ()


@dataclass
class AddedWorktree:
    result: AddResult
    error: Exception | None = None


@dataclass
class AddBatchResult:
    added: list[AddedWorktree] = field(default_factory=list)
    changes_synced: bool = False
    warnings: list[str] = field(default_factory=list)

    def has_errors(self) -> bool:
        return any(a.error is not None for a in self.added)

    def error_count(self) -> int:
        return sum(1 for a in self.added if a.error is not None)

    def format(self, opts: AddFormatOptions) -> FormatResult:
        stdout: list[str] = []
        stderr: list[str] = []
        for item in self.added:
            if item.error is not None:
                # print mode emits paths only
                if not opts.print_fields:
                    stderr.append(f"error: {item.result.branch}: {item.error}\n")
                continue
            stdout.append(item.result.format(opts).stdout)
        for warning in self.warnings:
            stderr.append(f"warning: {warning}\n")
        return FormatResult(stdout="".join(stdout), stderr="".join(stderr))


class StashTransaction:
    """One stash push shared by a batch, applied per worktree and popped exactly once."""

    def __init__(self, git: GitRunner, *, enabled: bool, exclude: Sequence[str] = ()) -> None:
        self.git = git
        self.enabled = enabled
        self.exclude = list(exclude)
        self.stash_id: str | None = None
        self.closed = False

    @property
    def opened(self) -> bool:
        return self.stash_id is not None

    def open(self) -> bool:
        if not self.enabled or self.opened:
            return self.opened
        if not self.git.has_changes():
            return False
        try:
            self.stash_id = self.git.stash_push(STASH_LABEL, exclude=self.exclude)
        except AdapterError as exc:
            raise exc.prefixed("failed to stash changes") from exc
        return self.opened

    def apply(self, path: Path) -> None:
        if not self.opened or self.closed:
            raise RuntimeError("stash transaction is not open")
        assert self.stash_id is not None
        self.git.stash_apply(self.stash_id, cwd=path)

    def close(self) -> str | None:
        """Pop the stash. Returns a warning message instead of raising on failure."""
        if not self.opened or self.closed:
            return None
        self.closed = True
        assert self.stash_id is not None
        try:
            self.git.stash_pop(self.stash_id)
        except AdapterError as exc:
            return f"failed to restore stashed changes ({self.stash_id}); run 'git stash pop' manually: {exc}"
        return None


@dataclass
class AddCommand:
    fs: FileSystem
    git: GitRunner
    config: Config
    sync: bool = False
    max_parallel: int = 1

    def run(self, branches: list[str]) -> AddBatchResult:
        if not branches:
            raise InputError("at least one branch name is required")
        if any(not b.strip() for b in branches):
            raise InputError("branch name is required")
        self.config.require_source()
        self.config.require_dest()

        txn = StashTransaction(self.git, enabled=self.sync, exclude=self._link_sources() if self.sync else ())
        txn.open()

        batch = AddBatchResult(changes_synced=txn.opened)
        try:
            batch.added = self._add_all(branches, txn)
        finally:
            warning = txn.close()
            if warning:
                batch.warnings.append(warning)
        return batch

    def _link_sources(self) -> list[str]:
        """Relative paths the symlink step will link; the stash leaves them in place."""
        assert self.config.source_dir is not None
        found: list[str] = []
        for pattern in self.config.symlinks:
            for match in self.fs.glob(self.config.source_dir, pattern):
                if match not in found:
                    found.append(match)
        return found

    def _add_all(self, branches: list[str], txn: StashTransaction) -> list[AddedWorktree]:
        if self.max_parallel <= 1 or len(branches) == 1:
            return [self._add_one(b, txn) for b in branches]
        workers = min(self.max_parallel, len(branches))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(lambda b: self._add_one(b, txn), branches))

    def _add_one(self, branch: str, txn: StashTransaction) -> AddedWorktree:
        assert self.config.dest_base_dir is not None
        wt_path = self.config.dest_base_dir / branch
        result = AddResult(branch=branch, worktree_path=wt_path)
        try:
            self._create_worktree(result)
        except GwtError as exc:
            return AddedWorktree(result=result, error=exc)

        if txn.opened:
            try:
                txn.apply(wt_path)
            except AdapterError as exc:
                return AddedWorktree(result=result, error=self._rollback(wt_path, exc))
            result.changes_synced = True

        assert self.config.source_dir is not None
        try:
            result.symlinks = materialize_symlinks(self.fs, self.config.source_dir, wt_path, self.config.symlinks)
        except LinkError as exc:
            return AddedWorktree(result=result, error=exc)
        return AddedWorktree(result=result)

    def _create_worktree(self, result: AddResult) -> None:
        branch = result.branch
        path = result.worktree_path
        assert path is not None
        if path_exists(self.fs, path):
            raise InputError(f"directory already exists: {path}")

        if self.git.branch_exists(branch):
            if branch in self.git.worktree_list_branches():
                raise InputError(f"branch {branch} is already checked out in another worktree")
            opts = WorktreeAddOptions()
        else:
            opts = WorktreeAddOptions(create_branch=True, base=self.config.default_source)

        try:
            result.git_output = self.git.worktree_add(path, branch, opts)
        except AdapterError as exc:
            raise exc.prefixed("failed to create worktree") from exc

    def _rollback(self, path: Path, cause: AdapterError) -> AdapterError:
        err = cause.prefixed("failed to apply changes")
        try:
            self.git.worktree_remove(path, WorktreeRemoveOptions(force=True))
        except AdapterError as exc:
            print(f"[gwt] rollback failed for {path}: {exc}", file=sys.stderr)
            return AdapterError(f"{err}; rollback also failed: {exc}", argv=err.argv, stderr=err.stderr)
        print(f"[gwt] rolled back worktree {path}", file=sys.stderr)
        return err
