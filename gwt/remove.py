"""Remove pipeline: tear down a worktree and delete its branch.

Order matters: the worktree is removed first, then the branch is deleted (git refuses to
delete a branch that is still checked out). Either step's failure stops the sequence and
propagates unchanged; nothing is undone.

Safety: the caller's working directory must not be the worktree or anything inside it.
Without `force`, git itself refuses dirty worktrees and unmerged branches.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .config import Config
from .errors import InputError, UnsafeOperation
from .formatting import FormatResult
from .git_ops import BranchDeleteOptions, GitRunner, WorktreeRemoveOptions


@dataclass(frozen=True)
class RemoveOptions:
    force: bool = False
    dry_run: bool = False


@dataclass
class RemoveResult:
    branch: str
    worktree_path: Path
    dry_run: bool = False
    removed: bool = False
    git_output: bytes = b""

    def format(self, *, verbose: bool = False) -> FormatResult:
        if self.dry_run:
            return FormatResult(
                stdout=f"Would remove worktree: {self.worktree_path}\nWould delete branch: {self.branch}\n"
            )
        lines: list[str] = []
        if verbose:
            lines.append(f"Removed worktree: {self.worktree_path}")
            lines.append(f"Deleted branch: {self.branch}")
            git_text = self.git_output.decode("utf-8", errors="replace").rstrip()
            if git_text:
                lines.append(git_text)
        lines.append(f"gwt remove: {self.branch}")
        return FormatResult(stdout="".join(f"{line}\n" for line in lines))


def is_within(path: Path, root: Path) -> bool:
    try:
        Path(path).resolve().relative_to(Path(root).resolve())
    except ValueError:
        return False
    return True


class RemoveCommand:
    def __init__(self, *, git: GitRunner, config: Config) -> None:
        self.git = git
        self.config = config

    def run(self, branch: str, cwd: Path, opts: RemoveOptions = RemoveOptions()) -> RemoveResult:
        """Remove the worktree for `branch` and delete the branch.

        `cwd` is the caller's absolute working directory, passed in rather than read from
        the process so the check is explicit.
        """
        if not branch.strip():
            raise InputError("branch name is required")
        self.config.require_source()

        wt_path = self.git.worktree_find_by_branch(branch)
        if is_within(cwd, wt_path):
            raise UnsafeOperation(f"cannot remove: current directory is inside worktree {wt_path}")

        result = RemoveResult(branch=branch, worktree_path=wt_path, dry_run=opts.dry_run)
        if opts.dry_run:
            return result

        out = self.git.worktree_remove(wt_path, WorktreeRemoveOptions(force=opts.force))
        out += self.git.branch_delete(branch, BranchDeleteOptions(force=opts.force))
        result.git_output = out
        result.removed = True
        return result
