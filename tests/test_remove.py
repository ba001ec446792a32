from __future__ import annotations

from pathlib import Path

import pytest

from gwt.config import Config
from gwt.errors import AdapterError, ConfigError, InputError, NotFound, UnsafeOperation
from gwt.git_ops import GitRunner
from gwt.remove import RemoveCommand, RemoveOptions, RemoveResult, is_within

WT = "/repo/worktrees/feature/x"
CONFIG = Config(source_dir=Path("/repo/main"), dest_base_dir=Path("/repo/worktrees"))


@pytest.fixture
def git_with_worktree(fake_git):
    fake_git.branches.add("feature/x")
    fake_git.worktrees.append((WT, "feature/x"))
    return fake_git


def _command(fake_git, config: Config = CONFIG) -> RemoveCommand:
    return RemoveCommand(git=GitRunner(executor=fake_git), config=config)


def test_removes_worktree_then_deletes_branch(git_with_worktree) -> None:
    result = _command(git_with_worktree).run("feature/x", Path("/repo/main"))

    assert result.removed is True
    assert result.worktree_path == Path(WT)
    assert git_with_worktree.mutation_calls() == [
        ["worktree", "remove", WT],
        ["branch", "-d", "feature/x"],
    ]
    assert "feature/x" not in git_with_worktree.branches


def test_force_applies_to_both_steps(git_with_worktree) -> None:
    _command(git_with_worktree).run("feature/x", Path("/repo/main"), RemoveOptions(force=True))

    assert git_with_worktree.mutation_calls() == [
        ["worktree", "remove", "-f", WT],
        ["branch", "-D", "feature/x"],
    ]


def test_dry_run_reports_without_mutating(git_with_worktree) -> None:
    result = _command(git_with_worktree).run("feature/x", Path("/repo/main"), RemoveOptions(dry_run=True))

    assert result.dry_run is True
    assert result.removed is False
    assert git_with_worktree.mutation_calls() == []
    assert result.format().stdout == f"Would remove worktree: {WT}\nWould delete branch: feature/x\n"


@pytest.mark.parametrize("cwd", [WT, f"{WT}/src/pkg"])
def test_refuses_when_cwd_is_inside_worktree(git_with_worktree, cwd: str) -> None:
    with pytest.raises(UnsafeOperation, match="current directory is inside worktree"):
        _command(git_with_worktree).run("feature/x", Path(cwd))

    assert git_with_worktree.mutation_calls() == []


def test_sibling_directory_sharing_a_prefix_is_not_inside(git_with_worktree) -> None:
    result = _command(git_with_worktree).run("feature/x", Path("/repo/worktrees/feature/xyz"))

    assert result.removed is True


def test_unknown_branch_is_not_found(fake_git) -> None:
    with pytest.raises(NotFound, match="not checked out in any worktree"):
        _command(fake_git).run("nope", Path("/repo/main"))


def test_worktree_remove_failure_stops_before_branch_delete(git_with_worktree) -> None:
    git_with_worktree.fail["worktree remove"] = "fatal: contains modified or untracked files"

    with pytest.raises(AdapterError, match="modified or untracked"):
        _command(git_with_worktree).run("feature/x", Path("/repo/main"))

    assert git_with_worktree.count("branch -d") == 0


def test_branch_delete_failure_propagates(git_with_worktree) -> None:
    git_with_worktree.fail["branch -d"] = "error: the branch 'feature/x' is not fully merged"

    with pytest.raises(AdapterError, match="not fully merged"):
        _command(git_with_worktree).run("feature/x", Path("/repo/main"))

    assert git_with_worktree.count("worktree remove") == 1


def test_validates_input_and_config(fake_git) -> None:
    with pytest.raises(InputError, match="branch name is required"):
        _command(fake_git).run("", Path("/repo/main"))
    with pytest.raises(ConfigError):
        _command(fake_git, Config(source_dir=None, dest_base_dir=None)).run("feature/x", Path("/repo/main"))
    assert fake_git.calls == []


def test_format_default_and_verbose() -> None:
    result = RemoveResult(branch="feat", worktree_path=Path("/wt/feat"), removed=True, git_output=b"Deleted branch feat\n")

    assert result.format().stdout == "gwt remove: feat\n"
    assert result.format(verbose=True).stdout == (
        "Removed worktree: /wt/feat\nDeleted branch: feat\nDeleted branch feat\ngwt remove: feat\n"
    )


@pytest.mark.parametrize(
    ("path", "root", "expected"),
    [
        ("/a/b", "/a/b", True),
        ("/a/b/c", "/a/b", True),
        ("/a/bc", "/a/b", False),
        ("/a", "/a/b", False),
    ],
)
def test_is_within(path: str, root: str, expected: bool) -> None:
    assert is_within(Path(path), Path(root)) is expected
