"""gwt.cli

Command-line entrypoint for gwt.

Entry points
- `gwt.cli:main` (console script `gwt`)
- `python3 -m gwt ...` (delegates to this module)

Commands
- `gwt add BRANCH [BRANCH ...]`: create a worktree per branch under the configured
  destination base directory, creating branches that do not exist yet.
  - `--sync`: carry uncommitted changes of the source tree into every new worktree
    (one shared stash, popped back into the source tree afterwards).
  - `-v/--verbose`: per-step trace (worktree, synced changes, each symlink).
  - `--print path`: print only the worktree path of each successful branch, for scripts
    such as `cd "$(gwt add feat --print path)"`. Overrides `--verbose`.
  - `-j/--max-parallel N`: process up to N branches concurrently (default 1).
- `gwt remove BRANCH`: remove the branch's worktree, then delete the branch.
  - `-f/--force`: remove dirty worktrees and delete unmerged branches.
  - `--dry-run`: only report what would be removed.
- `gwt init`: write `.gwt/settings.toml` (`-f/--force` to overwrite).

Control directory
Commands operate relative to a control directory, which is:
- `-C DIR` when given, else
- `$GWT_CONTROL_ROOT` when set, else
- the current working directory.
Configuration is loaded from `<control dir>/.gwt/`. Git commands run against the
configured `worktree_source_dir`.

Exit status
- 0 on success.
- 1 when any branch of an `add` batch failed, or when a command raised a `GwtError`
  (printed as `error: <message>` on stderr).
- 2 for argument errors (argparse).
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from .add import AddCommand, AddFormatOptions
from .config import load_config
from .errors import GwtError
from .formatting import FormatResult, validate_print_fields
from .fs import OsFileSystem
from .git_ops import GitRunner
from .init import InitCommand, InitOptions
from .remove import RemoveCommand, RemoveOptions


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="gwt", description="Manage git worktrees with shared support files.")
    p.add_argument(
        "-C",
        dest="directory",
        default=None,
        help="Run as if gwt was started in this directory.",
    )
    sub = p.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", help="Create worktrees for one or more branches.")
    add.add_argument("branches", nargs="+", metavar="BRANCH")
    add.add_argument(
        "--sync",
        action="store_true",
        help="Carry uncommitted changes from the source tree into the new worktrees.",
    )
    add.add_argument("-v", "--verbose", action="store_true", help="Print every step.")
    add.add_argument(
        "--print",
        dest="print_fields",
        action="append",
        default=[],
        metavar="FIELD",
        help="Print only the given field per worktree (supported: path).",
    )
    add.add_argument(
        "-j",
        "--max-parallel",
        type=int,
        default=1,
        help="Maximum branches processed concurrently (default 1).",
    )

    remove = sub.add_parser("remove", help="Remove a worktree and delete its branch.")
    remove.add_argument("branch", metavar="BRANCH")
    remove.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Remove even with uncommitted changes and delete unmerged branches.",
    )
    remove.add_argument("--dry-run", action="store_true", help="Show what would be removed.")
    remove.add_argument("-v", "--verbose", action="store_true", help="Print every step.")

    init = sub.add_parser("init", help="Write .gwt/settings.toml.")
    init.add_argument("-f", "--force", action="store_true", help="Overwrite an existing settings file.")
    return p


def _control_root(arg: str | None) -> Path:
    if arg:
        return Path(arg).resolve()
    env = os.environ.get("GWT_CONTROL_ROOT")
    return (Path(env) if env else Path.cwd()).resolve()


def _emit(formatted: FormatResult) -> None:
    if formatted.stdout:
        sys.stdout.write(formatted.stdout)
    if formatted.stderr:
        sys.stderr.write(formatted.stderr)


def _run_add(args: argparse.Namespace, control_root: Path) -> int:
    validate_print_fields(args.print_fields)
    cfg = load_config(control_root)
    cmd = AddCommand(
        fs=OsFileSystem(),
        git=GitRunner.for_directory(cfg.require_source()),
        config=cfg,
        sync=bool(args.sync),
        max_parallel=max(1, int(args.max_parallel)),
    )
    batch = cmd.run(list(args.branches))
    _emit(batch.format(AddFormatOptions(verbose=bool(args.verbose), print_fields=tuple(args.print_fields))))
    return 1 if batch.has_errors() else 0


def _run_remove(args: argparse.Namespace, control_root: Path) -> int:
    cfg = load_config(control_root)
    cmd = RemoveCommand(git=GitRunner.for_directory(cfg.require_source()), config=cfg)
    result = cmd.run(args.branch, Path.cwd().resolve(), RemoveOptions(force=bool(args.force), dry_run=bool(args.dry_run)))
    _emit(result.format(verbose=bool(args.verbose)))
    return 0


def _run_init(args: argparse.Namespace, control_root: Path) -> int:
    result = InitCommand(fs=OsFileSystem()).run(control_root, InitOptions(force=bool(args.force)))
    _emit(result.format())
    return 0


_COMMANDS = {
    "add": _run_add,
    "remove": _run_remove,
    "init": _run_init,
}


def main(argv: list[str] | None = None) -> int:
    raw_argv = list(sys.argv[1:] if argv is None else argv)
    args = build_parser().parse_args(raw_argv)
    control_root = _control_root(args.directory)
    try:
        return _COMMANDS[args.command](args, control_root)
    except GwtError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
