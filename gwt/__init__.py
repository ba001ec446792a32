"""gwt: git worktree lifecycle manager.

gwt layers auxiliary worktrees on one repository:

- `gwt add` creates a worktree per branch under a configured base directory (branch
  `feature/x` lands in `<base>/feature/x`), links untracked support files from the source
  tree, and can carry uncommitted changes across with one shared stash (`--sync`).
- `gwt remove` tears a worktree and its branch down, refusing to pull the directory out
  from under the caller.
- `gwt init` writes `.gwt/settings.toml`.

Modules
- `gwt.git_ops`: the git adapter; all command lines and porcelain parsing live here.
- `gwt.symlinks`: glob expansion and symlink creation under a skip policy.
- `gwt.add` / `gwt.remove`: orchestration of the two pipelines.
- `gwt.config`, `gwt.init`, `gwt.cli`: configuration, template writer, entrypoint.

Invariants
- Every run is stateless; only the repository itself is read and written.
- A batch add stashes at most once and pops at most once, whatever fails in between.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
