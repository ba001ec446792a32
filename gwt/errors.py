"""Exception taxonomy for gwt.

Every failure the core reports derives from `GwtError`, so the CLI can catch one type and
print `error: <message>`. Subclasses name the failure class rather than the component that
raised it:

- `InputError`: missing/invalid arguments; raised before any side effect.
- `ConfigError`: required configuration absent or malformed.
- `AdapterError`: a git primitive failed; the message carries git's own diagnostic.
- `LinkError`: filesystem failure while materializing symlinks.
- `UnsafeOperation`: a safety invariant would be violated (e.g. removing the worktree the
  caller is standing in).
- `NotFound`: a lookup found nothing (e.g. a branch with no worktree).
"""

from __future__ import annotations

from collections.abc import Sequence


class GwtError(RuntimeError):
    """Base exception for gwt failures."""


class InputError(GwtError):
    pass


class ConfigError(GwtError):
    pass


class LinkError(GwtError):
    pass


class UnsafeOperation(GwtError):
    pass


class NotFound(GwtError):
    pass


class AdapterError(GwtError):
    """Raised when an underlying git command fails or its output cannot be trusted."""

    def __init__(
        self,
        message: str,
        *,
        argv: Sequence[str] = (),
        stderr: bytes = b"",
        stdout: bytes = b"",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.argv = list(argv)
        self.stderr = stderr
        self.stdout = stdout

    @classmethod
    def from_command(cls, argv: Sequence[str], *, returncode: int, stderr: bytes, stdout: bytes) -> "AdapterError":
        details = stderr.decode("utf-8", errors="replace").strip() or stdout.decode("utf-8", errors="replace").strip()
        suffix = f": {details}" if details else f" (exit {returncode})"
        return cls(f"git {' '.join(argv)} failed{suffix}", argv=argv, stderr=stderr, stdout=stdout)

    def prefixed(self, prefix: str) -> "AdapterError":
        """Return a copy whose message reads `<prefix>: <original message>`."""
        return AdapterError(f"{prefix}: {self.message}", argv=self.argv, stderr=self.stderr, stdout=self.stdout)

    def __str__(self) -> str:
        return self.message
