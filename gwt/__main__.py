"""Allow `python -m gwt add feature/x` as an alias for the `gwt` console script."""

from __future__ import annotations

from .cli import main

if __name__ == "__main__":
    raise SystemExit(main())
