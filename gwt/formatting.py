"""Result text shared by the add, remove and init commands.

Commands return a `FormatResult` and the CLI writes it; nothing here touches a stream.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import InputError

PRINT_FIELDS = ("path",)


@dataclass(frozen=True)
class FormatResult:
    stdout: str = ""
    stderr: str = ""


def validate_print_fields(fields: list[str]) -> None:
    """Reject `--print` fields other than the supported ones."""
    for field in fields:
        if field not in PRINT_FIELDS:
            raise InputError(f"invalid --print field {field!r} (valid: {', '.join(PRINT_FIELDS)})")
