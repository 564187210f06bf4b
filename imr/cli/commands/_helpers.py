"""Shared helpers for CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

import typer

from imr.core.errors import ErrorCode
from imr.core.result import Err, Result
from imr.output.console import Style

if TYPE_CHECKING:
    from imr.cli.context import CLIContext


def exit_on_error[T, E](
    result: Result[T, E],
    ctx: CLIContext,
    error_code: ErrorCode = ErrorCode.BUILD_ERROR,
) -> None:
    """Exit with ``error_code`` if result is Err, otherwise return.

    Expects error objects to have 'message' and optional 'hint' attributes.
    """
    if isinstance(result, Err):
        error = result.error
        message: str = getattr(error, "message", str(error))
        hint: str | None = getattr(error, "hint", None)
        ctx.console.error(message)
        if hint:
            ctx.console.print(f"hint: {hint}", Style.DIM)
        raise typer.Exit(code=int(error_code))


def exit_with_code(code: int) -> NoReturn:
    raise typer.Exit(code=code)


def resolve_dir(ctx: CLIContext, path: Path | None) -> Path:
    """Resolve a user-supplied directory against the project root."""
    if path is None:
        return ctx.project.root
    expanded = path.expanduser()
    return expanded if expanded.is_absolute() else ctx.project.root / expanded
