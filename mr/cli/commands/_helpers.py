"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING

import typer

from mr.core.errors import ErrorCode
from mr.core.result import Err, Result
from mr.output.console import Style

if TYPE_CHECKING:
    from mr.output.console import ConsoleProtocol


PROJECT_HELP = "Project root (default: detected from the current directory)"


def exit_on_error[T, E](
    result: Result[T, E],
    console: ConsoleProtocol,
    error_code: ErrorCode = ErrorCode.ENV_ERROR,
) -> T:
    """Return the value of ``result``, or print its error and exit.

    Expects error objects to have a 'message' and optional 'hint' attribute.
    """
    if isinstance(result, Err):
        error = result.error
        message: str = getattr(error, "message", str(error))
        hint: str | None = getattr(error, "hint", None)
        console.error(message)
        if hint:
            console.print(f"hint: {hint}", Style.DIM)
        raise typer.Exit(code=int(error_code))
    return result.value
