"""Error presentation utilities.

Centralized lane error formatting and exit code mapping for consistent UX.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from mr.core.errors import ErrorCode
from mr.output.console import Style
from mr.platform.process import TAIL_LINES, tail_text
from mr.services.lane_errors import (
    ConfigurationError,
    CredentialDecodeError,
    LaneError,
    PublishError,
    ScriptPermissionError,
    ToolchainError,
)

if TYPE_CHECKING:
    from mr.output.console import ConsoleProtocol

__all__ = ["lane_error_exit_code", "print_lane_error"]


def print_lane_error(error: LaneError, console: ConsoleProtocol) -> None:
    """Print a lane failure: step, message, missing names, hint, tool output."""
    prefix = f"[{error.step}] " if error.step else ""
    match error:
        case ConfigurationError(missing=missing, problems=problems) if missing:
            console.error(f"{prefix}missing required variables:")
            for name in missing:
                console.print(f"  - {name}", Style.ERROR)
            for problem in problems:
                console.error(f"{prefix}{problem}")
        case _:
            console.error(f"{prefix}{error.message}")

    diagnostic = error.diagnostic
    if diagnostic:
        omitted = len(diagnostic.splitlines()) - TAIL_LINES
        if omitted > 0:
            console.print(f"... {omitted} earlier lines omitted", Style.DIM)
        console.print(tail_text(diagnostic), Style.DIM)
    if error.hint:
        console.print(f"hint: {error.hint}", Style.DIM)


def lane_error_exit_code(error: LaneError) -> int:
    """Get exit code for a lane error."""
    match error:
        case ConfigurationError():
            return int(ErrorCode.ENV_ERROR)
        case CredentialDecodeError():
            return int(ErrorCode.USER_ERROR)
        case ScriptPermissionError():
            return int(ErrorCode.IO_ERROR)
        case ToolchainError():
            return int(ErrorCode.BUILD_ERROR)
        case PublishError():
            return int(ErrorCode.NETWORK_ERROR)
        case _:
            return int(ErrorCode.USER_ERROR)
