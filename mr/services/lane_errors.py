"""Typed lane failures.

Each lane step either completes or raises one of these. The executor stamps
the failing step name onto the error before it is reported.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Literal

__all__ = [
    "ConfigurationError",
    "CredentialDecodeError",
    "LaneError",
    "PublishError",
    "PublishFailureReason",
    "ScriptPermissionError",
    "ToolchainError",
]


class LaneError(Exception):
    """Base class for every failure a lane can surface."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.step: str | None = None

    def at_step(self, step: str) -> LaneError:
        if self.step is None:
            self.step = step
        return self

    @property
    def diagnostic(self) -> str | None:
        """Captured tool output, when the failure came from an external process."""
        return None


class ConfigurationError(LaneError):
    """One or more required variables are missing or invalid.

    ``missing`` lists every absent variable name, never just the first one.
    """

    def __init__(
        self,
        *,
        missing: Sequence[str] = (),
        problems: Sequence[str] = (),
        hint: str | None = None,
    ) -> None:
        self.missing = tuple(missing)
        self.problems = tuple(problems)
        parts: list[str] = []
        if self.missing:
            parts.append(f"missing required variables: {', '.join(self.missing)}")
        parts.extend(self.problems)
        super().__init__("; ".join(parts) or "invalid configuration", hint=hint)


class CredentialDecodeError(LaneError):
    def __init__(self, *, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(
            f"{source}: cannot decode credential ({reason})",
            hint=f"Store the output of `base64 -w0 <file>` in {source}",
        )


class ScriptPermissionError(LaneError):
    """A build script lacks execute permission and chmod did not fix it."""

    def __init__(self, *, path: Path) -> None:
        self.path = path
        super().__init__(
            f"{path} is not executable",
            hint=f"Run: chmod +x {path}",
        )


class ToolchainError(LaneError):
    def __init__(
        self,
        *,
        tool: str,
        command: Sequence[str],
        returncode: int,
        output: str,
        hint: str | None = None,
    ) -> None:
        self.tool = tool
        self.command = tuple(command)
        self.returncode = returncode
        self.output = output
        super().__init__(f"{tool} failed (exit {returncode})", hint=hint)

    @property
    def diagnostic(self) -> str | None:
        return self.output or None


PublishFailureReason = Literal[
    "authentication",
    "duplicate_version",
    "unregistered_identifier",
    "unsigned_artifact",
    "unknown",
]


class PublishError(LaneError):
    def __init__(
        self,
        *,
        channel: str,
        reason: PublishFailureReason,
        output: str,
        hint: str | None = None,
    ) -> None:
        self.channel = channel
        self.reason = reason
        self.output = output
        super().__init__(f"upload to {channel} rejected ({reason.replace('_', ' ')})", hint=hint)

    @property
    def diagnostic(self) -> str | None:
        return self.output or None
