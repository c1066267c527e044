# SPDX-License-Identifier: MIT
"""Base types for pre-flight checks."""

from dataclasses import dataclass
from enum import Enum, auto


class CheckStatus(Enum):
    """Status of a check result."""

    OK = auto()
    """Check passed."""

    WARNING = auto()
    """The build may still work (generated directory missing, optional variable unset)."""

    ERROR = auto()
    """The build should not proceed."""


@dataclass(frozen=True, slots=True)
class CheckResult:
    """Result of a single check.

    Attributes:
        name: What was checked (e.g., "node", "android/gradlew")
        status: Whether the check passed, warned, or failed
        message: Human-readable result message
        hint: Optional command that fixes the problem
    """

    name: str
    status: CheckStatus
    message: str
    hint: str | None = None

    @property
    def ok(self) -> bool:
        """Return True if check passed (OK or WARNING)."""
        return self.status != CheckStatus.ERROR

    @property
    def is_error(self) -> bool:
        return self.status == CheckStatus.ERROR

    @property
    def is_warning(self) -> bool:
        return self.status == CheckStatus.WARNING

    def describe(self) -> str:
        """``name: message``, with the hint appended when there is one."""
        text = f"{self.name}: {self.message}"
        if self.hint:
            text += f" ({self.hint})"
        return text

    @classmethod
    def success(cls, name: str, message: str) -> "CheckResult":
        return cls(name=name, status=CheckStatus.OK, message=message)

    @classmethod
    def warning(cls, name: str, message: str, hint: str | None = None) -> "CheckResult":
        return cls(name=name, status=CheckStatus.WARNING, message=message, hint=hint)

    @classmethod
    def error(cls, name: str, message: str, hint: str | None = None) -> "CheckResult":
        return cls(name=name, status=CheckStatus.ERROR, message=message, hint=hint)
