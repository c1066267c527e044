"""Application services for the mobile release CLI.

Services implement the release lanes, coordinating between the domain layer
(core/) and infrastructure (platform/, external build tools).
"""

from mr.services.checkers import CheckResult, CheckStatus, PreflightReport, validate_project
from mr.services.lane_errors import (
    ConfigurationError,
    CredentialDecodeError,
    LaneError,
    PublishError,
    ScriptPermissionError,
    ToolchainError,
)
from mr.services.lanes import LaneExecutor
from mr.services.report import LaneReport

__all__ = [
    # Result types
    "CheckResult",
    "CheckStatus",
    "LaneReport",
    "PreflightReport",
    # Errors
    "LaneError",
    "ConfigurationError",
    "CredentialDecodeError",
    "ScriptPermissionError",
    "ToolchainError",
    "PublishError",
    # Services
    "LaneExecutor",
    "validate_project",
]
