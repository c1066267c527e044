# SPDX-License-Identifier: MIT
"""Pre-flight checks over a project tree.

- snapshot: read-only scan of files, tools and variable names
- preflight: pure validation of a snapshot, grouped for display
"""

from mr.services.checkers.base import CheckResult, CheckStatus
from mr.services.checkers.preflight import CheckGroup, PreflightReport, validate_project
from mr.services.checkers.snapshot import ProjectSnapshot, scan_project

__all__ = [
    # Result types
    "CheckResult",
    "CheckStatus",
    "CheckGroup",
    "PreflightReport",
    # Scanning and validation
    "ProjectSnapshot",
    "scan_project",
    "validate_project",
]
