"""Lane run reports.

A report records every attempted step, the terminal state and, on failure,
the typed error with the step it happened in. The JSON rendering carries
names and messages only; secret values never reach it because every message
that could contain tool output has already been redacted.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from mr.services.lane_errors import ConfigurationError, LaneError, PublishError, ToolchainError
from mr.services.model import BuildArtifact, Lane, LaneState, VersionIdentifier
from mr.services.publisher import PublishReceipt

__all__ = ["LaneReport", "StepRecord", "render_report"]

StepStatus = Literal["ok", "failed"]


@dataclass(frozen=True, slots=True)
class StepRecord:
    name: str
    status: StepStatus
    duration: float
    error: str | None = None

    @classmethod
    def succeeded(cls, name: str, started: float) -> StepRecord:
        return cls(name=name, status="ok", duration=time.monotonic() - started)

    @classmethod
    def failed(cls, name: str, started: float, error: LaneError) -> StepRecord:
        return cls(
            name=name,
            status="failed",
            duration=time.monotonic() - started,
            error=error.message,
        )


def _empty_steps() -> list[StepRecord]:
    return []


def _empty_warnings() -> list[str]:
    return []


@dataclass(slots=True)
class LaneReport:
    lane: Lane
    dry_run: bool = False
    state: LaneState = LaneState.PENDING
    steps: list[StepRecord] = field(default_factory=_empty_steps)
    version: VersionIdentifier | None = None
    artifact: BuildArtifact | None = None
    receipt: PublishReceipt | None = None
    warnings: list[str] = field(default_factory=_empty_warnings)
    error: LaneError | None = None
    report_path: Path | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.state is not LaneState.FAILED

    @property
    def failed_step(self) -> str | None:
        return self.error.step if self.error is not None else None

    def summary(self) -> str:
        """One line for the operator."""
        if self.error is not None:
            return f"{self.lane.name} failed at {self.failed_step}: {self.error.message}"
        parts = [f"{self.lane.name} {self.state}"]
        if self.version is not None:
            parts.append(f"version {self.version}")
        if self.receipt is not None:
            parts.append(self.receipt.channel)
        if self.dry_run:
            parts.append("dry run")
        return ", ".join(parts)


def render_report(report: LaneReport) -> str:
    payload: dict[str, object] = {
        "lane": report.lane.name,
        "platform": str(report.lane.platform),
        "mode": str(report.lane.mode),
        "state": str(report.state),
        "dry_run": report.dry_run,
        "version": _version_payload(report.version),
        "artifact": _artifact_payload(report.artifact),
        "publish": None,
        "steps": [
            {
                "name": s.name,
                "status": s.status,
                "duration": round(s.duration, 3),
                **({"error": s.error} if s.error is not None else {}),
            }
            for s in report.steps
        ],
        "warnings": list(report.warnings),
        "error": _error_payload(report.error),
    }
    if report.receipt is not None:
        payload["publish"] = {"channel": report.receipt.channel, "detail": report.receipt.detail}
    return json.dumps(payload, indent=2) + "\n"


def _version_payload(version: VersionIdentifier | None) -> dict[str, object] | None:
    if version is None:
        return None
    return {"name": version.name, "code": version.code}


def _artifact_payload(artifact: BuildArtifact | None) -> dict[str, object] | None:
    if artifact is None:
        return None
    return {"path": str(artifact.path), "signed": artifact.signed}


def _error_payload(error: LaneError | None) -> dict[str, object] | None:
    if error is None:
        return None
    payload: dict[str, object] = {
        "type": type(error).__name__,
        "step": error.step,
        "message": error.message,
    }
    if error.hint:
        payload["hint"] = error.hint
    match error:
        case ConfigurationError(missing=missing) if missing:
            payload["missing"] = list(missing)
        case ToolchainError(tool=tool, returncode=returncode):
            payload["tool"] = tool
            payload["returncode"] = returncode
        case PublishError(reason=reason, output=output):
            payload["reason"] = reason
            if output:
                payload["diagnostic"] = output
        case _:
            pass
    return payload
