"""Tests for lane reports."""

from __future__ import annotations

import json
import time
from pathlib import Path

from mr.services.lane_errors import ConfigurationError, PublishError, ToolchainError
from mr.services.model import AppPlatform, BuildArtifact, Lane, LaneMode, LaneState, VersionIdentifier
from mr.services.report import LaneReport, StepRecord, render_report

LANE = Lane(AppPlatform.ANDROID, LaneMode.RELEASE)


def test_step_records() -> None:
    started = time.monotonic()
    ok = StepRecord.succeeded("sign", started)
    error = ConfigurationError(missing=["ANDROID_KEY_ALIAS"])
    failed = StepRecord.failed("validate_environment", started, error)

    assert ok.status == "ok" and ok.error is None
    assert ok.duration >= 0
    assert failed.status == "failed"
    assert failed.error == "missing required variables: ANDROID_KEY_ALIAS"


def test_summary_success() -> None:
    report = LaneReport(lane=LANE, state=LaneState.PUBLISHED_DRAFT, version=VersionIdentifier("1.0.0", 7))

    assert report.ok
    assert report.summary() == "android-release published_draft, version 1.0.0 (7)"


def test_summary_failure_names_step() -> None:
    error = ToolchainError(tool="gradle", command=("gradlew",), returncode=1, output="boom").at_step("sign")
    report = LaneReport(lane=LANE, state=LaneState.FAILED, error=error)

    assert not report.ok
    assert report.failed_step == "sign"
    assert report.summary() == "android-release failed at sign: gradle failed (exit 1)"


def test_render_failure() -> None:
    error = ConfigurationError(missing=["ANDROID_KEYSTORE_PASSWORD", "ANDROID_KEY_PASSWORD"])
    error.at_step("validate_environment")
    report = LaneReport(
        lane=LANE,
        state=LaneState.FAILED,
        steps=[StepRecord("validate_environment", "failed", 0.01, error.message)],
        error=error,
    )

    payload = json.loads(render_report(report))

    assert payload["lane"] == "android-release"
    assert payload["state"] == "failed"
    assert payload["steps"][0]["status"] == "failed"
    assert payload["error"]["type"] == "ConfigurationError"
    assert payload["error"]["step"] == "validate_environment"
    assert payload["error"]["missing"] == ["ANDROID_KEYSTORE_PASSWORD", "ANDROID_KEY_PASSWORD"]


def test_render_artifact(tmp_path: Path) -> None:
    version = VersionIdentifier("2.0.0", 9)
    report = LaneReport(
        lane=Lane(AppPlatform.IOS, LaneMode.BUILD),
        state=LaneState.BUILT_UNSIGNED,
        version=version,
        artifact=BuildArtifact(AppPlatform.IOS, tmp_path / "demo.app", version, signed=False),
    )

    payload = json.loads(render_report(report))

    assert payload["artifact"] == {"path": str(tmp_path / "demo.app"), "signed": False}
    assert payload["publish"] is None
    assert payload["error"] is None


def test_render_publish_diagnostic_in_full() -> None:
    output = "\n".join(f"[fastlane] line {n}" for n in range(60))
    error = PublishError(channel="Google Play (internal)", reason="authentication", output=output)
    error.at_step("publish")
    report = LaneReport(lane=LANE, state=LaneState.FAILED, error=error)

    payload = json.loads(render_report(report))

    assert payload["error"]["reason"] == "authentication"
    assert payload["error"]["diagnostic"] == output
