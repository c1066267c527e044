"""Tests for lane error types."""

from __future__ import annotations

from pathlib import Path

from mr.services.lane_errors import (
    ConfigurationError,
    CredentialDecodeError,
    LaneError,
    PublishError,
    ScriptPermissionError,
    ToolchainError,
)


def test_configuration_error_lists_all_names() -> None:
    error = ConfigurationError(missing=["A", "B"], problems=["C is malformed"])

    assert error.message == "missing required variables: A, B; C is malformed"
    assert isinstance(error, LaneError)


def test_at_step_keeps_first_step() -> None:
    error = CredentialDecodeError(source="ANDROID_KEYSTORE_BASE64", reason="invalid base64")

    error.at_step("materialize_keystore").at_step("outer")

    assert error.step == "materialize_keystore"
    assert "base64 -w0" in (error.hint or "")


def test_diagnostics() -> None:
    toolchain = ToolchainError(tool="gradle", command=("gradlew",), returncode=1, output="FAILURE")
    publish = PublishError(channel="TestFlight", reason="authentication", output="")

    assert toolchain.diagnostic == "FAILURE"
    assert publish.diagnostic is None
    assert publish.message == "upload to TestFlight rejected (authentication)"


def test_script_permission_hint() -> None:
    error = ScriptPermissionError(path=Path("android/gradlew"))

    assert error.hint == f"Run: chmod +x {Path('android/gradlew')}"
