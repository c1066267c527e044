"""Tests for native toolchain command construction."""

from __future__ import annotations

import plistlib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from mr.core.project import Project
from mr.core.result import Err, Ok, Result
from mr.output.console import MockConsole
from mr.platform.process import ProcessError
from mr.services import toolchain
from mr.services.environment import AndroidReleaseCredentials, KeystoreBlob
from mr.services.lane_errors import ToolchainError
from mr.services.model import Automated, Manual, ProfileRef, VersionIdentifier
from mr.services.settings import LaneSettings

SECRET = "super-secret-password"


@dataclass
class RecordingRunner:
    fail_with: ProcessError | None = None
    calls: list[tuple[list[str], Mapping[str, str] | None]] = field(default_factory=list)

    def run(self, cmd: list[str], *, cwd: Path, env: Mapping[str, str] | None = None) -> Result[str, ProcessError]:
        self.calls.append((cmd, env))
        if self.fail_with is not None:
            return Err(self.fail_with)
        return Ok(f"ran {' '.join(cmd)}")


def _credentials() -> AndroidReleaseCredentials:
    return AndroidReleaseCredentials(
        keystore=KeystoreBlob("/u3+7Q=="),
        keystore_password=SECRET,
        key_alias="upload",
        key_password=SECRET,
        play_service_key="{}",
    )


def _runner(runner: RecordingRunner, console: MockConsole, *, dry_run: bool = False) -> toolchain.ToolchainRunner:
    return toolchain.ToolchainRunner(
        runner=runner,
        settings=LaneSettings.capture({"PATH": "/usr/bin"}),
        console=console,
        secrets=[SECRET],
        dry_run=dry_run,
    )


class TestCommands:
    def test_npm_ci_with_lock_file(self, tmp_path: Path) -> None:
        project = Project(root=tmp_path)
        assert toolchain.npm_install(project).argv == ("npm", "install")

        (tmp_path / "package-lock.json").write_text("{}", encoding="utf-8")
        assert toolchain.npm_install(project).argv == ("npm", "ci")

    def test_pod_install_uses_bundler_when_gemfile_present(self, tmp_path: Path) -> None:
        project = Project(root=tmp_path)
        assert toolchain.pod_install(project).argv == ("pod", "install")

        (tmp_path / "Gemfile").write_text("", encoding="utf-8")
        invocation = toolchain.pod_install(project)
        assert invocation.argv == ("bundle", "exec", "pod", "install")
        assert invocation.cwd == tmp_path / "ios"

    def test_release_bundle_injects_signing_and_version(self, tmp_path: Path) -> None:
        project = Project(root=tmp_path)
        invocation = toolchain.gradle_release_bundle(
            project,
            keystore=tmp_path / "release.keystore",
            credentials=_credentials(),
            version=VersionIdentifier("1.2.3", 42),
        )

        assert invocation.argv[:3] == (str(project.gradlew_path), "bundleRelease", "--no-daemon")
        assert f"-Pandroid.injected.signing.store.file={tmp_path / 'release.keystore'}" in invocation.argv
        assert "-Pandroid.injected.signing.key.alias=upload" in invocation.argv
        assert "-Pandroid.injected.version.code=42" in invocation.argv
        assert "-Pandroid.injected.version.name=1.2.3" in invocation.argv
        assert invocation.cwd == project.android_dir

    def test_release_bundle_passwords_stay_off_argv(self, tmp_path: Path) -> None:
        invocation = toolchain.gradle_release_bundle(
            Project(root=tmp_path),
            keystore=tmp_path / "release.keystore",
            credentials=_credentials(),
            version=VersionIdentifier("1.2.3", 42),
        )

        assert not any(SECRET in a for a in invocation.argv)
        assert invocation.env == {
            "ORG_GRADLE_PROJECT_android.injected.signing.store.password": SECRET,
            "ORG_GRADLE_PROJECT_android.injected.signing.key.password": SECRET,
        }

    def test_archive_sets_version_and_team(self, tmp_path: Path) -> None:
        invocation = toolchain.xcode_archive(
            Project(root=tmp_path),
            workspace="demo",
            scheme="demo",
            archive_path=tmp_path / "build" / "demo.xcarchive",
            version=VersionIdentifier("1.2.3", 42),
            signing=Manual(profiles=(ProfileRef("com.example", "Example Store"),), team_id="TEAM1"),
            bundle_identifier="com.example",
        )

        assert "MARKETING_VERSION=1.2.3" in invocation.argv
        assert "CURRENT_PROJECT_VERSION=42" in invocation.argv
        assert "DEVELOPMENT_TEAM=TEAM1" in invocation.argv
        assert "CODE_SIGN_STYLE=Manual" in invocation.argv
        assert "CODE_SIGN_IDENTITY=Apple Distribution" in invocation.argv
        assert "PROVISIONING_PROFILE_SPECIFIER=Example Store" in invocation.argv

    @pytest.mark.parametrize(
        ("match_type", "profile", "identity"),
        [
            ("appstore", "match AppStore com.example", "Apple Distribution"),
            ("development", "match Development com.example", "Apple Development"),
        ],
    )
    def test_archive_uses_match_profile(self, tmp_path: Path, match_type: str, profile: str, identity: str) -> None:
        signing = Automated(deploy_key="k", passphrase="p", git_url=None, match_type=match_type)

        invocation = toolchain.xcode_archive(
            Project(root=tmp_path),
            workspace="demo",
            scheme="demo",
            archive_path=tmp_path / "demo.xcarchive",
            version=VersionIdentifier("1.2.3", 42),
            signing=signing,
            bundle_identifier="com.example",
        )

        assert f"PROVISIONING_PROFILE_SPECIFIER={profile}" in invocation.argv
        assert f"CODE_SIGN_IDENTITY={identity}" in invocation.argv
        assert not any(a.startswith("DEVELOPMENT_TEAM=") for a in invocation.argv)

    def test_manual_profile_for_other_bundle_is_not_applied(self, tmp_path: Path) -> None:
        signing = Manual(profiles=(ProfileRef("com.other", "Other"),))

        assert toolchain.profile_for(signing, "com.example") is None

    def test_match_secrets_travel_in_env(self, tmp_path: Path) -> None:
        method = Automated(
            deploy_key="deploy-key-value",
            passphrase="match-passphrase",
            git_url="git@x:certs.git",
            match_type="appstore",
        )

        invocation = toolchain.match_sync(Project(root=tmp_path), method=method, app_identifier="com.example")

        assert "readonly:true" in invocation.argv
        assert "git_url:git@x:certs.git" in invocation.argv
        joined = " ".join(invocation.argv)
        assert "deploy-key-value" not in joined
        assert "match-passphrase" not in joined
        assert invocation.env == {"MATCH_PASSWORD": "match-passphrase", "MATCH_GIT_PRIVATE_KEY": "deploy-key-value"}


class TestExportOptions:
    def test_manual_profiles(self) -> None:
        signing = Manual(profiles=(ProfileRef("com.example", "Example Store"),), team_id="TEAM1")

        options = plistlib.loads(
            toolchain.export_options(method="app-store", signing=signing, bundle_identifier="com.example")
        )

        assert options["method"] == "app-store"
        assert options["signingStyle"] == "manual"
        assert options["teamID"] == "TEAM1"
        assert options["provisioningProfiles"] == {"com.example": "Example Store"}

    def test_match_profile_name(self) -> None:
        signing = Automated(deploy_key="k", passphrase="p", git_url=None, match_type="appstore")

        options = plistlib.loads(
            toolchain.export_options(method="app-store", signing=signing, bundle_identifier="com.example")
        )

        assert options["provisioningProfiles"] == {"com.example": "match AppStore com.example"}
        assert "teamID" not in options


class TestToolchainRunner:
    def test_command_printed_with_secrets_redacted(self, tmp_path: Path) -> None:
        console = MockConsole()
        runner = RecordingRunner()
        invocation = toolchain.Invocation(tool="x", argv=("x", f"--token={SECRET}"), cwd=tmp_path)

        _runner(runner, console).invoke(invocation)

        assert SECRET not in console.text
        assert toolchain.REDACTED in console.text
        assert any(SECRET in a for a in runner.calls[0][0])

    def test_invocation_env_merged_over_snapshot(self, tmp_path: Path) -> None:
        runner = RecordingRunner()
        invocation = toolchain.Invocation(tool="x", argv=("x",), cwd=tmp_path, env={"EXTRA": "1"})

        _runner(runner, MockConsole()).invoke(invocation)

        assert runner.calls[0][1] == {"PATH": "/usr/bin", "EXTRA": "1"}

    def test_failure_raises_with_redacted_output(self, tmp_path: Path) -> None:
        runner = RecordingRunner(
            fail_with=ProcessError(("gradlew",), 1, "", f"Keystore password {SECRET} was incorrect")
        )

        with pytest.raises(ToolchainError) as exc:
            _runner(runner, MockConsole()).invoke(
                toolchain.Invocation(tool="gradle", argv=("gradlew",), cwd=tmp_path, hint="check it")
            )

        assert exc.value.returncode == 1
        assert exc.value.tool == "gradle"
        assert exc.value.hint == "check it"
        assert SECRET not in exc.value.output
        assert "was incorrect" in exc.value.output

    def test_dry_run_runs_nothing(self, tmp_path: Path) -> None:
        runner = RecordingRunner()
        console = MockConsole()

        out = _runner(runner, console, dry_run=True).invoke(toolchain.prebuild(Project(root=tmp_path), "ios"))

        assert out == ""
        assert runner.calls == []
        assert console.find("npx expo prebuild --platform ios")
