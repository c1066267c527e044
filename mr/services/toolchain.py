"""Native toolchain invocation.

Command lines for expo, npm, CocoaPods, Gradle, xcodebuild and fastlane are
assembled here; ``ToolchainRunner`` executes them with secret values redacted
from everything that reaches the console or an error.
"""

from __future__ import annotations

import plistlib
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from mr.core.project import Project
from mr.core.result import Err, Ok, Result
from mr.output.console import ConsoleProtocol, Style
from mr.platform.process import ProcessError, ProcessRunner
from mr.services.environment import AndroidReleaseCredentials
from mr.services.lane_errors import ToolchainError
from mr.services.model import Automated, Manual, SigningMethod, VersionIdentifier
from mr.services.settings import LaneSettings

__all__ = [
    "Invocation",
    "ToolchainRunner",
    "REDACTED",
    "aab_path",
    "apk_debug_path",
    "export_options",
    "gradle_release_bundle",
    "gradle_debug_build",
    "match_sync",
    "npm_install",
    "pod_install",
    "profile_for",
    "prebuild",
    "simulator_app_path",
    "xcode_archive",
    "xcode_export",
    "xcode_simulator_build",
]

REDACTED = "***"


def _empty_env() -> dict[str, str]:
    return {}


@dataclass(frozen=True, slots=True)
class Invocation:
    """One external command.

    Attributes:
        tool: Short name used in messages ("gradle", "xcodebuild", ...).
        argv: Full command line.
        cwd: Working directory.
        env: Variables added on top of the settings snapshot.
        hint: Shown to the operator if the command fails.
    """

    tool: str
    argv: tuple[str, ...]
    cwd: Path
    env: dict[str, str] = field(default_factory=_empty_env)
    hint: str | None = None


class ToolchainRunner:
    """Runs invocations through a ProcessRunner, printing redacted commands."""

    def __init__(
        self,
        *,
        runner: ProcessRunner,
        settings: LaneSettings,
        console: ConsoleProtocol,
        secrets: Sequence[str] = (),
        dry_run: bool = False,
    ) -> None:
        self._runner = runner
        self._settings = settings
        self._console = console
        self._secrets = tuple(sorted({s for s in secrets if s}, key=len, reverse=True))
        self.dry_run = dry_run

    def redact(self, text: str) -> str:
        for secret in self._secrets:
            text = text.replace(secret, REDACTED)
        return text

    def execute(self, invocation: Invocation) -> Result[str, ProcessError]:
        """Run without raising; output in the result is already redacted."""
        self._console.print(self.redact(" ".join(invocation.argv)), Style.DIM)
        if self.dry_run:
            return Ok("")

        result = self._runner.run(
            list(invocation.argv),
            cwd=invocation.cwd,
            env=self._settings.child_env(invocation.env),
        )
        match result:
            case Ok(stdout):
                return Ok(self.redact(stdout))
            case Err(error):
                return Err(
                    ProcessError(
                        command=tuple(self.redact(a) for a in error.command),
                        returncode=error.returncode,
                        stdout=self.redact(error.stdout),
                        stderr=self.redact(error.stderr),
                    )
                )

    def invoke(self, invocation: Invocation) -> str:
        """Run and return stdout.

        Raises:
            ToolchainError: with the redacted tail of the tool's output.
        """
        result = self.execute(invocation)
        if isinstance(result, Err):
            error = result.error
            raise ToolchainError(
                tool=invocation.tool,
                command=error.command,
                returncode=error.returncode,
                output=error.tail(),
                hint=invocation.hint,
            )
        return result.value


# -----------------------------------------------------------------------------
# Project generation and dependencies
# -----------------------------------------------------------------------------


def prebuild(project: Project, platform: str) -> Invocation:
    return Invocation(
        tool="expo prebuild",
        argv=("npx", "expo", "prebuild", "--platform", platform, "--no-install"),
        cwd=project.root,
    )


def npm_install(project: Project) -> Invocation:
    argv = ("npm", "ci") if project.package_lock_path.exists() else ("npm", "install")
    return Invocation(tool="npm", argv=argv, cwd=project.root)


def pod_install(project: Project) -> Invocation:
    if project.gemfile_path.exists():
        argv: tuple[str, ...] = ("bundle", "exec", "pod", "install")
    else:
        argv = ("pod", "install")
    return Invocation(
        tool="pod install",
        argv=argv,
        cwd=project.ios_dir,
        hint="Run: bundle install" if project.gemfile_path.exists() else None,
    )


# -----------------------------------------------------------------------------
# Android
# -----------------------------------------------------------------------------


def gradle_debug_build(project: Project) -> Invocation:
    return Invocation(
        tool="gradle",
        argv=(str(project.gradlew_path), "assembleDebug"),
        cwd=project.android_dir,
    )


def gradle_release_bundle(
    project: Project,
    *,
    keystore: Path,
    credentials: AndroidReleaseCredentials,
    version: VersionIdentifier,
) -> Invocation:
    """``bundleRelease`` with the signing identity injected as project properties.

    Passwords are passed as ``ORG_GRADLE_PROJECT_*`` variables, never argv.
    """
    props = {
        "android.injected.signing.store.file": str(keystore),
        "android.injected.signing.key.alias": credentials.key_alias,
        "android.injected.version.code": str(version.code),
        "android.injected.version.name": version.name,
    }
    argv = [str(project.gradlew_path), "bundleRelease", "--no-daemon"]
    argv += [f"-P{k}={v}" for k, v in props.items()]
    return Invocation(
        tool="gradle",
        argv=tuple(argv),
        cwd=project.android_dir,
        env={
            "ORG_GRADLE_PROJECT_android.injected.signing.store.password": credentials.keystore_password,
            "ORG_GRADLE_PROJECT_android.injected.signing.key.password": credentials.key_password,
        },
    )


def aab_path(project: Project) -> Path:
    return project.android_outputs_dir / "bundle" / "release" / "app-release.aab"


def apk_debug_path(project: Project) -> Path:
    return project.android_outputs_dir / "apk" / "debug" / "app-debug.apk"


# -----------------------------------------------------------------------------
# iOS
# -----------------------------------------------------------------------------


def xcode_simulator_build(project: Project, *, workspace: str, scheme: str) -> Invocation:
    return Invocation(
        tool="xcodebuild",
        argv=(
            "xcodebuild",
            "build",
            "-workspace",
            str(project.xcworkspace_path(workspace)),
            "-scheme",
            scheme,
            "-configuration",
            "Debug",
            "-sdk",
            "iphonesimulator",
            "-derivedDataPath",
            str(project.build_dir / "DerivedData"),
            "CODE_SIGNING_ALLOWED=NO",
        ),
        cwd=project.ios_dir,
    )


def simulator_app_path(project: Project, *, scheme: str) -> Path:
    return project.build_dir / "DerivedData" / "Build" / "Products" / "Debug-iphonesimulator" / f"{scheme}.app"


def xcode_archive(
    project: Project,
    *,
    workspace: str,
    scheme: str,
    archive_path: Path,
    version: VersionIdentifier,
    signing: SigningMethod,
    bundle_identifier: str,
) -> Invocation:
    """``xcodebuild archive`` signed manually with the selected profile."""
    argv = [
        "xcodebuild",
        "archive",
        "-workspace",
        str(project.xcworkspace_path(workspace)),
        "-scheme",
        scheme,
        "-configuration",
        "Release",
        "-destination",
        "generic/platform=iOS",
        "-archivePath",
        str(archive_path),
        f"MARKETING_VERSION={version.name}",
        f"CURRENT_PROJECT_VERSION={version.code}",
    ]
    argv += ["CODE_SIGN_STYLE=Manual", f"CODE_SIGN_IDENTITY={_signing_identity(signing)}"]
    profile = profile_for(signing, bundle_identifier)
    if profile is not None:
        argv.append(f"PROVISIONING_PROFILE_SPECIFIER={profile}")
    if signing.team_id:
        argv.append(f"DEVELOPMENT_TEAM={signing.team_id}")
    return Invocation(tool="xcodebuild", argv=tuple(argv), cwd=project.ios_dir)


def xcode_export(project: Project, *, archive_path: Path, export_dir: Path, options_plist: Path) -> Invocation:
    return Invocation(
        tool="xcodebuild",
        argv=(
            "xcodebuild",
            "-exportArchive",
            "-archivePath",
            str(archive_path),
            "-exportPath",
            str(export_dir),
            "-exportOptionsPlist",
            str(options_plist),
        ),
        cwd=project.ios_dir,
    )


def match_sync(project: Project, *, method: Automated, app_identifier: str) -> Invocation:
    """Read-only ``sync_code_signing`` (fastlane match).

    The deploy key and passphrase travel through the environment, never argv.
    """
    argv = [
        "bundle",
        "exec",
        "fastlane",
        "run",
        "sync_code_signing",
        f"type:{method.match_type}",
        "readonly:true",
        f"app_identifier:{app_identifier}",
    ]
    if method.git_url:
        argv.append(f"git_url:{method.git_url}")
    if method.team_id:
        argv.append(f"team_id:{method.team_id}")
    return Invocation(
        tool="fastlane match",
        argv=tuple(argv),
        cwd=project.root,
        env={
            "MATCH_PASSWORD": method.passphrase,
            "MATCH_GIT_PRIVATE_KEY": method.deploy_key,
        },
        hint="Check MATCH_PASSWORD and that the deploy key can read the certificates repo",
    )


def export_options(
    *,
    method: str,
    signing: SigningMethod,
    bundle_identifier: str,
) -> bytes:
    """Export options plist for ``xcodebuild -exportArchive``."""
    options: dict[str, object] = {
        "method": method,
        "signingStyle": "manual",
        "uploadSymbols": True,
    }
    if signing.team_id:
        options["teamID"] = signing.team_id

    profiles: Mapping[str, str]
    match signing:
        case Automated(match_type=match_type):
            profiles = {bundle_identifier: _match_profile_name(match_type, bundle_identifier)}
        case Manual(profiles=refs):
            profiles = {ref.bundle_identifier: ref.profile_name for ref in refs}
    options["provisioningProfiles"] = dict(profiles)
    return plistlib.dumps(options)


def _match_profile_label(match_type: str) -> str:
    labels = {
        "appstore": "AppStore",
        "adhoc": "AdHoc",
        "development": "Development",
        "enterprise": "InHouse",
    }
    return labels.get(match_type, match_type)


def _match_profile_name(match_type: str, bundle_identifier: str) -> str:
    return f"match {_match_profile_label(match_type)} {bundle_identifier}"


def profile_for(signing: SigningMethod, bundle_identifier: str) -> str | None:
    """Provisioning profile name the archive is signed with, if known."""
    match signing:
        case Automated(match_type=match_type):
            return _match_profile_name(match_type, bundle_identifier)
        case Manual(profiles=refs):
            for ref in refs:
                if ref.bundle_identifier == bundle_identifier:
                    return ref.profile_name
            return None


def _signing_identity(signing: SigningMethod) -> str:
    if isinstance(signing, Automated) and signing.match_type == "development":
        return "Apple Development"
    return "Apple Distribution"
