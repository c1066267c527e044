# SPDX-License-Identifier: MIT
"""Pre-flight validation.

Checks a ``ProjectSnapshot`` for everything a build needs, grouped the way
they are printed:
- tools: node, npm, ruby, bundle
- project files: package.json, app.json, Gemfile, release.toml
- identifiers: app.json vs native projects vs release.toml
- android: native project, gradlew, build.gradle
- ios: native project, workspace, Podfile, Pods
- credentials: release variables (names only)
- dependencies: node_modules, Ruby gems, fastlane in the bundle

Reports only; nothing is fixed. Errors mean the build should not proceed,
warnings mean it may.
"""

from __future__ import annotations

from dataclasses import dataclass

from mr.services.checkers.base import CheckResult
from mr.services.checkers.snapshot import REQUIRED_TOOLS, ProjectSnapshot
from mr.services.environment import (
    ANDROID_KEYSTORE_BASE64,
    ANDROID_KEYSTORE_PATH,
    ANDROID_RELEASE_REQUIRED,
    IOS_RELEASE_REQUIRED,
)
from mr.services.model import ValidationReport

__all__ = ["CheckGroup", "PreflightReport", "validate_project"]

_PREBUILD_HINT = "Run: npx expo prebuild"
_POD_HINT = "Run: cd ios && pod install"

_TOOL_HINTS = {
    "node": "Install Node.js (https://nodejs.org)",
    "npm": "Install Node.js (https://nodejs.org)",
    "ruby": "Install Ruby (https://www.ruby-lang.org)",
    "bundle": "Run: gem install bundler",
}


@dataclass(frozen=True, slots=True)
class CheckGroup:
    title: str
    results: tuple[CheckResult, ...]


@dataclass(frozen=True, slots=True)
class PreflightReport:
    groups: tuple[CheckGroup, ...]

    def all_results(self) -> list[CheckResult]:
        return [r for g in self.groups for r in g.results]

    def has_errors(self) -> bool:
        return any(r.is_error for r in self.all_results())

    @property
    def error_count(self) -> int:
        return sum(1 for r in self.all_results() if r.is_error)

    @property
    def warning_count(self) -> int:
        return sum(1 for r in self.all_results() if r.is_warning)

    def validation_report(self) -> ValidationReport:
        report = ValidationReport()
        for result in self.all_results():
            if result.is_error:
                report.error(result.describe())
            elif result.is_warning:
                report.warning(result.describe())
        return report


def validate_project(snapshot: ProjectSnapshot) -> PreflightReport:
    """Run every check group over ``snapshot``. Pure."""
    return PreflightReport(
        groups=(
            CheckGroup("Tools", tuple(check_tools(snapshot))),
            CheckGroup("Project files", tuple(check_project_files(snapshot))),
            CheckGroup("Identifiers", tuple(check_identifiers(snapshot))),
            CheckGroup("Android", tuple(check_android(snapshot))),
            CheckGroup("iOS", tuple(check_ios(snapshot))),
            CheckGroup("Credentials", tuple(check_credentials(snapshot))),
            CheckGroup("Dependencies", (*check_dependencies(snapshot), *check_fastlane(snapshot))),
        )
    )


def check_tools(snapshot: ProjectSnapshot) -> list[CheckResult]:
    results: list[CheckResult] = []
    for name in REQUIRED_TOOLS:
        path = snapshot.tools.get(name)
        if path:
            results.append(CheckResult.success(name, path))
        else:
            results.append(CheckResult.error(name, "not found on PATH", hint=_TOOL_HINTS[name]))
    return results


def check_project_files(snapshot: ProjectSnapshot) -> list[CheckResult]:
    results = [
        _required_file(snapshot, "package.json"),
        _app_json(snapshot),
        _required_file(snapshot, "Gemfile"),
    ]
    if snapshot.config_error is not None:
        results.append(CheckResult.error("release.toml", snapshot.config_error))
    elif snapshot.has("release.toml"):
        results.append(CheckResult.success("release.toml", "ok"))
    else:
        results.append(CheckResult.warning("release.toml", "missing (using defaults)"))
    return results


def _app_json(snapshot: ProjectSnapshot) -> CheckResult:
    if not snapshot.has("app.json"):
        return CheckResult.error("app.json", "missing")
    if snapshot.manifest_error is not None:
        return CheckResult.error("app.json", snapshot.manifest_error)
    return CheckResult.success("app.json", "ok")


def check_identifiers(snapshot: ProjectSnapshot) -> list[CheckResult]:
    manifest = snapshot.manifest
    if manifest is None:
        return []

    results: list[CheckResult] = []
    configured = snapshot.config.app if snapshot.config is not None else None

    android = manifest.android_package
    if android is None:
        results.append(CheckResult.warning("android.package", "not set in app.json"))
    else:
        results.append(CheckResult.success("android.package", android))
        if snapshot.gradle_identifiers and android not in snapshot.gradle_identifiers:
            found = ", ".join(sorted(snapshot.gradle_identifiers))
            results.append(
                CheckResult.warning(
                    "build.gradle",
                    f"namespace/applicationId {found} does not match {android}",
                    hint=_PREBUILD_HINT,
                )
            )
        if configured is not None and configured.android_package not in (None, android):
            results.append(
                CheckResult.error(
                    "release.toml",
                    f"app.android_package {configured.android_package} does not match app.json {android}",
                )
            )

    ios = manifest.ios_bundle_identifier
    if ios is None:
        results.append(CheckResult.warning("ios.bundleIdentifier", "not set in app.json"))
    else:
        results.append(CheckResult.success("ios.bundleIdentifier", ios))
        if snapshot.xcode_identifiers and ios not in snapshot.xcode_identifiers:
            found = ", ".join(sorted(snapshot.xcode_identifiers))
            results.append(
                CheckResult.warning(
                    "project.pbxproj",
                    f"PRODUCT_BUNDLE_IDENTIFIER {found} does not match {ios}",
                    hint=_PREBUILD_HINT,
                )
            )
        if configured is not None and configured.ios_bundle_identifier not in (None, ios):
            results.append(
                CheckResult.error(
                    "release.toml",
                    f"app.ios_bundle_identifier {configured.ios_bundle_identifier} does not match app.json {ios}",
                )
            )
    return results


def check_android(snapshot: ProjectSnapshot) -> list[CheckResult]:
    if not snapshot.has("android"):
        return [CheckResult.warning("android/", "missing", hint=_PREBUILD_HINT)]

    results = [CheckResult.success("android/", "ok")]
    if not snapshot.has("android/gradlew"):
        results.append(CheckResult.error("android/gradlew", "missing", hint=_PREBUILD_HINT))
    elif not snapshot.is_executable("android/gradlew"):
        results.append(
            CheckResult.warning("android/gradlew", "not executable", hint="Run: chmod +x android/gradlew")
        )
    else:
        results.append(CheckResult.success("android/gradlew", "executable"))
    results.append(_required_file(snapshot, "android/app/build.gradle"))
    return results


def check_ios(snapshot: ProjectSnapshot) -> list[CheckResult]:
    if not snapshot.has("ios"):
        return [CheckResult.warning("ios/", "missing", hint=_PREBUILD_HINT)]

    results = [CheckResult.success("ios/", "ok")]
    name = snapshot.xcode_name
    if name is None:
        results.append(CheckResult.error("xcodeproj", "cannot determine the Xcode project name"))
    else:
        results.append(_required_file(snapshot, f"ios/{name}.xcodeproj"))
        workspace = f"ios/{name}.xcworkspace"
        if snapshot.has(workspace):
            results.append(CheckResult.success(workspace, "ok"))
        else:
            results.append(CheckResult.warning(workspace, "missing", hint=_POD_HINT))

    results.append(_required_file(snapshot, "ios/Podfile"))
    if snapshot.has("ios/Pods"):
        results.append(CheckResult.success("ios/Pods", "ok"))
    else:
        results.append(CheckResult.warning("ios/Pods", "missing", hint=_POD_HINT))
    return results


def check_credentials(snapshot: ProjectSnapshot) -> list[CheckResult]:
    """Presence of release variables; only needed for release lanes."""
    results: list[CheckResult] = []
    keystore = [n for n in (ANDROID_KEYSTORE_BASE64, ANDROID_KEYSTORE_PATH) if n in snapshot.env_present]
    if keystore:
        results.append(CheckResult.success("keystore", f"{keystore[0]} set"))
    else:
        results.append(
            CheckResult.warning(
                "keystore",
                "not set",
                hint=f"Set either {ANDROID_KEYSTORE_BASE64} or {ANDROID_KEYSTORE_PATH}",
            )
        )
    for name in (*ANDROID_RELEASE_REQUIRED, *IOS_RELEASE_REQUIRED):
        if name in snapshot.env_present:
            results.append(CheckResult.success(name, "set"))
        else:
            results.append(CheckResult.warning(name, "not set"))
    return results


def check_dependencies(snapshot: ProjectSnapshot) -> list[CheckResult]:
    results: list[CheckResult] = []
    if snapshot.has("node_modules"):
        results.append(CheckResult.success("node_modules", "ok"))
    else:
        results.append(CheckResult.warning("node_modules", "missing", hint="Run: npm install"))

    if not snapshot.has("Gemfile.lock"):
        results.append(CheckResult.warning("Gemfile.lock", "missing", hint="Run: bundle install"))
    elif snapshot.gems_installed is False:
        results.append(CheckResult.warning("gems", "not installed", hint="Run: bundle install"))
    else:
        results.append(CheckResult.success("Gemfile.lock", "ok"))
    return results


def check_fastlane(snapshot: ProjectSnapshot) -> list[CheckResult]:
    """Uploads and match run through ``bundle exec fastlane``."""
    if not snapshot.has("Gemfile"):
        return []
    if not snapshot.fastlane_declared:
        return [CheckResult.error("fastlane", "not declared in Gemfile", hint='Add: gem "fastlane"')]
    if snapshot.has("Gemfile.lock") and not snapshot.fastlane_locked:
        return [CheckResult.warning("fastlane", "not resolved in Gemfile.lock", hint="Run: bundle install")]
    return [CheckResult.success("fastlane", "declared in Gemfile")]


def _required_file(snapshot: ProjectSnapshot, relative: str) -> CheckResult:
    if snapshot.has(relative):
        return CheckResult.success(relative, "ok")
    return CheckResult.error(relative, "missing")
