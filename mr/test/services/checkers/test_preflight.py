# SPDX-License-Identifier: MIT
"""Tests for pre-flight validation."""

from __future__ import annotations

from pathlib import Path

from mr.core.config import AppConfig, Config
from mr.services.checkers.base import CheckStatus
from mr.services.checkers.preflight import (
    check_android,
    check_credentials,
    check_dependencies,
    check_fastlane,
    check_identifiers,
    check_ios,
    check_project_files,
    check_tools,
    validate_project,
)
from mr.services.checkers.snapshot import REQUIRED_TOOLS, ProjectSnapshot
from mr.services.versioning import Manifest

ID = "com.testmobileapp"
ALL_PRESENT = frozenset(
    {
        "package.json",
        "app.json",
        "release.toml",
        "Gemfile",
        "Gemfile.lock",
        "node_modules",
        "android",
        "android/gradlew",
        "android/app/build.gradle",
        "ios",
        "ios/Podfile",
        "ios/Pods",
        "ios/testmobileapp.xcodeproj",
        "ios/testmobileapp.xcworkspace",
    }
)
ALL_VARIABLES = frozenset(
    {
        "ANDROID_KEYSTORE_BASE64",
        "ANDROID_KEYSTORE_PASSWORD",
        "ANDROID_KEY_ALIAS",
        "ANDROID_KEY_PASSWORD",
        "GOOGLE_PLAY_SERVICE_KEY",
        "APP_STORE_CONNECT_API_KEY_ID",
        "APP_STORE_CONNECT_ISSUER_ID",
        "APP_STORE_CONNECT_API_KEY",
    }
)


def _snapshot(**overrides: object) -> ProjectSnapshot:
    values: dict[str, object] = {
        "root": Path("/project"),
        "tools": {name: f"/usr/bin/{name}" for name in REQUIRED_TOOLS},
        "present": ALL_PRESENT,
        "executables": frozenset({"android/gradlew"}),
        "manifest": Manifest(name="testmobileapp", version="1.0.0", android_package=ID, ios_bundle_identifier=ID),
        "config": Config(app=AppConfig(android_package=ID, ios_bundle_identifier=ID)),
        "xcode_name": "testmobileapp",
        "gradle_identifiers": frozenset({ID}),
        "xcode_identifiers": frozenset({ID}),
        "env_present": ALL_VARIABLES,
        "gems_installed": True,
        "fastlane_declared": True,
        "fastlane_locked": True,
    }
    values.update(overrides)
    return ProjectSnapshot(**values)  # type: ignore[arg-type]


def _statuses(results: list) -> dict[str, CheckStatus]:  # type: ignore[type-arg]
    return {r.name: r.status for r in results}


def test_complete_project_is_clean() -> None:
    report = validate_project(_snapshot())

    assert not report.has_errors()
    assert report.warning_count == 0
    assert report.validation_report().clean
    assert [g.title for g in report.groups] == [
        "Tools",
        "Project files",
        "Identifiers",
        "Android",
        "iOS",
        "Credentials",
        "Dependencies",
    ]


def test_missing_tool_is_error() -> None:
    tools = {name: f"/usr/bin/{name}" for name in REQUIRED_TOOLS} | {"bundle": None}

    statuses = _statuses(check_tools(_snapshot(tools=tools)))

    assert statuses["bundle"] is CheckStatus.ERROR
    assert statuses["node"] is CheckStatus.OK


def test_project_files() -> None:
    present = ALL_PRESENT - {"package.json", "Gemfile", "release.toml"}

    statuses = _statuses(check_project_files(_snapshot(present=present)))

    assert statuses["package.json"] is CheckStatus.ERROR
    assert statuses["Gemfile"] is CheckStatus.ERROR
    assert statuses["release.toml"] is CheckStatus.WARNING


def test_invalid_release_toml_is_error() -> None:
    results = check_project_files(_snapshot(config=None, config_error="Invalid TOML syntax"))

    assert _statuses(results)["release.toml"] is CheckStatus.ERROR


def test_native_identifier_mismatch_is_warning() -> None:
    results = check_identifiers(
        _snapshot(gradle_identifiers=frozenset({"com.other"}), xcode_identifiers=frozenset({"com.other.ios"}))
    )

    assert _statuses(results)["build.gradle"] is CheckStatus.WARNING
    assert _statuses(results)["project.pbxproj"] is CheckStatus.WARNING


def test_release_toml_identifier_mismatch_is_error() -> None:
    config = Config(app=AppConfig(android_package="com.other", ios_bundle_identifier=ID))

    report = validate_project(_snapshot(config=config))

    assert report.has_errors()
    assert any("com.other" in e for e in report.validation_report().errors)


def test_android_checks() -> None:
    assert _statuses(check_android(_snapshot(present=ALL_PRESENT - {"android"})))["android/"] is CheckStatus.WARNING

    not_executable = _statuses(check_android(_snapshot(executables=frozenset())))
    assert not_executable["android/gradlew"] is CheckStatus.WARNING

    missing = _statuses(check_android(_snapshot(present=ALL_PRESENT - {"android/gradlew", "android/app/build.gradle"})))
    assert missing["android/gradlew"] is CheckStatus.ERROR
    assert missing["android/app/build.gradle"] is CheckStatus.ERROR


def test_ios_checks() -> None:
    present = ALL_PRESENT - {"ios/testmobileapp.xcworkspace", "ios/Pods", "ios/testmobileapp.xcodeproj"}

    statuses = _statuses(check_ios(_snapshot(present=present)))

    assert statuses["ios/testmobileapp.xcodeproj"] is CheckStatus.ERROR
    assert statuses["ios/testmobileapp.xcworkspace"] is CheckStatus.WARNING
    assert statuses["ios/Pods"] is CheckStatus.WARNING
    assert statuses["ios/Podfile"] is CheckStatus.OK


def test_credentials_are_warnings_only() -> None:
    results = check_credentials(_snapshot(env_present=frozenset()))

    assert all(r.status is CheckStatus.WARNING for r in results)
    assert len(results) == 1 + 4 + 3


def test_dependencies() -> None:
    statuses = _statuses(check_dependencies(_snapshot(present=ALL_PRESENT - {"node_modules"}, gems_installed=False)))

    assert statuses["node_modules"] is CheckStatus.WARNING
    assert statuses["gems"] is CheckStatus.WARNING


def test_warnings_only_report_has_no_errors() -> None:
    report = validate_project(_snapshot(present=ALL_PRESENT - {"ios", "android"}, env_present=frozenset()))

    assert not report.has_errors()
    assert report.warning_count > 0


def test_fastlane_must_be_in_gemfile() -> None:
    results = check_fastlane(_snapshot(fastlane_declared=False, fastlane_locked=False))

    assert _statuses(results)["fastlane"] is CheckStatus.ERROR
    assert validate_project(_snapshot(fastlane_declared=False)).has_errors()


def test_fastlane_not_locked_is_warning() -> None:
    results = check_fastlane(_snapshot(fastlane_locked=False))

    assert _statuses(results)["fastlane"] is CheckStatus.WARNING
    assert results[0].hint == "Run: bundle install"


def test_fastlane_skipped_without_gemfile() -> None:
    assert check_fastlane(_snapshot(present=ALL_PRESENT - {"Gemfile"}, fastlane_declared=False)) == []
