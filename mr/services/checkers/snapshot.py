# SPDX-License-Identifier: MIT
"""Read-only project snapshot for pre-flight validation.

Everything the pre-flight checks look at is collected here in one pass, so
the checks themselves stay pure functions over plain data. Nothing in this
module writes to the project tree.
"""

from __future__ import annotations

import re
import shutil
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from mr.core.config import Config, load_config
from mr.core.project import Project
from mr.core.result import Err, Ok
from mr.platform.files import is_executable
from mr.platform.process import ProcessRunner, SubprocessRunner
from mr.services.environment import (
    ANDROID_KEYSTORE_BASE64,
    ANDROID_KEYSTORE_PATH,
    ANDROID_RELEASE_REQUIRED,
    IOS_RELEASE_REQUIRED,
)
from mr.services.versioning import Manifest, read_manifest

__all__ = [
    "CREDENTIAL_VARIABLES",
    "REQUIRED_TOOLS",
    "ProjectSnapshot",
    "gradle_identifiers",
    "pbxproj_identifiers",
    "scan_project",
]

REQUIRED_TOOLS = ("node", "npm", "ruby", "bundle")

CREDENTIAL_VARIABLES = (
    ANDROID_KEYSTORE_BASE64,
    ANDROID_KEYSTORE_PATH,
    *ANDROID_RELEASE_REQUIRED,
    *IOS_RELEASE_REQUIRED,
)

_GRADLE_NAMESPACE = re.compile(r"""\bnamespace\s*=?\s*["']([^"']+)["']""")
_GRADLE_APPLICATION_ID = re.compile(r"""\bapplicationId\s*=?\s*["']([^"']+)["']""")
_PBX_BUNDLE_ID = re.compile(r"""PRODUCT_BUNDLE_IDENTIFIER\s*=\s*"?([^";]+)"?\s*;""")
_GEMFILE_FASTLANE = re.compile(r"""^\s*gem\s+["']fastlane["']""", re.MULTILINE)
_LOCKED_FASTLANE = re.compile(r"^ {4}fastlane \(", re.MULTILINE)


def _empty_set() -> frozenset[str]:
    return frozenset()


def _empty_tools() -> dict[str, str | None]:
    return {}


@dataclass(frozen=True, slots=True)
class ProjectSnapshot:
    """What pre-flight validation knows about a project.

    Attributes:
        root: Project root.
        tools: Tool name -> resolved path (None when not on PATH).
        present: Relative paths (posix) that exist.
        executables: Relative paths that exist and are executable.
        manifest: Parsed app.json, if readable.
        manifest_error: Why app.json could not be read.
        config: Parsed release.toml, if present and valid.
        config_error: Why release.toml could not be loaded.
        xcode_name: Expected Xcode project/workspace name.
        gradle_identifiers: namespace/applicationId values in android/app/build.gradle.
        xcode_identifiers: PRODUCT_BUNDLE_IDENTIFIER values in the Xcode project.
        env_present: Names of credential variables that are set (never values).
        gems_installed: Result of ``bundle check``; None when not run.
        fastlane_declared: The Gemfile declares the fastlane gem.
        fastlane_locked: Gemfile.lock resolves the fastlane gem.
    """

    root: Path
    tools: dict[str, str | None] = field(default_factory=_empty_tools)
    present: frozenset[str] = field(default_factory=_empty_set)
    executables: frozenset[str] = field(default_factory=_empty_set)
    manifest: Manifest | None = None
    manifest_error: str | None = None
    config: Config | None = None
    config_error: str | None = None
    xcode_name: str | None = None
    gradle_identifiers: frozenset[str] = field(default_factory=_empty_set)
    xcode_identifiers: frozenset[str] = field(default_factory=_empty_set)
    env_present: frozenset[str] = field(default_factory=_empty_set)
    gems_installed: bool | None = None
    fastlane_declared: bool = False
    fastlane_locked: bool = False

    def has(self, relative: str) -> bool:
        return relative in self.present

    def is_executable(self, relative: str) -> bool:
        return relative in self.executables


def scan_project(
    root: Path,
    environ: Mapping[str, str],
    *,
    runner: ProcessRunner | None = None,
    which: Callable[[str], str | None] = shutil.which,
) -> ProjectSnapshot:
    """Collect a snapshot of ``root`` without modifying anything."""
    project = Project(root=root)

    manifest: Manifest | None = None
    manifest_error: str | None = None
    if project.manifest_path.is_file():
        match read_manifest(project.manifest_path):
            case Ok(value):
                manifest = value
            case Err(error):
                manifest_error = error.message

    config: Config | None = None
    config_error: str | None = None
    if project.config_path.is_file():
        match load_config(project.config_path):
            case Ok(value):
                config = value
            case Err(error):
                config_error = error.message

    xcode_name = _xcode_name(project, manifest, config)

    candidates = [
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
    ]
    if xcode_name is not None:
        candidates += [f"ios/{xcode_name}.xcodeproj", f"ios/{xcode_name}.xcworkspace"]
    present = frozenset(c for c in candidates if (root / c).exists())
    executables = frozenset(c for c in ("android/gradlew",) if c in present and is_executable(root / c))

    gems_installed: bool | None = None
    if "Gemfile.lock" in present and which("bundle") is not None:
        result = (runner or SubprocessRunner()).run(["bundle", "check"], cwd=root)
        gems_installed = isinstance(result, Ok)

    return ProjectSnapshot(
        root=root,
        tools={name: which(name) for name in REQUIRED_TOOLS},
        present=present,
        executables=executables,
        manifest=manifest,
        manifest_error=manifest_error,
        config=config,
        config_error=config_error,
        xcode_name=xcode_name,
        gradle_identifiers=gradle_identifiers(project.app_gradle_path),
        xcode_identifiers=_xcode_identifiers(project, xcode_name),
        env_present=frozenset(n for n in CREDENTIAL_VARIABLES if environ.get(n, "").strip()),
        gems_installed=gems_installed,
        fastlane_declared=_matches(project.gemfile_path, _GEMFILE_FASTLANE),
        fastlane_locked=_matches(project.gemfile_lock_path, _LOCKED_FASTLANE),
    )


def gradle_identifiers(path: Path) -> frozenset[str]:
    """``namespace`` and ``applicationId`` values declared in a Gradle script."""
    text = _read_text(path)
    if text is None:
        return frozenset()
    found = _GRADLE_NAMESPACE.findall(text) + _GRADLE_APPLICATION_ID.findall(text)
    return frozenset(found)


def pbxproj_identifiers(path: Path) -> frozenset[str]:
    """Literal PRODUCT_BUNDLE_IDENTIFIER values in a project.pbxproj.

    Build-setting references such as ``$(PRODUCT_NAME)`` are skipped.
    """
    text = _read_text(path)
    if text is None:
        return frozenset()
    return frozenset(v.strip() for v in _PBX_BUNDLE_ID.findall(text) if "$(" not in v)


def _xcode_name(project: Project, manifest: Manifest | None, config: Config | None) -> str | None:
    if config is not None and config.ios.scheme:
        return config.ios.scheme
    if manifest is not None and manifest.project_name:
        return manifest.project_name
    if project.ios_dir.is_dir():
        found = sorted(project.ios_dir.glob("*.xcodeproj"))
        if found:
            return found[0].stem
    return None


def _xcode_identifiers(project: Project, xcode_name: str | None) -> frozenset[str]:
    if xcode_name is None:
        return frozenset()
    return pbxproj_identifiers(project.xcodeproj_path(xcode_name) / "project.pbxproj")


def _matches(path: Path, pattern: re.Pattern[str]) -> bool:
    text = _read_text(path)
    return text is not None and pattern.search(text) is not None


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None
