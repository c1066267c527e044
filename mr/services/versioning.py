"""Version resolution.

The version name comes from app.json and nowhere else. The version code is
the CI run counter, so every release gets a strictly larger code than the
previous one; local runs without a counter use 1. Nothing here depends on
the clock or on randomness.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path

from mr.core.result import Err, Ok, Result
from mr.core.structured import StrDict, as_str_dict, get_str, get_table
from mr.services.lane_errors import ConfigurationError
from mr.services.model import VersionIdentifier
from mr.services.settings import LaneSettings

__all__ = [
    "DEFAULT_VERSION_CODE",
    "MAX_ANDROID_VERSION_CODE",
    "RUN_COUNTER",
    "Manifest",
    "ManifestError",
    "parse_run_counter",
    "read_manifest",
    "resolve_version",
    "version_problems",
]

RUN_COUNTER = "GITHUB_RUN_NUMBER"

DEFAULT_VERSION_CODE = 1

# Google Play rejects versionCode values above this.
MAX_ANDROID_VERSION_CODE = 2_100_000_000

_SEMVER = re.compile(r"^[0-9]+\.[0-9]+\.[0-9]+([-+][0-9A-Za-z.-]+)?$")
_COUNTER = re.compile(r"[0-9]+")


@dataclass(frozen=True, slots=True)
class ManifestError:
    message: str
    path: Path


@dataclass(frozen=True, slots=True)
class Manifest:
    """The fields of app.json the lanes care about."""

    name: str
    version: str
    android_package: str | None = None
    ios_bundle_identifier: str | None = None

    @property
    def project_name(self) -> str:
        """Name expo prebuild gives the Xcode project: alphanumerics only."""
        return re.sub(r"[^A-Za-z0-9]", "", self.name)


def read_manifest(path: Path) -> Result[Manifest, ManifestError]:
    """Parse app.json (either ``{"expo": {...}}`` or a bare config object)."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        return Err(ManifestError(f"failed to read {path.name}: {e}", path))

    try:
        obj: object = json.loads(text)
    except json.JSONDecodeError as e:
        return Err(ManifestError(f"invalid JSON in {path.name}: {e}", path))

    root = as_str_dict(obj)
    if root is None:
        return Err(ManifestError(f"invalid JSON root in {path.name}", path))

    data: StrDict = get_table(root, "expo") or root
    name = get_str(data, "name")
    if name is None:
        return Err(ManifestError(f"missing name in {path.name}", path))
    version = get_str(data, "version")
    if version is None:
        return Err(ManifestError(f"missing version in {path.name}", path))

    android = get_table(data, "android") or {}
    ios = get_table(data, "ios") or {}
    return Ok(
        Manifest(
            name=name,
            version=version,
            android_package=get_str(android, "package"),
            ios_bundle_identifier=get_str(ios, "bundleIdentifier"),
        )
    )


def _counter_problem(value: str) -> str | None:
    if not _COUNTER.fullmatch(value) or int(value) < 1:
        return f"{RUN_COUNTER} must be a positive integer, got '{value}'"
    if int(value) > MAX_ANDROID_VERSION_CODE:
        return f"{RUN_COUNTER}={value} exceeds the maximum version code {MAX_ANDROID_VERSION_CODE}"
    return None


def parse_run_counter(raw: str | None) -> int | None:
    """Parse the CI run counter.

    Raises:
        ConfigurationError: if set but not a positive ASCII integer within
            the Play version code range.
    """
    if raw is None or not raw.strip():
        return None
    value = raw.strip()
    problem = _counter_problem(value)
    if problem is not None:
        raise ConfigurationError(problems=[problem])
    return int(value)


def version_problems(version: str | None, raw_counter: str | None) -> list[str]:
    """Every reason the manifest version and counter cannot form a version identifier.

    ``version`` is None when the manifest has not been read; only the counter
    is checked then.
    """
    problems: list[str] = []
    if version is not None and not _SEMVER.match(version):
        problems.append(f"app.json version '{version}' is not MAJOR.MINOR.PATCH")
    if raw_counter is not None and raw_counter.strip():
        problem = _counter_problem(raw_counter.strip())
        if problem is not None:
            problems.append(problem)
    return problems


def resolve_version(manifest: Manifest, settings: LaneSettings) -> VersionIdentifier:
    """Compute (version name, version code).

    Raises:
        ConfigurationError: if the manifest version is not semantic or the
            counter is invalid or out of range.
    """
    raw = settings.get(RUN_COUNTER)
    problems = version_problems(manifest.version, raw)
    if problems:
        raise ConfigurationError(problems=problems)

    counter = parse_run_counter(raw)
    code = DEFAULT_VERSION_CODE if counter is None else counter
    return VersionIdentifier(name=manifest.version, code=code)
