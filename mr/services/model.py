"""Domain types shared by validators, steps and reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path


class AppPlatform(StrEnum):
    ANDROID = "android"
    IOS = "ios"

    @property
    def display_name(self) -> str:
        return "Android" if self is AppPlatform.ANDROID else "iOS"


class LaneMode(StrEnum):
    BUILD = "build"
    RELEASE = "release"


class LaneState(StrEnum):
    """Where a lane ended up."""

    PENDING = "pending"
    BUILT_UNSIGNED = "built_unsigned"
    PUBLISHED_DRAFT = "published_draft"
    PUBLISHED_BETA = "published_beta"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class Lane:
    """A (platform, mode) pair; the executor derives its ordered steps."""

    platform: AppPlatform
    mode: LaneMode

    @property
    def name(self) -> str:
        return f"{self.platform}-{self.mode}"

    @property
    def is_release(self) -> bool:
        return self.mode is LaneMode.RELEASE

    def __str__(self) -> str:
        return f"{self.platform} {self.mode}"


@dataclass(frozen=True, slots=True)
class VersionIdentifier:
    """Semantic version plus the monotonic build counter."""

    name: str
    code: int

    def __str__(self) -> str:
        return f"{self.name} ({self.code})"


@dataclass(frozen=True, slots=True)
class BuildArtifact:
    platform: AppPlatform
    path: Path
    version: VersionIdentifier
    signed: bool


def _empty_messages() -> list[str]:
    return []


@dataclass(slots=True)
class ValidationReport:
    """Batched validation outcome: every problem, not just the first."""

    errors: list[str] = field(default_factory=_empty_messages)
    warnings: list[str] = field(default_factory=_empty_messages)

    def error(self, message: str) -> None:
        self.errors.append(message)

    def warning(self, message: str) -> None:
        self.warnings.append(message)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def clean(self) -> bool:
        return not self.errors and not self.warnings


# -----------------------------------------------------------------------------
# Signing method
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Automated:
    """Certificates and profiles fetched by fastlane match."""

    deploy_key: str
    passphrase: str
    git_url: str | None
    match_type: str
    team_id: str | None = None


@dataclass(frozen=True, slots=True)
class ProfileRef:
    bundle_identifier: str
    profile_name: str


@dataclass(frozen=True, slots=True)
class Manual:
    """Provisioning profiles already installed on the build machine."""

    profiles: tuple[ProfileRef, ...]
    team_id: str | None = None


type SigningMethod = Automated | Manual


def signing_style(method: SigningMethod) -> str:
    match method:
        case Automated():
            return "automated"
        case Manual():
            return "manual"


# -----------------------------------------------------------------------------
# Build context
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BuildContext:
    """Explicit locations handed to every step."""

    root: Path
    platform: AppPlatform
    ephemeral_dir: Path
