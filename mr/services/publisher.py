"""Artifact publishing.

Android bundles go to a non-public Play track as a draft; iOS builds go to
TestFlight without review submission. Both go through fastlane. There is no
retry here: a rejected upload is reported once, verbatim.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from mr.core.config import DEFAULT_ANDROID_TRACK
from mr.core.project import Project
from mr.core.result import Err
from mr.services.lane_errors import PublishError, PublishFailureReason
from mr.services.model import AppPlatform, BuildArtifact
from mr.services.toolchain import Invocation, ToolchainRunner

__all__ = [
    "ArtifactPublisher",
    "PlayStoreDestination",
    "PublishReceipt",
    "TestFlightDestination",
    "classify_publish_failure",
]

PLAY_RELEASE_STATUS = "draft"

_FAILURE_MARKERS: dict[PublishFailureReason, tuple[str, ...]] = {
    "authentication": (
        "invalid_grant",
        "unauthorized",
        "authentication credentials are missing or invalid",
        "the caller does not have permission",
        "http 401",
        "http 403",
        "not authorized",
    ),
    "duplicate_version": (
        "version code",
        "has already been used",
        "bundle version must be higher",
        "cfbundleversion",
        "redundant binary upload",
    ),
    "unregistered_identifier": (
        "package not found",
        "no application was found",
        "could not find app",
        "no app with bundle identifier",
        "couldn't find app",
    ),
}


@dataclass(frozen=True, slots=True)
class PlayStoreDestination:
    service_key_json: str
    package_name: str
    track: str = DEFAULT_ANDROID_TRACK

    def __post_init__(self) -> None:
        if self.track.lower() == "production":
            raise ValueError("refusing to target the production track")

    def __repr__(self) -> str:
        return f"PlayStoreDestination(package_name={self.package_name!r}, track={self.track!r})"


@dataclass(frozen=True, slots=True)
class TestFlightDestination:
    api_key_path: Path
    apple_id: str | None = None
    itc_team_id: str | None = None


type Destination = PlayStoreDestination | TestFlightDestination


@dataclass(frozen=True, slots=True)
class PublishReceipt:
    channel: str
    artifact: BuildArtifact
    detail: str


class ArtifactPublisher:
    def __init__(self, *, project: Project, toolchain: ToolchainRunner) -> None:
        self._project = project
        self._toolchain = toolchain

    def publish(self, artifact: BuildArtifact, destination: Destination) -> PublishReceipt:
        """Upload ``artifact``.

        Raises:
            PublishError: if the artifact is not signed or the upload fails.
        """
        if not artifact.signed:
            raise PublishError(
                channel=_channel(destination),
                reason="unsigned_artifact",
                output="",
                hint="Only artifacts produced by a successful sign step can be uploaded",
            )
        if not self._toolchain.dry_run and not artifact.path.is_file():
            raise PublishError(
                channel=_channel(destination),
                reason="unsigned_artifact",
                output=f"artifact not found: {artifact.path}",
            )

        match destination:
            case PlayStoreDestination():
                _expect_platform(artifact, AppPlatform.ANDROID)
                invocation = self._play_store(artifact, destination)
                detail = f"track {destination.track}, status {PLAY_RELEASE_STATUS}"
            case TestFlightDestination():
                _expect_platform(artifact, AppPlatform.IOS)
                invocation = self._testflight(artifact, destination)
                detail = "TestFlight, review not submitted"

        result = self._toolchain.execute(invocation)
        if isinstance(result, Err):
            output = result.error.combined_output
            reason = classify_publish_failure(output)
            raise PublishError(
                channel=_channel(destination),
                reason=reason,
                output=output,
                hint=_hint(reason),
            )
        return PublishReceipt(channel=_channel(destination), artifact=artifact, detail=detail)

    def _play_store(self, artifact: BuildArtifact, destination: PlayStoreDestination) -> Invocation:
        return Invocation(
            tool="fastlane supply",
            argv=(
                "bundle",
                "exec",
                "fastlane",
                "run",
                "upload_to_play_store",
                f"aab:{artifact.path}",
                f"package_name:{destination.package_name}",
                f"track:{destination.track}",
                f"release_status:{PLAY_RELEASE_STATUS}",
                "skip_upload_metadata:true",
                "skip_upload_images:true",
                "skip_upload_screenshots:true",
                "skip_upload_changelogs:true",
            ),
            cwd=self._project.root,
            # The key is passed as data, never as a file or argument.
            env={"SUPPLY_JSON_KEY_DATA": destination.service_key_json},
        )

    def _testflight(self, artifact: BuildArtifact, destination: TestFlightDestination) -> Invocation:
        argv = [
            "bundle",
            "exec",
            "fastlane",
            "run",
            "upload_to_testflight",
            f"ipa:{artifact.path}",
            f"api_key_path:{destination.api_key_path}",
            "skip_submission:true",
            "skip_waiting_for_build_processing:true",
        ]
        if destination.apple_id:
            argv.append(f"apple_id:{destination.apple_id}")
        if destination.itc_team_id:
            argv.append(f"team_id:{destination.itc_team_id}")
        return Invocation(tool="fastlane pilot", argv=tuple(argv), cwd=self._project.root)


def classify_publish_failure(output: str) -> PublishFailureReason:
    """Map upload tool output to a failure reason by well-known markers."""
    text = output.lower()
    for reason, markers in _FAILURE_MARKERS.items():
        if any(marker in text for marker in markers):
            return reason
    return "unknown"


def _channel(destination: Destination) -> str:
    match destination:
        case PlayStoreDestination(track=track):
            return f"Google Play ({track})"
        case TestFlightDestination():
            return "TestFlight"


def _expect_platform(artifact: BuildArtifact, platform: AppPlatform) -> None:
    if artifact.platform is not platform:
        raise ValueError(f"{artifact.platform} artifact cannot be uploaded to a {platform} channel")


def _hint(reason: PublishFailureReason) -> str | None:
    match reason:
        case "authentication":
            return "Check that the store credential is valid and has release permissions"
        case "duplicate_version":
            return "The version code was already uploaded; re-run with a new GITHUB_RUN_NUMBER"
        case "unregistered_identifier":
            return "Create the app in the store console first (the first upload must be manual)"
        case _:
            return None
