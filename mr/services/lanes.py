"""Lane execution.

A lane is an ordered list of named steps for one (platform, mode) pair. The
executor runs them in order, stops at the first failure, and always removes
the lane's credential files before returning a ``LaneReport``.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from mr.core.project import Project
from mr.core.result import Err
from mr.output.console import ConsoleProtocol, Style
from mr.platform.files import add_execute_bit, atomic_write_text, is_executable
from mr.platform.process import ProcessRunner, SubprocessRunner
from mr.services import toolchain
from mr.services.credentials import CredentialMaterializer, EphemeralCredentialFile
from mr.services.environment import (
    SECRET_VARIABLES,
    AndroidReleaseCredentials,
    EnvironmentValidator,
    IosReleaseCredentials,
    LaneCredentials,
)
from mr.services.lane_errors import (
    ConfigurationError,
    LaneError,
    ScriptPermissionError,
    ToolchainError,
)
from mr.services.model import (
    AppPlatform,
    Automated,
    BuildArtifact,
    BuildContext,
    Lane,
    LaneMode,
    LaneState,
    SigningMethod,
    VersionIdentifier,
    signing_style,
)
from mr.services.publisher import (
    ArtifactPublisher,
    PlayStoreDestination,
    PublishReceipt,
    TestFlightDestination,
)
from mr.services.report import LaneReport, StepRecord, render_report
from mr.services.settings import LaneSettings
from mr.services.toolchain import ToolchainRunner
from mr.services.versioning import Manifest, read_manifest, resolve_version

__all__ = ["LaneExecutor", "LaneRun", "Step", "terminal_state"]


@dataclass(frozen=True, slots=True)
class Step:
    name: str
    action: Callable[[LaneRun], None]


@dataclass
class LaneRun:
    """Mutable state of one lane invocation, shared by its steps."""

    lane: Lane
    project: Project
    settings: LaneSettings
    console: ConsoleProtocol
    toolchain: ToolchainRunner
    materializer: CredentialMaterializer
    manifest: Manifest | None = None
    credentials: LaneCredentials = None
    keystore: EphemeralCredentialFile | None = None
    api_key: EphemeralCredentialFile | None = None
    signing: SigningMethod | None = None
    version: VersionIdentifier | None = None
    artifact: BuildArtifact | None = None
    receipt: PublishReceipt | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def context(self) -> BuildContext:
        return BuildContext(
            root=self.project.root,
            platform=self.lane.platform,
            ephemeral_dir=self.materializer.directory,
        )

    def require_manifest(self) -> Manifest:
        if self.manifest is None:
            result = read_manifest(self.project.manifest_path)
            if isinstance(result, Err):
                raise ConfigurationError(problems=[result.error.message])
            self.manifest = result.value
        return self.manifest


def terminal_state(lane: Lane) -> LaneState:
    if not lane.is_release:
        return LaneState.BUILT_UNSIGNED
    if lane.platform is AppPlatform.ANDROID:
        return LaneState.PUBLISHED_DRAFT
    return LaneState.PUBLISHED_BETA


class LaneExecutor:
    """Run lanes for one project.

    Args:
        project: The detected project.
        settings: Settings snapshot; the only source of variables.
        console: Output sink.
        runner: Process runner (injectable for tests).
        dry_run: Print commands instead of running them.
        temp_root: Parent for the per-lane private directory (system temp
            dir by default).
    """

    def __init__(
        self,
        *,
        project: Project,
        settings: LaneSettings,
        console: ConsoleProtocol,
        runner: ProcessRunner | None = None,
        dry_run: bool = False,
        temp_root: Path | None = None,
    ) -> None:
        self._project = project
        self._settings = settings
        self._console = console
        self._runner = runner or SubprocessRunner()
        self._dry_run = dry_run
        self._temp_root = temp_root

    def steps_for(self, lane: Lane) -> list[Step]:
        match (lane.platform, lane.mode):
            case (_, LaneMode.BUILD):
                return [
                    Step("validate_environment", _validate_environment),
                    Step("ensure_native_project", _ensure_native_project),
                    Step("install_dependencies", _install_dependencies),
                    Step("build_unsigned", _build_unsigned),
                ]
            case (AppPlatform.ANDROID, LaneMode.RELEASE):
                return [
                    Step("validate_environment", _validate_environment),
                    Step("materialize_keystore", _materialize_keystore),
                    Step("ensure_gradlew_executable", _ensure_gradlew_executable),
                    Step("resolve_version", _resolve_version),
                    Step("sign", _sign_android),
                    Step("publish", _publish),
                ]
            case (AppPlatform.IOS, LaneMode.RELEASE):
                return [
                    Step("validate_environment", _validate_environment),
                    Step("materialize_api_key", _materialize_api_key),
                    Step("select_signing", _select_signing),
                    Step("resolve_version", _resolve_version),
                    Step("install_pods", _install_pods),
                    Step("sign", _sign_ios),
                    Step("publish", _publish),
                ]
        raise ValueError(f"unsupported lane: {lane}")

    def execute(self, lane: Lane) -> LaneReport:
        steps = self.steps_for(lane)
        report = LaneReport(lane=lane, dry_run=self._dry_run)
        self._console.header(f"{lane.platform.display_name} {lane.mode}")

        with CredentialMaterializer(lane_name=lane.name, base_dir=self._temp_root) as materializer:
            run = LaneRun(
                lane=lane,
                project=self._project,
                settings=self._settings,
                console=self._console,
                toolchain=ToolchainRunner(
                    runner=self._runner,
                    settings=self._settings,
                    console=self._console,
                    secrets=self._settings.values_of(SECRET_VARIABLES),
                    dry_run=self._dry_run,
                ),
                materializer=materializer,
            )
            for index, step in enumerate(steps, start=1):
                self._console.step(index, len(steps), step.name)
                started = time.monotonic()
                try:
                    step.action(run)
                except LaneError as e:
                    e.at_step(step.name)
                    report.steps.append(StepRecord.failed(step.name, started, e))
                    report.error = e
                    break
                report.steps.append(StepRecord.succeeded(step.name, started))

            report.version = run.version
            report.artifact = run.artifact
            report.receipt = run.receipt
            report.warnings = list(run.warnings)

        report.state = LaneState.FAILED if report.error is not None else terminal_state(lane)
        if not self._dry_run:
            self._write_report(report)
        return report

    def _write_report(self, report: LaneReport) -> None:
        path = self._project.report_path(str(report.lane.platform), str(report.lane.mode))
        atomic_write_text(path, render_report(report))
        report.report_path = path


# -----------------------------------------------------------------------------
# Build lane steps
# -----------------------------------------------------------------------------


def _native_dir(run: LaneRun) -> Path:
    if run.lane.platform is AppPlatform.ANDROID:
        return run.project.android_dir
    return run.project.ios_dir


def _ensure_native_project(run: LaneRun) -> None:
    if _native_dir(run).is_dir():
        run.console.print(f"{_native_dir(run).name}/ exists", Style.DIM)
        return
    if not run.project.node_modules_dir.is_dir():
        run.toolchain.invoke(toolchain.npm_install(run.project))
    run.toolchain.invoke(toolchain.prebuild(run.project, str(run.lane.platform)))


def _install_dependencies(run: LaneRun) -> None:
    if not run.project.node_modules_dir.is_dir():
        run.toolchain.invoke(toolchain.npm_install(run.project))
    else:
        run.console.print("node_modules/ exists", Style.DIM)
    if run.lane.platform is AppPlatform.IOS and not run.project.pods_dir.is_dir():
        run.toolchain.invoke(toolchain.pod_install(run.project))


def _build_unsigned(run: LaneRun) -> None:
    version = resolve_version(run.require_manifest(), run.settings)
    run.version = version
    if run.lane.platform is AppPlatform.ANDROID:
        run.toolchain.invoke(toolchain.gradle_debug_build(run.project))
        path = toolchain.apk_debug_path(run.project)
    else:
        workspace, scheme = _xcode_names(run)
        run.toolchain.invoke(
            toolchain.xcode_simulator_build(run.project, workspace=workspace, scheme=scheme)
        )
        path = toolchain.simulator_app_path(run.project, scheme=scheme)
    run.artifact = BuildArtifact(platform=run.lane.platform, path=path, version=version, signed=False)


# -----------------------------------------------------------------------------
# Release lane steps
# -----------------------------------------------------------------------------


def _validate_environment(run: LaneRun) -> None:
    manifest = run.require_manifest()
    validator = EnvironmentValidator(
        run.settings,
        project_root=run.project.root,
        manifest=manifest,
    )
    check = validator.check(run.lane)
    for warning in check.report.warnings:
        run.console.warning(warning)
        run.warnings.append(warning)
    run.credentials = validator.require(run.lane)
    run.console.print("environment ok", Style.DIM)


def _android_credentials(run: LaneRun) -> AndroidReleaseCredentials:
    if not isinstance(run.credentials, AndroidReleaseCredentials):
        raise ConfigurationError(problems=["Android credentials were not validated"])
    return run.credentials


def _ios_credentials(run: LaneRun) -> IosReleaseCredentials:
    if not isinstance(run.credentials, IosReleaseCredentials):
        raise ConfigurationError(problems=["iOS credentials were not validated"])
    return run.credentials


def _materialize_keystore(run: LaneRun) -> None:
    credentials = _android_credentials(run)
    run.keystore = run.materializer.keystore(credentials.keystore)
    run.console.print(f"keystore: {run.keystore.path} ({run.keystore.source_encoding})", Style.DIM)


def _ensure_gradlew_executable(run: LaneRun) -> None:
    gradlew = run.project.gradlew_path
    if not gradlew.is_file():
        raise ToolchainError(
            tool="gradle",
            command=(str(gradlew),),
            returncode=-1,
            output=f"{gradlew} not found",
            hint="Run: npx expo prebuild --platform android",
        )
    if is_executable(gradlew):
        return

    run.console.warning(f"{gradlew.name} is not executable; adding execute permission")
    try:
        add_execute_bit(gradlew)
    except OSError as e:
        raise ScriptPermissionError(path=gradlew) from e
    if not is_executable(gradlew):
        raise ScriptPermissionError(path=gradlew)


def _resolve_version(run: LaneRun) -> None:
    run.version = resolve_version(run.require_manifest(), run.settings)
    run.console.print(f"version: {run.version}", Style.DIM)


def _sign_android(run: LaneRun) -> None:
    credentials = _android_credentials(run)
    if run.keystore is None or run.version is None:
        raise ConfigurationError(problems=["keystore and version must be resolved before signing"])

    run.toolchain.invoke(
        toolchain.gradle_release_bundle(
            run.project,
            keystore=run.keystore.path,
            credentials=credentials,
            version=run.version,
        )
    )
    bundle = toolchain.aab_path(run.project)
    _expect_output(run, bundle, tool="gradle")
    run.artifact = BuildArtifact(AppPlatform.ANDROID, bundle, run.version, signed=True)


def _materialize_api_key(run: LaneRun) -> None:
    credentials = _ios_credentials(run)
    run.api_key = run.materializer.api_key(
        key_id=credentials.api_key_id,
        issuer_id=credentials.issuer_id,
        key=credentials.api_key,
    )
    run.console.print(f"api key: {run.api_key.path}", Style.DIM)


def _select_signing(run: LaneRun) -> None:
    credentials = _ios_credentials(run)
    run.signing = credentials.signing
    run.console.print(f"signing: {signing_style(run.signing)}", Style.DIM)

    if isinstance(run.signing, Automated):
        manifest = run.require_manifest()
        identifier = manifest.ios_bundle_identifier or ""
        run.toolchain.invoke(
            toolchain.match_sync(run.project, method=run.signing, app_identifier=identifier)
        )


def _install_pods(run: LaneRun) -> None:
    run.toolchain.invoke(toolchain.pod_install(run.project))


def _sign_ios(run: LaneRun) -> None:
    if run.signing is None or run.version is None:
        raise ConfigurationError(problems=["signing method and version must be resolved before signing"])

    manifest = run.require_manifest()
    workspace, scheme = _xcode_names(run)
    ios = run.settings.config.ios
    archive_path = run.project.build_dir / f"{scheme}.xcarchive"
    export_dir = run.project.build_dir / "ipa"

    run.toolchain.invoke(
        toolchain.xcode_archive(
            run.project,
            workspace=workspace,
            scheme=scheme,
            archive_path=archive_path,
            version=run.version,
            signing=run.signing,
            bundle_identifier=manifest.ios_bundle_identifier or "",
        )
    )

    options_plist = run.context.ephemeral_dir / "ExportOptions.plist"
    options_plist.write_bytes(
        toolchain.export_options(
            method=ios.export_method,
            signing=run.signing,
            bundle_identifier=manifest.ios_bundle_identifier or "",
        )
    )
    run.toolchain.invoke(
        toolchain.xcode_export(
            run.project,
            archive_path=archive_path,
            export_dir=export_dir,
            options_plist=options_plist,
        )
    )
    ipa = export_dir / f"{scheme}.ipa"
    _expect_output(run, ipa, tool="xcodebuild")
    run.artifact = BuildArtifact(AppPlatform.IOS, ipa, run.version, signed=True)


def _publish(run: LaneRun) -> None:
    if run.artifact is None or not run.artifact.signed:
        raise ConfigurationError(problems=["no signed artifact to publish"])

    publisher = ArtifactPublisher(project=run.project, toolchain=run.toolchain)
    credentials = run.credentials
    match credentials:
        case AndroidReleaseCredentials(play_service_key=service_key):
            manifest = run.require_manifest()
            destination: PlayStoreDestination | TestFlightDestination = PlayStoreDestination(
                service_key_json=service_key,
                package_name=manifest.android_package or "",
                track=run.settings.config.android.track,
            )
        case IosReleaseCredentials(apple_id=apple_id, itc_team_id=itc_team_id):
            if run.api_key is None:
                raise ConfigurationError(problems=["App Store Connect key was not materialized"])
            destination = TestFlightDestination(
                api_key_path=run.api_key.path,
                apple_id=apple_id,
                itc_team_id=itc_team_id,
            )
        case _:
            raise ConfigurationError(problems=["release credentials were not validated"])

    run.receipt = publisher.publish(run.artifact, destination)
    run.console.print(f"uploaded to {run.receipt.channel}: {run.receipt.detail}", Style.DIM)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def _xcode_names(run: LaneRun) -> tuple[str, str]:
    """(workspace, scheme) for the iOS project."""
    ios = run.settings.config.ios
    default = run.require_manifest().project_name
    scheme = ios.scheme or default
    workspace = ios.workspace or scheme
    return workspace, scheme


def _expect_output(run: LaneRun, path: Path, *, tool: str) -> None:
    if run.toolchain.dry_run or path.is_file():
        return
    raise ToolchainError(
        tool=tool,
        command=(),
        returncode=0,
        output=f"expected output not found: {path}",
    )
