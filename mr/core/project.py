"""Project detection and paths.

A project is the root of an Expo / React Native app, identified by its
``app.json`` manifest. Every path a lane touches is derived here, once, so
steps never re-derive locations from relative paths.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .result import Err, Ok, Result

__all__ = [
    "MANIFEST_FILENAME",
    "Project",
    "ProjectError",
    "detect_project",
]

MANIFEST_FILENAME = "app.json"


@dataclass(frozen=True, slots=True)
class ProjectError:
    """Error when no project root can be found."""

    message: str
    searched_from: Path | None = None


@dataclass(frozen=True, slots=True)
class Project:
    """Represents a detected mobile project.

    The project root contains:
    - app.json manifest (required)
    - package.json, Gemfile
    - release.toml (optional lane configuration)
    - android/ and ios/ native projects (generated by expo prebuild)
    """

    root: Path

    @property
    def manifest_path(self) -> Path:
        return self.root / MANIFEST_FILENAME

    @property
    def config_path(self) -> Path:
        return self.root / "release.toml"

    @property
    def package_lock_path(self) -> Path:
        return self.root / "package-lock.json"

    @property
    def node_modules_dir(self) -> Path:
        return self.root / "node_modules"

    @property
    def gemfile_path(self) -> Path:
        return self.root / "Gemfile"

    @property
    def gemfile_lock_path(self) -> Path:
        return self.root / "Gemfile.lock"

    @property
    def android_dir(self) -> Path:
        return self.root / "android"

    @property
    def gradlew_path(self) -> Path:
        return self.android_dir / "gradlew"

    @property
    def app_gradle_path(self) -> Path:
        return self.android_dir / "app" / "build.gradle"

    @property
    def android_outputs_dir(self) -> Path:
        return self.android_dir / "app" / "build" / "outputs"

    @property
    def ios_dir(self) -> Path:
        return self.root / "ios"

    @property
    def pods_dir(self) -> Path:
        return self.ios_dir / "Pods"

    @property
    def build_dir(self) -> Path:
        """Output directory for archives, exported IPAs and lane reports."""
        return self.root / "build"

    def xcodeproj_path(self, name: str) -> Path:
        return self.ios_dir / f"{name}.xcodeproj"

    def xcworkspace_path(self, name: str) -> Path:
        return self.ios_dir / f"{name}.xcworkspace"

    def report_path(self, platform: str, mode: str) -> Path:
        return self.build_dir / f"mr-report-{platform}-{mode}.json"

    def __str__(self) -> str:
        return str(self.root)


def is_project_root(path: Path) -> bool:
    return (path / MANIFEST_FILENAME).is_file()


def detect_project(start: Path | None = None) -> Result[Project, ProjectError]:
    """Find the project root by walking up from ``start`` (default: cwd)."""
    try:
        origin = (start or Path.cwd()).expanduser().resolve()
    except OSError as e:
        return Err(ProjectError(f"invalid project path: {e}", searched_from=start))

    for candidate in (origin, *origin.parents):
        if is_project_root(candidate):
            return Ok(Project(root=candidate))

    return Err(
        ProjectError(
            f"no {MANIFEST_FILENAME} found in {origin} or its parents",
            searched_from=origin,
        )
    )
