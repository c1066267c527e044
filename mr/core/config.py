"""Typed loading of the lane configuration file (``release.toml``).

Example::

    [app]
    android_package = "com.example.app"
    ios_bundle_identifier = "com.example.app"

    [android]
    track = "internal"

    [ios]
    scheme = "exampleapp"
    export_method = "app-store"
    match_git_url = "git@github.com:example/certificates.git"

    [ios.provisioning_profiles]
    "com.example.app" = "Example App Store"

The file is optional; every field has a default. Identifiers here are only
cross-checked against app.json, which stays the source of truth.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_str, get_str_map, get_table

__all__ = [
    "AndroidConfig",
    "AppConfig",
    "Config",
    "ConfigError",
    "IosConfig",
    "CONFIG_FILENAME",
    "DEFAULT_ANDROID_TRACK",
    "load_config",
    "load_config_or_default",
]

CONFIG_FILENAME = "release.toml"

DEFAULT_ANDROID_TRACK = "internal"
DEFAULT_EXPORT_METHOD = "app-store"
DEFAULT_MATCH_TYPE = "appstore"

# Tracks that would make a release visible to the public.
_PUBLIC_TRACKS = frozenset({"production"})


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when release.toml cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class AppConfig:
    android_package: str | None = None
    ios_bundle_identifier: str | None = None


@dataclass(frozen=True, slots=True)
class AndroidConfig:
    track: str = DEFAULT_ANDROID_TRACK


def _empty_profiles() -> dict[str, str]:
    return {}


@dataclass(frozen=True, slots=True)
class IosConfig:
    """iOS build settings.

    Attributes:
        scheme: Xcode scheme; defaults to the sanitized app name.
        workspace: Workspace name without extension; defaults to the scheme.
        export_method: Value written to the export options plist.
        match_type: fastlane match profile type for automated signing.
        match_git_url: Certificates repository for automated signing.
        provisioning_profiles: bundle id -> profile name, for manual signing.
    """

    scheme: str | None = None
    workspace: str | None = None
    export_method: str = DEFAULT_EXPORT_METHOD
    match_type: str = DEFAULT_MATCH_TYPE
    match_git_url: str | None = None
    provisioning_profiles: dict[str, str] = field(default_factory=_empty_profiles)


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    app: AppConfig = field(default_factory=AppConfig)
    android: AndroidConfig = field(default_factory=AndroidConfig)
    ios: IosConfig = field(default_factory=IosConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML).

        Raises:
            ValueError: if the Android track is a public one.
        """
        app: StrDict = get_table(data, "app") or {}
        android: StrDict = get_table(data, "android") or {}
        ios: StrDict = get_table(data, "ios") or {}

        track = get_str(android, "track") or DEFAULT_ANDROID_TRACK
        if track.lower() in _PUBLIC_TRACKS:
            raise ValueError(f"android.track '{track}' is public; use internal, alpha or beta")

        return cls(
            app=AppConfig(
                android_package=get_str(app, "android_package"),
                ios_bundle_identifier=get_str(app, "ios_bundle_identifier"),
            ),
            android=AndroidConfig(track=track),
            ios=IosConfig(
                scheme=get_str(ios, "scheme"),
                workspace=get_str(ios, "workspace"),
                export_method=get_str(ios, "export_method") or DEFAULT_EXPORT_METHOD,
                match_type=get_str(ios, "match_type") or DEFAULT_MATCH_TYPE,
                match_git_url=get_str(ios, "match_git_url"),
                provisioning_profiles=get_str_map(ios, "provisioning_profiles"),
            ),
        )


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse release.toml.

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_config_or_default(path: Path) -> Result[Config, ConfigError]:
    """Like load_config, but a missing file yields the default Config.

    A file that exists but is invalid is still an error.
    """
    if not path.exists():
        return Ok(Config())
    return load_config(path)
