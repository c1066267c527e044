"""Immutable per-invocation settings.

The process environment is snapshotted exactly once, at lane start, together
with the parsed release.toml. Steps read variables from ``LaneSettings`` and
never from ``os.environ``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from mr.core.config import Config

__all__ = ["LaneSettings"]

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def _empty_environ() -> Mapping[str, str]:
    return MappingProxyType({})


@dataclass(frozen=True, slots=True)
class LaneSettings:
    environ: Mapping[str, str] = field(default_factory=_empty_environ)
    config: Config = field(default_factory=Config)

    @classmethod
    def capture(cls, environ: Mapping[str, str], config: Config | None = None) -> LaneSettings:
        """Copy ``environ`` into a read-only mapping."""
        return cls(environ=MappingProxyType(dict(environ)), config=config or Config())

    def get(self, name: str) -> str | None:
        """Value of ``name``, or None when unset or blank."""
        value = self.environ.get(name)
        if value is None or not value.strip():
            return None
        return value

    def has(self, name: str) -> bool:
        return self.get(name) is not None

    @property
    def is_ci(self) -> bool:
        value = self.environ.get("CI", "")
        return value.strip().lower() in _TRUTHY

    def values_of(self, names: Iterable[str]) -> tuple[str, ...]:
        """Values of the given variables that are set, for output redaction."""
        return tuple(v for v in (self.get(n) for n in names) if v is not None)

    def child_env(self, extra: Mapping[str, str] | None = None) -> dict[str, str]:
        """Environment for an external tool: the snapshot plus ``extra``."""
        env = dict(self.environ)
        if extra:
            env.update(extra)
        return env
