"""Version command - print the version a release would use."""

from __future__ import annotations

from pathlib import Path

import typer

from mr.cli.commands._helpers import PROJECT_HELP, exit_on_error
from mr.cli.context import build_context
from mr.output.errors import lane_error_exit_code, print_lane_error
from mr.services.lane_errors import LaneError
from mr.services.versioning import read_manifest, resolve_version


def version(
    project: Path | None = typer.Option(None, "--project", help=PROJECT_HELP, show_default=False),
) -> None:
    """Print the resolved version name and version code."""
    ctx = build_context(project)
    manifest = exit_on_error(read_manifest(ctx.project.manifest_path), ctx.console)
    try:
        resolved = resolve_version(manifest, ctx.settings)
    except LaneError as e:
        print_lane_error(e, ctx.console)
        raise typer.Exit(code=lane_error_exit_code(e))
    ctx.console.print(f"{resolved.name} ({resolved.code})")
