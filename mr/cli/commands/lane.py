"""Lane command - build or release one platform."""

from __future__ import annotations

from pathlib import Path

import typer

from mr.cli.commands._helpers import PROJECT_HELP
from mr.cli.context import build_context
from mr.output.console import Style
from mr.output.errors import lane_error_exit_code, print_lane_error
from mr.services.lanes import LaneExecutor
from mr.services.model import AppPlatform, Lane, LaneMode


def lane(
    platform: AppPlatform = typer.Argument(..., help="Target platform"),
    mode: LaneMode = typer.Argument(..., help="build (unsigned, local) or release (signed, uploaded)"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print commands without running them"),
    project: Path | None = typer.Option(None, "--project", help=PROJECT_HELP, show_default=False),
) -> None:
    """Run a build or release lane."""
    ctx = build_context(project)
    ctx.console.print(f"project: {ctx.project.root}", Style.DIM)

    executor = LaneExecutor(
        project=ctx.project,
        settings=ctx.settings,
        console=ctx.console,
        dry_run=dry_run,
    )
    report = executor.execute(Lane(platform, mode))

    ctx.console.newline()
    if report.report_path is not None:
        ctx.console.print(f"report: {report.report_path}", Style.DIM)
    if report.error is not None:
        print_lane_error(report.error, ctx.console)
        ctx.console.error(report.summary())
        raise typer.Exit(code=lane_error_exit_code(report.error))
    ctx.console.success(report.summary())
