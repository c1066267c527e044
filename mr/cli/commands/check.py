from __future__ import annotations

import os
from pathlib import Path

import typer

from mr.cli.commands._helpers import PROJECT_HELP
from mr.core.errors import ErrorCode
from mr.core.project import detect_project
from mr.core.result import Ok
from mr.output.console import ConsoleProtocol, RichConsole, Style
from mr.services.checkers import CheckGroup, CheckStatus, scan_project, validate_project


def check(
    project: Path | None = typer.Option(None, "--project", help=PROJECT_HELP, show_default=False),
) -> None:
    """Validate the project before building; changes nothing."""
    console = RichConsole()
    root = _resolve_root(project)

    report = validate_project(scan_project(root, os.environ))

    console.print(f"project: {root}", Style.DIM)
    for group in report.groups:
        _print_group(console, group)

    console.newline()
    errors, warnings = report.error_count, report.warning_count
    if errors:
        console.error(f"{errors} error(s) and {warnings} warning(s); fix errors before building")
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))
    if warnings:
        console.warning(f"{warnings} warning(s); the build may work but verify them")
    else:
        console.success("all checks passed")


def _resolve_root(project: Path | None) -> Path:
    """Detected project root, or the given/current directory when there is none."""
    match detect_project(project):
        case Ok(detected):
            return detected.root
        case _:
            return (project or Path.cwd()).expanduser().resolve()


def _print_group(console: ConsoleProtocol, group: CheckGroup) -> None:
    console.header(group.title)
    for r in group.results:
        console.print(f"{r.name}: {r.message}", _style_for_status(r.status))
        if r.hint and r.status != CheckStatus.OK:
            console.print(f"hint: {r.hint}", Style.DIM)


def _style_for_status(status: CheckStatus) -> Style:
    if status == CheckStatus.OK:
        return Style.SUCCESS
    if status == CheckStatus.WARNING:
        return Style.WARNING
    return Style.ERROR
