from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from mr.core.config import load_config_or_default
from mr.core.errors import ErrorCode
from mr.core.project import Project, detect_project
from mr.core.result import Err
from mr.output.console import ConsoleProtocol, RichConsole
from mr.services.settings import LaneSettings


@dataclass(frozen=True, slots=True)
class CLIContext:
    project: Project
    settings: LaneSettings
    console: ConsoleProtocol


def build_context(project: Path | None = None) -> CLIContext:
    """Detect the project and snapshot the environment, once per invocation."""
    project_result = detect_project(project)
    if isinstance(project_result, Err):
        typer.echo(f"error: {project_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    detected = project_result.value
    config_result = load_config_or_default(detected.config_path)
    if isinstance(config_result, Err):
        typer.echo(f"error: {config_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    return CLIContext(
        project=detected,
        settings=LaneSettings.capture(os.environ, config_result.value),
        console=RichConsole(),
    )
