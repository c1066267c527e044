from __future__ import annotations

import typer

from mr import __version__
from mr.cli.commands.check import check
from mr.cli.commands.lane import lane
from mr.cli.commands.version import version

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# Commands
app.command()(lane)
app.command()(check)
app.command()(version)


def _print_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    show_version: bool = typer.Option(
        False,
        "--version",
        callback=_print_version,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Build and release Expo / React Native apps."""


def main() -> None:
    app()
