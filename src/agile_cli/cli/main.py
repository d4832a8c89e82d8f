"""Entry point for the ``agile`` command."""

from __future__ import annotations

import typer

from agile_cli import __version__
from agile_cli.cli.commands import register_commands
from agile_cli.cli.helpers import console

app = typer.Typer(
    name="agile",
    help="Issue and spec workflow for a directory-per-stage agile board",
    add_completion=False,
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"agile {__version__}")
        raise typer.Exit()


@app.callback()
def callback(
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
) -> None:
    """Move issues through backlog, todo, in-progress, review and done."""


register_commands(app)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
