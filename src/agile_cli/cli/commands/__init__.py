"""Command registration for the agile CLI."""

from __future__ import annotations

import typer

from . import issue as issue_module
from . import spec as spec_module
from .sync import sync as sync_command


def register_commands(app: typer.Typer) -> None:
    """Attach all command groups to the root Typer application."""
    app.add_typer(issue_module.app, name="issue")
    app.add_typer(spec_module.app, name="spec")
    app.command("sync")(sync_command)


__all__ = ["register_commands"]
