"""Sync the board from a git worktree to the main checkout."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.markup import escape
from typing_extensions import Annotated

from agile_cli.cli.helpers import console, output_result, resolve_layout, run_or_exit
from agile_cli.sync.worktree import (
    DEFAULT_SYNC_MESSAGE,
    SyncError,
    detect_worktree_context,
    sync_board,
)


def sync(
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Preview changes without modifying anything")] = False,
    force: Annotated[bool, typer.Option("--force", "-f", help="Sync even if the main checkout has board changes")] = False,
    no_commit: Annotated[bool, typer.Option("--no-commit", help="Stage changes but do not commit")] = False,
    message: Annotated[str, typer.Option("--message", "-m", help="Commit message")] = DEFAULT_SYNC_MESSAGE,
    json_output: Annotated[bool, typer.Option("--json", help="Machine-readable JSON output")] = False,
) -> None:
    """Copy this worktree's board into the main checkout and commit it there."""

    def _run() -> None:
        context = detect_worktree_context(Path.cwd())
        if context is None:
            raise SyncError("Must be run from a git worktree, not the main repository")

        layout = resolve_layout(context.worktree)
        report = sync_board(
            context,
            layout.config.root,
            dry_run=dry_run,
            force=force,
            commit=not no_commit,
            message=message,
        )
        if json_output:
            output_result(True, report.to_dict())
            return

        console.print(f"Worktree: [cyan]{context.identifier}[/cyan]")
        console.print(f"Main repo: [cyan]{context.main_repo}[/cyan] ({report.branch})")
        for warning in report.warnings:
            console.print(f"[yellow]Warning:[/yellow] {escape(warning)}")

        if report.diff.empty:
            console.print("[green]Already in sync[/green]")
            return
        for rel in report.diff.added:
            console.print(f"  [green]+ {escape(rel)}[/green]")
        for rel in report.diff.removed:
            console.print(f"  [red]- {escape(rel)}[/red]")
        for rel in report.diff.modified:
            console.print(f"  [yellow]~ {escape(rel)}[/yellow]")

        if report.dry_run:
            console.print("[dim](dry run - no changes made)[/dim]")
        elif report.staged_only:
            console.print("[green]Changes staged in main repo (not committed)[/green]")
        elif report.committed:
            console.print("[green]Board synced to main[/green]")
            console.print(f"[dim]To push: git -C {context.main_repo} push[/dim]")
        else:
            console.print("[green]Already in sync[/green]")

    run_or_exit(json_output, _run)
