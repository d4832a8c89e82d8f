"""Issue commands: create, move between stages, edit and archive.

Examples:
    agile issue create user-auth --type feature --title "User authentication"
    agile issue move user-auth todo
    agile issue check user-auth in-progress
    agile issue list --stage in-progress
"""

from __future__ import annotations

from typing import Optional

import typer
from rich.markup import escape
from rich.table import Table
from typing_extensions import Annotated

from agile_cli.cli.helpers import (
    console,
    issue_to_dict,
    output_result,
    resolve_layout,
    run_or_exit,
)
from agile_cli.workflow import resolver, service, store
from agile_cli.workflow.models import GuidanceStatus, IssueType, Stage, parse_stage

app = typer.Typer(
    name="issue",
    help="Manage issues on the board",
    no_args_is_help=True,
)

JsonOption = Annotated[bool, typer.Option("--json", help="Machine-readable JSON output")]


@app.command()
def create(
    slug: Annotated[str, typer.Argument(help="Issue slug (kebab-case, unique across board and archive)")],
    issue_type: Annotated[IssueType, typer.Option("--type", "-t", help="Issue type")] = IssueType.FEATURE,
    title: Annotated[Optional[str], typer.Option("--title", help="Human title (defaults to the slug)")] = None,
    owner: Annotated[Optional[str], typer.Option("--owner", help="Initial owner")] = None,
    stage: Annotated[str, typer.Option("--stage", help="Initial stage")] = str(Stage.BACKLOG),
    json_output: JsonOption = False,
) -> None:
    """Create an issue from its type template."""

    def _run() -> None:
        layout = resolve_layout()
        path = store.create_issue(
            layout,
            slug,
            issue_type,
            title or slug,
            stage=parse_stage(stage),
            owner=owner,
        )
        output_result(
            json_output,
            {"slug": slug, "type": str(issue_type), "stage": stage, "path": str(path)},
            f"[green]Created[/green] {issue_type} {slug} in {stage}",
        )

    run_or_exit(json_output, _run)


@app.command()
def move(
    slug: Annotated[str, typer.Argument(help="Issue slug")],
    to: Annotated[str, typer.Argument(help="Target stage (name or directory, e.g. todo or 2-todo)")],
    json_output: JsonOption = False,
) -> None:
    """Move an issue to an adjacent stage, enforcing stage guards."""

    def _run() -> None:
        result = service.move_issue(resolve_layout(), slug, parse_stage(to))
        output_result(
            json_output,
            result.to_dict(),
            f"[green]OK[/green] {result.slug}: {result.from_stage} -> {result.to_stage}",
        )

    run_or_exit(json_output, _run)


@app.command()
def check(
    slug: Annotated[str, typer.Argument(help="Issue slug")],
    to: Annotated[str, typer.Argument(help="Target stage")],
    json_output: JsonOption = False,
) -> None:
    """Report whether a move would be allowed, without moving."""

    def _run() -> None:
        decision = service.check_issue_move(resolve_layout(), slug, parse_stage(to))
        if json_output:
            output_result(True, decision.to_dict())
        elif decision.allowed:
            console.print(f"[green]Allowed[/green] {slug}: {decision.from_stage} -> {decision.to_stage}")
        else:
            console.print(f"[red]Blocked[/red] {escape(decision.reason or '')}")
        if not decision.allowed:
            raise typer.Exit(1)

    run_or_exit(json_output, _run)


@app.command("list")
def list_issues(
    stage: Annotated[Optional[str], typer.Option("--stage", help="Only this stage")] = None,
    json_output: JsonOption = False,
) -> None:
    """List issues across the board."""

    def _run() -> None:
        issues = resolver.list_issues(resolve_layout(), parse_stage(stage) if stage else None)
        if json_output:
            output_result(True, {"issues": [issue_to_dict(i, include_specs=False) for i in issues]})
            return
        if not issues:
            console.print("[dim]No issues[/dim]")
            return

        table = Table(title="Board", show_header=True, header_style="bold")
        table.add_column("Stage")
        table.add_column("Issue")
        table.add_column("Type")
        table.add_column("Owner")
        table.add_column("Specs", justify="right")
        for issue in issues:
            done = sum(1 for s in issue.specs if s.status == "completed")
            table.add_row(
                str(issue.stage),
                issue.slug,
                str(issue.type),
                issue.owner or "-",
                f"{done}/{len(issue.specs)}",
            )
        console.print(table)

    run_or_exit(json_output, _run)


@app.command()
def show(
    slug: Annotated[str, typer.Argument(help="Issue slug")],
    json_output: JsonOption = False,
) -> None:
    """Show one issue with its specs and checklist."""

    def _run() -> None:
        issue = resolver.find_issue(resolve_layout(), slug)
        if json_output:
            output_result(True, issue_to_dict(issue))
            return

        console.print(f"[bold]{escape(issue.title or issue.slug)}[/bold] ({issue.type}, {issue.stage})")
        console.print(f"Owner: {escape(issue.owner or '-')}")
        if issue.guidance is None:
            console.print("Guidance: [yellow]missing[/yellow]")
        else:
            console.print(f"Guidance: {issue.guidance.status} (updated {issue.guidance.last_updated or '-'})")
        for index, item in enumerate(issue.dod, start=1):
            mark = "[green]x[/green]" if item.checked else " "
            console.print(f"  {index}. \\[{mark}] {escape(item.text)}")
        if issue.specs:
            table = Table(show_header=True, header_style="bold")
            table.add_column("Spec")
            table.add_column("Status")
            table.add_column("Round", justify="right")
            table.add_column("Depends on")
            for spec in issue.specs:
                table.add_row(spec.name, str(spec.status), str(spec.review_round), ", ".join(spec.dependencies))
            console.print(table)

    run_or_exit(json_output, _run)


@app.command()
def current(json_output: JsonOption = False) -> None:
    """Show the single issue in in-progress."""

    def _run() -> None:
        issue = resolver.resolve_single_active_issue(resolve_layout())
        output_result(json_output, issue_to_dict(issue), issue.slug)

    run_or_exit(json_output, _run)


@app.command()
def assign(
    slug: Annotated[str, typer.Argument(help="Issue slug")],
    owner: Annotated[Optional[str], typer.Argument(help="Owner; omit to clear")] = None,
) -> None:
    """Set or clear the issue owner."""

    def _run() -> None:
        issue = resolver.find_issue(resolve_layout(), slug)
        store.assign_owner(issue, owner)
        console.print(f"[green]OK[/green] {slug} owner: {escape(owner or '-')}")

    run_or_exit(False, _run)


@app.command()
def describe(
    slug: Annotated[str, typer.Argument(help="Issue slug")],
    text: Annotated[str, typer.Argument(help="New Description section content")],
) -> None:
    """Replace the Description section."""

    def _run() -> None:
        issue = resolver.find_issue(resolve_layout(), slug)
        store.set_description(issue, text)
        console.print(f"[green]OK[/green] {slug} description updated")

    run_or_exit(False, _run)


@app.command()
def dod(
    slug: Annotated[str, typer.Argument(help="Issue slug")],
    index: Annotated[int, typer.Argument(help="Checklist item number (1-based)")],
    uncheck: Annotated[bool, typer.Option("--uncheck", help="Clear the item instead")] = False,
) -> None:
    """Check or uncheck a Definition of Done item."""

    def _run() -> None:
        issue = resolver.find_issue(resolve_layout(), slug)
        store.set_dod_item(issue, index, checked=not uncheck)
        state = "unchecked" if uncheck else "checked"
        console.print(f"[green]OK[/green] {slug} DoD item {index} {state}")

    run_or_exit(False, _run)


@app.command()
def guidance(
    slug: Annotated[str, typer.Argument(help="Issue slug")],
    status: Annotated[Optional[GuidanceStatus], typer.Option("--status", help="Set guidance status")] = None,
) -> None:
    """Create the technical guidance document, or refresh its date."""

    def _run() -> None:
        layout = resolve_layout()
        issue = resolver.find_issue(layout, slug)
        doc = store.write_guidance(layout, issue, status=status)
        console.print(f"[green]OK[/green] {slug} guidance {doc.status}, updated {doc.last_updated}")

    run_or_exit(False, _run)


@app.command()
def archive(
    slug: Annotated[str, typer.Argument(help="Issue slug")],
    json_output: JsonOption = False,
) -> None:
    """Move an issue into the archive."""

    def _run() -> None:
        layout = resolve_layout()
        issue = resolver.find_issue(layout, slug)
        path = store.archive_issue(layout, issue)
        output_result(json_output, {"slug": slug, "path": str(path)}, f"[green]Archived[/green] {slug} -> {path}")

    run_or_exit(json_output, _run)


@app.command()
def delete(
    slug: Annotated[str, typer.Argument(help="Issue slug")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt")] = False,
) -> None:
    """Delete an issue and all of its documents."""

    def _run() -> None:
        issue = resolver.find_issue(resolve_layout(), slug)
        if not yes and not typer.confirm(f"Delete {slug} and its {len(issue.specs)} spec(s)?"):
            console.print("[dim]Aborted[/dim]")
            raise typer.Exit(1)
        store.delete_issue(issue)
        console.print(f"[green]Deleted[/green] {slug}")

    run_or_exit(False, _run)
