"""Spec commands: create, status changes and reviews.

When ``--issue`` is omitted the single issue in in-progress is used.

Examples:
    agile spec create token-storage --issue user-auth --depends-on login-api
    agile spec status token-storage in-review
    agile spec review --json
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import List, Optional

import typer
from rich.markup import escape
from rich.table import Table
from typing_extensions import Annotated

from agile_cli.cli.helpers import (
    console,
    output_result,
    resolve_layout,
    run_or_exit,
    spec_to_dict,
)
from agile_cli.workflow import resolver, service, store
from agile_cli.workflow.errors import IOFailure
from agile_cli.workflow.models import parse_spec_status
from agile_cli.workflow.review_parser import render_review_template

app = typer.Typer(
    name="spec",
    help="Manage specs within an issue",
    no_args_is_help=True,
)

IssueOption = Annotated[
    Optional[str],
    typer.Option("--issue", "-i", help="Issue slug (defaults to the single in-progress issue)"),
]
JsonOption = Annotated[bool, typer.Option("--json", help="Machine-readable JSON output")]


@app.command()
def create(
    name: Annotated[str, typer.Argument(help="Spec name (kebab-case)")],
    issue: IssueOption = None,
    title: Annotated[Optional[str], typer.Option("--title", help="Spec title")] = None,
    depends_on: Annotated[
        Optional[List[str]], typer.Option("--depends-on", help="Sibling spec this one depends on")
    ] = None,
    json_output: JsonOption = False,
) -> None:
    """Create a pending spec inside an issue."""

    def _run() -> None:
        layout = resolve_layout()
        target = resolver.resolve_issue(layout, issue)
        unknown = [dep for dep in depends_on or [] if target.spec(dep) is None]
        spec = store.create_spec(layout, target, name, title=title, dependencies=depends_on)
        if unknown:
            console.print(f"[yellow]Warning:[/yellow] unknown dependencies: {', '.join(unknown)}")
        output_result(
            json_output,
            {"issue": target.slug, **spec_to_dict(spec)},
            f"[green]Created[/green] spec {name} in {target.slug}",
        )

    run_or_exit(json_output, _run)


@app.command()
def status(
    name: Annotated[str, typer.Argument(help="Spec name")],
    to: Annotated[str, typer.Argument(help="Target status: pending, in-progress, in-review, completed")],
    issue: IssueOption = None,
    json_output: JsonOption = False,
) -> None:
    """Change a spec's status.

    Leaving in-review requires a review section whose verdict matches:
    APPROVED to complete, NEEDS_WORK to go back to in-progress.
    """

    def _run() -> None:
        result = service.set_spec_status(resolve_layout(), issue, name, parse_spec_status(to))
        if json_output:
            output_result(True, result.to_dict())
            return
        transition = result.transition
        for warning in result.warnings:
            console.print(f"[yellow]Warning:[/yellow] {escape(warning)}")
        if not transition.noop:
            console.print(
                f"[green]OK[/green] {name}: {transition.from_status} -> {transition.to_status} "
                f"(round {transition.after.review_round})"
            )

    run_or_exit(json_output, _run)


@app.command("list")
def list_specs(issue: IssueOption = None, json_output: JsonOption = False) -> None:
    """List the specs of an issue."""

    def _run() -> None:
        target = resolver.resolve_issue(resolve_layout(), issue)
        if json_output:
            output_result(True, {"issue": target.slug, "specs": [spec_to_dict(s) for s in target.specs]})
            return
        table = Table(title=target.slug, show_header=True, header_style="bold")
        table.add_column("Spec")
        table.add_column("Status")
        table.add_column("Round", justify="right")
        table.add_column("Completed")
        for spec in target.specs:
            table.add_row(spec.name, str(spec.status), str(spec.review_round), spec.completed or "-")
        console.print(table)

    run_or_exit(json_output, _run)


@app.command()
def review(
    name: Annotated[Optional[str], typer.Argument(help="Spec name (defaults to the spec in review)")] = None,
    issue: IssueOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show the latest review of a spec: verdict, failures and concerns."""

    def _run() -> None:
        target, spec, parsed = service.review_for(resolve_layout(), issue, name)
        if parsed is None:
            raise IOFailure(f"Spec {spec.name} has no review section")
        if json_output:
            output_result(True, {"issue": target.slug, "spec": spec.name, **parsed.to_dict()})
            return

        colour = "green" if parsed.verdict == "APPROVED" else "red"
        console.print(f"{spec.name}: [{colour}]{parsed.verdict}[/{colour}] (reviewed {parsed.reviewed or '-'})")
        for failure in parsed.failed_criteria:
            console.print(f"  [red]{failure.status}[/red] {escape(failure.describe())}")
        for missing in parsed.missing_tests:
            console.print(f"  [yellow]MISSING TEST[/yellow] {escape(missing.test)}")
        for concern in parsed.concerns:
            console.print(f"  - {escape(concern)}")
        for warning in parsed.warnings:
            console.print(f"  [dim]{escape(warning)}[/dim]")

    run_or_exit(json_output, _run)


@app.command("review-template")
def review_template(
    name: Annotated[Optional[str], typer.Argument(help="Spec name (defaults to the spec in review)")] = None,
    issue: IssueOption = None,
    reviewer: Annotated[str, typer.Option("--reviewer", help="Reviewer name")] = "[reviewer]",
    append: Annotated[bool, typer.Option("--append", help="Append the template to the spec file")] = False,
) -> None:
    """Print review instructions and the review section skeleton."""

    def _run() -> None:
        layout = resolve_layout()
        template = render_review_template(date.today().isoformat(), reviewer)

        instructions_path = layout.review_instructions_path
        if instructions_path is not None:
            try:
                instructions = instructions_path.read_text(encoding="utf-8")
            except OSError as exc:
                raise IOFailure(f"Review instructions not readable: {instructions_path}") from exc
            console.print(escape(instructions.rstrip()))
            console.print()

        if append:
            target = resolver.resolve_issue(layout, issue)
            spec = resolver.select_spec_for_review(target, name)
            store.commit_spec(replace(spec, body=spec.body.rstrip("\n") + "\n\n" + template))
            console.print(f"[green]OK[/green] review template appended to {spec.filename}")
            return

        console.print(escape(template), highlight=False)

    run_or_exit(False, _run)


@app.command()
def delete(
    name: Annotated[str, typer.Argument(help="Spec name")],
    issue: IssueOption = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt")] = False,
) -> None:
    """Delete a spec file."""

    def _run() -> None:
        target = resolver.resolve_issue(resolve_layout(), issue)
        spec = resolver.find_spec(target, name)
        if not yes and not typer.confirm(f"Delete spec {name} from {target.slug}?"):
            console.print("[dim]Aborted[/dim]")
            raise typer.Exit(1)
        store.delete_spec(spec)
        dependents = [s.name for s in target.specs if name in s.dependencies]
        if dependents:
            console.print(f"[yellow]Warning:[/yellow] still depended on by: {', '.join(dependents)}")
        console.print(f"[green]Deleted[/green] spec {name}")

    run_or_exit(False, _run)
