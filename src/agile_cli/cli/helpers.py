"""Shared plumbing for agile CLI commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, TypeVar

import typer
from rich.console import Console
from rich.markup import escape

from agile_cli.core.config import ConfigError, load_config
from agile_cli.core.paths import BoardLayout, locate_project_root
from agile_cli.workflow.errors import WorkflowError
from agile_cli.workflow.models import Issue, Spec

console = Console()

T = TypeVar("T")


def output_result(json_mode: bool, data: dict[str, Any], success_message: str | None = None) -> None:
    """Output result in JSON or human-readable format."""
    if json_mode:
        print(json.dumps(data, default=str))
    elif success_message:
        console.print(success_message)


def output_error(json_mode: bool, error_message: str) -> None:
    """Output error in JSON or human-readable format."""
    if json_mode:
        print(json.dumps({"error": error_message}))
    else:
        console.print(f"[red]Error:[/red] {escape(error_message)}")


def run_or_exit(json_mode: bool, fn: Callable[[], T]) -> T:
    """Run a command body, mapping domain errors to exit code 1."""
    try:
        return fn()
    except typer.Exit:
        raise
    except (WorkflowError, ConfigError, ValueError) as exc:
        output_error(json_mode, str(exc))
        raise typer.Exit(1) from exc


def resolve_layout(cwd: Path | None = None) -> BoardLayout:
    """Find the project root from ``cwd`` and load its board config."""
    start = (cwd or Path.cwd()).resolve()
    project_root = locate_project_root(start)
    if project_root is None:
        raise ConfigError(f"Could not locate project root from {start}")
    return BoardLayout.for_project(project_root, load_config(project_root))


def spec_to_dict(spec: Spec) -> dict[str, Any]:
    return {
        "name": spec.name,
        "title": spec.title,
        "status": str(spec.status),
        "created": spec.created,
        "completed": spec.completed,
        "dependencies": list(spec.dependencies),
        "review_round": spec.review_round,
        "review_history": [record.to_dict() for record in spec.review_history],
    }


def issue_to_dict(issue: Issue, *, include_specs: bool = True) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "slug": issue.slug,
        "type": str(issue.type),
        "stage": str(issue.stage),
        "title": issue.title,
        "owner": issue.owner,
        "created": issue.created,
        "path": str(issue.path) if issue.path else None,
        "dod": [{"text": item.text, "checked": item.checked} for item in issue.dod],
        "guidance": None,
    }
    if issue.guidance is not None:
        payload["guidance"] = {
            "status": str(issue.guidance.status),
            "last_updated": issue.guidance.last_updated,
        }
    if include_specs:
        payload["specs"] = [spec_to_dict(spec) for spec in issue.specs]
    return payload
