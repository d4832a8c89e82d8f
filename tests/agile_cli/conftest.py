"""Shared fixtures for board, workflow and CLI tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest

from agile_cli.core.paths import BoardLayout
from agile_cli.workflow.documents import GUIDANCE_FILENAME
from agile_cli.workflow.models import Stage, spec_filename
from tests.utils import READY_FEATURE_BODY, SPEC_BODY, write_document


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    (root / ".devloop").mkdir(parents=True)
    return root


@pytest.fixture
def layout(project_root: Path) -> BoardLayout:
    return BoardLayout.for_project(project_root)


@pytest.fixture
def make_issue(layout: BoardLayout) -> Callable[..., Path]:
    """Write an issue directory; returns its path."""

    def _make(
        slug: str,
        stage: Stage = Stage.BACKLOG,
        *,
        issue_type: str = "feature",
        owner: str | None = None,
        body: str = READY_FEATURE_BODY,
    ) -> Path:
        issue_dir = layout.issue_dir(stage, slug)
        write_document(
            issue_dir / f"{issue_type}.md",
            {"type": issue_type, "owner": owner, "created": "2026-01-01"},
            body,
        )
        return issue_dir

    return _make


@pytest.fixture
def make_spec() -> Callable[..., Path]:
    """Write a spec document into an issue directory."""

    def _make(
        issue_dir: Path,
        name: str,
        status: str = "pending",
        *,
        body: str = SPEC_BODY,
        **fields: Any,
    ) -> Path:
        frontmatter: dict[str, Any] = {
            "status": status,
            "created": "2026-01-02",
            "completed": None,
            "dependencies": [],
            "review_round": 1,
            "review_history": [],
        }
        frontmatter.update(fields)
        return write_document(issue_dir / spec_filename(name), frontmatter, body)

    return _make


@pytest.fixture
def make_guidance() -> Callable[..., Path]:
    def _make(issue_dir: Path, last_updated: str = "2026-01-20", status: str = "active") -> Path:
        return write_document(
            issue_dir / GUIDANCE_FILENAME,
            {"last-updated": last_updated, "status": status},
            "# Technical Guidance\n\n## Key Decisions\n\nUse sessions.\n",
        )

    return _make
