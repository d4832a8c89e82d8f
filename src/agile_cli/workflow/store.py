"""Filesystem persistence for the board.

Issue moves and archives are a single directory rename; the destination
stage root is created first and an existing destination is never
overwritten. Document edits are read-modify-write with an atomic replace
(see :func:`agile_cli.core.frontmatter.atomic_write_text`). Every
``OSError`` is surfaced as :class:`IOFailure`.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
from datetime import date
from pathlib import Path
from typing import Any, Callable

from agile_cli.core.frontmatter import FrontmatterError, FrontmatterManager
from agile_cli.core.paths import BoardLayout

from .documents import (
    DESCRIPTION_HEADING,
    DOD_HEADING,
    GUIDANCE_FILENAME,
    extract_section,
    extract_title,
    find_issue_document,
    load_guidance,
    replace_section,
    set_checklist_item,
    spec_frontmatter,
)
from .errors import IOFailure, NotFound
from .models import (
    Guidance,
    GuidanceStatus,
    Issue,
    IssueType,
    Spec,
    SpecStatus,
    Stage,
    spec_filename,
)
from .resolver import slug_in_use
from .templates import GUIDANCE_TEMPLATE_NAME, SPEC_TEMPLATE_NAME, render_template

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def validate_slug(value: str, kind: str = "issue") -> str:
    if not SLUG_PATTERN.match(value):
        raise ValueError(
            f"Invalid {kind} name {value!r}: use kebab-case (lowercase letters, digits, hyphens)"
        )
    return value


def _issue_dir(issue: Issue) -> Path:
    if issue.path is None:
        raise IOFailure(f"Issue {issue.slug} has no storage location")
    return issue.path


def _today(today: date | None) -> str:
    return (today or date.today()).isoformat()


# ---------------------------------------------------------------------------
# Issue moves
# ---------------------------------------------------------------------------


def _move_unit(source: Path, destination: Path) -> None:
    """Rename ``source`` to ``destination`` without clobbering anything."""
    if destination.exists():
        raise IOFailure(f"Destination already exists: {destination}")
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        os.rename(source, destination)
    except OSError as exc:
        raise IOFailure(f"Failed to move {source} to {destination}: {exc}") from exc


def commit_issue_move(layout: BoardLayout, issue: Issue, to_stage: Stage) -> Path:
    """Move the issue directory into ``to_stage``. Returns the new location."""
    source = _issue_dir(issue)
    destination = layout.issue_dir(to_stage, issue.slug)
    _move_unit(source, destination)
    logger.info("Moved issue %s: %s -> %s", issue.slug, issue.stage, to_stage)
    return destination


def archive_issue(layout: BoardLayout, issue: Issue, *, today: date | None = None) -> Path:
    """Move the issue into the archive as ``<slug>-<YYYY-MM-DD>``."""
    source = _issue_dir(issue)
    destination = layout.archive_root / f"{issue.slug}-{_today(today)}"
    _move_unit(source, destination)
    logger.info("Archived issue %s to %s", issue.slug, destination)
    return destination


def delete_issue(issue: Issue) -> None:
    """Remove the issue directory permanently."""
    target = _issue_dir(issue)
    try:
        shutil.rmtree(target)
    except OSError as exc:
        raise IOFailure(f"Failed to delete {target}: {exc}") from exc
    logger.info("Deleted issue %s", issue.slug)


# ---------------------------------------------------------------------------
# Issue creation and edits
# ---------------------------------------------------------------------------


def create_issue(
    layout: BoardLayout,
    slug: str,
    issue_type: IssueType,
    title: str,
    *,
    stage: Stage = Stage.BACKLOG,
    owner: str | None = None,
    today: date | None = None,
) -> Path:
    """Create an issue directory from a template. Returns the directory."""
    validate_slug(slug)
    if slug_in_use(layout, slug):
        raise IOFailure(f"Issue slug already in use (board or archive): {slug}")

    body = render_template(str(issue_type), title=title, slug=slug, templates_dir=layout.templates_dir)
    frontmatter: dict[str, Any] = {
        "type": str(issue_type),
        "owner": owner,
        "created": _today(today),
    }
    manager = FrontmatterManager()
    issue_dir = layout.issue_dir(stage, slug)
    try:
        issue_dir.mkdir(parents=True)
    except OSError as exc:
        raise IOFailure(f"Failed to create issue {slug}: {exc}") from exc
    try:
        manager.write(issue_dir / f"{issue_type}.md", frontmatter, body, manager.ISSUE_FIELD_ORDER)
    except OSError as exc:
        # An issue directory never exists without its main document.
        shutil.rmtree(issue_dir, ignore_errors=True)
        raise IOFailure(f"Failed to create issue {slug}: {exc}") from exc
    logger.info("Created %s %s in %s", issue_type, slug, stage)
    return issue_dir


def update_issue_document(
    issue: Issue,
    mutate: Callable[[dict[str, Any], str], tuple[dict[str, Any], str]],
) -> None:
    """Read-modify-write the main issue document."""
    document = find_issue_document(_issue_dir(issue))
    if document is None:
        raise NotFound("issue", issue.slug, f"Issue {issue.slug} has no main document")
    manager = FrontmatterManager()
    try:
        frontmatter, body = manager.read(document)
        frontmatter, body = mutate(frontmatter, body)
        manager.write(document, frontmatter, body, manager.ISSUE_FIELD_ORDER)
    except (OSError, FrontmatterError) as exc:
        raise IOFailure(f"Failed to update {document}: {exc}") from exc


def assign_owner(issue: Issue, owner: str | None) -> None:
    def _mutate(frontmatter: dict[str, Any], body: str) -> tuple[dict[str, Any], str]:
        frontmatter["owner"] = owner.strip() if owner and owner.strip() else None
        return frontmatter, body

    update_issue_document(issue, _mutate)
    logger.info("Issue %s owner set to %s", issue.slug, owner)


def set_description(issue: Issue, description: str) -> None:
    def _mutate(frontmatter: dict[str, Any], body: str) -> tuple[dict[str, Any], str]:
        return frontmatter, replace_section(body, DESCRIPTION_HEADING, description)

    update_issue_document(issue, _mutate)


def set_dod_item(issue: Issue, index: int, checked: bool = True) -> None:
    """Check (or uncheck) the ``index``-th (1-based) Definition-of-Done item."""

    def _mutate(frontmatter: dict[str, Any], body: str) -> tuple[dict[str, Any], str]:
        section = extract_section(body, DOD_HEADING)
        if section is None:
            raise NotFound("dod", str(index), f"Issue {issue.slug} has no Definition of Done section")
        try:
            updated = set_checklist_item(section, index, checked)
        except IndexError as exc:
            raise NotFound("dod", str(index), f"Issue {issue.slug}: {exc}") from exc
        return frontmatter, replace_section(body, DOD_HEADING, updated)

    update_issue_document(issue, _mutate)


# ---------------------------------------------------------------------------
# Guidance
# ---------------------------------------------------------------------------


def write_guidance(
    layout: BoardLayout,
    issue: Issue,
    *,
    status: GuidanceStatus | None = None,
    today: date | None = None,
) -> Guidance:
    """Create the guidance document, or refresh its ``last-updated`` date."""
    path = _issue_dir(issue) / GUIDANCE_FILENAME
    manager = FrontmatterManager()
    try:
        if path.is_file():
            frontmatter, body = manager.read(path)
        else:
            body = render_template(
                GUIDANCE_TEMPLATE_NAME,
                title=issue.title or issue.slug,
                slug=issue.slug,
                templates_dir=layout.templates_dir,
            )
            frontmatter = {"status": str(GuidanceStatus.DRAFT)}
        frontmatter["last-updated"] = _today(today)
        if status is not None:
            frontmatter["status"] = str(status)
        manager.write(path, frontmatter, body, manager.GUIDANCE_FIELD_ORDER)
    except (OSError, FrontmatterError) as exc:
        raise IOFailure(f"Failed to write guidance for {issue.slug}: {exc}") from exc
    return load_guidance(path)


# ---------------------------------------------------------------------------
# Specs
# ---------------------------------------------------------------------------


def create_spec(
    layout: BoardLayout,
    issue: Issue,
    name: str,
    *,
    title: str | None = None,
    dependencies: list[str] | None = None,
    today: date | None = None,
) -> Spec:
    validate_slug(name, kind="spec")
    path = _issue_dir(issue) / spec_filename(name)
    if path.exists():
        raise IOFailure(f"Spec already exists: {path}")

    body = render_template(
        SPEC_TEMPLATE_NAME,
        title=title or name,
        slug=name,
        templates_dir=layout.templates_dir,
    )
    spec = Spec(
        name=name,
        status=SpecStatus.PENDING,
        title=extract_title(body),
        created=_today(today),
        dependencies=tuple(dependencies or ()),
        body=body,
        path=path,
    )
    commit_spec(spec)
    logger.info("Created spec %s in issue %s", name, issue.slug)
    return spec


def commit_spec(spec: Spec) -> None:
    """Persist a spec's frontmatter and body with a single atomic write.

    Frontmatter keys the model does not own are read back from the existing
    document and kept.
    """
    if spec.path is None:
        raise IOFailure(f"Spec {spec.name} has no storage location")
    manager = FrontmatterManager()
    try:
        frontmatter = manager.read(spec.path)[0] if spec.path.is_file() else {}
        frontmatter.update(spec_frontmatter(spec))
        manager.write(spec.path, frontmatter, spec.body, manager.SPEC_FIELD_ORDER)
    except (OSError, FrontmatterError) as exc:
        raise IOFailure(f"Failed to write {spec.path}: {exc}") from exc


def commit_spec_status(before: Spec, after: Spec) -> None:
    commit_spec(after)
    logger.info(
        "Spec %s: %s -> %s (review round %d)",
        after.name,
        before.status,
        after.status,
        after.review_round,
    )


def delete_spec(spec: Spec) -> None:
    if spec.path is None:
        raise IOFailure(f"Spec {spec.name} has no storage location")
    try:
        spec.path.unlink()
    except OSError as exc:
        raise IOFailure(f"Failed to delete {spec.path}: {exc}") from exc
    logger.info("Deleted spec %s", spec.name)
