"""Locate issues and specs across the stage directories."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterator

from agile_cli.core.paths import BoardLayout

from .documents import find_issue_document, load_issue
from .errors import AmbiguousIssue, NotFound
from .models import Issue, Spec, SpecStatus, Stage

logger = logging.getLogger(__name__)


def iter_issue_dirs(layout: BoardLayout) -> Iterator[tuple[Stage, Path]]:
    """Yield ``(stage, issue_dir)`` for every issue on the board, stage order."""
    for stage, root in layout.stage_roots():
        if not root.is_dir():
            continue
        for child in sorted(root.iterdir()):
            if child.is_dir() and find_issue_document(child) is not None:
                yield stage, child


def locate_issue(layout: BoardLayout, slug: str) -> tuple[Stage, Path]:
    """Return the stage and directory of ``slug`` without loading it."""
    matches = [(stage, path) for stage, path in iter_issue_dirs(layout) if path.name == slug]
    if not matches:
        raise NotFound("issue", slug)
    if len(matches) > 1:
        # An issue lives in exactly one stage; report rather than guess.
        stages = ", ".join(str(stage) for stage, _ in matches)
        raise NotFound("issue", slug, f"Issue {slug} found in several stages: {stages}")
    return matches[0]


def find_issue(layout: BoardLayout, slug: str) -> Issue:
    stage, path = locate_issue(layout, slug)
    return load_issue(path, stage)


def list_issues(layout: BoardLayout, stage: Stage | None = None) -> list[Issue]:
    return [
        load_issue(path, issue_stage)
        for issue_stage, path in iter_issue_dirs(layout)
        if stage is None or issue_stage == stage
    ]


def slug_in_use(layout: BoardLayout, slug: str) -> bool:
    """True when ``slug`` exists in any stage or in the archive."""
    if any(path.name == slug for _, path in iter_issue_dirs(layout)):
        return True
    archive = layout.archive_root
    if archive.is_dir():
        for child in archive.iterdir():
            if child.name == slug:
                return True
            if child.name.startswith(f"{slug}-") and _is_date_suffix(child.name[len(slug) + 1:]):
                return True
    return False


def _is_date_suffix(suffix: str) -> bool:
    return (
        len(suffix) == 10
        and suffix[4] == "-"
        and suffix[7] == "-"
        and suffix.replace("-", "").isdigit()
    )


def resolve_single_active_issue(layout: BoardLayout) -> Issue:
    """Return the one issue in in-progress.

    Raises :class:`AmbiguousIssue` when zero or several issues qualify.
    """
    active = list_issues(layout, Stage.IN_PROGRESS)
    if len(active) != 1:
        raise AmbiguousIssue(str(Stage.IN_PROGRESS), [issue.slug for issue in active])
    return active[0]


def resolve_issue(layout: BoardLayout, slug: str | None) -> Issue:
    """Explicit slug when given, otherwise the single active issue."""
    if slug:
        return find_issue(layout, slug)
    return resolve_single_active_issue(layout)


def find_spec(issue: Issue, name: str) -> Spec:
    spec = issue.spec(name)
    if spec is None:
        known = ", ".join(s.name for s in issue.specs) or "none"
        raise NotFound("spec", name, f"Spec '{name}' not found in issue {issue.slug} (specs: {known})")
    return spec


def _file_mtime(spec: Spec) -> float:
    if spec.path is None:
        return 0.0
    try:
        return spec.path.stat().st_mtime
    except OSError:
        return 0.0


def select_spec_for_review(
    issue: Issue,
    name: str | None = None,
    *,
    modified_at: Callable[[Spec], float] = _file_mtime,
) -> Spec:
    """Pick the spec a review action applies to.

    An explicit ``name`` wins. Otherwise the single in-review spec, or the
    most recently modified one when several are in review. ``modified_at``
    lets callers plug in a version-control timestamp instead of file mtime.
    """
    if name:
        return find_spec(issue, name)

    in_review = [s for s in issue.specs if s.status == SpecStatus.IN_REVIEW]
    if not in_review:
        raise NotFound("spec", "in-review", f"Issue {issue.slug} has no spec in review")
    if len(in_review) > 1:
        logger.debug(
            "Several specs in review for %s: %s; picking most recently modified",
            issue.slug,
            ", ".join(s.name for s in in_review),
        )
    return max(in_review, key=modified_at)
