"""Board operations: validate, then commit.

Single entry point for state changes driven by the CLI. Each operation
loads a fresh snapshot, asks the relevant state machine whether the change
is admissible, and only then calls the persistence adapter. A rejected
change raises before anything is written.

Pipeline for an issue move:
    1. resolver.find_issue(slug)          -- snapshot incl. specs + guidance
    2. stages.validate_stage_transition() -- structural + content guards
    3. store.commit_issue_move()          -- single rename

Pipeline for a spec status change:
    1. resolver.resolve_issue() + find_spec()
    2. review_parser.parse_review()       -- only when leaving in-review
    3. spec_status.transition_spec()      -- table, verdict guard, side effects
    4. store.commit_spec_status()         -- single atomic write
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

from agile_cli.core.paths import BoardLayout

from . import resolver, store
from .models import Issue, Spec, SpecStatus, Stage
from .review_parser import ParsedReview, parse_review
from .spec_status import SpecTransition, requires_review, transition_spec, unmet_dependencies
from .stages import StageDecision, validate_stage_transition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssueMoveResult:
    slug: str
    from_stage: Stage
    to_stage: Stage
    path: Path

    def to_dict(self) -> dict[str, object]:
        return {
            "slug": self.slug,
            "from_stage": str(self.from_stage),
            "to_stage": str(self.to_stage),
            "path": str(self.path),
        }


@dataclass(frozen=True)
class SpecStatusResult:
    issue: str
    transition: SpecTransition
    warnings: tuple[str, ...] = field(default=())

    @property
    def spec(self) -> Spec:
        return self.transition.after

    def to_dict(self) -> dict[str, object]:
        after = self.transition.after
        return {
            "issue": self.issue,
            "spec": after.name,
            "from_status": str(self.transition.from_status),
            "to_status": str(self.transition.to_status),
            "noop": self.transition.noop,
            "review_round": after.review_round,
            "completed": after.completed,
            "review_history": [r.to_dict() for r in after.review_history],
            "warnings": list(self.warnings),
        }


def check_issue_move(layout: BoardLayout, slug: str, to_stage: Stage) -> StageDecision:
    """Evaluate a stage move without committing it."""
    issue = resolver.find_issue(layout, slug)
    return validate_stage_transition(
        issue, to_stage, check_staleness=layout.config.guidance_staleness
    )


def move_issue(layout: BoardLayout, slug: str, to_stage: Stage) -> IssueMoveResult:
    """Move an issue one stage forward or back.

    Raises:
        NotFound: the slug does not resolve.
        IllegalTransition / NonSequentialTransition / UnmetGuard: rejected.
        IOFailure: the rename failed; the issue stays where it was.
    """
    issue = resolver.find_issue(layout, slug)
    decision = validate_stage_transition(
        issue, to_stage, check_staleness=layout.config.guidance_staleness
    )
    decision.raise_if_rejected()

    path = store.commit_issue_move(layout, issue, to_stage)
    return IssueMoveResult(slug=issue.slug, from_stage=issue.stage, to_stage=to_stage, path=path)


def read_review(spec: Spec) -> ParsedReview | None:
    """Parse the latest review section of ``spec`` (None when absent)."""
    return parse_review(spec.body)


def set_spec_status(
    layout: BoardLayout,
    issue_slug: str | None,
    spec_name: str,
    to_status: SpecStatus,
    *,
    today: date | None = None,
) -> SpecStatusResult:
    """Apply a spec status change and persist it.

    ``issue_slug`` may be None to target the single in-progress issue.
    No-op requests succeed without writing anything.
    """
    issue = resolver.resolve_issue(layout, issue_slug)
    spec = resolver.find_spec(issue, spec_name)

    review = read_review(spec) if requires_review(spec.status, to_status) else None
    transition = transition_spec(spec, to_status, review=review, today=today)

    warnings: list[str] = []
    if transition.noop:
        warnings.append(f"Spec {spec.name} is already {spec.status}")
        return SpecStatusResult(issue=issue.slug, transition=transition, warnings=tuple(warnings))

    if to_status == SpecStatus.IN_PROGRESS and spec.status == SpecStatus.PENDING:
        pending = unmet_dependencies(spec, issue.specs)
        if pending:
            logger.warning("Spec %s started before dependencies: %s", spec.name, ", ".join(pending))
            warnings.append("Dependencies not completed: " + ", ".join(pending))

    store.commit_spec_status(transition.before, transition.after)
    return SpecStatusResult(issue=issue.slug, transition=transition, warnings=tuple(warnings))


def review_for(layout: BoardLayout, issue_slug: str | None, spec_name: str | None) -> tuple[Issue, Spec, ParsedReview | None]:
    """Structured review data for a spec, to drive a fix workflow."""
    issue = resolver.resolve_issue(layout, issue_slug)
    spec = resolver.select_spec_for_review(issue, spec_name)
    return issue, spec, read_review(spec)
