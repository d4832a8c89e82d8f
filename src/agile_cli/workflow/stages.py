"""Issue stage transition rules and content guards.

Stages are strictly ordered (backlog < todo < in-progress < review < done)
and an issue may only move to an adjacent stage. Forward moves are guarded
by content preconditions; backward moves are always admitted.

Every function here is pure: it inspects an :class:`Issue` snapshot and
never touches the filesystem.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from .documents import count_scenarios, find_placeholders, is_placeholder
from .errors import (
    IllegalTransition,
    NonSequentialTransition,
    UnmetGuard,
    WorkflowError,
)
from .models import STAGE_ORDER, Issue, IssueType, SpecStatus, Stage


def stage_index(stage: Stage) -> int:
    return stage.index


def is_adjacent(from_stage: Stage, to_stage: Stage) -> bool:
    return abs(stage_index(to_stage) - stage_index(from_stage)) == 1


def allowed_targets(from_stage: Stage) -> tuple[Stage, ...]:
    """Stages reachable in one move from ``from_stage``."""
    return tuple(s for s in STAGE_ORDER if is_adjacent(from_stage, s))


# ---------------------------------------------------------------------------
# Guard functions -- each returns the list of unmet conditions
# ---------------------------------------------------------------------------


def _guard_description_ready(issue: Issue) -> list[str]:
    """backlog -> todo: description filled; features need BDD scenarios."""
    unmet: list[str] = []
    description = issue.description
    if description is None or not description.strip():
        unmet.append("Description section is empty")
    else:
        placeholders = find_placeholders(description)
        if placeholders:
            unmet.append(
                "Description contains unresolved placeholders: " + ", ".join(placeholders)
            )

    if issue.type == IssueType.FEATURE:
        scenarios = issue.bdd_scenarios
        if scenarios is None:
            unmet.append("Feature has no '## BDD Scenarios' section")
        elif count_scenarios(scenarios) == 0:
            unmet.append("BDD Scenarios section has no complete Given/When/Then scenario")
        elif find_placeholders(scenarios):
            unmet.append(
                "BDD Scenarios contain unresolved placeholders: "
                + ", ".join(find_placeholders(scenarios))
            )
    return unmet


def _guard_owner_and_guidance(issue: Issue) -> list[str]:
    """todo -> in-progress: owner assigned and technical guidance exists."""
    unmet: list[str] = []
    if is_placeholder(issue.owner):
        unmet.append("Owner is not assigned")
    if issue.guidance is None:
        unmet.append("Technical guidance document does not exist")
    return unmet


def _latest_completion(issue: Issue) -> str | None:
    dates = [s.completed for s in issue.specs if s.status == SpecStatus.COMPLETED and s.completed]
    return max(dates) if dates else None


def _guard_work_complete(issue: Issue, check_staleness: bool) -> list[str]:
    """in-progress -> review: specs completed, guidance fresh, some DoD checked."""
    unmet: list[str] = []
    incomplete = [s for s in issue.specs if s.status != SpecStatus.COMPLETED]
    if incomplete:
        unmet.append(
            "Specs not completed: "
            + ", ".join(f"{s.name} ({s.status})" for s in incomplete)
        )

    if issue.guidance is None:
        unmet.append("Technical guidance document does not exist")
    elif check_staleness:
        latest = _latest_completion(issue)
        last_updated = issue.guidance.last_updated
        if latest is not None and (last_updated is None or last_updated < latest):
            unmet.append(
                f"Technical guidance is stale: last updated {last_updated or 'never'}, "
                f"latest spec completed {latest}"
            )

    if not any(item.checked for item in issue.dod):
        unmet.append("No Definition of Done item is checked")
    return unmet


def _guard_dod_complete(issue: Issue) -> list[str]:
    """review -> done: every DoD item checked."""
    unchecked = [item.text for item in issue.dod if not item.checked]
    if unchecked:
        return [
            f"Definition of Done item not checked: {text}" for text in unchecked
        ]
    return []


# Guard per forward adjacent pair; each takes the issue and the staleness flag.
_GUARDED_TRANSITIONS: dict[tuple[Stage, Stage], Callable[[Issue, bool], list[str]]] = {
    (Stage.BACKLOG, Stage.TODO): lambda issue, _: _guard_description_ready(issue),
    (Stage.TODO, Stage.IN_PROGRESS): lambda issue, _: _guard_owner_and_guidance(issue),
    (Stage.IN_PROGRESS, Stage.REVIEW): _guard_work_complete,
    (Stage.REVIEW, Stage.DONE): lambda issue, _: _guard_dod_complete(issue),
}


def unmet_guards(
    issue: Issue,
    from_stage: Stage,
    to_stage: Stage,
    *,
    check_staleness: bool = True,
) -> list[str]:
    """Every unmet content condition for moving ``issue`` between the stages.

    Backward moves have no content guard and always return an empty list.
    """
    guard = _GUARDED_TRANSITIONS.get((from_stage, to_stage))
    if guard is None:
        return []
    return guard(issue, check_staleness)


# ---------------------------------------------------------------------------
# Decision
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StageDecision:
    """Outcome of evaluating one requested stage move."""

    from_stage: Stage
    to_stage: Stage
    allowed: bool
    reason: str | None = None
    unmet: tuple[str, ...] = field(default=())
    error: WorkflowError | None = field(default=None, compare=False)

    def raise_if_rejected(self) -> None:
        if self.error is not None:
            raise self.error

    def to_dict(self) -> dict[str, object]:
        return {
            "from_stage": str(self.from_stage),
            "to_stage": str(self.to_stage),
            "allowed": self.allowed,
            "reason": self.reason,
            "unmet": list(self.unmet),
        }


def can_transition(
    from_stage: Stage,
    to_stage: Stage,
    issue: Issue | None = None,
    *,
    check_staleness: bool = True,
) -> StageDecision:
    """Decide whether a stage move is admissible.

    Structural rule first (adjacent stages only); then, for forward moves
    and when an ``issue`` snapshot is supplied, every content guard. All
    unmet guards are reported together.
    """
    if from_stage == to_stage:
        error: WorkflowError = IllegalTransition(
            str(from_stage), str(to_stage), f"Issue is already in {from_stage}"
        )
        return StageDecision(from_stage, to_stage, False, str(error), error=error)

    if not is_adjacent(from_stage, to_stage):
        error = NonSequentialTransition(
            str(from_stage), str(to_stage), [str(s) for s in allowed_targets(from_stage)]
        )
        return StageDecision(from_stage, to_stage, False, str(error), error=error)

    if issue is None:
        return StageDecision(from_stage, to_stage, True)

    unmet = unmet_guards(issue, from_stage, to_stage, check_staleness=check_staleness)
    if unmet:
        error = UnmetGuard(str(from_stage), str(to_stage), unmet)
        return StageDecision(from_stage, to_stage, False, str(error), tuple(unmet), error)

    return StageDecision(from_stage, to_stage, True)


def validate_stage_transition(
    issue: Issue,
    to_stage: Stage,
    *,
    check_staleness: bool = True,
) -> StageDecision:
    """Evaluate moving ``issue`` from its current stage to ``to_stage``."""
    return can_transition(issue.stage, to_stage, issue, check_staleness=check_staleness)
