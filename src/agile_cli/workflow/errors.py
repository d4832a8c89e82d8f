"""Exception hierarchy for workflow transitions and board storage."""

from __future__ import annotations

from typing import Sequence


class WorkflowError(Exception):
    """Base exception for all workflow errors."""


class IllegalTransition(WorkflowError):
    """Requested move is not in the transition table."""

    def __init__(self, from_state: str, to_state: str, message: str | None = None):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            message or f"Illegal transition: {from_state} -> {to_state}"
        )


class NonSequentialTransition(WorkflowError):
    """Stage move skips one or more stages."""

    def __init__(self, from_stage: str, to_stage: str, allowed: Sequence[str]):
        self.from_stage = from_stage
        self.to_stage = to_stage
        self.allowed = tuple(allowed)
        super().__init__(
            f"Cannot move from {from_stage} to {to_stage}: stages must be "
            f"visited in order. Allowed targets: {', '.join(self.allowed)}"
        )


class UnmetGuard(WorkflowError):
    """One or more preconditions of a forward move are not satisfied.

    Carries every unmet condition, never just the first.
    """

    def __init__(self, from_stage: str, to_stage: str, unmet: Sequence[str]):
        self.from_stage = from_stage
        self.to_stage = to_stage
        self.unmet = tuple(unmet)
        lines = "\n".join(f"  - {reason}" for reason in self.unmet)
        super().__init__(
            f"Cannot move from {from_stage} to {to_stage}; "
            f"{len(self.unmet)} requirement(s) not met:\n{lines}"
        )


class ReviewRequired(WorkflowError):
    """Leaving in-review needs a review section with a specific verdict."""

    def __init__(
        self,
        spec_name: str,
        required: str,
        found: str | None = None,
        recorded_round: int | None = None,
    ):
        self.spec_name = spec_name
        self.required = required
        self.found = found
        self.recorded_round = recorded_round
        if found is None:
            detail = "no review section found"
        elif recorded_round is not None:
            detail = (
                f"latest review section was already recorded for round {recorded_round}; "
                "append a new review"
            )
        else:
            detail = f"latest review verdict is {found}"
        super().__init__(
            f"Spec '{spec_name}' requires a {required} review verdict ({detail})"
        )


class MalformedReview(WorkflowError):
    """Review section exists but its verdict cannot be determined."""


class NotFound(WorkflowError):
    """Issue or spec name does not resolve."""

    def __init__(self, kind: str, name: str, message: str | None = None):
        self.kind = kind
        self.name = name
        super().__init__(message or f"{kind.capitalize()} not found: {name}")


class AmbiguousIssue(WorkflowError):
    """Zero or several issues qualify where exactly one was expected."""

    def __init__(self, stage: str, candidates: Sequence[str]):
        self.stage = stage
        self.candidates = tuple(candidates)
        if not self.candidates:
            message = f"No issue is in {stage}; pass the issue slug explicitly"
        else:
            message = (
                f"Several issues are in {stage} ({', '.join(self.candidates)}); "
                "pass the issue slug explicitly"
            )
        super().__init__(message)


class IOFailure(WorkflowError):
    """Underlying storage operation failed (collision, permissions, template)."""
