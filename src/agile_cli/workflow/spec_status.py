"""Spec status machine: transition table, review guards, and side effects.

Transition table::

    pending     -> in-progress   (no guard)
    in-progress -> in-review     (no guard)
    in-review   -> completed     (latest review verdict APPROVED)
    in-review   -> in-progress   (latest review verdict NEEDS_WORK)
    completed   -> in-review     (no guard, re-review)
    X           -> X             (no-op)

Leaving in-review records the verdict in ``review_history``. Nothing here
performs I/O; callers parse the review section and persist the result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date

from .errors import IllegalTransition, ReviewRequired
from .models import ReviewRecord, Spec, SpecStatus, Verdict
from .review_parser import ParsedReview

logger = logging.getLogger(__name__)

ALLOWED_SPEC_TRANSITIONS: frozenset[tuple[SpecStatus, SpecStatus]] = frozenset(
    {
        (SpecStatus.PENDING, SpecStatus.IN_PROGRESS),
        (SpecStatus.IN_PROGRESS, SpecStatus.IN_REVIEW),
        (SpecStatus.IN_REVIEW, SpecStatus.COMPLETED),
        (SpecStatus.IN_REVIEW, SpecStatus.IN_PROGRESS),
        (SpecStatus.COMPLETED, SpecStatus.IN_REVIEW),
    }
)

# Transitions that need a parsed review with the given verdict.
_REQUIRED_VERDICT: dict[tuple[SpecStatus, SpecStatus], Verdict] = {
    (SpecStatus.IN_REVIEW, SpecStatus.COMPLETED): Verdict.APPROVED,
    (SpecStatus.IN_REVIEW, SpecStatus.IN_PROGRESS): Verdict.NEEDS_WORK,
}


def allowed_spec_targets(status: SpecStatus) -> tuple[SpecStatus, ...]:
    return tuple(
        sorted(
            (to for frm, to in ALLOWED_SPEC_TRANSITIONS if frm == status),
            key=list(SpecStatus).index,
        )
    )


def requires_review(from_status: SpecStatus, to_status: SpecStatus) -> bool:
    """True when the move must consult the spec's review section."""
    return (from_status, to_status) in _REQUIRED_VERDICT


@dataclass(frozen=True)
class SpecTransition:
    """Result of applying a status change to a spec."""

    before: Spec
    after: Spec
    noop: bool = False
    record: ReviewRecord | None = None

    @property
    def from_status(self) -> SpecStatus:
        return self.before.status

    @property
    def to_status(self) -> SpecStatus:
        return self.after.status


def _record_from_review(spec: Spec, review: ParsedReview, today: str) -> ReviewRecord:
    return ReviewRecord(
        round=spec.review_round,
        date=review.reviewed or today,
        verdict=review.verdict,
        failed_criteria=tuple(c.describe() for c in review.failed_criteria),
        concerns=review.concerns,
    )


def _already_recorded(spec: Spec, record: ReviewRecord) -> ReviewRecord | None:
    """Return the history entry ``record`` duplicates, if any.

    A section that was already recorded when the spec last left in-review
    is stale: the spec has been resubmitted or reopened since.
    """
    if not spec.review_history:
        return None
    last = spec.review_history[-1]
    if (last.date, last.verdict, last.failed_criteria, last.concerns) == (
        record.date,
        record.verdict,
        record.failed_criteria,
        record.concerns,
    ):
        return last
    return None


def transition_spec(
    spec: Spec,
    to_status: SpecStatus,
    *,
    review: ParsedReview | None = None,
    today: date | None = None,
) -> SpecTransition:
    """Apply a status change to ``spec`` and return the new spec.

    ``review`` is the parsed latest review section; it is only consulted
    when leaving in-review. The input spec is never mutated.

    Raises:
        IllegalTransition: the pair is not in the transition table.
        ReviewRequired: leaving in-review without the required verdict, or
            with a review section already recorded in ``review_history``.
    """
    from_status = spec.status
    today_str = (today or date.today()).isoformat()

    if from_status == to_status:
        logger.debug("Spec %s already %s; nothing to do", spec.name, from_status)
        return SpecTransition(before=spec, after=spec, noop=True)

    pair = (from_status, to_status)
    if pair not in ALLOWED_SPEC_TRANSITIONS:
        allowed = ", ".join(str(s) for s in allowed_spec_targets(from_status))
        raise IllegalTransition(
            str(from_status),
            str(to_status),
            f"Illegal transition: {from_status} -> {to_status} "
            f"(allowed from {from_status}: {allowed})",
        )

    record: ReviewRecord | None = None
    required = _REQUIRED_VERDICT.get(pair)
    if required is not None:
        if review is None:
            raise ReviewRequired(spec.name, str(required))
        if review.verdict != required:
            raise ReviewRequired(spec.name, str(required), str(review.verdict))
        record = _record_from_review(spec, review, today_str)
        previous = _already_recorded(spec, record)
        if previous is not None:
            raise ReviewRequired(spec.name, str(required), str(review.verdict), previous.round)

    if record is not None and to_status == SpecStatus.IN_PROGRESS:
        # Fix cycle: record the round that was reviewed, then open the next one.
        after = replace(
            spec,
            status=to_status,
            review_round=spec.review_round + 1,
            review_history=spec.review_history + (record,),
        )
    elif record is not None:
        after = replace(
            spec,
            status=to_status,
            completed=today_str,
            review_history=spec.review_history + (record,),
        )
    elif pair == (SpecStatus.COMPLETED, SpecStatus.IN_REVIEW):
        after = replace(
            spec,
            status=to_status,
            completed=None,
            review_round=spec.review_round + 1,
        )
    else:
        after = replace(spec, status=to_status)

    return SpecTransition(before=spec, after=after, record=record)


def unmet_dependencies(spec: Spec, siblings: tuple[Spec, ...] | list[Spec]) -> list[str]:
    """Names of ``spec``'s dependencies that are not completed (advisory only)."""
    by_name = {s.name: s for s in siblings}
    unmet: list[str] = []
    for name in spec.dependencies:
        dependency = by_name.get(name)
        if dependency is None:
            unmet.append(f"{name} (missing)")
        elif dependency.status != SpecStatus.COMPLETED:
            unmet.append(f"{name} ({dependency.status})")
    return unmet
