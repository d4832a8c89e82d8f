"""Workflow engine for the agile board.

Public API surface -- consumers import from this package.
"""

from .models import (
    STAGE_ORDER,
    DodItem,
    Guidance,
    GuidanceStatus,
    Issue,
    IssueType,
    ReviewRecord,
    Spec,
    SpecStatus,
    Stage,
    Verdict,
    parse_spec_status,
    parse_stage,
)
from .errors import (
    AmbiguousIssue,
    IllegalTransition,
    IOFailure,
    MalformedReview,
    NonSequentialTransition,
    NotFound,
    ReviewRequired,
    UnmetGuard,
    WorkflowError,
)
from .review_parser import (
    FailedCriterion,
    MissingTest,
    ParsedReview,
    parse_review,
    render_review_template,
)
from .stages import (
    StageDecision,
    allowed_targets,
    can_transition,
    is_adjacent,
    unmet_guards,
    validate_stage_transition,
)
from .spec_status import (
    ALLOWED_SPEC_TRANSITIONS,
    SpecTransition,
    allowed_spec_targets,
    transition_spec,
    unmet_dependencies,
)

__all__ = [
    "ALLOWED_SPEC_TRANSITIONS",
    "AmbiguousIssue",
    "DodItem",
    "FailedCriterion",
    "Guidance",
    "GuidanceStatus",
    "IOFailure",
    "IllegalTransition",
    "Issue",
    "IssueType",
    "MalformedReview",
    "MissingTest",
    "NonSequentialTransition",
    "NotFound",
    "ParsedReview",
    "ReviewRecord",
    "ReviewRequired",
    "STAGE_ORDER",
    "Spec",
    "SpecStatus",
    "SpecTransition",
    "Stage",
    "StageDecision",
    "UnmetGuard",
    "Verdict",
    "WorkflowError",
    "allowed_spec_targets",
    "allowed_targets",
    "can_transition",
    "is_adjacent",
    "parse_review",
    "parse_spec_status",
    "parse_stage",
    "render_review_template",
    "transition_spec",
    "unmet_dependencies",
    "unmet_guards",
    "validate_stage_transition",
]
