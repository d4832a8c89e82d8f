"""Typed entity model for the agile board.

Defines the closed enumerations (Stage, IssueType, SpecStatus, Verdict,
GuidanceStatus) and the in-memory records (Issue, Spec, ReviewRecord,
DodItem, Guidance) that the state machines operate on. Markdown files are
only a serialization of these records; see ``documents.py``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any


class Stage(StrEnum):
    """Ordered issue stages."""

    BACKLOG = "backlog"
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    REVIEW = "review"
    DONE = "done"

    @property
    def index(self) -> int:
        """1-based position in the workflow."""
        return STAGE_ORDER.index(self) + 1

    @property
    def directory(self) -> str:
        """Directory name of this stage under the board root."""
        return f"{self.index}-{self.value}"


STAGE_ORDER: tuple[Stage, ...] = (
    Stage.BACKLOG,
    Stage.TODO,
    Stage.IN_PROGRESS,
    Stage.REVIEW,
    Stage.DONE,
)


class IssueType(StrEnum):
    FEATURE = "feature"
    BUG = "bug"
    TASK = "task"


class SpecStatus(StrEnum):
    """Spec lifecycle states."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    IN_REVIEW = "in-review"
    COMPLETED = "completed"


class Verdict(StrEnum):
    APPROVED = "APPROVED"
    NEEDS_WORK = "NEEDS_WORK"


class GuidanceStatus(StrEnum):
    DRAFT = "draft"
    ACTIVE = "active"
    FINALIZED = "finalized"


def parse_stage(value: str) -> Stage:
    """Resolve a stage name or stage directory name (``3-in-progress``)."""
    normalized = value.strip().lower().replace("_", "-")
    for stage in STAGE_ORDER:
        if normalized in (stage.value, stage.directory):
            return stage
    raise ValueError(
        f"Unknown stage: {value!r}. Expected one of: "
        + ", ".join(s.value for s in STAGE_ORDER)
    )


def parse_spec_status(value: str) -> SpecStatus:
    normalized = value.strip().lower().replace("_", "-")
    try:
        return SpecStatus(normalized)
    except ValueError:
        raise ValueError(
            f"Unknown spec status: {value!r}. Expected one of: "
            + ", ".join(s.value for s in SpecStatus)
        ) from None


@dataclass(frozen=True)
class DodItem:
    """One Definition-of-Done checklist line."""

    text: str
    checked: bool = False


@dataclass(frozen=True)
class ReviewRecord:
    """Outcome of one review round, appended when a spec leaves in-review."""

    round: int
    date: str
    verdict: Verdict
    failed_criteria: tuple[str, ...] = ()
    concerns: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "round": self.round,
            "date": self.date,
            "verdict": str(self.verdict),
            "failedCriteria": list(self.failed_criteria),
            "concerns": list(self.concerns),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReviewRecord:
        return cls(
            round=int(data["round"]),
            date=str(data.get("date", "")),
            verdict=Verdict(str(data["verdict"])),
            failed_criteria=tuple(str(c) for c in data.get("failedCriteria") or ()),
            concerns=tuple(str(c) for c in data.get("concerns") or ()),
        )


@dataclass(frozen=True)
class Spec:
    """A deliverable owned by exactly one issue.

    ``body`` holds the markdown below the frontmatter; the status machine
    never reads it; the review parser does.
    """

    name: str
    status: SpecStatus = SpecStatus.PENDING
    title: str = ""
    created: str | None = None
    completed: str | None = None
    dependencies: tuple[str, ...] = ()
    review_round: int = 1
    review_history: tuple[ReviewRecord, ...] = ()
    body: str = ""
    path: Path | None = None

    @property
    def filename(self) -> str:
        return spec_filename(self.name)


def spec_filename(name: str) -> str:
    return f"{name}.spec.md"


@dataclass(frozen=True)
class Guidance:
    """Technical guidance document attached to an issue."""

    status: GuidanceStatus = GuidanceStatus.DRAFT
    last_updated: str | None = None
    body: str = ""
    path: Path | None = None


@dataclass(frozen=True)
class Issue:
    """A unit of work tracked through the stages.

    ``description`` and ``bdd_scenarios`` are the raw section texts, or
    ``None`` when the section is absent from the document.
    """

    slug: str
    type: IssueType
    stage: Stage
    title: str = ""
    owner: str | None = None
    created: str | None = None
    description: str | None = None
    bdd_scenarios: str | None = None
    dod: tuple[DodItem, ...] = ()
    specs: tuple[Spec, ...] = ()
    guidance: Guidance | None = None
    path: Path | None = None

    @property
    def document_name(self) -> str:
        return f"{self.type}.md"

    def spec(self, name: str) -> Spec | None:
        for spec in self.specs:
            if spec.name == name:
                return spec
        return None
