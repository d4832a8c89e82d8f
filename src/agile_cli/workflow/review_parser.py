"""Parser for the ``## Review`` section appended to spec documents.

A review section looks like::

    ## Review

    **Reviewed:** 2026-01-12
    **Reviewer:** Alice

    ### Acceptance Criteria Verification

    | Criterion | Status | Evidence |
    |-----------|--------|----------|
    | Login form validates input | PASS | src/login.py:42 |
    | Session persists | FAIL | no persistence layer found |

    ### Test Coverage Audit

    | Test Case | Status | Location |
    |-----------|--------|----------|
    | Logout clears session | MISSING | tests/test_session.py |

    ### Code Quality

    **Concerns:**
    - Token refresh is not retried

    ### Verdict

    **NEEDS_WORK** - session persistence missing

This module performs NO I/O. When a document carries several review
sections the last one wins; earlier ones are superseded re-reviews.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from .errors import MalformedReview
from .models import Verdict

logger = logging.getLogger(__name__)

REVIEW_HEADING_RE = re.compile(r"^##\s+Review\b.*$", re.MULTILINE)
_LEVEL2_RE = re.compile(r"^##\s", re.MULTILINE)
_SUBSECTION_RE = re.compile(r"^###\s+(.+?)\s*$", re.MULTILINE)
_REVIEWED_RE = re.compile(
    r"^\s*(?:\*\*)?(?:Reviewed|Review Date|Date)(?:\*\*)?\s*:\s*(?:\*\*)?\s*(.+?)\s*$",
    re.MULTILINE | re.IGNORECASE,
)
_CONCERNS_LABEL_RE = re.compile(r"^\s*(?:\*\*)?Concerns:?(?:\*\*)?:?\s*$", re.IGNORECASE)
_BULLET_RE = re.compile(r"^\s*(?:[-*+]|\d+\.)\s+(.*\S)\s*$")
_SEPARATOR_CELL_RE = re.compile(r"^:?-{3,}:?$")

ACCEPTANCE_TABLE = "Acceptance Criteria Verification"
TEST_TABLE = "Test Coverage Audit"
NO_CONCERNS = "None identified"

PASS = "PASS"
FAIL = "FAIL"
MISSING = "MISSING"
KNOWN_STATUSES = frozenset({PASS, FAIL, MISSING})


@dataclass(frozen=True)
class FailedCriterion:
    criterion: str
    status: str
    evidence: str = ""

    def describe(self) -> str:
        if self.evidence:
            return f"{self.criterion}: {self.evidence}"
        return self.criterion


@dataclass(frozen=True)
class MissingTest:
    test: str
    location: str = ""


@dataclass(frozen=True)
class ParsedReview:
    """Structured content of the latest review section."""

    verdict: Verdict
    reviewed: str | None = None
    failed_criteria: tuple[FailedCriterion, ...] = ()
    missing_tests: tuple[MissingTest, ...] = ()
    concerns: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "verdict": str(self.verdict),
            "reviewed": self.reviewed,
            "failed_criteria": [
                {"criterion": c.criterion, "status": c.status, "evidence": c.evidence}
                for c in self.failed_criteria
            ],
            "missing_tests": [
                {"test": t.test, "location": t.location} for t in self.missing_tests
            ],
            "concerns": list(self.concerns),
            "warnings": list(self.warnings),
        }


def find_review_section(content: str) -> str | None:
    """Return the text of the last ``## Review`` section, heading excluded."""
    matches = list(REVIEW_HEADING_RE.finditer(content))
    if not matches:
        return None
    rest = content[matches[-1].end():]
    end = _LEVEL2_RE.search(rest)
    return rest[: end.start()] if end else rest


def _subsections(section: str) -> dict[str, str]:
    """Map ``### Title`` -> content within a review section."""
    result: dict[str, str] = {}
    headings = list(_SUBSECTION_RE.finditer(section))
    for i, heading in enumerate(headings):
        end = headings[i + 1].start() if i + 1 < len(headings) else len(section)
        result[heading.group(1).strip()] = section[heading.end():end]
    return result


def _lookup(subsections: dict[str, str], title: str) -> str | None:
    wanted = title.lower()
    for name, body in subsections.items():
        if wanted in name.lower():
            return body
    return None


def _clean_cell(cell: str) -> str:
    return cell.strip().strip("*`_").strip()


def _table_rows(text: str) -> list[list[str]]:
    """Return the data rows of the first markdown table in ``text``.

    The header row (the row directly above the ``---`` separator) and the
    separator itself are dropped.
    """
    raw_rows: list[list[str]] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped.startswith("|"):
            if raw_rows:
                break
            continue
        cells = [c for c in stripped.strip("|").split("|")]
        raw_rows.append([_clean_cell(c) for c in cells])

    rows: list[list[str]] = []
    for i, row in enumerate(raw_rows):
        if all(_SEPARATOR_CELL_RE.match(c.replace(" ", "")) for c in row if c):
            continue
        next_is_separator = i + 1 < len(raw_rows) and all(
            _SEPARATOR_CELL_RE.match(c.replace(" ", "")) for c in raw_rows[i + 1] if c
        )
        if next_is_separator:
            continue
        rows.append(row)
    return rows


def _cell(row: list[str], index: int) -> str:
    return row[index] if index < len(row) else ""


def _status_token(raw: str) -> str:
    match = re.search(r"[A-Za-z_]+", raw)
    return match.group(0).upper() if match else ""


def _parse_criteria(text: str | None, warnings: list[str]) -> tuple[FailedCriterion, ...]:
    if text is None:
        return ()
    failed: list[FailedCriterion] = []
    for row in _table_rows(text):
        criterion = _cell(row, 0)
        status = _status_token(_cell(row, 1))
        if status not in KNOWN_STATUSES:
            message = f"Unrecognized acceptance criterion status {_cell(row, 1)!r} for {criterion!r}"
            logger.warning(message)
            warnings.append(message)
            continue
        if status != PASS:
            failed.append(FailedCriterion(criterion=criterion, status=status, evidence=_cell(row, 2)))
    return tuple(failed)


def _parse_tests(text: str | None, warnings: list[str]) -> tuple[MissingTest, ...]:
    if text is None:
        return ()
    missing: list[MissingTest] = []
    for row in _table_rows(text):
        test = _cell(row, 0)
        status = _status_token(_cell(row, 1))
        if status not in KNOWN_STATUSES:
            message = f"Unrecognized test coverage status {_cell(row, 1)!r} for {test!r}"
            logger.warning(message)
            warnings.append(message)
            continue
        if status == MISSING:
            missing.append(MissingTest(test=test, location=_cell(row, 2)))
    return tuple(missing)


def _concern_lines(section: str, subsections: dict[str, str]) -> list[str]:
    """Lines following a ``Concerns`` label or heading, up to the next block."""
    dedicated = _lookup(subsections, "Concerns")
    if dedicated is not None:
        return dedicated.splitlines()

    lines = section.splitlines()
    for i, line in enumerate(lines):
        if _CONCERNS_LABEL_RE.match(line):
            block: list[str] = []
            for follower in lines[i + 1:]:
                stripped = follower.strip()
                if stripped.startswith("#") or (stripped.startswith("**") and not _BULLET_RE.match(follower)):
                    break
                block.append(follower)
            return block
    return []


def _parse_concerns(section: str, subsections: dict[str, str]) -> tuple[str, ...]:
    concerns: list[str] = []
    for line in _concern_lines(section, subsections):
        match = _BULLET_RE.match(line)
        if not match:
            continue
        text = match.group(1).strip()
        if text.rstrip(".").strip().lower() == NO_CONCERNS.lower():
            continue
        concerns.append(text)
    return tuple(concerns)


# Whole-word verdict tokens; a token negated by a preceding "not" does not count.
_VERDICT_PATTERNS: dict[Verdict, re.Pattern[str]] = {
    v: re.compile(rf"(?<![Nn][Oo][Tt]\s)\b{v}\b") for v in Verdict
}


def _parse_verdict(section: str, subsections: dict[str, str]) -> Verdict:
    heading = re.search(r"^###\s+Verdict\b(.*)$", section, re.MULTILINE)
    if heading is None:
        raise MalformedReview("Review section has no '### Verdict' heading")

    candidate = heading.group(1)
    if not candidate.strip(" :*-"):
        body = _lookup(subsections, "Verdict") or ""
        candidate = next((line for line in body.splitlines() if line.strip()), "")

    found = {v for v, pattern in _VERDICT_PATTERNS.items() if pattern.search(candidate)}
    if len(found) != 1:
        if not found:
            raise MalformedReview(
                "Review verdict must contain APPROVED or NEEDS_WORK; "
                f"found {candidate.strip()!r}"
            )
        raise MalformedReview(
            f"Review verdict is ambiguous (contains both tokens): {candidate.strip()!r}"
        )
    return found.pop()


def parse_review(content: str) -> ParsedReview | None:
    """Parse the latest review section of a spec document.

    Returns None when the document has no ``## Review`` heading. Raises
    :class:`MalformedReview` when the verdict is missing or ambiguous.
    """
    section = find_review_section(content)
    if section is None:
        return None

    subsections = _subsections(section)
    verdict = _parse_verdict(section, subsections)

    reviewed_match = _REVIEWED_RE.search(section)
    reviewed = reviewed_match.group(1).strip("* ") if reviewed_match else None

    warnings: list[str] = []
    failed = _parse_criteria(_lookup(subsections, ACCEPTANCE_TABLE), warnings)
    missing = _parse_tests(_lookup(subsections, TEST_TABLE), warnings)
    concerns = _parse_concerns(section, subsections)

    return ParsedReview(
        verdict=verdict,
        reviewed=reviewed or None,
        failed_criteria=failed,
        missing_tests=missing,
        concerns=concerns,
        warnings=tuple(warnings),
    )


REVIEW_TEMPLATE = """\
## Review

**Reviewed:** {date}
**Reviewer:** {reviewer}

### Acceptance Criteria Verification

| Criterion | Status | Evidence |
|-----------|--------|----------|
| [criterion] | PASS/FAIL | [file:line or explanation] |

### Test Coverage Audit

| Test Case | Status | Location |
|-----------|--------|----------|
| [test case] | PASS/MISSING | [test file] |

### Code Quality

**Strengths:**
- [strength]

**Concerns:**
- None identified

### Verdict

**APPROVED** or **NEEDS_WORK** - [one-line reason]
"""


def render_review_template(date: str, reviewer: str = "[reviewer]") -> str:
    """Return the review section skeleton this parser understands."""
    return REVIEW_TEMPLATE.format(date=date, reviewer=reviewer)
