"""Tests for the review section parser."""

from __future__ import annotations

import logging

import pytest

from agile_cli.workflow.errors import MalformedReview
from agile_cli.workflow.models import Verdict
from agile_cli.workflow.review_parser import (
    FailedCriterion,
    MissingTest,
    find_review_section,
    parse_review,
    render_review_template,
)
from tests.utils import APPROVED_REVIEW, NEEDS_WORK_REVIEW, SPEC_BODY


class TestAbsentSection:
    def test_no_review_heading(self) -> None:
        assert parse_review(SPEC_BODY) is None

    def test_reviewer_heading_is_not_review(self) -> None:
        assert find_review_section("## Reviewers\n\nAlice\n") is None


class TestNeedsWorkReview:
    def test_full_parse(self) -> None:
        review = parse_review(SPEC_BODY + NEEDS_WORK_REVIEW)
        assert review is not None
        assert review.verdict == Verdict.NEEDS_WORK
        assert review.reviewed == "2026-01-12"
        assert review.failed_criteria == (
            FailedCriterion("Session persists", "FAIL", "no persistence layer found"),
        )
        assert review.missing_tests == (MissingTest("rejects empty password", "tests/test_login.py"),)
        assert review.concerns == ("Token refresh is not retried",)
        assert review.warnings == ()

    def test_parse_is_deterministic(self) -> None:
        content = SPEC_BODY + NEEDS_WORK_REVIEW
        assert parse_review(content) == parse_review(content)

    def test_to_dict(self) -> None:
        review = parse_review(NEEDS_WORK_REVIEW)
        assert review is not None
        payload = review.to_dict()
        assert payload["verdict"] == "NEEDS_WORK"
        assert payload["failed_criteria"] == [
            {"criterion": "Session persists", "status": "FAIL", "evidence": "no persistence layer found"}
        ]


class TestApprovedReview:
    def test_none_identified_is_not_a_concern(self) -> None:
        review = parse_review(APPROVED_REVIEW)
        assert review is not None
        assert review.verdict == Verdict.APPROVED
        assert review.failed_criteria == ()
        assert review.missing_tests == ()
        assert review.concerns == ()

    def test_last_section_wins(self) -> None:
        review = parse_review(SPEC_BODY + NEEDS_WORK_REVIEW + APPROVED_REVIEW)
        assert review is not None
        assert review.verdict == Verdict.APPROVED
        assert review.reviewed == "2026-01-15"

    def test_earlier_section_ignored_even_after_other_headings(self) -> None:
        content = APPROVED_REVIEW + "\n## Notes\n\nfollow-up\n" + NEEDS_WORK_REVIEW
        review = parse_review(content)
        assert review is not None
        assert review.verdict == Verdict.NEEDS_WORK


class TestVerdict:
    def test_verdict_on_heading_line(self) -> None:
        review = parse_review("## Review\n\n### Verdict: APPROVED\n")
        assert review is not None
        assert review.verdict == Verdict.APPROVED

    def test_missing_verdict_heading(self) -> None:
        with pytest.raises(MalformedReview, match="no '### Verdict'"):
            parse_review("## Review\n\n**Reviewed:** 2026-01-01\n")

    def test_verdict_without_token(self) -> None:
        with pytest.raises(MalformedReview, match="must contain"):
            parse_review("## Review\n\n### Verdict\n\nLooks fine to me\n")

    def test_verdict_is_case_sensitive(self) -> None:
        with pytest.raises(MalformedReview):
            parse_review("## Review\n\n### Verdict\n\napproved\n")

    @pytest.mark.parametrize("line", ["**NOT APPROVED** - tests fail", "UNAPPROVED", "NEEDS_WORKING_GROUP sign-off"])
    def test_verdict_token_must_stand_alone(self, line: str) -> None:
        with pytest.raises(MalformedReview, match="must contain"):
            parse_review(f"## Review\n\n### Verdict\n\n{line}\n")

    def test_negated_token_does_not_make_verdict_ambiguous(self) -> None:
        review = parse_review("## Review\n\n### Verdict\n\n**NEEDS_WORK** - not APPROVED until retries land\n")
        assert review is not None
        assert review.verdict == Verdict.NEEDS_WORK

    def test_ambiguous_verdict(self) -> None:
        with pytest.raises(MalformedReview, match="ambiguous"):
            parse_review("## Review\n\n### Verdict\n\n**APPROVED** or **NEEDS_WORK**\n")

    def test_unfilled_template_is_ambiguous(self) -> None:
        with pytest.raises(MalformedReview, match="ambiguous"):
            parse_review(render_review_template("2026-01-01"))


class TestTables:
    def test_unknown_status_is_ignored_with_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        content = """\
## Review

### Acceptance Criteria Verification

| Criterion | Status | Evidence |
|-----------|--------|----------|
| Works offline | PARTIAL | cache only |
| Loads fast | FAIL |

### Verdict

NEEDS_WORK
"""
        with caplog.at_level(logging.WARNING):
            review = parse_review(content)
        assert review is not None
        assert review.failed_criteria == (FailedCriterion("Loads fast", "FAIL", ""),)
        assert len(review.warnings) == 1
        assert "PARTIAL" in review.warnings[0]
        assert "PARTIAL" in caplog.text

    def test_missing_status_counts_as_failed_criterion(self) -> None:
        content = """\
## Review

### Acceptance Criteria Verification

| Criterion | Status | Evidence |
|---|---|---|
| Audit log written | **MISSING** | |

### Verdict

NEEDS_WORK
"""
        review = parse_review(content)
        assert review is not None
        assert review.failed_criteria == (FailedCriterion("Audit log written", "MISSING", ""),)

    def test_dedicated_concerns_subsection(self) -> None:
        content = """\
## Review

### Concerns

- Retry logic missing
- None identified
1. Flaky test

### Verdict

APPROVED
"""
        review = parse_review(content)
        assert review is not None
        assert review.concerns == ("Retry logic missing", "Flaky test")


class TestTemplate:
    def test_template_contains_sections(self) -> None:
        text = render_review_template("2026-02-01", "Alice")
        assert text.startswith("## Review\n")
        assert "**Reviewed:** 2026-02-01" in text
        assert "**Reviewer:** Alice" in text
        assert "### Acceptance Criteria Verification" in text
        assert "### Test Coverage Audit" in text
        assert "### Verdict" in text
