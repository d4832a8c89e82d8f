"""Tests for the board entity model and enum parsing."""

from __future__ import annotations

import pytest

from agile_cli.workflow.models import (
    STAGE_ORDER,
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


class TestStage:
    def test_order(self) -> None:
        assert [s.value for s in STAGE_ORDER] == ["backlog", "todo", "in-progress", "review", "done"]

    def test_index_is_one_based(self) -> None:
        assert Stage.BACKLOG.index == 1
        assert Stage.DONE.index == 5

    def test_directory_name(self) -> None:
        assert Stage.IN_PROGRESS.directory == "3-in-progress"
        assert Stage.TODO.directory == "2-todo"


class TestParseStage:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("todo", Stage.TODO),
            ("3-in-progress", Stage.IN_PROGRESS),
            ("in_progress", Stage.IN_PROGRESS),
            ("  Review ", Stage.REVIEW),
            ("5-done", Stage.DONE),
        ],
    )
    def test_accepts_names_and_directories(self, raw: str, expected: Stage) -> None:
        assert parse_stage(raw) == expected

    def test_unknown_stage(self) -> None:
        with pytest.raises(ValueError, match="Unknown stage"):
            parse_stage("shipped")


class TestParseSpecStatus:
    def test_underscore_alias(self) -> None:
        assert parse_spec_status("in_review") == SpecStatus.IN_REVIEW

    def test_unknown_status(self) -> None:
        with pytest.raises(ValueError, match="Unknown spec status"):
            parse_spec_status("done")


class TestReviewRecord:
    def test_to_dict_uses_document_keys(self) -> None:
        record = ReviewRecord(
            round=2,
            date="2026-01-12",
            verdict=Verdict.NEEDS_WORK,
            failed_criteria=("Session persists: missing",),
            concerns=("Retry",),
        )
        assert record.to_dict() == {
            "round": 2,
            "date": "2026-01-12",
            "verdict": "NEEDS_WORK",
            "failedCriteria": ["Session persists: missing"],
            "concerns": ["Retry"],
        }

    def test_from_dict_tolerates_missing_lists(self) -> None:
        record = ReviewRecord.from_dict({"round": "1", "date": "2026-01-12", "verdict": "APPROVED"})
        assert record.round == 1
        assert record.verdict == Verdict.APPROVED
        assert record.failed_criteria == ()
        assert record.concerns == ()

    def test_from_dict_rejects_unknown_verdict(self) -> None:
        with pytest.raises(ValueError):
            ReviewRecord.from_dict({"round": 1, "verdict": "MAYBE"})


class TestIssueAndSpec:
    def test_spec_defaults(self) -> None:
        spec = Spec(name="login-flow")
        assert spec.status == SpecStatus.PENDING
        assert spec.review_round == 1
        assert spec.review_history == ()
        assert spec.filename == "login-flow.spec.md"

    def test_issue_spec_lookup(self) -> None:
        issue = Issue(
            slug="user-auth",
            type=IssueType.FEATURE,
            stage=Stage.TODO,
            specs=(Spec(name="a"), Spec(name="b")),
        )
        assert issue.document_name == "feature.md"
        assert issue.spec("b") is issue.specs[1]
        assert issue.spec("c") is None
