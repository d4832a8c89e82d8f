"""Tests for markdown section helpers and document (de)serialization."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

import pytest

from agile_cli.workflow.documents import (
    count_scenarios,
    extract_section,
    extract_title,
    find_issue_document,
    find_placeholders,
    is_placeholder,
    load_issue,
    load_spec,
    parse_checklist,
    parse_spec,
    render_spec,
    replace_section,
    set_checklist_item,
)
from agile_cli.workflow.errors import IOFailure
from agile_cli.workflow.models import (
    DodItem,
    GuidanceStatus,
    IssueType,
    ReviewRecord,
    Spec,
    SpecStatus,
    Stage,
    Verdict,
)
from tests.utils import TEMPLATE_FEATURE_BODY, write_document

BODY = """\
# Feature: Search

## Description

Full text search.

### Notes

Nested heading stays in the section.

## Definition of Done

- [x] Indexed
- [ ] Documented
"""


# ── Sections ──────────────────────────────────────────────────


class TestSections:
    def test_extract_title(self) -> None:
        assert extract_title(BODY) == "Feature: Search"
        assert extract_title("no heading") == ""

    def test_extract_section_includes_subheadings(self) -> None:
        section = extract_section(BODY, "Description")
        assert section is not None
        assert section.startswith("Full text search.")
        assert "Nested heading stays" in section
        assert "Indexed" not in section

    def test_extract_section_absent(self) -> None:
        assert extract_section(BODY, "BDD Scenarios") is None

    def test_extract_section_is_case_insensitive(self) -> None:
        assert extract_section(BODY, "definition of done") is not None

    def test_replace_existing_section(self) -> None:
        updated = replace_section(BODY, "Description", "Fuzzy search.")
        assert extract_section(updated, "Description") == "Fuzzy search."
        assert extract_section(updated, "Definition of Done") == "- [x] Indexed\n- [ ] Documented"

    def test_replace_appends_missing_section(self) -> None:
        updated = replace_section("# Task: x\n", "Description", "Do it.")
        assert updated == "# Task: x\n\n## Description\n\nDo it.\n"


class TestPlaceholders:
    def test_template_markers_found(self) -> None:
        assert find_placeholders("[Describe the feature] and [owner]") == [
            "[Describe the feature]",
            "[owner]",
        ]

    def test_checkboxes_and_links_are_not_placeholders(self) -> None:
        text = "- [ ] todo\n- [x] done\nSee [the docs](https://example.com)."
        assert find_placeholders(text) == []

    @pytest.mark.parametrize("value", [None, "", "  ", "[name]", "<owner>"])
    def test_is_placeholder(self, value: str | None) -> None:
        assert is_placeholder(value) is True

    def test_real_value_is_not_placeholder(self) -> None:
        assert is_placeholder("Alice") is False


class TestScenarios:
    def test_counts_ordered_triples(self) -> None:
        text = "Given a\nWhen b\nThen c\n\nGiven d\nWhen e\nThen f\n"
        assert count_scenarios(text) == 2

    def test_incomplete_triple_not_counted(self) -> None:
        assert count_scenarios("Given a\nThen c\n") == 0

    def test_bold_keywords(self) -> None:
        assert count_scenarios("- **Given** x\n- **When** y\n- **Then** z\n") == 1


class TestChecklist:
    def test_parse_checklist(self) -> None:
        items = parse_checklist("- [x] Indexed\n- [ ] Documented\nplain line\n* [X] Shipped")
        assert items == (
            DodItem("Indexed", True),
            DodItem("Documented", False),
            DodItem("Shipped", True),
        )

    def test_parse_empty(self) -> None:
        assert parse_checklist(None) == ()

    def test_set_item(self) -> None:
        text = "- [x] Indexed\n- [ ] Documented"
        assert set_checklist_item(text, 2, True) == "- [x] Indexed\n- [x] Documented"
        assert set_checklist_item(text, 1, False) == "- [ ] Indexed\n- [ ] Documented"

    def test_set_item_out_of_range(self) -> None:
        with pytest.raises(IndexError, match="no item 3"):
            set_checklist_item("- [ ] a\n- [ ] b", 3, True)


# ── Specs ─────────────────────────────────────────────────────


class TestSpecDocuments:
    def test_parse_spec_fields(self) -> None:
        spec = parse_spec(
            "login-flow",
            {
                "status": "in-review",
                "created": "2026-01-02",
                "dependencies": ["session-store"],
                "review_round": 2,
                "review_history": [
                    {"round": 1, "date": "2026-01-05", "verdict": "NEEDS_WORK", "failedCriteria": ["x"], "concerns": []}
                ],
            },
            "# Spec: Login flow\n",
        )
        assert spec.status == SpecStatus.IN_REVIEW
        assert spec.title == "Spec: Login flow"
        assert spec.dependencies == ("session-store",)
        assert spec.review_round == 2
        assert spec.review_history[0].verdict == Verdict.NEEDS_WORK

    def test_unknown_status_is_io_failure(self) -> None:
        with pytest.raises(IOFailure, match="unknown status"):
            parse_spec("x", {"status": "done"}, "")

    def test_invalid_round_defaults_to_one(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            spec = parse_spec("x", {"review_round": "two"}, "")
        assert spec.review_round == 1
        assert "invalid review_round" in caplog.text

    def test_malformed_history_entries_skipped(self) -> None:
        spec = parse_spec(
            "x",
            {"review_history": ["junk", {"date": "2026-01-01"}, {"round": 1, "verdict": "APPROVED"}]},
            "",
        )
        assert len(spec.review_history) == 1

    def test_render_and_load(self, tmp_path: Path) -> None:
        path = tmp_path / "login-flow.spec.md"
        spec = Spec(
            name="login-flow",
            status=SpecStatus.COMPLETED,
            created="2026-01-02",
            completed="2026-01-15",
            review_round=2,
            review_history=(ReviewRecord(1, "2026-01-12", Verdict.NEEDS_WORK, ("a: b",), ("c",)),),
            body="# Spec: Login flow\n",
            path=path,
        )
        path.write_text(render_spec(spec), encoding="utf-8")
        loaded = load_spec(path)
        assert loaded.status == SpecStatus.COMPLETED
        assert loaded.completed == "2026-01-15"
        assert loaded.review_round == 2
        assert loaded.review_history == spec.review_history
        assert path.read_text(encoding="utf-8").startswith("---\nstatus: completed\n")


# ── Issues ────────────────────────────────────────────────────


class TestIssueDocuments:
    def test_find_issue_document(self, tmp_path: Path) -> None:
        assert find_issue_document(tmp_path) is None
        (tmp_path / "bug.md").write_text("# Bug\n", encoding="utf-8")
        assert find_issue_document(tmp_path) == tmp_path / "bug.md"

    def test_load_issue_with_specs_and_guidance(
        self,
        make_issue: Callable[..., Path],
        make_spec: Callable[..., Path],
        make_guidance: Callable[..., Path],
    ) -> None:
        issue_dir = make_issue("user-auth", Stage.TODO, owner="Alice")
        make_spec(issue_dir, "b-spec", "completed", completed="2026-01-10")
        make_spec(issue_dir, "a-spec")
        make_guidance(issue_dir, status="bogus")

        issue = load_issue(issue_dir, Stage.TODO)
        assert issue.slug == "user-auth"
        assert issue.type == IssueType.FEATURE
        assert issue.owner == "Alice"
        assert issue.created == "2026-01-01"
        assert issue.title == "Feature: User authentication"
        assert issue.description == "Users sign in with email and password."
        assert issue.bdd_scenarios is not None
        assert [item.checked for item in issue.dod] == [True, False]
        assert [s.name for s in issue.specs] == ["a-spec", "b-spec"]
        assert issue.guidance is not None
        assert issue.guidance.status == GuidanceStatus.DRAFT

    def test_unknown_type_falls_back_to_document_name(self, tmp_path: Path) -> None:
        write_document(tmp_path / "demo" / "task.md", {"type": "epic"}, TEMPLATE_FEATURE_BODY)
        issue = load_issue(tmp_path / "demo", Stage.BACKLOG)
        assert issue.type == IssueType.TASK
        assert issue.guidance is None
        assert issue.specs == ()

    def test_missing_document(self, tmp_path: Path) -> None:
        (tmp_path / "empty").mkdir()
        with pytest.raises(IOFailure, match="no feature.md"):
            load_issue(tmp_path / "empty", Stage.BACKLOG)
