"""Tests for board configuration and project layout discovery."""

from __future__ import annotations

from pathlib import Path

import pytest
from ruamel.yaml import YAML

from agile_cli.core.config import (
    AgileConfig,
    ConfigError,
    config_path,
    load_config,
    save_config,
)
from agile_cli.core.paths import BoardLayout, locate_project_root
from agile_cli.workflow.models import Stage


def _write_config(root: Path, text: str) -> None:
    path = config_path(root)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        config = load_config(tmp_path)
        assert config == AgileConfig()
        assert config.root == "agile"
        assert config.archive == "archive"
        assert config.guidance_staleness is True

    def test_reads_agile_section(self, tmp_path: Path) -> None:
        _write_config(
            tmp_path,
            "agile:\n"
            "  root: board\n"
            "  templates_dir: .devloop/templates\n"
            "  review:\n"
            "    instructions_file: docs/review.md\n"
            "  guards:\n"
            "    guidance_staleness: false\n",
        )
        config = load_config(tmp_path)
        assert config.root == "board"
        assert config.archive == "archive"
        assert config.templates_dir == ".devloop/templates"
        assert config.review_instructions_file == "docs/review.md"
        assert config.guidance_staleness is False

    def test_other_sections_ignored(self, tmp_path: Path) -> None:
        _write_config(tmp_path, "other:\n  key: value\n")
        assert load_config(tmp_path) == AgileConfig()

    def test_non_bool_staleness(self, tmp_path: Path) -> None:
        _write_config(tmp_path, "agile:\n  guards:\n    guidance_staleness: sometimes\n")
        with pytest.raises(ConfigError, match="guidance_staleness"):
            load_config(tmp_path)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        _write_config(tmp_path, "agile: [unclosed\n")
        with pytest.raises(ConfigError, match="Failed to parse"):
            load_config(tmp_path)


class TestSaveConfig:
    def test_preserves_other_sections(self, tmp_path: Path) -> None:
        _write_config(tmp_path, "other:\n  key: value\n")
        save_config(tmp_path, AgileConfig(root="board", guidance_staleness=False))

        data = YAML().load(config_path(tmp_path).read_text(encoding="utf-8"))
        assert data["other"]["key"] == "value"
        assert data["agile"]["root"] == "board"
        assert load_config(tmp_path).guidance_staleness is False


class TestLayout:
    def test_paths(self, tmp_path: Path) -> None:
        config = AgileConfig(templates_dir="tpl", review_instructions_file="review.md")
        layout = BoardLayout.for_project(tmp_path, config)
        assert layout.board_root == tmp_path / "agile"
        assert layout.archive_root == tmp_path / "agile" / "archive"
        assert layout.stage_root(Stage.REVIEW) == tmp_path / "agile" / "4-review"
        assert layout.issue_dir(Stage.TODO, "x") == tmp_path / "agile" / "2-todo" / "x"
        assert layout.templates_dir == tmp_path / "tpl"
        assert layout.review_instructions_path == tmp_path / "review.md"
        assert [stage for stage, _ in layout.stage_roots()] == list(Stage)

    def test_optional_paths_default_to_none(self, tmp_path: Path) -> None:
        layout = BoardLayout.for_project(tmp_path)
        assert layout.templates_dir is None
        assert layout.review_instructions_path is None


class TestLocateProjectRoot:
    def test_finds_devloop_marker(self, tmp_path: Path) -> None:
        (tmp_path / ".devloop").mkdir()
        nested = tmp_path / "src" / "pkg"
        nested.mkdir(parents=True)
        assert locate_project_root(nested) == tmp_path.resolve()

    def test_finds_board_directory(self, tmp_path: Path) -> None:
        (tmp_path / "agile" / "1-backlog").mkdir(parents=True)
        assert locate_project_root(tmp_path) == tmp_path.resolve()

    def test_git_file_marks_worktree_root(self, tmp_path: Path) -> None:
        (tmp_path / ".git").write_text("gitdir: /elsewhere\n", encoding="utf-8")
        (tmp_path / "docs").mkdir()
        assert locate_project_root(tmp_path / "docs") == tmp_path.resolve()
