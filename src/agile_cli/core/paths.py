"""Project root discovery and board directory layout."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from agile_cli.core.config import CONFIG_DIR, DEFAULT_BOARD_DIR, AgileConfig
from agile_cli.workflow.models import STAGE_ORDER, Stage


def locate_project_root(start: Path | None = None) -> Path | None:
    """Walk upward from ``start`` to the first directory that looks like a project.

    A project is marked by ``.devloop/``, a board directory or ``.git``.
    Returns None when no marker is found.
    """
    current = (start or Path.cwd()).resolve()
    for candidate in [current, *current.parents]:
        if (candidate / CONFIG_DIR).is_dir():
            return candidate
        if (candidate / DEFAULT_BOARD_DIR).is_dir():
            return candidate
        if (candidate / ".git").exists():
            return candidate
    return None


@dataclass(frozen=True)
class BoardLayout:
    """Resolved locations of the stage directories and archive."""

    project_root: Path
    config: AgileConfig

    @classmethod
    def for_project(cls, project_root: Path, config: AgileConfig | None = None) -> "BoardLayout":
        return cls(project_root=project_root, config=config or AgileConfig())

    @property
    def board_root(self) -> Path:
        return self.project_root / self.config.root

    @property
    def archive_root(self) -> Path:
        return self.board_root / self.config.archive

    @property
    def templates_dir(self) -> Path | None:
        if self.config.templates_dir is None:
            return None
        return self.project_root / self.config.templates_dir

    @property
    def review_instructions_path(self) -> Path | None:
        if self.config.review_instructions_file is None:
            return None
        return self.project_root / self.config.review_instructions_file

    def stage_root(self, stage: Stage) -> Path:
        return self.board_root / stage.directory

    def stage_roots(self) -> list[tuple[Stage, Path]]:
        return [(stage, self.stage_root(stage)) for stage in STAGE_ORDER]

    def issue_dir(self, stage: Stage, slug: str) -> Path:
        return self.stage_root(stage) / slug
