"""YAML frontmatter reading and atomic writing for board documents.

Documents are markdown files that begin with a ``---`` fenced YAML block.
Reading returns ``(frontmatter, body)``; writing serializes the mapping with
ruamel.yaml in a stable field order and replaces the file atomically
(temp file in the same directory + ``os.replace``), so an interrupted write
never leaves a torn document behind.
"""

from __future__ import annotations

import io
import os
import tempfile
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError


class FrontmatterError(Exception):
    """Raised when a document's frontmatter cannot be read or written."""


def split_frontmatter(content: str) -> tuple[str | None, str]:
    """Split raw document text into (yaml_text, body).

    Returns ``(None, content)`` when the document has no frontmatter block.
    """
    if not content.startswith("---"):
        return None, content

    lines = content.split("\n")
    for i, line in enumerate(lines[1:], start=1):
        if line.strip() == "---":
            yaml_text = "\n".join(lines[1:i])
            body = "\n".join(lines[i + 1:])
            return yaml_text, body.lstrip("\n")

    return None, content


class FrontmatterManager:
    """Read and write frontmatter with a consistent key order."""

    ISSUE_FIELD_ORDER = ["type", "owner", "created"]

    SPEC_FIELD_ORDER = [
        "status",
        "created",
        "completed",
        "dependencies",
        "review_round",
        "review_history",
    ]

    GUIDANCE_FIELD_ORDER = ["last-updated", "status"]

    def __init__(self) -> None:
        self.yaml = YAML()
        self.yaml.preserve_quotes = True
        self.yaml.default_flow_style = False
        self.yaml.width = 4096

    def parse(self, content: str) -> tuple[dict[str, Any], str]:
        """Parse document text into (frontmatter, body)."""
        yaml_text, body = split_frontmatter(content)
        if yaml_text is None:
            return {}, body
        try:
            data = self.yaml.load(yaml_text)
        except YAMLError as exc:
            raise FrontmatterError(f"Invalid YAML frontmatter: {exc}") from exc
        if data is None:
            return {}, body
        if not isinstance(data, dict):
            raise FrontmatterError("Frontmatter must be a mapping")
        return dict(data), body

    def read(self, file_path: Path) -> tuple[dict[str, Any], str]:
        """Read a document, returning (frontmatter, body)."""
        try:
            content = file_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise FrontmatterError(f"Cannot read {file_path}: {exc}") from exc
        try:
            return self.parse(content)
        except FrontmatterError as exc:
            raise FrontmatterError(f"{file_path}: {exc}") from exc

    def render(
        self,
        frontmatter: dict[str, Any],
        body: str,
        field_order: list[str] | None = None,
    ) -> str:
        """Render frontmatter and body into document text."""
        ordered = self._ordered(frontmatter, field_order or [])
        buffer = io.StringIO()
        self.yaml.dump(ordered, buffer)
        text = f"---\n{buffer.getvalue()}---\n"
        if body:
            text += "\n" + body.lstrip("\n")
        if not text.endswith("\n"):
            text += "\n"
        return text

    def write(
        self,
        file_path: Path,
        frontmatter: dict[str, Any],
        body: str,
        field_order: list[str] | None = None,
    ) -> None:
        """Atomically write a document."""
        atomic_write_text(file_path, self.render(frontmatter, body, field_order))

    @staticmethod
    def _ordered(frontmatter: dict[str, Any], field_order: list[str]) -> dict[str, Any]:
        ordered: dict[str, Any] = {}
        for key in field_order:
            if key in frontmatter:
                ordered[key] = frontmatter[key]
        for key, value in frontmatter.items():
            if key not in ordered:
                ordered[key] = value
        return ordered


def atomic_write_text(path: Path, content: str) -> None:
    """Write ``content`` to ``path`` via temp file + rename.

    The temp file lives in the destination directory so the rename stays on
    one filesystem. On failure the temp file is removed and the original
    file is left untouched.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
        os.replace(tmp_path, path)
    except Exception:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def read_frontmatter(file_path: Path) -> tuple[dict[str, Any], str]:
    """Convenience wrapper around :meth:`FrontmatterManager.read`."""
    return FrontmatterManager().read(file_path)


def write_frontmatter(
    file_path: Path,
    frontmatter: dict[str, Any],
    body: str,
    field_order: list[str] | None = None,
) -> None:
    """Convenience wrapper around :meth:`FrontmatterManager.write`."""
    FrontmatterManager().write(file_path, frontmatter, body, field_order)
