"""Markdown serialization of issues, specs and guidance documents.

Converts board files into the typed records of ``models.py`` and back.
Only a handful of tagged locations are interpreted: frontmatter fields, the
first ``# `` heading, level-2 sections by name, and checklist lines.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from datetime import date, datetime
from pathlib import Path
from typing import Any

from agile_cli.core.frontmatter import FrontmatterError, FrontmatterManager

from .errors import IOFailure
from .models import (
    DodItem,
    Guidance,
    GuidanceStatus,
    Issue,
    IssueType,
    ReviewRecord,
    Spec,
    SpecStatus,
    Stage,
)

logger = logging.getLogger(__name__)

GUIDANCE_FILENAME = "technical-guidance.md"
SPEC_SUFFIX = ".spec.md"

DESCRIPTION_HEADING = "Description"
BDD_HEADING = "BDD Scenarios"
DOD_HEADING = "Definition of Done"

_CHECKBOX_RE = re.compile(r"^(\s*[-*]\s+\[)([ xX])(\]\s*)(.*)$")
# Bracketed template markers; checkbox marks and markdown links are not placeholders.
_PLACEHOLDER_RE = re.compile(r"\[(?![ xX]\])([^\[\]\n]+)\](?!\()")
_GIVEN_RE = re.compile(r"\bgiven\b", re.IGNORECASE)
_WHEN_RE = re.compile(r"\bwhen\b", re.IGNORECASE)
_THEN_RE = re.compile(r"\bthen\b", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Section helpers
# ---------------------------------------------------------------------------


def _heading_re(heading: str) -> re.Pattern[str]:
    return re.compile(rf"^##\s+{re.escape(heading)}\s*$", re.MULTILINE | re.IGNORECASE)


def extract_title(body: str) -> str:
    """Return the text of the first level-1 heading, or an empty string."""
    for line in body.splitlines():
        if line.startswith("# "):
            return line[2:].strip()
    return ""


def extract_section(body: str, heading: str) -> str | None:
    """Return the stripped content of a ``## heading`` section.

    Returns None when the heading is absent. The section runs until the
    next level-2 (or level-1) heading.
    """
    match = _heading_re(heading).search(body)
    if match is None:
        return None
    rest = body[match.end():]
    end = re.search(r"^#{1,2}\s", rest, re.MULTILINE)
    content = rest[: end.start()] if end else rest
    return content.strip()


def replace_section(body: str, heading: str, content: str) -> str:
    """Replace the content of ``## heading``, appending the section if absent."""
    new_block = f"## {heading}\n\n{content.strip()}\n"
    match = _heading_re(heading).search(body)
    if match is None:
        if not body.strip():
            return new_block
        return body.rstrip("\n") + "\n\n" + new_block
    rest = body[match.end():]
    end = re.search(r"^#{1,2}\s", rest, re.MULTILINE)
    tail = rest[end.start():] if end else ""
    joiner = "\n" if tail else ""
    return body[: match.start()] + new_block + joiner + tail


def find_placeholders(text: str) -> list[str]:
    """Return the unresolved bracketed template markers in ``text``."""
    return [f"[{m.group(1)}]" for m in _PLACEHOLDER_RE.finditer(text)]


def is_placeholder(value: str | None) -> bool:
    """True for empty values and values that are a single template marker."""
    if value is None or not value.strip():
        return True
    stripped = value.strip()
    return bool(
        (stripped.startswith("[") and stripped.endswith("]"))
        or (stripped.startswith("<") and stripped.endswith(">"))
    )


def count_scenarios(text: str) -> int:
    """Count complete Given/When/Then triples, in order, in ``text``."""
    expected = (_GIVEN_RE, _WHEN_RE, _THEN_RE)
    position = 0
    triples = 0
    for line in text.splitlines():
        if expected[position].search(line):
            position += 1
            if position == len(expected):
                triples += 1
                position = 0
    return triples


def parse_checklist(text: str | None) -> tuple[DodItem, ...]:
    if not text:
        return ()
    items: list[DodItem] = []
    for line in text.splitlines():
        match = _CHECKBOX_RE.match(line)
        if match:
            items.append(DodItem(text=match.group(4).strip(), checked=match.group(2) in "xX"))
    return tuple(items)


def set_checklist_item(text: str, index: int, checked: bool) -> str:
    """Check or uncheck the ``index``-th (1-based) checkbox line of ``text``.

    Raises IndexError when the checklist has fewer items.
    """
    lines = text.split("\n")
    seen = 0
    for i, line in enumerate(lines):
        match = _CHECKBOX_RE.match(line)
        if not match:
            continue
        seen += 1
        if seen == index:
            mark = "x" if checked else " "
            lines[i] = f"{match.group(1)}{mark}{match.group(3)}{match.group(4)}"
            return "\n".join(lines)
    raise IndexError(f"Checklist has {seen} item(s); no item {index}")


# ---------------------------------------------------------------------------
# Field normalisation
# ---------------------------------------------------------------------------


def format_date(value: date | datetime) -> str:
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def _date_field(value: Any) -> str | None:
    """Normalise a frontmatter date (YAML may hand back date objects)."""
    if value is None or value == "":
        return None
    if isinstance(value, (date, datetime)):
        return format_date(value)
    return str(value).strip() or None


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# ---------------------------------------------------------------------------
# Specs
# ---------------------------------------------------------------------------


def spec_name_from_path(path: Path) -> str:
    return path.name[: -len(SPEC_SUFFIX)]


def parse_spec(name: str, frontmatter: dict[str, Any], body: str, path: Path | None = None) -> Spec:
    raw_status = str(frontmatter.get("status", SpecStatus.PENDING)).strip()
    try:
        status = SpecStatus(raw_status)
    except ValueError:
        raise IOFailure(f"Spec '{name}' has unknown status {raw_status!r}") from None

    raw_round = frontmatter.get("review_round", 1)
    try:
        review_round = max(1, int(raw_round))
    except (TypeError, ValueError):
        logger.warning("Spec %s has invalid review_round %r; using 1", name, raw_round)
        review_round = 1

    history: list[ReviewRecord] = []
    for entry in frontmatter.get("review_history") or []:
        if not isinstance(entry, dict):
            logger.warning("Skipping non-mapping review_history entry in %s: %r", name, entry)
            continue
        try:
            record = ReviewRecord.from_dict(entry)
        except (KeyError, ValueError, TypeError) as exc:
            logger.warning("Skipping malformed review_history entry in %s: %s", name, exc)
            continue
        history.append(record)

    dependencies = frontmatter.get("dependencies") or []
    if isinstance(dependencies, str):
        dependencies = [dependencies]

    return Spec(
        name=name,
        status=status,
        title=extract_title(body),
        created=_date_field(frontmatter.get("created")),
        completed=_date_field(frontmatter.get("completed")),
        dependencies=tuple(str(d).strip() for d in dependencies if str(d).strip()),
        review_round=review_round,
        review_history=tuple(history),
        body=body,
        path=path,
    )


def spec_frontmatter(spec: Spec) -> dict[str, Any]:
    return {
        "status": str(spec.status),
        "created": spec.created,
        "completed": spec.completed,
        "dependencies": list(spec.dependencies),
        "review_round": spec.review_round,
        "review_history": [record.to_dict() for record in spec.review_history],
    }


def render_spec(spec: Spec) -> str:
    manager = FrontmatterManager()
    return manager.render(spec_frontmatter(spec), spec.body, manager.SPEC_FIELD_ORDER)


def load_spec(path: Path) -> Spec:
    try:
        frontmatter, body = FrontmatterManager().read(path)
    except FrontmatterError as exc:
        raise IOFailure(str(exc)) from exc
    return parse_spec(spec_name_from_path(path), frontmatter, body, path)


# ---------------------------------------------------------------------------
# Guidance
# ---------------------------------------------------------------------------


def load_guidance(path: Path) -> Guidance:
    try:
        frontmatter, body = FrontmatterManager().read(path)
    except FrontmatterError as exc:
        raise IOFailure(str(exc)) from exc

    raw_status = str(frontmatter.get("status", GuidanceStatus.DRAFT)).strip().lower()
    try:
        status = GuidanceStatus(raw_status)
    except ValueError:
        logger.warning("Unknown guidance status %r in %s; treating as draft", raw_status, path)
        status = GuidanceStatus.DRAFT

    return Guidance(
        status=status,
        last_updated=_date_field(frontmatter.get("last-updated")),
        body=body,
        path=path,
    )


# ---------------------------------------------------------------------------
# Issues
# ---------------------------------------------------------------------------


def find_issue_document(issue_dir: Path) -> Path | None:
    """Return the main document of an issue directory (``feature.md`` etc.)."""
    for issue_type in IssueType:
        candidate = issue_dir / f"{issue_type}.md"
        if candidate.is_file():
            return candidate
    return None


def parse_issue(
    slug: str,
    stage: Stage,
    frontmatter: dict[str, Any],
    body: str,
    *,
    default_type: IssueType,
    path: Path | None = None,
) -> Issue:
    raw_type = str(frontmatter.get("type", default_type)).strip().lower()
    try:
        issue_type = IssueType(raw_type)
    except ValueError:
        logger.warning("Issue %s has unknown type %r; using %s", slug, raw_type, default_type)
        issue_type = default_type

    return Issue(
        slug=slug,
        type=issue_type,
        stage=stage,
        title=extract_title(body),
        owner=_optional_text(frontmatter.get("owner")),
        created=_date_field(frontmatter.get("created")),
        description=extract_section(body, DESCRIPTION_HEADING),
        bdd_scenarios=extract_section(body, BDD_HEADING),
        dod=parse_checklist(extract_section(body, DOD_HEADING)),
        path=path,
    )


def load_issue(issue_dir: Path, stage: Stage) -> Issue:
    """Load an issue directory with its specs and guidance document."""
    document = find_issue_document(issue_dir)
    if document is None:
        raise IOFailure(f"Issue directory {issue_dir} has no feature.md, bug.md or task.md")
    try:
        frontmatter, body = FrontmatterManager().read(document)
    except FrontmatterError as exc:
        raise IOFailure(str(exc)) from exc

    issue = parse_issue(
        issue_dir.name,
        stage,
        frontmatter,
        body,
        default_type=IssueType(document.stem),
        path=issue_dir,
    )

    specs = tuple(load_spec(p) for p in sorted(issue_dir.glob(f"*{SPEC_SUFFIX}")))
    guidance_path = issue_dir / GUIDANCE_FILENAME
    guidance = load_guidance(guidance_path) if guidance_path.is_file() else None

    return replace(issue, specs=specs, guidance=guidance)
