"""Initial document bodies for new issues, specs and guidance.

Bodies come from the configured templates directory when one is set,
otherwise from the built-in defaults below. Templates use ``$title`` and
``$slug`` substitution (``string.Template``); bracketed markers such as
``[Describe ...]`` are left for the author and are what the stage guards
detect as unfinished.
"""

from __future__ import annotations

from pathlib import Path
from string import Template

from .errors import IOFailure
from .models import IssueType

GUIDANCE_TEMPLATE_NAME = "technical-guidance"
SPEC_TEMPLATE_NAME = "spec"

_FEATURE = """\
# Feature: $title

## Description

[Describe the feature and the problem it solves]

## BDD Scenarios

### Scenario: [scenario name]

- **Given** [precondition]
- **When** [action]
- **Then** [expected outcome]

## Acceptance Criteria

- [ ] [criterion]

## Definition of Done

- [ ] All specs completed
- [ ] Technical guidance finalized
- [ ] Code reviewed and approved
- [ ] Tests written and passing
"""

_BUG = """\
# Bug: $title

## Description

[Describe the bug, how to reproduce it and the expected behaviour]

## Acceptance Criteria

- [ ] [criterion]

## Definition of Done

- [ ] Root cause identified
- [ ] Fix implemented with a regression test
- [ ] Code reviewed and approved
"""

_TASK = """\
# Task: $title

## Description

[Describe the task]

## Acceptance Criteria

- [ ] [criterion]

## Definition of Done

- [ ] Task completed
- [ ] Code reviewed and approved
"""

_SPEC = """\
# Spec: $title

## Description

[What this spec delivers]

## Acceptance Criteria

- [ ] [criterion]

## Test Cases

- [ ] [test case]
"""

_GUIDANCE = """\
# Technical Guidance: $title

## Architecture Overview

[High-level approach]

## Key Decisions

[Decisions and trade-offs]

## Investigation Log

| Date | Finding | Impact |
|------|---------|--------|
"""

BUILTIN_TEMPLATES: dict[str, str] = {
    str(IssueType.FEATURE): _FEATURE,
    str(IssueType.BUG): _BUG,
    str(IssueType.TASK): _TASK,
    SPEC_TEMPLATE_NAME: _SPEC,
    GUIDANCE_TEMPLATE_NAME: _GUIDANCE,
}


def load_template(name: str, templates_dir: Path | None = None) -> str:
    """Return the raw template text for ``name``.

    A configured ``templates_dir`` must contain ``<name>.md``; a missing
    file there is an :class:`IOFailure` rather than a silent fallback.
    """
    if templates_dir is not None:
        path = templates_dir / f"{name}.md"
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            raise IOFailure(f"Template not found: {path}") from exc
    try:
        return BUILTIN_TEMPLATES[name]
    except KeyError:
        raise IOFailure(f"No built-in template named {name!r}") from None


def render_template(name: str, *, title: str, slug: str, templates_dir: Path | None = None) -> str:
    return Template(load_template(name, templates_dir)).safe_substitute(title=title, slug=slug)
