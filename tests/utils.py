"""Board documents and helpers shared across test modules."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from agile_cli.core.frontmatter import FrontmatterManager

READY_FEATURE_BODY = """\
# Feature: User authentication

## Description

Users sign in with email and password.

## BDD Scenarios

### Scenario: successful login

- **Given** a registered user
- **When** they submit valid credentials
- **Then** they see the dashboard

## Acceptance Criteria

- [ ] Login form validates input

## Definition of Done

- [x] All specs completed
- [ ] Code reviewed and approved
"""

TEMPLATE_FEATURE_BODY = """\
# Feature: Half written

## Description

[Describe the feature and the problem it solves]

## BDD Scenarios

### Scenario: [scenario name]

- **Given** [precondition]
- **When** [action]
- **Then** [expected outcome]

## Definition of Done

- [ ] Tests written and passing
"""

SPEC_BODY = """\
# Spec: Login flow

## Acceptance Criteria

- [ ] Login form validates input

## Test Cases

- [ ] rejects empty password
"""

NEEDS_WORK_REVIEW = """
## Review

**Reviewed:** 2026-01-12
**Reviewer:** Bob

### Acceptance Criteria Verification

| Criterion | Status | Evidence |
|-----------|--------|----------|
| Login form validates input | PASS | src/login.py:42 |
| Session persists | FAIL | no persistence layer found |

### Test Coverage Audit

| Test Case | Status | Location |
|-----------|--------|----------|
| rejects empty password | MISSING | tests/test_login.py |

### Code Quality

**Concerns:**
- Token refresh is not retried

### Verdict

**NEEDS_WORK** - session persistence missing
"""

APPROVED_REVIEW = """
## Review

**Reviewed:** 2026-01-15

### Acceptance Criteria Verification

| Criterion | Status | Evidence |
|-----------|--------|----------|
| Login form validates input | PASS | src/login.py:42 |
| Session persists | PASS | src/session.py:10 |

### Code Quality

**Concerns:**
- None identified

### Verdict

**APPROVED** - all criteria met
"""


def write_document(path: Path, frontmatter: dict[str, Any], body: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    FrontmatterManager().write(path, frontmatter, body)
    return path
