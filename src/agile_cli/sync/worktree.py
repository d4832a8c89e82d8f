"""Mirror the board directory from a git worktree into the main checkout.

Stage moves made inside a worktree land on the feature branch. Syncing
copies the worktree's board over the main repository's board (deleting
files that no longer exist), stages it and commits it there, so the board
stays consistent across all worktrees without leaving the current one.
"""

from __future__ import annotations

import filecmp
import logging
import os
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from agile_cli.workflow.errors import IOFailure, WorkflowError

logger = logging.getLogger(__name__)

DEFAULT_SYNC_MESSAGE = "Sync agile/ from worktree"
GITDIR_PREFIX = "gitdir: "


class SyncError(WorkflowError):
    """Sync refused or failed (not a worktree, dirty target, git failure)."""


@dataclass(frozen=True)
class WorktreeContext:
    identifier: str
    main_repo: Path
    worktree: Path
    gitdir: Path


@dataclass
class _GitCommandResult:
    returncode: int
    stdout: str
    stderr: str


def _run_git(repo_root: Path, args: list[str], timeout: int = 30) -> _GitCommandResult:
    """Run git in ``repo_root`` and normalize failures into a result."""
    try:
        completed = subprocess.run(
            ["git", *args],
            cwd=str(repo_root),
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=False,
            timeout=timeout,
        )
        return _GitCommandResult(
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
    except FileNotFoundError:
        return _GitCommandResult(returncode=127, stdout="", stderr="git executable not found on PATH")
    except subprocess.TimeoutExpired:
        return _GitCommandResult(
            returncode=124,
            stdout="",
            stderr=f"git command timed out: git {' '.join(args)}",
        )


def detect_worktree_context(cwd: Path | None = None) -> WorktreeContext | None:
    """Return worktree details, or None when ``cwd`` is not a linked worktree.

    A linked worktree has a ``.git`` *file* reading
    ``gitdir: <main>/.git/worktrees/<name>``; the main checkout has a
    ``.git`` directory.
    """
    worktree = (cwd or Path.cwd()).resolve()
    git_path = worktree / ".git"
    if not git_path.is_file():
        return None

    content = git_path.read_text(encoding="utf-8").strip()
    if not content.startswith(GITDIR_PREFIX):
        return None

    gitdir = Path(content[len(GITDIR_PREFIX):].strip())
    if not gitdir.is_absolute():
        gitdir = (worktree / gitdir).resolve()

    # <main>/.git/worktrees/<name>
    main_repo = gitdir.parent.parent.parent
    return WorktreeContext(
        identifier=gitdir.name,
        main_repo=main_repo,
        worktree=worktree,
        gitdir=gitdir,
    )


def get_repo_branch(repo_root: Path) -> str:
    result = _run_git(repo_root, ["rev-parse", "--abbrev-ref", "HEAD"])
    if result.returncode != 0:
        raise SyncError(f"Could not determine branch of {repo_root}: {result.stderr.strip()}")
    return result.stdout.strip()


def board_is_clean(repo_root: Path, board_dir: str) -> bool:
    """True when git reports no uncommitted changes under ``board_dir``."""
    result = _run_git(repo_root, ["status", "--porcelain", f"{board_dir}/"])
    if result.returncode != 0:
        raise SyncError(f"git status failed in {repo_root}: {result.stderr.strip()}")
    return result.stdout.strip() == ""


# ---------------------------------------------------------------------------
# Directory diff and copy
# ---------------------------------------------------------------------------


@dataclass
class BoardDiff:
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    modified: list[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (self.added or self.removed or self.modified)

    def to_dict(self) -> dict[str, list[str]]:
        return {"added": self.added, "removed": self.removed, "modified": self.modified}


def _relative_files(root: Path) -> set[str]:
    if not root.is_dir():
        return set()
    return {path.relative_to(root).as_posix() for path in root.rglob("*") if path.is_file()}


def diff_board(source: Path, target: Path) -> BoardDiff:
    """Compare two board directories file by file (content, not mtime)."""
    source_files = _relative_files(source)
    target_files = _relative_files(target)
    modified = [
        rel
        for rel in sorted(source_files & target_files)
        if not filecmp.cmp(source / rel, target / rel, shallow=False)
    ]
    return BoardDiff(
        added=sorted(source_files - target_files),
        removed=sorted(target_files - source_files),
        modified=modified,
    )


def _prune_empty_dirs(root: Path) -> None:
    for dirpath, _dirnames, _filenames in os.walk(root, topdown=False):
        path = Path(dirpath)
        if path != root and not any(path.iterdir()):
            path.rmdir()


def apply_board_diff(source: Path, target: Path, diff: BoardDiff) -> None:
    """Make ``target`` mirror ``source`` for the files listed in ``diff``."""
    try:
        for rel in [*diff.added, *diff.modified]:
            destination = target / rel
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source / rel, destination)
        for rel in diff.removed:
            (target / rel).unlink()
        if target.is_dir():
            _prune_empty_dirs(target)
    except OSError as exc:
        raise IOFailure(f"Failed to sync {source} to {target}: {exc}") from exc


# ---------------------------------------------------------------------------
# Git staging and commit
# ---------------------------------------------------------------------------


def stage_board(repo_root: Path, board_dir: str) -> None:
    result = _run_git(repo_root, ["add", "--all", f"{board_dir}/"])
    if result.returncode != 0:
        raise SyncError(f"git add failed: {result.stderr.strip()}")


def has_staged_changes(repo_root: Path, board_dir: str) -> bool:
    result = _run_git(repo_root, ["diff", "--cached", "--name-only", f"{board_dir}/"])
    return result.stdout.strip() != ""


def commit_message(message: str, identifier: str) -> str:
    return f"{message}\n\nSynced from worktree: {identifier}"


def commit_board(repo_root: Path, board_dir: str, message: str, identifier: str) -> bool:
    """Stage and commit the board. Returns False when there was nothing to commit."""
    stage_board(repo_root, board_dir)
    if not has_staged_changes(repo_root, board_dir):
        return False
    result = _run_git(repo_root, ["commit", "-m", commit_message(message, identifier)])
    if result.returncode != 0:
        raise SyncError(f"git commit failed: {(result.stderr or result.stdout).strip()}")
    return True


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


@dataclass
class SyncReport:
    context: WorktreeContext
    branch: str
    diff: BoardDiff
    dry_run: bool = False
    applied: bool = False
    committed: bool = False
    staged_only: bool = False
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "worktree": self.context.identifier,
            "main_repo": str(self.context.main_repo),
            "branch": self.branch,
            "changes": self.diff.to_dict(),
            "dry_run": self.dry_run,
            "applied": self.applied,
            "committed": self.committed,
            "staged_only": self.staged_only,
            "warnings": self.warnings,
        }


def sync_board(
    context: WorktreeContext,
    board_dir: str,
    *,
    dry_run: bool = False,
    force: bool = False,
    commit: bool = True,
    message: str = DEFAULT_SYNC_MESSAGE,
) -> SyncReport:
    """Copy the worktree board into the main checkout and commit it.

    Refuses when the main checkout has uncommitted board changes unless
    ``force`` is set. ``dry_run`` computes the diff only. With
    ``commit=False`` the changes are staged but not committed.
    """
    source = context.worktree / board_dir
    target = context.main_repo / board_dir
    if not source.is_dir():
        raise SyncError(f"No board directory in worktree: {source}")

    branch = get_repo_branch(context.main_repo)
    warnings: list[str] = []
    if branch not in ("main", "master"):
        warnings.append(f"Main repo is on branch '{branch}', not main/master")

    if not force and not board_is_clean(context.main_repo, board_dir):
        raise SyncError(
            f"Main repo has uncommitted changes in {board_dir}/; use --force to overwrite them"
        )

    diff = diff_board(source, target)
    report = SyncReport(context=context, branch=branch, diff=diff, dry_run=dry_run, warnings=warnings)
    if diff.empty or dry_run:
        return report

    apply_board_diff(source, target, diff)
    report.applied = True
    logger.info(
        "Synced board from %s: %d added, %d removed, %d modified",
        context.identifier,
        len(diff.added),
        len(diff.removed),
        len(diff.modified),
    )

    if not commit:
        stage_board(context.main_repo, board_dir)
        report.staged_only = True
        return report

    report.committed = commit_board(context.main_repo, board_dir, message, context.identifier)
    return report
