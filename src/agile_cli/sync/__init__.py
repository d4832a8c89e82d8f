"""Board synchronization between git worktrees and the main checkout."""

from .worktree import (
    DEFAULT_SYNC_MESSAGE,
    BoardDiff,
    SyncError,
    SyncReport,
    WorktreeContext,
    detect_worktree_context,
    diff_board,
    sync_board,
)

__all__ = [
    "DEFAULT_SYNC_MESSAGE",
    "BoardDiff",
    "SyncError",
    "SyncReport",
    "WorktreeContext",
    "detect_worktree_context",
    "diff_board",
    "sync_board",
]
