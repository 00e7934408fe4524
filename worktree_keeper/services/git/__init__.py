"""Git-related services for worktree-keeper."""

from .worktrees import WorktreeRegistry, RepositoryLayout, is_uncommitted_changes_error
from .merge_detector import MergedBranchAnalyzer

__all__ = [
    "WorktreeRegistry",
    "RepositoryLayout",
    "MergedBranchAnalyzer",
    "is_uncommitted_changes_error",
]
