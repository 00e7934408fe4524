"""Core cleanup orchestration for worktree-keeper."""

from .cleanup import CleanupOrchestrator, CleanupState, match_worktree

__all__ = ["CleanupOrchestrator", "CleanupState", "match_worktree"]
