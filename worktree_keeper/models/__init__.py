"""Data models for worktree-keeper."""

from .worktree import Worktree, WorktreeStatus
from .artifacts import ArtifactPatterns, ArtifactSet, ArtifactRemoval
from .branch import MergedBranchSet
from .cleanup import (
    CleanupMode,
    CleanupOptions,
    CleanupSummary,
    CleanupTarget,
    TargetOutcome,
    TargetResult,
)

__all__ = [
    "Worktree",
    "WorktreeStatus",
    "ArtifactPatterns",
    "ArtifactSet",
    "ArtifactRemoval",
    "MergedBranchSet",
    "CleanupMode",
    "CleanupOptions",
    "CleanupSummary",
    "CleanupTarget",
    "TargetOutcome",
    "TargetResult",
]
