"""Services for worktree-keeper."""

from .command_executor import CommandExecutor, GitExecutor, RuntimeExecutor, quote_arg
from .artifacts import ArtifactLocator
from .worktree_creator import WorktreeCreator, CreatedWorktree
from .git import WorktreeRegistry, MergedBranchAnalyzer

__all__ = [
    "CommandExecutor",
    "GitExecutor",
    "RuntimeExecutor",
    "quote_arg",
    "ArtifactLocator",
    "WorktreeCreator",
    "CreatedWorktree",
    "WorktreeRegistry",
    "MergedBranchAnalyzer",
]
