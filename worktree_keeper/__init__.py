"""
worktree-keeper - Git worktrees paired with dev container cleanup
"""

from .__version__ import __version__
from .core import CleanupOrchestrator
from .services.worktree_creator import WorktreeCreator
from .cli.main import main

__all__ = ["CleanupOrchestrator", "WorktreeCreator", "main", "__version__"]
