"""Worktree data models."""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Worktree:
    """A git worktree as reported by ``git worktree list --porcelain``."""

    path: str
    branch: Optional[str]  # None for the main repo and detached worktrees
    head_commit: str
    is_main_repo: bool
    is_detached: bool = False
    is_locked: bool = False
    is_prunable: bool = False  # Directory missing, git still tracks it

    @property
    def name(self) -> str:
        """Workspace name: basename of the worktree path."""
        return os.path.basename(self.path.rstrip("/"))

    def __str__(self) -> str:
        """String representation of worktree."""
        if self.is_main_repo:
            label = "main repository"
        elif self.branch:
            label = f"branch: {self.branch}"
        else:
            label = f"detached at {self.head_commit[:7]}"
        flags = ""
        if self.is_prunable:
            flags += " [prunable]"
        if self.is_locked:
            flags += " [locked]"
        return f"{self.name} ({label}) @ {self.path}{flags}"


@dataclass(frozen=True)
class WorktreeStatus:
    """File status flags parsed from ``git status --porcelain``."""

    modified: bool = False
    staged: bool = False
    untracked: bool = False

    @property
    def dirty(self) -> bool:
        """Uncommitted tracked or staged changes present."""
        return self.modified or self.staged

    @property
    def indicators(self) -> str:
        """Compact M/S/U marker string, empty when clean."""
        marks = []
        if self.modified:
            marks.append("M")
        if self.staged:
            marks.append("S")
        if self.untracked:
            marks.append("U")
        return "/".join(marks)

    @classmethod
    def from_porcelain(cls, output: str) -> "WorktreeStatus":
        """Parse porcelain v1 output: ``XY path`` per line."""
        modified = staged = untracked = False
        for line in output.split("\n"):
            if len(line) < 2:
                continue
            if line.startswith("??"):
                untracked = True
                continue
            index_status, worktree_status = line[0], line[1]
            if index_status != " ":
                staged = True
            if worktree_status != " ":
                modified = True
        return cls(modified=modified, staged=staged, untracked=untracked)
