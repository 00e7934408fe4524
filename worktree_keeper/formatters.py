"""Shared formatting utilities for worktree-keeper."""

from typing import List, Optional

from worktree_keeper.constants import (
    SYMBOL_CLEAN,
    SYMBOL_HAS_ARTIFACTS,
    SYMBOL_MAIN_REPO,
    SYMBOL_UNKNOWN,
    WorktreeStyleType,
)
from worktree_keeper.models.artifacts import ArtifactSet
from worktree_keeper.models.worktree import Worktree, WorktreeStatus

# Singular labels per artifact category
CATEGORY_LABELS = {
    "containers": "container",
    "images": "image",
    "volumes": "volume",
    "networks": "network",
}


def pluralize(count: int, noun: str) -> str:
    """``1 volume`` / ``2 volumes``."""
    return f"{count} {noun}" + ("" if count == 1 else "s")


def format_worktree_name(worktree: Worktree) -> str:
    """
    Format the worktree name, labelling the main repository.

    Args:
        worktree: Worktree to label

    Returns:
        Display name
    """
    if worktree.is_main_repo:
        return f"{worktree.name} ({SYMBOL_MAIN_REPO})"
    return worktree.name


def format_branch(worktree: Worktree) -> str:
    """
    Format the branch bound to a worktree.

    Returns:
        Branch name, ``(detached abc1234)`` for a detached HEAD, or an
        empty string for the main repository
    """
    if worktree.is_main_repo:
        return ""
    if worktree.branch:
        return worktree.branch
    return f"(detached {worktree.head_commit[:7]})"


def format_changes(status: Optional[WorktreeStatus]) -> str:
    """
    Format uncommitted change indicators.

    Returns:
        ✓ = Clean
        ⚠ = Unknown (missing directory or git status failed)
        M/S/U = Modified, staged, untracked files
    """
    if status is None:
        return SYMBOL_UNKNOWN
    return status.indicators or SYMBOL_CLEAN


def format_artifact_counts(artifacts: Optional[ArtifactSet]) -> str:
    """
    Format a compact per-category artifact summary.

    Example:
        "🐳 1 container, 2 images" or "none"
    """
    if artifacts is None:
        return ""
    if not artifacts.runtime_available:
        return "runtime unavailable"

    parts = [
        pluralize(len(names), CATEGORY_LABELS[category])
        for category, names in artifacts.items()
        if names
    ]
    text = f"{SYMBOL_HAS_ARTIFACTS} " + ", ".join(parts) if parts else "none"
    if artifacts.unknown:
        text += f" ({', '.join(artifacts.unknown)} unknown)"
    return text


def format_artifact_items(artifacts: ArtifactSet, indent: str = "    ") -> List[str]:
    """
    Itemize artifacts per category for previews and dry runs.

    Returns:
        Lines like "containers (1):" followed by indented names
    """
    lines = []
    for category, names in artifacts.items():
        if not names:
            continue
        lines.append(f"{indent}{category.capitalize()} ({len(names)}):")
        lines.extend(f"{indent}  {name}" for name in names)
    return lines


def format_artifact_totals(counts: dict) -> str:
    """Format removed-artifact counts, skipping empty categories."""
    parts = [
        pluralize(count, CATEGORY_LABELS[category])
        for category, count in counts.items()
        if count
    ]
    return ", ".join(parts) if parts else "none"


def get_worktree_style_type(worktree: Worktree, status: Optional[WorktreeStatus] = None) -> str:
    """
    Determine the style type for a worktree row.

    Returns:
        WorktreeStyleType constant
    """
    if worktree.is_main_repo:
        return WorktreeStyleType.MAIN
    if worktree.is_prunable:
        return WorktreeStyleType.PRUNABLE
    if status is not None and status.dirty:
        return WorktreeStyleType.DIRTY
    return WorktreeStyleType.NORMAL
