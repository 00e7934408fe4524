"""Cleanup run models: options, per-target aggregate and summary."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from worktree_keeper.constants import ARTIFACT_CATEGORIES
from worktree_keeper.models.artifacts import ArtifactSet
from worktree_keeper.models.worktree import Worktree, WorktreeStatus


class CleanupMode(Enum):
    """How the target set is chosen."""
    SINGLE = "single"
    MERGED = "merged"
    ALL = "all"
    INTERACTIVE = "interactive"
    LIST = "list"


class TargetOutcome(Enum):
    """What happened to one target."""
    CLEANED = "cleaned"
    WOULD_CLEAN = "would-clean"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class CleanupOptions:
    """Options delivered by the invocation surface."""

    list_worktrees: bool = False
    interactive: bool = False
    merged: bool = False
    all_worktrees: bool = False
    dry_run: bool = False
    force: bool = False
    force_dirty: bool = False
    verbose: bool = False

    def mode(self, target_name: Optional[str] = None) -> Optional[CleanupMode]:
        """Resolve the cleanup mode; None when nothing was requested."""
        if self.list_worktrees:
            return CleanupMode.LIST
        if target_name:
            return CleanupMode.SINGLE
        if self.merged:
            return CleanupMode.MERGED
        if self.all_worktrees:
            return CleanupMode.ALL
        if self.interactive:
            return CleanupMode.INTERACTIVE
        return None

    @classmethod
    def from_dict(cls, options: dict) -> "CleanupOptions":
        """Create options from the camelCase mapping used by CLI wrappers."""
        return cls(
            list_worktrees=bool(options.get("list", False)),
            interactive=bool(options.get("interactive", False)),
            merged=bool(options.get("merged", False)),
            all_worktrees=bool(options.get("all", False)),
            dry_run=bool(options.get("dryRun", False)),
            force=bool(options.get("force", False)),
            force_dirty=bool(options.get("forceDirty", False)),
            verbose=bool(options.get("verbose", False)),
        )


@dataclass
class CleanupTarget:
    """Transient per-run aggregate for one worktree."""

    worktree: Worktree
    artifacts: Optional[ArtifactSet] = None  # None until inspected
    status: Optional[WorktreeStatus] = None  # None = could not check
    inspected: bool = False

    @property
    def dirty(self) -> bool:
        return self.status is not None and self.status.dirty


@dataclass
class TargetResult:
    """Outcome recorded for one worktree, keyed by its path in the summary."""

    name: str
    outcome: TargetOutcome
    reason: Optional[str] = None


@dataclass
class CleanupSummary:
    """Aggregate result of one cleanup run."""

    mode: Optional[CleanupMode] = None
    dry_run: bool = False
    results: Dict[str, TargetResult] = field(default_factory=dict)  # worktree path -> result
    artifacts_removed: Dict[str, int] = field(
        default_factory=lambda: {category: 0 for category in ARTIFACT_CATEGORIES}
    )
    warnings: List[str] = field(default_factory=list)
    interrupted: bool = False

    def record(self, worktree: Worktree, outcome: TargetOutcome, reason: Optional[str] = None) -> None:
        if outcome == TargetOutcome.FAILED:
            reason = reason or "unknown error"
        self.results[worktree.path] = TargetResult(name=worktree.name, outcome=outcome, reason=reason)

    def _names(self, *outcomes: TargetOutcome) -> List[str]:
        return [result.name for result in self.results.values() if result.outcome in outcomes]

    @property
    def cleaned(self) -> List[str]:
        return self._names(TargetOutcome.CLEANED, TargetOutcome.WOULD_CLEAN)

    @property
    def skipped(self) -> List[str]:
        return self._names(TargetOutcome.SKIPPED)

    @property
    def failed(self) -> List[TargetResult]:
        return [result for result in self.results.values() if result.outcome == TargetOutcome.FAILED]

    def add_artifacts(self, counts: Dict[str, int]) -> None:
        for category, count in counts.items():
            self.artifacts_removed[category] = self.artifacts_removed.get(category, 0) + count

    @property
    def total_artifacts(self) -> int:
        return sum(self.artifacts_removed.values())
