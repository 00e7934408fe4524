"""Cleanup orchestration for worktree-keeper"""

import os
from enum import Enum
from typing import Callable, List, Optional, Sequence

from rich.prompt import Confirm

from worktree_keeper.config import WorkspaceConfig
from worktree_keeper.exceptions import (
    ExecutionError,
    NotFoundError,
    ResolutionError,
    SafetyViolation,
    ValidationError,
    WorktreeKeeperError,
)
from worktree_keeper.logging_config import get_logger
from worktree_keeper.models.artifacts import ArtifactRemoval
from worktree_keeper.models.cleanup import (
    CleanupMode,
    CleanupOptions,
    CleanupSummary,
    CleanupTarget,
    TargetOutcome,
)
from worktree_keeper.models.worktree import Worktree
from worktree_keeper.services.artifacts import ArtifactLocator
from worktree_keeper.services.display_service import DisplayService
from worktree_keeper.services.git.merge_detector import MergedBranchAnalyzer
from worktree_keeper.services.git.worktrees import (
    WorktreeRegistry,
    is_uncommitted_changes_error,
    same_path,
)

logger = get_logger(__name__)

# (question, default answer) -> answer
ConfirmFn = Callable[[str, bool], bool]
# annotated candidates -> chosen subset
SelectFn = Callable[[List[CleanupTarget]], List[CleanupTarget]]

DIRTY_DRY_RUN_REASON = "would fail: uncommitted changes (use --force-dirty)"


class CleanupState(Enum):
    """States of one cleanup run."""
    IDLE = "idle"
    VALIDATING = "validating"
    ENUMERATING = "enumerating"
    LISTING = "listing"
    INSPECTING = "inspecting"
    CONFIRMING = "confirming"
    REMOVING = "removing"
    SUMMARIZING = "summarizing"
    DONE = "done"
    FATAL = "fatal"


def confirm_with_rich(question: str, default: bool) -> bool:
    return Confirm.ask(question, default=default)


def select_with_picker(targets: List[CleanupTarget]) -> List[CleanupTarget]:
    # Imported lazily so non-interactive runs never load textual
    from worktree_keeper.ui.picker import pick_worktrees

    return pick_worktrees(targets)


def match_worktree(name: str, worktrees: Sequence[Worktree]) -> Optional[Worktree]:
    """First worktree whose basename, path suffix or branch equals ``name``."""
    wanted = name.rstrip("/")
    for worktree in worktrees:
        path = worktree.path.rstrip("/")
        if (
            worktree.name == wanted
            or path == wanted
            or path.endswith("/" + wanted.lstrip("/"))
            or (worktree.branch is not None and worktree.branch == wanted)
        ):
            return worktree
    return None


class CleanupOrchestrator:
    """Drives one cleanup run from the safety check to the summary.

    Targets are handled strictly one after another. The main repository is
    checked from live git state before anything else and is never a target.
    """

    def __init__(
        self,
        config: WorkspaceConfig,
        registry: WorktreeRegistry,
        analyzer: MergedBranchAnalyzer,
        locator: ArtifactLocator,
        display: Optional[DisplayService] = None,
        confirm: Optional[ConfirmFn] = None,
        select: Optional[SelectFn] = None,
        cwd: Optional[str] = None,
    ):
        """Initialize the orchestrator.

        Args:
            config: Resolved configuration for this invocation
            registry: Worktree enumeration and removal
            analyzer: Default/merged branch resolution
            locator: Container artifact lookup and removal
            display: Console output
            confirm: Yes/no prompt, defaults to a rich Confirm prompt
            select: Interactive multi-select, defaults to the Textual picker
            cwd: Directory the run was started from (defaults to os.getcwd())
        """
        self.config = config
        self.registry = registry
        self.analyzer = analyzer
        self.locator = locator
        self.display = display or DisplayService()
        self.confirm = confirm or confirm_with_rich
        self.select = select or select_with_picker
        self.cwd = cwd or os.getcwd()
        self.state = CleanupState.IDLE
        self.history: List[CleanupState] = []

    def _transition(self, state: CleanupState) -> None:
        logger.debug(f"Cleanup state {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def run(self, target_name: Optional[str], options: CleanupOptions) -> CleanupSummary:
        """Run a cleanup.

        Args:
            target_name: Worktree to clean in single mode
            options: Mode and behaviour flags

        Returns:
            Summary of the run; per-target failures are recorded there

        Raises:
            SafetyViolation: If not started from the main repository
            ResolutionError: If the repository layout cannot be determined
            NotFoundError: If ``target_name`` matches no worktree
            ValidationError: If no mode was requested
        """
        self.state = CleanupState.IDLE
        self.history = []

        self._transition(CleanupState.VALIDATING)
        try:
            main_repo_path = self.registry.assert_main_repo(self.cwd)
        except WorktreeKeeperError:
            self._transition(CleanupState.FATAL)
            raise

        mode = options.mode(target_name)
        if mode is None:
            if not self.config.cleanup.auto_cleanup_merged:
                raise ValidationError(
                    "cleanup mode",
                    "name a worktree or pass one of --list, --merged, --all, --interactive",
                )
            logger.info("No mode given and cleanup.autoCleanupMerged is set, cleaning merged worktrees")
            mode = CleanupMode.MERGED

        if not self.config.cleanup.confirm_by_default and not (options.force or options.dry_run):
            logger.warning(
                "cleanup.confirmByDefault is false but each removal is still confirmed; "
                "use --force to skip prompts"
            )

        summary = CleanupSummary(mode=mode, dry_run=options.dry_run)

        self._transition(CleanupState.ENUMERATING)
        worktrees = self.registry.list()
        candidates = [
            wt for wt in worktrees
            if not wt.is_main_repo and not same_path(wt.path, main_repo_path)
        ]

        if mode == CleanupMode.LIST:
            self._transition(CleanupState.LISTING)
            self._list(worktrees, candidates)
            self._transition(CleanupState.DONE)
            return summary

        targets = self._select_targets(mode, target_name, worktrees, candidates, main_repo_path, summary)
        # Re-applied after selection so no mode can hand back the main repository
        targets = [
            t for t in targets
            if not t.worktree.is_main_repo and not same_path(t.worktree.path, main_repo_path)
        ]

        if not targets:
            self.display.info("No worktrees to clean up.")
            self._summarize(summary)
            return summary

        for index, target in enumerate(targets):
            try:
                self._process(target, options, summary)
            except KeyboardInterrupt:
                summary.interrupted = True
                if self.state == CleanupState.REMOVING and target.worktree.path not in summary.results:
                    # The worktree may already be gone
                    summary.record(target.worktree, TargetOutcome.FAILED, "interrupted during removal")
                for remaining in targets[index:]:
                    if remaining.worktree.path not in summary.results:
                        summary.record(remaining.worktree, TargetOutcome.SKIPPED)
                self._summarize(summary)
                raise

        self._summarize(summary)
        return summary

    def _select_targets(
        self,
        mode: CleanupMode,
        target_name: Optional[str],
        worktrees: List[Worktree],
        candidates: List[Worktree],
        main_repo_path: str,
        summary: CleanupSummary,
    ) -> List[CleanupTarget]:
        if mode == CleanupMode.SINGLE:
            main = [wt for wt in worktrees if wt.is_main_repo]
            if match_worktree(target_name, main) is not None:
                raise SafetyViolation(
                    main_repo_path, f"'{target_name}' is the main repository and cannot be cleaned up"
                )
            worktree = match_worktree(target_name, candidates)
            if worktree is None:
                raise NotFoundError(target_name)
            return [CleanupTarget(worktree=worktree)]

        if mode == CleanupMode.MERGED:
            merged = self.analyzer.merged_branches()
            if merged.degraded:
                message = f"Merge status unknown, no worktrees selected: {merged.error}"
                self.display.warning(message)
                summary.warnings.append(message)
                return []
            logger.info(f"{len(merged)} branches merged into {merged.default_branch}")
            return [CleanupTarget(worktree=wt) for wt in candidates if wt.branch and wt.branch in merged]

        if mode == CleanupMode.ALL:
            return [CleanupTarget(worktree=wt) for wt in candidates]

        # Interactive: annotate every candidate, then let the operator choose
        annotated = [self._inspect(CleanupTarget(worktree=wt)) for wt in candidates]
        if not annotated:
            return []
        chosen = self.select(annotated)
        chosen_paths = {t.worktree.path for t in chosen}
        return [t for t in annotated if t.worktree.path in chosen_paths]

    def _inspect(self, target: CleanupTarget) -> CleanupTarget:
        target.status = self.registry.status(target.worktree)
        target.artifacts = self.locator.locate(target.worktree.name)
        target.inspected = True
        return target

    def _list(self, worktrees: List[Worktree], candidates: List[Worktree]) -> None:
        rows = []
        for worktree in worktrees:
            if worktree in candidates:
                rows.append((worktree, self.registry.status(worktree), self.locator.locate(worktree.name)))
            else:
                rows.append((worktree, None, None))
        self.display.display_worktree_table(rows)
        self.display.display_list_totals(rows)

    def _confirm(self, target: CleanupTarget, options: CleanupOptions) -> Optional[bool]:
        """Gate one target.

        Returns:
            None to skip, otherwise whether git should force the removal
        """
        if options.force or options.dry_run:
            return options.force_dirty

        name = target.worktree.name
        if target.dirty and not options.force_dirty:
            question = f"'{name}' has uncommitted changes that will be lost. Remove it anyway?"
            return True if self.confirm(question, False) else None

        extra = ""
        if target.artifacts.found:
            extra = f" and its {target.artifacts.total} container artifacts"
        question = f"Remove worktree '{name}'{extra}?"
        return options.force_dirty if self.confirm(question, False) else None

    def _process(self, target: CleanupTarget, options: CleanupOptions, summary: CleanupSummary) -> None:
        name = target.worktree.name

        self._transition(CleanupState.INSPECTING)
        if not target.inspected:
            self._inspect(target)
        self.display.display_target(target)

        self._transition(CleanupState.CONFIRMING)
        force_removal = self._confirm(target, options)
        if force_removal is None:
            self.display.info(f"Skipped {name}")
            summary.record(target.worktree, TargetOutcome.SKIPPED)
            return

        if options.dry_run:
            # A real run refuses dirty worktrees unless --force-dirty is given
            blocked = DIRTY_DRY_RUN_REASON if target.dirty and not options.force_dirty else None
            self.display.display_dry_run(target, blocked)
            if blocked:
                summary.record(target.worktree, TargetOutcome.FAILED, blocked)
            else:
                summary.record(target.worktree, TargetOutcome.WOULD_CLEAN)
            return

        self._transition(CleanupState.REMOVING)
        worktree_error = None
        try:
            self.registry.remove(target.worktree, force=force_removal)
        except (ExecutionError, ResolutionError, ValidationError) as e:
            if isinstance(e, ExecutionError) and is_uncommitted_changes_error(e) and not force_removal:
                worktree_error = "has uncommitted changes; rerun with --force-dirty to discard them"
            else:
                worktree_error = f"git could not remove the worktree: {e}"
            logger.debug(f"Worktree removal failed for {name}: {e}")

        # Artifacts go even when git failed, so nothing is orphaned
        removal: Optional[ArtifactRemoval] = None
        if target.artifacts.found:
            removal = self.locator.remove(target.artifacts)
            summary.add_artifacts(removal.removed)
            summary.warnings.extend(removal.warnings)

        self.display.display_removal(target, worktree_error, removal)

        if worktree_error:
            summary.record(target.worktree, TargetOutcome.FAILED, worktree_error)
        elif removal is not None and removal.errors:
            summary.record(
                target.worktree,
                TargetOutcome.FAILED,
                f"worktree removed, but {len(removal.errors)} artifacts could not be removed",
            )
        else:
            summary.record(target.worktree, TargetOutcome.CLEANED)

    def _summarize(self, summary: CleanupSummary) -> None:
        self._transition(CleanupState.SUMMARIZING)
        self.display.display_summary(summary)
        self._transition(CleanupState.DONE)
