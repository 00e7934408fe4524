"""Display and formatting service for worktree cleanup"""
from typing import Optional, Sequence, Tuple

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from worktree_keeper.constants import CLI_COLORS, COLUMNS
from worktree_keeper.formatters import (
    format_artifact_counts,
    format_artifact_items,
    format_artifact_totals,
    format_branch,
    format_changes,
    format_worktree_name,
    get_worktree_style_type,
    pluralize,
)
from worktree_keeper.logging_config import get_logger
from worktree_keeper.models.artifacts import ArtifactRemoval, ArtifactSet
from worktree_keeper.models.cleanup import CleanupSummary, CleanupTarget
from worktree_keeper.models.worktree import Worktree, WorktreeStatus

console = Console()
logger = get_logger(__name__)

# (worktree, status, artifacts); artifacts is None for the main repository
WorktreeRow = Tuple[Worktree, Optional[WorktreeStatus], Optional[ArtifactSet]]


class DisplayService:
    def __init__(self, verbose: bool = False, output: Optional[Console] = None):
        self.verbose = verbose
        self.console = output or console

    def info(self, message: str) -> None:
        self.console.print(message)

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓ {escape(message)}[/green]")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]⚠ {escape(message)}[/yellow]")

    def error(self, message: str) -> None:
        self.console.print(f"[red]✗ {escape(message)}[/red]")

    def display_worktree_table(self, rows: Sequence[WorktreeRow]) -> None:
        """Display a table of worktrees with change and artifact columns."""
        table = Table()
        for col in COLUMNS:
            if col.key == "path" and not self.verbose:
                continue
            table.add_column(col.label, min_width=col.width or None)

        for worktree, status, artifacts in rows:
            row_style = CLI_COLORS.get(get_worktree_style_type(worktree, status))
            cells = [
                escape(format_worktree_name(worktree)),
                escape(format_branch(worktree)),
                "" if worktree.is_main_repo else format_changes(status),
                format_artifact_counts(artifacts),
            ]
            if self.verbose:
                cells.append(escape(worktree.path))
            table.add_row(*cells, style=row_style)

        self.console.print(table)

    def display_list_totals(self, rows: Sequence[WorktreeRow]) -> None:
        """Print totals below the list-mode table."""
        linked = [row for row in rows if not row[0].is_main_repo]
        with_artifacts = [row for row in linked if row[2] is not None and row[2].found]
        total_artifacts = sum(row[2].total for row in with_artifacts)

        self.console.print(f"\n{pluralize(len(linked), 'worktree')} (excluding the main repository)")
        self.console.print(
            f"{len(with_artifacts)} with container artifacts, {pluralize(total_artifacts, 'artifact')} in total"
        )
        if any(row[2] is not None and not row[2].runtime_available for row in linked):
            self.warning("Container runtime is not available; artifact columns are incomplete")

    def display_target(self, target: CleanupTarget) -> None:
        """Show one cleanup target before confirmation."""
        worktree = target.worktree
        self.console.print(f"\n[bold]{escape(worktree.name)}[/bold]  {escape(format_branch(worktree))}")
        self.console.print(f"  Path: {escape(worktree.path)}")
        if target.status is None:
            self.console.print("  Changes: unknown")
        elif target.status.dirty:
            self.console.print(f"  [yellow]Changes: uncommitted ({target.status.indicators})[/yellow]")
        else:
            self.console.print(f"  Changes: {format_changes(target.status)}")

        artifacts = target.artifacts
        if not artifacts.runtime_available:
            self.console.print("  Artifacts: container runtime unavailable")
            return
        self.console.print(f"  Artifacts: {format_artifact_counts(artifacts)}")
        if self.verbose:
            for line in format_artifact_items(artifacts):
                self.console.print(line)

    def display_dry_run(self, target: CleanupTarget, blocked: Optional[str] = None) -> None:
        """Itemize what a real run would remove.

        ``blocked`` is the reason a real run would refuse the worktree
        itself; its artifacts are still listed since they go regardless.
        """
        if blocked:
            self.console.print(f"  [yellow]Worktree {escape(target.worktree.path)} {escape(blocked)}[/yellow]")
        else:
            self.console.print(f"  [cyan]Would remove worktree {escape(target.worktree.path)}[/cyan]")
        if target.artifacts.found:
            self.console.print(f"  [cyan]Would remove {format_artifact_counts(target.artifacts)}:[/cyan]")
            for line in format_artifact_items(target.artifacts):
                self.console.print(line)

    def display_removal(
        self,
        target: CleanupTarget,
        worktree_error: Optional[str],
        removal: Optional[ArtifactRemoval],
    ) -> None:
        """Report the outcome of removing one target."""
        if worktree_error:
            self.error(f"Worktree {target.worktree.name}: {worktree_error}")
        else:
            self.success(f"Removed worktree {target.worktree.name}")

        if removal is None:
            return
        if removal.total_removed:
            self.success(f"Removed {format_artifact_totals(removal.removed)}")
        for warning in removal.warnings:
            self.warning(warning)
        for error in removal.errors:
            self.error(error)

    def display_summary(self, summary: CleanupSummary) -> None:
        """Display the run summary."""
        self.console.print("\n[bold]Summary:[/bold]")
        if summary.dry_run:
            self.console.print("[cyan]Dry run: nothing was removed[/cyan]")
            self.console.print(f"Would clean: {len(summary.cleaned)}")
        else:
            self.console.print(f"Cleaned: {len(summary.cleaned)}")
        self.console.print(f"Skipped: {len(summary.skipped)}")
        self.console.print(f"Failed: {len(summary.failed)}")
        if not summary.dry_run:
            self.console.print(f"Artifacts removed: {format_artifact_totals(summary.artifacts_removed)}")

        for result in summary.failed:
            self.console.print(f"  [red]{escape(result.name)}[/red]: {escape(result.reason)}")
        for warning in summary.warnings:
            self.console.print(f"  [yellow]{escape(warning)}[/yellow]")
        if summary.interrupted:
            self.console.print("[yellow]Cleanup was interrupted; remaining worktrees were left untouched[/yellow]")

    def display_created(self, path: str, branch: str, env_copied: bool) -> None:
        self.success(f"Created worktree at {path} on new branch '{branch}'")
        if env_copied:
            self.info("Copied .env from the main worktree")
