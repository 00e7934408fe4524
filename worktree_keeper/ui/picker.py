"""Multi-select picker for interactive cleanup."""

from typing import List, Optional, Sequence

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import Footer, Header, SelectionList, Static
from textual.widgets.selection_list import Selection

from worktree_keeper.formatters import format_artifact_counts, format_branch, format_changes
from worktree_keeper.models.cleanup import CleanupTarget


def format_choice(target: CleanupTarget) -> str:
    """One picker line: name, branch, changes and artifact presence."""
    worktree = target.worktree
    parts = [worktree.name]
    branch = format_branch(worktree)
    if branch:
        parts.append(branch if branch.startswith("(") else f"({branch})")
    parts.append(format_changes(target.status))
    parts.append(format_artifact_counts(target.artifacts))
    return "  ".join(parts)


class WorktreePickerApp(App[List[str]]):
    """Pick the worktrees to clean up; returns their paths."""

    TITLE = "Worktree Keeper"
    SUB_TITLE = "Select worktrees to clean up"

    CSS = """
    SelectionList {
        height: 1fr;
    }

    #picker-help {
        dock: bottom;
        height: auto;
        background: $panel;
        padding: 0 1;
    }
    """

    BINDINGS = [
        Binding("enter", "confirm", "Clean Up Selected", priority=True),
        Binding("a", "select_all", "Select All"),
        Binding("c", "clear", "Clear"),
        Binding("escape,q", "cancel", "Cancel"),
    ]

    def __init__(self, targets: Sequence[CleanupTarget]):
        super().__init__()
        self.targets = list(targets)

    def compose(self) -> ComposeResult:
        yield Header(show_clock=False, icon="")
        yield SelectionList[str](
            *[
                Selection(Text(format_choice(target)), target.worktree.path, False)
                for target in self.targets
            ],
            id="worktrees",
        )
        yield Static("space: toggle   enter: clean up selected   esc: cancel", id="picker-help")
        yield Footer()

    def action_confirm(self) -> None:
        self.exit(list(self.query_one(SelectionList).selected))

    def action_select_all(self) -> None:
        self.query_one(SelectionList).select_all()

    def action_clear(self) -> None:
        self.query_one(SelectionList).deselect_all()

    def action_cancel(self) -> None:
        self.exit([])


def pick_worktrees(targets: Sequence[CleanupTarget]) -> List[CleanupTarget]:
    """Run the picker and return the chosen targets in their original order."""
    if not targets:
        return []
    chosen: Optional[List[str]] = WorktreePickerApp(targets).run()
    if not chosen:
        return []
    selected = set(chosen)
    return [target for target in targets if target.worktree.path in selected]
