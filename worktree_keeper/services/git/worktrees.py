"""Worktree registry for worktree-keeper."""

import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from worktree_keeper.constants import REMOVAL_TIMEOUT
from worktree_keeper.exceptions import ExecutionError, ResolutionError, SafetyViolation
from worktree_keeper.logging_config import get_logger
from worktree_keeper.models.worktree import Worktree, WorktreeStatus
from worktree_keeper.services.command_executor import GitExecutor

logger = get_logger(__name__)

# git worktree remove refuses dirty trees with this message
_DIRTY_REMOVE_MARKERS = ("contains modified or untracked files", "use --force to delete it")


def same_path(a: str, b: str) -> bool:
    """Compare two filesystem paths after resolving symlinks."""
    return os.path.realpath(a) == os.path.realpath(b)


def is_uncommitted_changes_error(error: ExecutionError) -> bool:
    """Whether a failed ``git worktree remove`` was refused because of local changes."""
    text = f"{error.stderr or ''} {error.message or ''}".lower()
    return any(marker in text for marker in _DIRTY_REMOVE_MARKERS)


@dataclass(frozen=True)
class RepositoryLayout:
    """Where git keeps the repository, as seen from one directory."""

    common_dir: str  # canonical .git directory shared by all worktrees
    git_dir: str  # metadata dir of the checkout containing cwd
    toplevel: str  # root of the checkout containing cwd
    main_repo_path: str  # checkout that owns common_dir

    @property
    def in_main_repo(self) -> bool:
        return self.git_dir == self.common_dir and self.toplevel == self.main_repo_path


def parse_porcelain(output: str, main_repo_path: str) -> List[Worktree]:
    """Parse ``git worktree list --porcelain`` output.

    Records are separated by blank lines. Format:
        worktree /path/to/worktree
        HEAD commit_sha
        branch refs/heads/branch-name   (or "detached")
        locked [reason]                 (optional)
        prunable [reason]               (optional)
    """
    worktrees: List[Worktree] = []
    record: Dict[str, Any] = {}

    def flush() -> None:
        path = record.get("path")
        if path and not record.get("bare"):
            is_main = same_path(path, main_repo_path)
            worktrees.append(
                Worktree(
                    path=path,
                    # The main checkout is never bound to a cleanup branch
                    branch=None if is_main else record.get("branch"),
                    head_commit=record.get("HEAD", ""),
                    is_main_repo=is_main,
                    is_detached=record.get("detached", False),
                    is_locked=record.get("locked", False),
                    is_prunable=record.get("prunable", False),
                )
            )
        record.clear()

    for raw_line in output.split("\n"):
        line = raw_line.strip()
        if not line:
            flush()
            continue

        key, _, value = line.partition(" ")
        if key == "worktree":
            # A new record without a separating blank line
            if record:
                flush()
            record["path"] = value
        elif key == "HEAD":
            record["HEAD"] = value
        elif key == "branch":
            if value.startswith("refs/heads/"):
                record["branch"] = value[len("refs/heads/"):]
            else:
                record["branch"] = value
        elif key in ("detached", "bare", "locked", "prunable"):
            record[key] = True

    # Handle last entry if no trailing blank line
    flush()

    return worktrees


class WorktreeRegistry:
    """Enumerates worktrees and their state from live git output.

    Nothing is cached: every call re-reads git, which is the only source of truth.
    """

    def __init__(self, git_executor: GitExecutor):
        """Initialize the registry.

        Args:
            git_executor: Executor bound to a directory inside the repository
        """
        self.git = git_executor

    def layout(self, cwd: Optional[str] = None) -> RepositoryLayout:
        """Derive the repository layout as seen from ``cwd``.

        Raises:
            ResolutionError: If the directory is not in a repository, or the
                repository has no main checkout (bare or custom git dir)
        """
        try:
            output = self.git.run(
                "rev-parse",
                ["--path-format=absolute", "--git-common-dir", "--git-dir", "--show-toplevel"],
                cwd=cwd,
            )
        except ExecutionError as e:
            raise ResolutionError("main repository", e.message or str(e)) from e

        lines = [line.strip() for line in output.splitlines() if line.strip()]
        if len(lines) != 3:
            raise ResolutionError("main repository", f"unexpected rev-parse output: {output!r}")
        common_dir, git_dir, toplevel = (os.path.realpath(line) for line in lines)

        main_repo_path = os.path.dirname(common_dir)
        dotgit = os.path.join(main_repo_path, ".git")
        # The main checkout holds the common dir itself, not a .git file redirecting elsewhere
        if os.path.basename(common_dir) != ".git" or not os.path.isdir(dotgit) or os.path.isfile(dotgit):
            raise ResolutionError(
                "main repository",
                f"{common_dir} is not a .git directory of a checkout (bare repositories are not supported)",
            )

        return RepositoryLayout(
            common_dir=common_dir,
            git_dir=git_dir,
            toplevel=toplevel,
            main_repo_path=main_repo_path,
        )

    def main_repo_path(self, cwd: Optional[str] = None) -> str:
        """Path of the main repository checkout."""
        return self.layout(cwd).main_repo_path

    def assert_main_repo(self, cwd: Optional[str] = None) -> str:
        """Ensure ``cwd`` is the main repository checkout.

        Returns:
            The main repository path

        Raises:
            SafetyViolation: If ``cwd`` is inside a linked worktree
        """
        layout = self.layout(cwd)
        if not layout.in_main_repo:
            raise SafetyViolation(
                layout.main_repo_path,
                f"Refusing to run cleanup from inside a worktree ({layout.toplevel})",
            )
        return layout.main_repo_path

    def list(self) -> List[Worktree]:
        """All worktrees in git's order; the first is the main repository.

        Raises:
            ResolutionError: If the main repository cannot be identified
                exactly once in the listing
        """
        main_repo_path = self.main_repo_path()
        output = self.git.run("worktree", ["list", "--porcelain"])
        worktrees = parse_porcelain(output, main_repo_path)

        main_count = sum(1 for wt in worktrees if wt.is_main_repo)
        if main_count != 1:
            raise ResolutionError(
                "main repository",
                f"expected exactly one main worktree at {main_repo_path}, found {main_count}",
            )

        logger.debug(f"Found {len(worktrees)} worktrees")
        for wt in worktrees:
            logger.debug(f"  {wt}")
        return worktrees

    def status(self, worktree: Worktree) -> Optional[WorktreeStatus]:
        """File status of a worktree, or None when it cannot be checked."""
        if not os.path.isdir(worktree.path):
            logger.debug(f"Worktree path {worktree.path} doesn't exist (prunable)")
            return None
        try:
            output = self.git.run("status", ["--porcelain"], cwd=worktree.path)
        except ExecutionError as e:
            logger.warning(f"Could not check worktree status for {worktree.path}: {e}")
            return None
        return WorktreeStatus.from_porcelain(output)

    def remove(self, worktree: Worktree, force: bool = False) -> None:
        """Remove a linked worktree.

        A prunable worktree (directory already gone) is dropped with
        ``git worktree prune``.

        Raises:
            SafetyViolation: If asked to remove the main repository
            ExecutionError: If git refuses or fails
        """
        main_repo_path = self.main_repo_path()
        if worktree.is_main_repo or same_path(worktree.path, main_repo_path):
            raise SafetyViolation(main_repo_path, "Refusing to remove the main repository checkout")

        if worktree.is_prunable or not os.path.exists(worktree.path):
            self.git.run("worktree", ["prune"], timeout=REMOVAL_TIMEOUT)
            logger.info(f"Pruned worktree metadata for {worktree.path}")
            return

        args = ["remove"]
        if force:
            args.append("--force")
        args.append(worktree.path)
        self.git.run("worktree", args, timeout=REMOVAL_TIMEOUT)
        logger.info(f"Removed worktree at {worktree.path}")
