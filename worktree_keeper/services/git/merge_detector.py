"""Merged branch detection for worktree-keeper."""

from typing import Optional

from worktree_keeper.constants import DEFAULT_BRANCH_CANDIDATES, REMOTE_HEAD_REF
from worktree_keeper.exceptions import ExecutionError, ResolutionError, WorktreeKeeperError
from worktree_keeper.logging_config import get_logger
from worktree_keeper.models.branch import MergedBranchSet
from worktree_keeper.services.command_executor import GitExecutor

logger = get_logger(__name__)

_REMOTE_PREFIX = "refs/remotes/origin/"


class MergedBranchAnalyzer:
    """Works out the default branch and which branches are merged into it."""

    def __init__(self, git_executor: GitExecutor):
        self.git = git_executor

    def _remote_head(self) -> Optional[str]:
        output = self.git.run("symbolic-ref", [REMOTE_HEAD_REF]).strip()
        if output.startswith(_REMOTE_PREFIX):
            return output[len(_REMOTE_PREFIX):] or None
        return None

    def _current_if_default(self) -> Optional[str]:
        current = self.git.run("rev-parse", ["--abbrev-ref", "HEAD"]).strip()
        return current if current in DEFAULT_BRANCH_CANDIDATES else None

    def _local_branch(self, name: str) -> Optional[str]:
        self.git.run("show-ref", ["--verify", "--quiet", f"refs/heads/{name}"])
        return name

    def _first_local_branch(self) -> Optional[str]:
        output = self.git.run("branch", ["--format=%(refname:short)"])
        for line in output.splitlines():
            name = line.strip()
            if name and not name.startswith("("):
                return name
        return None

    def default_branch(self) -> str:
        """Resolve the repository's default branch.

        Tries, in order: the remote HEAD, the current branch when it is
        main or master, a local main, a local master, the first local branch.

        Raises:
            ResolutionError: If every step fails
        """
        steps = [
            ("remote HEAD", self._remote_head),
            ("current branch", self._current_if_default),
        ]
        steps.extend(
            (f"local '{name}' branch", lambda name=name: self._local_branch(name))
            for name in DEFAULT_BRANCH_CANDIDATES
        )
        steps.append(("first local branch", self._first_local_branch))

        for index, (label, step) in enumerate(steps):
            try:
                branch = step()
            except ExecutionError as e:
                logger.debug(f"Default branch via {label} failed: {e}")
                branch = None
            if branch:
                logger.debug(f"Default branch is '{branch}' (from {label})")
                return branch
            if index + 1 < len(steps):
                logger.warning(
                    f"Could not determine default branch from {label}, trying {steps[index + 1][0]}"
                )

        raise ResolutionError("default branch", "no remote HEAD, main, master or local branch found")

    def merged_branches(self) -> MergedBranchSet:
        """Branches fully merged into the default branch.

        Never raises for git failures: the returned set carries ``error``
        instead, so callers can report that merge status is unknown.
        """
        try:
            default = self.default_branch()
            output = self.git.run("branch", ["--merged", default, "--format=%(refname:short)"])
        except WorktreeKeeperError as e:
            logger.warning(f"Could not determine merged branches: {e}")
            return MergedBranchSet(error=str(e))

        branches = set()
        for line in output.splitlines():
            name = line.strip().lstrip("*+ ").strip()
            # Skip "(HEAD detached at ...)" lines and the default branch itself
            if not name or name.startswith("(") or name == default:
                continue
            branches.add(name)

        logger.debug(f"{len(branches)} branches merged into {default}")
        return MergedBranchSet(branches=frozenset(branches), default_branch=default)
