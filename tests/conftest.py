"""Pytest fixtures for worktree-keeper tests"""
import fnmatch
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

import git
import pytest

from worktree_keeper.config import WorkspaceConfig
from worktree_keeper.exceptions import ExecutionError
from worktree_keeper.services.command_executor import GitExecutor, PreparedCommand, RuntimeExecutor


class FakeRuntime(RuntimeExecutor):
    """Container runtime double backed by in-memory resource lists.

    Commands still go through the real allow-list validation; only the
    process execution is replaced.
    """

    def __init__(
        self,
        resources: Optional[Dict[str, List[str]]] = None,
        available: bool = True,
        failures: Optional[Dict[str, BaseException]] = None,
    ):
        super().__init__(cwd=None)
        self.resources = {
            "containers": [],
            "images": [],
            "volumes": [],
            "networks": ["bridge", "host", "none"],
        }
        for category, names in (resources or {}).items():
            self.resources[category] = self.resources[category] + list(names)
        self.available = available
        self.failures = failures or {}
        self.calls: List[List[str]] = []
        self.timeouts: List[int] = []

    @property
    def removal_calls(self) -> List[List[str]]:
        return [argv for argv in self.calls if _is_removal(argv)]

    def _execute(self, prepared: PreparedCommand, cwd: str, timeout: int) -> str:
        argv = prepared.argv
        self.calls.append(argv)
        self.timeouts.append(timeout)
        subcommand, args = argv[1], argv[2:]

        if not self.available:
            raise ExecutionError(
                "docker", subcommand, "Container runtime daemon is not running. Start it and try again.",
                returncode=1, reason="connection_failed",
            )
        if subcommand == "info":
            return "24.0.7"

        category = {"ps": "containers", "images": "images", "rm": "containers", "rmi": "images"}.get(subcommand)
        if subcommand == "volume":
            category = "volumes"
        elif subcommand == "network":
            category = "networks"

        if _is_removal(argv):
            item = args[-1]
            if item in self.failures:
                raise self.failures[item]
            if item not in self.resources[category]:
                raise ExecutionError("docker", subcommand, "not found", returncode=1, reason="not_found")
            self.resources[category].remove(item)
            return item

        filter_value = args[args.index("--filter") + 1].split("=", 1)[1]
        if category in self.failures:
            raise self.failures[category]
        return "\n".join(
            name for name in self.resources[category]
            if fnmatch.fnmatch(name, filter_value) or filter_value in name
        )


def _is_removal(argv: List[str]) -> bool:
    subcommand = argv[1]
    return subcommand in ("rm", "rmi") or (subcommand in ("volume", "network") and argv[2] == "rm")


def add_worktree(repo: git.Repo, name: str, branch: Optional[str] = None, new_branch: bool = True) -> Path:
    """Add a linked worktree next to the repository, named <repo>-<name>."""
    repo_path = Path(repo.working_dir)
    path = repo_path.parent / f"{repo_path.name}-{name}"
    branch = branch or name
    if new_branch:
        repo.git.worktree("add", str(path), "-b", branch)
    else:
        repo.git.worktree("add", str(path), branch)
    return path


def commit_file(repo_path: Path, filename: str, content: str, message: str) -> None:
    worktree_repo = git.Repo(repo_path)
    (repo_path / filename).write_text(content)
    worktree_repo.index.add([filename])
    worktree_repo.index.commit(message)
    worktree_repo.close()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def git_repo(temp_dir):
    """Create a real Git repository for testing."""
    repo_path = temp_dir / "app"
    repo_path.mkdir()

    # Initialize repository
    repo = git.Repo.init(repo_path)

    # Configure git user for commits
    repo.config_writer().set_value("user", "name", "Test User").release()
    repo.config_writer().set_value("user", "email", "test@example.com").release()

    # Create initial commit on main branch
    test_file = repo_path / "README.md"
    test_file.write_text("# Test Repository\n")
    repo.index.add(["README.md"])
    repo.index.commit("Initial commit")

    # Rename master to main if needed
    repo.git.branch("-M", "main")

    yield repo

    # Cleanup
    repo.close()


@pytest.fixture
def repo_with_worktrees(git_repo):
    """Repository with two linked worktrees: app-feature-a and app-feature-b."""
    add_worktree(git_repo, "feature-a")
    add_worktree(git_repo, "feature-b")
    yield git_repo


@pytest.fixture
def repo_with_merged_worktrees(git_repo):
    """Branches main, merged-a (merged) and wip-b (unmerged), each with a worktree."""
    repo_path = Path(git_repo.working_dir)

    git_repo.git.checkout("-b", "merged-a")
    commit_file(repo_path, "merged.txt", "merged\n", "Merged work")
    git_repo.git.checkout("main")
    git_repo.git.merge("merged-a", "--no-ff", "-m", "Merge merged-a")

    add_worktree(git_repo, "merged-a", new_branch=False)
    wip_path = add_worktree(git_repo, "wip-b")
    commit_file(wip_path, "wip.txt", "wip\n", "Work in progress")

    yield git_repo


@pytest.fixture
def git_executor(git_repo):
    return GitExecutor(cwd=git_repo.working_dir)


@pytest.fixture
def workspace_config():
    """Default configuration."""
    return WorkspaceConfig()


@pytest.fixture
def fake_runtime():
    """Factory for FakeRuntime instances."""
    return FakeRuntime
