"""Shared constants for worktree-keeper."""

from dataclasses import dataclass
from typing import Dict, FrozenSet, List


# Timeouts (seconds) for child processes. A timeout is a failure, never retried.
DEFAULT_TIMEOUT = 30
REMOVAL_TIMEOUT = 60


# Subcommands each tool may run
GIT_SUBCOMMANDS: FrozenSet[str] = frozenset({
    "worktree",
    "branch",
    "rev-parse",
    "show-ref",
    "fetch",
    "status",
    "log",
    "symbolic-ref",
    "remote",
    "update-index",
})

RUNTIME_SUBCOMMANDS: FrozenSet[str] = frozenset({
    "ps",
    "images",
    "volume",
    "network",
    "rm",
    "rmi",
    "info",
})


# Tokens that pass through unescaped and skip the metacharacter check
GIT_SAFE_TOKENS: Dict[str, FrozenSet[str]] = {
    "worktree": frozenset({
        "add", "list", "remove", "move", "prune", "lock", "unlock",
        "--porcelain", "--verbose", "-v", "--force", "-f", "-b",
    }),
    "branch": frozenset({
        "--list", "--all", "--merged", "--no-merged", "--contains", "--points-at",
        "-r", "-a", "-v", "--verbose", "--format=%(refname:short)",
    }),
    "rev-parse": frozenset({
        "--git-dir", "--git-common-dir", "--show-toplevel", "--path-format=absolute",
        "--abbrev-ref", "--short", "--verify", "--quiet", "-q", "HEAD",
    }),
    "show-ref": frozenset({"--verify", "--quiet", "-q", "--heads", "--tags"}),
    "fetch": frozenset({"--all", "--prune", "--dry-run", "--verbose", "-v"}),
    "status": frozenset({
        "--porcelain", "--short", "-s", "--branch", "-b", "--untracked-files=no",
    }),
    "log": frozenset({"--oneline", "--graph", "--decorate", "--all"}),
    "symbolic-ref": frozenset({"--quiet", "-q", "--short"}),
    "remote": frozenset({"--verbose", "-v", "get-url", "show"}),
    "update-index": frozenset({
        "--assume-unchanged", "--no-assume-unchanged", "--skip-worktree",
        "--no-skip-worktree", "--refresh", "--ignore-missing",
    }),
}

RUNTIME_SAFE_TOKENS: Dict[str, FrozenSet[str]] = {
    "ps": frozenset({"-a", "--all", "-q", "--quiet", "--no-trunc", "--filter", "--format"}),
    "images": frozenset({"-a", "--all", "-q", "--quiet", "--filter", "--format"}),
    "volume": frozenset({"ls", "rm", "-f", "--force", "-q", "--quiet", "--filter", "--format"}),
    "network": frozenset({"ls", "rm", "-f", "--force", "-q", "--quiet", "--filter", "--format"}),
    "rm": frozenset({"-f", "--force", "-v", "--volumes"}),
    "rmi": frozenset({"-f", "--force"}),
    "info": frozenset({"--format"}),
}

# Git ref prefixes recognised as tokens (still checked for metacharacters)
GIT_REF_PREFIXES = ("refs/", "origin/")


# Shell metacharacters refused in any argument that is not an allow-listed token
SHELL_METACHARACTERS = frozenset(";&|`$()[]<>")
SHELL_OPERATORS = ("&&", "||")

# Variables stripped from the runtime child environment
UNSAFE_ENV_VARS = (
    "LD_PRELOAD",
    "LD_LIBRARY_PATH",
    "DYLD_INSERT_LIBRARIES",
    "IFS",
    "PS4",
    "PROMPT_COMMAND",
)


# Networks the runtime creates itself; never cleanup targets
BUILTIN_NETWORKS: FrozenSet[str] = frozenset({"bridge", "host", "none"})

# Artifact categories in removal order (containers first releases images/volumes/networks)
ARTIFACT_CATEGORIES = ("containers", "images", "volumes", "networks")


# Feature name rules that configuration can tighten but never relax
FEATURE_NAME_PATTERN = r"^[a-zA-Z0-9._-]+$"
FEATURE_NAME_MAX_LENGTH = 50
FORBIDDEN_FEATURE_NAMES: FrozenSet[str] = frozenset({".", "..", "HEAD", "main", "master", "origin"})

# Base refs accepted by worktree creation
REF_PATTERN = r"^[A-Za-z0-9._/-]+$"


# Default branch candidates, in the order they are tried
DEFAULT_BRANCH_CANDIDATES = ("main", "master")
REMOTE_HEAD_REF = "refs/remotes/origin/HEAD"


# Configuration file locations
CONFIG_FILE_NAME = ".worktree-keeper.json"
SYSTEM_CONFIG_PATH = "/etc/worktree-keeper/config.json"
USER_CONFIG_DIR_NAME = "worktree-keeper"
USER_CONFIG_FILE_NAME = "config.json"

ENV_PATH_PATTERN = "WORKTREE_KEEPER_PATH_PATTERN"
ENV_CONFIRM_BY_DEFAULT = "WORKTREE_KEEPER_CONFIRM_BY_DEFAULT"
ENV_VERBOSE = "WORKTREE_KEEPER_VERBOSE"
ENV_RUNTIME = "WORKTREE_KEEPER_RUNTIME"


# Symbol constants
SYMBOL_HAS_ARTIFACTS = "🐳"
SYMBOL_CLEAN = "✓"
SYMBOL_UNKNOWN = "⚠"
SYMBOL_MAIN_REPO = "main repository"


@dataclass
class ColumnDefinition:
    """Definition of a table column."""

    key: str
    label: str
    width: int = 0  # 0 means auto-width


COLUMNS: List[ColumnDefinition] = [
    ColumnDefinition("name", "Worktree", 30),
    ColumnDefinition("branch", "Branch", 25),
    ColumnDefinition("status", "Changes", 8),
    ColumnDefinition("artifacts", "Artifacts", 24),
    ColumnDefinition("path", "Path"),
]


# Style types for table rows
class WorktreeStyleType:
    """Style types for worktrees."""

    MAIN = "main"
    DIRTY = "dirty"  # Uncommitted changes would be lost
    PRUNABLE = "prunable"
    NORMAL = "normal"


# CLI colors (Rich color names)
CLI_COLORS = {
    WorktreeStyleType.MAIN: "cyan",
    WorktreeStyleType.DIRTY: "yellow",
    WorktreeStyleType.PRUNABLE: "dim",
    WorktreeStyleType.NORMAL: None,  # Default color
}
