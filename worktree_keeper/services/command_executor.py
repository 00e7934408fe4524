"""Allow-listed execution of git and container runtime commands.

Every external process the package starts goes through one of the two
executors below. Each executor carries an allow-list of subcommands and,
per subcommand, of tokens (flags, fixed words) that pass through as-is.
Any other argument must be free of shell metacharacters; it is rendered
single-quoted in the logged command line.

Commands are executed as argument vectors, never through a shell, so the
quoted command line is what an operator can paste into a shell to
reproduce the call.
"""

import os
import re
import subprocess
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

import git

from worktree_keeper.constants import (
    DEFAULT_TIMEOUT,
    GIT_REF_PREFIXES,
    GIT_SAFE_TOKENS,
    GIT_SUBCOMMANDS,
    RUNTIME_SAFE_TOKENS,
    RUNTIME_SUBCOMMANDS,
    SHELL_METACHARACTERS,
    SHELL_OPERATORS,
    UNSAFE_ENV_VARS,
)
from worktree_keeper.exceptions import ExecutionError, ValidationError
from worktree_keeper.logging_config import get_logger

logger = get_logger(__name__)

# Flags like --porcelain, -b, --filter or --format=short
_FLAG_RE = re.compile(r"^--?[A-Za-z][A-Za-z0-9-]*(=[A-Za-z0-9._/:-]*)?$")
# refs/heads/feature, origin/main
_REF_RE = re.compile(r"^[A-Za-z0-9._/-]+$")

# GitPython's watchdog message when kill_after_timeout fires
_GIT_TIMEOUT_MARKER = "did not complete in"


def quote_arg(arg: str) -> str:
    """Wrap an argument in POSIX single quotes.

    Internal single quotes become ``'\\''`` (close, escaped quote, reopen),
    so nothing inside the result is interpreted by a shell.
    """
    return "'" + arg.replace("'", "'\\''") + "'"


def validate_arg(arg: str, context: str = "argument") -> None:
    """Reject arguments carrying shell metacharacters.

    Raises:
        ValidationError: If the argument is not a string or contains
            ``; & | ` $ ( ) [ ] < >``, ``&&``, ``||`` or control characters
    """
    if not isinstance(arg, str):
        raise ValidationError(context, f"must be a string, got {type(arg).__name__}")

    for operator in SHELL_OPERATORS:
        if operator in arg:
            raise ValidationError(context, f"contains shell operator '{operator}': {arg!r}")

    bad = sorted(set(arg) & SHELL_METACHARACTERS)
    if bad:
        raise ValidationError(
            context, f"contains disallowed characters {' '.join(bad)}: {arg!r}"
        )

    if any(ord(ch) < 32 for ch in arg):
        raise ValidationError(context, f"contains control characters: {arg!r}")


def safe_env() -> Dict[str, str]:
    """Caller's environment minus loader/shell hooks, with a stable locale."""
    env = dict(os.environ)
    for name in UNSAFE_ENV_VARS:
        env.pop(name, None)
    env["LC_ALL"] = "C"
    return env


@dataclass(frozen=True)
class PreparedCommand:
    """A validated command ready to execute."""

    tool: str
    subcommand: str
    argv: List[str]  # executed without a shell
    command_line: str  # quoted rendering for logs and error messages


class CommandExecutor:
    """Base class for allow-listed tool execution."""

    tool: str = ""
    subcommands: FrozenSet[str] = frozenset()
    safe_tokens: Dict[str, FrozenSet[str]] = {}

    def __init__(self, cwd: Optional[str] = None, timeout: int = DEFAULT_TIMEOUT, binary: Optional[str] = None):
        """Initialize the executor.

        Args:
            cwd: Working directory for commands (defaults to the process cwd at call time)
            timeout: Default timeout in seconds
            binary: Executable to run (defaults to the tool name)
        """
        self.cwd = cwd
        self.timeout = timeout
        self.binary = binary or self.tool

    def _is_recognized(self, arg: str) -> bool:
        """Whether a metacharacter-free argument may be rendered unquoted."""
        return bool(_FLAG_RE.match(arg))

    def prepare(self, subcommand: str, args: Sequence[str] = ()) -> PreparedCommand:
        """Validate a command and render its quoted command line.

        Raises:
            ValidationError: If the subcommand is not allowed or an argument
                carries disallowed characters
        """
        if subcommand not in self.subcommands:
            raise ValidationError("command", f"{self.tool} subcommand '{subcommand}' is not allowed")

        allowed = self.safe_tokens.get(subcommand, frozenset())
        rendered = []
        for index, arg in enumerate(args):
            if isinstance(arg, str) and arg in allowed:
                rendered.append(arg)
                continue

            validate_arg(arg, f"{self.tool} {subcommand} argument {index + 1}")
            rendered.append(arg if self._is_recognized(arg) else quote_arg(arg))

        return PreparedCommand(
            tool=self.tool,
            subcommand=subcommand,
            argv=[self.binary, subcommand, *args],
            command_line=" ".join([self.binary, subcommand, *rendered]),
        )

    def run(
        self,
        subcommand: str,
        args: Sequence[str] = (),
        cwd: Optional[str] = None,
        timeout: Optional[int] = None,
    ) -> str:
        """Run a subcommand and return its stdout.

        Raises:
            ValidationError: If the command fails validation (nothing is executed)
            ExecutionError: On non-zero exit, timeout or missing executable
        """
        prepared = self.prepare(subcommand, args)
        workdir = cwd or self.cwd or os.getcwd()
        if not os.path.isdir(workdir):
            raise ExecutionError(
                self.binary, subcommand, f"working directory does not exist: {workdir}", reason="not_found"
            )
        logger.debug(f"$ {prepared.command_line}  (cwd={workdir})")
        return self._execute(prepared, workdir, timeout or self.timeout)

    def _execute(self, prepared: PreparedCommand, cwd: str, timeout: int) -> str:
        raise NotImplementedError


def _clean_git_stderr(stderr: Optional[str]) -> str:
    """Undo GitPython's ``stderr: '...'`` decoration."""
    text = (stderr or "").strip()
    if text.startswith("stderr:"):
        text = text[len("stderr:"):].strip()
        if len(text) >= 2 and text[0] == text[-1] == "'":
            text = text[1:-1]
    return text.strip()


class GitExecutor(CommandExecutor):
    """Runs allow-listed git subcommands through GitPython."""

    tool = "git"
    subcommands = GIT_SUBCOMMANDS
    safe_tokens = GIT_SAFE_TOKENS

    def _is_recognized(self, arg: str) -> bool:
        if arg.startswith(GIT_REF_PREFIXES) and _REF_RE.match(arg):
            return True
        return super()._is_recognized(arg)

    def _execute(self, prepared: PreparedCommand, cwd: str, timeout: int) -> str:
        try:
            return git.Git(cwd).execute(prepared.argv, kill_after_timeout=timeout)
        except git.exc.GitCommandNotFound as e:
            raise ExecutionError(
                "git", prepared.subcommand, "git executable not found", reason="unavailable"
            ) from e
        except git.exc.GitCommandError as e:
            stderr = _clean_git_stderr(e.stderr)
            timed_out = _GIT_TIMEOUT_MARKER in stderr
            first_line = next((line for line in stderr.splitlines() if line.strip()), "")
            if timed_out:
                message = f"timed out after {timeout}s"
            else:
                message = first_line or None
            raise ExecutionError(
                "git",
                prepared.subcommand,
                message,
                returncode=e.status if isinstance(e.status, int) else None,
                reason="timeout" if timed_out else "unknown",
                stderr=stderr,
                timed_out=timed_out,
            ) from e


# (stderr needle, reason, operator-facing message); stderr itself is never shown
_RUNTIME_ERROR_PATTERNS: List[Tuple[str, str, str]] = [
    ("cannot connect to the docker daemon", "connection_failed",
     "Container runtime daemon is not running. Start it and try again."),
    ("is the docker daemon running", "connection_failed",
     "Container runtime daemon is not running. Start it and try again."),
    ("permission denied", "permission_denied",
     "Permission denied. Add your user to the docker group or run with sufficient privileges."),
    ("volume is in use", "in_use",
     "Volume is in use by a container."),
    ("has active endpoints", "in_use",
     "Network has active endpoints. Stop connected containers first."),
    ("image is being used", "in_use",
     "Image is in use by a container."),
    ("no such container", "not_found",
     "Container not found. It may have already been removed."),
    ("no such image", "not_found",
     "Image not found. It may have already been removed."),
    ("no such volume", "not_found",
     "Volume not found. It may have already been removed."),
    ("no such network", "not_found",
     "Network not found. It may have already been removed."),
]


def classify_runtime_error(stderr: Optional[str]) -> Tuple[str, Optional[str]]:
    """Map runtime stderr to (reason, sanitized message)."""
    lowered = (stderr or "").lower()
    for needle, reason, message in _RUNTIME_ERROR_PATTERNS:
        if needle in lowered:
            return reason, message
    return "unknown", None


class RuntimeExecutor(CommandExecutor):
    """Runs allow-listed container runtime subcommands via subprocess."""

    tool = "docker"
    subcommands = RUNTIME_SUBCOMMANDS
    safe_tokens = RUNTIME_SAFE_TOKENS

    def _execute(self, prepared: PreparedCommand, cwd: str, timeout: int) -> str:
        try:
            result = subprocess.run(
                prepared.argv,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=timeout,
                env=safe_env(),
                check=False,
            )
        except FileNotFoundError as e:
            raise ExecutionError(
                self.binary, prepared.subcommand, f"'{self.binary}' executable not found", reason="unavailable"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise ExecutionError(
                self.binary,
                prepared.subcommand,
                f"timed out after {timeout}s",
                reason="timeout",
                timed_out=True,
            ) from e

        if result.returncode != 0:
            reason, message = classify_runtime_error(result.stderr)
            logger.debug(f"{prepared.command_line} exited {result.returncode} ({reason})")
            raise ExecutionError(
                self.binary,
                prepared.subcommand,
                message,
                returncode=result.returncode,
                reason=reason,
            )

        return result.stdout.rstrip("\n")
