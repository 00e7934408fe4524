"""Custom exceptions for worktree-keeper"""

from typing import Optional


class WorktreeKeeperError(Exception):
    """Base exception for all worktree-keeper errors."""
    pass


class ValidationError(WorktreeKeeperError):
    """Raised for a bad name, path, command argument, template or config value."""

    def __init__(self, subject: str, message: str):
        self.subject = subject
        self.message = message
        super().__init__(f"Invalid {subject}: {message}")


class ExecutionError(WorktreeKeeperError):
    """Exception raised when git or the container runtime exits unsuccessfully."""

    def __init__(
        self,
        tool: str,
        subcommand: str,
        message: Optional[str] = None,
        returncode: Optional[int] = None,
        reason: str = "unknown",
        stderr: Optional[str] = None,
        timed_out: bool = False,
    ):
        self.tool = tool
        self.subcommand = subcommand
        self.message = message
        self.returncode = returncode
        self.reason = reason
        # Only populated for git; runtime stderr is never carried
        self.stderr = stderr
        self.timed_out = timed_out

        error_msg = f"{tool} {subcommand} failed"
        if returncode is not None:
            error_msg += f" (exit {returncode})"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class ResolutionError(WorktreeKeeperError):
    """Exception raised when the default branch or main repository cannot be determined."""

    def __init__(self, what: str, message: Optional[str] = None):
        self.what = what
        self.message = message

        error_msg = f"Unable to determine {what}"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class SafetyViolation(WorktreeKeeperError):
    """Exception raised when an operation would touch the main repository checkout."""

    def __init__(self, main_repo_path: str, message: Optional[str] = None):
        self.main_repo_path = main_repo_path
        self.message = message

        error_msg = message or "Cleanup must be run from the main repository"
        error_msg += f" (main repository: {main_repo_path}). Run: cd {main_repo_path}"

        super().__init__(error_msg)


class NotFoundError(WorktreeKeeperError):
    """Exception raised when no worktree matches the requested name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Worktree '{name}' not found")
