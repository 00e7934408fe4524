"""Creation of new worktree and branch pairs."""

import getpass
import os
import re
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from worktree_keeper.config import TemplateVar, WorkspaceConfig, render
from worktree_keeper.constants import (
    FEATURE_NAME_MAX_LENGTH,
    FEATURE_NAME_PATTERN,
    FORBIDDEN_FEATURE_NAMES,
    REF_PATTERN,
)
from worktree_keeper.exceptions import ExecutionError, ValidationError
from worktree_keeper.logging_config import get_logger
from worktree_keeper.services.command_executor import GitExecutor, quote_arg, validate_arg
from worktree_keeper.services.git.worktrees import WorktreeRegistry

logger = get_logger(__name__)

ENV_FILE_NAME = ".env"


@dataclass(frozen=True)
class CreatedWorktree:
    """Result of a successful creation."""

    path: str
    branch: str
    ref: Optional[str] = None
    env_copied: bool = False

    @property
    def cd_command(self) -> str:
        """Shell line that moves into the new worktree."""
        return f"cd {quote_arg(self.path)}"


def _timestamp() -> str:
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H-%M-%S-") + f"{now.microsecond // 1000:03d}Z"


def _current_user() -> Optional[str]:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return None


class WorktreeCreator:
    """Computes a safe destination and creates a worktree on a new branch."""

    def __init__(
        self,
        config: WorkspaceConfig,
        git_executor: GitExecutor,
        registry: Optional[WorktreeRegistry] = None,
    ):
        self.config = config
        self.git = git_executor
        self.registry = registry or WorktreeRegistry(git_executor)

    def validate_feature_name(self, feature_name: str) -> None:
        """Check a feature name against the built-in and configured rules.

        Raises:
            ValidationError: If the name is empty, too long, forbidden or
                uses characters outside the allowed set
        """
        rules = self.config.validation
        if not isinstance(feature_name, str) or not feature_name:
            raise ValidationError("feature name", "must be a non-empty string")
        if len(feature_name) > FEATURE_NAME_MAX_LENGTH:
            raise ValidationError(
                "feature name", f"'{feature_name}' is longer than {FEATURE_NAME_MAX_LENGTH} characters"
            )
        # Configured pattern can only narrow the built-in one
        if not re.match(FEATURE_NAME_PATTERN, feature_name) or not re.match(
            rules.allowed_feature_name_chars, feature_name
        ):
            raise ValidationError(
                "feature name",
                f"'{feature_name}' may only contain letters, digits, dots, underscores and hyphens",
            )
        if feature_name.startswith("-"):
            raise ValidationError("feature name", f"'{feature_name}' must not start with '-'")
        if feature_name in FORBIDDEN_FEATURE_NAMES or feature_name in rules.forbidden_names:
            raise ValidationError("feature name", f"'{feature_name}' is reserved")

    def validate_ref(self, ref: str) -> None:
        if not re.match(REF_PATTERN, ref) or ref.startswith("-"):
            raise ValidationError("ref", f"'{ref}' is not a valid branch, tag or commit name")

    def resolve_path(self, feature_name: str, main_repo_path: str) -> str:
        """Render the configured path pattern and validate the result.

        Relative patterns are resolved against the main repository.

        Raises:
            ValidationError: If the rendered path is unsafe, too deep,
                leaves the repository while traversal is disabled, or exists
        """
        rules = self.config.validation
        rendered = render(
            self.config.worktree_path_pattern,
            {
                TemplateVar.GIT_ROOT: os.path.basename(main_repo_path.rstrip(os.sep)),
                TemplateVar.FEATURE_NAME: feature_name,
                TemplateVar.PARENT_DIR: os.path.dirname(main_repo_path.rstrip(os.sep)),
                TemplateVar.TIMESTAMP: _timestamp(),
                TemplateVar.USER: _current_user(),
            },
        )

        validate_arg(rendered, "worktree path")
        if rendered.startswith(("-", "~", "$")):
            raise ValidationError("worktree path", f"'{rendered}' must not start with '-', '~' or '$'")

        absolute = os.path.normpath(os.path.join(main_repo_path, rendered))

        if not rules.allow_parent_directory_traversal:
            inside = os.path.commonpath([absolute, main_repo_path]) == main_repo_path
            if ".." in rendered.split("/") or not inside:
                raise ValidationError(
                    "worktree path",
                    f"'{absolute}' is outside the repository and parent directory traversal is disabled",
                )

        if not os.path.isabs(rendered):
            depth = len(os.path.normpath(rendered).split(os.sep))
            if depth > rules.max_path_depth:
                raise ValidationError(
                    "worktree path",
                    f"depth {depth} of '{rendered}' exceeds the maximum of {rules.max_path_depth}",
                )

        if os.path.lexists(absolute):
            raise ValidationError("worktree path", f"'{absolute}' already exists")

        return absolute

    def _copy_env_file(self, main_repo_path: str, worktree_path: str) -> bool:
        source = os.path.join(main_repo_path, ENV_FILE_NAME)
        if not os.path.isfile(source):
            return False
        try:
            shutil.copy2(source, os.path.join(worktree_path, ENV_FILE_NAME))
        except OSError as e:
            logger.warning(f"Failed to copy {ENV_FILE_NAME} into the new worktree: {e}")
            return False
        logger.info(f"Copied {ENV_FILE_NAME} from the main worktree")
        return True

    def create(self, feature_name: str, ref: Optional[str] = None) -> CreatedWorktree:
        """Create a worktree for ``feature_name`` on a branch of the same name.

        Args:
            feature_name: Name of the new branch and worktree suffix
            ref: Optional base ref; fetched first, HEAD is used when omitted

        Raises:
            ValidationError: On a bad name, ref or destination (nothing is changed)
            ExecutionError: If git refuses to add the worktree
        """
        self.validate_feature_name(feature_name)
        if ref is not None:
            self.validate_ref(ref)

        main_repo_path = self.registry.main_repo_path()
        path = self.resolve_path(feature_name, main_repo_path)
        logger.info(f"Creating worktree for '{feature_name}' at {path}")

        args = ["add", path, "-b", feature_name]
        if ref is not None:
            try:
                self.git.run("fetch", cwd=main_repo_path)
            except ExecutionError as e:
                logger.warning(f"git fetch failed, continuing with local refs: {e}")
            args.append(ref)

        self.git.run("worktree", args, cwd=main_repo_path)

        env_copied = self._copy_env_file(main_repo_path, path)
        return CreatedWorktree(path=path, branch=feature_name, ref=ref, env_copied=env_copied)
