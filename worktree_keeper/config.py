"""Configuration handling for worktree-keeper"""

import copy
import json
import os
import re
import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from worktree_keeper.constants import (
    CONFIG_FILE_NAME,
    ENV_CONFIRM_BY_DEFAULT,
    ENV_PATH_PATTERN,
    ENV_RUNTIME,
    ENV_VERBOSE,
    FEATURE_NAME_PATTERN,
    FORBIDDEN_FEATURE_NAMES,
    SYSTEM_CONFIG_PATH,
    USER_CONFIG_DIR_NAME,
    USER_CONFIG_FILE_NAME,
)
from worktree_keeper.exceptions import ValidationError
from worktree_keeper.logging_config import get_logger

logger = get_logger(__name__)


class TemplateVar(Enum):
    """Placeholders understood by path and artifact name templates."""

    GIT_ROOT = "gitRoot"
    FEATURE_NAME = "featureName"
    PARENT_DIR = "parentDir"
    TIMESTAMP = "timestamp"
    USER = "user"
    NAME = "name"


# Legacy spelling accepted in artifact patterns
TEMPLATE_ALIASES = {"worktreeName": TemplateVar.NAME}

_PLACEHOLDER_RE = re.compile(r"\$\{([^}]*)\}")


def render(pattern: str, variables: Mapping[TemplateVar, Optional[str]]) -> str:
    """Substitute ``${var}`` placeholders in a path or name template.

    Every placeholder must name a TemplateVar (or alias) that has a value in
    ``variables``; anything else raises ValidationError instead of leaking a
    literal ``${...}`` into a path or runtime filter.

    Args:
        pattern: Template such as ``../${gitRoot}-${featureName}``
        variables: Values keyed by TemplateVar

    Returns:
        The rendered string
    """

    def substitute(match: "re.Match[str]") -> str:
        key = match.group(1)
        var = TEMPLATE_ALIASES.get(key)
        if var is None:
            try:
                var = TemplateVar(key)
            except ValueError:
                raise ValidationError(
                    "template", f"unknown placeholder '${{{key}}}' in '{pattern}'"
                ) from None
        value = variables.get(var)
        if value is None:
            raise ValidationError("template", f"no value for '${{{key}}}' in '{pattern}'")
        return str(value)

    return _PLACEHOLDER_RE.sub(substitute, pattern)


def deep_merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge ``override`` into a copy of ``base``.

    Objects merge field-wise; arrays and scalars from ``override`` replace
    the base value wholesale.
    """
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def _require_str(section: str, key: str, value: Any) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("config", f"{section}.{key} must be a non-empty string, got {value!r}")


def _require_bool(section: str, key: str, value: Any) -> None:
    if not isinstance(value, bool):
        raise ValidationError("config", f"{section}.{key} must be true or false, got {value!r}")


@dataclass
class DockerPatterns:
    """Artifact naming templates; ``${name}`` is the workspace name."""

    container_pattern: str = "${name}_devcontainer"
    image_pattern: str = "vsc-${name}-*"
    volume_pattern: str = "vsc-${name}*"
    network_pattern: str = "${name}_devcontainer"
    runtime: str = "docker"

    def __post_init__(self):
        for key in ("container_pattern", "image_pattern", "volume_pattern", "network_pattern", "runtime"):
            _require_str("docker", key, getattr(self, key))


@dataclass
class ValidationRules:
    """Rules applied to feature names and generated worktree paths."""

    allow_parent_directory_traversal: bool = True
    max_path_depth: int = 3
    allowed_feature_name_chars: str = FEATURE_NAME_PATTERN
    forbidden_names: List[str] = field(default_factory=lambda: sorted(FORBIDDEN_FEATURE_NAMES))

    def __post_init__(self):
        """Validate configuration after initialization."""
        _require_bool("validation", "allowParentDirectoryTraversal", self.allow_parent_directory_traversal)
        self._validate_max_path_depth()
        self._validate_allowed_chars()
        self._validate_forbidden_names()

    def _validate_max_path_depth(self):
        """Validate max_path_depth is a positive integer."""
        if isinstance(self.max_path_depth, bool) or not isinstance(self.max_path_depth, int):
            raise ValidationError("config", f"validation.maxPathDepth must be an integer, got {self.max_path_depth!r}")
        if self.max_path_depth <= 0:
            raise ValidationError("config", f"validation.maxPathDepth must be positive, got {self.max_path_depth}")

    def _validate_allowed_chars(self):
        """Validate the feature name pattern compiles."""
        _require_str("validation", "allowedFeatureNameChars", self.allowed_feature_name_chars)
        try:
            re.compile(self.allowed_feature_name_chars)
        except re.error as e:
            raise ValidationError("config", f"validation.allowedFeatureNameChars is not a valid regex: {e}")

    def _validate_forbidden_names(self):
        """Validate forbidden_names is a list of strings."""
        if not isinstance(self.forbidden_names, list) or not all(
            isinstance(name, str) for name in self.forbidden_names
        ):
            raise ValidationError("config", "validation.forbiddenNames must be a list of strings")


@dataclass
class CleanupBehavior:
    """Cleanup defaults."""

    confirm_by_default: bool = True
    verbose_logging: bool = False
    auto_cleanup_merged: bool = False

    def __post_init__(self):
        _require_bool("cleanup", "confirmByDefault", self.confirm_by_default)
        _require_bool("cleanup", "verboseLogging", self.verbose_logging)
        _require_bool("cleanup", "autoCleanupMerged", self.auto_cleanup_merged)


# JSON key -> dataclass attribute, per section
_TOP_LEVEL_KEYS = {"worktreePathPattern": "worktree_path_pattern"}
_DOCKER_KEYS = {
    "containerPattern": "container_pattern",
    "imagePattern": "image_pattern",
    "volumePattern": "volume_pattern",
    "networkPattern": "network_pattern",
    "runtime": "runtime",
}
_VALIDATION_KEYS = {
    "allowParentDirectoryTraversal": "allow_parent_directory_traversal",
    "maxPathDepth": "max_path_depth",
    "allowedFeatureNameChars": "allowed_feature_name_chars",
    "allowedNameChars": "allowed_feature_name_chars",
    "forbiddenNames": "forbidden_names",
}
_CLEANUP_KEYS = {
    "confirmByDefault": "confirm_by_default",
    "verboseLogging": "verbose_logging",
    "autoCleanupMerged": "auto_cleanup_merged",
}


def _pick(section: str, data: Any, keys: Dict[str, str]) -> Dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("config", f"'{section}' must be an object")
    picked = {}
    for key, value in data.items():
        if key in keys:
            picked[keys[key]] = value
        elif not key.startswith("_"):
            logger.debug(f"Ignoring unknown config key {section}.{key}")
    return picked


@dataclass
class WorkspaceConfig:
    """Resolved configuration, built fresh for each invocation."""

    worktree_path_pattern: str = "../${gitRoot}-${featureName}"
    docker: DockerPatterns = field(default_factory=DockerPatterns)
    validation: ValidationRules = field(default_factory=ValidationRules)
    cleanup: CleanupBehavior = field(default_factory=CleanupBehavior)

    def __post_init__(self):
        _require_str("config", "worktreePathPattern", self.worktree_path_pattern)

    def to_dict(self) -> dict:
        """Convert config to the JSON layout used by configuration files."""
        return {
            "worktreePathPattern": self.worktree_path_pattern,
            "docker": {
                "containerPattern": self.docker.container_pattern,
                "imagePattern": self.docker.image_pattern,
                "volumePattern": self.docker.volume_pattern,
                "networkPattern": self.docker.network_pattern,
                "runtime": self.docker.runtime,
            },
            "validation": {
                "allowParentDirectoryTraversal": self.validation.allow_parent_directory_traversal,
                "maxPathDepth": self.validation.max_path_depth,
                "allowedFeatureNameChars": self.validation.allowed_feature_name_chars,
                "forbiddenNames": list(self.validation.forbidden_names),
            },
            "cleanup": {
                "confirmByDefault": self.cleanup.confirm_by_default,
                "verboseLogging": self.cleanup.verbose_logging,
                "autoCleanupMerged": self.cleanup.auto_cleanup_merged,
            },
        }

    @classmethod
    def from_dict(cls, config_dict: dict) -> "WorkspaceConfig":
        """Create WorkspaceConfig from the JSON layout; unknown keys are ignored."""
        sections = ("docker", "validation", "cleanup")
        top = _pick(
            "config",
            {key: value for key, value in config_dict.items() if key not in sections},
            _TOP_LEVEL_KEYS,
        )
        return cls(
            docker=DockerPatterns(**_pick("docker", config_dict.get("docker"), _DOCKER_KEYS)),
            validation=ValidationRules(**_pick("validation", config_dict.get("validation"), _VALIDATION_KEYS)),
            cleanup=CleanupBehavior(**_pick("cleanup", config_dict.get("cleanup"), _CLEANUP_KEYS)),
            **top,
        )


class ConfigResolver:
    """Loads and merges the configuration layers.

    Precedence, lowest first: built-in defaults, system file, user file,
    project dotfile, environment variables.
    """

    def __init__(
        self,
        cwd: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        system_path: Optional[str] = None,
        user_path: Optional[str] = None,
    ):
        """Initialize the resolver.

        Args:
            cwd: Directory holding the project dotfile (defaults to os.getcwd())
            env: Environment mapping (defaults to os.environ)
            system_path: Override for the system-wide config file
            user_path: Override for the per-user config file
        """
        self.cwd = cwd or os.getcwd()
        self.env = env if env is not None else os.environ
        self.system_path = Path(system_path or SYSTEM_CONFIG_PATH)
        if user_path:
            self.user_path = Path(user_path)
        else:
            config_home = self.env.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
            self.user_path = Path(config_home) / USER_CONFIG_DIR_NAME / USER_CONFIG_FILE_NAME
        self.project_path = Path(self.cwd) / CONFIG_FILE_NAME

    def layer_paths(self) -> List[Tuple[str, Path]]:
        """File layers in increasing precedence."""
        return [
            ("system", self.system_path),
            ("user", self.user_path),
            ("project", self.project_path),
        ]

    def _load_layer(self, label: str, path: Path) -> Optional[dict]:
        """Read one JSON layer; malformed layers are skipped with a warning."""
        if not path.is_file():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Skipping {label} config {path}: {e}")
            return None
        if not isinstance(data, dict):
            logger.warning(f"Skipping {label} config {path}: top level must be a JSON object")
            return None
        logger.debug(f"Loaded {label} config from {path}")
        return data

    def environment_overrides(self) -> dict:
        """Configuration overrides taken from environment variables."""
        overrides: Dict[str, Any] = {}

        if self.env.get(ENV_PATH_PATTERN):
            overrides["worktreePathPattern"] = self.env[ENV_PATH_PATTERN]

        if self.env.get(ENV_CONFIRM_BY_DEFAULT):
            overrides.setdefault("cleanup", {})["confirmByDefault"] = (
                self.env[ENV_CONFIRM_BY_DEFAULT].strip().lower() == "true"
            )

        if self.env.get(ENV_VERBOSE):
            overrides.setdefault("cleanup", {})["verboseLogging"] = (
                self.env[ENV_VERBOSE].strip().lower() == "true"
            )

        if self.env.get(ENV_RUNTIME):
            overrides.setdefault("docker", {})["runtime"] = self.env[ENV_RUNTIME]

        return overrides

    def resolve(self) -> WorkspaceConfig:
        """Merge every layer into a fresh WorkspaceConfig.

        Raises:
            ValidationError: If the merged values are invalid
        """
        merged = WorkspaceConfig().to_dict()
        for label, path in self.layer_paths():
            data = self._load_layer(label, path)
            if data:
                merged = deep_merge(merged, data)

        overrides = self.environment_overrides()
        if overrides:
            logger.debug(f"Applying environment overrides: {sorted(overrides)}")
            merged = deep_merge(merged, overrides)

        return WorkspaceConfig.from_dict(merged)

    @staticmethod
    def render(pattern: str, variables: Mapping[TemplateVar, Optional[str]]) -> str:
        """See :func:`render`."""
        return render(pattern, variables)

    def write_sample(self, path: Optional[str] = None) -> Path:
        """Write the default configuration as a starting point.

        An existing file is copied to ``<name>.bak`` before it is rewritten.

        Returns:
            Path of the written file
        """
        target = Path(path) if path else self.project_path
        sample = WorkspaceConfig().to_dict()
        sample["_examples"] = {
            "worktreePathPatterns": [
                "../${gitRoot}-${featureName}",
                "./worktrees/${featureName}",
                "${parentDir}/worktrees/${gitRoot}/${featureName}",
                "/tmp/worktrees/${user}/${gitRoot}/${featureName}",
            ]
        }

        if target.exists():
            backup = target.with_name(target.name + ".bak")
            shutil.copy2(target, backup)
            logger.info(f"Backed up existing config to {backup}")

        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "w", encoding="utf-8") as f:
            json.dump(sample, f, indent=2)
            f.write("\n")
        return target
