"""Container runtime artifact discovery and removal."""

from typing import Callable, Dict, List, Optional, Tuple

from worktree_keeper.config import TemplateVar, WorkspaceConfig, render
from worktree_keeper.constants import BUILTIN_NETWORKS, REMOVAL_TIMEOUT
from worktree_keeper.exceptions import ExecutionError, ValidationError
from worktree_keeper.logging_config import get_logger
from worktree_keeper.models.artifacts import ArtifactPatterns, ArtifactRemoval, ArtifactSet
from worktree_keeper.services.command_executor import RuntimeExecutor

logger = get_logger(__name__)

# category -> (subcommand, leading args, filter key, output format)
_QUERIES: Dict[str, Tuple[str, List[str], str, str]] = {
    "containers": ("ps", ["-a"], "name", "{{.Names}}"),
    "images": ("images", [], "reference", "{{.Repository}}:{{.Tag}}"),
    "volumes": ("volume", ["ls"], "name", "{{.Name}}"),
    "networks": ("network", ["ls"], "name", "{{.Name}}"),
}

# category -> (subcommand, leading args) used to remove one item
_REMOVALS: Dict[str, Tuple[str, List[str]]] = {
    "containers": ("rm", ["-f"]),
    "images": ("rmi", ["-f"]),
    "volumes": ("volume", ["rm"]),
    "networks": ("network", ["rm"]),
}

_PATTERN_FOR_CATEGORY = {
    "containers": "container",
    "images": "image",
    "volumes": "volume",
    "networks": "network",
}


class ArtifactLocator:
    """Finds and removes runtime resources named after a workspace."""

    def __init__(self, config: WorkspaceConfig, runtime: Optional[RuntimeExecutor] = None):
        """Initialize the locator.

        Args:
            config: Resolved configuration supplying the name patterns
            runtime: Executor for the container runtime CLI
        """
        self.config = config
        self.runtime = runtime or RuntimeExecutor(binary=config.docker.runtime)
        self._available: Optional[bool] = None

    def patterns_for(self, name: str) -> ArtifactPatterns:
        """Render the configured patterns for a workspace name."""
        variables = {TemplateVar.NAME: name}
        docker = self.config.docker
        return ArtifactPatterns(
            container=render(docker.container_pattern, variables),
            image=render(docker.image_pattern, variables),
            volume=render(docker.volume_pattern, variables),
            network=render(docker.network_pattern, variables),
        )

    def runtime_available(self) -> bool:
        """Check the runtime once; later calls reuse the answer."""
        if self._available is None:
            try:
                self.runtime.run("info", ["--format", "{{.ServerVersion}}"])
                self._available = True
            except ExecutionError as e:
                logger.warning(f"Container runtime unavailable, skipping artifact checks: {e}")
                self._available = False
        return self._available

    def _query(self, category: str, pattern: str) -> List[str]:
        subcommand, leading, filter_key, fmt = _QUERIES[category]
        args = leading + ["--filter", f"{filter_key}={pattern}", "--format", fmt]
        output = self.runtime.run(subcommand, args)
        names = [line.strip() for line in output.splitlines() if line.strip()]
        if category == "networks":
            names = [n for n in names if n not in BUILTIN_NETWORKS]
        return names

    def locate(self, name: str) -> ArtifactSet:
        """Query every category for resources matching ``name``.

        A failed category query, or one whose rendered pattern cannot be
        passed to the runtime, leaves that category empty and marks it
        unknown; an unreachable runtime yields an unavailable set.
        """
        if not self.runtime_available():
            return ArtifactSet.unavailable()

        patterns = self.patterns_for(name)
        artifacts = ArtifactSet()
        for category, pattern_attr in _PATTERN_FOR_CATEGORY.items():
            pattern = getattr(patterns, pattern_attr)
            try:
                setattr(artifacts, category, self._query(category, pattern))
            except (ExecutionError, ValidationError) as e:
                logger.warning(f"Could not list {category} matching {pattern}: {e}")
                artifacts.unknown.append(category)

        if artifacts.found:
            logger.debug(f"Artifacts for {name}: {artifacts.counts()}")
        return artifacts

    def remove(
        self,
        artifacts: ArtifactSet,
        on_removed: Optional[Callable[[str, str], None]] = None,
    ) -> ArtifactRemoval:
        """Remove the given artifacts one by one.

        Containers go first so images, volumes and networks are released.
        Items already gone count as removed. Volumes and networks still in
        use become warnings; everything else that fails is an error.
        """
        result = ArtifactRemoval()
        if not artifacts.runtime_available:
            return result

        for category, names in artifacts.items():
            subcommand, leading = _REMOVALS[category]
            for item in names:
                try:
                    self.runtime.run(subcommand, leading + [item], timeout=REMOVAL_TIMEOUT)
                except ValidationError as e:
                    result.errors.append(f"Failed to remove {category[:-1]} {item}: {e}")
                    continue
                except ExecutionError as e:
                    if e.reason == "not_found":
                        logger.debug(f"{item} already removed")
                    elif e.reason == "in_use" and category in ("volumes", "networks"):
                        result.warnings.append(f"{category[:-1].capitalize()} {item} is still in use, left in place")
                        continue
                    else:
                        result.errors.append(f"Failed to remove {category[:-1]} {item}: {e}")
                        continue
                result.removed[category] += 1
                if on_removed:
                    on_removed(category, item)

        for warning in result.warnings:
            logger.warning(warning)
        return result
