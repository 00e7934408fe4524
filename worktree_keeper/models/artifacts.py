"""Container runtime artifact models."""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from worktree_keeper.constants import ARTIFACT_CATEGORIES


@dataclass(frozen=True)
class ArtifactPatterns:
    """Runtime filter patterns derived from a workspace name."""

    container: str
    image: str
    volume: str
    network: str


@dataclass
class ArtifactSet:
    """Runtime resources found for one workspace name."""

    containers: List[str] = field(default_factory=list)
    images: List[str] = field(default_factory=list)
    volumes: List[str] = field(default_factory=list)
    networks: List[str] = field(default_factory=list)
    # Categories whose query failed or timed out; their lists are unknown
    unknown: List[str] = field(default_factory=list)
    runtime_available: bool = True

    @property
    def found(self) -> bool:
        return any(getattr(self, category) for category in ARTIFACT_CATEGORIES)

    @property
    def total(self) -> int:
        return sum(len(getattr(self, category)) for category in ARTIFACT_CATEGORIES)

    def counts(self) -> Dict[str, int]:
        return {category: len(getattr(self, category)) for category in ARTIFACT_CATEGORIES}

    def items(self) -> List[Tuple[str, List[str]]]:
        """(category, names) pairs in removal order."""
        return [(category, getattr(self, category)) for category in ARTIFACT_CATEGORIES]

    @classmethod
    def unavailable(cls) -> "ArtifactSet":
        return cls(runtime_available=False)


@dataclass
class ArtifactRemoval:
    """Outcome of removing one ArtifactSet."""

    removed: Dict[str, int] = field(
        default_factory=lambda: {category: 0 for category in ARTIFACT_CATEGORIES}
    )
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def total_removed(self) -> int:
        return sum(self.removed.values())
