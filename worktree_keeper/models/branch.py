"""Branch models"""
from dataclasses import dataclass, field
from typing import FrozenSet, Iterator, Optional


@dataclass(frozen=True)
class MergedBranchSet:
    """Branches reachable from the default branch, excluding it.

    ``error`` is set when resolution failed and the set was degraded to
    empty, so callers can tell "nothing merged" apart from "could not tell".
    """
    branches: FrozenSet[str] = field(default_factory=frozenset)
    default_branch: Optional[str] = None
    error: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.error is not None

    def __contains__(self, branch: object) -> bool:
        return branch in self.branches

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self.branches))

    def __len__(self) -> int:
        return len(self.branches)
