"""Migration state and result models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


class MigrationState(Enum):
    """Stages of a migration run."""
    VALIDATING = "validating"
    TRANSPLANTING = "transplanting"
    SYNTHESIZING_LINKS = "synthesizing-links"
    RELOCATING_EXTERNAL_WORKTREES = "relocating-external-worktrees"
    REWRITING_SUBMODULES = "rewriting-submodules"
    DONE = "done"
    ERROR = "error"


class MigrationMode(Enum):
    """Entry procedures of the migration orchestrator."""
    IN_PLACE = "in-place"
    DESTINATION = "destination"
    MANAGED = "managed"


@dataclass
class SubmoduleReport:
    """Outcome of rewriting submodule links in one worktree."""
    rewritten: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class RelocationResult:
    """Outcome of relocating external worktrees."""
    relocated: List[str] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)  # (branch, reason)
    warnings: List[str] = field(default_factory=list)


@dataclass
class MigrationReport:
    """Everything a migration created, plus what went wrong after the point of no return."""
    mode: MigrationMode
    source: str
    repository_root: str = ""
    store_path: str = ""
    current_branch: str = ""
    primary_worktree: Optional[str] = None
    default_branch: Optional[str] = None
    default_branch_worktree: Optional[str] = None
    relocated_worktrees: List[str] = field(default_factory=list)
    failed_worktrees: List[Tuple[str, str]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    source_removed: bool = False
    relocated_existing: bool = False  # Source was already split and only moved
    state: MigrationState = MigrationState.VALIDATING

    def add_relocation(self, result: RelocationResult) -> None:
        self.relocated_worktrees.extend(result.relocated)
        self.failed_worktrees.extend(result.failed)
        self.warnings.extend(result.warnings)
