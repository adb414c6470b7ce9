"""Data models for git-baretree."""

from .worktree import WorktreeInfo
from .layout import EntryMove, LayoutPlan, Relationship
from .report import (
    MigrationMode,
    MigrationReport,
    MigrationState,
    RelocationResult,
    SubmoduleReport,
)

__all__ = [
    "WorktreeInfo",
    "EntryMove",
    "LayoutPlan",
    "Relationship",
    "MigrationMode",
    "MigrationReport",
    "MigrationState",
    "RelocationResult",
    "SubmoduleReport",
]
