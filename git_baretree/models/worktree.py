"""Worktree data models."""

import os
from dataclasses import dataclass

from git_baretree.constants import DETACHED_MARKER


@dataclass
class WorktreeInfo:
    """Information about a git worktree as reported by `git worktree list`."""

    path: str
    head: str = ""
    branch_name: str = ""  # Empty when detached or bare
    is_main: bool = False  # First entry of an unfiltered listing
    is_bare: bool = False
    is_detached: bool = False

    @property
    def branch(self) -> str:
        """Branch name, or the detached marker for detached worktrees."""
        if self.is_detached or not self.branch_name:
            return DETACHED_MARKER
        return self.branch_name

    @property
    def is_orphaned(self) -> bool:
        """Directory missing?"""
        return not os.path.exists(self.path)

    def __str__(self) -> str:
        """String representation of worktree."""
        if self.is_bare:
            return f"(bare) @ {self.path}"
        main_marker = " (main)" if self.is_main else ""
        return f"{self.branch} @ {self.path}{main_marker}"
