"""Git-related services for git-baretree."""

from .executor import GitExecutor
from .worktrees import WorktreeService, parse_worktree_list
from .repository import RepositoryService, is_store_dir, store_path_for

__all__ = [
    "GitExecutor",
    "WorktreeService",
    "parse_worktree_list",
    "RepositoryService",
    "is_store_dir",
    "store_path_for",
]
