"""Worktree operations service for git-baretree."""

from typing import Any, Dict, List, Optional

from git_baretree.constants import BRANCH_REF_PREFIX
from git_baretree.exceptions import GitOperationError
from git_baretree.models.worktree import WorktreeInfo
from git_baretree.services.git.executor import GitExecutor
from git_baretree.logging_config import get_logger

logger = get_logger(__name__)


def _to_worktree_info(entry: Dict[str, Any], is_main: bool) -> WorktreeInfo:
    return WorktreeInfo(
        path=entry["path"],
        head=entry.get("HEAD", ""),
        branch_name=entry.get("branch", ""),
        is_main=is_main,
        is_bare=entry.get("bare", False),
        is_detached=entry.get("detached", False),
    )


def parse_worktree_list(output: str) -> List[WorktreeInfo]:
    """Parse `git worktree list --porcelain` output.

    Format:
        worktree /path/to/worktree
        HEAD commit_sha
        branch refs/heads/branch-name   (or "detached", or "bare")
        (blank line between worktrees)

    The first record of an unfiltered listing is the main worktree.
    """
    worktree_list: List[WorktreeInfo] = []
    current_worktree: Dict[str, Any] = {}

    for line in output.split("\n"):
        line = line.strip()

        if not line:
            # Empty line marks end of worktree entry
            if current_worktree.get("path"):
                worktree_list.append(_to_worktree_info(current_worktree, not worktree_list))
            current_worktree = {}
            continue

        if line.startswith("worktree "):
            current_worktree["path"] = line.split(" ", 1)[1]
        elif line.startswith("HEAD "):
            current_worktree["HEAD"] = line.split(" ", 1)[1]
        elif line.startswith("branch "):
            branch_ref = line.split(" ", 1)[1]
            if branch_ref.startswith(BRANCH_REF_PREFIX):
                current_worktree["branch"] = branch_ref[len(BRANCH_REF_PREFIX):]
            else:
                current_worktree["branch"] = branch_ref
        elif line == "detached":
            current_worktree["detached"] = True
        elif line == "bare":
            current_worktree["bare"] = True

    # Handle last entry if no trailing blank line
    if current_worktree.get("path"):
        worktree_list.append(_to_worktree_info(current_worktree, not worktree_list))

    return worktree_list


class WorktreeService:
    """Service for listing, adding and repairing git worktrees."""

    def __init__(self, executor: GitExecutor):
        """Initialize the worktree service.

        Args:
            executor: Git executor bound to the repository (or its store)
        """
        self.executor = executor

    def list_worktrees(self) -> List[WorktreeInfo]:
        """Get information about all worktrees known to the repository.

        Raises:
            GitOperationError: If the listing fails
        """
        output = self.executor.execute("worktree", "list", "--porcelain")
        worktree_list = parse_worktree_list(output)
        logger.debug(f"Found {len(worktree_list)} worktrees")
        for wt in worktree_list:
            logger.debug(f"  {wt}")
        return worktree_list

    def add_worktree(self, path: str, branch: str) -> None:
        """Check out an existing branch into a new worktree at path."""
        self.executor.execute("worktree", "add", path, branch)
        logger.info(f"Added worktree for {branch} at {path}")

    def repair_worktree(self, path: str) -> tuple[bool, Optional[str]]:
        """Ask git to re-derive administrative linkage for a moved worktree.

        Args:
            path: New location of the worktree

        Returns:
            Tuple of (success, error_message). error_message is None on success.
        """
        try:
            self.executor.execute("worktree", "repair", path)
            logger.info(f"Repaired worktree at {path}")
            return True, None
        except GitOperationError as e:
            error_msg = f"git worktree repair failed: {e.message or e}"
            logger.error(f"Failed to repair worktree at {path}: {error_msg}")
            return False, error_msg
