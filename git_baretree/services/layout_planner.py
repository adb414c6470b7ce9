"""Plans where a worktree lands under a repository root."""

import os
from typing import Iterable, List, Optional

from git_baretree.constants import BARE_DIR
from git_baretree.exceptions import LayoutConflictError
from git_baretree.models.layout import EntryMove, LayoutPlan, Relationship
from git_baretree.logging_config import get_logger

logger = get_logger(__name__)


def is_subpath(parent: str, child: str) -> bool:
    """Check if child is parent itself or lies beneath it."""
    parent = os.path.abspath(parent)
    child = os.path.abspath(child)
    try:
        return os.path.commonpath([parent, child]) == parent
    except ValueError:
        # Different drives
        return False


def is_strict_ancestor(ancestor: str, path: str) -> bool:
    return is_subpath(ancestor, path) and os.path.abspath(ancestor) != os.path.abspath(path)


def paths_overlap(first: str, second: str) -> bool:
    return is_subpath(first, second) or is_subpath(second, first)


def validate_worktree_name(name: str, store_dir: str = BARE_DIR) -> List[str]:
    """Split a branch name into path components, rejecting unusable names.

    Raises:
        LayoutConflictError: If the name cannot be used as a directory path
    """
    if not name or not name.strip():
        raise LayoutConflictError(name, "empty worktree name")
    if os.path.isabs(name):
        raise LayoutConflictError(name, "worktree name must be relative")

    parts = name.split("/")
    for part in parts:
        if part in ("", ".", ".."):
            raise LayoutConflictError(name, f"invalid path component '{part}'")
    if parts[0] == store_dir:
        raise LayoutConflictError(name, f"worktree name collides with the store directory '{store_dir}'")
    return parts


def target_path(root: str, name: str, store_dir: str = BARE_DIR) -> str:
    """Absolute worktree path for a branch name under root."""
    parts = validate_worktree_name(name, store_dir)
    return os.path.join(os.path.abspath(root), *parts)


def plan_layout(
    root: str,
    branch: str,
    store_dir: str = BARE_DIR,
    entries: Optional[Iterable[str]] = None,
    content_dir: Optional[str] = None,
) -> LayoutPlan:
    """Plan moving the content of a repository into root/<branch>.

    Entries are listed before any intermediate directory is created, so a
    directory made for a nested branch name (e.g. "feat" for "feat/login") is
    never mistaken for content.

    Args:
        root: Repository root that will hold the store and the worktree
        branch: Branch (worktree) name, may contain "/"
        store_dir: Store directory name under root, excluded from the entries
        entries: Entry names to plan; defaults to listing content_dir
        content_dir: Where the content currently lives; defaults to root

    Raises:
        LayoutConflictError: If the target path exists or the name is unusable
    """
    root = os.path.abspath(root)
    content_dir = os.path.abspath(content_dir or root)
    worktree_path = target_path(root, branch, store_dir)

    if os.path.lexists(worktree_path):
        raise LayoutConflictError(worktree_path, "target path already exists")

    if entries is None:
        entries = sorted(os.listdir(content_dir))

    plan = LayoutPlan(
        root=root,
        branch=branch,
        store_path=os.path.join(root, store_dir),
        worktree_path=worktree_path,
    )

    for name in entries:
        if name == store_dir:
            continue
        source = os.path.join(content_dir, name)
        destination = os.path.join(worktree_path, name)
        if not os.path.islink(source) and os.path.isdir(source) and is_strict_ancestor(source, worktree_path):
            relationship = Relationship.NESTED
        else:
            relationship = Relationship.DISJOINT
        plan.entries.append(EntryMove(name, source, destination, relationship))

    logger.debug(
        f"Planned {len(plan.entries)} entries into {worktree_path} "
        f"({sum(1 for e in plan.entries if e.relationship == Relationship.NESTED)} nested)"
    )
    return plan
