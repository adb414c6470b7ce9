"""Writes the files that bind a worktree directory to the shared store."""

import os
from dataclasses import dataclass
from typing import Optional

from git_baretree.constants import (
    COMMONDIR_FILE,
    GIT_LINK_FILE,
    GITDIR_FILE,
    HEAD_FILE,
    INDEX_FILE,
    WORKTREES_DIR,
)
from git_baretree.exceptions import LinkSynthesisError
from git_baretree.services.git.admin_files import (
    encode_commondir,
    encode_gitdir,
    encode_gitlink,
    encode_head,
    escape_worktree_id,
    read_text,
    write_text,
)
from git_baretree.logging_config import get_logger

logger = get_logger(__name__)


def derive_admin_id(branch: str, worktree_path: Optional[str] = None, detached: bool = False) -> str:
    """Administrative area id for a worktree.

    Detached worktrees have no branch to name them, so the basename of their
    directory is used instead. Branch names are escaped so the id is a single
    path component.
    """
    if detached or not branch:
        if not worktree_path:
            raise ValueError("detached worktree needs a path to derive its id")
        return escape_worktree_id(os.path.basename(os.path.normpath(worktree_path)))
    return escape_worktree_id(branch)


@dataclass(frozen=True)
class LinkFiles:
    """Contents of the four link files for one worktree."""
    admin_id: str
    admin_path: str
    gitlink: str  # <worktree>/.git
    commondir: str
    gitdir: str
    head: str


@dataclass
class WorktreeLink:
    """A worktree that has been bound to the store."""
    worktree_path: str
    admin_path: str
    branch: Optional[str]
    detached: bool = False


def render_link_files(
    worktree_path: str,
    store_path: str,
    branch: Optional[str] = None,
    admin_id: Optional[str] = None,
    commit: Optional[str] = None,
) -> LinkFiles:
    """Compute link file contents without touching the filesystem.

    Equal inputs always give byte-identical output.
    """
    worktree_path = os.path.abspath(worktree_path)
    store_path = os.path.abspath(store_path)
    if admin_id is None:
        admin_id = derive_admin_id(branch or "", worktree_path, detached=not branch)
    admin_path = os.path.join(store_path, WORKTREES_DIR, admin_id)

    return LinkFiles(
        admin_id=admin_id,
        admin_path=admin_path,
        gitlink=encode_gitlink(admin_path),
        commondir=encode_commondir(os.path.relpath(store_path, admin_path)),
        gitdir=encode_gitdir(worktree_path),
        head=encode_head(branch=branch, commit=commit),
    )


class LinkSynthesizer:
    """Creates administrative areas and writes link files."""

    def synthesize(
        self,
        worktree_path: str,
        store_path: str,
        branch: Optional[str],
        detached: bool = False,
        admin_id: Optional[str] = None,
        adopt_index: bool = False,
        commit: Optional[str] = None,
    ) -> WorktreeLink:
        """Bind worktree_path to store_path.

        Args:
            worktree_path: Worktree directory (must exist)
            store_path: Shared store directory
            branch: Branch checked out in the worktree (ignored when detached)
            detached: Keep the area's existing HEAD verbatim, or write commit
            admin_id: Area id; derived from branch or path when omitted
            adopt_index: Move the store's top-level index into the area
            commit: Commit for a detached HEAD when the area has none yet

        Raises:
            LinkSynthesisError: If any file cannot be written
        """
        worktree_path = os.path.abspath(worktree_path)
        if admin_id is None:
            admin_id = derive_admin_id(branch or "", worktree_path, detached)

        if not os.path.isdir(worktree_path):
            raise LinkSynthesisError(worktree_path, "worktree directory does not exist")

        admin_path = os.path.join(os.path.abspath(store_path), WORKTREES_DIR, admin_id)
        head_file = os.path.join(admin_path, HEAD_FILE)

        try:
            if detached:
                if os.path.isfile(head_file):
                    existing_head = read_text(head_file)
                    files = render_link_files(
                        worktree_path, store_path, admin_id=admin_id, commit=existing_head.strip()
                    )
                    head = existing_head
                else:
                    if not commit:
                        raise LinkSynthesisError(worktree_path, "detached worktree has no HEAD to preserve")
                    files = render_link_files(worktree_path, store_path, admin_id=admin_id, commit=commit)
                    head = files.head
            else:
                if not branch:
                    raise LinkSynthesisError(worktree_path, "no branch given for an attached worktree")
                files = render_link_files(worktree_path, store_path, branch=branch, admin_id=admin_id)
                head = files.head

            os.makedirs(admin_path, exist_ok=True)
            write_text(os.path.join(worktree_path, GIT_LINK_FILE), files.gitlink)
            write_text(os.path.join(admin_path, COMMONDIR_FILE), files.commondir)
            write_text(os.path.join(admin_path, GITDIR_FILE), files.gitdir)
            write_text(head_file, head)

            if adopt_index:
                store_index = os.path.join(store_path, INDEX_FILE)
                if os.path.isfile(store_index):
                    os.replace(store_index, os.path.join(admin_path, INDEX_FILE))
                    logger.debug(f"Moved index into {admin_path}")
        except OSError as e:
            raise LinkSynthesisError(worktree_path, e.strerror or str(e)) from e
        except ValueError as e:
            raise LinkSynthesisError(worktree_path, str(e)) from e

        logger.info(f"Linked {worktree_path} to {admin_path}")
        return WorktreeLink(
            worktree_path=worktree_path,
            admin_path=admin_path,
            branch=None if detached else branch,
            detached=detached,
        )

    def repoint(self, worktree_path: str, admin_path: str) -> None:
        """Rewrite only the two path pointers after a worktree and its area moved together."""
        try:
            write_text(os.path.join(worktree_path, GIT_LINK_FILE), encode_gitlink(admin_path))
            write_text(os.path.join(admin_path, GITDIR_FILE), encode_gitdir(worktree_path))
        except OSError as e:
            raise LinkSynthesisError(worktree_path, e.strerror or str(e)) from e
