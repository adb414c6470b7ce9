"""Encoders and decoders for git's plain-text worktree pointer files.

Each file holds exactly one field on one line:

    <worktree>/.git                gitdir: <admin area path>
    <admin area>/commondir         <relative path to the store>
    <admin area>/gitdir            <absolute path of <worktree>/.git>
    <admin area>/HEAD              ref: refs/heads/<branch>  |  <commit>
"""

import os
import re
from typing import Optional, Tuple

from git_baretree.constants import (
    BRANCH_REF_PREFIX,
    GIT_LINK_FILE,
    GITDIR_PREFIX,
    HEAD_REF_PREFIX,
)

_ESCAPES = {"%": "%25", "/": "%2F"}
_UNESCAPES = {"%25": "%", "%2F": "/"}
_ESCAPE_TOKEN = re.compile(r"%25|%2F")


def escape_worktree_id(name: str) -> str:
    """Flatten a branch name into an administrative area directory name.

    `%` is escaped before `/` so that names already containing `%2F` stay
    distinguishable from names containing `/`.
    """
    escaped = name.replace("%", _ESCAPES["%"])
    return escaped.replace("/", _ESCAPES["/"])


def unescape_worktree_id(escaped: str) -> str:
    """Inverse of escape_worktree_id."""
    return _ESCAPE_TOKEN.sub(lambda m: _UNESCAPES[m.group(0)], escaped)


def encode_gitlink(admin_path: str) -> str:
    return f"{GITDIR_PREFIX} {admin_path}\n"


def decode_gitlink(content: str, base_dir: Optional[str] = None) -> str:
    """Return the path a `.git` link file points at.

    Relative targets are resolved against base_dir when given.

    Raises:
        ValueError: If the content is not a gitdir pointer
    """
    data = content.strip()
    if not data.startswith(GITDIR_PREFIX):
        raise ValueError(".git file does not start with 'gitdir:'")
    target = data[len(GITDIR_PREFIX):].strip()
    if not target:
        raise ValueError(".git file has empty gitdir target")
    if base_dir is not None and not os.path.isabs(target):
        target = os.path.normpath(os.path.join(base_dir, target))
    return target


def encode_commondir(relative_store_path: str) -> str:
    return f"{relative_store_path}\n"


def decode_commondir(content: str) -> str:
    return content.strip()


def encode_gitdir(worktree_path: str) -> str:
    return f"{os.path.join(worktree_path, GIT_LINK_FILE)}\n"


def decode_gitdir(content: str, admin_path: Optional[str] = None) -> str:
    """Return the worktree directory recorded in an area's `gitdir` file."""
    link_path = content.strip()
    if admin_path is not None and not os.path.isabs(link_path):
        link_path = os.path.normpath(os.path.join(admin_path, link_path))
    if os.path.basename(link_path) == GIT_LINK_FILE:
        return os.path.dirname(link_path)
    return link_path


def encode_head(branch: Optional[str] = None, commit: Optional[str] = None) -> str:
    """Encode a symbolic ref to a branch, or a detached commit."""
    if branch:
        return f"{HEAD_REF_PREFIX} {BRANCH_REF_PREFIX}{branch}\n"
    if commit:
        return f"{commit}\n"
    raise ValueError("HEAD needs either a branch or a commit")


def decode_head(content: str) -> Tuple[Optional[str], Optional[str]]:
    """Return (branch, commit); exactly one of them is set."""
    data = content.strip()
    if data.startswith(HEAD_REF_PREFIX):
        ref = data[len(HEAD_REF_PREFIX):].strip()
        if ref.startswith(BRANCH_REF_PREFIX):
            ref = ref[len(BRANCH_REF_PREFIX):]
        return ref, None
    if not data:
        raise ValueError("HEAD file is empty")
    return None, data


def read_text(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def write_text(path: str, content: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)
