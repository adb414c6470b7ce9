"""Repository-level git queries used by the migration engine."""

import os
from typing import List, Optional

from git_baretree.constants import (
    BARE_DIR,
    FALLBACK_DEFAULT_BRANCHES,
    GIT_CONFIG_KEY_DEFAULT_BRANCH,
    HEAD_FILE,
)
from git_baretree.exceptions import GitOperationError
from git_baretree.services.git.executor import GitExecutor
from git_baretree.logging_config import get_logger

logger = get_logger(__name__)


def store_path_for(root: str) -> str:
    """Path of the shared store under a repository root."""
    return os.path.join(root, BARE_DIR)


def is_store_dir(path: str) -> bool:
    """Check if path looks like a git directory (has a HEAD file)."""
    return os.path.isdir(path) and os.path.isfile(os.path.join(path, HEAD_FILE))


class RepositoryService:
    """Queries and config updates against a repository or its store."""

    def __init__(self, path: str, executor: Optional[GitExecutor] = None):
        """Initialize the service.

        Args:
            path: Working directory for git commands (repository root or store)
            executor: Optional executor to use instead of a fresh one
        """
        self.path = path
        self.executor = executor or GitExecutor(path)

    def config_get(self, key: str, config_file: Optional[str] = None) -> Optional[str]:
        """Read a single config value, None if unset."""
        args = ["config"]
        if config_file:
            args += ["--file", config_file]
        value = self.executor.try_execute(*args, "--get", key)
        return value or None

    def config_set(self, key: str, value: str, config_file: Optional[str] = None) -> None:
        args = ["config"]
        if config_file:
            args += ["--file", config_file]
        self.executor.execute(*args, key, value)

    def config_unset(self, key: str, config_file: Optional[str] = None) -> None:
        args = ["config"]
        if config_file:
            args += ["--file", config_file]
        self.executor.execute(*args, "--unset", key)

    def is_bare_store(self, store: str) -> bool:
        """Check core.bare in the store's own config file."""
        value = self.executor.try_execute(
            "config", "--file", os.path.join(store, "config"), "--bool", "--get", "core.bare"
        )
        return value == "true"

    def set_bare(self, store: str, bare: bool) -> None:
        """Flip core.bare in the store's config file."""
        self.executor.execute(
            "config", "--file", os.path.join(store, "config"),
            "--bool", "core.bare", "true" if bare else "false",
        )
        logger.info(f"Set core.bare={str(bare).lower()} in {store}")

    def is_split_layout(self, root: str) -> bool:
        """A split repository has a bare store marked with a default branch."""
        store = store_path_for(root)
        if not is_store_dir(store):
            return False
        if not self.is_bare_store(store):
            return False
        return self.config_get(
            GIT_CONFIG_KEY_DEFAULT_BRANCH, os.path.join(store, "config")
        ) is not None

    def current_branch(self) -> Optional[str]:
        """Branch HEAD points to, or None when HEAD is detached."""
        output = self.executor.try_execute("symbolic-ref", "--short", "HEAD")
        return output or None

    def local_branch_exists(self, branch: str) -> bool:
        return self.executor.try_execute(
            "show-ref", "--verify", "--quiet", f"refs/heads/{branch}"
        ) is not None

    def detect_default_branch(self) -> Optional[str]:
        """Detect the default branch from origin/HEAD, then common names."""
        output = self.executor.try_execute("symbolic-ref", "refs/remotes/origin/HEAD")
        if output:
            return output[len("refs/remotes/origin/"):] if output.startswith("refs/remotes/origin/") else output

        for branch in FALLBACK_DEFAULT_BRANCHES:
            if self.local_branch_exists(branch):
                return branch
        return None

    def set_default_branch(self, store: str, branch: str) -> None:
        """Record the default branch; this also marks the layout as split."""
        self.config_set(GIT_CONFIG_KEY_DEFAULT_BRANCH, branch, os.path.join(store, "config"))

    def default_branch(self, store: str) -> Optional[str]:
        return self.config_get(GIT_CONFIG_KEY_DEFAULT_BRANCH, os.path.join(store, "config"))

    def unset_default_branch(self, store: str) -> None:
        self.config_unset(GIT_CONFIG_KEY_DEFAULT_BRANCH, os.path.join(store, "config"))

    def list_remotes(self) -> List[str]:
        output = self.executor.execute("remote")
        if not output:
            return []
        return [line.strip() for line in output.split("\n") if line.strip()]

    def remote_url(self) -> Optional[str]:
        """URL of origin, or of the first configured remote."""
        url = self.config_get("remote.origin.url")
        if url:
            return url.strip()
        try:
            remotes = self.list_remotes()
        except GitOperationError as e:
            logger.debug(f"Could not list remotes: {e}")
            return None
        if not remotes:
            return None
        url = self.config_get(f"remote.{remotes[0]}.url")
        return url.strip() if url else None
