"""Git command execution for git-baretree."""

from typing import Optional

import git

from git_baretree.exceptions import GitOperationError
from git_baretree.logging_config import get_logger

logger = get_logger(__name__)


class GitExecutor:
    """Runs git porcelain/plumbing commands in a working directory.

    This is the only place git is invoked; everything else goes through
    `execute` so tests can substitute a mock.
    """

    def __init__(self, workdir: Optional[str] = None):
        """Initialize the executor.

        Args:
            workdir: Directory to run git in (None = current directory)
        """
        self.workdir = workdir

    def _get_git(self) -> git.Git:
        """Get a git command wrapper bound to the working directory."""
        return git.Git(self.workdir)

    def execute(self, *args: str) -> str:
        """Run `git <args>` and return its stripped stdout.

        Raises:
            GitOperationError: If git exits non-zero or cannot be started
        """
        command = ["git", *args]
        logger.debug(f"Running {' '.join(command)} in {self.workdir or '.'}")
        try:
            return self._get_git().execute(command)
        except git.exc.GitCommandError as e:
            # Extract detailed error information from GitCommandError
            stderr = (e.stderr if hasattr(e, "stderr") else str(e)).strip()
            status = e.status if hasattr(e, "status") else None
            if isinstance(status, str):
                status = None
            raise GitOperationError(" ".join(args[:2]), stderr or None, status) from e
        except (git.exc.GitCommandNotFound, OSError) as e:
            raise GitOperationError(" ".join(args[:2]), str(e)) from e

    def try_execute(self, *args: str) -> Optional[str]:
        """Run `git <args>`, returning None instead of raising on failure."""
        try:
            return self.execute(*args)
        except GitOperationError as e:
            logger.debug(f"{e}")
            return None

    def clone(self, *args: str) -> None:
        """Run `git clone <args>`."""
        self.execute("clone", *args)
        logger.info(f"Cloned {' '.join(args)}")
