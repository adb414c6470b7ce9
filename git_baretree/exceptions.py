"""Custom exceptions for git-baretree"""

from typing import List, Optional, Tuple


class BaretreeError(Exception):
    """Base exception for all git-baretree errors."""
    pass


class GitOperationError(BaretreeError):
    """Exception raised for errors in Git operations."""

    def __init__(self, operation: str, message: Optional[str] = None, status: Optional[int] = None):
        self.operation = operation
        self.message = message
        self.status = status

        error_msg = f"Git operation '{operation}' failed"
        if status is not None:
            error_msg += f" (exit {status})"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class MigrationValidationError(BaretreeError):
    """Exception raised when a migration is rejected before any mutation."""
    pass


class LayoutConflictError(MigrationValidationError):
    """Exception raised when the target worktree layout cannot be created."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"Layout conflict at {path}: {message}")


class TransplantError(BaretreeError):
    """Exception raised when moving or copying a tree fails."""

    def __init__(self, operation: str, path: str, message: Optional[str] = None):
        self.operation = operation
        self.path = path
        self.message = message

        error_msg = f"Failed to {operation} {path}"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class LinkSynthesisError(BaretreeError):
    """Exception raised when worktree link files cannot be written."""

    def __init__(self, worktree_path: str, message: str):
        self.worktree_path = worktree_path
        super().__init__(f"Failed to link worktree {worktree_path}: {message}")


class RemoteURLError(BaretreeError):
    """Exception raised when a remote URL or repository path cannot be parsed."""
    pass


class MigrationError(BaretreeError):
    """Exception raised when a migration stage fails after mutation started.

    Carries the stage that failed, the forward error and the outcome of the
    rollback attempt.
    """

    def __init__(
        self,
        stage: str,
        cause: BaseException,
        rollback_errors: Optional[List[Tuple[str, BaseException]]] = None,
        rollback_attempted: bool = True,
    ):
        self.stage = stage
        self.cause = cause
        self.rollback_errors = rollback_errors or []
        self.rollback_attempted = rollback_attempted

        error_msg = f"Migration failed during {stage}: {cause}"
        if not rollback_attempted:
            error_msg += "\n  Rollback: not attempted"
        elif self.rollback_errors:
            error_msg += "\n  Rollback failed:"
            for description, error in self.rollback_errors:
                error_msg += f"\n    - {description}: {error}"
        else:
            error_msg += "\n  Rollback: completed, repository restored"

        super().__init__(error_msg)

    @property
    def rolled_back(self) -> bool:
        return self.rollback_attempted and not self.rollback_errors
