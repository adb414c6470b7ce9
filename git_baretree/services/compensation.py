"""Stack of compensating actions undone when a migration step fails."""

from typing import Callable, List, Tuple

from git_baretree.logging_config import get_logger

logger = get_logger(__name__)


class CompensationStack:
    """Records how to undo each mutation, in the order they happened.

    Used as a context manager: leaving the block with any exception
    (KeyboardInterrupt included) unwinds the stack and stores what failed to
    undo in `rollback_errors`. The exception itself keeps propagating.
    """

    def __init__(self):
        self._actions: List[Tuple[str, Callable[[], None]]] = []
        self.rollback_errors: List[Tuple[str, BaseException]] = []
        self.unwound = False

    def __len__(self) -> int:
        return len(self._actions)

    def __enter__(self) -> "CompensationStack":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None and self._actions:
            logger.warning(f"Rolling back {len(self._actions)} step(s) after: {exc!r}")
            self.rollback_errors = self.unwind()
        return False

    def push(self, description: str, action: Callable[[], None]) -> None:
        self._actions.append((description, action))

    def unwind(self) -> List[Tuple[str, BaseException]]:
        """Run every compensation newest first.

        Returns:
            (description, exception) for each compensation that failed
        """
        errors = []
        while self._actions:
            description, action = self._actions.pop()
            logger.debug(f"Undo: {description}")
            try:
                action()
            except Exception as e:
                logger.error(f"Rollback step failed ({description}): {e}")
                errors.append((description, e))
        self.unwound = True
        return errors

    def commit(self) -> None:
        """Forget all compensations; the mutations are now permanent."""
        logger.debug(f"Committing {len(self._actions)} step(s)")
        self._actions.clear()
