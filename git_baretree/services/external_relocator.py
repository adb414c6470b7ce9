"""Brings worktrees that live outside the repository root under it."""

import os
import shutil
from typing import Iterable, List, Optional

from git_baretree.constants import GIT_LINK_FILE, GITDIR_FILE, WORKTREES_DIR
from git_baretree.exceptions import (
    BaretreeError,
    GitOperationError,
    LayoutConflictError,
    LinkSynthesisError,
    MigrationError,
    TransplantError,
)
from git_baretree.models.report import MigrationState, RelocationResult
from git_baretree.models.worktree import WorktreeInfo
from git_baretree.services.compensation import CompensationStack
from git_baretree.services.git.admin_files import decode_gitlink, read_text, write_text
from git_baretree.services.git.executor import GitExecutor
from git_baretree.services.git.worktrees import WorktreeService
from git_baretree.services.layout_planner import is_subpath, target_path
from git_baretree.services.link_synthesizer import LinkSynthesizer, derive_admin_id
from git_baretree.services.submodule_rewriter import SubmoduleRewriter
from git_baretree.services.transplant import TransplantEngine, TransplantMode
from git_baretree.logging_config import get_logger

logger = get_logger(__name__)


class AdminAreaBusyError(LayoutConflictError):
    """The admin area a worktree should move to is taken."""
    pass


def worktree_name(worktree: WorktreeInfo) -> str:
    """Directory name a worktree gets under the root."""
    if worktree.is_detached or not worktree.branch_name:
        return os.path.basename(os.path.normpath(worktree.path))
    return worktree.branch_name


class ExternalWorktreeRelocator:
    """Moves (in place) or copies (to a destination) external worktrees to root/<name>."""

    def __init__(
        self,
        root: str,
        store_path: str,
        worktree_service: Optional[WorktreeService] = None,
        synthesizer: Optional[LinkSynthesizer] = None,
        rewriter: Optional[SubmoduleRewriter] = None,
        engine: Optional[TransplantEngine] = None,
    ):
        self.root = os.path.abspath(root)
        self.store_path = os.path.abspath(store_path)
        self.worktree_service = worktree_service or WorktreeService(GitExecutor(self.store_path))
        self.synthesizer = synthesizer or LinkSynthesizer()
        self.rewriter = rewriter or SubmoduleRewriter(self.store_path)
        self.engine = engine or TransplantEngine()

    def relocate_all(self, worktrees: Iterable[WorktreeInfo], mode: TransplantMode) -> RelocationResult:
        """Relocate every non-main, non-bare worktree; one failure does not stop the rest.

        A worktree whose wanted admin area is still held by another worktree
        of the batch is retried once the others have been renamed.
        """
        result = RelocationResult()
        pending = [wt for wt in worktrees if not (wt.is_bare or wt.is_main)]

        while pending:
            deferred = []
            for worktree in pending:
                name = worktree_name(worktree)
                try:
                    if mode == TransplantMode.MOVE:
                        target = self.move_worktree(worktree)
                    else:
                        target = self.copy_worktree(worktree)
                except AdminAreaBusyError as e:
                    logger.debug(f"Deferring {name}: {e}")
                    deferred.append((worktree, e))
                    continue
                except BaretreeError as e:
                    logger.error(f"Could not relocate worktree {name}: {e}")
                    result.failed.append((name, str(e)))
                    continue

                result.relocated.append(target)
                submodules = self.rewriter.rewrite(target)
                result.warnings.extend(submodules.warnings)

            if len(deferred) == len(pending):
                for worktree, error in deferred:
                    logger.error(f"Could not relocate worktree {worktree_name(worktree)}: {error}")
                    result.failed.append((worktree_name(worktree), str(error)))
                break
            pending = [worktree for worktree, _ in deferred]

        return result

    def _prepare(self, worktree: WorktreeInfo):
        name = worktree_name(worktree)
        target = target_path(self.root, name)
        if os.path.lexists(target):
            raise LayoutConflictError(target, "target path already exists")
        if worktree.is_orphaned:
            raise TransplantError("relocate", worktree.path, "worktree directory is missing")

        link_file = os.path.join(worktree.path, GIT_LINK_FILE)
        try:
            old_admin = decode_gitlink(read_text(link_file), worktree.path)
        except (OSError, ValueError) as e:
            raise LinkSynthesisError(worktree.path, f"cannot read {link_file}: {e}") from e

        admin_id = derive_admin_id(worktree.branch_name, worktree.path, worktree.is_detached)
        return target, old_admin, admin_id

    def _make_parents(self, stack: CompensationStack, target: str) -> None:
        for directory in self.engine.make_dirs(os.path.dirname(target)):
            stack.push(f"remove directory {directory}", lambda d=directory: os.rmdir(d))

    @staticmethod
    def _check_admin_free(current: str, wanted: str) -> None:
        if current != wanted and os.path.lexists(wanted):
            raise AdminAreaBusyError(wanted, "administrative area already exists")

    def _rename_admin(self, stack: CompensationStack, current: str, wanted: str) -> None:
        if current == wanted:
            return
        self._check_admin_free(current, wanted)
        self.engine.move_node(current, wanted)
        stack.push(f"restore admin area {os.path.basename(current)}",
                   lambda: self.engine.move_node(wanted, current))

    def _run(self, stack: CompensationStack, body, worktree: WorktreeInfo) -> str:
        try:
            with stack:
                target = body()
                stack.commit()
                return target
        except OSError as e:
            error = TransplantError("relocate", worktree.path, e.strerror or str(e))
            if stack.rollback_errors:
                raise MigrationError(MigrationState.RELOCATING_EXTERNAL_WORKTREES.value, error,
                                     stack.rollback_errors) from e
            raise error from e
        except BaretreeError as e:
            if stack.rollback_errors:
                raise MigrationError(MigrationState.RELOCATING_EXTERNAL_WORKTREES.value, e,
                                     stack.rollback_errors) from e
            raise

    def move_worktree(self, worktree: WorktreeInfo) -> str:
        """Move a worktree of this store under the root and relink it.

        On failure the directory, the admin area name and the old link file
        contents are put back.
        """
        target, old_admin, admin_id = self._prepare(worktree)
        new_admin = os.path.join(self.store_path, WORKTREES_DIR, admin_id)
        self._check_admin_free(old_admin, new_admin)
        stack = CompensationStack()

        def body() -> str:
            old_link = read_text(os.path.join(worktree.path, GIT_LINK_FILE))
            gitdir_file = os.path.join(old_admin, GITDIR_FILE)
            old_gitdir = read_text(gitdir_file) if os.path.isfile(gitdir_file) else None

            self._make_parents(stack, target)
            self.engine.move_node(worktree.path, target)
            stack.push(f"move {target} back to {worktree.path}",
                       lambda: self.engine.move_node(target, worktree.path))

            self._rename_admin(stack, old_admin, new_admin)

            def restore_links():
                write_text(os.path.join(target, GIT_LINK_FILE), old_link)
                if old_gitdir is not None:
                    write_text(os.path.join(new_admin, GITDIR_FILE), old_gitdir)

            stack.push(f"restore link files of {worktree.path}", restore_links)

            self.synthesizer.synthesize(
                target, self.store_path, worktree.branch_name,
                detached=worktree.is_detached, admin_id=admin_id, commit=worktree.head or None,
            )
            ok, error = self.worktree_service.repair_worktree(target)
            if not ok:
                raise GitOperationError("worktree repair", error)

            logger.info(f"Moved worktree {worktree.path} -> {target}")
            return target

        return self._run(stack, body, worktree)

    def copy_worktree(self, worktree: WorktreeInfo) -> str:
        """Copy a worktree of the source repository under the (new) root.

        The administrative area was copied along with the store; it is
        renamed to the derived id and its link files rewritten.
        """
        target, old_admin, admin_id = self._prepare(worktree)
        copied_admin = os.path.join(self.store_path, WORKTREES_DIR, os.path.basename(old_admin))
        new_admin = os.path.join(self.store_path, WORKTREES_DIR, admin_id)
        self._check_admin_free(copied_admin, new_admin)
        stack = CompensationStack()

        def body() -> str:
            self._make_parents(stack, target)
            stack.push(f"remove {target}",
                       lambda: shutil.rmtree(target) if os.path.isdir(target) else None)
            self.engine.transplant(worktree.path, target, TransplantMode.COPY, exclude=(GIT_LINK_FILE,))

            if os.path.isdir(copied_admin):
                self._rename_admin(stack, copied_admin, new_admin)
            else:
                logger.warning(f"Administrative area {copied_admin} missing, recreating {admin_id}")

            self.synthesizer.synthesize(
                target, self.store_path, worktree.branch_name,
                detached=worktree.is_detached, admin_id=admin_id, commit=worktree.head or None,
            )
            logger.info(f"Copied worktree {worktree.path} -> {target}")
            return target

        return self._run(stack, body, worktree)


def external_worktrees(worktrees: Iterable[WorktreeInfo], root: str) -> List[WorktreeInfo]:
    """Worktrees that are neither main/bare nor inside root."""
    return [
        wt for wt in worktrees
        if not wt.is_main and not wt.is_bare and not is_subpath(root, os.path.realpath(wt.path))
    ]
