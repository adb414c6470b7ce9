"""Rewrites submodule gitlinks after the worktree containing them moved."""

import os
from typing import Optional

from git_baretree.constants import BARE_DIR, GIT_LINK_FILE, GITMODULES_FILE, MODULES_DIR
from git_baretree.exceptions import GitOperationError
from git_baretree.models.report import SubmoduleReport
from git_baretree.services.git.admin_files import decode_gitlink, encode_gitlink, read_text, write_text
from git_baretree.services.git.executor import GitExecutor
from git_baretree.logging_config import get_logger

logger = get_logger(__name__)

_MODULES_MARKER = f"{BARE_DIR}/{MODULES_DIR}/"


class SubmoduleRewriter:
    """Points submodules of a worktree back at <store>/modules/<id>."""

    def __init__(self, store_path: str, executor: Optional[GitExecutor] = None):
        self.store_path = os.path.abspath(store_path)
        self.executor = executor or GitExecutor(self.store_path)

    def rewrite(self, worktree_path: str) -> SubmoduleReport:
        """Fix every submodule gitlink under worktree_path.

        Problems are collected in the report as warnings; nothing is raised.
        """
        report = SubmoduleReport()
        worktree_path = os.path.abspath(worktree_path)

        if not os.path.isfile(os.path.join(worktree_path, GITMODULES_FILE)):
            return report

        for dirpath, dirnames, filenames in os.walk(worktree_path):
            if BARE_DIR in dirnames:
                dirnames.remove(BARE_DIR)
            if dirpath == worktree_path or GIT_LINK_FILE not in filenames:
                continue
            self._rewrite_one(worktree_path, dirpath, report)

        if report.rewritten:
            logger.info(f"Rewrote {len(report.rewritten)} submodule link(s) in {worktree_path}")
        return report

    def _rewrite_one(self, worktree_path: str, submodule_path: str, report: SubmoduleReport) -> None:
        link_file = os.path.join(submodule_path, GIT_LINK_FILE)
        try:
            target = decode_gitlink(read_text(link_file))
        except (OSError, ValueError) as e:
            report.warnings.append(f"Could not read {link_file}: {e}")
            return

        # The old relative target is meaningless after a move; only its tail is kept
        normalized = target.replace(os.sep, "/")
        marker = normalized.find(_MODULES_MARKER)
        if marker == -1:
            logger.debug(f"Skipping {link_file}: not a submodule of this store ({target})")
            return
        module_id = normalized[marker + len(_MODULES_MARKER):].rstrip("/")
        module_dir = os.path.join(self.store_path, MODULES_DIR, *module_id.split("/"))

        if not os.path.isdir(module_dir):
            report.warnings.append(f"Submodule store {module_dir} not found for {submodule_path}")
            return

        try:
            write_text(link_file, encode_gitlink(os.path.relpath(module_dir, submodule_path)))
        except OSError as e:
            report.warnings.append(f"Could not rewrite {link_file}: {e}")
            return

        try:
            self.executor.execute(
                "config", "--file", os.path.join(module_dir, "config"),
                "core.worktree", os.path.relpath(submodule_path, module_dir),
            )
        except GitOperationError as e:
            report.warnings.append(f"Could not update core.worktree for {module_id}: {e}")

        relative = os.path.relpath(submodule_path, worktree_path)
        report.rewritten.append(relative)
        logger.debug(f"Submodule {relative} -> {module_dir}")
