"""Move-or-copy of directory trees with symlink fidelity."""

import errno
import os
import shutil
import stat
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from git_baretree.exceptions import TransplantError
from git_baretree.services.layout_planner import is_subpath
from git_baretree.logging_config import get_logger

logger = get_logger(__name__)


class TransplantMode(Enum):
    """How a tree is transplanted."""
    MOVE = "move"
    COPY = "copy"


@dataclass
class JournalEntry:
    """One filesystem mutation performed by the engine."""
    op: str  # "rename", "mkdir", "rmdir" or "copy"
    path: str
    destination: str = ""


class TransplantEngine:
    """Moves or copies trees node by node.

    Node types are regular files, directories and symbolic links. Links are
    detected with lstat before anything else and recreated as links, never
    followed. Every mutation is appended to the journal (when one is given)
    so that undo() can replay the inverse operations.
    """

    def __init__(self, journal: Optional[List[JournalEntry]] = None):
        self.journal = journal

    def _record(self, op: str, path: str, destination: str = "") -> None:
        if self.journal is not None:
            self.journal.append(JournalEntry(op, path, destination))

    def transplant(self, src: str, dst: str, mode: TransplantMode, exclude: Iterable[str] = ()) -> None:
        """Relocate (MOVE) or replicate (COPY) the tree at src to dst.

        Args:
            src: Source directory
            dst: Destination directory; merged into if it already exists
            mode: TransplantMode.MOVE or TransplantMode.COPY
            exclude: Top-level entry names of src to leave out

        Raises:
            TransplantError: On the first failing node; dst may be partially populated
        """
        exclude = set(exclude)
        logger.debug(f"Transplanting {src} -> {dst} ({mode.value}, excluding {sorted(exclude)})")

        if mode == TransplantMode.COPY:
            self.copy_tree(src, dst, exclude)
            return

        if not exclude and not os.path.lexists(dst):
            self.move_node(src, dst)
            return

        created_dst = not os.path.exists(dst)
        if created_dst:
            self.make_dirs(dst, self._mode_of(src))
        for name in sorted(os.listdir(src)):
            if name in exclude:
                continue
            self.move_node(os.path.join(src, name), os.path.join(dst, name), merge=True)
        if not exclude:
            self._remove_empty_dir(src)

    def make_dirs(self, path: str, mode: int = 0o755) -> List[str]:
        """Create path and any missing parents, journaling each created directory.

        Returns:
            The directories that were created, outermost first
        """
        missing = []
        current = os.path.abspath(path)
        while not os.path.exists(current):
            missing.append(current)
            parent = os.path.dirname(current)
            if parent == current:
                break
            current = parent

        created = []
        for directory in reversed(missing):
            try:
                os.mkdir(directory, mode)
            except OSError as e:
                raise TransplantError("create directory", directory, e.strerror or str(e)) from e
            self._record("mkdir", directory)
            created.append(directory)
        return created

    def move_node(self, src: str, dst: str, merge: bool = False) -> None:
        """Rename src to dst, copying then deleting across devices.

        With merge=True an existing destination directory receives the
        contents of a source directory instead of failing.
        """
        if os.path.lexists(dst):
            if merge and self._is_real_dir(src) and self._is_real_dir(dst):
                self.merge_move(src, dst)
                return
            raise TransplantError("move", src, f"destination already exists: {dst}")

        try:
            os.rename(src, dst)
        except OSError as e:
            if e.errno != errno.EXDEV:
                raise TransplantError("move", src, e.strerror or str(e)) from e
            logger.debug(f"Cross-device move of {src}, falling back to copy")
            self.copy_node(src, dst, record=False)
            self._delete_node(src)
        self._record("rename", src, dst)

    def merge_move(self, src: str, dst: str) -> None:
        """Move the contents of directory src into existing directory dst, then drop src."""
        for name in sorted(os.listdir(src)):
            self.move_node(os.path.join(src, name), os.path.join(dst, name), merge=True)
        self._remove_empty_dir(src)

    def move_contents_excluding(self, src: str, dst: str, keep: str) -> None:
        """Move everything under src into dst except the subtree at keep.

        Used when a branch name nests under an existing top-level directory:
        moving "feat" into "feat/login/feat" must leave "feat/login" in place.
        """
        if not os.path.exists(dst):
            self.make_dirs(dst, self._mode_of(src))

        for name in sorted(os.listdir(src)):
            source = os.path.join(src, name)
            destination = os.path.join(dst, name)
            if is_subpath(source, keep):
                if os.path.abspath(source) == os.path.abspath(keep):
                    continue
                if self._is_real_dir(source):
                    self.move_contents_excluding(source, destination, keep)
                    continue
            self.move_node(source, destination, merge=True)

    def copy_tree(self, src: str, dst: str, exclude: Iterable[str] = ()) -> None:
        """Copy the contents of directory src into dst (created or merged)."""
        exclude = set(exclude)
        try:
            src_mode = self._mode_of(src)
            if not os.path.exists(dst):
                self.make_dirs(dst, 0o700 | src_mode)
            for name in sorted(os.listdir(src)):
                if name in exclude:
                    continue
                self.copy_node(os.path.join(src, name), os.path.join(dst, name))
            os.chmod(dst, src_mode)
        except TransplantError:
            raise
        except OSError as e:
            raise TransplantError("copy", src, e.strerror or str(e)) from e

    def copy_node(self, src: str, dst: str, record: bool = True) -> None:
        """Copy a single node (recursively for directories)."""
        try:
            info = os.lstat(src)
            # Handle symlinks first (before checking for directories)
            if stat.S_ISLNK(info.st_mode):
                os.symlink(os.readlink(src), dst)
            elif stat.S_ISDIR(info.st_mode):
                created = not os.path.exists(dst)
                if created:
                    os.mkdir(dst, 0o700)
                for name in sorted(os.listdir(src)):
                    self.copy_node(os.path.join(src, name), os.path.join(dst, name), record=False)
                os.chmod(dst, stat.S_IMODE(info.st_mode))
            elif stat.S_ISREG(info.st_mode):
                shutil.copy2(src, dst, follow_symlinks=False)
            else:
                logger.warning(f"Skipping special file {src}")
                return
        except OSError as e:
            raise TransplantError("copy", src, e.strerror or str(e)) from e
        if record:
            self._record("copy", src, dst)

    def undo(self, journal: Optional[List[JournalEntry]] = None) -> None:
        """Replay the inverse of journaled operations, newest first.

        Every entry is attempted; the first failure is raised after the rest
        have been tried.
        """
        entries = journal if journal is not None else self.journal or []
        inverse = TransplantEngine()
        failures: List[TransplantError] = []

        for entry in reversed(entries):
            try:
                if entry.op == "rename":
                    inverse.move_node(entry.destination, entry.path)
                elif entry.op == "copy":
                    inverse._delete_node(entry.destination)
                elif entry.op == "mkdir":
                    if os.path.isdir(entry.path):
                        os.rmdir(entry.path)
                elif entry.op == "rmdir":
                    os.makedirs(entry.path, exist_ok=True)
            except TransplantError as e:
                failures.append(e)
            except OSError as e:
                failures.append(TransplantError(f"undo {entry.op}", entry.path, e.strerror or str(e)))

        if failures:
            for failure in failures[1:]:
                logger.error(f"{failure}")
            raise failures[0]

    def _remove_empty_dir(self, path: str) -> None:
        try:
            os.rmdir(path)
        except OSError as e:
            raise TransplantError("remove directory", path, e.strerror or str(e)) from e
        self._record("rmdir", path)

    def _delete_node(self, path: str) -> None:
        try:
            if self._is_real_dir(path):
                shutil.rmtree(path)
            elif os.path.lexists(path):
                os.unlink(path)
        except OSError as e:
            raise TransplantError("remove", path, e.strerror or str(e)) from e

    @staticmethod
    def _is_real_dir(path: str) -> bool:
        return os.path.isdir(path) and not os.path.islink(path)

    @staticmethod
    def _mode_of(path: str) -> int:
        return stat.S_IMODE(os.stat(path).st_mode)
