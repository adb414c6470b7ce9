"""Migration orchestrator: drives a repository into the baretree layout."""

import os
import shutil
from typing import List, Optional, Tuple

from git_baretree.config import MigrateConfig
from git_baretree.constants import (
    DEFAULT_HOST,
    GIT_LINK_FILE,
    GITDIR_FILE,
    INDEX_FILE,
    MODE_DESTINATION,
    MODE_IN_PLACE,
    WORKTREES_DIR,
)
from git_baretree.exceptions import (
    BaretreeError,
    GitOperationError,
    LayoutConflictError,
    MigrationError,
    MigrationValidationError,
    TransplantError,
)
from git_baretree.models.layout import LayoutPlan, Relationship
from git_baretree.models.report import MigrationMode, MigrationReport, MigrationState
from git_baretree.models.worktree import WorktreeInfo
from git_baretree.services.compensation import CompensationStack
from git_baretree.services.display_service import DisplayService
from git_baretree.services.external_relocator import ExternalWorktreeRelocator, external_worktrees, worktree_name
from git_baretree.services.git.admin_files import decode_gitdir, read_text, write_text
from git_baretree.services.git.executor import GitExecutor
from git_baretree.services.git.repository import RepositoryService, is_store_dir, store_path_for
from git_baretree.services.git.worktrees import WorktreeService
from git_baretree.services.layout_planner import is_subpath, paths_overlap, plan_layout, target_path
from git_baretree.services.link_synthesizer import LinkSynthesizer, derive_admin_id
from git_baretree.services.remote_url import RepoPath, detect_repo_path, parse_repo_path
from git_baretree.services.submodule_rewriter import SubmoduleRewriter
from git_baretree.services.transplant import TransplantEngine, TransplantMode
from git_baretree.settings import SettingsResolver
from git_baretree.logging_config import get_logger

logger = get_logger(__name__)


class SourceRepository:
    """What validation learned about the repository being migrated."""

    def __init__(self, path: str, current_branch: str, worktrees: List[WorktreeInfo]):
        self.path = path
        self.store_path = store_path_for(path)
        self.current_branch = current_branch
        self.worktrees = worktrees

    @property
    def external_worktrees(self) -> List[WorktreeInfo]:
        return external_worktrees(self.worktrees, self.path)

    @property
    def inner_worktrees(self) -> List[WorktreeInfo]:
        return [
            wt for wt in self.worktrees
            if not wt.is_main and not wt.is_bare and is_subpath(self.path, os.path.realpath(wt.path))
        ]


class MigrationOrchestrator:
    """Runs the migration stages and rolls back on failure.

    Until the primary worktree is linked every mutation is registered on a
    compensation stack; a failure unwinds it and raises MigrationError. After
    that point failures only add warnings to the report.
    """

    def __init__(
        self,
        display: Optional[DisplayService] = None,
        settings_resolver: Optional[SettingsResolver] = None,
        synthesizer: Optional[LinkSynthesizer] = None,
    ):
        self.display = display or DisplayService()
        self.settings_resolver = settings_resolver or SettingsResolver()
        self.synthesizer = synthesizer or LinkSynthesizer()
        self.state = MigrationState.VALIDATING

    # -- entry points ------------------------------------------------------

    def run(self, config: MigrateConfig) -> MigrationReport:
        """Dispatch on config.mode."""
        if config.mode == MODE_IN_PLACE:
            return self.migrate_in_place(config.source)
        if config.mode == MODE_DESTINATION:
            return self.migrate_to_destination(config.source, config.destination, config.remove_source)
        return self.migrate_to_managed(config.source, config.managed_path, config.remove_source)

    def migrate_in_place(self, source: str) -> MigrationReport:
        """Split the repository at source without moving its root."""
        self._enter(MigrationState.VALIDATING)
        repo = self.validate_source(source)
        report = MigrationReport(
            mode=MigrationMode.IN_PLACE,
            source=repo.path,
            repository_root=repo.path,
            store_path=repo.store_path,
            current_branch=repo.current_branch,
        )
        self._warn_inner_worktrees(repo, report)
        plan = plan_layout(repo.path, repo.current_branch)
        self._check_primary_admin_free(repo.store_path, repo.current_branch)
        self._print_plan(repo, report.repository_root)

        store_repo = RepositoryService(repo.store_path)
        stack = CompensationStack()
        try:
            with stack:
                self._enter(MigrationState.TRANSPLANTING)
                store_repo.set_bare(repo.store_path, True)
                stack.push("restore core.bare=false", lambda: store_repo.set_bare(repo.store_path, False))

                journal = []
                engine = TransplantEngine(journal)
                stack.push("move files back to the repository root", lambda: engine.undo(journal))
                self._transplant_in_place(engine, plan)

                self._link_primary(stack, store_repo, plan, repo, report)
                stack.commit()
        except BaretreeError as e:
            raise self._failed(report, e, stack) from e
        except OSError as e:
            raise self._failed(report, TransplantError("migrate", repo.path, e.strerror or str(e)), stack) from e

        self._finish(report, repo, plan.worktree_path, TransplantMode.MOVE)
        return report

    def migrate_to_destination(
        self, source: str, destination: str, remove_source: bool = False,
        mode: MigrationMode = MigrationMode.DESTINATION,
    ) -> MigrationReport:
        """Build the split layout at destination from a copy of source; source is left intact."""
        self._enter(MigrationState.VALIDATING)
        repo = self.validate_source(source)
        destination = self._validate_destination(repo.path, destination)
        report = MigrationReport(
            mode=mode,
            source=repo.path,
            repository_root=destination,
            store_path=store_path_for(destination),
            current_branch=repo.current_branch,
        )
        self._warn_inner_worktrees(repo, report)
        plan = plan_layout(destination, repo.current_branch, content_dir=repo.path)
        self._check_primary_admin_free(repo.store_path, repo.current_branch)
        self._print_plan(repo, destination)

        store_repo = RepositoryService(report.store_path)
        stack = CompensationStack()
        try:
            with stack:
                self._enter(MigrationState.TRANSPLANTING)
                engine = TransplantEngine()
                self._create_destination(stack, engine, destination)

                engine.transplant(repo.store_path, report.store_path, TransplantMode.COPY)
                store_repo.set_bare(report.store_path, True)

                engine.make_dirs(plan.worktree_path)
                for entry in plan.entries:
                    engine.copy_node(entry.source, entry.destination)

                self._link_primary(stack, store_repo, plan, repo, report)
                stack.commit()
        except BaretreeError as e:
            raise self._failed(report, e, stack) from e
        except OSError as e:
            raise self._failed(report, TransplantError("migrate", repo.path, e.strerror or str(e)), stack) from e

        self._finish(report, repo, plan.worktree_path, TransplantMode.COPY)
        if remove_source:
            self._remove_source(report, repo.external_worktrees)
        return report

    def migrate_to_managed(
        self, source: str, repo_path: Optional[str] = None, remove_source: bool = False
    ) -> MigrationReport:
        """Migrate (or, when already split, relocate) source under the managed root.

        The destination is <primary root>/<host>/<user>/<repo>, taken from
        repo_path when given and from the repository's remote otherwise.
        """
        source = os.path.realpath(source)
        if not os.path.isdir(source):
            raise MigrationValidationError(f"source does not exist: {source}")

        settings = self.settings_resolver.resolve()
        split = is_store_dir(store_path_for(source)) and RepositoryService(source).is_split_layout(source)
        if not split:
            self.validate_source(source)

        repo_location = self._resolve_repo_path(source, repo_path, settings.user, split)
        destination = os.path.join(settings.primary_root, *str(repo_location).split("/"))
        logger.info(f"Managed destination for {source}: {destination} ({repo_location})")

        if split:
            return self.relocate_split_repository(source, destination, remove_source)
        return self.migrate_to_destination(source, destination, remove_source, mode=MigrationMode.MANAGED)

    def relocate_split_repository(self, source: str, destination: str, remove_source: bool = False) -> MigrationReport:
        """Copy an already split repository to destination and repoint its worktrees."""
        self._enter(MigrationState.VALIDATING)
        source = os.path.realpath(source)
        destination = self._validate_destination(source, destination)
        store_repo = RepositoryService(store_path_for(source))
        default_branch = store_repo.default_branch(store_path_for(source)) or ""

        report = MigrationReport(
            mode=MigrationMode.MANAGED,
            source=source,
            repository_root=destination,
            store_path=store_path_for(destination),
            current_branch=default_branch,
            default_branch=default_branch or None,
            relocated_existing=True,
        )
        self.display.info(f"Relocating baretree repository {source} -> {destination}")

        stack = CompensationStack()
        try:
            with stack:
                self._enter(MigrationState.TRANSPLANTING)
                engine = TransplantEngine()
                self._create_destination(stack, engine, destination)
                engine.transplant(source, destination, TransplantMode.COPY)

                self._enter(MigrationState.SYNTHESIZING_LINKS)
                self._repoint_areas(stack, source, destination, report)
                stack.commit()
        except BaretreeError as e:
            raise self._failed(report, e, stack) from e
        except OSError as e:
            raise self._failed(report, TransplantError("relocate", source, e.strerror or str(e)), stack) from e

        if default_branch:
            candidate = target_path(destination, default_branch)
            if os.path.isdir(candidate):
                report.primary_worktree = candidate

        self._enter(MigrationState.DONE)
        report.state = MigrationState.DONE
        if remove_source:
            self._remove_source(report, [])
        return report

    # -- validation --------------------------------------------------------

    def validate_source(self, source: str) -> SourceRepository:
        """Reject anything that is not a plain, non-bare repository on a branch.

        Raises:
            MigrationValidationError: Nothing has been changed
        """
        source = os.path.realpath(source)
        if not os.path.isdir(source):
            raise MigrationValidationError(f"source does not exist: {source}")

        git_dir = store_path_for(source)
        if os.path.isfile(git_dir):
            raise MigrationValidationError(
                f"{source} is a linked worktree or submodule (.git is a file); migrate its main repository instead"
            )
        if not is_store_dir(git_dir):
            raise MigrationValidationError(f"not a git repository: {source}")

        repository = RepositoryService(source)
        if repository.is_split_layout(source):
            raise MigrationValidationError(f"already a baretree repository: {source}")
        if repository.is_bare_store(git_dir):
            raise MigrationValidationError(f"repository is already bare: {source}")

        current_branch = repository.current_branch()
        if not current_branch:
            raise MigrationValidationError(f"HEAD is detached in {source}; check out a branch first")

        try:
            worktrees = WorktreeService(GitExecutor(source)).list_worktrees()
        except GitOperationError as e:
            raise MigrationValidationError(f"failed to list worktrees: {e}") from e

        return SourceRepository(source, current_branch, worktrees)

    def _validate_destination(self, source: str, destination: Optional[str]) -> str:
        if not destination:
            raise MigrationValidationError("no destination given")
        destination = os.path.realpath(destination)
        if os.path.lexists(destination):
            raise MigrationValidationError(f"destination already exists: {destination}")
        if paths_overlap(source, destination):
            raise MigrationValidationError("source and destination paths overlap")
        return destination

    def _check_primary_admin_free(self, store_path: str, branch: str) -> None:
        admin_path = os.path.join(store_path, WORKTREES_DIR, derive_admin_id(branch))
        if os.path.lexists(admin_path):
            raise LayoutConflictError(
                admin_path,
                "an administrative area with this name already exists; "
                "rename or prune the worktree that owns it first",
            )

    def _resolve_repo_path(self, source: str, repo_path: Optional[str], user: str, split: bool) -> RepoPath:
        if repo_path:
            return parse_repo_path(repo_path, DEFAULT_HOST, user)

        repository = RepositoryService(store_path_for(source) if split else source)
        location = detect_repo_path(repository)
        if location is None:
            raise MigrationValidationError(
                "no git remotes configured; use --path to specify one (e.g. --path github.com/user/repo)"
            )
        return location

    def _warn_inner_worktrees(self, repo: SourceRepository, report: MigrationReport) -> None:
        for wt in repo.inner_worktrees:
            report.warnings.append(
                f"Worktree {wt.path} lives inside the repository and will not be relinked; "
                f"run 'git worktree repair' for it afterwards"
            )

    # -- stages --------------------------------------------------------------

    def _transplant_in_place(self, engine: TransplantEngine, plan: LayoutPlan) -> None:
        engine.make_dirs(plan.worktree_path)
        for entry in plan.entries:
            relationship = plan.relationship_for(entry)
            logger.debug(f"{entry.name}: {relationship.value}")
            if relationship == Relationship.NESTED:
                engine.move_contents_excluding(entry.source, entry.destination, plan.worktree_path)
            elif relationship == Relationship.MERGE:
                engine.merge_move(entry.source, entry.destination)
            else:
                engine.move_node(entry.source, entry.destination)

    def _link_primary(
        self,
        stack: CompensationStack,
        store_repo: RepositoryService,
        plan: LayoutPlan,
        repo: SourceRepository,
        report: MigrationReport,
    ) -> None:
        self._enter(MigrationState.SYNTHESIZING_LINKS)
        store_path = plan.store_path
        worktrees_dir = os.path.join(store_path, WORKTREES_DIR)
        admin_path = os.path.join(worktrees_dir, derive_admin_id(repo.current_branch))
        created_worktrees_dir = not os.path.isdir(worktrees_dir)

        def unlink():
            area_index = os.path.join(admin_path, INDEX_FILE)
            store_index = os.path.join(store_path, INDEX_FILE)
            if os.path.isfile(area_index) and not os.path.exists(store_index):
                os.replace(area_index, store_index)
            link_file = os.path.join(plan.worktree_path, GIT_LINK_FILE)
            if os.path.lexists(link_file):
                os.unlink(link_file)
            if os.path.isdir(admin_path):
                shutil.rmtree(admin_path)
            if created_worktrees_dir and os.path.isdir(worktrees_dir) and not os.listdir(worktrees_dir):
                os.rmdir(worktrees_dir)

        stack.push(f"remove links of {plan.worktree_path}", unlink)
        self.synthesizer.synthesize(plan.worktree_path, store_path, repo.current_branch, adopt_index=True)
        report.primary_worktree = plan.worktree_path

        default_branch = store_repo.detect_default_branch() or repo.current_branch
        store_repo.set_default_branch(store_path, default_branch)
        stack.push("unset baretree.defaultbranch", lambda: store_repo.unset_default_branch(store_path))
        report.default_branch = default_branch

    def _finish(self, report: MigrationReport, repo: SourceRepository, primary: str, mode: TransplantMode) -> None:
        """Post-commit stages; failures here become warnings."""
        store_path = report.store_path
        externals = repo.external_worktrees
        self._add_default_worktree(report, externals)

        self._enter(MigrationState.RELOCATING_EXTERNAL_WORKTREES, f"{len(externals)} found")
        if externals:
            relocator = ExternalWorktreeRelocator(
                report.repository_root,
                store_path,
                synthesizer=self.synthesizer,
                rewriter=SubmoduleRewriter(store_path),
            )
            report.add_relocation(relocator.relocate_all(externals, mode))

        self._enter(MigrationState.REWRITING_SUBMODULES)
        submodules = SubmoduleRewriter(store_path).rewrite(primary)
        report.warnings.extend(submodules.warnings)

        self._enter(MigrationState.DONE)
        report.state = MigrationState.DONE

    def _add_default_worktree(self, report: MigrationReport, externals: List[WorktreeInfo]) -> None:
        default_branch = report.default_branch
        if not default_branch or default_branch == report.current_branch:
            return
        if any(wt.branch_name == default_branch for wt in externals):
            logger.info(f"Default branch {default_branch} is checked out in an external worktree")
            return

        try:
            path = target_path(report.repository_root, default_branch)
        except LayoutConflictError as e:
            report.warnings.append(f"Cannot create a worktree for default branch {default_branch}: {e}")
            return
        if os.path.lexists(path):
            report.warnings.append(f"Not creating default branch worktree: {path} already exists")
            return

        try:
            WorktreeService(GitExecutor(report.store_path)).add_worktree(path, default_branch)
            report.default_branch_worktree = path
        except GitOperationError as e:
            report.warnings.append(f"Failed to create default branch worktree: {e}")

    def _create_destination(self, stack: CompensationStack, engine: TransplantEngine, destination: str) -> None:
        created = engine.make_dirs(destination)
        for directory in created[:-1]:
            stack.push(f"remove directory {directory}", lambda d=directory: os.rmdir(d))
        stack.push(f"remove {destination}", lambda: shutil.rmtree(destination))

    def _repoint_areas(
        self, stack: CompensationStack, source: str, destination: str, report: MigrationReport
    ) -> None:
        """Point every copied area and its worktree at each other.

        Worktrees outside the old root stay where they are but are linked to
        the copied area, so removing the old store cannot orphan them.
        """
        old_store = store_path_for(source)
        worktrees_dir = os.path.join(store_path_for(destination), WORKTREES_DIR)
        if not os.path.isdir(worktrees_dir):
            return

        for area_id in sorted(os.listdir(worktrees_dir)):
            area = os.path.join(worktrees_dir, area_id)
            gitdir_file = os.path.join(area, GITDIR_FILE)
            if not os.path.isfile(gitdir_file):
                continue
            old_area = os.path.join(old_store, WORKTREES_DIR, area_id)
            old_worktree = decode_gitdir(read_text(gitdir_file), old_area)

            if not is_subpath(source, old_worktree):
                link_file = os.path.join(old_worktree, GIT_LINK_FILE)
                if not os.path.isfile(link_file):
                    report.warnings.append(f"Worktree {old_worktree} is missing; its area {area_id} was not relinked")
                    continue
                old_link = read_text(link_file)
                stack.push(f"restore link file of {old_worktree}",
                           lambda path=link_file, content=old_link: write_text(path, content))
                self.synthesizer.repoint(old_worktree, area)
                report.warnings.append(
                    f"Worktree {old_worktree} lies outside {source}; it was left in place "
                    f"and linked to {store_path_for(destination)}"
                )
                continue

            new_worktree = os.path.join(destination, os.path.relpath(old_worktree, source))
            if not os.path.isdir(new_worktree):
                report.warnings.append(f"Worktree directory {new_worktree} missing after copy")
                continue
            self.synthesizer.repoint(new_worktree, area)
            report.relocated_worktrees.append(new_worktree)

    def _remove_source(self, report: MigrationReport, externals: List[WorktreeInfo]) -> None:
        try:
            shutil.rmtree(report.source)
        except OSError as e:
            report.warnings.append(f"Failed to remove original repository {report.source}: {e}")
            return
        report.source_removed = True
        for wt in externals:
            report.warnings.append(
                f"Original worktree {wt.path} ({worktree_name(wt)}) belonged to the removed repository"
            )
        logger.info(f"Removed {report.source}")

    # -- helpers -------------------------------------------------------------

    def _enter(self, state: MigrationState, detail: str = "") -> None:
        logger.debug(f"State: {self.state.value} -> {state.value}")
        self.state = state
        self.display.stage(state, detail)

    def _failed(self, report: MigrationReport, error: BaretreeError, stack: CompensationStack) -> MigrationError:
        stage = self.state.value
        self.state = MigrationState.ERROR
        report.state = MigrationState.ERROR
        logger.error(f"Migration failed during {stage}: {error}")
        return MigrationError(stage, error, stack.rollback_errors)

    def _print_plan(self, repo: SourceRepository, root: str) -> None:
        self.display.info(f"Migrating repository: {repo.path}")
        self.display.info(f"Current branch: {repo.current_branch}")
        if root != repo.path:
            self.display.info(f"Destination: {root}")
        externals: List[Tuple[str, str]] = [(worktree_name(wt), wt.path) for wt in repo.external_worktrees]
        if externals:
            self.display.info(f"External worktrees to migrate: {len(externals)}")
            for name, path in externals:
                self.display.info(f"  - {name} ({path})")
