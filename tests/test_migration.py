"""End-to-end tests for the migration orchestrator on real repositories"""
import os
import stat
from pathlib import Path
from unittest.mock import Mock, patch

import git
import pytest

from git_baretree.exceptions import (
    GitOperationError,
    LinkSynthesisError,
    MigrationError,
    MigrationValidationError,
)
from git_baretree.models.report import MigrationMode, MigrationState
from git_baretree.services.git.repository import RepositoryService
from git_baretree.services.link_synthesizer import LinkSynthesizer
from git_baretree.services.migration import MigrationOrchestrator


def bare_value(root):
    return git.Git().execute(
        ["git", "config", "--file", str(Path(root) / ".git" / "config"), "--bool", "core.bare"]
    )


def default_branch_value(root):
    return git.Git().execute(
        ["git", "config", "--file", str(Path(root) / ".git" / "config"), "baretree.defaultbranch"]
    )


def branch_of(path):
    repo = git.Repo(str(path))
    try:
        return repo.active_branch.name
    finally:
        repo.close()


class TestInPlace:
    """In-place migration keeps the root and splits it into store plus worktree."""

    def test_dirty_repository(self, dirty_repo, quiet_display, porcelain_status):
        root = Path(dirty_repo.working_dir)
        before = porcelain_status(root)

        report = MigrationOrchestrator(display=quiet_display).migrate_in_place(str(root))

        primary = root / "main"
        assert report.state == MigrationState.DONE
        assert report.primary_worktree == str(primary)
        assert report.default_branch == "main"
        assert sorted(os.listdir(root)) == [".git", "main"]
        assert porcelain_status(primary) == before
        assert (primary / "src" / "app.py").read_text() == "print('changed')\n"
        assert (primary / "notes.txt").read_text() == "untracked\n"
        assert os.readlink(primary / "readme-link") == "README.md"
        assert os.stat(primary / "scripts" / "run.sh").st_mode & stat.S_IXUSR
        assert bare_value(root) == "true"
        assert default_branch_value(root) == "main"
        assert branch_of(primary) == "main"

    def test_external_worktree_moved_under_root(self, repo_with_external_worktree, quiet_display, porcelain_status):
        repo, external = repo_with_external_worktree
        root = Path(repo.working_dir)

        report = MigrationOrchestrator(display=quiet_display).migrate_in_place(str(root))

        moved = root / "feature" / "x"
        assert report.relocated_worktrees == [str(moved)]
        assert report.failed_worktrees == []
        assert not external.exists()
        assert (root / ".git" / "worktrees" / "feature%2Fx").is_dir()
        assert (root / ".git" / "worktrees" / "main").is_dir()
        assert branch_of(moved) == "feature/x"
        assert porcelain_status(moved) == {"?? wip.txt"}

        listing = git.Git(str(root / "main")).execute(["git", "worktree", "list", "--porcelain"])
        assert f"worktree {moved}" in listing

    def test_branch_prefix_collides_with_existing_directory(self, git_repo, quiet_display, porcelain_status):
        repo = git_repo
        root = Path(repo.working_dir)
        (root / "feat").mkdir()
        (root / "feat" / "a.txt").write_text("a\n")
        repo.git.add("feat")
        repo.git.commit("-m", "Add feat directory")
        repo.git.checkout("-b", "feat/login")

        report = MigrationOrchestrator(display=quiet_display).migrate_in_place(str(root))

        primary = root / "feat" / "login"
        # main is the default branch, so it gets its own worktree next to feat/
        assert sorted(os.listdir(root)) == [".git", "feat", "main"]
        assert report.default_branch_worktree == str(root / "main")
        assert os.listdir(root / "feat") == ["login"]
        assert (primary / "feat" / "a.txt").read_text() == "a\n"
        assert (primary / "README.md").exists()
        assert porcelain_status(primary) == set()
        assert branch_of(primary) == "feat/login"

    def test_existing_target_changes_nothing(self, git_repo, quiet_display):
        root = Path(git_repo.working_dir)
        (root / "main").mkdir()
        (root / "main" / "keep.txt").write_text("keep\n")

        with pytest.raises(MigrationValidationError):
            MigrationOrchestrator(display=quiet_display).migrate_in_place(str(root))

        assert sorted(os.listdir(root)) == [".git", "README.md", "main"]
        assert bare_value(root) == "false"
        assert not (root / ".git" / "worktrees").exists()

    def test_rollback_restores_repository(self, dirty_repo, quiet_display, porcelain_status):
        root = Path(dirty_repo.working_dir)
        before = porcelain_status(root)
        entries = sorted(os.listdir(root))
        synthesizer = Mock(spec=LinkSynthesizer)
        synthesizer.synthesize.side_effect = LinkSynthesisError(str(root / "main"), "disk full")

        orchestrator = MigrationOrchestrator(display=quiet_display, synthesizer=synthesizer)
        with pytest.raises(MigrationError) as exc_info:
            orchestrator.migrate_in_place(str(root))

        error = exc_info.value
        assert error.stage == "synthesizing-links"
        assert error.rolled_back
        assert orchestrator.state == MigrationState.ERROR
        assert sorted(os.listdir(root)) == entries
        assert bare_value(root) == "false"
        assert porcelain_status(root) == before

    def test_failed_rollback_step_is_reported(self, dirty_repo, quiet_display):
        root = Path(dirty_repo.working_dir)
        entries = sorted(os.listdir(root))
        synthesizer = Mock(spec=LinkSynthesizer)
        synthesizer.synthesize.side_effect = LinkSynthesisError(str(root / "main"), "disk full")
        # Setting core.bare works, restoring it does not
        set_bare = [None, GitOperationError("config --file", "could not lock config file")]

        orchestrator = MigrationOrchestrator(display=quiet_display, synthesizer=synthesizer)
        with patch.object(RepositoryService, "set_bare", autospec=True, side_effect=set_bare):
            with pytest.raises(MigrationError) as exc_info:
                orchestrator.migrate_in_place(str(root))

        error = exc_info.value
        assert not error.rolled_back
        assert [description for description, _ in error.rollback_errors] == ["restore core.bare=false"]
        assert "disk full" in str(error)
        assert "Rollback failed" in str(error)
        assert "could not lock config file" in str(error)
        # The other compensations still ran
        assert sorted(os.listdir(root)) == entries

    def test_default_branch_worktree_created(self, git_repo, temp_dir, quiet_display):
        clone_path = temp_dir / "clone"
        clone = git.Repo.clone_from(git_repo.working_dir, str(clone_path))
        clone.git.checkout("-b", "dev")
        clone.close()

        report = MigrationOrchestrator(display=quiet_display).migrate_in_place(str(clone_path))

        assert report.default_branch == "main"
        assert report.primary_worktree == str(clone_path / "dev")
        assert report.default_branch_worktree == str(clone_path / "main")
        assert branch_of(clone_path / "main") == "main"
        assert branch_of(clone_path / "dev") == "dev"

    def test_submodule_links_rewritten(self, repo_with_submodule, quiet_display, porcelain_status):
        root = Path(repo_with_submodule.working_dir)

        MigrationOrchestrator(display=quiet_display).migrate_in_place(str(root))

        submodule = root / "main" / "libs" / "mylib"
        assert (submodule / ".git").read_text() == "gitdir: ../../../.git/modules/libs/mylib\n"
        assert (submodule / "lib.txt").read_text() == "library\n"
        assert porcelain_status(submodule) == set()
        assert porcelain_status(root / "main") == set()


class TestValidation:
    """Rejections happen before anything is touched."""

    def test_not_a_repository(self, temp_dir, quiet_display):
        with pytest.raises(MigrationValidationError, match="not a git repository"):
            MigrationOrchestrator(display=quiet_display).migrate_in_place(str(temp_dir))

    def test_missing_source(self, temp_dir, quiet_display):
        with pytest.raises(MigrationValidationError, match="does not exist"):
            MigrationOrchestrator(display=quiet_display).migrate_in_place(str(temp_dir / "nope"))

    def test_linked_worktree_rejected(self, repo_with_external_worktree, quiet_display):
        _, external = repo_with_external_worktree
        with pytest.raises(MigrationValidationError, match="linked worktree"):
            MigrationOrchestrator(display=quiet_display).migrate_in_place(str(external))

    def test_detached_head_rejected(self, git_repo, quiet_display):
        git_repo.git.checkout("--detach")
        with pytest.raises(MigrationValidationError, match="detached"):
            MigrationOrchestrator(display=quiet_display).migrate_in_place(git_repo.working_dir)

    def test_already_split_rejected(self, git_repo, quiet_display):
        root = git_repo.working_dir
        orchestrator = MigrationOrchestrator(display=quiet_display)
        orchestrator.migrate_in_place(root)
        with pytest.raises(MigrationValidationError, match="already a baretree repository"):
            MigrationOrchestrator(display=quiet_display).migrate_in_place(root)


class TestDestination:
    """Copying into a new directory leaves the source untouched."""

    def test_copy_to_destination(self, dirty_repo, temp_dir, quiet_display, porcelain_status):
        source = Path(dirty_repo.working_dir)
        before = porcelain_status(source)
        destination = temp_dir / "out" / "app"

        report = MigrationOrchestrator(display=quiet_display).migrate_to_destination(str(source), str(destination))

        assert report.mode == MigrationMode.DESTINATION
        assert report.repository_root == str(destination)
        assert sorted(os.listdir(destination)) == [".git", "main"]
        assert porcelain_status(destination / "main") == before
        assert bare_value(destination) == "true"
        assert os.readlink(destination / "main" / "readme-link") == "README.md"

        assert (source / ".git").is_dir()
        assert bare_value(source) == "false"
        assert porcelain_status(source) == before
        assert not report.source_removed

    def test_destination_exists(self, git_repo, temp_dir, quiet_display):
        out = temp_dir / "out"
        out.mkdir()
        (out / "existing.txt").write_text("existing\n")
        before = {p.name: (p.read_text(), p.stat().st_mtime_ns) for p in out.iterdir()}
        dir_mtime = out.stat().st_mtime_ns

        with pytest.raises(MigrationValidationError, match="already exists"):
            MigrationOrchestrator(display=quiet_display).migrate_to_destination(git_repo.working_dir, str(out))

        assert {p.name: (p.read_text(), p.stat().st_mtime_ns) for p in out.iterdir()} == before
        assert out.stat().st_mtime_ns == dir_mtime

    def test_destination_inside_source(self, git_repo, quiet_display):
        inside = os.path.join(git_repo.working_dir, "nested", "out")
        with pytest.raises(MigrationValidationError, match="overlap"):
            MigrationOrchestrator(display=quiet_display).migrate_to_destination(git_repo.working_dir, inside)
        assert not os.path.exists(os.path.join(git_repo.working_dir, "nested"))

    def test_remove_source(self, git_repo, temp_dir, quiet_display):
        source = Path(git_repo.working_dir)
        destination = temp_dir / "out"

        report = MigrationOrchestrator(display=quiet_display).migrate_to_destination(
            str(source), str(destination), remove_source=True
        )

        assert report.source_removed
        assert not source.exists()
        assert branch_of(destination / "main") == "main"

    def test_external_worktrees_copied(self, repo_with_external_worktree, temp_dir, quiet_display, porcelain_status):
        repo, external = repo_with_external_worktree
        repo.git.worktree("add", "--detach", str(temp_dir / "detached-wt"))
        head = repo.head.commit.hexsha
        destination = temp_dir / "out"

        report = MigrationOrchestrator(display=quiet_display).migrate_to_destination(
            repo.working_dir, str(destination)
        )

        assert sorted(report.relocated_worktrees) == [
            str(destination / "detached-wt"), str(destination / "feature" / "x")
        ]
        assert branch_of(destination / "feature" / "x") == "feature/x"
        assert porcelain_status(destination / "feature" / "x") == {"?? wip.txt"}

        detached = git.Repo(str(destination / "detached-wt"))
        assert detached.head.is_detached
        assert detached.head.commit.hexsha == head
        detached.close()

        # Originals still belong to the source repository
        assert (external / "wip.txt").exists()
        assert branch_of(external) == "feature/x"


class TestManaged:
    """Migration under the managed root."""

    def test_path_from_remote(self, git_repo, temp_dir, quiet_display, managed_settings):
        orchestrator = MigrationOrchestrator(display=quiet_display, settings_resolver=managed_settings)

        report = orchestrator.migrate_to_managed(git_repo.working_dir)

        expected = temp_dir / "managed" / "github.com" / "test" / "test-repo"
        assert report.mode == MigrationMode.MANAGED
        assert report.repository_root == str(expected)
        assert branch_of(expected / "main") == "main"
        assert Path(git_repo.working_dir, "README.md").exists()

    def test_explicit_path_uses_default_host_and_user(self, git_repo, temp_dir, quiet_display, managed_settings):
        orchestrator = MigrationOrchestrator(display=quiet_display, settings_resolver=managed_settings)

        report = orchestrator.migrate_to_managed(git_repo.working_dir, "proj")

        assert report.repository_root == str(temp_dir / "managed" / "github.com" / "tester" / "proj")

    def test_no_remote(self, git_repo, quiet_display, managed_settings):
        git_repo.delete_remote("origin")
        orchestrator = MigrationOrchestrator(display=quiet_display, settings_resolver=managed_settings)
        with pytest.raises(MigrationValidationError, match="no git remotes"):
            orchestrator.migrate_to_managed(git_repo.working_dir)

    def test_already_split_repository_relocated(self, git_repo, temp_dir, quiet_display, managed_settings,
                                                porcelain_status):
        source = Path(git_repo.working_dir)
        MigrationOrchestrator(display=quiet_display).migrate_in_place(str(source))
        (source / "main" / "scratch.txt").write_text("scratch\n")

        orchestrator = MigrationOrchestrator(display=quiet_display, settings_resolver=managed_settings)
        report = orchestrator.migrate_to_managed(str(source), "someone/proj", remove_source=True)

        destination = temp_dir / "managed" / "github.com" / "someone" / "proj"
        assert report.relocated_existing
        assert report.source_removed
        assert report.primary_worktree == str(destination / "main")
        assert report.relocated_worktrees == [str(destination / "main")]
        assert (destination / ".git" / "worktrees" / "main" / "gitdir").read_text() == \
            f"{destination / 'main' / '.git'}\n"
        assert branch_of(destination / "main") == "main"
        assert porcelain_status(destination / "main") == {"?? scratch.txt"}

    def test_worktree_outside_split_repository_survives_removal(self, git_repo, temp_dir, quiet_display,
                                                                managed_settings, porcelain_status):
        source = Path(git_repo.working_dir)
        MigrationOrchestrator(display=quiet_display).migrate_in_place(str(source))
        outside = temp_dir / "ext-side"
        primary = git.Repo(str(source / "main"))
        primary.git.branch("side")
        primary.git.worktree("add", str(outside), "side")
        primary.close()
        (outside / "staged.txt").write_text("staged\n")
        side = git.Repo(str(outside))
        side.git.add("staged.txt")
        side.close()

        orchestrator = MigrationOrchestrator(display=quiet_display, settings_resolver=managed_settings)
        report = orchestrator.migrate_to_managed(str(source), "someone/proj", remove_source=True)

        destination = temp_dir / "managed" / "github.com" / "someone" / "proj"
        area = destination / ".git" / "worktrees" / "ext-side"
        assert report.source_removed
        assert any(str(outside) in warning for warning in report.warnings)
        assert (outside / ".git").read_text() == f"gitdir: {area}\n"
        assert (area / "gitdir").read_text() == f"{outside / '.git'}\n"
        assert branch_of(outside) == "side"
        assert porcelain_status(outside) == {"A  staged.txt"}

    def test_outside_worktree_link_restored_on_failure(self, git_repo, temp_dir, quiet_display, managed_settings):
        source = Path(git_repo.working_dir)
        MigrationOrchestrator(display=quiet_display).migrate_in_place(str(source))
        outside = temp_dir / "ext-side"
        primary = git.Repo(str(source / "main"))
        primary.git.branch("side")
        primary.git.worktree("add", str(outside), "side")
        primary.close()
        old_link = (outside / ".git").read_text()

        linker = LinkSynthesizer()

        def repoint(worktree_path, admin_path):
            # Areas are visited sorted: "ext-side" is relinked before "main" fails
            if os.path.basename(worktree_path) == "main":
                raise LinkSynthesisError(worktree_path, "read-only")
            linker.repoint(worktree_path, admin_path)

        synthesizer = Mock(spec=LinkSynthesizer)
        synthesizer.repoint.side_effect = repoint
        orchestrator = MigrationOrchestrator(
            display=quiet_display, settings_resolver=managed_settings, synthesizer=synthesizer
        )
        with pytest.raises(MigrationError) as exc_info:
            orchestrator.migrate_to_managed(str(source), "someone/proj", remove_source=True)

        assert exc_info.value.rolled_back
        assert (outside / ".git").read_text() == old_link
        assert not (temp_dir / "managed" / "github.com" / "someone" / "proj").exists()
        assert source.exists()
        assert branch_of(outside) == "side"
