"""Pytest fixtures for git-baretree tests"""
import os
import tempfile
from pathlib import Path
from unittest.mock import Mock

import git
import pytest

from git_baretree.services.display_service import DisplayService
from git_baretree.settings import GlobalSettings


def _configure_user(repo: git.Repo) -> None:
    writer = repo.config_writer()
    writer.set_value("user", "name", "Test User")
    writer.set_value("user", "email", "test@example.com")
    writer.release()


def status_lines(path) -> set:
    """`git status --porcelain` of a worktree as a set of lines."""
    output = git.Repo(str(path)).git.status("--porcelain")
    return {line for line in output.split("\n") if line}


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(os.path.realpath(tmpdir))


@pytest.fixture
def git_repo(temp_dir):
    """Create a real Git repository for testing."""
    repo_path = temp_dir / "test_repo"
    repo_path.mkdir()

    # Initialize repository
    repo = git.Repo.init(repo_path)
    _configure_user(repo)

    # Create initial commit on main branch
    (repo_path / "README.md").write_text("# Test Repository\n")
    repo.git.add("README.md")
    repo.git.commit("-m", "Initial commit")

    # Rename master to main if needed
    repo.git.branch("-M", "main")

    # Add a fake GitHub remote for testing
    repo.create_remote("origin", "git@github.com:test/test-repo.git")

    yield repo

    # Cleanup
    repo.close()


@pytest.fixture
def dirty_repo(git_repo):
    """Repository with staged, unstaged and untracked changes plus a symlink and an executable."""
    repo = git_repo
    repo_path = Path(repo.working_dir)

    (repo_path / "src").mkdir()
    (repo_path / "src" / "app.py").write_text("print('hello')\n")
    (repo_path / "scripts").mkdir()
    script = repo_path / "scripts" / "run.sh"
    script.write_text("#!/bin/sh\necho run\n")
    script.chmod(0o755)
    os.symlink("README.md", repo_path / "readme-link")
    repo.git.add("src", "scripts", "readme-link")
    repo.git.commit("-m", "Add sources")

    # Staged new file
    (repo_path / "staged.txt").write_text("staged\n")
    repo.git.add("staged.txt")
    # Unstaged edit
    (repo_path / "src" / "app.py").write_text("print('changed')\n")
    # Untracked file
    (repo_path / "notes.txt").write_text("untracked\n")

    yield repo


@pytest.fixture
def repo_with_external_worktree(git_repo, temp_dir):
    """Repository with branch feature/x checked out in a worktree outside its root."""
    repo = git_repo
    repo.git.branch("feature/x")
    external = temp_dir / "ext-feature"
    repo.git.worktree("add", str(external), "feature/x")
    (external / "wip.txt").write_text("work in progress\n")
    yield repo, external


@pytest.fixture
def repo_with_submodule(git_repo, temp_dir):
    """Repository with a submodule at libs/mylib."""
    upstream_path = temp_dir / "lib_upstream"
    upstream_path.mkdir()
    upstream = git.Repo.init(upstream_path)
    _configure_user(upstream)
    (upstream_path / "lib.txt").write_text("library\n")
    upstream.git.add("lib.txt")
    upstream.git.commit("-m", "Library")

    repo = git_repo
    repo.git.execute(
        ["git", "-c", "protocol.file.allow=always", "submodule", "add", str(upstream_path), "libs/mylib"]
    )
    repo.git.commit("-m", "Add submodule")
    upstream.close()
    yield repo


@pytest.fixture
def quiet_display():
    """DisplayService that prints nowhere."""
    return Mock(spec=DisplayService)


@pytest.fixture
def managed_settings(temp_dir):
    """Settings resolver returning a managed root inside the temp directory."""
    resolver = Mock()
    resolver.resolve.return_value = GlobalSettings(
        roots=[str(temp_dir / "managed")], user="tester", root_source="env"
    )
    return resolver


@pytest.fixture
def porcelain_status():
    """Function returning `git status --porcelain` lines of a worktree."""
    return status_lines
