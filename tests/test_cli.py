"""Tests for the command-line interface"""
from pathlib import Path

import pytest

from git_baretree.cli.args import parse_args
from git_baretree.cli.main import config_from_args, main


class TestParseArgs:
    """Test argument parsing."""

    def test_in_place(self):
        args = parse_args(["repo", "-i"])
        assert args.source == "repo"
        assert args.in_place
        assert args.destination is None
        assert not args.to_managed

    def test_destination(self):
        args = parse_args(["repo", "--destination", "/tmp/out", "-r"])
        assert args.destination == "/tmp/out"
        assert args.remove_source

    def test_managed_with_path(self):
        args = parse_args(["repo", "-m", "-p", "user/repo"])
        assert args.to_managed
        assert args.path == "user/repo"

    def test_modes_are_mutually_exclusive(self):
        with pytest.raises(SystemExit):
            parse_args(["repo", "-i", "-m"])

    def test_mode_required(self):
        with pytest.raises(SystemExit):
            parse_args(["repo"])


class TestConfigFromArgs:
    """Test mapping of arguments onto MigrateConfig."""

    @pytest.mark.parametrize("argv, mode", [
        (["repo", "-i"], "in-place"),
        (["repo", "-d", "/tmp/out"], "destination"),
        (["repo", "-m"], "managed"),
    ])
    def test_mode(self, argv, mode):
        assert config_from_args(parse_args(argv)).mode == mode

    def test_path_without_managed_is_rejected(self):
        with pytest.raises(ValueError):
            config_from_args(parse_args(["repo", "-d", "/tmp/out", "-p", "user/repo"]))


class TestMain:
    """Test exit codes of the entry point."""

    def test_not_a_repository(self, temp_dir):
        assert main([str(temp_dir), "-i"]) == 1

    def test_remove_source_with_in_place(self, git_repo):
        assert main([git_repo.working_dir, "-i", "-r"]) == 1
        assert Path(git_repo.working_dir, "README.md").exists()

    def test_in_place_success(self, git_repo):
        root = Path(git_repo.working_dir)
        assert main([str(root), "--in-place"]) == 0
        assert (root / "main" / "README.md").exists()

    def test_destination_success(self, git_repo, temp_dir):
        assert main([git_repo.working_dir, "-d", str(temp_dir / "out")]) == 0
        assert (temp_dir / "out" / "main" / "README.md").exists()
