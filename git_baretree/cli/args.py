"""Command-line argument parsing for git-baretree."""

import argparse
from typing import List, Optional

from git_baretree.__version__ import __version__


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="baretree-migrate",
        description="Convert a git repository into a bare store with one worktree per branch",
        epilog="Examples:\n"
        "  baretree-migrate . -i                      split the repository where it is\n"
        "  baretree-migrate ~/src/app -d ~/work/app   build the layout in a new directory\n"
        "  baretree-migrate ~/src/app -m              move under $BARETREE_ROOT/<host>/<user>/<repo>",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("source", help="Path of the repository to migrate")

    modes = parser.add_mutually_exclusive_group(required=True)
    modes.add_argument(
        "-i", "--in-place", action="store_true", help="Convert the repository in its current location"
    )
    modes.add_argument(
        "-d", "--destination", metavar="DEST", help="Create the converted repository at DEST"
    )
    modes.add_argument(
        "-m", "--to-managed", action="store_true",
        help="Move the repository under the managed root (BARETREE_ROOT or git config baretree.root)",
    )

    parser.add_argument(
        "-p", "--path", metavar="PATH",
        help="Repository path under the managed root (host/user/repo, user/repo or repo); "
        "only with --to-managed",
    )
    parser.add_argument(
        "-r", "--remove-source", action="store_true",
        help="Remove the original repository after a successful copy (not with --in-place)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show verbose output")
    parser.add_argument(
        "--debug", action="store_true", help="Show debug information for troubleshooting"
    )
    parser.add_argument("--version", action="version", version=f"git-baretree {__version__}")
    return parser


def parse_args(argv: Optional[List[str]] = None):
    """Parse command-line arguments."""
    return build_parser().parse_args(argv)
