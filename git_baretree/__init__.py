"""
git-baretree - Convert git repositories into a bare store with per-branch worktrees
"""

from .__version__ import __version__
from .services.migration import MigrationOrchestrator
from .cli.main import main

__all__ = ["MigrationOrchestrator", "main", "__version__"]
