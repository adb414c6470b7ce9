"""Version information for git-baretree."""

__version__ = "0.1.0"
