"""Shared constants for git-baretree."""

# Name of the shared store directory under a repository root. Kept as ".git"
# so that submodule gitlinks keep resolving through "<root>/.git/modules".
BARE_DIR = ".git"

# Name of a worktree's link file and of the per-worktree area container
GIT_LINK_FILE = ".git"
WORKTREES_DIR = "worktrees"
MODULES_DIR = "modules"
GITMODULES_FILE = ".gitmodules"

# Administrative area files
COMMONDIR_FILE = "commondir"
GITDIR_FILE = "gitdir"
HEAD_FILE = "HEAD"
INDEX_FILE = "index"

GITDIR_PREFIX = "gitdir:"
HEAD_REF_PREFIX = "ref:"
BRANCH_REF_PREFIX = "refs/heads/"

# Branch marker used by `git worktree list --porcelain` consumers for detached HEADs
DETACHED_MARKER = "detached"

# Repository-level git-config keys written after a successful migration
GIT_CONFIG_KEY_DEFAULT_BRANCH = "baretree.defaultbranch"

# Global settings
ENV_ROOT = "BARETREE_ROOT"
GIT_CONFIG_KEY_ROOT = "baretree.root"
GIT_CONFIG_KEY_USER = "baretree.user"
DEFAULT_ROOT = "~/baretree"
DEFAULT_HOST = "github.com"

# Fallback branch names probed when origin/HEAD is not available
FALLBACK_DEFAULT_BRANCHES = ("main", "master")

# Migration modes
MODE_IN_PLACE = "in-place"
MODE_DESTINATION = "destination"
MODE_MANAGED = "managed"
MIGRATION_MODES = (MODE_IN_PLACE, MODE_DESTINATION, MODE_MANAGED)

LOG_DIR_NAME = ".git-baretree"
LOG_FILE_NAME = "git-baretree.log"
