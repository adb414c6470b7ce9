"""Global settings: where managed repositories live and who owns them."""

import getpass
import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from git_baretree.constants import DEFAULT_ROOT, ENV_ROOT, GIT_CONFIG_KEY_ROOT, GIT_CONFIG_KEY_USER
from git_baretree.services.git.executor import GitExecutor
from git_baretree.logging_config import get_logger

logger = get_logger(__name__)

ROOT_SOURCE_ENV = "env"
ROOT_SOURCE_GIT_CONFIG = "git-config"
ROOT_SOURCE_DEFAULT = "default"


def expand_tilde(path: str) -> str:
    """Expand a leading ~/ to the home directory."""
    if path == "~" or path.startswith("~/"):
        return os.path.expanduser(path)
    return path


@dataclass
class GlobalSettings:
    """Resolved global settings."""
    roots: List[str] = field(default_factory=list)
    user: str = ""
    root_source: str = ROOT_SOURCE_DEFAULT

    @property
    def primary_root(self) -> str:
        """The last configured root is the one new repositories go to."""
        if not self.roots:
            return expand_tilde(DEFAULT_ROOT)
        return self.roots[-1]


class SettingsResolver:
    """Resolves global settings once per invocation.

    Root precedence: BARETREE_ROOT environment variable, then every
    `baretree.root` value in git config, then ~/baretree.
    """

    def __init__(self, env: Optional[Mapping[str, str]] = None, executor: Optional[GitExecutor] = None):
        self.env = os.environ if env is None else env
        self.executor = executor or GitExecutor()

    def resolve(self) -> GlobalSettings:
        settings = GlobalSettings()

        env_root = self.env.get(ENV_ROOT, "")
        if env_root:
            settings.roots = [expand_tilde(env_root)]
            settings.root_source = ROOT_SOURCE_ENV
        else:
            output = self.executor.try_execute("config", "--get-all", GIT_CONFIG_KEY_ROOT)
            roots = [expand_tilde(line.strip()) for line in (output or "").split("\n") if line.strip()]
            if roots:
                settings.roots = roots
                settings.root_source = ROOT_SOURCE_GIT_CONFIG
            else:
                settings.roots = [expand_tilde(DEFAULT_ROOT)]

        user = self.executor.try_execute("config", "--get", GIT_CONFIG_KEY_USER)
        if user:
            settings.user = user.strip()
        else:
            try:
                settings.user = getpass.getuser()
            except (KeyError, OSError) as e:
                logger.debug(f"Could not determine OS user: {e}")

        logger.debug(
            f"Resolved roots {settings.roots} (from {settings.root_source}), user '{settings.user}'"
        )
        return settings
