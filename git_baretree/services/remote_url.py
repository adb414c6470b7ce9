"""Parses remote URLs and short repository paths into host/user/repo."""

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from git_baretree.exceptions import RemoteURLError
from git_baretree.services.git.repository import RepositoryService

# git@github.com:user/repo.git
SSH_URL_PATTERN = re.compile(r"^(?:[\w-]+@)?([\w.-]+):(.+?)(?:\.git)?$")


@dataclass(frozen=True)
class RepoPath:
    """A repository location under a managed root."""
    host: str
    user: str
    repo: str

    def __str__(self) -> str:
        return "/".join([self.host, self.user, self.repo])


def _strip_git_suffix(path: str) -> str:
    return path[:-len(".git")] if path.endswith(".git") else path


def parse_repo_path(value: str, default_host: str = "", default_user: str = "") -> RepoPath:
    """Parse a repository URL or path.

    Supported forms:
        https://github.com/user/repo.git
        git@github.com:user/repo.git
        github.com/user/repo
        user/repo           (needs default_host)
        repo                (needs default_host and default_user)

    Raises:
        RemoteURLError: If the input cannot be resolved to host/user/repo
    """
    value = (value or "").strip()
    if not value:
        raise RemoteURLError("empty repository path")

    if value.startswith(("http://", "https://")):
        url = urlparse(value)
        parts = _strip_git_suffix(url.path.lstrip("/")).split("/")
        if len(parts) >= 2 and url.netloc and all(parts):
            return RepoPath(url.netloc, parts[0], "/".join(parts[1:]))
        raise RemoteURLError(f"invalid HTTPS URL format: {value}")

    match = SSH_URL_PATTERN.match(value)
    if match:
        parts = _strip_git_suffix(match.group(2)).split("/")
        if len(parts) >= 2:
            return RepoPath(match.group(1), parts[0], "/".join(parts[1:]))
        raise RemoteURLError(f"invalid SSH URL format: {value}")

    parts = value.split("/")
    if len(parts) == 1:
        if not default_host or not default_user:
            raise RemoteURLError(f"cannot determine host and user for: {value}")
        return RepoPath(default_host, default_user, parts[0])
    if len(parts) == 2:
        if not default_host:
            raise RemoteURLError(f"cannot determine host for: {value}")
        return RepoPath(default_host, parts[0], parts[1])
    return RepoPath(parts[0], parts[1], "/".join(parts[2:]))


def parse_remote_url(remote_url: str) -> RepoPath:
    """Parse a git remote URL; no defaults apply."""
    return parse_repo_path(remote_url)


def detect_repo_path(repository: RepositoryService) -> Optional[RepoPath]:
    """RepoPath of the repository's origin (or first) remote, None without remotes."""
    url = repository.remote_url()
    if not url:
        return None
    return parse_remote_url(url)
