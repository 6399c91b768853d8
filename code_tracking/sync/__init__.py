"""Sync module - GitHub provisioning and git commit/push of tracking data."""

from .git_repo import CommitStatus, GitCommandError, GitRepository
from .github_client import GitHubClient, RepositoryResult
from .protocols import GitHubClientProtocol, GitRepositoryProtocol
from .remote_sync import RemoteSync, SyncOutcome

__all__ = [
    "CommitStatus",
    "GitCommandError",
    "GitRepository",
    "GitHubClient",
    "RepositoryResult",
    "GitHubClientProtocol",
    "GitRepositoryProtocol",
    "RemoteSync",
    "SyncOutcome",
]
