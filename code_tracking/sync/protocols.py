"""Protocol types for RemoteSync dependencies.

Defines the interfaces RemoteSync requires from the hosting provider and
the version-control collaborator, so tests can substitute either.
"""

from typing import Optional, Protocol, runtime_checkable

from .git_repo import CommitStatus
from .github_client import RepositoryResult


@runtime_checkable
class GitHubClientProtocol(Protocol):
    """Interface for the hosting provider."""

    def get_user(self, token: str) -> dict: ...

    def create_repository(self, token: str, name: str) -> RepositoryResult: ...


@runtime_checkable
class GitRepositoryProtocol(Protocol):
    """Interface for the version-control working tree."""

    def is_initialized(self) -> bool: ...

    def init(self, branch: str = "main") -> None: ...

    def has_commits(self) -> bool: ...

    def get_config(self, key: str) -> Optional[str]: ...

    def set_config(self, key: str, value: str) -> None: ...

    def get_remote_url(self, name: str) -> Optional[str]: ...

    def add_remote(self, name: str, url: str) -> None: ...

    def set_remote_url(self, name: str, url: str) -> None: ...

    def stage_all(self) -> None: ...

    def commit(self, message: str) -> CommitStatus: ...

    def push(self, remote: str, branch: str) -> None: ...
