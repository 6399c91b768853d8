"""Remote sync - provisions the GitHub repository and pushes tracking commits."""

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

from ..config import DEFAULT_REPOSITORY_NAME
from ..errors import AuthInvalidError, SyncFailedError
from .git_repo import CommitStatus, GitCommandError
from .github_client import RepositoryResult
from .protocols import GitHubClientProtocol, GitRepositoryProtocol

__all__ = ["RemoteSync", "SyncOutcome"]

logger = logging.getLogger(__name__)

DEFAULT_GIT_HOST = "github.com"


@dataclass
class SyncOutcome:
    """Result of one commit-and-push."""

    status: CommitStatus
    pushed: bool = True

    @property
    def committed(self) -> bool:
        return self.status is CommitStatus.COMMITTED


class RemoteSync:
    """Wraps the GitHub client and the git working tree.

    Stateless apart from the cached identity/token and whether the remote
    has been configured in this process.
    """

    def __init__(
        self,
        github: GitHubClientProtocol,
        repo: GitRepositoryProtocol,
        repository_name: str = DEFAULT_REPOSITORY_NAME,
        remote_name: str = "origin",
        branch: str = "main",
        git_host: str = DEFAULT_GIT_HOST,
    ):
        self.github = github
        self.repo = repo
        self.repository_name = repository_name
        self.remote_name = remote_name
        self.branch = branch
        self.git_host = git_host
        self._identity: Optional[str] = None
        self._token: Optional[str] = None
        self._remote_configured = False

    @property
    def identity(self) -> Optional[str]:
        return self._identity

    def resolve_identity(self, token: str) -> str:
        """Look up the GitHub login that owns ``token``.

        Raises:
            AuthInvalidError: If GitHub rejects the token
        """
        user = self.github.get_user(token)
        login = user.get("login") if isinstance(user, dict) else None
        if not login:
            raise AuthInvalidError("GitHub user response has no login")
        self._identity = login
        self._token = token
        logger.info(f"Authenticated as {login}")
        return login

    def ensure_repository(self, token: str, name: Optional[str] = None) -> RepositoryResult:
        """Create the private tracking repository unless it already exists.

        Raises:
            RemoteProvisionFailedError: For any failure other than "already exists"
        """
        return self.github.create_repository(token, name or self.repository_name)

    def prepare_working_tree(self) -> None:
        """Initialize the local repository and its commit identity.

        Raises:
            SyncFailedError: If git cannot set up the working tree
        """
        try:
            if not self.repo.is_initialized():
                self.repo.init(self.branch)
            if self._identity:
                if self.repo.get_config("user.name") is None:
                    self.repo.set_config("user.name", self._identity)
                if self.repo.get_config("user.email") is None:
                    self.repo.set_config(
                        "user.email", f"{self._identity}@users.noreply.github.com"
                    )
        except GitCommandError as e:
            raise SyncFailedError(f"Cannot prepare tracking repository: {e}", cause=e) from e

    def has_commits(self) -> bool:
        try:
            return self.repo.has_commits()
        except GitCommandError:
            return False

    def remote_url(self) -> str:
        if not self._identity or not self._token:
            raise SyncFailedError("Identity not resolved; cannot build remote URL")
        encoded = quote(self._token, safe="")
        return f"https://{encoded}@{self.git_host}/{self._identity}/{self.repository_name}.git"

    def configure(self, repository_name: str, remote_name: str, branch: str) -> None:
        """Apply changed repository settings; used on the next commit.

        A renamed repository is provisioned right away when a token is
        cached, and the remote is re-pointed before the next push.

        Raises:
            RemoteProvisionFailedError: If the renamed repository cannot be created
        """
        renamed = repository_name != self.repository_name
        if renamed and self._token:
            self.github.create_repository(self._token, repository_name)
        if renamed or remote_name != self.remote_name:
            self._remote_configured = False
        self.repository_name = repository_name
        self.remote_name = remote_name
        self.branch = branch
        logger.info(f"Sync target: {remote_name} -> {repository_name} ({branch})")

    def _ensure_remote(self) -> None:
        """Point the remote at the tracking repository once per configuration."""
        if self._remote_configured:
            return
        url = self.remote_url()
        current = self.repo.get_remote_url(self.remote_name)
        if current is None:
            self.repo.add_remote(self.remote_name, url)
            logger.info(f"Added remote {self.remote_name}")
        elif current != url:
            self.repo.set_remote_url(self.remote_name, url)
            logger.info(f"Updated remote {self.remote_name}")
        self._remote_configured = True

    def commit_and_push(self, message: str) -> SyncOutcome:
        """Stage everything, commit with ``message`` and push.

        An unchanged working tree is not an error: the push still runs so
        commits left behind by an earlier failed push are delivered.

        Raises:
            SyncFailedError: If any git step fails or times out
        """
        try:
            self._ensure_remote()
            self.repo.stage_all()
            status = self.repo.commit(message)
            if status is CommitStatus.NOTHING_TO_COMMIT:
                logger.info("Nothing to commit")
                if not self.repo.has_commits():
                    return SyncOutcome(status, pushed=False)
            self.repo.push(self.remote_name, self.branch)
        except GitCommandError as e:
            raise SyncFailedError(f"Sync failed: {e}", cause=e) from e

        logger.info(f"Pushed to {self.remote_name}/{self.branch} ({status.value})")
        return SyncOutcome(status)
