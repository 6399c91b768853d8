"""Error types for Code Tracking."""

from typing import Optional

__all__ = [
    "CodeTrackingError",
    "CredentialMissingError",
    "GitHubClientError",
    "AuthInvalidError",
    "RemoteProvisionFailedError",
    "SyncFailedError",
    "LocalWriteFailedError",
    "TrackingLogError",
]


class CodeTrackingError(Exception):
    """Base error for Code Tracking."""

    pass


class CredentialMissingError(CodeTrackingError):
    """No GitHub token stored and none supplied by the user."""

    pass


class GitHubClientError(CodeTrackingError):
    """GitHub API error."""

    pass


class AuthInvalidError(GitHubClientError):
    """Token rejected by the identity endpoint."""

    pass


class RemoteProvisionFailedError(GitHubClientError):
    """Tracking repository could not be created."""

    pass


class SyncFailedError(CodeTrackingError):
    """Stage, commit or push failed. Retried on the next tick."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class LocalWriteFailedError(CodeTrackingError):
    """The tracking data file could not be written."""

    pass


class TrackingLogError(CodeTrackingError):
    """The tracking data file exists but cannot be parsed."""

    pass
