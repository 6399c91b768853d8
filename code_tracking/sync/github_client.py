"""GitHub REST client - identity lookup and tracking repository provisioning."""

import logging
from dataclasses import dataclass
from typing import Optional

import requests

from .. import __version__
from ..config import DEFAULT_API_URL
from ..errors import AuthInvalidError, GitHubClientError, RemoteProvisionFailedError

__all__ = [
    "GitHubClient",
    "RepositoryResult",
    "REPOSITORY_DESCRIPTION",
]

logger = logging.getLogger(__name__)

REPOSITORY_DESCRIPTION = "Private repo for code tracking"


@dataclass
class RepositoryResult:
    """Result of ensuring the tracking repository exists."""

    name: str
    created: bool
    clone_url: Optional[str] = None


class GitHubClient:
    """Client for the two GitHub endpoints the tracker needs.

    Calls are made once per activation, so there is no retry: any
    non-2xx response becomes a typed error and aborts the start.
    """

    USER_AGENT = f"Code-Tracking/{__version__}"
    ACCEPT = "application/vnd.github.v3+json"

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        """Initialize GitHub client.

        Args:
            api_url: GitHub API base URL
            timeout: Request timeout in seconds
            session: Optional requests session (for dependency injection/testing)
        """
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._owns_session = session is None

    def _get_headers(self, token: str) -> dict:
        return {
            "Accept": self.ACCEPT,
            "User-Agent": self.USER_AGENT,
            "Authorization": f"Bearer {token}",
        }

    def _request(
        self,
        method: str,
        endpoint: str,
        token: str,
        data: Optional[dict] = None,
    ) -> requests.Response:
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        kwargs: dict = {"timeout": self.timeout, "headers": self._get_headers(token)}
        if data is not None:
            kwargs["json"] = data

        try:
            return self._session.request(method, url, **kwargs)
        except requests.exceptions.Timeout as e:
            raise GitHubClientError("GitHub request timed out") from e
        except requests.exceptions.RequestException as e:
            raise GitHubClientError(f"Cannot connect to GitHub: {e}") from e

    @staticmethod
    def _json_object(response: requests.Response) -> Optional[dict]:
        """Decode a JSON object body, or None if the body is anything else."""
        try:
            body = response.json()
        except ValueError:
            return None
        return body if isinstance(body, dict) else None

    @staticmethod
    def _error_detail(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text
        message = str(body.get("message") or "") if isinstance(body, dict) else ""
        errors = body.get("errors") if isinstance(body, dict) else None
        if not isinstance(errors, list):
            errors = []
        details = [str(e.get("message") or "") for e in errors if isinstance(e, dict)]
        return "; ".join(filter(None, [message, *details])) or response.text

    def get_user(self, token: str) -> dict:
        """Fetch the authenticated user (``GET /user``).

        Raises:
            AuthInvalidError: For any non-2xx response or a non-object body
            GitHubClientError: For network failures
        """
        try:
            response = self._request("GET", "user", token)
        except GitHubClientError as e:
            raise AuthInvalidError(str(e)) from e

        if not response.ok:
            raise AuthInvalidError(
                f"GitHub API {response.status_code}: {self._error_detail(response)}"
            )
        body = self._json_object(response)
        if body is None:
            raise AuthInvalidError("GitHub API returned an unexpected user response")
        return body

    def create_repository(
        self,
        token: str,
        name: str,
        description: str = REPOSITORY_DESCRIPTION,
    ) -> RepositoryResult:
        """Create a private repository, treating "already exists" as success.

        Raises:
            RemoteProvisionFailedError: For any other non-2xx response or a
                network failure
        """
        payload = {"name": name, "private": True, "description": description}
        try:
            response = self._request("POST", "user/repos", token, data=payload)
        except GitHubClientError as e:
            raise RemoteProvisionFailedError(str(e)) from e

        if response.status_code == 201:
            # Created either way; the body only adds details
            body = self._json_object(response) or {}
            logger.info(f"Created repository {body.get('full_name', name)}")
            return RepositoryResult(
                name=body.get("name", name),
                created=True,
                clone_url=body.get("clone_url"),
            )

        if response.status_code == 422 and self._already_exists(response):
            logger.info(f"Repository {name} already exists")
            return RepositoryResult(name=name, created=False)

        raise RemoteProvisionFailedError(
            f"Repo creation failed {response.status_code}: {self._error_detail(response)}"
        )

    @staticmethod
    def _already_exists(response: requests.Response) -> bool:
        try:
            body = response.json()
        except ValueError:
            return "already exists" in response.text
        errors = body.get("errors") if isinstance(body, dict) else None
        if not isinstance(errors, list):
            errors = []
        return any(
            "already exists" in str(e.get("message", "")) for e in errors if isinstance(e, dict)
        )

    def close(self) -> None:
        """Close the session if we own it."""
        if self._owns_session and self._session is not None:
            self._session.close()
            self._session = None

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
