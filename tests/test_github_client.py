"""Tests for the GitHub API client."""

import json

import pytest
import requests
import responses

from code_tracking.errors import AuthInvalidError, RemoteProvisionFailedError
from code_tracking.sync.github_client import REPOSITORY_DESCRIPTION, GitHubClient

API = "https://api.github.com"


class TestGitHubClient:
    """Tests for GitHubClient."""

    def setup_method(self):
        self.client = GitHubClient()

    def teardown_method(self):
        self.client.close()

    def test_headers(self):
        headers = self.client._get_headers("tok")

        assert headers["Authorization"] == "Bearer tok"
        assert headers["Accept"] == "application/vnd.github.v3+json"
        assert headers["User-Agent"].startswith("Code-Tracking/")

    @responses.activate
    def test_get_user(self):
        responses.add(responses.GET, f"{API}/user", json={"login": "octocat"}, status=200)

        user = self.client.get_user("tok")

        assert user["login"] == "octocat"
        assert responses.calls[0].request.headers["Authorization"] == "Bearer tok"

    @responses.activate
    def test_get_user_unauthorized(self):
        responses.add(
            responses.GET, f"{API}/user", json={"message": "Bad credentials"}, status=401
        )

        with pytest.raises(AuthInvalidError, match="401"):
            self.client.get_user("bad")

    @responses.activate
    def test_get_user_connection_error(self):
        responses.add(
            responses.GET, f"{API}/user", body=requests.exceptions.ConnectionError("down")
        )

        with pytest.raises(AuthInvalidError):
            self.client.get_user("tok")

    @responses.activate
    def test_create_repository(self):
        responses.add(
            responses.POST,
            f"{API}/user/repos",
            json={
                "name": "code-tracking-stats",
                "full_name": "octocat/code-tracking-stats",
                "clone_url": "https://github.com/octocat/code-tracking-stats.git",
            },
            status=201,
        )

        result = self.client.create_repository("tok", "code-tracking-stats")

        assert result.created is True
        assert result.clone_url == "https://github.com/octocat/code-tracking-stats.git"
        body = json.loads(responses.calls[0].request.body)
        assert body == {
            "name": "code-tracking-stats",
            "private": True,
            "description": REPOSITORY_DESCRIPTION,
        }

    @responses.activate
    def test_get_user_non_json_body(self):
        responses.add(responses.GET, f"{API}/user", body="<html>proxy</html>", status=200)

        with pytest.raises(AuthInvalidError):
            self.client.get_user("tok")

    @responses.activate
    def test_get_user_non_object_body(self):
        responses.add(responses.GET, f"{API}/user", json=["octocat"], status=200)

        with pytest.raises(AuthInvalidError):
            self.client.get_user("tok")

    @responses.activate
    def test_create_repository_non_json_body(self):
        responses.add(responses.POST, f"{API}/user/repos", body="created", status=201)

        result = self.client.create_repository("tok", "code-tracking-stats")

        assert result.created is True
        assert result.name == "code-tracking-stats"
        assert result.clone_url is None

    @responses.activate
    def test_create_repository_malformed_error_body(self):
        responses.add(
            responses.POST,
            f"{API}/user/repos",
            json={"message": 500, "errors": "nope"},
            status=422,
        )

        with pytest.raises(RemoteProvisionFailedError, match="422"):
            self.client.create_repository("tok", "code-tracking-stats")

    @responses.activate
    def test_create_repository_already_exists(self):
        responses.add(
            responses.POST,
            f"{API}/user/repos",
            json={
                "message": "Repository creation failed.",
                "errors": [
                    {
                        "resource": "Repository",
                        "code": "custom",
                        "field": "name",
                        "message": "name already exists on this account",
                    }
                ],
            },
            status=422,
        )

        result = self.client.create_repository("tok", "code-tracking-stats")

        assert result.created is False
        assert result.name == "code-tracking-stats"

    @responses.activate
    def test_create_repository_other_validation_error(self):
        responses.add(
            responses.POST,
            f"{API}/user/repos",
            json={
                "message": "Repository creation failed.",
                "errors": [{"field": "name", "message": "name is too long"}],
            },
            status=422,
        )

        with pytest.raises(RemoteProvisionFailedError, match="too long"):
            self.client.create_repository("tok", "x" * 200)

    @responses.activate
    def test_create_repository_server_error(self):
        responses.add(responses.POST, f"{API}/user/repos", body="oops", status=500)

        with pytest.raises(RemoteProvisionFailedError, match="500"):
            self.client.create_repository("tok", "code-tracking-stats")

    @responses.activate
    def test_create_repository_timeout(self):
        responses.add(
            responses.POST, f"{API}/user/repos", body=requests.exceptions.Timeout()
        )

        with pytest.raises(RemoteProvisionFailedError, match="timed out"):
            self.client.create_repository("tok", "code-tracking-stats")

    @responses.activate
    def test_custom_api_url(self):
        client = GitHubClient(api_url="https://ghe.example.com/api/v3/")
        responses.add(
            responses.GET, "https://ghe.example.com/api/v3/user", json={"login": "me"}
        )

        assert client.get_user("tok") == {"login": "me"}
        client.close()
