"""Thin wrapper around the git CLI for the tracking working tree."""

import logging
import os
import re
import subprocess
from enum import Enum
from pathlib import Path
from typing import Optional

__all__ = ["GitRepository", "GitCommandError", "CommitStatus", "redact_url"]

logger = logging.getLogger(__name__)

_CREDENTIAL_RE = re.compile(r"(https?://)[^/@\s]+@")


def redact_url(text: str) -> str:
    """Hide credentials embedded in remote URLs."""
    return _CREDENTIAL_RE.sub(r"\1***@", text)


class CommitStatus(str, Enum):
    """Outcome of a commit attempt."""

    COMMITTED = "committed"
    NOTHING_TO_COMMIT = "nothing_to_commit"


class GitCommandError(Exception):
    """A git command failed, timed out, or git is not installed."""

    def __init__(
        self,
        command: list[str],
        returncode: Optional[int] = None,
        stderr: str = "",
        timed_out: bool = False,
    ):
        self.command = command
        self.returncode = returncode
        self.stderr = redact_url(stderr.strip())
        self.timed_out = timed_out
        shown = redact_url(" ".join(command))
        if timed_out:
            message = f"`{shown}` timed out"
        elif returncode is None:
            message = f"`{shown}` could not run: {self.stderr}"
        else:
            message = f"`{shown}` exited with {returncode}: {self.stderr}"
        super().__init__(message)


class GitRepository:
    """Runs git commands against one working tree.

    Every command has a timeout so a hung network operation (usually a
    push) cannot block the caller forever.
    """

    def __init__(self, path: Path, timeout: float = 120, git_executable: str = "git"):
        """Initialize the wrapper.

        Args:
            path: Working tree directory
            timeout: Per-command timeout in seconds
            git_executable: git binary to run
        """
        self.path = path
        self.timeout = timeout
        self.git_executable = git_executable

    def _run(self, *args: str, check: bool = True) -> subprocess.CompletedProcess:
        command = [self.git_executable, *args]
        env = os.environ.copy()
        # Never block waiting for a username/password prompt
        env["GIT_TERMINAL_PROMPT"] = "0"
        try:
            result = subprocess.run(
                command,
                cwd=str(self.path),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=env,
            )
        except subprocess.TimeoutExpired as e:
            raise GitCommandError(command, timed_out=True) from e
        except OSError as e:
            raise GitCommandError(command, stderr=str(e)) from e

        if check and result.returncode != 0:
            raise GitCommandError(command, result.returncode, result.stderr)
        return result

    # -- Repository setup -------------------------------------------------

    def is_initialized(self) -> bool:
        return (self.path / ".git").exists()

    def init(self, branch: str = "main") -> None:
        """Create the repository with ``branch`` as its initial branch."""
        self.path.mkdir(parents=True, exist_ok=True)
        self._run("init")
        self._run("symbolic-ref", "HEAD", f"refs/heads/{branch}")
        logger.info(f"Initialized git repository at {self.path}")

    def has_commits(self) -> bool:
        return self._run("rev-parse", "--verify", "--quiet", "HEAD", check=False).returncode == 0

    def get_config(self, key: str) -> Optional[str]:
        result = self._run("config", "--local", "--get", key, check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def set_config(self, key: str, value: str) -> None:
        self._run("config", "--local", key, value)

    # -- Remotes ----------------------------------------------------------

    def get_remote_url(self, name: str) -> Optional[str]:
        result = self._run("remote", "get-url", name, check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def add_remote(self, name: str, url: str) -> None:
        self._run("remote", "add", name, url)

    def set_remote_url(self, name: str, url: str) -> None:
        self._run("remote", "set-url", name, url)

    # -- Commit cycle -----------------------------------------------------

    def stage_all(self) -> None:
        self._run("add", "--all")

    def has_staged_changes(self) -> bool:
        """Check the index against HEAD via ``git diff --cached --quiet``.

        Exit status 1 means differences, 0 means none; anything else is an
        error.
        """
        result = self._run("diff", "--cached", "--quiet", check=False)
        if result.returncode == 0:
            return False
        if result.returncode == 1:
            return True
        raise GitCommandError(
            [self.git_executable, "diff", "--cached", "--quiet"],
            result.returncode,
            result.stderr,
        )

    def commit(self, message: str) -> CommitStatus:
        """Commit staged changes.

        Returns:
            NOTHING_TO_COMMIT when the index matches HEAD, else COMMITTED
        """
        if not self.has_staged_changes():
            return CommitStatus.NOTHING_TO_COMMIT
        self._run("commit", "--quiet", "-m", message)
        return CommitStatus.COMMITTED

    def push(self, remote: str, branch: str) -> None:
        self._run("push", "--quiet", remote, f"HEAD:refs/heads/{branch}")
