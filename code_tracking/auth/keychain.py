"""Secure GitHub token storage using the system keychain."""

import logging
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

__all__ = ["KeychainManager"]

logger = logging.getLogger(__name__)

SERVICE_NAME = "Code Tracking"
ACCOUNT_NAME = "github_token"


class KeychainManager:
    """Manages the stored GitHub access token.

    The token is read once per activation and only ever sent as a
    bearer header; it is never logged.
    """

    def __init__(self, service_name: str = SERVICE_NAME):
        """Initialize keychain manager.

        Args:
            service_name: Service name for keychain entries
        """
        self.service_name = service_name

    def store(self, token: str) -> bool:
        """Store the token in the keychain.

        Returns:
            True if stored successfully
        """
        try:
            keyring.set_password(self.service_name, ACCOUNT_NAME, token)
            logger.info("GitHub token stored")
            return True
        except KeyringError as e:
            logger.error(f"Failed to store token: {e}")
            return False

    def load(self) -> Optional[str]:
        """Load the token from the keychain.

        Returns:
            The token if found, None otherwise
        """
        try:
            return keyring.get_password(self.service_name, ACCOUNT_NAME) or None
        except KeyringError as e:
            logger.error(f"Failed to load token: {e}")
            return None

    def delete(self) -> bool:
        """Delete the stored token.

        Returns:
            True if deleted (or didn't exist)
        """
        try:
            keyring.delete_password(self.service_name, ACCOUNT_NAME)
            logger.info("GitHub token deleted")
            return True
        except PasswordDeleteError:
            # Token didn't exist
            return True
        except KeyringError as e:
            logger.error(f"Failed to delete token: {e}")
            return False

    def has_token(self) -> bool:
        """Check if a token is stored."""
        return self.load() is not None
