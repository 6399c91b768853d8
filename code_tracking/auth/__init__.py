"""Auth module - secure storage of the GitHub access token."""

from .keychain import KeychainManager

__all__ = ["KeychainManager"]
