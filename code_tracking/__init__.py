"""Code Tracking - records coding time and syncs it to a private GitHub repo."""

__version__ = "1.0.0"
