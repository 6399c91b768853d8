"""Configuration management for Code Tracking."""

import json
import logging
from dataclasses import dataclass, asdict
from datetime import timedelta
from pathlib import Path
from typing import Optional

from platformdirs import user_config_dir, user_data_dir, user_log_dir

__all__ = [
    "Config",
    "setup_logging",
    "DATA_FILE_NAME",
    "DEFAULT_API_URL",
    "DEFAULT_REPOSITORY_NAME",
    "DEFAULT_COMMIT_INTERVAL_MS",
]

logger = logging.getLogger(__name__)

APP_NAME = "Code Tracking"
APP_AUTHOR = "CodeTracking"

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_REPOSITORY_NAME = "code-tracking-stats"
DATA_FILE_NAME = "coding-data.json"

# Scheduling
DEFAULT_COMMIT_INTERVAL_MS = 30 * 60 * 1000  # 30 minutes
DEFAULT_POLL_INTERVAL = 60  # seconds
DEFAULT_SYNC_TIMEOUT = 120  # seconds, per git command
MIN_COMMIT_INTERVAL_MS = 1000
MIN_POLL_INTERVAL = 1


@dataclass
class Config:
    """Main configuration object."""

    repository_name: str = DEFAULT_REPOSITORY_NAME
    commit_interval_ms: int = DEFAULT_COMMIT_INTERVAL_MS
    poll_interval_seconds: int = DEFAULT_POLL_INTERVAL
    sync_timeout_seconds: int = DEFAULT_SYNC_TIMEOUT
    api_url: str = DEFAULT_API_URL
    remote_name: str = "origin"
    branch: str = "main"
    notifications_enabled: bool = True
    debug_mode: bool = False

    def __post_init__(self) -> None:
        self.commit_interval_ms = max(MIN_COMMIT_INTERVAL_MS, int(self.commit_interval_ms))
        self.poll_interval_seconds = max(MIN_POLL_INTERVAL, int(self.poll_interval_seconds))

    @property
    def commit_interval(self) -> timedelta:
        return timedelta(milliseconds=self.commit_interval_ms)

    @classmethod
    def get_config_dir(cls) -> Path:
        """Get the configuration directory path."""
        return Path(user_config_dir(APP_NAME, APP_AUTHOR))

    @classmethod
    def get_data_dir(cls) -> Path:
        """Get the data directory path (state DB, git working tree)."""
        return Path(user_data_dir(APP_NAME, APP_AUTHOR))

    @classmethod
    def get_log_dir(cls) -> Path:
        """Get the log directory path."""
        return Path(user_log_dir(APP_NAME, APP_AUTHOR))

    @classmethod
    def get_config_file(cls) -> Path:
        """Get the config file path."""
        return cls.get_config_dir() / "config.json"

    @classmethod
    def get_repo_dir(cls) -> Path:
        """Get the git working tree holding the tracking data file."""
        return cls.get_data_dir() / "repo"

    @classmethod
    def get_data_file(cls) -> Path:
        """Get the tracking data file path."""
        return cls.get_repo_dir() / DATA_FILE_NAME

    @classmethod
    def load(cls, config_file: Optional[Path] = None) -> "Config":
        """Load config from file, or return defaults."""
        config_file = config_file or cls.get_config_file()
        if config_file.exists():
            try:
                with open(config_file, "r", encoding="utf-8") as f:
                    data = json.load(f)
                return cls._from_dict(data)
            except Exception as e:
                logger.warning(f"Failed to load config: {e}, using defaults")
        return cls()

    @classmethod
    def _from_dict(cls, data: dict) -> "Config":
        """Create Config from dictionary, ignoring unknown keys."""
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})

    def save(self, config_file: Optional[Path] = None) -> None:
        """Save config to file."""
        config_file = config_file or self.get_config_file()
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, "w", encoding="utf-8") as f:
            json.dump(asdict(self), f, indent=2)
        logger.info(f"Config saved to {config_file}")


def setup_logging(debug: bool = False) -> None:
    """Configure logging."""
    log_dir = Config.get_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "code-tracking.log"

    level = logging.DEBUG if debug else logging.INFO
    format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(),
        ],
    )

    # Reduce noise from libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
