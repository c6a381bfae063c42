"""
Configuration management for gator.

Runtime settings come from the environment (optionally a ``.env`` file). The
logged-in user lives in a small JSON session file in the home directory.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import SessionError

# Load environment variables
load_dotenv()

SESSION_FILE_NAME = ".gatorconfig.json"


@dataclass
class DatabaseConfig:
    """Relational store configuration."""

    url: str = field(
        default_factory=lambda: os.getenv("GATOR_DB_URL", "sqlite:///gator.db")
    )
    echo: bool = field(
        default_factory=lambda: os.getenv("GATOR_DB_ECHO", "False").lower() == "true"
    )


@dataclass
class SchedulerConfig:
    """Feed aggregation configuration."""

    interval: str = field(
        default_factory=lambda: os.getenv("GATOR_FETCH_INTERVAL", "1m")
    )
    concurrency: int = field(
        default_factory=lambda: int(os.getenv("GATOR_FETCH_CONCURRENCY", "1"))
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.getenv("GATOR_REQUEST_TIMEOUT", "30"))
    )
    user_agent: str = field(
        default_factory=lambda: os.getenv("GATOR_USER_AGENT", "gator")
    )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    format: str = field(
        default_factory=lambda: os.getenv(
            "LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
    )
    file_path: Optional[str] = field(default_factory=lambda: os.getenv("LOG_FILE_PATH"))


@dataclass
class Config:
    """Main configuration class."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> bool:
        """Validate configuration settings."""
        errors = []

        if not self.database.url:
            errors.append("Database URL is required")

        if self.scheduler.concurrency < 1:
            errors.append("Fetch concurrency must be at least 1")

        if self.scheduler.request_timeout <= 0:
            errors.append("Request timeout must be positive")

        if not isinstance(logging.getLevelName(self.logging.level.upper()), int):
            errors.append(f"Unknown log level: {self.logging.level}")

        if errors:
            raise ValueError(f"Configuration validation failed: {'; '.join(errors)}")

        return True


def session_path() -> Path:
    """Location of the session file, overridable with GATOR_CONFIG_PATH."""
    override = os.getenv("GATOR_CONFIG_PATH")
    if override:
        return Path(override)
    return Path.home() / SESSION_FILE_NAME


@dataclass
class SessionConfig:
    """Persisted CLI session: which database to use and who is logged in."""

    db_url: Optional[str] = None
    current_user_name: Optional[str] = None
    path: Path = field(default_factory=session_path, repr=False, compare=False)

    def set_user(self, name: str) -> None:
        """Switch the current user and persist the session immediately."""
        self.current_user_name = name
        self.write()

    def clear_user(self) -> None:
        self.current_user_name = None
        self.write()

    def write(self) -> None:
        data = {"db_url": self.db_url, "current_user_name": self.current_user_name}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2))


def read_session(path: Optional[Path] = None) -> SessionConfig:
    """
    Read the session file.

    Args:
        path: Explicit file location, defaults to :func:`session_path`

    Returns:
        The stored session, or an empty one when the file does not exist

    Raises:
        SessionError: If the file cannot be read or is not a JSON object
    """
    path = path or session_path()
    if not path.exists():
        return SessionConfig(path=path)

    try:
        data = json.loads(path.read_text() or "{}")
    except (OSError, json.JSONDecodeError) as e:
        raise SessionError(f"cannot read session file {path}: {e}") from e
    if not isinstance(data, dict):
        raise SessionError(f"session file {path} must hold a JSON object")

    return SessionConfig(
        db_url=data.get("db_url") or None,
        current_user_name=data.get("current_user_name") or None,
        path=path,
    )


# Global configuration instance
config = Config()


def get_config() -> Config:
    """Get the global configuration instance."""
    return config


def reload_config() -> Config:
    """Reload configuration from environment variables."""
    global config
    load_dotenv(override=True)
    config = Config()
    return config
