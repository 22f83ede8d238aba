"""Configuration management for CodeTrack Sync."""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Optional

from platformdirs import user_config_dir, user_data_dir, user_log_dir

__all__ = [
    "Config",
    "setup_logging",
    "DEFAULT_COMMIT_INTERVAL",
    "DEFAULT_REPO_NAME",
    "DEFAULT_SUMMARY_FILENAME",
    "DEFAULT_BRANCH",
    "TIMER_FIELDS",
    "RESTART_FIELDS",
]

logger = logging.getLogger(__name__)

APP_NAME = "CodeTrack Sync"
APP_AUTHOR = "CodeTrack"

# Tracking repository defaults
DEFAULT_REPO_NAME = "code-tracking"
DEFAULT_SUMMARY_FILENAME = "coding_summary.txt"
DEFAULT_BRANCH = "main"

DEFAULT_COMMIT_INTERVAL = 30  # minutes
MIN_COMMIT_INTERVAL = 1

ENV_TOKEN = "CODETRACK_GITHUB_TOKEN"
ENV_USERNAME = "CODETRACK_GITHUB_USERNAME"

# Changing these rebuilds the timers; the rest need a restart.
TIMER_FIELDS = frozenset({"commit_interval", "commit_message_prefix", "time_zone"})
RESTART_FIELDS = frozenset({"track_file_opens", "workspace_path", "repo_name", "summary_filename"})


@dataclass(frozen=True)
class Config:
    """Main configuration object.

    Loaded once at startup and again on every change notification;
    instances are never mutated.
    """

    github_token: Optional[str] = None
    github_username: Optional[str] = None
    commit_interval: int = DEFAULT_COMMIT_INTERVAL  # minutes
    commit_message_prefix: str = ""
    time_zone: Optional[str] = None  # IANA name, None = system zone
    track_file_opens: bool = False
    workspace_path: Optional[str] = None
    repo_name: str = DEFAULT_REPO_NAME
    summary_filename: str = DEFAULT_SUMMARY_FILENAME
    branch: str = DEFAULT_BRANCH
    oauth_client_id: Optional[str] = None
    debug_mode: bool = False

    def __post_init__(self) -> None:
        if self.commit_interval < MIN_COMMIT_INTERVAL:
            object.__setattr__(self, "commit_interval", MIN_COMMIT_INTERVAL)

    @classmethod
    def get_config_dir(cls) -> Path:
        """Get the configuration directory path."""
        return Path(user_config_dir(APP_NAME, APP_AUTHOR))

    @classmethod
    def get_data_dir(cls) -> Path:
        """Get the data directory path (local clone, persisted counters)."""
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
    def get_log_file(cls) -> Path:
        return cls.get_log_dir() / "codetrack-sync.log"

    @property
    def local_repo_path(self) -> Path:
        """Where the tracking repository is cloned."""
        return self.get_data_dir() / self.repo_name

    @property
    def workspace_root(self) -> Path:
        """Folder observed for activity (also the workspace repository)."""
        if self.workspace_path:
            return Path(self.workspace_path).expanduser().resolve()
        return Path.cwd()

    @property
    def static_credentials(self) -> tuple[Optional[str], Optional[str]]:
        """Token and username from the environment, falling back to the file."""
        token = os.getenv(ENV_TOKEN) or self.github_token
        username = os.getenv(ENV_USERNAME) or self.github_username
        return token or None, username or None

    @classmethod
    def load(cls, config_file: Optional[Path] = None) -> "Config":
        """Load config from file, or return defaults."""
        config_file = config_file or cls.get_config_file()
        if config_file.exists():
            try:
                with open(config_file, "r", encoding="utf-8") as f:
                    data = json.load(f)
                return cls._from_dict(data)
            except (OSError, ValueError, TypeError) as e:
                logger.warning(f"Failed to load config: {e}, using defaults")
        return cls()

    @classmethod
    def _from_dict(cls, data: dict) -> "Config":
        """Create Config from dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        # Accept the camelCase names used by editor settings.
        aliases = {
            "githubToken": "github_token",
            "githubUsername": "github_username",
            "commitInterval": "commit_interval",
            "commitMessagePrefix": "commit_message_prefix",
            "timeZone": "time_zone",
            "trackFileOpens": "track_file_opens",
        }
        values = {}
        for key, value in data.items():
            key = aliases.get(key, key)
            if key in known:
                values[key] = value
        if "commit_interval" in values:
            values["commit_interval"] = int(values["commit_interval"])
        return cls(**values)

    def save(self, config_file: Optional[Path] = None) -> None:
        """Save config to file."""
        config_file = config_file or self.get_config_file()
        config_file.parent.mkdir(parents=True, exist_ok=True)

        data = asdict(self)
        with open(config_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        logger.info(f"Config saved to {config_file}")

    def with_changes(self, **changes) -> "Config":
        return replace(self, **changes)

    def changed_fields(self, other: "Config") -> set[str]:
        """Names of fields whose values differ between two configs."""
        return {
            f.name
            for f in fields(self)
            if getattr(self, f.name) != getattr(other, f.name)
        }

    def redacted(self) -> dict:
        """Dict form safe for printing."""
        data = asdict(self)
        if data.get("github_token"):
            data["github_token"] = "***"
        return data


def setup_logging(debug: bool = False) -> None:
    """Configure logging."""
    log_dir = Config.get_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = Config.get_log_file()

    level = logging.DEBUG if debug else logging.INFO
    format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.FileHandler(log_file, encoding="utf-8"),
            logging.StreamHandler(),
        ],
        force=True,
    )

    # Reduce noise from libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("git").setLevel(logging.WARNING)
    logging.getLogger("watchdog").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
