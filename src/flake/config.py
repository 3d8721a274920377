import logging
import re
import subprocess
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .constants import APP_NAME, CONFIG_FILE, DEFAULT_INTERVAL, STORE_NAME
from .errors import ConfigMissing

logger = logging.getLogger(APP_NAME)


def parse_size(value: int | str) -> int:
    """Converts human-readable size strings (e.g., '100MB') to bytes."""
    if isinstance(value, int):
        return value
    match = re.match(r"^(\d+(?:\.\d+)?)\s*([kmg]b?)$", str(value).strip().lower())
    if not match:
        raise ValueError(f"Invalid size format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "k": 1024,
        "kb": 1024,
        "m": 1024**2,
        "mb": 1024**2,
        "g": 1024**3,
        "gb": 1024**3,
    }
    return int(num * multiplier[unit])


def parse_time(value: int | str) -> int:
    """Converts human-readable time strings (e.g., '1hr', '30m') to seconds."""
    if isinstance(value, int):
        return value
    match = re.match(
        r"^(\d+(?:\.\d+)?)\s*(s|sec|m|min|h|hr)s?$", str(value).strip().lower()
    )
    if not match:
        raise ValueError(f"Invalid time format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {"s": 1, "sec": 1, "m": 60, "min": 60, "h": 3600, "hr": 3600}
    return int(num * multiplier[unit])


@dataclass
class SyncConfig:
    """Sync loop settings.

    Attributes:
        repository (str | None): Remote URL, used when none is given on the CLI.
        interval (int): Seconds between sync passes.
    """

    repository: str | None = None
    interval: int = DEFAULT_INTERVAL


@dataclass
class LimitsConfig:
    """Resource limitation settings.

    Attributes:
        max_log_size (int): Max bytes for the log file before rotation.
    """

    max_log_size: int = 5 * 1024 * 1024


@dataclass
class Config:
    """Global configuration aggregator.

    Attributes:
        sync (SyncConfig): Sync loop settings.
        limits (LimitsConfig): Resource limits.
    """

    sync: SyncConfig = field(default_factory=SyncConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Loads configuration from disk, applying defaults where necessary.

        Args:
            path (Path | None): The TOML file to read. Defaults to CONFIG_FILE.

        Returns:
            Config: The populated configuration object.
        """
        instance = cls()
        path = path or CONFIG_FILE
        if path.exists():
            instance._merge_from_file(path)
        return instance

    def _merge_from_file(self, path: Path) -> None:
        """Parses a TOML file and merges it into the current instance."""
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)

            if "sync" in data:
                self.sync = self._update_dataclass("sync", self.sync, data["sync"])
            if "limits" in data:
                self.limits = self._update_dataclass(
                    "limits", self.limits, data["limits"]
                )

        except tomllib.TOMLDecodeError as e:
            logger.error(f"Config syntax error in {path}: {e}")
        except OSError as e:
            logger.warning(f"Failed to load config from {path}: {e}")

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on invalid keys and parsing human-readable formats."""
        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: {', '.join(sorted(invalid_keys))}. Ignoring."
            )

        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                if k == "max_log_size":
                    filtered_updates[k] = parse_size(v)
                elif k == "interval":
                    seconds = parse_time(v)
                    if seconds <= 0:
                        raise ValueError(f"Interval must be positive, got '{v}'")
                    filtered_updates[k] = seconds
                else:
                    filtered_updates[k] = v
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. Falling back to default."
                )

        return replace(instance, **filtered_updates)


def git_config_value(key: str) -> str | None:
    """Reads a value from the user's git configuration.

    Args:
        key (str): The dotted config key (e.g., 'github.username').

    Returns:
        str | None: The configured value, or None if it is unset or git is missing.
    """
    try:
        res = subprocess.run(
            ["git", "config", "--get", key],
            capture_output=True,
            text=True,
        )
    except OSError as e:
        logger.debug(f"git config lookup for '{key}' failed: {e}")
        return None
    value = res.stdout.strip()
    if res.returncode != 0 or not value:
        return None
    return value


@dataclass(frozen=True)
class SyncSession:
    """Immutable settings for one sync process.

    Attributes:
        home_root (Path): The directory holding the authoritative dotfiles.
        store_root (Path): The git working copy mirroring them.
        remote_url (str): The remote the store is cloned from and pushed to.
        username (str): The account name presented with access tokens.
        tick_interval (int): Seconds between sync passes.
    """

    home_root: Path
    store_root: Path
    remote_url: str
    username: str
    tick_interval: int


def load_session(
    repository: str | None = None,
    interval: int | None = None,
    config: Config | None = None,
    home: Path | None = None,
) -> SyncSession:
    """Builds the SyncSession from CLI values, the config file and git config.

    Args:
        repository (str | None): Remote URL given on the command line.
        interval (int | None): Interval in seconds given on the command line.
        config (Config | None): Loaded configuration. Defaults to Config.load().
        home (Path | None): Home directory. Defaults to Path.home().

    Returns:
        SyncSession: The resolved session.

    Raises:
        ConfigMissing: If no remote URL or no username is configured.
        ValueError: If the interval is not positive.
    """
    config = config or Config.load()
    home = home or Path.home()

    url = repository or config.sync.repository or git_config_value("github.dotfiles")
    if not url:
        raise ConfigMissing(
            "repository url not provided, use `git config --global --add "
            "github.dotfiles URL` to set a default repository"
        )

    username = git_config_value("github.username")
    if not username:
        raise ConfigMissing(
            "GitHub username not provided, use `git config --global --add "
            "github.username USERNAME` to set your username"
        )

    tick_interval = interval if interval is not None else config.sync.interval
    if tick_interval <= 0:
        raise ValueError(f"Interval must be positive, got {tick_interval}")

    return SyncSession(
        home_root=home,
        store_root=home / STORE_NAME,
        remote_url=url,
        username=username,
        tick_interval=tick_interval,
    )
