import os
from pathlib import Path

"""Global constants and filesystem layout for flake.

This module defines the store location, the remote that is mirrored, the
secret-store tags used for the access token, and the state/config paths
(adhering to XDG standards where applicable).
"""

# --- Identity ---
APP_NAME = "flake"
"""str: The application name, also used as the logger name."""

VERSION = "1.0.0"
"""str: The released version string."""

# --- Store ---
STORE_NAME = ".snowflakes"
"""str: Directory name of the store, relative to the home directory."""

REMOTE_NAME = "origin"
"""str: The only remote that is fetched from and pushed to."""

REMOTE_BRANCH = "master"
"""str: The only branch that is reset to and pushed."""

REMOTE_REF = f"refs/remotes/{REMOTE_NAME}/{REMOTE_BRANCH}"
"""str: The remote-tracking ref the store is hard-reset to."""

COMMIT_MESSAGE = "Update files"
"""str: Message used for every commit created by the sync loop."""

VCS_PREFIX = ".git"
"""str: Entries whose name starts with this prefix are never reconciled."""

DEFAULT_INTERVAL = 1800
"""int: Seconds between sync passes when nothing else is configured."""

# --- Credentials ---
TOKEN_LABEL = "flake"
"""str: Label of the secret-store item holding the access token."""

TOKEN_ATTRIBUTES = {"github": "access_token"}
"""dict[str, str]: Attribute tags identifying the access token item."""

SSH_USERNAME = "git"
"""str: Username presented for SSH transports."""

SSH_PRIVATE_KEY = Path(".ssh/id_rsa")
"""Path: Private key location, relative to the home directory."""

SSH_PUBLIC_KEY = Path(".ssh/id_rsa.pub")
"""Path: Public key location, relative to the home directory."""

# --- Paths ---
_XDG_STATE = os.environ.get("XDG_STATE_HOME")
_BASE_STATE = Path(_XDG_STATE) if _XDG_STATE else Path.home() / ".local/state"

STATE_DIR = _BASE_STATE / "flake"
"""Path: The directory for runtime state data (logs)."""

LOG_FILE = STATE_DIR / "sync.log"
"""Path: The file path for the sync process logs."""

CONFIG_DIR: Path = Path.home() / ".config/flake"
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The main configuration file path."""
