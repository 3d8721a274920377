"""flake: keep dotfiles mirrored into a git repository.

This package provides the command-line interface and the sync engine that
periodically copies tracked files from the home directory into the store,
commits them, and pushes them to the remote.
"""

from . import (
    cli,
    config,
    constants,
    credentials,
    daemon,
    errors,
    git_wrapper,
    reconcile,
    scheduler,
    store,
)

__all__ = [
    "cli",
    "config",
    "constants",
    "credentials",
    "daemon",
    "errors",
    "git_wrapper",
    "reconcile",
    "scheduler",
    "store",
]
