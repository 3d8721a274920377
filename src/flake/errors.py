"""Error taxonomy for flake.

Every class deriving from `FlakeError` is fatal for the sync process: it is
raised by the component that detects it and handled once, in the CLI.
Per-file reconciliation problems are not exceptions; they are collected as
`FileReconcileWarning` records and the pass carries on.
"""

from dataclasses import dataclass
from pathlib import Path


class FlakeError(Exception):
    """Base class for all fatal flake errors."""


class ConfigMissing(FlakeError):
    """A required configuration value (remote URL, username) is not set."""


class StorageConflict(FlakeError):
    """The store path is occupied by something that is not a directory."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"{path} is a file!")


class SecretBackendUnavailable(FlakeError):
    """The secret store could not be reached."""


class CredentialsMissing(FlakeError):
    """The secret store holds no usable access token."""


class GitOperationFailed(FlakeError):
    """A git operation exited with an error.

    Attributes:
        operation (str): The git operation that failed (e.g. 'fetch').
        message (str): The error output reported by git.
    """

    def __init__(self, operation: str, message: str):
        self.operation = operation
        self.message = message
        super().__init__(f"git {operation} failed: {message}")


@dataclass(frozen=True)
class FileReconcileWarning:
    """A single file that could not be mirrored during a reconcile pass.

    Attributes:
        path (Path): The path relative to the store root.
        error (OSError): The underlying I/O error.
    """

    path: Path
    error: OSError

    def __str__(self) -> str:
        return f"Unable to sync file {self.path}: {self.error}"
