"""Transport credentials for the store's remote.

HTTPS remotes authenticate with an access token kept in the freedesktop
Secret Service; every other transport uses the SSH key pair under the home
directory. Credentials are resolved again for every network operation, so a
rotated token is picked up on the next fetch or push without a restart.
"""

import logging
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, closing, contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import secretstorage
from secretstorage.exceptions import (
    SecretServiceNotAvailableException,
    SecretStorageException,
)

from .constants import (
    APP_NAME,
    SSH_PRIVATE_KEY,
    SSH_PUBLIC_KEY,
    SSH_USERNAME,
    TOKEN_ATTRIBUTES,
    TOKEN_LABEL,
)
from .errors import CredentialsMissing, SecretBackendUnavailable

logger = logging.getLogger(APP_NAME)


@dataclass(frozen=True)
class Token:
    """Username and access token for HTTPS remotes."""

    username: str
    secret: str

    def __repr__(self) -> str:
        return f"Token(username={self.username!r}, secret='***')"


@dataclass(frozen=True)
class KeyPair:
    """SSH key pair for non-HTTPS remotes. Passphrases are not supported."""

    username: str
    public_key: Path
    private_key: Path


Credential = Token | KeyPair


class SecretItem(Protocol):
    def get_secret(self) -> bytes: ...


class SecretBackend(Protocol):
    """The operations flake needs from a secret store."""

    def create_item(
        self,
        label: str,
        attributes: dict[str, str],
        secret: bytes,
        replace: bool = True,
        content_type: str = "text/plain",
    ) -> None: ...

    def search_items(self, attributes: dict[str, str]) -> list[SecretItem]: ...


class SecretServiceBackend:
    """SecretBackend backed by the session's default Secret Service collection.

    Items returned by `search_items` are only readable while the D-Bus
    connection is open; obtain the backend through `secret_service()`.
    """

    def __init__(self, connection):
        self.connection = connection

    def _collection(self) -> secretstorage.Collection:
        collection = secretstorage.get_default_collection(self.connection)
        if collection.is_locked():
            collection.unlock()
        return collection

    def create_item(
        self,
        label: str,
        attributes: dict[str, str],
        secret: bytes,
        replace: bool = True,
        content_type: str = "text/plain",
    ) -> None:
        try:
            self._collection().create_item(
                label, attributes, secret, replace=replace, content_type=content_type
            )
        except SecretStorageException as e:
            raise SecretBackendUnavailable(
                f"Something went wrong saving the access token: {e}"
            ) from e

    def search_items(self, attributes: dict[str, str]) -> list[SecretItem]:
        try:
            return list(secretstorage.search_items(self.connection, attributes))
        except SecretStorageException as e:
            raise SecretBackendUnavailable(
                f"Unable to search the secret service: {e}"
            ) from e


@contextmanager
def secret_service() -> Iterator[SecretServiceBackend]:
    """Opens a connection to the Secret Service for the duration of the block.

    Raises:
        SecretBackendUnavailable: If no Secret Service is reachable on the bus.
    """
    try:
        connection = secretstorage.dbus_init()
    except SecretServiceNotAvailableException as e:
        raise SecretBackendUnavailable(
            f"Unable to connect with the secret service: {e}"
        ) from e
    with closing(connection):
        yield SecretServiceBackend(connection)


BackendFactory = Callable[[], AbstractContextManager[SecretBackend]]


class CredentialResolver:
    """Chooses and loads the credential for a remote URL.

    Attributes:
        home_root (Path): Directory the SSH key paths are resolved against.
        backend_factory: Zero-argument callable returning a context manager
            that yields a SecretBackend.
    """

    def __init__(
        self, home_root: Path, backend_factory: BackendFactory = secret_service
    ):
        self.home_root = home_root
        self.backend_factory = backend_factory

    def resolve(self, username: str, url: str) -> Credential:
        """Returns the credential to use for `url`.

        Args:
            username (str): Account name paired with the access token.
            url (str): The remote URL being contacted.

        Returns:
            Credential: A Token for https URLs, a KeyPair otherwise.

        Raises:
            SecretBackendUnavailable: If the secret store cannot be reached.
            CredentialsMissing: If no usable access token is stored.
        """
        if url.startswith("https://"):
            return Token(username=username, secret=self._lookup_token())

        # Key files are not checked here; a missing key fails in the transport.
        return KeyPair(
            username=SSH_USERNAME,
            public_key=self.home_root / SSH_PUBLIC_KEY,
            private_key=self.home_root / SSH_PRIVATE_KEY,
        )

    def _lookup_token(self) -> str:
        with self.backend_factory() as backend:
            items = backend.search_items(TOKEN_ATTRIBUTES)
            if not items:
                raise CredentialsMissing(
                    "GitHub credentials are not in the store, "
                    "use `flake auth` to set them up"
                )
            try:
                raw = items[0].get_secret()
            except SecretStorageException as e:
                raise CredentialsMissing(
                    f"Missing access token, use `flake auth` to set it up: {e}"
                ) from e

        if not raw:
            raise CredentialsMissing(
                "Missing access token, use `flake auth` to set it up"
            )
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CredentialsMissing(
                "Stored access token is not valid UTF-8, use `flake auth` to replace it"
            ) from e


def store_token(token: str, backend_factory: BackendFactory = secret_service) -> None:
    """Saves the access token in the secret store, replacing any previous one.

    Raises:
        SecretBackendUnavailable: If the secret store cannot be reached or written.
    """
    with backend_factory() as backend:
        backend.create_item(
            TOKEN_LABEL,
            TOKEN_ATTRIBUTES,
            token.encode("utf-8"),
            replace=True,
            content_type="text/plain",
        )
    logger.info("Access token stored in the secret service.")
