"""Shared fixtures: an in-memory secret store and a throwaway git remote."""

import shutil
import subprocess
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

import pytest

requires_git = pytest.mark.skipif(
    shutil.which("git") is None, reason="git binary not available"
)


def git(cwd: Path, *args: str) -> str:
    """Runs git in `cwd` and returns its stripped stdout."""
    res = subprocess.run(
        ["git", *args], cwd=cwd, check=True, capture_output=True, text=True
    )
    return res.stdout.strip()


@dataclass
class FakeItem:
    label: str
    attributes: dict[str, str]
    secret: bytes | Exception
    content_type: str = "text/plain"

    def get_secret(self) -> bytes:
        if isinstance(self.secret, Exception):
            raise self.secret
        return self.secret


@dataclass
class FakeSecretBackend:
    """SecretBackend that keeps items in memory and counts connections."""

    items: list[FakeItem] = field(default_factory=list)
    connections: int = 0

    def create_item(
        self,
        label: str,
        attributes: dict[str, str],
        secret: bytes,
        replace: bool = True,
        content_type: str = "text/plain",
    ) -> None:
        if replace:
            self.items = [i for i in self.items if i.attributes != attributes]
        self.items.append(FakeItem(label, dict(attributes), secret, content_type))

    def search_items(self, attributes: dict[str, str]) -> list[FakeItem]:
        return [
            i
            for i in self.items
            if all(i.attributes.get(k) == v for k, v in attributes.items())
        ]

    @contextmanager
    def factory(self) -> Iterator["FakeSecretBackend"]:
        self.connections += 1
        yield self


@pytest.fixture
def secret_backend() -> FakeSecretBackend:
    return FakeSecretBackend()


@contextmanager
def unreachable_backend() -> Iterator[None]:
    raise AssertionError("the secret backend must not be queried")
    yield  # pragma: no cover


@pytest.fixture
def git_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Isolates git from the user's configuration and fixes the signature."""
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(tmp_path / "gitconfig"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.delenv("GIT_CONFIG_COUNT", raising=False)
    for role in ("AUTHOR", "COMMITTER"):
        monkeypatch.setenv(f"GIT_{role}_NAME", "Flake Test")
        monkeypatch.setenv(f"GIT_{role}_EMAIL", "flake@example.com")


@dataclass
class Remote:
    """A bare repository plus a seed clone used to publish remote-side edits."""

    bare: Path
    seed: Path

    @property
    def url(self) -> str:
        return str(self.bare)

    def publish(self, name: str, content: str) -> None:
        (self.seed / name).write_text(content)
        git(self.seed, "add", "--all")
        git(self.seed, "commit", "-m", f"Add {name}")
        git(self.seed, "push", "origin", "master")

    def master(self) -> str:
        return git(self.bare, "rev-parse", "refs/heads/master")


@pytest.fixture
def remote(tmp_path: Path, git_env: None) -> Remote:
    """A bare remote whose master tracks an empty `.vimrc`."""
    bare = tmp_path / "remote.git"
    seed = tmp_path / "seed"
    git(tmp_path, "init", "--quiet", "--bare", "-b", "master", str(bare))
    git(tmp_path, "init", "--quiet", "-b", "master", str(seed))
    git(seed, "remote", "add", "origin", str(bare))

    r = Remote(bare=bare, seed=seed)
    r.publish(".vimrc", "")
    return r


@pytest.fixture
def home(tmp_path: Path) -> Path:
    path = tmp_path / "home"
    path.mkdir()
    return path
