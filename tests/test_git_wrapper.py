import base64
import subprocess
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from flake.credentials import KeyPair, Token
from flake.errors import GitOperationFailed
from flake.git_wrapper import GitRepo, credential_env


@pytest.fixture
def repo(tmp_path: Path) -> GitRepo:
    (tmp_path / ".git").mkdir()
    return GitRepo(tmp_path)


def test_requires_git_directory(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="Not a git repository"):
        GitRepo(tmp_path)


def test_token_env_uses_basic_auth_header(monkeypatch: pytest.MonkeyPatch) -> None:
    """Verifies that tokens travel through GIT_CONFIG_* rather than argv."""
    monkeypatch.delenv("GIT_CONFIG_COUNT", raising=False)
    monkeypatch.delenv("GIT_SSH_COMMAND", raising=False)

    env = credential_env(Token(username="octocat", secret="tok"))

    expected = base64.b64encode(b"octocat:tok").decode()
    assert env["GIT_CONFIG_COUNT"] == "1"
    assert env["GIT_CONFIG_KEY_0"] == "http.extraHeader"
    assert env["GIT_CONFIG_VALUE_0"] == f"Authorization: Basic {expected}"
    assert env["GIT_TERMINAL_PROMPT"] == "0"
    assert "GIT_SSH_COMMAND" not in env


def test_token_env_appends_to_existing_config_entries(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("GIT_CONFIG_COUNT", "1")
    monkeypatch.setenv("GIT_CONFIG_KEY_0", "core.pager")
    monkeypatch.setenv("GIT_CONFIG_VALUE_0", "cat")

    env = credential_env(Token(username="u", secret="s"))

    assert env["GIT_CONFIG_COUNT"] == "2"
    assert env["GIT_CONFIG_KEY_0"] == "core.pager"
    assert env["GIT_CONFIG_KEY_1"] == "http.extraHeader"


def test_key_pair_env_selects_identity() -> None:
    key = KeyPair(
        username="git",
        public_key=Path("/home/me/.ssh/id_rsa.pub"),
        private_key=Path("/home/me/.ssh/id_rsa"),
    )

    cmd = credential_env(key)["GIT_SSH_COMMAND"]

    assert cmd.startswith("ssh -i /home/me/.ssh/id_rsa ")
    assert "-l git" in cmd
    assert "IdentitiesOnly=yes" in cmd
    assert "BatchMode=yes" in cmd


def test_status_paths_parses_porcelain_z(repo: GitRepo, mocker: MagicMock) -> None:
    """Verifies NUL-separated parsing, including renames and leading spaces."""
    mock_run = mocker.patch.object(repo, "_run")
    mock_run.return_value = (
        " M .vimrc\0R  new name\0old name\0?? dir/file\0 D .bashrc\0"
    )

    assert repo.status_paths() == {".vimrc", "new name", "dir/file", ".bashrc"}
    mock_run.assert_called_once_with(["status", "--porcelain", "-z"], strip=False)


def test_status_paths_clean(repo: GitRepo, mocker: MagicMock) -> None:
    mocker.patch.object(repo, "_run", return_value="")
    assert repo.status_paths() == set()


def test_run_failure_raises_git_operation_failed(
    repo: GitRepo, mocker: MagicMock
) -> None:
    mocker.patch(
        "subprocess.run",
        side_effect=subprocess.CalledProcessError(
            128, ["git", "fetch"], stderr="fatal: could not read from remote\n"
        ),
    )

    with pytest.raises(GitOperationFailed) as excinfo:
        repo.fetch("origin")

    assert excinfo.value.operation == "fetch"
    assert excinfo.value.message == "fatal: could not read from remote"


def test_missing_git_binary(repo: GitRepo, mocker: MagicMock) -> None:
    mocker.patch("subprocess.run", side_effect=FileNotFoundError("git"))

    with pytest.raises(GitOperationFailed) as excinfo:
        repo.push("origin", "HEAD:refs/heads/master")

    assert excinfo.value.operation == "push"


def test_rev_parse_returns_none_on_failure(repo: GitRepo, mocker: MagicMock) -> None:
    mocker.patch.object(repo, "_run", side_effect=GitOperationFailed("rev-parse", ""))
    assert repo.rev_parse("HEAD") is None


def test_push_and_fetch_pass_environment(repo: GitRepo, mocker: MagicMock) -> None:
    mock_run = mocker.patch.object(repo, "_run")
    env = {"GIT_TERMINAL_PROMPT": "0"}

    repo.fetch("origin", env=env)
    repo.push("origin", "HEAD:refs/heads/master", env=env)

    mock_run.assert_any_call(["fetch", "origin"], env=env)
    mock_run.assert_any_call(
        ["push", "--quiet", "origin", "HEAD:refs/heads/master"], env=env
    )
