import base64
import logging
import os
import shlex
import subprocess
from pathlib import Path

from .constants import APP_NAME
from .credentials import Credential, Token
from .errors import GitOperationFailed

logger = logging.getLogger(APP_NAME)


def credential_env(credential: Credential | None) -> dict[str, str]:
    """Builds the subprocess environment that authenticates git with `credential`.

    Tokens are sent as an HTTP Basic authorization header injected through
    GIT_CONFIG_* variables, which keeps the secret off the command line.
    Key pairs select the SSH identity through GIT_SSH_COMMAND.

    Args:
        credential (Credential | None): The credential to apply, if any.

    Returns:
        dict[str, str]: A copy of os.environ with the credential applied.
    """
    env = os.environ.copy()
    env["GIT_TERMINAL_PROMPT"] = "0"

    if isinstance(credential, Token):
        basic = base64.b64encode(
            f"{credential.username}:{credential.secret}".encode("utf-8")
        ).decode("ascii")
        index = int(env.get("GIT_CONFIG_COUNT", "0") or 0)
        env[f"GIT_CONFIG_KEY_{index}"] = "http.extraHeader"
        env[f"GIT_CONFIG_VALUE_{index}"] = f"Authorization: Basic {basic}"
        env["GIT_CONFIG_COUNT"] = str(index + 1)
    elif credential is not None:
        env["GIT_SSH_COMMAND"] = " ".join(
            [
                "ssh",
                "-i",
                shlex.quote(str(credential.private_key)),
                "-l",
                shlex.quote(credential.username),
                "-o",
                "IdentitiesOnly=yes",
                "-o",
                "BatchMode=yes",
            ]
        )
    return env


def _run_git(
    args: list[str],
    cwd: Path,
    capture: bool = True,
    env: dict | None = None,
    strip: bool = True,
) -> str:
    """Executes a git command and converts failures to GitOperationFailed.

    Args:
        args (list[str]): Arguments passed to git; args[0] names the operation.
        cwd (Path): Working directory for the subprocess.
        capture (bool, optional): Whether to capture and return stdout.
        env (dict | None, optional): Environment for the subprocess.
        strip (bool, optional): Whether to strip surrounding whitespace.

    Returns:
        str: The stdout of the command if capture is True, otherwise "".

    Raises:
        GitOperationFailed: If git is missing or exits non-zero.
    """
    try:
        res = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=capture,
            text=True,
            check=True,
            env=env,
        )
    except subprocess.CalledProcessError as e:
        message = (e.stderr or "").strip() or str(e)
        raise GitOperationFailed(args[0], message) from e
    except OSError as e:
        raise GitOperationFailed(args[0], str(e)) from e

    if not capture:
        return ""
    return res.stdout.strip() if strip else res.stdout


class GitRepo:
    """A wrapper around the Git command-line interface for the store's working copy.

    Attributes:
        path (Path): The file system path to the repository root.
    """

    def __init__(self, path: Path):
        """Initializes the GitRepo instance.

        Args:
            path (Path): The path to the repository root directory.

        Raises:
            ValueError: If the specified path does not contain a .git entry.
        """
        self.path = path
        if not (self.path / ".git").exists():
            raise ValueError(f"Not a git repository: {self.path}")

    @classmethod
    def clone(cls, url: str, path: Path, env: dict | None = None) -> "GitRepo":
        """Clones `url` into `path` as a non-bare working copy.

        Args:
            url (str): The remote URL.
            path (Path): The destination directory; must not exist yet.
            env (dict | None, optional): Environment for the subprocess.

        Returns:
            GitRepo: The freshly cloned repository.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        _run_git(["clone", "--", url, str(path)], cwd=path.parent, env=env)
        return cls(path)

    def _run(
        self,
        args: list[str],
        capture: bool = True,
        env: dict | None = None,
        strip: bool = True,
    ) -> str:
        """Executes a Git command within the repository context."""
        return _run_git(args, self.path, capture=capture, env=env, strip=strip)

    def fetch(self, remote: str, env: dict | None = None) -> None:
        """Fetches all refs of `remote`."""
        self._run(["fetch", remote], env=env)

    def reset_hard(self, target: str) -> None:
        """Resets the index and working tree to `target`, discarding local changes."""
        self._run(["reset", "--hard", target])

    def status_paths(self) -> set[str]:
        """Returns the paths whose working-tree state differs from HEAD.

        Parses `git status --porcelain -z`, which keeps paths with spaces or
        unusual characters intact. For renames and copies only the new path
        is reported.

        Returns:
            set[str]: Changed paths relative to the repository root.
        """
        output = self._run(["status", "--porcelain", "-z"], strip=False)
        entries = output.split("\0")
        paths: set[str] = set()
        i = 0
        while i < len(entries):
            entry = entries[i]
            i += 1
            if len(entry) < 4:
                continue
            code, path = entry[:2], entry[3:]
            paths.add(path)
            if code[0] in "RC":
                i += 1  # Skip the rename/copy source path.
        return paths

    def add_all(self) -> None:
        """Stages all changes (modified, deleted, and untracked files)."""
        self._run(["add", "--all", "."])

    def commit(self, message: str) -> None:
        """Creates a new commit on HEAD with the configured signature."""
        self._run(["commit", "--quiet", "--no-verify", "-m", message])

    def push(self, remote: str, refspec: str, env: dict | None = None) -> None:
        """Pushes `refspec` to `remote`."""
        self._run(["push", "--quiet", remote, refspec], env=env)

    def rev_parse(self, rev: str) -> str | None:
        """Resolves a revision to a full SHA-1 hash.

        Args:
            rev (str): The revision to parse (e.g., 'HEAD', 'master').

        Returns:
            Optional[str]:  The full SHA-1 hash,
                            or None if the revision could not be resolved.
        """
        try:
            return self._run(["rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}"])
        except GitOperationFailed as e:
            logger.debug(f"rev-parse failed for '{rev}': {e}")
            return None
