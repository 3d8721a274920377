import logging
from pathlib import Path

from .constants import APP_NAME, REMOTE_BRANCH, REMOTE_NAME, REMOTE_REF
from .credentials import CredentialResolver
from .errors import GitOperationFailed, StorageConflict
from .git_wrapper import GitRepo, credential_env

logger = logging.getLogger(APP_NAME)


class RepositoryStore:
    """The version-controlled working copy that mirrors the tracked dotfiles.

    Every network operation resolves its credential afresh through the
    CredentialResolver; nothing is cached between calls.

    Attributes:
        repo (GitRepo): The underlying git working copy.
        url (str): The remote URL credentials are resolved for.
        resolver (CredentialResolver): Source of transport credentials.
    """

    def __init__(self, repo: GitRepo, url: str, resolver: CredentialResolver):
        self.repo = repo
        self.url = url
        self.resolver = resolver

    @property
    def root(self) -> Path:
        return self.repo.path

    @classmethod
    def open_or_clone(
        cls,
        url: str,
        store_root: Path,
        resolver: CredentialResolver,
        username: str,
    ) -> "RepositoryStore":
        """Opens the store at `store_root`, cloning `url` there if it is absent.

        Args:
            url (str): The remote URL.
            store_root (Path): Location of the working copy.
            resolver (CredentialResolver): Source of transport credentials.
            username (str): Account name used for the clone credential.

        Returns:
            RepositoryStore: The opened store.

        Raises:
            StorageConflict: If `store_root` exists and is not a directory.
            GitOperationFailed: If opening or cloning fails.
        """
        if store_root.exists() or store_root.is_symlink():
            if not store_root.is_dir():
                raise StorageConflict(store_root)
            try:
                repo = GitRepo(store_root)
            except ValueError as e:
                raise GitOperationFailed("open", str(e)) from e
            logger.info(f"Opened store at {store_root}")
            return cls(repo, url, resolver)

        logger.info(f"Cloning {url} into {store_root}")
        env = credential_env(resolver.resolve(username, url))
        repo = GitRepo.clone(url, store_root, env=env)
        return cls(repo, url, resolver)

    def reset_to_remote_master(self, username: str) -> None:
        """Fetches origin and hard-resets the working copy to origin/master.

        Uncommitted local changes in the store are discarded.
        """
        env = credential_env(self.resolver.resolve(username, self.url))
        self.repo.fetch(REMOTE_NAME, env=env)
        if self.repo.rev_parse(REMOTE_REF) is None:
            raise GitOperationFailed("reset", f"{REMOTE_REF} does not exist")
        self.repo.reset_hard(REMOTE_REF)
        logger.info(f"Store reset to {REMOTE_REF}")

    def status(self) -> set[str]:
        """Returns the paths changed relative to HEAD; empty means clean."""
        return self.repo.status_paths()

    def commit_all(self, message: str) -> None:
        """Stages every change in the working tree and commits it on HEAD.

        Raises:
            GitOperationFailed: If HEAD has no commit yet, or git fails.
        """
        if self.repo.rev_parse("HEAD") is None:
            raise GitOperationFailed("commit", "HEAD does not point to a commit")
        self.repo.add_all()
        self.repo.commit(message)

    def push_master_to_origin(self, username: str) -> None:
        """Pushes HEAD to origin's master branch."""
        env = credential_env(self.resolver.resolve(username, self.url))
        self.repo.push(REMOTE_NAME, f"HEAD:refs/heads/{REMOTE_BRANCH}", env=env)
