import enum
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import SyncSession
from .constants import APP_NAME, COMMIT_MESSAGE, LOG_FILE
from .credentials import CredentialResolver
from .reconcile import reconcile
from .scheduler import Scheduler
from .store import RepositoryStore

logger = logging.getLogger(APP_NAME)
logger.setLevel(logging.INFO)


class SyncState(enum.Enum):
    """Where the orchestrator is in its init-then-loop protocol."""

    UNINITIALIZED = "uninitialized"
    OPENED = "opened"
    RESET = "reset"
    RECONCILED = "reconciled"
    COMMITTED = "committed"
    CLEAN = "clean"
    PUSHED = "pushed"
    FAILED = "failed"


class PassOutcome(enum.Enum):
    """What a single pass did with the store after reconciling."""

    COMMITTED = "committed"
    PUSHED = "pushed"


class SyncOrchestrator:
    """Runs the sync protocol for one SyncSession.

    Initialization opens (or clones) the store, resets it to origin/master
    and runs one pass. Each later scheduler tick runs another pass:
    reconcile, then commit when the store is dirty or push when it is clean.
    A pass that commits never pushes, so a commit reaches the remote on the
    first following pass that finds nothing new. The store is not reset
    again after initialization.

    Any error other than a per-file reconcile warning propagates to the
    caller and leaves the orchestrator in SyncState.FAILED.

    Attributes:
        session (SyncSession): Paths, remote and timing for this process.
        resolver (CredentialResolver): Source of transport credentials.
        scheduler (Scheduler): Tick source for the periodic loop.
        store (RepositoryStore | None): The store, once opened.
        state (SyncState): The most recent protocol state.
    """

    def __init__(
        self,
        session: SyncSession,
        resolver: CredentialResolver | None = None,
        scheduler: Scheduler | None = None,
    ):
        self.session = session
        self.resolver = resolver or CredentialResolver(session.home_root)
        self.scheduler = scheduler or Scheduler(session.tick_interval)
        self.store: RepositoryStore | None = None
        self.state = SyncState.UNINITIALIZED

    def _transition(self, state: SyncState) -> None:
        logger.debug(f"State {self.state.value} -> {state.value}")
        self.state = state

    def initialize(self) -> None:
        """Opens the store, resets it to the remote, and runs the first pass."""
        try:
            self.store = RepositoryStore.open_or_clone(
                self.session.remote_url,
                self.session.store_root,
                self.resolver,
                username=self.session.username,
            )
            self._transition(SyncState.OPENED)

            self.store.reset_to_remote_master(self.session.username)
            self._transition(SyncState.RESET)
        except Exception:
            self._transition(SyncState.FAILED)
            raise

        self.run_pass()

    def run_pass(self) -> PassOutcome:
        """Runs one reconcile -> status -> commit-or-push cycle.

        Returns:
            PassOutcome: COMMITTED if the store was dirty, PUSHED if it was clean.
        """
        if self.store is None:
            raise RuntimeError("run_pass() called before initialize()")

        try:
            report = reconcile(self.session.home_root, self.store.root)
            self._transition(SyncState.RECONCILED)

            changed = self.store.status()
            if changed:
                self.store.commit_all(COMMIT_MESSAGE)
                self._transition(SyncState.COMMITTED)
                logger.info(
                    f"Committed {len(changed)} changed path(s); "
                    "push deferred to the next clean pass."
                )
                outcome = PassOutcome.COMMITTED
            else:
                self._transition(SyncState.CLEAN)
                self.store.push_master_to_origin(self.session.username)
                self._transition(SyncState.PUSHED)
                logger.info(f"Store clean ({len(report.copied)} files); pushed.")
                outcome = PassOutcome.PUSHED
        except Exception:
            self._transition(SyncState.FAILED)
            raise

        return outcome

    def run(self, once: bool = False) -> None:
        """Initializes and then runs a pass on every scheduler tick.

        Returns only when `once` is set or the scheduler is cancelled; any
        failure propagates.

        Args:
            once (bool, optional): Stop after initialization. Defaults to False.
        """
        self.initialize()
        if once:
            return

        self.scheduler.start()
        logger.info(f"Syncing every {self.session.tick_interval}s.")
        while self.scheduler.wait():
            self.run_pass()


def setup_logging(
    log_file: Path | None = LOG_FILE, max_bytes: int = 5 * 1024 * 1024
) -> None:
    """Configures the logging subsystem.

    Always logs to stderr, except CRITICAL records. When `log_file` is given,
    also logs everything to a rotating file there. Calling it again replaces
    the handlers installed before.

    Args:
        log_file (Path | None): Rotating log file path, or None to skip it.
        max_bytes (int): Size at which the log file rotates.
    """
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    # Fatal errors reach the terminal through the CLI's console instead.
    stream_handler.addFilter(lambda record: record.levelno < logging.CRITICAL)
    logger.addHandler(stream_handler)

    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=max_bytes,
                backupCount=5,
            )
        except OSError as e:
            logger.warning(f"Could not open log file {log_file}: {e}")
        else:
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
