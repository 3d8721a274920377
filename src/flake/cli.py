import argparse
import logging
import sys

from rich.console import Console
from rich.markup import escape

from . import credentials
from .config import Config, load_session
from .constants import APP_NAME, DEFAULT_INTERVAL, LOG_FILE, VERSION
from .daemon import SyncOrchestrator, setup_logging
from .errors import FlakeError

logger = logging.getLogger(APP_NAME)
console = Console()
err_console = Console(stderr=True)


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid interval '{value}'") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"interval must be positive, got {number}")
    return number


def auth(token: str) -> None:
    """Stores the access token in the secret service."""
    credentials.store_token(token)
    console.print("[bold green]✔ Access token stored.[/bold green]")


def sync(repository: str | None, interval: int | None, once: bool = False) -> None:
    """Runs the sync loop until a fatal error (or one pass with `once`).

    Args:
        repository (str | None): Remote URL overriding the configured one.
        interval (int | None): Seconds between passes overriding the configured one.
        once (bool, optional): Initialize, run one pass, and return.
    """
    config = Config.load()
    setup_logging(LOG_FILE, config.limits.max_log_size)

    session = load_session(repository=repository, interval=interval, config=config)
    logger.info(f"Syncing {session.store_root} with {session.remote_url}")
    SyncOrchestrator(session).run(once=once)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME, description="Keep track of dotfiles"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")

    subparsers = parser.add_subparsers(dest="command")

    auth_parser = subparsers.add_parser(
        "auth", help="Store auth token in the credentials store"
    )
    auth_parser.add_argument("token", help="GitHub's access token")

    sync_parser = subparsers.add_parser("sync", help="Synchronize repository")
    sync_parser.add_argument(
        "--repository",
        "-r",
        metavar="URL",
        help="The repository url (default: git config github.dotfiles)",
    )
    sync_parser.add_argument(
        "--interval",
        "-i",
        metavar="SECONDS",
        type=_positive_int,
        default=None,
        help=f"The interval to sync files in seconds (default: {DEFAULT_INTERVAL})",
    )
    sync_parser.add_argument(
        "--once",
        action="store_true",
        help="Run the initial sync and exit instead of looping",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the flake CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        console.print(
            "Please, run flake command with [bold]auth[/bold] or [bold]sync[/bold] "
            "subcommands"
        )
        return

    try:
        if args.command == "auth":
            setup_logging(log_file=None)
            auth(args.token)
        elif args.command == "sync":
            sync(args.repository, args.interval, once=args.once)
    except FlakeError as e:
        logger.critical(str(e))
        err_console.print(
            f"[bold red]Error:[/bold red] {escape(str(e))}", soft_wrap=True
        )
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting.")
        sys.exit(130)


if __name__ == "__main__":
    main()
