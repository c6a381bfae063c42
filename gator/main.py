"""
Main entry point for the gator command line.
"""

import argparse
import asyncio
import inspect
import sys
from typing import List, Optional

from rich.console import Console

from . import commands
from .config import get_config, read_session
from .errors import GatorError, StoreUnavailableError, UsageError
from .store import Database
from .utils.logger import get_logger, setup_logger


def positive_int(text: str) -> int:
    """argparse type for counts that must be at least 1."""
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {text!r}")
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gator", description="Aggregate RSS feeds and browse their posts."
    )
    subparsers = parser.add_subparsers(dest="command", metavar="<command>")
    subparsers.required = True

    register = subparsers.add_parser("register", help="Create a user and log in")
    register.add_argument("name")
    register.set_defaults(handler=commands.handle_register)

    login = subparsers.add_parser("login", help="Switch the current user")
    login.add_argument("name")
    login.set_defaults(handler=commands.handle_login)

    users = subparsers.add_parser("users", help="List registered users")
    users.set_defaults(handler=commands.handle_users)

    reset = subparsers.add_parser("reset", help="Delete all users, feeds and posts")
    reset.set_defaults(handler=commands.handle_reset)

    addfeed = subparsers.add_parser("addfeed", help="Register a feed and follow it")
    addfeed.add_argument("name")
    addfeed.add_argument("url")
    addfeed.add_argument(
        "--no-verify",
        action="store_true",
        help="Do not fetch the feed before registering it",
    )
    addfeed.set_defaults(handler=commands.handle_addfeed)

    feeds = subparsers.add_parser("feeds", help="List all feeds")
    feeds.set_defaults(handler=commands.handle_feeds)

    follow = subparsers.add_parser("follow", help="Follow a feed by URL")
    follow.add_argument("url")
    follow.add_argument("name", nargs="?", help="Name used if the feed is new")
    follow.set_defaults(handler=commands.handle_follow)

    following = subparsers.add_parser("following", help="List followed feeds")
    following.set_defaults(handler=commands.handle_following)

    unfollow = subparsers.add_parser("unfollow", help="Stop following a feed")
    unfollow.add_argument("url")
    unfollow.set_defaults(handler=commands.handle_unfollow)

    browse = subparsers.add_parser("browse", help="Show the newest posts")
    browse.add_argument(
        "limit",
        nargs="?",
        type=int,
        help="Number of posts to show (default 2); must be an integer",
    )
    browse.set_defaults(handler=commands.handle_browse)

    agg = subparsers.add_parser("agg", help="Collect feeds on a fixed interval")
    agg.add_argument(
        "interval",
        nargs="?",
        help="Time between requests, e.g. 30s, 1m, 1h30m (default: GATOR_FETCH_INTERVAL)",
    )
    agg.add_argument("--concurrency", type=positive_int, help="Feeds fetched per tick")
    agg.add_argument("--ticks", type=positive_int, help="Stop after this many ticks")
    agg.set_defaults(handler=commands.handle_agg)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run one CLI command and return the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)

    config = get_config()
    try:
        config.validate()
    except ValueError as e:
        parser.error(str(e))

    setup_logger(config.logging)
    logger = get_logger(__name__)
    err_console = Console(stderr=True)

    db = None
    try:
        session = read_session()
        db = Database(session.db_url or config.database.url, echo=config.database.echo)
        state = commands.State(db=db, session=session, config=config, console=Console())
        db.create_all()
        result = args.handler(state, args)
        if inspect.isawaitable(result):
            asyncio.run(result)
        return 0
    except UsageError as e:
        parser.print_usage(sys.stderr)
        err_console.print(f"gator {args.command}: {e}", markup=False)
        return 2
    except StoreUnavailableError as e:
        logger.error("Datastore unavailable", error=str(e))
        err_console.print(f"Error: datastore unavailable: {e}", markup=False)
        return 1
    except GatorError as e:
        err_console.print(f"Error: {e}", markup=False)
        return 1
    except KeyboardInterrupt:
        err_console.print("Interrupted")
        return 130
    finally:
        if db is not None:
            db.dispose()


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
