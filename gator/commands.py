"""
CLI command handlers.

Handlers receive the shared :class:`State` and the parsed arguments. The ones
acting on behalf of someone are wrapped with :func:`logged_in`, which resolves
the current user from the session file and passes it in explicitly.
"""

import asyncio
import functools
import signal
from dataclasses import dataclass
from typing import Any, Callable

from rich.console import Console

from .config import Config, SessionConfig
from .errors import GatorError, NotFoundError, UserExistsError
from .ingestion.fetcher import HTTPFeedSource
from .ingestion.scheduler import FetchScheduler
from .store import Database, User
from .subscriptions import SubscriptionManager
from .utils.durations import format_duration, parse_duration
from .utils.text import wrap_text

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_BROWSE_LIMIT = 2


@dataclass
class State:
    """Everything a command needs: store, session, settings and output."""

    db: Database
    session: SessionConfig
    config: Config
    console: Console


def logged_in(handler: Callable[..., Any]) -> Callable[..., Any]:
    """Resolve the current user and hand it to ``handler`` as a third argument."""

    @functools.wraps(handler)
    def wrapper(state: State, args):
        name = state.session.current_user_name
        if not name:
            raise GatorError("no user is logged in, run 'gator login <name>' first")
        try:
            user = state.db.get_user(name)
        except NotFoundError as e:
            raise GatorError(f"error getting current user: {e}") from e
        return handler(state, args, user)

    return wrapper


def handle_register(state: State, args) -> None:
    try:
        user = state.db.create_user(args.name)
    except UserExistsError as e:
        raise GatorError(f"user '{args.name}' already exists") from e
    state.session.set_user(user.name)
    state.console.print(f"User '{user.name}' registered successfully!")


def handle_login(state: State, args) -> None:
    try:
        user = state.db.get_user(args.name)
    except NotFoundError as e:
        raise GatorError(f"user '{args.name}' does not exist") from e
    state.session.set_user(user.name)
    state.console.print(f"Logged in as '{user.name}'.")


def handle_users(state: State, args) -> None:
    for user in state.db.list_users():
        if user.name == state.session.current_user_name:
            state.console.print(f"* {user.name} (current)")
        else:
            state.console.print(f"* {user.name}")


def handle_reset(state: State, args) -> None:
    state.db.reset()
    # Every user is gone, including the logged-in one
    state.session.clear_user()
    state.console.print("Database reset successfully!")


@logged_in
async def handle_addfeed(state: State, args, user: User) -> None:
    async with HTTPFeedSource(state.config.scheduler) as source:
        manager = SubscriptionManager(state.db, source)
        feed, follow = await manager.add_feed(
            user, args.name, args.url, verify=not args.no_verify
        )
    state.console.print(f"Feed '{feed.name}' added successfully")
    state.console.print(f"You are now following '{follow.feed_name}'")


def handle_feeds(state: State, args) -> None:
    feeds = state.db.list_feeds()
    if not feeds:
        state.console.print("No feeds registered yet")
        return
    for feed in feeds:
        state.console.print(f"* {feed.name} : {feed.owner_name} : {feed.url}")


@logged_in
def handle_follow(state: State, args, user: User) -> None:
    follow = SubscriptionManager(state.db).follow(user, args.url, name=args.name)
    state.console.print(f"You are now following '{follow.feed_name}'")


@logged_in
def handle_following(state: State, args, user: User) -> None:
    follows = SubscriptionManager(state.db).list_followed_feeds(user)
    if not follows:
        state.console.print("You're not following any feeds")
        return
    for follow in follows:
        state.console.print(f"* {follow.feed_name}")


@logged_in
def handle_unfollow(state: State, args, user: User) -> None:
    try:
        feed = SubscriptionManager(state.db).unfollow(user, args.url)
    except NotFoundError as e:
        raise GatorError(f"no feed follow found to delete: {e}") from e
    state.console.print(f"You are no longer following '{feed.name}'")


@logged_in
def handle_browse(state: State, args, user: User) -> None:
    limit = args.limit if args.limit is not None else DEFAULT_BROWSE_LIMIT
    posts = state.db.get_posts_for_user(user.id, limit=limit)
    if not posts:
        state.console.print("No posts yet, run 'gator agg' to collect some")
        return
    for post in posts:
        state.console.print("\n---------------------------", markup=False)
        state.console.print(f"Title: {post.title}", markup=False, highlight=False)
        state.console.print(f"Feed: {post.feed_name}", markup=False, highlight=False)
        state.console.print(f"Published: {post.published_at.strftime(TIME_FORMAT)}")
        state.console.print(f"URL: {post.url}", markup=False)
        state.console.print("\nDescription:")
        state.console.print(wrap_text(post.description, 80), markup=False, highlight=False)
        state.console.print("---------------------------", markup=False)


async def handle_agg(state: State, args) -> None:
    interval = parse_duration(args.interval or state.config.scheduler.interval)
    concurrency = args.concurrency
    if concurrency is None:
        concurrency = state.config.scheduler.concurrency

    async with HTTPFeedSource(state.config.scheduler) as source:
        scheduler = FetchScheduler(
            state.db, source, interval=interval, concurrency=concurrency
        )
        state.console.print(f"Collecting feeds every {format_duration(scheduler.interval)}")

        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGTERM, scheduler.stop)
        except (NotImplementedError, RuntimeError):
            pass

        try:
            await scheduler.run(max_ticks=args.ticks)
        finally:
            try:
                loop.remove_signal_handler(signal.SIGTERM)
            except (NotImplementedError, RuntimeError):
                pass
