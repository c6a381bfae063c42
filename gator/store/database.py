"""
SQLAlchemy-backed store for users, feeds, follows and posts.

Every public method opens its own short session and commits before
returning, so each post is written as a whole or not at all. Database
errors are translated into the :mod:`gator.errors` hierarchy; in
particular a unique-constraint violation always surfaces as
:class:`~gator.errors.UniqueViolation` and never as a plain
:class:`~gator.errors.StoreError`.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, List, Optional, Type

from sqlalchemy import create_engine, delete, event, select, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import DatabaseConfig
from ..errors import (
    AlreadyFollowingError,
    FeedExistsError,
    NotFoundError,
    StoreError,
    StoreUnavailableError,
    UniqueViolation,
    UserExistsError,
)
from ..utils.logger import LoggerMixin
from .models import Base, Feed, FeedFollow, Post, User, as_utc, utcnow

# How many times claim_next_feed re-selects after losing a race.
CLAIM_ATTEMPTS = 5


@dataclass
class FeedView:
    """A feed together with its owner's name."""

    id: str
    name: str
    url: str
    owner_name: str
    last_fetched_at: Optional[datetime]


@dataclass
class FeedFollowView:
    """A follow edge with the user and feed names resolved."""

    id: str
    user_id: str
    feed_id: str
    user_name: str
    feed_name: str
    feed_url: str
    created_at: datetime


@dataclass
class PostView:
    """A post as shown to a subscriber."""

    id: str
    feed_id: str
    feed_name: str
    title: str
    url: str
    description: str
    published_at: datetime


def is_unique_violation(error: IntegrityError) -> bool:
    """Tell unique-constraint failures apart from other integrity errors."""
    orig = getattr(error, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code == "23505":
        return True
    if getattr(orig, "sqlite_errorname", "") in (
        "SQLITE_CONSTRAINT_UNIQUE",
        "SQLITE_CONSTRAINT_PRIMARYKEY",
    ):
        return True
    message = str(orig if orig is not None else error).lower()
    return (
        "unique constraint" in message
        or "duplicate key" in message
        or "duplicate entry" in message
    )


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database(LoggerMixin):
    """Relational store used by the scheduler, the ingestor and the CLI."""

    def __init__(self, url: Optional[str] = None, echo: bool = False):
        super().__init__()
        self.url = url or DatabaseConfig().url

        engine_kwargs = {"echo": echo}
        if self.url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if self.url in ("sqlite://", "sqlite:///:memory:"):
                engine_kwargs["poolclass"] = StaticPool

        self.engine = create_engine(self.url, **engine_kwargs)
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        self._sessions = sessionmaker(bind=self.engine, expire_on_commit=False)

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> "Database":
        return cls(config.url, echo=config.echo)

    @contextmanager
    def session(
        self, unique_error: Type[UniqueViolation] = UniqueViolation
    ) -> Iterator[Session]:
        """
        Open a session that commits on success and rolls back on error.

        Args:
            unique_error: Exception raised when a unique constraint fails

        Raises:
            UniqueViolation: (or ``unique_error``) on duplicate keys
            StoreUnavailableError: If the database cannot be reached
            StoreError: On any other database failure
        """
        session = self._sessions()
        try:
            yield session
            session.commit()
        except IntegrityError as e:
            session.rollback()
            if is_unique_violation(e):
                raise unique_error(str(e.orig)) from e
            raise StoreError(str(e.orig)) from e
        except OperationalError as e:
            session.rollback()
            raise StoreUnavailableError(str(e.orig)) from e
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(str(e)) from e
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()

    def create_all(self) -> None:
        """Create any missing tables."""
        try:
            Base.metadata.create_all(self.engine)
        except OperationalError as e:
            raise StoreUnavailableError(str(e.orig)) from e

    def dispose(self) -> None:
        self.engine.dispose()

    # Users

    def create_user(self, name: str) -> User:
        with self.session(unique_error=UserExistsError) as session:
            user = User(name=name)
            session.add(user)
            session.flush()
            return user

    def get_user(self, name: str) -> User:
        with self.session() as session:
            user = session.scalars(select(User).where(User.name == name)).first()
            if user is None:
                raise NotFoundError(f"user {name!r} does not exist")
            return user

    def list_users(self) -> List[User]:
        with self.session() as session:
            return list(session.scalars(select(User).order_by(User.name)))

    def reset(self) -> None:
        """Delete every user and, with them, all feeds, follows and posts."""
        with self.session() as session:
            session.execute(delete(Post))
            session.execute(delete(FeedFollow))
            session.execute(delete(Feed))
            session.execute(delete(User))

    # Feeds

    def create_feed(self, name: str, url: str, owner_id: str) -> Feed:
        with self.session(unique_error=FeedExistsError) as session:
            feed = Feed(name=name, url=url, user_id=owner_id)
            session.add(feed)
            session.flush()
            return feed

    def get_feed(self, feed_id: str) -> Feed:
        with self.session() as session:
            feed = session.get(Feed, feed_id)
            if feed is None:
                raise NotFoundError(f"feed {feed_id} does not exist")
            return feed

    def get_feed_by_url(self, url: str) -> Feed:
        with self.session() as session:
            feed = session.scalars(select(Feed).where(Feed.url == url)).first()
            if feed is None:
                raise NotFoundError(f"no feed with url {url}")
            return feed

    def list_feeds(self) -> List[FeedView]:
        with self.session() as session:
            rows = session.execute(
                select(Feed, User.name)
                .join(User, Feed.user_id == User.id)
                .order_by(Feed.created_at, Feed.name)
            )
            return [
                FeedView(
                    id=feed.id,
                    name=feed.name,
                    url=feed.url,
                    owner_name=owner_name,
                    last_fetched_at=feed.last_fetched_at,
                )
                for feed, owner_name in rows
            ]

    def _next_feed_query(self):
        return (
            select(Feed)
            .order_by(Feed.last_fetched_at.asc().nulls_first(), Feed.created_at, Feed.id)
            .limit(1)
        )

    def get_next_feed_to_fetch(self) -> Optional[Feed]:
        """The stalest feed: never-fetched feeds first, then oldest fetch time."""
        with self.session() as session:
            return session.scalars(self._next_feed_query()).first()

    def mark_feed_fetched(self, feed_id: str, timestamp: Optional[datetime] = None) -> Feed:
        """
        Record a fetch attempt.

        ``last_fetched_at`` never moves backwards: an older timestamp leaves
        the stored value as it is.
        """
        timestamp = as_utc(timestamp or utcnow())
        with self.session() as session:
            feed = session.get(Feed, feed_id)
            if feed is None:
                raise NotFoundError(f"feed {feed_id} does not exist")
            if feed.last_fetched_at is None or timestamp > feed.last_fetched_at:
                feed.last_fetched_at = timestamp
            return feed

    def claim_next_feed(self, timestamp: Optional[datetime] = None) -> Optional[Feed]:
        """
        Select the stalest feed and mark it fetched in one atomic step.

        The update only applies if ``last_fetched_at`` still holds the value
        seen by the select, so concurrent claimers never get the same feed.

        Returns:
            The claimed feed, or None when there are no feeds
        """
        timestamp = as_utc(timestamp or utcnow())
        for _ in range(CLAIM_ATTEMPTS):
            with self.session() as session:
                candidate = session.scalars(self._next_feed_query()).first()
                if candidate is None:
                    return None

                previous = candidate.last_fetched_at
                if previous is None:
                    unchanged = Feed.last_fetched_at.is_(None)
                    marked = timestamp
                else:
                    unchanged = Feed.last_fetched_at == previous
                    marked = max(previous, timestamp)

                result = session.execute(
                    update(Feed)
                    .where(Feed.id == candidate.id, unchanged)
                    .values(last_fetched_at=marked, updated_at=utcnow())
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 1:
                    session.expunge(candidate)
                    candidate.last_fetched_at = marked
                    return candidate

            self.log_debug("Lost feed claim, retrying", feed_id=candidate.id)
        return None

    # Posts

    def create_post(
        self,
        feed_id: str,
        title: str,
        url: str,
        description: str,
        published_at: datetime,
    ) -> Post:
        with self.session() as session:
            post = Post(
                feed_id=feed_id,
                title=title,
                url=url,
                description=description,
                published_at=published_at,
            )
            session.add(post)
            session.flush()
            return post

    def list_posts_for_feed(self, feed_id: str) -> List[Post]:
        with self.session() as session:
            return list(
                session.scalars(
                    select(Post).where(Post.feed_id == feed_id).order_by(Post.published_at)
                )
            )

    def get_posts_for_user(self, user_id: str, limit: int = 2) -> List[PostView]:
        """Newest posts from the feeds the user follows."""
        with self.session() as session:
            rows = session.execute(
                select(Post, Feed.name)
                .join(Feed, Post.feed_id == Feed.id)
                .join(FeedFollow, FeedFollow.feed_id == Feed.id)
                .where(FeedFollow.user_id == user_id)
                .order_by(Post.published_at.desc())
                .limit(limit)
            )
            return [
                PostView(
                    id=post.id,
                    feed_id=post.feed_id,
                    feed_name=feed_name,
                    title=post.title,
                    url=post.url,
                    description=post.description,
                    published_at=post.published_at,
                )
                for post, feed_name in rows
            ]

    # Follows

    def _follow_views(self, session: Session, *criteria) -> List[FeedFollowView]:
        rows = session.execute(
            select(FeedFollow, User.name, Feed.name, Feed.url)
            .join(User, FeedFollow.user_id == User.id)
            .join(Feed, FeedFollow.feed_id == Feed.id)
            .where(*criteria)
            .order_by(FeedFollow.created_at, Feed.name)
        )
        return [
            FeedFollowView(
                id=follow.id,
                user_id=follow.user_id,
                feed_id=follow.feed_id,
                user_name=user_name,
                feed_name=feed_name,
                feed_url=feed_url,
                created_at=follow.created_at,
            )
            for follow, user_name, feed_name, feed_url in rows
        ]

    def create_feed_follow(self, user_id: str, feed_id: str) -> FeedFollowView:
        with self.session(unique_error=AlreadyFollowingError) as session:
            follow = FeedFollow(user_id=user_id, feed_id=feed_id)
            session.add(follow)
            session.flush()
            return self._follow_views(session, FeedFollow.id == follow.id)[0]

    def delete_feed_follow(self, user_id: str, url: str) -> None:
        with self.session() as session:
            feed_ids = select(Feed.id).where(Feed.url == url).scalar_subquery()
            result = session.execute(
                delete(FeedFollow)
                .where(FeedFollow.user_id == user_id, FeedFollow.feed_id == feed_ids)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFoundError(f"not following {url}")

    def list_feed_follows_for_user(self, user_id: str) -> List[FeedFollowView]:
        with self.session() as session:
            return self._follow_views(session, FeedFollow.user_id == user_id)
