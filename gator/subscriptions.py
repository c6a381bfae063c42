"""
Follow graph between users and feeds.

Every operation takes the acting user explicitly; nothing here reads the
session file.
"""

from typing import List, Optional, Tuple

from .errors import FeedExistsError, NotFoundError
from .ingestion.fetcher import FeedSource
from .store import Database, Feed, FeedFollowView, User
from .utils.logger import LoggerMixin


class SubscriptionManager(LoggerMixin):
    """Create feeds and follow or unfollow them on behalf of a user."""

    def __init__(self, db: Database, source: Optional[FeedSource] = None):
        super().__init__()
        self.db = db
        self.source = source

    def create_feed_if_absent(self, user: User, name: str, url: str) -> Tuple[Feed, bool]:
        """
        Return the feed registered for ``url``, creating it if needed.

        Returns:
            The feed and whether it was created by this call
        """
        try:
            return self.db.get_feed_by_url(url), False
        except NotFoundError:
            pass

        try:
            feed = self.db.create_feed(name=name, url=url, owner_id=user.id)
        except FeedExistsError:
            # Registered between the lookup and the insert
            return self.db.get_feed_by_url(url), False

        self.log_info("Feed created", feed=name, feed_url=url, owner=user.name)
        return feed, True

    async def add_feed(
        self, user: User, name: str, url: str, verify: bool = True
    ) -> Tuple[Feed, FeedFollowView]:
        """
        Register a new feed owned by ``user`` and follow it.

        Args:
            user: Owner of the new feed
            name: Display name
            url: Feed URL, must not be registered yet
            verify: Fetch the feed once before registering it

        Raises:
            FeedExistsError: If the URL is already registered
            FetchError: If verification fails
        """
        if verify and self.source is not None:
            await self.source.fetch(url)

        feed = self.db.create_feed(name=name, url=url, owner_id=user.id)
        self.log_info("Feed added", feed=name, feed_url=url, owner=user.name)
        follow = self.db.create_feed_follow(user_id=user.id, feed_id=feed.id)
        return feed, follow

    def follow(self, user: User, url: str, name: Optional[str] = None) -> FeedFollowView:
        """
        Follow the feed at ``url``, registering it first if it is unknown.

        Raises:
            AlreadyFollowingError: If the user already follows the feed
        """
        feed, _ = self.create_feed_if_absent(user, name or url, url)
        follow = self.db.create_feed_follow(user_id=user.id, feed_id=feed.id)
        self.log_info("Feed followed", feed=feed.name, user=user.name)
        return follow

    def unfollow(self, user: User, url: str) -> Feed:
        """
        Stop following the feed at ``url``.

        Returns:
            The feed that was unfollowed

        Raises:
            NotFoundError: If the feed is unknown or not followed by the user
        """
        feed = self.db.get_feed_by_url(url)
        self.db.delete_feed_follow(user_id=user.id, url=url)
        self.log_info("Feed unfollowed", feed=feed.name, user=user.name)
        return feed

    def list_followed_feeds(self, user: User) -> List[FeedFollowView]:
        return self.db.list_feed_follows_for_user(user.id)
