"""
Turn fetched feed items into stored posts.
"""

from dataclasses import dataclass
from typing import Iterable

from ..errors import DateParseError, StoreError, UniqueViolation
from ..store import Database, Feed
from ..utils.logger import LoggerMixin
from .dates import parse_published_at
from .fetcher import RSSItem


@dataclass
class IngestResult:
    """Outcome of ingesting one feed's item list."""

    created: int = 0
    duplicates: int = 0
    skipped: int = 0

    @property
    def processed(self) -> int:
        return self.created + self.duplicates + self.skipped


class PostIngestor(LoggerMixin):
    """
    Persist feed items as posts, one item at a time.

    A bad item (unparseable date, failed insert) is skipped and never stops
    the rest of the batch. Items already stored for the same feed and URL are
    counted as duplicates, so ingesting the same list twice is a no-op the
    second time.
    """

    def __init__(self, db: Database):
        super().__init__()
        self.db = db

        self.stats = {
            "posts_created": 0,
            "duplicates": 0,
            "items_skipped": 0,
        }

    def ingest(self, feed: Feed, items: Iterable[RSSItem]) -> IngestResult:
        """
        Ingest items in feed order.

        Args:
            feed: Feed the items were fetched from
            items: Decoded items

        Returns:
            Counts of created, duplicate and skipped items
        """
        result = IngestResult()

        for item in items:
            try:
                published_at = parse_published_at(item.pub_date)
            except DateParseError as e:
                self.log_warning(
                    "Skipping item with unparseable date",
                    feed_url=feed.url,
                    item_url=item.link,
                    pub_date=e.value,
                )
                result.skipped += 1
                continue

            try:
                self.db.create_post(
                    feed_id=feed.id,
                    title=item.title,
                    url=item.link,
                    description=item.description,
                    published_at=published_at,
                )
            except UniqueViolation:
                self.log_debug("Post already stored", feed_url=feed.url, item_url=item.link)
                result.duplicates += 1
                continue
            except StoreError as e:
                self.log_error(
                    "Error creating post", error=e, feed_url=feed.url, item_url=item.link
                )
                result.skipped += 1
                continue

            result.created += 1

        self.stats["posts_created"] += result.created
        self.stats["duplicates"] += result.duplicates
        self.stats["items_skipped"] += result.skipped
        return result
