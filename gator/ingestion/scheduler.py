"""
Periodic feed aggregation.

Every tick claims the stalest feed (never-fetched feeds first), fetches it
and stores its new posts. The claim marks the feed fetched before the network
call, so a feed that keeps failing still rotates through the schedule instead
of being retried ahead of its peers.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Union

from ..errors import FetchError, NoFeedsError, StoreError, StoreUnavailableError
from ..store import Database, Feed
from ..store.models import utcnow
from ..utils.durations import format_duration
from ..utils.logger import ContextLogger, LoggerMixin, get_logger
from .fetcher import FeedSource
from .ingestor import IngestResult, PostIngestor

MIN_FETCH_INTERVAL = timedelta(seconds=1)

logger = get_logger(__name__)


def clamp_interval(interval: Union[timedelta, float, int]) -> timedelta:
    """
    Enforce the minimum time between ticks.

    Args:
        interval: Requested interval, a timedelta or a number of seconds

    Returns:
        The requested interval, or MIN_FETCH_INTERVAL if it is shorter
    """
    if not isinstance(interval, timedelta):
        interval = timedelta(seconds=interval)

    if interval < MIN_FETCH_INTERVAL:
        logger.warning(
            "Requested interval is too short, using the minimum instead",
            requested=format_duration(interval),
            interval=format_duration(MIN_FETCH_INTERVAL),
        )
        return MIN_FETCH_INTERVAL
    return interval


@dataclass
class ScrapeResult:
    """What happened to one feed during a tick."""

    feed: Feed
    ingest: Optional[IngestResult] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class FetchScheduler(LoggerMixin):
    """
    Drives feed fetching on a fixed cadence.

    With ``concurrency`` above 1 each tick claims up to that many feeds and
    fetches them concurrently; claims are atomic so a feed is never taken
    twice in the same tick.
    """

    def __init__(
        self,
        db: Database,
        source: FeedSource,
        interval: Union[timedelta, float, int] = 60,
        ingestor: Optional[PostIngestor] = None,
        concurrency: int = 1,
        clock: Callable[[], datetime] = utcnow,
    ):
        super().__init__()
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        self.db = db
        self.source = source
        self.interval = clamp_interval(interval)
        self.ingestor = ingestor or PostIngestor(db)
        self.concurrency = concurrency
        self.clock = clock

        self._stop_requested = False
        self._wakeup: Optional[asyncio.Event] = None

        self.stats = {
            "ticks": 0,
            "feeds_fetched": 0,
            "fetch_errors": 0,
            "posts_created": 0,
            "duplicates": 0,
            "items_skipped": 0,
            "last_tick": None,
        }

    def _claim_feeds(self) -> List[Feed]:
        feeds: List[Feed] = []
        claimed_ids = set()
        for _ in range(self.concurrency):
            feed = self.db.claim_next_feed(self.clock())
            if feed is None or feed.id in claimed_ids:
                break
            claimed_ids.add(feed.id)
            feeds.append(feed)
        return feeds

    async def scrape_feed(self, feed: Feed) -> ScrapeResult:
        """
        Fetch one already-claimed feed and ingest its items.

        Failures are logged and returned in the result, never raised.
        """
        with ContextLogger("scrape_feed", feed_url=feed.url):
            try:
                rss = await self.source.fetch(feed.url)
            except FetchError as e:
                self.stats["fetch_errors"] += 1
                self.log_error("Error fetching feed", error=e, feed_url=feed.url)
                return ScrapeResult(feed=feed, error=e)
            except Exception as e:
                self.stats["fetch_errors"] += 1
                self.log_error("Unexpected error fetching feed", error=e, feed_url=feed.url)
                return ScrapeResult(feed=feed, error=e)

            result = self.ingestor.ingest(feed, rss.items)
            self.stats["feeds_fetched"] += 1
            self.stats["posts_created"] += result.created
            self.stats["duplicates"] += result.duplicates
            self.stats["items_skipped"] += result.skipped
            self.log_info(
                "Fetched feed",
                feed=feed.name,
                feed_url=feed.url,
                items=len(rss.items),
                created=result.created,
                duplicates=result.duplicates,
                skipped=result.skipped,
            )
            return ScrapeResult(feed=feed, ingest=result)

    async def scrape_once(self) -> List[ScrapeResult]:
        """
        Run a single tick.

        Returns:
            One result per claimed feed

        Raises:
            NoFeedsError: If there is no feed to fetch
            StoreError: If the feed could not be selected or marked
        """
        self.stats["ticks"] += 1
        self.stats["last_tick"] = self.clock().isoformat()

        feeds = self._claim_feeds()
        if not feeds:
            raise NoFeedsError("no feeds to fetch")

        if len(feeds) == 1:
            return [await self.scrape_feed(feeds[0])]
        return list(await asyncio.gather(*(self.scrape_feed(feed) for feed in feeds)))

    async def run(self, max_ticks: Optional[int] = None) -> None:
        """
        Tick until stopped or cancelled.

        The first tick runs immediately, the next ones one interval after the
        start of the previous tick. Per-feed failures and an empty feed set
        are logged and the loop goes on; an unreachable datastore ends it.

        Args:
            max_ticks: Stop after this many ticks (run forever when None)

        Raises:
            StoreUnavailableError: If the datastore cannot be reached
        """
        self._stop_requested = False
        self._wakeup = asyncio.Event()
        loop = asyncio.get_running_loop()
        ticks = 0

        self.log_info(
            "Collecting feeds",
            interval=format_duration(self.interval),
            concurrency=self.concurrency,
        )

        while not self._stop_requested and (max_ticks is None or ticks < max_ticks):
            started = loop.time()
            try:
                await self.scrape_once()
            except NoFeedsError:
                self.log_warning("No feeds to fetch")
            except StoreUnavailableError as e:
                self.log_error("Datastore unavailable, stopping", error=e)
                raise
            except StoreError as e:
                self.log_error("Error scraping feeds", error=e)

            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                break

            delay = self.interval.total_seconds() - (loop.time() - started)
            if delay > 0 and not self._stop_requested:
                try:
                    await asyncio.wait_for(self._wakeup.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass

        self.log_info("Feed collection stopped", ticks=ticks)

    def stop(self) -> None:
        """Ask the loop to exit after the current tick."""
        self._stop_requested = True
        if self._wakeup is not None:
            self._wakeup.set()
