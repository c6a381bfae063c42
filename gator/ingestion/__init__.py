"""Feed fetching, date normalization, post ingestion and scheduling."""

from .dates import parse_published_at
from .fetcher import FeedSource, HTTPFeedSource, RSSFeed, RSSItem, StaticFeedSource, parse_rss
from .ingestor import IngestResult, PostIngestor
from .scheduler import MIN_FETCH_INTERVAL, FetchScheduler, ScrapeResult, clamp_interval

__all__ = [
    "parse_published_at",
    "FeedSource",
    "HTTPFeedSource",
    "StaticFeedSource",
    "RSSFeed",
    "RSSItem",
    "parse_rss",
    "IngestResult",
    "PostIngestor",
    "FetchScheduler",
    "ScrapeResult",
    "MIN_FETCH_INTERVAL",
    "clamp_interval",
]
