"""
Feed retrieval and RSS decoding.
"""

import asyncio
import html
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Union

import aiohttp

from ..config import SchedulerConfig
from ..errors import FeedParseError, FetchError
from ..utils.logger import LoggerMixin


@dataclass
class RSSItem:
    """A single ``<item>`` of a channel."""

    title: str = ""
    link: str = ""
    description: str = ""
    pub_date: str = ""


@dataclass
class RSSFeed:
    """A decoded ``<channel>`` with its items in document order."""

    title: str = ""
    link: str = ""
    description: str = ""
    items: List[RSSItem] = field(default_factory=list)


def _child_text(element: Optional[ET.Element], tag: str) -> str:
    if element is None:
        return ""
    child = element.find(tag)
    if child is None:
        return ""
    return "".join(child.itertext()).strip()


def parse_rss(payload: Union[bytes, str], url: str = "") -> RSSFeed:
    """
    Decode an RSS 2.0 document.

    Unknown elements are ignored and missing ones default to an empty string.
    Channel and item titles and descriptions are HTML-unescaped once after
    the XML decode, so ``&amp;amp;`` in the source ends up as ``&``.

    Args:
        payload: Raw response body
        url: Feed URL, only used in error messages

    Returns:
        The decoded feed

    Raises:
        FeedParseError: If the body is not well-formed XML
    """
    if isinstance(payload, str):
        payload = payload.encode("utf-8")

    try:
        root = ET.fromstring(payload.strip())
    except ET.ParseError as e:
        raise FeedParseError(url, f"malformed XML: {e}") from e

    channel = root.find("channel")
    feed = RSSFeed(
        title=html.unescape(_child_text(channel, "title")),
        link=_child_text(channel, "link"),
        description=html.unescape(_child_text(channel, "description")),
    )
    if channel is None:
        return feed

    for element in channel.findall("item"):
        feed.items.append(
            RSSItem(
                title=html.unescape(_child_text(element, "title")),
                link=_child_text(element, "link"),
                description=html.unescape(_child_text(element, "description")),
                pub_date=_child_text(element, "pubDate"),
            )
        )
    return feed


class FeedSource(Protocol):
    """Anything that can turn a feed URL into a decoded :class:`RSSFeed`."""

    async def fetch(self, url: str) -> RSSFeed:
        ...


class HTTPFeedSource(LoggerMixin):
    """
    Fetch feeds over HTTP with aiohttp.

    No retries happen here: a failed feed is simply picked up again on its
    next turn in the schedule.
    """

    def __init__(
        self,
        config: Optional[SchedulerConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        super().__init__()
        self.config = config or SchedulerConfig()
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "HTTPFeedSource":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.request_timeout)
            )
            self._owns_session = True
        return self._session

    async def fetch(self, url: str) -> RSSFeed:
        """
        Fetch and decode one feed.

        Args:
            url: URL of the RSS feed

        Returns:
            Decoded feed

        Raises:
            FetchError: On network errors, timeouts or a non-2xx response
            FeedParseError: If the body is not well-formed XML
        """
        session = self._get_session()
        headers = {"User-Agent": self.config.user_agent}
        try:
            async with session.get(url, headers=headers) as response:
                body = await response.read()
                if not 200 <= response.status < 300:
                    raise FetchError(
                        url, f"HTTP {response.status}", status=response.status
                    )
        except asyncio.TimeoutError as e:
            raise FetchError(url, "request timed out") from e
        except aiohttp.ClientError as e:
            raise FetchError(url, str(e) or type(e).__name__) from e

        self.log_debug("Fetched feed", feed_url=url, size=len(body))
        return parse_rss(body, url)

    async def close(self) -> None:
        """Close the HTTP session if this source created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()


class StaticFeedSource:
    """
    In-memory feed source.

    Maps URLs to XML payloads, or to an exception instance that ``fetch``
    raises. Every call is recorded in ``requested``.
    """

    def __init__(self, payloads: Optional[Dict[str, Union[str, bytes, Exception]]] = None):
        self.payloads: Dict[str, Union[str, bytes, Exception]] = dict(payloads or {})
        self.requested: List[str] = []

    async def fetch(self, url: str) -> RSSFeed:
        self.requested.append(url)
        payload = self.payloads.get(url)
        if payload is None:
            raise FetchError(url, "no such feed", status=404)
        if isinstance(payload, Exception):
            raise payload
        return parse_rss(payload, url)
