"""
End-to-end tests: HTTP feeds -> scheduler -> stored posts -> browse query.
"""
import asyncio
from datetime import timedelta

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from gator.config import SchedulerConfig
from gator.ingestion import scheduler as scheduler_module
from gator.ingestion.fetcher import HTTPFeedSource
from gator.ingestion.scheduler import FetchScheduler
from gator.subscriptions import SubscriptionManager


@pytest_asyncio.fixture
async def feeds_server(rss_payload):
    """Serve two healthy feeds and one that always fails."""
    hits = {}

    def feed_handler(name, items):
        async def handler(request):
            hits[name] = hits.get(name, 0) + 1
            return web.Response(text=rss_payload(items, title=name), content_type="application/rss+xml")

        return handler

    async def failing(request):
        hits["failing"] = hits.get("failing", 0) + 1
        return web.Response(status=500, text="oops")

    tech = [
        {
            "title": "Rust &amp;amp; Python",
            "link": "https://tech.test/1",
            "description": "Languages",
            "pubDate": "Mon, 01 Jan 2024 10:00:00 +0000",
        },
        {
            "title": "Undated",
            "link": "https://tech.test/2",
            "description": "No usable date",
            "pubDate": "sometime last week",
        },
        {
            "title": "Databases",
            "link": "https://tech.test/3",
            "description": "Storage",
            "pubDate": "2024-01-03T09:00:00Z",
        },
    ]
    news = [
        {
            "title": "Headline",
            "link": "https://news.test/1",
            "description": "Big news",
            "pubDate": "Tue, 02 Jan 2024 08:00:00 EST",
        }
    ]

    app = web.Application()
    app.router.add_get("/tech.xml", feed_handler("tech", tech))
    app.router.add_get("/news.xml", feed_handler("news", news))
    app.router.add_get("/failing.xml", failing)

    server = TestServer(app)
    await server.start_server()
    server.hits = hits
    yield server
    await server.close()


@pytest.mark.asyncio
async def test_scheduler_collects_posts_for_followers(db, alice, bob, feeds_server, monkeypatch):
    monkeypatch.setattr(scheduler_module, "MIN_FETCH_INTERVAL", timedelta(milliseconds=10))

    def url(path):
        return str(feeds_server.make_url(path))

    async with HTTPFeedSource(SchedulerConfig(request_timeout=5)) as source:
        manager = SubscriptionManager(db, source)
        await manager.add_feed(alice, "Tech", url("/tech.xml"))
        await manager.add_feed(alice, "Broken", url("/failing.xml"), verify=False)
        await manager.add_feed(bob, "News", url("/news.xml"))
        manager.follow(bob, url("/tech.xml"))

        scheduler = FetchScheduler(db, source, interval=timedelta(milliseconds=10))
        await asyncio.wait_for(scheduler.run(max_ticks=3), timeout=10)

    assert scheduler.stats["feeds_fetched"] == 2
    assert scheduler.stats["fetch_errors"] == 1
    assert scheduler.stats["posts_created"] == 3
    assert scheduler.stats["items_skipped"] == 1
    assert feeds_server.hits["failing"] == 1
    assert all(feed.last_fetched_at is not None for feed in db.list_feeds())

    alice_posts = db.get_posts_for_user(alice.id, limit=10)
    assert [post.title for post in alice_posts] == ["Databases", "Rust & Python"]

    bob_posts = db.get_posts_for_user(bob.id, limit=10)
    assert [post.title for post in bob_posts] == ["Databases", "Headline", "Rust & Python"]
    headline = bob_posts[1]
    assert headline.published_at.hour == 13


@pytest.mark.asyncio
async def test_refetch_does_not_duplicate_posts(db, alice, feeds_server, monkeypatch):
    monkeypatch.setattr(scheduler_module, "MIN_FETCH_INTERVAL", timedelta(milliseconds=10))

    async with HTTPFeedSource() as source:
        feed, _ = await SubscriptionManager(db, source).add_feed(
            alice, "Tech", str(feeds_server.make_url("/tech.xml")), verify=False
        )
        scheduler = FetchScheduler(db, source, interval=timedelta(milliseconds=10))
        await asyncio.wait_for(scheduler.run(max_ticks=2), timeout=10)

    assert feeds_server.hits["tech"] == 2
    assert scheduler.ingestor.stats["posts_created"] == 2
    assert scheduler.ingestor.stats["duplicates"] == 2
    assert len(db.list_posts_for_feed(feed.id)) == 2
