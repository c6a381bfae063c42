"""
Pytest configuration and shared fixtures for gator testing.
"""
import os
from datetime import datetime, timezone
from typing import Dict, List

import pytest
import structlog

from gator.store import Database


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo any logging setup a test performed."""
    yield
    structlog.reset_defaults()


@pytest.fixture(autouse=True)
def isolated_session_file(tmp_path, monkeypatch):
    """Keep the session file out of the real home directory."""
    path = tmp_path / "gatorconfig.json"
    monkeypatch.setenv("GATOR_CONFIG_PATH", str(path))
    return path


@pytest.fixture
def mock_env_vars():
    """Mock environment variables for testing."""
    original_env = dict(os.environ)

    test_env = {
        "GATOR_DB_URL": "sqlite://",
        "GATOR_FETCH_INTERVAL": "30s",
        "GATOR_FETCH_CONCURRENCY": "2",
        "GATOR_REQUEST_TIMEOUT": "5",
        "GATOR_USER_AGENT": "gator-test",
        "LOG_LEVEL": "DEBUG",
    }

    os.environ.update(test_env)
    yield test_env

    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def db():
    """In-memory database with the schema created."""
    database = Database("sqlite://")
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture
def alice(db):
    return db.create_user("alice")


@pytest.fixture
def bob(db):
    return db.create_user("bob")


@pytest.fixture
def utc():
    """Build aware UTC datetimes: utc(2024, 1, 1, 12)."""

    def build(*args) -> datetime:
        return datetime(*args, tzinfo=timezone.utc)

    return build


def build_rss(items: List[Dict[str, str]], title: str = "Test Feed") -> str:
    """Render an RSS 2.0 document from item dicts (title, link, description, pubDate)."""
    parts = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<rss version="2.0">',
        "<channel>",
        f"<title>{title}</title>",
        "<link>https://example.com</link>",
        "<description>Test RSS Feed</description>",
    ]
    for item in items:
        parts.append("<item>")
        for tag in ("title", "link", "description", "pubDate"):
            if tag in item:
                parts.append(f"<{tag}>{item[tag]}</{tag}>")
        parts.append("</item>")
    parts.extend(["</channel>", "</rss>"])
    return "\n".join(parts)


@pytest.fixture
def rss_payload():
    """Factory fixture around :func:`build_rss`."""
    return build_rss


@pytest.fixture
def mock_rss_feed():
    """A small two-item feed as served over HTTP."""
    return """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:atom="http://www.w3.org/2005/Atom">
<channel>
<title>Boot.dev Blog</title>
<link>https://blog.boot.dev/</link>
<description>Recent content on Boot.dev Blog</description>
<atom:link href="https://blog.boot.dev/index.xml" rel="self" type="application/rss+xml"/>
<item>
<title>The Zen of Proverbs</title>
<link>https://blog.boot.dev/education/zen-of-proverbs/</link>
<pubDate>Mon, 06 Jan 2025 10:00:00 GMT</pubDate>
<description>Short sayings &amp;amp; what they teach about code.</description>
</item>
<item>
<title>Learn Go</title>
<link>https://blog.boot.dev/golang/learn-go/</link>
<pubDate>Tue, 07 Jan 2025 10:00:00 +0000</pubDate>
<description>Getting started with Go.</description>
</item>
</channel>
</rss>"""


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow running tests")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on path."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
