"""Centralized error types for gator.

Lower layers (fetcher, date normalizer, store) raise these; the scheduler and
the post ingestor decide which ones to swallow and which ones to escalate.
"""
from __future__ import annotations

from typing import Optional


class GatorError(Exception):
    """Base exception for every error raised by gator."""


class UsageError(GatorError):
    """Bad command line arguments. The process does not proceed."""


class SessionError(GatorError):
    """The session file exists but cannot be read."""


class IngestionError(GatorError):
    """Base exception for ingestion-related failures."""


class DateParseError(IngestionError):
    """A publication date matched none of the known layouts."""

    def __init__(self, value: str):
        super().__init__(f"unable to parse date: {value!r}")
        self.value = value


class TransientError(GatorError):
    """Indicates an error that may succeed if retried (network, timeouts)."""


class FetchError(TransientError):
    """A feed could not be retrieved or decoded."""

    def __init__(self, url: str, reason: str, status: Optional[int] = None):
        super().__init__(f"error fetching {url}: {reason}")
        self.url = url
        self.reason = reason
        self.status = status


class FeedParseError(FetchError):
    """The feed body is not well-formed XML."""


class StoreError(GatorError):
    """Base exception for persistence failures."""


class StoreUnavailableError(StoreError):
    """The datastore cannot be reached at all."""


class UniqueViolation(StoreError):
    """A uniqueness constraint rejected the write."""


class FeedExistsError(UniqueViolation):
    """A feed with the same URL is already registered."""


class AlreadyFollowingError(UniqueViolation):
    """The user already follows the feed."""


class UserExistsError(UniqueViolation):
    """A user with the same name is already registered."""


class NotFoundError(StoreError):
    """The requested record does not exist."""


class NoFeedsError(GatorError):
    """There is no feed to fetch."""
