"""Unit tests for the centralized error types."""

import pytest

from gator import errors


def test_exceptions_hierarchy():
    assert issubclass(errors.IngestionError, errors.GatorError)
    assert issubclass(errors.DateParseError, errors.IngestionError)
    assert issubclass(errors.FetchError, errors.TransientError)
    assert issubclass(errors.FeedParseError, errors.FetchError)
    assert issubclass(errors.StoreUnavailableError, errors.StoreError)
    assert issubclass(errors.NotFoundError, errors.StoreError)
    assert issubclass(errors.NoFeedsError, errors.GatorError)


def test_unique_violations_are_distinguishable():
    for cls in (errors.FeedExistsError, errors.AlreadyFollowingError, errors.UserExistsError):
        assert issubclass(cls, errors.UniqueViolation)
        assert issubclass(cls, errors.StoreError)

    assert not issubclass(errors.NotFoundError, errors.UniqueViolation)
    assert not issubclass(errors.StoreUnavailableError, errors.UniqueViolation)


def test_date_parse_error_keeps_value():
    error = errors.DateParseError("not-a-date")
    assert error.value == "not-a-date"
    assert "not-a-date" in str(error)


def test_fetch_error_details():
    error = errors.FetchError("https://example.com/feed.xml", "HTTP 503", status=503)
    assert error.url == "https://example.com/feed.xml"
    assert error.status == 503
    assert "HTTP 503" in str(error)

    with pytest.raises(errors.TransientError):
        raise errors.FeedParseError("https://example.com/feed.xml", "malformed XML")
