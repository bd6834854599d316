"""
Shared Test Fixtures for the Bluesky Digest

This module provides common fixtures used across all test modules.
Fixtures include factories for raw feed items and normalized posts, a fake
paged feed, a fixed clock, mock services and log capture.
"""

import pytest
from unittest.mock import MagicMock
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, List
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from data.models import Author, Post, QuotedPost


# Reference time used by most tests
NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def iso(moment: datetime) -> str:
    """Format a datetime like the Bluesky API does."""
    return moment.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.000Z')


# =============================================================================
# Clock Fixtures
# =============================================================================

class FakeClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    """A FakeClock starting at NOW."""
    return FakeClock()


# =============================================================================
# Data Factories
# =============================================================================

@pytest.fixture
def feed_item_factory():
    """
    Factory fixture for raw feed items in their JSON (dict) form.

    Usage:
        def test_something(feed_item_factory):
            item = feed_item_factory("1", text="hello", hours_ago=2)

    Returns:
        callable: A factory function for raw feed items.
    """
    def _create_item(
        rkey: str,
        text: str = "",
        hours_ago: Optional[float] = 1,
        handle: str = "alice.test",
        display_name: Optional[str] = "Alice",
        likes: Optional[int] = 0,
        reposts: Optional[int] = 0,
        replies: Optional[int] = 0,
        embed: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        record = {"$type": "app.bsky.feed.post", "text": text}
        if hours_ago is not None:
            record["createdAt"] = iso(NOW - timedelta(hours=hours_ago))

        post = {
            "uri": f"at://did:plc:{handle.split('.')[0]}/app.bsky.feed.post/{rkey}",
            "cid": f"cid-{rkey}",
            "author": {"did": f"did:plc:{handle.split('.')[0]}", "handle": handle},
            "record": record,
            "indexedAt": record.get("createdAt", iso(NOW)),
        }
        if display_name is not None:
            post["author"]["displayName"] = display_name
        if likes is not None:
            post["likeCount"] = likes
        if reposts is not None:
            post["repostCount"] = reposts
        if replies is not None:
            post["replyCount"] = replies
        if embed is not None:
            post["embed"] = embed
        return {"post": post}

    return _create_item


@pytest.fixture
def post_factory():
    """
    Factory fixture for normalized Post objects.

    Returns:
        callable: A factory function for Post objects.
    """
    def _create_post(
        rkey: str,
        text: str = "Test post",
        handle: str = "alice.test",
        created_at: str = "2024-01-15T11:00:00.000Z",
        likes: int = 0,
        reposts: int = 0,
        replies: int = 0,
        quoted_text: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> Post:
        quoted = None
        if quoted_text is not None:
            quoted = QuotedPost(author=Author(handle="bob.test"), text=quoted_text)
        return Post(
            uri=f"at://did:plc:test/app.bsky.feed.post/{rkey}",
            author=Author(handle=handle, display_name=display_name),
            text=text,
            created_at=created_at,
            like_count=likes,
            repost_count=reposts,
            reply_count=replies,
            quoted_post=quoted,
        )

    return _create_post


# =============================================================================
# Fake Upstream Fixtures
# =============================================================================

class PagedFeed:
    """
    Serves a list of raw items page by page, like getTimeline/getFeed.

    The cursor is the offset of the next page; the last page has no cursor.
    """

    def __init__(self, items: List[Dict[str, Any]]):
        self.items = items
        self.calls = []

    def __call__(self, limit: int, cursor: Optional[str] = None) -> Dict[str, Any]:
        self.calls.append((limit, cursor))
        start = int(cursor) if cursor else 0
        page = self.items[start:start + limit]
        end = start + len(page)
        return {"feed": page, "cursor": str(end) if end < len(self.items) else None}


@pytest.fixture
def paged_feed():
    """Factory for PagedFeed fetchers."""
    return PagedFeed


@pytest.fixture
def mock_feed_source():
    """
    A mock FeedSource with an empty timeline.

    Tests replace fetch_timeline_page / fetch_feed_page side effects as needed.
    """
    source = MagicMock()
    source.fetch_timeline_page.side_effect = PagedFeed([])
    source.fetch_feed_page.return_value = {"feed": [], "cursor": None}
    source.resolve_handle.side_effect = lambda handle: f"did:plc:{handle.split('.')[0]}"
    return source


@pytest.fixture
def mock_model():
    """A mock CompletionModel returning a minimal valid digest."""
    model = MagicMock()
    model.complete.return_value = '{"overview": "Quiet day.", "notablePosts": [], "trendingTopics": []}'
    model.stream.return_value = iter(["## Overview\n", "Quiet day."])
    return model


# =============================================================================
# Logging Fixtures
# =============================================================================

@pytest.fixture
def capture_logs():
    """
    Capture log messages for assertion in tests.

    Returns:
        list: A list that will contain captured log records.
    """
    import logging

    class LogCapture(logging.Handler):
        def __init__(self):
            super().__init__()
            self.records = []

        def emit(self, record):
            self.records.append(record)

    handler = LogCapture()
    handler.setLevel(logging.DEBUG)

    app_logger = logging.getLogger("digest")
    original_level = app_logger.level
    app_logger.setLevel(logging.DEBUG)
    app_logger.addHandler(handler)

    yield handler.records

    app_logger.removeHandler(handler)
    app_logger.setLevel(original_level)
