"""
Bluesky Service Module

This module handles the AT Protocol (Bluesky) side of the digest. It
authenticates with an app password and exposes the paged timeline, feed
generator and handle resolution calls the collector and topic filter use.
"""

from typing import Optional, List, Any

from atproto import Client

from config import settings
from data.models import Post
from services.normalizer import normalize_feed_item
from utils.exceptions import AuthenticationError, FeedFetchError, UnknownFeedError
from utils.logger import get_logger

logger = get_logger(__name__)


class BlueskyService:
    """Service for reading timelines and feeds over the AT Protocol."""

    def __init__(self, client: Optional[Client] = None, handle: Optional[str] = None,
                 app_password: Optional[str] = None, login: bool = True):
        """
        Initialize the service.

        Args:
            client: An atproto Client; a new one is created if omitted.
            handle: Account handle; defaults to settings.BLUESKY_HANDLE.
            app_password: App password; defaults to settings.BLUESKY_APP_PASSWORD.
            login: Log in immediately. Pass False when the client is already authenticated.
        """
        self.at_client = client or Client()
        self.handle = handle or settings.BLUESKY_HANDLE
        self.app_password = app_password or settings.BLUESKY_APP_PASSWORD
        if login:
            self.login()

    def login(self) -> None:
        """
        Authenticate with Bluesky.

        Raises:
            AuthenticationError: If credentials are missing or rejected.
        """
        if not self.handle or not self.app_password:
            logger.error("Missing Bluesky credentials")
            raise AuthenticationError("Missing Bluesky credentials")

        try:
            self.at_client.login(self.handle, self.app_password)
        except Exception as e:
            logger.error(f"Failed to authenticate with Bluesky: {e}")
            raise AuthenticationError(f"Failed to authenticate with Bluesky as {self.handle}") from e

        logger.info(f"Successfully logged in to Bluesky as {self.handle}")

    def fetch_timeline_page(self, limit: int, cursor: Optional[str] = None) -> Any:
        """
        Fetch one page of the following timeline.

        Args:
            limit: Page size (max 100).
            cursor: Cursor from the previous page.

        Returns:
            The getTimeline response (feed, cursor).

        Raises:
            FeedFetchError: If the API call fails.
        """
        try:
            return self.at_client.get_timeline(cursor=cursor, limit=limit)
        except Exception as e:
            logger.error(f"Error fetching timeline: {e}")
            raise FeedFetchError(f"Failed to fetch timeline: {e}") from e

    def fetch_feed_page(self, feed_uri: str, limit: int, cursor: Optional[str] = None) -> Any:
        """
        Fetch one page of a feed generator.

        Args:
            feed_uri: at:// URI of the generator record.
            limit: Page size (max 100).
            cursor: Cursor from the previous page.

        Returns:
            The getFeed response (feed, cursor).

        Raises:
            FeedFetchError: If the API call fails.
        """
        params = {'feed': feed_uri, 'limit': limit}
        if cursor:
            params['cursor'] = cursor
        try:
            return self.at_client.app.bsky.feed.get_feed(params)
        except Exception as e:
            logger.error(f"Error fetching feed {feed_uri}: {e}")
            raise FeedFetchError(f"Failed to fetch feed {feed_uri}: {e}") from e

    def resolve_handle(self, handle: str) -> str:
        """
        Resolve a handle to its DID.

        Args:
            handle: Account handle.

        Returns:
            str: The DID.

        Raises:
            FeedFetchError: If the handle cannot be resolved.
        """
        try:
            response = self.at_client.com.atproto.identity.resolve_handle({'handle': handle})
        except Exception as e:
            logger.error(f"Error resolving handle {handle}: {e}")
            raise FeedFetchError(f"Failed to resolve handle {handle}: {e}") from e
        return response.did

    def get_feed(self, feed_name: str = "timeline", limit: int = settings.BROWSE_FEED_LIMIT) -> List[Post]:
        """
        Fetch a single page of a named feed, normalized.

        Args:
            feed_name: "timeline" or a key of settings.BROWSE_FEEDS.
            limit: Number of posts to fetch.

        Returns:
            List[Post]: The posts in feed order.

        Raises:
            UnknownFeedError: If feed_name is not configured.
            FeedFetchError: If the API call fails.
        """
        if feed_name not in settings.BROWSE_FEEDS:
            raise UnknownFeedError(f"Unknown feed '{feed_name}'")

        feed_uri = settings.BROWSE_FEEDS[feed_name]
        if feed_uri is None:
            page = self.fetch_timeline_page(limit)
        else:
            page = self.fetch_feed_page(feed_uri, limit)

        posts = [normalize_feed_item(item) for item in (page.feed or [])]
        logger.info(f"Retrieved {len(posts)} posts from {feed_name}")
        return posts
