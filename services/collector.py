"""
Timeline Collector Module

Pages through a Bluesky timeline (or any feed with the same cursor contract)
and keeps the posts inside a recency window.

The feed is not strictly chronological: the following timeline interleaves
reposts and algorithmic picks, so an old post does not mean the rest of the
feed is old. Collection therefore stops only after a run of consecutive old
posts, which tolerates short bursts at the cost of sometimes keeping a post
slightly outside the window or missing one that arrives after the run.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, List, Any, Callable, Iterable, Tuple

from config import settings
from data.models import Post
from services.normalizer import normalize_feed_item
from utils.exceptions import FeedFetchError
from utils.helpers import safe_get, parse_timestamp, utc_now
from utils.logger import get_logger

logger = get_logger(__name__)

# fetch_page(limit, cursor) -> page exposing .feed and .cursor (or dict keys)
PageFetcher = Callable[[int, Optional[str]], Any]


@dataclass
class CollectionResult:
    """Deduplicated posts plus the oldest and newest dated posts among them."""
    posts: List[Post] = field(default_factory=list)
    oldest: Optional[Post] = None
    newest: Optional[Post] = None
    pages_fetched: int = 0


def dedupe_posts(posts: Iterable[Post]) -> List[Post]:
    """
    Drop repeated posts, keeping the first occurrence of each uri in order.

    Args:
        posts: Posts in collection order.

    Returns:
        List[Post]: Posts with unique uris.
    """
    seen = set()
    unique = []
    for post in posts:
        if post.uri in seen:
            continue
        seen.add(post.uri)
        unique.append(post)
    return unique


def post_date_range(posts: Iterable[Post]) -> Tuple[Optional[Post], Optional[Post]]:
    """
    Find the oldest and newest posts by created_at.

    Posts without a parseable timestamp are skipped.

    Returns:
        Tuple: (oldest, newest), both None if no post is dated.
    """
    oldest = newest = None
    oldest_at = newest_at = None
    for post in posts:
        created = parse_timestamp(post.created_at)
        if created is None:
            continue
        if oldest_at is None or created < oldest_at:
            oldest, oldest_at = post, created
        if newest_at is None or created > newest_at:
            newest, newest_at = post, created
    return oldest, newest


def collect_posts(
    fetch_page: PageFetcher,
    cutoff: timedelta = timedelta(hours=24),
    page_size: int = settings.FEED_PAGE_SIZE,
    stop_threshold: int = settings.OLD_POST_STOP_THRESHOLD,
    max_posts: int = settings.MAX_TIMELINE_POSTS,
    now: Optional[datetime] = None,
    source: str = "timeline",
) -> CollectionResult:
    """
    Page through a feed, keeping posts newer than now - cutoff.

    Stops when a page ends with stop_threshold or more old posts in a row
    (the run may span pages), when the feed has no
    more pages (no cursor or an empty page) or when more than max_posts posts
    have been kept. Posts with no timestamp are kept and leave the old-post
    counter alone.

    Args:
        fetch_page: Called as fetch_page(limit, cursor) for each page.
        cutoff: Recency window.
        page_size: Posts requested per page.
        stop_threshold: Consecutive old posts that end pagination.
        max_posts: Hard cap on kept posts.
        now: Reference time; defaults to the current UTC time.
        source: Label used in log messages.

    Returns:
        CollectionResult: Deduplicated posts and their date range.

    Raises:
        FeedFetchError: If a page fetch fails. Pagination is not retried.
    """
    threshold_time = (now or utc_now()) - cutoff
    kept: List[Post] = []
    consecutive_old = 0
    cursor = None
    pages = 0
    stop_reason = None

    while stop_reason is None:
        try:
            page = fetch_page(page_size, cursor)
        except FeedFetchError:
            raise
        except Exception as e:
            logger.error(f"Error fetching {source} page {pages + 1}: {e}")
            raise FeedFetchError(f"Failed to fetch {source} page {pages + 1}: {e}") from e
        pages += 1

        items = safe_get(page, "feed", default=[]) or []
        if not items:
            stop_reason = "empty page"
            break

        for item in items:
            post = normalize_feed_item(item)
            created = parse_timestamp(post.created_at)

            if created is None or created >= threshold_time:
                kept.append(post)
                if created is not None:
                    consecutive_old = 0
            else:
                consecutive_old += 1

        # Checked per page: a fresh post later in the same page resets the run
        if consecutive_old >= stop_threshold:
            stop_reason = f"{consecutive_old} consecutive posts older than cutoff"
            break
        if len(kept) > max_posts:
            stop_reason = f"post cap of {max_posts} exceeded"
            break

        cursor = safe_get(page, "cursor")
        if not cursor:
            stop_reason = "no more pages"

    posts = dedupe_posts(kept)
    oldest, newest = post_date_range(posts)
    logger.info(f"Collected {len(posts)} {source} posts from {pages} page(s) "
                f"({len(kept) - len(posts)} duplicates dropped; stopped: {stop_reason})")

    return CollectionResult(posts=posts, oldest=oldest, newest=newest, pages_fetched=pages)
