"""
Topic Filter Module

Builds the post set for the topic digest: timeline posts that mention one of
the topic keywords, merged with posts from curated feed generators.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, List, Iterable, Pattern, Sequence

from config import settings
from data.models import Post
from services.collector import collect_posts, dedupe_posts
from services.protocols import FeedSource
from utils.logger import get_logger

logger = get_logger(__name__)

FEED_GENERATOR_COLLECTION = "app.bsky.feed.generator"


@dataclass(frozen=True)
class FeedReference:
    """A feed generator addressed by its owner (handle or DID) and record key."""
    actor: str
    key: str

    @classmethod
    def parse(cls, value: str) -> "FeedReference":
        """
        Parse an "actor/key" string.

        Raises:
            ValueError: If either part is missing.
        """
        actor, _, key = value.strip().partition("/")
        if not actor or not key:
            raise ValueError(f"Feed reference '{value}' must look like 'actor/key'")
        return cls(actor=actor, key=key)

    def feed_uri(self, did: str) -> str:
        """Build the at:// URI of the generator record for a resolved DID."""
        return f"at://{did}/{FEED_GENERATOR_COLLECTION}/{self.key}"


@dataclass
class TopicFilterResult:
    """Merged topic posts and where they came from."""
    posts: List[Post] = field(default_factory=list)
    keyword_matches: int = 0
    feed_post_count: int = 0


def build_keyword_pattern(
    terms: Iterable[str],
    whole_word: bool = True,
    substring_terms: Iterable[str] = (),
) -> Pattern:
    """
    Compile a case-insensitive alternation of keywords.

    Args:
        terms: Keywords and phrases, matched on word boundaries when whole_word is set.
        whole_word: If False, terms match anywhere (e.g. "model" hits "remodel").
        substring_terms: Extra terms that always match anywhere.

    Returns:
        Pattern: The compiled regular expression.

    Raises:
        ValueError: If no terms are given.
    """
    alternatives = []
    # Longest first so "large language model" wins over "model"
    for term in sorted({t.strip() for t in terms if t.strip()}, key=len, reverse=True):
        escaped = re.escape(term)
        alternatives.append(rf"\b{escaped}\b" if whole_word else escaped)
    for term in sorted({t.strip() for t in substring_terms if t.strip()}, key=len, reverse=True):
        alternatives.append(re.escape(term))

    if not alternatives:
        raise ValueError("At least one keyword is required")
    return re.compile("|".join(alternatives), re.IGNORECASE)


def post_matches(post: Post, pattern: Pattern) -> bool:
    """Check the post text together with any quoted text."""
    text = post.text or ""
    if post.quoted_post and post.quoted_post.text:
        text = f"{text} {post.quoted_post.text}"
    return bool(pattern.search(text))


class TopicFilter:
    """Keyword filter over the timeline plus curated topic feeds."""

    def __init__(
        self,
        source: FeedSource,
        feeds: Sequence[FeedReference],
        pattern: Pattern,
        cutoff: timedelta = timedelta(hours=24),
        page_size: int = settings.FEED_PAGE_SIZE,
        stop_threshold: int = settings.OLD_POST_STOP_THRESHOLD,
        max_feed_posts: int = settings.MAX_TOPIC_FEED_POSTS,
    ):
        self.source = source
        self.feeds = list(feeds)
        self.pattern = pattern
        self.cutoff = cutoff
        self.page_size = page_size
        self.stop_threshold = stop_threshold
        self.max_feed_posts = max_feed_posts

    def fetch_feed_posts(self, feed: FeedReference, now: Optional[datetime] = None) -> List[Post]:
        """
        Resolve a feed reference and page through the generator's posts.

        Raises whatever the source raises; apply() isolates the failure.
        """
        did = feed.actor if feed.actor.startswith("did:") else self.source.resolve_handle(feed.actor)
        uri = feed.feed_uri(did)

        result = collect_posts(
            lambda limit, cursor: self.source.fetch_feed_page(uri, limit, cursor),
            cutoff=self.cutoff,
            page_size=self.page_size,
            stop_threshold=self.stop_threshold,
            max_posts=self.max_feed_posts,
            now=now,
            source=f"feed {feed.actor}/{feed.key}",
        )
        return result.posts

    def apply(self, posts: Iterable[Post], now: Optional[datetime] = None) -> TopicFilterResult:
        """
        Keyword-filter posts, merge in topic feed posts and dedupe.

        A failing feed is logged and contributes nothing.

        Args:
            posts: Timeline posts.
            now: Reference time for the feed recency window.

        Returns:
            TopicFilterResult: Merged posts and per-source counts.
        """
        matched = [post for post in posts if post_matches(post, self.pattern)]
        logger.info(f"{len(matched)} timeline posts matched topic keywords")

        feed_posts: List[Post] = []
        for feed in self.feeds:
            try:
                fetched = self.fetch_feed_posts(feed, now=now)
            except Exception as e:
                logger.warning(f"Skipping topic feed {feed.actor}/{feed.key}: {e}")
                continue
            logger.info(f"Fetched {len(fetched)} posts from topic feed {feed.actor}/{feed.key}")
            feed_posts.extend(fetched)

        merged = dedupe_posts(matched + feed_posts)
        return TopicFilterResult(
            posts=merged,
            keyword_matches=len(matched),
            feed_post_count=len(feed_posts),
        )
