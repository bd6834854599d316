"""
Digest Service Module

Orchestrates digest generation: cache lookup, timeline collection, the
optional topic filter, ranking, synthesis and the cache write. Every
collaborator is passed in, so each step can be replaced in tests.

Concurrent requests are not coordinated. Two refreshes of the same digest
both regenerate and the later cache write wins.
"""

from datetime import datetime, timedelta
from typing import Optional, Callable, Any, List, Tuple

from config import settings
from data.models import DigestMeta, DigestRecord, DigestType, Post
from services.cache_service import DigestCache
from services.collector import collect_posts, post_date_range
from services.protocols import FeedSource
from services.ranker import rank_posts
from services.synthesizer import DigestSynthesizer, StructuredOutput, StreamingOutput
from services.topic_filter import TopicFilter
from utils.exceptions import ConfigurationError
from utils.helpers import utc_now, isoformat_z
from utils.logger import get_logger

logger = get_logger(__name__)


class DigestService:
    """Generates and caches daily digests."""

    def __init__(
        self,
        source: FeedSource,
        synthesizer: DigestSynthesizer,
        cache: DigestCache,
        topic_filter: Optional[TopicFilter] = None,
        cutoff: timedelta = timedelta(hours=settings.TIMELINE_CUTOFF_HOURS),
        page_size: int = settings.FEED_PAGE_SIZE,
        stop_threshold: int = settings.OLD_POST_STOP_THRESHOLD,
        max_posts: int = settings.MAX_TIMELINE_POSTS,
        max_ranked: int = settings.MAX_RANKED_POSTS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.source = source
        self.synthesizer = synthesizer
        self.cache = cache
        self.topic_filter = topic_filter
        self.cutoff = cutoff
        self.page_size = page_size
        self.stop_threshold = stop_threshold
        self.max_posts = max_posts
        self.max_ranked = max_ranked
        self._clock = clock or utc_now

    def _gather(self, digest_type: DigestType, now: datetime) -> Tuple[List[Post], Optional[int], Optional[int]]:
        """Collect the timeline and apply the topic filter when needed."""
        if digest_type is DigestType.TOPIC and self.topic_filter is None:
            raise ConfigurationError("Topic digest requested but no topic filter is configured")

        collection = collect_posts(
            self.source.fetch_timeline_page,
            cutoff=self.cutoff,
            page_size=self.page_size,
            stop_threshold=self.stop_threshold,
            max_posts=self.max_posts,
            now=now,
        )

        if digest_type is not DigestType.TOPIC:
            return collection.posts, None, None

        result = self.topic_filter.apply(collection.posts, now=now)
        logger.info(f"Topic filter kept {len(result.posts)} posts "
                    f"({result.keyword_matches} keyword matches, {result.feed_post_count} from feeds)")
        return result.posts, result.keyword_matches, result.feed_post_count

    def get_digest(self, digest_type: Any = DigestType.GENERAL, refresh: bool = False) -> DigestRecord:
        """
        Return today's digest, generating it when the cache has none.

        Args:
            digest_type: DigestType or its string value.
            refresh: Skip the cache read. The result is still cached.

        Returns:
            DigestRecord: The digest, with cached=True when served from the cache.

        Raises:
            ConfigurationError: If the digest type cannot be served.
            FeedFetchError: If the timeline cannot be fetched.
            AIServiceError: If the model call fails or its reply is malformed.
        """
        digest_type = DigestType.parse(digest_type)

        if not refresh:
            cached = self.cache.get(digest_type)
            if cached is not None:
                return cached
        else:
            logger.info(f"Refresh requested, skipping cache for {digest_type.value} digest")

        now = self._clock()
        posts, keyword_matches, feed_post_count = self._gather(digest_type, now)
        ranked = rank_posts(posts, self.max_ranked)
        oldest, newest = post_date_range(posts)

        if ranked:
            record = self.synthesizer.synthesize(ranked, digest_type, StructuredOutput())
        else:
            logger.warning(f"No posts available for the {digest_type.value} digest")
            record = DigestRecord(overview="No posts were found in your feed for this period.")

        record.meta = DigestMeta(
            total_posts=len(posts),
            posts_analyzed=len(ranked),
            oldest_post_date=oldest.created_at if oldest else None,
            newest_post_date=newest.created_at if newest else None,
            generated_at=isoformat_z(now),
            digest_type=digest_type.value,
            keyword_matches=keyword_matches,
            feed_post_count=feed_post_count,
        )
        record.cached = False

        if ranked:
            self.cache.set(digest_type, record)
        return record

    def stream_digest(self, digest_type: Any, sink: Callable[[str], Any]) -> str:
        """
        Generate a markdown digest, passing model output to sink as it arrives.

        Streamed digests are never cached.

        Args:
            digest_type: DigestType or its string value.
            sink: Called with each text chunk.

        Returns:
            str: The full streamed text.
        """
        digest_type = DigestType.parse(digest_type)
        posts, _, _ = self._gather(digest_type, self._clock())
        ranked = rank_posts(posts, self.max_ranked)
        if not ranked:
            logger.warning(f"No posts available for the {digest_type.value} digest")
            return ""
        return self.synthesizer.synthesize(ranked, digest_type, StreamingOutput(sink))
