"""
Post Normalizer Module

Converts raw feed items returned by the Bluesky API (atproto models or their
plain JSON form) into canonical Post records. Embeds are decoded once into a
small tagged union so nothing downstream inspects raw embed payloads.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Any

from data.models import Author, Post, QuotedPost
from utils.helpers import safe_get
from utils.logger import get_logger

logger = get_logger(__name__)

RECORD_VIEW = "app.bsky.embed.record#view"
RECORD_WITH_MEDIA_VIEW = "app.bsky.embed.recordWithMedia#view"
VIEW_RECORD = "app.bsky.embed.record#viewRecord"


class EmbedKind(Enum):
    """The embed shapes the digest understands."""
    NONE = "none"
    QUOTED_RECORD = "quoted_record"
    QUOTED_RECORD_WITH_MEDIA = "quoted_record_with_media"
    OTHER = "other"


@dataclass(frozen=True)
class Embed:
    """A decoded embed. quoted is set only for realized quote records."""
    kind: EmbedKind
    quoted: Optional[QuotedPost] = None


def type_tag(value: Any) -> Optional[str]:
    """
    Read the lexicon type tag of an atproto object.

    atproto models expose it as py_type; raw JSON uses "$type".
    """
    if value is None:
        return None
    if isinstance(value, dict):
        return value.get("$type") or value.get("py_type")
    return getattr(value, "py_type", None)


def _author(raw_author: Any) -> Author:
    return Author(
        handle=safe_get(raw_author, "handle", default=""),
        display_name=safe_get(raw_author, "display_name") or safe_get(raw_author, "displayName"),
        avatar=safe_get(raw_author, "avatar"),
    )


def _quoted_from_view_record(record: Any) -> Optional[QuotedPost]:
    # viewNotFound / viewBlocked / viewDetached and generator or list views are skipped
    if type_tag(record) != VIEW_RECORD:
        return None
    return QuotedPost(
        author=_author(safe_get(record, "author")),
        text=safe_get(record, "value", "text", default=""),
        uri=safe_get(record, "uri"),
    )


def decode_embed(raw_embed: Any) -> Embed:
    """
    Decode a post embed into the Embed tagged union.

    Args:
        raw_embed: The post's embed view, or None.

    Returns:
        Embed: Never raises; malformed payloads decode without a quoted post.
    """
    if raw_embed is None:
        return Embed(EmbedKind.NONE)

    tag = type_tag(raw_embed)
    try:
        if tag == RECORD_VIEW:
            return Embed(EmbedKind.QUOTED_RECORD,
                         _quoted_from_view_record(safe_get(raw_embed, "record")))
        if tag == RECORD_WITH_MEDIA_VIEW:
            # recordWithMedia wraps a record#view, which wraps the quoted record
            return Embed(EmbedKind.QUOTED_RECORD_WITH_MEDIA,
                         _quoted_from_view_record(safe_get(raw_embed, "record", "record")))
    except (AttributeError, TypeError, KeyError) as e:
        logger.debug(f"Ignoring malformed {tag} embed: {e}")
        return Embed(EmbedKind.OTHER)

    return Embed(EmbedKind.OTHER)


def _count(value: Any) -> int:
    try:
        return max(int(value or 0), 0)
    except (TypeError, ValueError):
        return 0


def normalize_feed_item(item: Any) -> Post:
    """
    Convert one feed item ({post, reason?, reply?}) into a Post.

    Args:
        item: A FeedViewPost from getTimeline/getFeed, or its dict form.

    Returns:
        Post: The normalized post.
    """
    post = safe_get(item, "post", default=item)
    record = safe_get(post, "record")

    created_at = safe_get(record, "created_at") or safe_get(record, "createdAt") or ""

    return Post(
        uri=safe_get(post, "uri", default=""),
        cid=safe_get(post, "cid"),
        author=_author(safe_get(post, "author")),
        text=safe_get(record, "text", default=""),
        created_at=created_at,
        like_count=_count(safe_get(post, "like_count") or safe_get(post, "likeCount")),
        repost_count=_count(safe_get(post, "repost_count") or safe_get(post, "repostCount")),
        reply_count=_count(safe_get(post, "reply_count") or safe_get(post, "replyCount")),
        quoted_post=decode_embed(safe_get(post, "embed")).quoted,
    )
