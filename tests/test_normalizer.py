"""
Tests for the Post Normalizer

Tests cover embed decoding for every embed shape, feed item normalization
from both the JSON form and atproto-style objects, and count clamping.
"""

import pytest
from types import SimpleNamespace
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.normalizer import (
    EmbedKind, decode_embed, normalize_feed_item, type_tag,
    RECORD_VIEW, RECORD_WITH_MEDIA_VIEW, VIEW_RECORD,
)


def view_record(text="quoted text", handle="bob.test", uri="at://did:plc:bob/app.bsky.feed.post/q1"):
    """JSON form of an app.bsky.embed.record#viewRecord."""
    return {
        "$type": VIEW_RECORD,
        "uri": uri,
        "author": {"handle": handle, "displayName": "Bob"},
        "value": {"$type": "app.bsky.feed.post", "text": text},
    }


# =============================================================================
# Embed Decoding Tests
# =============================================================================

class TestDecodeEmbed:
    """Tests for decode_embed."""

    def test_no_embed(self):
        """A missing embed decodes to NONE with no quoted post."""
        embed = decode_embed(None)
        assert embed.kind is EmbedKind.NONE
        assert embed.quoted is None

    def test_quote_record(self):
        """record#view wrapping a viewRecord yields the quoted author and text."""
        embed = decode_embed({"$type": RECORD_VIEW, "record": view_record("hello there")})

        assert embed.kind is EmbedKind.QUOTED_RECORD
        assert embed.quoted.text == "hello there"
        assert embed.quoted.author.handle == "bob.test"
        assert embed.quoted.author.display_name == "Bob"
        assert embed.quoted.uri == "at://did:plc:bob/app.bsky.feed.post/q1"

    def test_quote_with_media(self):
        """recordWithMedia#view reads the quote one level deeper."""
        raw = {
            "$type": RECORD_WITH_MEDIA_VIEW,
            "record": {"$type": RECORD_VIEW, "record": view_record("with a picture")},
            "media": {"$type": "app.bsky.embed.images#view", "images": []},
        }
        embed = decode_embed(raw)

        assert embed.kind is EmbedKind.QUOTED_RECORD_WITH_MEDIA
        assert embed.quoted.text == "with a picture"

    def test_images_only(self):
        """Embeds that are not quotes decode to OTHER."""
        embed = decode_embed({"$type": "app.bsky.embed.images#view", "images": []})
        assert embed.kind is EmbedKind.OTHER
        assert embed.quoted is None

    def test_external_link(self):
        """Link cards decode to OTHER."""
        embed = decode_embed({"$type": "app.bsky.embed.external#view", "external": {"uri": "https://x"}})
        assert embed.kind is EmbedKind.OTHER

    def test_quote_of_deleted_post(self):
        """A quote whose target is viewNotFound has no quoted post."""
        raw = {"$type": RECORD_VIEW,
               "record": {"$type": "app.bsky.embed.record#viewNotFound", "uri": "at://x", "notFound": True}}
        embed = decode_embed(raw)

        assert embed.kind is EmbedKind.QUOTED_RECORD
        assert embed.quoted is None

    def test_quote_of_blocked_post(self):
        """A quote whose target is viewBlocked has no quoted post."""
        raw = {"$type": RECORD_VIEW,
               "record": {"$type": "app.bsky.embed.record#viewBlocked", "uri": "at://x", "blocked": True}}
        assert decode_embed(raw).quoted is None

    def test_quote_of_feed_generator(self):
        """Quoting a feed generator view is not a quoted post."""
        raw = {"$type": RECORD_VIEW,
               "record": {"$type": "app.bsky.feed.defs#generatorView", "uri": "at://x/app.bsky.feed.generator/y"}}
        assert decode_embed(raw).quoted is None

    def test_record_view_missing_record(self):
        """A record#view without its record field does not raise."""
        embed = decode_embed({"$type": RECORD_VIEW})
        assert embed.kind is EmbedKind.QUOTED_RECORD
        assert embed.quoted is None

    def test_record_with_media_missing_inner_record(self):
        """A recordWithMedia#view with a truncated payload does not raise."""
        embed = decode_embed({"$type": RECORD_WITH_MEDIA_VIEW, "record": {"$type": RECORD_VIEW}})
        assert embed.kind is EmbedKind.QUOTED_RECORD_WITH_MEDIA
        assert embed.quoted is None

    def test_untagged_embed(self):
        """An embed without any type tag decodes to OTHER."""
        assert decode_embed({"images": []}).kind is EmbedKind.OTHER

    def test_quoted_record_without_text(self):
        """A quoted record with no text yields an empty string."""
        record = view_record()
        record["value"] = {"$type": "app.bsky.feed.post"}
        embed = decode_embed({"$type": RECORD_VIEW, "record": record})
        assert embed.quoted.text == ""

    def test_atproto_style_objects(self):
        """Objects exposing py_type and snake_case attributes decode the same way."""
        record = SimpleNamespace(
            py_type=VIEW_RECORD,
            uri="at://did:plc:bob/app.bsky.feed.post/q2",
            author=SimpleNamespace(handle="bob.test", display_name="Bob B", avatar=None),
            value=SimpleNamespace(text="object quote"),
        )
        embed = decode_embed(SimpleNamespace(py_type=RECORD_VIEW, record=record))

        assert embed.kind is EmbedKind.QUOTED_RECORD
        assert embed.quoted.text == "object quote"
        assert embed.quoted.author.display_name == "Bob B"


class TestTypeTag:
    """Tests for type_tag."""

    def test_dict_dollar_type(self):
        assert type_tag({"$type": RECORD_VIEW}) == RECORD_VIEW

    def test_object_py_type(self):
        assert type_tag(SimpleNamespace(py_type=VIEW_RECORD)) == VIEW_RECORD

    def test_none(self):
        assert type_tag(None) is None

    def test_object_without_tag(self):
        assert type_tag(object()) is None


# =============================================================================
# Feed Item Normalization Tests
# =============================================================================

class TestNormalizeFeedItem:
    """Tests for normalize_feed_item."""

    def test_basic_fields(self, feed_item_factory):
        """Identity, author, text, timestamp and counts are copied over."""
        item = feed_item_factory("abc", text="Hello Bluesky", likes=5, reposts=2, replies=1)
        post = normalize_feed_item(item)

        assert post.uri == "at://did:plc:alice/app.bsky.feed.post/abc"
        assert post.cid == "cid-abc"
        assert post.author.handle == "alice.test"
        assert post.author.display_name == "Alice"
        assert post.text == "Hello Bluesky"
        assert post.created_at == "2024-01-15T11:00:00.000Z"
        assert (post.like_count, post.repost_count, post.reply_count) == (5, 2, 1)
        assert post.quoted_post is None

    def test_missing_counts_default_to_zero(self, feed_item_factory):
        """Absent engagement counts become 0."""
        post = normalize_feed_item(feed_item_factory("a", likes=None, reposts=None, replies=None))
        assert (post.like_count, post.repost_count, post.reply_count) == (0, 0, 0)

    def test_negative_counts_are_clamped(self, feed_item_factory):
        """Counts are never negative."""
        post = normalize_feed_item(feed_item_factory("a", likes=-3))
        assert post.like_count == 0

    def test_missing_display_name(self, feed_item_factory):
        post = normalize_feed_item(feed_item_factory("a", display_name=None))
        assert post.author.display_name is None

    def test_missing_timestamp(self, feed_item_factory):
        """A record without createdAt yields an empty created_at."""
        post = normalize_feed_item(feed_item_factory("a", hours_ago=None))
        assert post.created_at == ""

    def test_quote_embed(self, feed_item_factory):
        item = feed_item_factory("a", text="look at this",
                                 embed={"$type": RECORD_VIEW, "record": view_record("original")})
        post = normalize_feed_item(item)

        assert post.quoted_post is not None
        assert post.quoted_post.text == "original"

    def test_repost_reason_is_ignored(self, feed_item_factory):
        """Reposts carry the original post; the reason does not change it."""
        item = feed_item_factory("a", text="reposted")
        item["reason"] = {"$type": "app.bsky.feed.defs#reasonRepost", "by": {"handle": "carol.test"}}
        post = normalize_feed_item(item)

        assert post.author.handle == "alice.test"
        assert post.text == "reposted"

    def test_atproto_style_item(self):
        """A FeedViewPost-like object with snake_case attributes is normalized."""
        item = SimpleNamespace(post=SimpleNamespace(
            uri="at://did:plc:dan/app.bsky.feed.post/xyz",
            cid="cid-xyz",
            author=SimpleNamespace(handle="dan.test", display_name="Dan", avatar="https://cdn/avatar"),
            record=SimpleNamespace(text="from the sdk", created_at="2024-01-15T10:00:00.000Z"),
            embed=None,
            like_count=7,
            repost_count=None,
            reply_count=3,
        ))
        post = normalize_feed_item(item)

        assert post.author.avatar == "https://cdn/avatar"
        assert post.text == "from the sdk"
        assert post.created_at == "2024-01-15T10:00:00.000Z"
        assert (post.like_count, post.repost_count, post.reply_count) == (7, 0, 3)

    def test_web_url(self, feed_item_factory):
        post = normalize_feed_item(feed_item_factory("3kabc"))
        assert post.web_url == "https://bsky.app/profile/alice.test/post/3kabc"
