"""
Tests for the Engagement Ranker

Tests cover the weighted score, ordering, stability for ties and the limit.
"""

import pytest
from unittest.mock import patch
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.ranker import engagement_score, rank_posts


class TestEngagementScore:
    """Tests for engagement_score."""

    def test_weights(self, post_factory):
        """likes + 2 * reposts + 1.5 * replies."""
        post = post_factory("1", likes=10, reposts=3, replies=4)
        assert engagement_score(post) == 10 + 6 + 6

    def test_zero(self, post_factory):
        assert engagement_score(post_factory("1")) == 0

    def test_weights_come_from_settings(self, post_factory):
        with patch('services.ranker.settings') as mock_settings:
            mock_settings.LIKE_WEIGHT = 0
            mock_settings.REPOST_WEIGHT = 1
            mock_settings.REPLY_WEIGHT = 0
            assert engagement_score(post_factory("1", likes=100, reposts=2)) == 2


class TestRankPosts:
    """Tests for rank_posts."""

    def test_highest_first(self, post_factory):
        low = post_factory("low", likes=1)
        high = post_factory("high", reposts=10)
        mid = post_factory("mid", replies=4)

        assert rank_posts([low, high, mid], limit=10) == [high, mid, low]

    def test_ties_keep_input_order(self, post_factory):
        """A repost counts the same as two likes; the earlier post stays first."""
        first = post_factory("first", likes=2)
        second = post_factory("second", reposts=1)
        third = post_factory("third", likes=2)

        assert rank_posts([first, second, third], limit=10) == [first, second, third]

    def test_limit(self, post_factory):
        posts = [post_factory(str(i), likes=i) for i in range(200)]
        ranked = rank_posts(posts, limit=150)

        assert len(ranked) == 150
        assert ranked[0].like_count == 199
        assert ranked[-1].like_count == 50

    def test_fewer_posts_than_limit(self, post_factory):
        posts = [post_factory("1"), post_factory("2")]
        assert len(rank_posts(posts, limit=150)) == 2

    def test_empty(self):
        assert rank_posts([], limit=150) == []

    def test_does_not_mutate_input(self, post_factory):
        posts = [post_factory("a", likes=1), post_factory("b", likes=5)]
        original = list(posts)
        rank_posts(posts, limit=10)
        assert posts == original

    def test_accepts_iterables(self, post_factory):
        posts = (post_factory(str(i), likes=i) for i in range(3))
        assert [p.like_count for p in rank_posts(posts, limit=10)] == [2, 1, 0]
