"""
Engagement Ranker Module

Scores posts by a weighted sum of likes, reposts and replies and keeps the
top of the list for the model.
"""

from typing import List, Iterable

from config import settings
from data.models import Post


def engagement_score(post: Post) -> float:
    """
    Weighted engagement: likes + 2 * reposts + 1.5 * replies.

    Args:
        post: The post to score.

    Returns:
        float: The engagement score.
    """
    return (post.like_count * settings.LIKE_WEIGHT
            + post.repost_count * settings.REPOST_WEIGHT
            + post.reply_count * settings.REPLY_WEIGHT)


def rank_posts(posts: Iterable[Post], limit: int = settings.MAX_RANKED_POSTS) -> List[Post]:
    """
    Sort posts by engagement, highest first, and keep the first limit.

    The sort is stable, so equal scores keep their input order.

    Args:
        posts: Candidate posts.
        limit: Number of posts to keep.

    Returns:
        List[Post]: The ranked posts.
    """
    return sorted(posts, key=engagement_score, reverse=True)[:limit]
