"""
Data Models for the Bluesky Digest

This module contains the data classes used throughout the application:
normalized posts, notable-post picks and the cacheable digest record.
Each class converts to and from the camelCase dictionary form that is stored
in the cache and printed by the CLI.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any, Union

from utils.helpers import drop_none


class DigestType(str, Enum):
    """Named digest configurations."""
    GENERAL = "general"
    TOPIC = "topic"

    @classmethod
    def parse(cls, value: Union["DigestType", str]) -> "DigestType":
        """Accept either an enum member or its string value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            names = ", ".join(member.value for member in cls)
            raise ValueError(f"Unknown digest type '{value}' (expected one of: {names})")


@dataclass
class Author:
    """Author of a post."""
    handle: str
    display_name: Optional[str] = None
    avatar: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return drop_none({
            "handle": self.handle,
            "displayName": self.display_name,
            "avatar": self.avatar,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Author":
        return cls(
            handle=data.get("handle") or "",
            display_name=data.get("displayName"),
            avatar=data.get("avatar"),
        )


@dataclass
class QuotedPost:
    """A post embedded (quoted) inside another post."""
    author: Author
    text: str = ""
    uri: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return drop_none({
            "uri": self.uri,
            "author": self.author.to_dict(),
            "text": self.text,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuotedPost":
        return cls(
            author=Author.from_dict(data.get("author") or {}),
            text=data.get("text") or "",
            uri=data.get("uri"),
        )


@dataclass
class Post:
    """Canonical, normalized post. The uri is the deduplication key."""
    uri: str
    author: Author
    text: str = ""
    created_at: str = ""               # ISO-8601; empty when the source lacks it
    like_count: int = 0
    repost_count: int = 0
    reply_count: int = 0
    quoted_post: Optional[QuotedPost] = None
    cid: Optional[str] = None

    @property
    def web_url(self) -> str:
        """Public bsky.app link for the post."""
        rkey = self.uri.rstrip("/").split("/")[-1] if self.uri else ""
        return f"https://bsky.app/profile/{self.author.handle}/post/{rkey}"

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "uri": self.uri,
            "cid": self.cid,
            "author": self.author.to_dict(),
            "text": self.text,
            "createdAt": self.created_at or None,
            "likeCount": self.like_count,
            "repostCount": self.repost_count,
            "replyCount": self.reply_count,
        }
        data = drop_none(data)
        data["quotedPost"] = self.quoted_post.to_dict() if self.quoted_post else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Post":
        quoted = data.get("quotedPost")
        return cls(
            uri=data["uri"],
            cid=data.get("cid"),
            author=Author.from_dict(data.get("author") or {}),
            text=data.get("text") or "",
            created_at=data.get("createdAt") or "",
            like_count=int(data.get("likeCount") or 0),
            repost_count=int(data.get("repostCount") or 0),
            reply_count=int(data.get("replyCount") or 0),
            quoted_post=QuotedPost.from_dict(quoted) if quoted else None,
        )


@dataclass
class NotablePost:
    """A post the model picked out, with its short justification."""
    post: Post
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"post": self.post.to_dict(), "reason": self.reason}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NotablePost":
        return cls(post=Post.from_dict(data["post"]), reason=data.get("reason") or "")


@dataclass
class DigestMeta:
    """Bookkeeping about how a digest was produced."""
    total_posts: int
    posts_analyzed: int
    oldest_post_date: Optional[str]
    newest_post_date: Optional[str]
    generated_at: str
    digest_type: str
    keyword_matches: Optional[int] = None
    feed_post_count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "totalPosts": self.total_posts,
            "postsAnalyzed": self.posts_analyzed,
            "oldestPostDate": self.oldest_post_date,
            "newestPostDate": self.newest_post_date,
            "generatedAt": self.generated_at,
            "digestType": self.digest_type,
        }
        if self.keyword_matches is not None:
            data["keywordMatches"] = self.keyword_matches
        if self.feed_post_count is not None:
            data["feedPostCount"] = self.feed_post_count
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DigestMeta":
        return cls(
            total_posts=int(data.get("totalPosts") or 0),
            posts_analyzed=int(data.get("postsAnalyzed") or 0),
            oldest_post_date=data.get("oldestPostDate"),
            newest_post_date=data.get("newestPostDate"),
            generated_at=data.get("generatedAt") or "",
            digest_type=data.get("digestType") or DigestType.GENERAL.value,
            keyword_matches=data.get("keywordMatches"),
            feed_post_count=data.get("feedPostCount"),
        )


@dataclass
class DigestRecord:
    """The cacheable unit: synthesis, notable posts and trending topics."""
    overview: str
    notable_posts: List[NotablePost] = field(default_factory=list)
    trending_topics: List[str] = field(default_factory=list)
    meta: Optional[DigestMeta] = None
    cached: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "overview": self.overview,
            "notablePosts": [notable.to_dict() for notable in self.notable_posts],
            "trendingTopics": list(self.trending_topics),
            "meta": self.meta.to_dict() if self.meta else None,
        }
        if self.cached:
            data["cached"] = True
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DigestRecord":
        meta = data.get("meta")
        return cls(
            overview=data.get("overview") or "",
            notable_posts=[NotablePost.from_dict(item) for item in data.get("notablePosts") or []],
            trending_topics=list(data.get("trendingTopics") or []),
            meta=DigestMeta.from_dict(meta) if meta else None,
            cached=bool(data.get("cached", False)),
        )
