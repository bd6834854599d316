"""
Digest Synthesizer Module

Turns ranked posts into a digest with the language model. The same prompt
pipeline feeds two output strategies:

- StructuredOutput buffers the completion, parses the JSON reply and maps
  the picked post indices back to posts, producing a DigestRecord.
- StreamingOutput forwards markdown chunks to a sink as they arrive, with no
  parsing.
"""

import json
import re
from typing import List, Callable, Sequence, Any

from config import settings
from data.models import DigestRecord, DigestType, NotablePost, Post
from services.protocols import CompletionModel
from utils.exceptions import DigestParseError
from utils.helpers import truncate_text
from utils.logger import get_logger

logger = get_logger(__name__)

_JSON_CONTRACT = """Respond with ONLY a JSON object, no prose before or after it, in exactly this shape:
{
  "overview": "2-3 sentences summarizing the main themes of the day",
  "notablePosts": [
    {"postIndex": 1, "reason": "1-2 sentences on why this post matters"}
  ],
  "trendingTopics": ["short topic", "another topic"]
}

postIndex is the number in square brackets in front of each post. Pick 5-10 notable posts."""

GENERAL_DIGEST_INSTRUCTIONS = f"""You are a skilled social media analyst creating a daily digest of Bluesky posts. Your goal is to help the reader understand what happened today in their feed without reading every post.

Guidelines:
- Synthesize themes, don't just list posts
- Be concise but insightful
- Highlight why something matters, not just what was said
- For notable posts, explain their significance in 1-2 sentences
- Recognize when multiple posts discuss the same topic and group them
- Note emerging conversations or debates
- Be neutral in tone but can note sentiment trends

{_JSON_CONTRACT}"""

TOPIC_DIGEST_INSTRUCTIONS = f"""You are an AI and machine learning analyst creating a daily digest of Bluesky posts about AI and ML. The posts were selected by keyword matching and from curated AI feeds, so some of them are false positives.

Guidelines:
- Ignore posts that are not actually about AI or machine learning (for example "model" meaning a fashion model, "train" meaning a railway, or "AI" inside an unrelated name). Never pick them as notable posts
- Focus on research results, model releases, tooling, industry moves and substantive debate
- Synthesize themes, don't just list posts
- Highlight why something matters to a practitioner, not just what was said
- For notable posts, explain their significance in 1-2 sentences
- Be neutral in tone but can note sentiment trends

{_JSON_CONTRACT}"""

_MARKDOWN_FORMAT = """Output Format (use markdown):
## Overview
2-3 sentences summarizing the main themes/news of the day.

## Notable Posts
5-10 posts worth reading, each with:
- **@handle**: Brief description of why it's notable
- [Link to post](url)

## Trending Topics
Brief bullet points of recurring themes or active discussions.

Keep the entire digest readable in under 5 minutes."""

STREAMING_DIGEST_INSTRUCTIONS = f"""You are a skilled social media analyst creating a daily digest of Bluesky posts. Your goal is to help the reader understand what happened today in their feed without reading every post.

Guidelines:
- Synthesize themes, don't just list posts
- Be concise but insightful
- Highlight why something matters, not just what was said
- For notable posts, explain their significance in 1-2 sentences
- Recognize when multiple posts discuss the same topic and group them
- Note emerging conversations or debates
- Be neutral in tone but can note sentiment trends

{_MARKDOWN_FORMAT}"""

STREAMING_TOPIC_DIGEST_INSTRUCTIONS = f"""You are an AI and machine learning analyst creating a daily digest of Bluesky posts about AI and ML. The posts were selected by keyword matching and from curated AI feeds, so some of them are false positives.

Guidelines:
- Ignore posts that are not actually about AI or machine learning (for example "model" meaning a fashion model, "train" meaning a railway, or "AI" inside an unrelated name). Never list them as notable posts
- Focus on research results, model releases, tooling, industry moves and substantive debate
- Synthesize themes, don't just list posts
- Highlight why something matters to a practitioner, not just what was said
- For notable posts, explain their significance in 1-2 sentences
- Be neutral in tone but can note sentiment trends

{_MARKDOWN_FORMAT}"""

_FENCE_START = re.compile(r"^\s*```(?:json)?[ \t]*\n?", re.IGNORECASE)
_FENCE_END = re.compile(r"\n?[ \t]*```\s*$")


def instructions_for(digest_type: DigestType) -> str:
    """Return the JSON-mode system instructions for a digest type."""
    if DigestType.parse(digest_type) is DigestType.TOPIC:
        return TOPIC_DIGEST_INSTRUCTIONS
    return GENERAL_DIGEST_INSTRUCTIONS


def streaming_instructions_for(digest_type: DigestType) -> str:
    """Return the markdown-mode system instructions for a digest type."""
    if DigestType.parse(digest_type) is DigestType.TOPIC:
        return STREAMING_TOPIC_DIGEST_INSTRUCTIONS
    return STREAMING_DIGEST_INSTRUCTIONS


def format_post_block(index: int, post: Post, quote_length: int = settings.QUOTE_TRUNCATE_LENGTH) -> str:
    """
    Render one numbered post for the prompt.

    Args:
        index: 1-based position in the ranked list.
        post: The post.
        quote_length: Characters of quoted text to keep before "...".

    Returns:
        str: The post block.
    """
    name = post.author.display_name or post.author.handle
    engagement = f"[{post.like_count} likes, {post.repost_count} reposts, {post.reply_count} replies]"
    lines = [f"[{index}] @{post.author.handle} ({name}) {engagement}", f'"{post.text}"']
    if post.quoted_post:
        quoted = truncate_text(post.quoted_post.text or "", quote_length)
        lines.append(f'  > Quoting @{post.quoted_post.author.handle}: "{quoted}"')
    lines.append(f"Link: {post.web_url}")
    lines.append("---")
    return "\n".join(lines)


def build_digest_prompt(posts: Sequence[Post], quote_length: int = settings.QUOTE_TRUNCATE_LENGTH) -> str:
    """
    Build the user message listing the ranked posts.

    Args:
        posts: Ranked posts; their 1-based positions are the postIndex values.
        quote_length: Characters of quoted text to keep.

    Returns:
        str: The prompt.
    """
    blocks = "\n".join(format_post_block(i, post, quote_length) for i, post in enumerate(posts, start=1))
    return (f"Here are today's top {len(posts)} posts from my Bluesky feed, sorted by engagement:\n\n"
            f"{blocks}\n\n"
            f"Please create a daily digest following the format in your instructions.")


def strip_code_fence(text: str) -> str:
    """Remove a surrounding ``` or ```json markdown fence, if present."""
    stripped = text.strip()
    stripped = _FENCE_START.sub("", stripped, count=1)
    stripped = _FENCE_END.sub("", stripped, count=1)
    return stripped.strip()


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def parse_digest_response(text: str, posts: Sequence[Post]) -> DigestRecord:
    """
    Parse the model's JSON reply and map post indices to posts.

    Indices outside 1..len(posts) and repeated indices are dropped.

    Args:
        text: Raw model response.
        posts: The ranked posts the prompt listed.

    Returns:
        DigestRecord: The digest without meta.

    Raises:
        DigestParseError: If the reply is empty, not JSON, or the wrong shape.
    """
    if not text or not text.strip():
        raise DigestParseError("Model returned empty text content")

    try:
        data = json.loads(strip_code_fence(text))
    except json.JSONDecodeError as e:
        raise DigestParseError(f"Model response is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise DigestParseError("Model response is not a JSON object")

    overview = data.get("overview")
    notable = data.get("notablePosts")
    topics = data.get("trendingTopics")

    if not isinstance(overview, str):
        raise DigestParseError("'overview' must be a string")
    if not isinstance(notable, list):
        raise DigestParseError("'notablePosts' must be a list")
    if not isinstance(topics, list) or not all(isinstance(topic, str) for topic in topics):
        raise DigestParseError("'trendingTopics' must be a list of strings")

    notable_posts: List[NotablePost] = []
    seen = set()
    for entry in notable:
        if not isinstance(entry, dict) or not _is_int(entry.get("postIndex")):
            raise DigestParseError(f"Notable post entry has no integer postIndex: {entry!r}")
        reason = entry.get("reason", "")
        if reason is None:
            reason = ""
        if not isinstance(reason, str):
            raise DigestParseError(f"Notable post reason must be a string: {entry!r}")

        index = entry["postIndex"]
        if index < 1 or index > len(posts):
            logger.warning(f"Dropping notable post with out-of-range index {index} (have {len(posts)} posts)")
            continue
        if index in seen:
            logger.warning(f"Dropping duplicate notable post index {index}")
            continue
        seen.add(index)
        notable_posts.append(NotablePost(post=posts[index - 1], reason=reason))

    return DigestRecord(overview=overview, notable_posts=notable_posts, trending_topics=list(topics))


class StructuredOutput:
    """Buffered completion parsed into a DigestRecord."""

    def __init__(self, max_tokens: int = settings.DIGEST_MAX_TOKENS):
        self.max_tokens = max_tokens

    def render(self, model: CompletionModel, digest_type: DigestType, posts: Sequence[Post],
               prompt: str) -> DigestRecord:
        text = model.complete(instructions_for(digest_type), prompt, self.max_tokens)
        return parse_digest_response(text, posts)


class StreamingOutput:
    """Markdown completion forwarded chunk by chunk to a sink."""

    def __init__(self, sink: Callable[[str], Any], max_tokens: int = settings.STREAM_MAX_TOKENS):
        self.sink = sink
        self.max_tokens = max_tokens

    def render(self, model: CompletionModel, digest_type: DigestType, posts: Sequence[Post],
               prompt: str) -> str:
        chunks = []
        for chunk in model.stream(streaming_instructions_for(digest_type), prompt, self.max_tokens):
            self.sink(chunk)
            chunks.append(chunk)
        return "".join(chunks)


class DigestSynthesizer:
    """Builds the digest prompt and hands it to an output strategy."""

    def __init__(self, model: CompletionModel, quote_length: int = settings.QUOTE_TRUNCATE_LENGTH):
        self.model = model
        self.quote_length = quote_length

    def synthesize(self, posts: Sequence[Post], digest_type: DigestType, output=None):
        """
        Run the model over the ranked posts.

        Args:
            posts: Ranked posts.
            digest_type: Selects the instruction template.
            output: StructuredOutput (default) or StreamingOutput.

        Returns:
            DigestRecord for structured output, the full text for streaming output.
        """
        output = output or StructuredOutput()
        prompt = build_digest_prompt(posts, self.quote_length)
        logger.info(f"Synthesizing {DigestType.parse(digest_type).value} digest from {len(posts)} posts "
                    f"({len(prompt)} prompt characters)")
        return output.render(self.model, digest_type, posts, prompt)
