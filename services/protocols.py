"""
Service Protocol Definitions

This module defines typing.Protocol interfaces for the external collaborators
the digest pipeline depends on. These protocols enable loose coupling,
dependency injection, and easier testing.

Protocols defined:
- FeedSource: Interface for paged timeline/feed access and handle resolution
- CompletionModel: Interface for language-model completions
"""

from typing import Protocol, Optional, Any, Iterator


class FeedSource(Protocol):
    """Protocol defining the upstream feed access the collector needs.

    Page responses expose `feed` (a list of feed items) and `cursor`
    (None or missing when there are no more pages).
    """

    def fetch_timeline_page(self, limit: int, cursor: Optional[str] = None) -> Any:
        """Fetch one page of the authenticated user's following timeline.

        Args:
            limit: Maximum number of items in the page.
            cursor: Opaque cursor returned by the previous page.

        Returns:
            A page with `feed` and `cursor`.
        """
        ...

    def fetch_feed_page(self, feed_uri: str, limit: int, cursor: Optional[str] = None) -> Any:
        """Fetch one page of a feed generator.

        Args:
            feed_uri: at:// URI of the feed generator record.
            limit: Maximum number of items in the page.
            cursor: Opaque cursor returned by the previous page.

        Returns:
            A page with `feed` and `cursor`.
        """
        ...

    def resolve_handle(self, handle: str) -> str:
        """Resolve a handle to its stable DID.

        Args:
            handle: Account handle, e.g. "alice.bsky.social".

        Returns:
            The DID string.
        """
        ...


class CompletionModel(Protocol):
    """Protocol defining the language-model operations used by the synthesizer."""

    def complete(self, system_instructions: str, user_message: str, max_tokens: int) -> str:
        """Return the full completion text.

        Args:
            system_instructions: System prompt.
            user_message: The user turn.
            max_tokens: Upper bound on output tokens.

        Returns:
            The response text.
        """
        ...

    def stream(self, system_instructions: str, user_message: str, max_tokens: int) -> Iterator[str]:
        """Yield completion text chunks as they arrive.

        Args:
            system_instructions: System prompt.
            user_message: The user turn.
            max_tokens: Upper bound on output tokens.

        Returns:
            An iterator of text chunks.
        """
        ...
