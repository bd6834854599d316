"""
Data Layer Protocol Definitions

This module defines typing.Protocol interfaces for data layer operations.
These protocols enable dependency injection for storage, making services
testable without a real database connection.

Protocols defined:
- KeyValueStore: Interface for a generic expiring key-value store
"""

from typing import Protocol, Optional, Any


class KeyValueStore(Protocol):
    """Protocol defining the interface for an expiring key-value store.

    Values are JSON-compatible structures (dicts, lists, strings, numbers).
    Implementations may raise on backend failure; callers that must not fail
    (the digest cache) catch and degrade to a miss.
    """

    def get(self, key: str) -> Optional[Any]:
        """Return the value stored under key, or None if absent or expired.

        Args:
            key: The cache key.

        Returns:
            The stored value, or None.
        """
        ...

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Store value under key, replacing any previous value.

        Args:
            key: The cache key.
            value: A JSON-compatible value.
            ttl_seconds: Seconds until the value expires.
        """
        ...

    def delete(self, key: str) -> None:
        """Remove key if present.

        Args:
            key: The cache key.
        """
        ...
