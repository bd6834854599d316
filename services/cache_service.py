"""
Digest Cache Module

Keeps one digest per digest type per UTC calendar day. Keys embed the date,
so a new day starts with an empty cache even when the previous day's entry
has not physically expired yet. Cache problems never fail a request: reads
degrade to a miss and writes to a no-op.
"""

from dataclasses import replace
from datetime import datetime, date, timezone
from typing import Optional, Callable

from config import settings
from data.models import DigestRecord, DigestType
from data.protocols import KeyValueStore
from utils.helpers import utc_now
from utils.logger import get_logger

logger = get_logger(__name__)


def cache_key(digest_type: DigestType, day: date) -> str:
    """Build the cache key, e.g. "digest:general:2024-01-15"."""
    return f"digest:{DigestType.parse(digest_type).value}:{day.strftime('%Y-%m-%d')}"


class DigestCache:
    """Daily digest cache on top of a KeyValueStore."""

    def __init__(self, store: KeyValueStore, ttl_seconds: int = settings.CACHE_TTL_SECONDS,
                 clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._clock = clock or utc_now

    def key_for(self, digest_type: DigestType) -> str:
        """Today's (UTC) key for a digest type."""
        return cache_key(digest_type, self._clock().astimezone(timezone.utc).date())

    def get(self, digest_type: DigestType) -> Optional[DigestRecord]:
        """
        Return today's cached digest, marked cached=True, or None.

        Args:
            digest_type: The digest type.

        Returns:
            Optional[DigestRecord]: The cached digest, or None on a miss or any error.
        """
        key = self.key_for(digest_type)
        try:
            value = self.store.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed for {key}, treating as miss: {e}")
            return None

        if value is None:
            logger.debug(f"Cache miss for {key}")
            return None

        try:
            record = DigestRecord.from_dict(value)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Discarding unreadable cache entry {key}: {e}")
            return None

        logger.info(f"Cache hit for {key}")
        return replace(record, cached=True)

    def set(self, digest_type: DigestType, record: DigestRecord) -> None:
        """
        Store a digest under today's key, replacing any previous entry.

        Args:
            digest_type: The digest type.
            record: The digest to store. Its cached flag is not persisted.
        """
        key = self.key_for(digest_type)
        value = replace(record, cached=False).to_dict()
        try:
            self.store.set(key, value, self.ttl_seconds)
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")
            return
        logger.info(f"Cached digest under {key} for {self.ttl_seconds} seconds")

    def invalidate(self, digest_type: DigestType) -> None:
        """Delete today's entry for a digest type."""
        key = self.key_for(digest_type)
        try:
            self.store.delete(key)
        except Exception as e:
            logger.warning(f"Cache delete failed for {key}: {e}")
