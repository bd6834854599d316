"""
Helper Utility Module

This module provides various helper functions used throughout the digest application.
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


def truncate_text(text: str, max_length: int = 100, add_ellipsis: bool = True) -> str:
    """
    Truncate text to a maximum length.

    Args:
        text: The text to truncate
        max_length: Maximum length
        add_ellipsis: Whether to add an ellipsis if text is truncated

    Returns:
        str: Truncated text
    """
    if not text or len(text) <= max_length:
        return text

    truncated = text[:max_length]
    if add_ellipsis:
        truncated += "..."

    return truncated


def safe_get(data: Any, *keys, default: Any = None) -> Any:
    """
    Safely walk a nested structure of dicts and/or objects.

    Each key is looked up as a dict key first and as an attribute second, so
    the same path works for atproto models and their plain JSON form.

    Args:
        data: The object or dictionary to search
        *keys: The keys to follow
        default: Default value if a key doesn't exist

    Returns:
        The value at the specified keys or the default value
    """
    for key in keys:
        if data is None:
            return default
        if isinstance(data, dict):
            if key not in data:
                return default
            data = data[key]
        else:
            try:
                data = getattr(data, key)
            except AttributeError:
                return default
    return default if data is None else data


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Args:
        value: Timestamp string, e.g. "2024-01-15T10:00:00.000Z"

    Returns:
        Optional[datetime]: The parsed datetime, or None if empty or invalid.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except (ValueError, TypeError, AttributeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def isoformat_z(value: datetime) -> str:
    """
    Format a datetime the way the Bluesky API does (millisecond precision, Z suffix).

    Args:
        value: Aware or naive (assumed UTC) datetime

    Returns:
        str: e.g. "2024-01-15T10:00:00.000Z"
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime('%Y-%m-%dT%H:%M:%S.') + f"{value.microsecond // 1000:03d}Z"


def drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Drop None values from a dictionary built for serialization.

    Args:
        data: Dictionary with camelCase keys

    Returns:
        Dict: A copy without None entries.
    """
    return {key: value for key, value in data.items() if value is not None}
