"""
Configuration Validation for the Bluesky Digest

This module contains configuration validation logic.
Extracted from settings.py for better separation of concerns.
"""

from utils.exceptions import ConfigurationError


def validate_settings():
    """
    Validate that all required settings are properly configured.

    Runs before any network call so a missing credential fails the request
    immediately.

    Raises:
        ConfigurationError: If required settings are missing or invalid.
    """
    # Import settings here to avoid circular imports
    from config import settings

    errors = []

    # Required environment variables
    required_vars = [
        ("GOOGLE_AI_API_KEY", settings.GOOGLE_AI_API_KEY),
        ("BLUESKY_HANDLE", settings.BLUESKY_HANDLE),
        ("BLUESKY_APP_PASSWORD", settings.BLUESKY_APP_PASSWORD),
    ]

    for var_name, var_value in required_vars:
        if not var_value:
            errors.append(f"Missing required environment variable: {var_name}")

    if not settings.DEFAULT_AI_MODELS:
        errors.append("DEFAULT_AI_MODELS must list at least one model")

    # The SQL cache needs a working connection string
    if settings.CACHE_BACKEND not in ("memory", "sql"):
        errors.append(f"CACHE_BACKEND must be 'memory' or 'sql', got '{settings.CACHE_BACKEND}'")
    elif settings.CACHE_BACKEND == "sql" and not settings.DB_CONNECTION_STRING:
        errors.append("CACHE_BACKEND is 'sql' but the database connection string could not be built. "
                      "Check DB_SERVER, DB_NAME, DB_USER, DB_PASSWORD.")

    # Validate numeric settings are within reasonable bounds
    numeric_validations = [
        ("TIMELINE_CUTOFF_HOURS", settings.TIMELINE_CUTOFF_HOURS, 1, 168),
        ("FEED_PAGE_SIZE", settings.FEED_PAGE_SIZE, 1, 100),
        ("OLD_POST_STOP_THRESHOLD", settings.OLD_POST_STOP_THRESHOLD, 1, 1000),
        ("MAX_TIMELINE_POSTS", settings.MAX_TIMELINE_POSTS, 1, 10000),
        ("MAX_TOPIC_FEED_POSTS", settings.MAX_TOPIC_FEED_POSTS, 1, 10000),
        ("MAX_RANKED_POSTS", settings.MAX_RANKED_POSTS, 1, 500),
        ("QUOTE_TRUNCATE_LENGTH", settings.QUOTE_TRUNCATE_LENGTH, 10, 2000),
        ("DIGEST_MAX_TOKENS", settings.DIGEST_MAX_TOKENS, 256, 65536),
        ("STREAM_MAX_TOKENS", settings.STREAM_MAX_TOKENS, 256, 65536),
    ]

    for name, value, min_val, max_val in numeric_validations:
        if value < min_val or value > max_val:
            errors.append(f"{name} must be between {min_val} and {max_val}, got {value}")

    if settings.CACHE_TTL_SECONDS <= 0:
        errors.append(f"CACHE_TTL_SECONDS must be positive, got {settings.CACHE_TTL_SECONDS}")

    # Topic feeds are "actor/key" pairs
    for entry in settings.TOPIC_FEEDS:
        actor, _, key = entry.partition("/")
        if not actor or not key:
            errors.append(f"TOPIC_FEEDS entry '{entry}' must look like 'actor/key'")

    if not settings.TOPIC_KEYWORDS and not settings.TOPIC_SUBSTRING_KEYWORDS:
        errors.append("At least one of TOPIC_KEYWORDS or TOPIC_SUBSTRING_KEYWORDS must be set")

    # Raise all errors at once
    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)

    return True


def get_config_summary() -> dict:
    """
    Returns a summary of current configuration (without sensitive values).
    Useful for logging startup state.
    """
    # Import settings here to avoid circular imports
    from config import settings

    return {
        "bluesky": {
            "handle": settings.BLUESKY_HANDLE,
            "configured": bool(settings.BLUESKY_HANDLE and settings.BLUESKY_APP_PASSWORD),
        },
        "ai": {
            "configured": bool(settings.GOOGLE_AI_API_KEY),
            "preferred_models": settings.DEFAULT_AI_MODELS,
            "max_tokens": settings.DIGEST_MAX_TOKENS,
        },
        "collection": {
            "cutoff_hours": settings.TIMELINE_CUTOFF_HOURS,
            "page_size": settings.FEED_PAGE_SIZE,
            "stop_threshold": settings.OLD_POST_STOP_THRESHOLD,
            "max_posts": settings.MAX_TIMELINE_POSTS,
            "max_ranked": settings.MAX_RANKED_POSTS,
        },
        "topic": {
            "feeds": len(settings.TOPIC_FEEDS),
            "keywords": len(settings.TOPIC_KEYWORDS),
            "whole_word": settings.TOPIC_KEYWORD_WHOLE_WORD,
        },
        "cache": {
            "backend": settings.CACHE_BACKEND,
            "ttl_seconds": settings.CACHE_TTL_SECONDS,
            "database": settings.DB_NAME if settings.CACHE_BACKEND == "sql" else None,
        },
    }
