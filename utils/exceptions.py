"""
Custom Exception Classes for the Bluesky Digest Application

This module defines custom exceptions for better error handling and
categorization of failures across the application.
"""


class DigestError(Exception):
    """Base exception for all Bluesky Digest application errors."""
    pass


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(DigestError):
    """Raised when configuration validation fails or required settings are missing."""
    pass


# =============================================================================
# Upstream (Bluesky) Errors
# =============================================================================

class UpstreamError(DigestError):
    """Base exception for errors talking to the Bluesky API."""
    pass


class AuthenticationError(UpstreamError):
    """Raised when authentication with Bluesky fails."""
    pass


class FeedFetchError(UpstreamError):
    """Raised when a timeline, feed or profile call fails."""
    pass


class UnknownFeedError(UpstreamError):
    """Raised when a named feed is not configured."""
    pass


# =============================================================================
# AI Service Errors
# =============================================================================

class AIServiceError(DigestError):
    """Base exception for AI service errors."""
    pass


class DigestParseError(AIServiceError):
    """Raised when the model response is empty, not JSON, or the wrong shape."""
    pass


# =============================================================================
# Cache Errors
# =============================================================================

class CacheError(DigestError):
    """Raised by cache stores; never escapes the digest cache."""
    pass


# =============================================================================
# Database Errors
# =============================================================================

class DatabaseError(CacheError):
    """Base exception for database-related errors."""
    pass


class QueryError(DatabaseError):
    """Raised when a database query fails."""
    pass
