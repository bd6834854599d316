"""
Configuration Settings for the Bluesky Digest

This module centralizes all configuration settings for the digest application,
including environment variables, API keys, and application constants.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

from config.keywords import (
    TOPIC_KEYWORDS as DEFAULT_TOPIC_KEYWORDS,
    TOPIC_SUBSTRING_KEYWORDS as DEFAULT_TOPIC_SUBSTRING_KEYWORDS,
)

# Determine the application root directory
APP_ROOT = Path(__file__).resolve().parent.parent

# Load environment variables from .env file
load_dotenv(dotenv_path=os.path.join(APP_ROOT, '.env'))


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        # validate_settings() reports the bad value
        return -1


def _env_list(name: str, default: list) -> list:
    value = os.getenv(name)
    if value is None:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


# API Keys and Authentication
GOOGLE_AI_API_KEY = os.getenv("GOOGLE_AI_API_KEY")

# Bluesky (AT Protocol) Authentication - an app password, not the account password
BLUESKY_HANDLE = os.getenv("BLUESKY_HANDLE")
BLUESKY_APP_PASSWORD = os.getenv("BLUESKY_APP_PASSWORD")

# AI Model Settings
DEFAULT_AI_MODELS = _env_list("DEFAULT_AI_MODELS", [
    'gemini-2.5-flash',       # Good balance of capability and cost
    'gemini-2.0-flash',
    'gemini-2.5-flash-lite',  # Cheaper fallback
])
DIGEST_MAX_TOKENS = _env_int("DIGEST_MAX_TOKENS", 4000)
STREAM_MAX_TOKENS = _env_int("STREAM_MAX_TOKENS", 2000)

# =============================================================================
# Timeline Collection Settings
# =============================================================================

TIMELINE_CUTOFF_HOURS = _env_int("TIMELINE_CUTOFF_HOURS", 24)  # Recency window for the digest
FEED_PAGE_SIZE = 100                 # Posts per getTimeline/getFeed request (API maximum)
OLD_POST_STOP_THRESHOLD = 20         # Consecutive out-of-window posts before pagination stops
MAX_TIMELINE_POSTS = 1000            # Hard cap on retained timeline posts
MAX_TOPIC_FEED_POSTS = 500           # Hard cap per external topic feed

# =============================================================================
# Ranking and Prompt Settings
# =============================================================================

MAX_RANKED_POSTS = 150               # Posts sent to the model after ranking
QUOTE_TRUNCATE_LENGTH = 200          # Quoted text length in the prompt (before "...")
LIKE_WEIGHT = 1.0
REPOST_WEIGHT = 2.0
REPLY_WEIGHT = 1.5

# =============================================================================
# Topic Digest Settings
# =============================================================================

# Curated feed generators merged into the topic digest, as "actor/key" entries
TOPIC_FEEDS = _env_list("TOPIC_FEEDS", [])
TOPIC_KEYWORDS = _env_list("TOPIC_KEYWORDS", DEFAULT_TOPIC_KEYWORDS)
TOPIC_SUBSTRING_KEYWORDS = _env_list("TOPIC_SUBSTRING_KEYWORDS", DEFAULT_TOPIC_SUBSTRING_KEYWORDS)
TOPIC_KEYWORD_WHOLE_WORD = _env_bool("TOPIC_KEYWORD_WHOLE_WORD", True)

# =============================================================================
# Browsable Feeds
# =============================================================================

# "timeline" is served by getTimeline; the others are feed generator URIs
BROWSE_FEEDS = {
    "timeline": None,
    "popular": "at://did:plc:z72i7hdynmk6r22z27h6tvur/app.bsky.feed.generator/whats-hot",
    "popular-friends": "at://did:plc:wqowuobffl66jv3kpsvo7ak4/app.bsky.feed.generator/the-algorithm",
}
BROWSE_FEED_LIMIT = 50

# =============================================================================
# Cache Settings
# =============================================================================

CACHE_BACKEND = os.getenv("CACHE_BACKEND", "memory").strip().lower()  # 'memory' or 'sql'
CACHE_TTL_SECONDS = 24 * 60 * 60     # Digests expire after a day
CACHE_TABLE = os.getenv("CACHE_TABLE", "tbl_Digest_Cache")

# Database Settings (only needed when CACHE_BACKEND is 'sql')
DB_SERVER = os.getenv("DB_SERVER", "")
DB_NAME = os.getenv("DB_NAME", "")
DB_USER = os.getenv("DB_USER", "")
DB_PASSWORD = os.getenv("DB_PASSWORD", "")

# Build connection string safely (validation happens in validate_settings())
DB_CONNECTION_STRING = (
    f"DRIVER={{ODBC Driver 18 for SQL Server}}; "
    f"SERVER={DB_SERVER}; "
    f"DATABASE={DB_NAME}; "
    f"UID={DB_USER}; "
    f"PWD={DB_PASSWORD}; "
    f"TrustServerCertificate=yes; MARS_Connection=yes;"
) if all([DB_SERVER, DB_NAME, DB_USER, DB_PASSWORD]) else ""
