"""
Bluesky Daily Digest

This is the main entry point for the Bluesky Digest application.
It reads the user's timeline, ranks the posts by engagement and asks the
language model for a daily digest, either as structured JSON (cached per day)
or as streamed markdown.

Usage:
    python main.py digest --type general
    python main.py digest --type topic --refresh
    python main.py digest --stream
    python main.py feed --name popular --limit 20
"""

import sys
import json
import argparse
import logging
from datetime import timedelta
from typing import Optional, List

from config import settings
from config.validators import validate_settings, get_config_summary
from data.database import SqlStore
from data.memory_store import MemoryStore
from data.models import DigestType
from services.ai_service import AIService
from services.bluesky_service import BlueskyService
from services.cache_service import DigestCache
from services.digest_service import DigestService
from services.synthesizer import DigestSynthesizer
from services.topic_filter import FeedReference, TopicFilter, build_keyword_pattern
from utils.exceptions import (
    DigestError, ConfigurationError, UpstreamError, AIServiceError
)
from utils.logger import get_logger, setup_file_logging

# Set up logging
logger = get_logger(__name__)


def create_store():
    """Create the cache store selected by settings.CACHE_BACKEND."""
    if settings.CACHE_BACKEND == "sql":
        return SqlStore()
    return MemoryStore()


def create_topic_filter(source) -> TopicFilter:
    """Build the topic filter from the keyword and feed settings."""
    pattern = build_keyword_pattern(
        settings.TOPIC_KEYWORDS,
        whole_word=settings.TOPIC_KEYWORD_WHOLE_WORD,
        substring_terms=settings.TOPIC_SUBSTRING_KEYWORDS,
    )
    feeds = [FeedReference.parse(entry) for entry in settings.TOPIC_FEEDS]
    return TopicFilter(
        source,
        feeds,
        pattern,
        cutoff=timedelta(hours=settings.TIMELINE_CUTOFF_HOURS),
        page_size=settings.FEED_PAGE_SIZE,
        stop_threshold=settings.OLD_POST_STOP_THRESHOLD,
        max_feed_posts=settings.MAX_TOPIC_FEED_POSTS,
    )


def create_digest_service(
    bluesky_service: Optional[BlueskyService] = None,
    ai_service: Optional[AIService] = None,
    store=None,
    validate: bool = True,
) -> DigestService:
    """
    Wire up a DigestService from settings.

    Configuration is validated before any service is created, so missing
    credentials fail without a network call.

    Args:
        bluesky_service: Optional pre-built Bluesky service.
        ai_service: Optional pre-built AI service.
        store: Optional KeyValueStore for the cache.
        validate: Whether to run validate_settings() first.

    Returns:
        DigestService: The configured service.
    """
    if validate:
        validate_settings()

    source = bluesky_service or BlueskyService()
    model = ai_service or AIService()

    return DigestService(
        source=source,
        synthesizer=DigestSynthesizer(model, quote_length=settings.QUOTE_TRUNCATE_LENGTH),
        cache=DigestCache(store if store is not None else create_store(),
                          ttl_seconds=settings.CACHE_TTL_SECONDS),
        topic_filter=create_topic_filter(source),
        cutoff=timedelta(hours=settings.TIMELINE_CUTOFF_HOURS),
        page_size=settings.FEED_PAGE_SIZE,
        stop_threshold=settings.OLD_POST_STOP_THRESHOLD,
        max_posts=settings.MAX_TIMELINE_POSTS,
        max_ranked=settings.MAX_RANKED_POSTS,
    )


def run_digest(args, service: Optional[DigestService] = None) -> bool:
    """
    Generate a digest and print it to stdout.

    Args:
        args: Parsed arguments (type, refresh, stream).
        service: Optional pre-built DigestService.

    Returns:
        bool: True if successful, False otherwise
    """
    try:
        service = service or create_digest_service()
        if args.stream:
            def write_chunk(chunk: str) -> None:
                sys.stdout.write(chunk)
                sys.stdout.flush()

            text = service.stream_digest(args.type, write_chunk)
            sys.stdout.write("\n")
            return bool(text)

        record = service.get_digest(args.type, refresh=args.refresh)
        print(json.dumps(record.to_dict(), indent=2, ensure_ascii=False))
        logger.info(f"Digest ready: {len(record.notable_posts)} notable posts"
                    f"{' (cached)' if record.cached else ''}")
        return True

    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return False
    except UpstreamError as e:
        logger.error(f"Bluesky error while generating digest: {e}", exc_info=True)
        return False
    except AIServiceError as e:
        logger.error(f"AI service error while generating digest: {e}", exc_info=True)
        return False
    except DigestError as e:
        logger.error(f"Digest error: {e}", exc_info=True)
        return False


def run_feed(args, bluesky_service: Optional[BlueskyService] = None) -> bool:
    """
    Print one page of a named feed as JSON.

    Args:
        args: Parsed arguments (name, limit).
        bluesky_service: Optional pre-built Bluesky service.

    Returns:
        bool: True if successful, False otherwise
    """
    try:
        service = bluesky_service or BlueskyService()
        posts = service.get_feed(args.name, limit=args.limit)
        print(json.dumps({"posts": [post.to_dict() for post in posts]}, indent=2, ensure_ascii=False))
        return True
    except UpstreamError as e:
        logger.error(f"Failed to fetch feed: {e}")
        return False


def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description='Bluesky Daily Digest')
    parser.add_argument('--log-file', type=str, default=None, help='Log file path')
    parser.add_argument('--log-level', type=str, choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        default='INFO', help='Logging level')

    subparsers = parser.add_subparsers(dest='command')

    digest_parser = subparsers.add_parser('digest', help='Generate the daily digest')
    digest_parser.add_argument('--type', type=str, default=DigestType.GENERAL.value,
                               choices=[t.value for t in DigestType], help='Digest type')
    digest_parser.add_argument('--refresh', action='store_true', help='Ignore the cached digest')
    digest_parser.add_argument('--stream', action='store_true',
                               help='Stream a markdown digest instead of structured JSON (not cached)')

    feed_parser = subparsers.add_parser('feed', help='Print posts from a feed')
    feed_parser.add_argument('--name', type=str, default='timeline',
                             choices=sorted(settings.BROWSE_FEEDS), help='Feed to read')
    feed_parser.add_argument('--limit', type=int, default=settings.BROWSE_FEED_LIMIT,
                             help='Number of posts')

    # No subcommand means a general digest
    parser.set_defaults(command='digest', type=DigestType.GENERAL.value, refresh=False, stream=False)
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the application."""
    # Parse command line arguments
    args = parse_arguments(argv)

    # Set up logging
    log_level = getattr(logging, args.log_level)
    setup_file_logging(args.log_file, log_level)

    logger.info(f"Starting Bluesky Digest ({args.command})")
    logger.debug(f"Configuration: {get_config_summary()}")

    try:
        if args.command == 'feed':
            success = run_feed(args)
        else:
            success = run_digest(args)

        # Report status
        exit_code = 0 if success else 1

    except Exception as e:
        logger.error(f"Unhandled exception in Bluesky Digest: {e}", exc_info=True)
        exit_code = 2

    # Log application end
    logger.info(f"Bluesky Digest finished with exit code {exit_code}")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
