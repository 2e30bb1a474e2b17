"""
Environment configuration for the migration engine.

Env knobs (also read from a local .env file)
- REDDIT_OAUTH_URL:               https://oauth.reddit.com
- REDDIT_BASE_URL:                https://www.reddit.com  (cookie verification)
- REDDIT_USER_AGENT:              python:reddit-migrate:1.0 (account migration)
- MIGRATE_PAGE_SIZE:              100   (listing page size, max 100)
- MIGRATE_MAX_PAGES:              100   (pagination safety cap)
- MIGRATE_SUBREDDIT_CHUNK_SIZE:   25    (subreddits per /api/subscribe call)
- MIGRATE_SUBSCRIBE_CONCURRENCY:  1     (subscribe chunks per wave)
- MIGRATE_POST_CONCURRENCY:       10    (save/unsave requests per wave)
- MIGRATE_WAVE_DELAY:             1.0   (seconds between waves)
- MIGRATE_REQUEST_TIMEOUT:        10    (seconds per request)
- MIGRATE_LOG_LEVEL:              INFO
- MIGRATE_HOST / MIGRATE_PORT:    localhost / 5005
"""
from __future__ import annotations

import logging
import os
from typing import Optional

from dotenv import load_dotenv

from .options import MigrationOptions

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 5005

logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.error("Env var %s=%r is not an integer; using default %d", name, raw, default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.error("Env var %s=%r is not a number; using default %s", name, raw, default)
        return default


def load_options(dotenv: bool = True) -> MigrationOptions:
    """Build validated MigrationOptions from the environment."""
    if dotenv:
        load_dotenv()
    defaults = MigrationOptions()
    return MigrationOptions(
        oauth_url=os.environ.get("REDDIT_OAUTH_URL", defaults.oauth_url).rstrip("/"),
        base_url=os.environ.get("REDDIT_BASE_URL", defaults.base_url).rstrip("/"),
        user_agent=os.environ.get("REDDIT_USER_AGENT", defaults.user_agent),
        page_size=_env_int("MIGRATE_PAGE_SIZE", defaults.page_size),
        max_pages=_env_int("MIGRATE_MAX_PAGES", defaults.max_pages),
        subreddit_chunk_size=_env_int("MIGRATE_SUBREDDIT_CHUNK_SIZE", defaults.subreddit_chunk_size),
        subscribe_concurrency=_env_int("MIGRATE_SUBSCRIBE_CONCURRENCY", defaults.subscribe_concurrency),
        post_concurrency=_env_int("MIGRATE_POST_CONCURRENCY", defaults.post_concurrency),
        wave_delay=_env_float("MIGRATE_WAVE_DELAY", defaults.wave_delay),
        request_timeout=_env_float("MIGRATE_REQUEST_TIMEOUT", defaults.request_timeout),
    )


def server_address() -> tuple[str, int]:
    return os.environ.get("MIGRATE_HOST", DEFAULT_HOST), _env_int("MIGRATE_PORT", DEFAULT_PORT)


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging once for scripts and the API server."""
    name = (level or os.environ.get("MIGRATE_LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(level=getattr(logging, name, logging.INFO), format=LOG_FORMAT)
    # httpx logs every request line at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
