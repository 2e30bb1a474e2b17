from __future__ import annotations

from enum import Enum
from pydantic import BaseModel, field_validator


class ListingKind(str, Enum):
    SUBREDDITS = "subreddits"
    SAVED = "saved"


class SubredditAction(str, Enum):
    SUBSCRIBE = "sub"
    UNSUBSCRIBE = "unsub"


class PostAction(str, Enum):
    SAVE = "save"
    UNSAVE = "unsave"


class AccountRole(str, Enum):
    SOURCE = "source"
    DESTINATION = "destination"


class MigrationOptions(BaseModel):
    oauth_url: str = "https://oauth.reddit.com"
    base_url: str = "https://www.reddit.com"
    user_agent: str = "python:reddit-migrate:1.0 (account migration)"

    page_size: int = 100
    max_pages: int = 100

    # 25 per /api/subscribe call; the bulk form accepts up to 200
    subreddit_chunk_size: int = 25
    subscribe_concurrency: int = 1
    post_concurrency: int = 10

    wave_delay: float = 1.0
    request_timeout: float = 10.0

    @field_validator("page_size", "max_pages", "subreddit_chunk_size", "subscribe_concurrency", "post_concurrency")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("page_size")
    @classmethod
    def _page_size_cap(cls, v: int) -> int:
        if v > 100:
            raise ValueError("page_size cannot exceed the listing limit of 100")
        return v

    @field_validator("wave_delay")
    @classmethod
    def _non_negative_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("wave_delay cannot be negative")
        return v

    @field_validator("request_timeout")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("request_timeout must be positive")
        return v
