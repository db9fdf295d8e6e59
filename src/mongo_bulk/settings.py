"""Environment-driven configuration for mongo-bulk."""

from __future__ import annotations

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .client import DEFAULT_URI
from .types import MAX_BATCH_SIZE


class BulkSettings(BaseSettings):
    """
    Defaults for bulk jobs, read from ``MONGO_BULK_*`` environment variables.

    The connection URI also honours ``MONGO_URL``, like ``MongoClient``.
    Command line options take precedence over every value here.
    """

    model_config = SettingsConfigDict(
        env_prefix="MONGO_BULK_",
        case_sensitive=False,
        extra="ignore",
    )

    uri: str = Field(
        default=DEFAULT_URI,
        validation_alias=AliasChoices("MONGO_BULK_URI", "MONGO_URL"),
    )
    timeout: float = Field(default=30.0, gt=0)
    connect_retries: int = Field(default=3, ge=1)
    cursor_retries: int = Field(default=3, ge=1)
    retry_sleep: float = Field(default=1.0, gt=0)
    batch_size: int = Field(default=1000, ge=1, le=MAX_BATCH_SIZE)
    pause_ms: int = Field(default=100, ge=0)


@lru_cache(maxsize=1)
def get_settings() -> BulkSettings:
    """Return cached settings loaded from the environment."""

    return BulkSettings()
