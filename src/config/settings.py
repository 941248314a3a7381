"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# This class uses pydantic-settings to automatically read configuration
# from TWO sources (in priority order):
#
#   1. **Environment variables**: e.g., REDIS_URL=redis://cache:6379/2
#      (highest priority, always wins)
#   2. **.env file**: key=value lines in the project root .env file
#      (lower priority, for local development)
#
# Most fields map to the upper-cased field name.  The Redis knobs keep the
# variable names the JavaScript cache handler reads (REDIS_COMMAND_TIMEOUT_MS,
# REDIS_IN_MEMORY_CACHING_TIME, ...) so one deployment can feed both, which
# is why those fields declare an explicit ``validation_alias``.
#
# Numeric knobs are lenient: an unparseable or non-positive value falls back
# to the default instead of failing startup.  Only the literal string
# "false" disables the in-memory tier.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.models.cache import CacheConfig


class Settings(BaseSettings):
    """Render-cache settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    # === Remote store ===
    redis_url: str = Field(
        default="redis://localhost:6379",
        validation_alias=AliasChoices("REDIS_URL", "VALKEY_URL", "redis_url"),
    )
    redis_command_timeout_ms: int = Field(
        default=500,
        validation_alias=AliasChoices("REDIS_COMMAND_TIMEOUT_MS", "redis_command_timeout_ms"),
    )
    redis_connect_timeout_ms: int = Field(
        default=5000,
        validation_alias=AliasChoices("REDIS_CONNECT_TIMEOUT_MS", "redis_connect_timeout_ms"),
    )

    # === In-memory tier ===
    redis_in_memory_caching: bool = Field(
        default=True,
        validation_alias=AliasChoices("REDIS_IN_MEMORY_CACHING", "redis_in_memory_caching"),
    )
    redis_in_memory_caching_time_ms: int = Field(
        default=10000,
        validation_alias=AliasChoices(
            "REDIS_IN_MEMORY_CACHING_TIME", "redis_in_memory_caching_time_ms"
        ),
    )
    redis_in_memory_max_entries: int = Field(
        default=10000,
        validation_alias=AliasChoices(
            "REDIS_IN_MEMORY_MAX_ENTRIES", "redis_in_memory_max_entries"
        ),
    )

    # === Entry lifetimes ===
    # 14 days, used when the host supplies no positive revalidate value.
    redis_default_stale_age: int = Field(
        default=1209600,
        validation_alias=AliasChoices("REDIS_DEFAULT_STALE_AGE", "redis_default_stale_age"),
    )

    # === Key-space layout ===
    cache_key_prefix: str = "nextjs:cache"
    tag_key_prefix: str = "nextjs:tag"
    tag_delete_concurrency: int = 32

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"

    @field_validator(
        "redis_command_timeout_ms",
        "redis_connect_timeout_ms",
        "redis_in_memory_caching_time_ms",
        "redis_in_memory_max_entries",
        "redis_default_stale_age",
        "tag_delete_concurrency",
        mode="before",
    )
    @classmethod
    def _positive_int_or_default(cls, value: Any, info: ValidationInfo) -> Any:
        default = cls.model_fields[info.field_name].default
        if value is None or isinstance(value, bool):
            return default
        try:
            parsed = int(str(value).strip())
        except ValueError:
            return default
        return parsed if parsed > 0 else default

    @field_validator("redis_in_memory_caching", mode="before")
    @classmethod
    def _only_false_disables(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip() != "false"
        return value

    @property
    def is_production(self) -> bool:
        return self.app_env.strip().lower() == "production"

    def to_cache_config(self) -> CacheConfig:
        """Resolve these settings into the frozen config the cache core uses."""
        return CacheConfig(
            command_timeout_s=self.redis_command_timeout_ms / 1000,
            connect_timeout_s=self.redis_connect_timeout_ms / 1000,
            in_memory_caching=self.redis_in_memory_caching,
            in_memory_ttl_s=self.redis_in_memory_caching_time_ms / 1000,
            in_memory_max_entries=self.redis_in_memory_max_entries,
            default_stale_age_s=self.redis_default_stale_age,
            production=self.is_production,
            cache_key_prefix=self.cache_key_prefix,
            tag_key_prefix=self.tag_key_prefix,
            tag_delete_concurrency=self.tag_delete_concurrency,
        )
